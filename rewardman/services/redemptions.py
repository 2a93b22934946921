"""Redemption service — catalog pricing, eligibility and points-for-reward exchange."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from rewardman.conditions import PricingContext
from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.models import (
    REDEMPTION_TRANSITIONS,
    LedgerEntryKind,
    LoyaltyAccount,
    RedemptionItem,
    RedemptionStatus,
    RedemptionTransaction,
)
from rewardman.services.accounts import get_account, lock_account
from rewardman.services.ledger import append_entry
from rewardman.services.perks import Page
from rewardman.signals import points_redeemed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedemptionContext:
    property_id: str | None = None
    room_type_id: str | None = None
    redemption_date: date | None = None
    metadata: dict | None = None


@dataclass
class RedemptionValidation:
    """Eligibility of one account for one catalog item."""

    valid: bool
    reason: str = ""
    points_required: int | None = None
    points_available: int | None = None
    item: RedemptionItem | None = None


@dataclass
class CatalogEntry:
    item: RedemptionItem
    points_required: int
    can_afford: bool
    available: bool = True


def _invalid(reason: str, **kwargs) -> RedemptionValidation:
    return RedemptionValidation(valid=False, reason=reason, **kwargs)


class RedemptionService:
    """
    Service for redemption catalog operations.

    Uses @classmethod for extensibility (consistent with other services).
    validate_redemption never raises for expected causes; process_redemption
    deducts points and records the transaction in one transaction.atomic().
    """

    @classmethod
    def calculate_redemption_points(cls, item: RedemptionItem, context: RedemptionContext | None = None) -> int:
        """
        Points an item costs in a given context.

        With dynamic pricing on, rules apply in listed order; each one
        checks room type, property and date range on its own.
        """
        context = context or RedemptionContext()
        pricing, _, _, _ = item.parsed()
        return pricing.price(
            item.base_points_required,
            PricingContext(
                property_id=context.property_id,
                room_type_id=context.room_type_id,
                redemption_date=context.redemption_date,
            ),
        )

    @classmethod
    def _validate(
        cls,
        item: RedemptionItem | None,
        account: LoyaltyAccount | None,
        context: RedemptionContext,
    ) -> RedemptionValidation:
        if item is None or not item.is_active:
            return _invalid("Redemption item not found or inactive")
        if account is None:
            return _invalid("Loyalty account not found")

        redemption_date = context.redemption_date or timezone.localdate()
        if item.start_date and redemption_date < item.start_date:
            return _invalid("Redemption item not yet available")
        if item.end_date and redemption_date > item.end_date:
            return _invalid("Redemption item has expired")

        _, tier_scope, property_scope, room_type_scope = item.parsed()
        if not tier_scope.admits(account.tier):
            return _invalid("Member tier not eligible for this redemption")
        if context.property_id is not None and not property_scope.admits(context.property_id):
            return _invalid("Redemption not available for this property")
        if context.room_type_id is not None and not room_type_scope.admits(context.room_type_id):
            return _invalid("Redemption not available for this room type")

        remaining = item.remaining_quantity
        if remaining is not None and remaining <= 0:
            return _invalid("Redemption item out of stock")

        points_required = cls.calculate_redemption_points(
            item,
            RedemptionContext(
                property_id=context.property_id,
                room_type_id=context.room_type_id,
                redemption_date=redemption_date,
            ),
        )
        if account.points < points_required:
            return _invalid(
                "Insufficient points",
                points_required=points_required,
                points_available=account.points,
            )

        return RedemptionValidation(
            valid=True,
            points_required=points_required,
            points_available=account.points,
            item=item,
        )

    @classmethod
    def validate_redemption(
        cls,
        item_id: int,
        account_id: int,
        context: RedemptionContext | None = None,
    ) -> RedemptionValidation:
        """
        Check whether an account can redeem an item.

        Returns:
            RedemptionValidation — valid=False with a reason for expected
            causes (missing item/account, date window, scope, stock, balance)
        """
        item = RedemptionItem.objects.filter(pk=item_id).first()
        account = LoyaltyAccount.objects.filter(pk=account_id).first()
        return cls._validate(item, account, context or RedemptionContext())

    @classmethod
    def process_redemption(
        cls,
        item_id: int,
        account_id: int,
        booking_ref: str | None = None,
        context: RedemptionContext | None = None,
    ) -> RedemptionTransaction:
        """
        Exchange points for a catalog item.

        Inside one transaction: lock the account, re-validate, append the
        REDEEM ledger entry, take one unit of stock and create the PENDING
        transaction. Nothing is committed if any step fails.

        Args:
            item_id: RedemptionItem pk
            account_id: LoyaltyAccount pk
            booking_ref: Booking the redemption is attached to
            context: Property, room type and date for pricing

        Returns:
            Created RedemptionTransaction (PENDING)

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND, REDEMPTION_INVALID (data["reason"]),
                OUT_OF_STOCK
        """
        context = context or RedemptionContext()

        with transaction.atomic():
            account = lock_account(account_id)
            item = RedemptionItem.objects.filter(pk=item_id).first()

            validation = cls._validate(item, account, context)
            if not validation.valid:
                raise RewardmanError(
                    "REDEMPTION_INVALID",
                    message=validation.reason,
                    reason=validation.reason,
                    item_id=item_id,
                    points_required=validation.points_required,
                    points_available=validation.points_available,
                )

            points_required = validation.points_required
            pricing_applied = {
                "base_points_required": item.base_points_required,
                "points_required": points_required,
                "property_id": context.property_id,
                "room_type_id": context.room_type_id,
            }

            entry = append_entry(
                account,
                -points_required,
                f"Redeemed: {item.name}",
                kind=LedgerEntryKind.REDEEM,
                booking_ref=booking_ref or "",
                redemption_item=item,
                metadata={
                    "redemption_item_id": item.pk,
                    "redemption_item_code": item.code,
                    "dynamic_pricing_applied": pricing_applied,
                },
            )

            if item.total_quantity is not None:
                stock = RedemptionItem.objects.filter(pk=item.pk)
                if item.available_quantity is not None:
                    taken = stock.filter(available_quantity__gt=0).update(
                        sold_quantity=F("sold_quantity") + 1,
                        available_quantity=F("available_quantity") - 1,
                    )
                else:
                    taken = stock.filter(sold_quantity__lt=F("total_quantity")).update(
                        sold_quantity=F("sold_quantity") + 1,
                    )
                if not taken:
                    raise RewardmanError("OUT_OF_STOCK", item_id=item.pk)

            expires_in_days = item.parsed_value().expires_in_days
            redemption = RedemptionTransaction.objects.create(
                item=item,
                account=account,
                booking_ref=booking_ref or "",
                ledger_entry=entry,
                points_redeemed=points_required,
                value_received=item.value,
                dynamic_pricing_applied=pricing_applied,
                status=RedemptionStatus.PENDING,
                expires_at=(
                    timezone.now() + timedelta(days=expires_in_days) if expires_in_days else None
                ),
                metadata=context.metadata or {},
            )

        logger.info(
            "Account %s redeemed %s for %d points (transaction %s)",
            account.pk, item.code, points_required, redemption.pk,
        )
        points_redeemed.send(sender=LoyaltyAccount, entry=entry)
        return redemption

    @classmethod
    def update_redemption_status(cls, transaction_id: int, status: str) -> RedemptionTransaction:
        """
        Move a redemption forward through its lifecycle.

        PENDING -> CONFIRMED -> USED; EXPIRED and CANCELLED are reachable
        from PENDING and CONFIRMED. Repeating the current status is a no-op.
        USED stamps used_at once.

        Raises:
            RewardmanError: INVALID_STATUS, TRANSACTION_NOT_FOUND,
                INVALID_STATUS_TRANSITION
        """
        if status not in RedemptionStatus.values:
            raise RewardmanError("INVALID_STATUS", status=status, allowed=list(RedemptionStatus.values))

        with transaction.atomic():
            try:
                redemption = RedemptionTransaction.objects.select_for_update().get(pk=transaction_id)
            except RedemptionTransaction.DoesNotExist:
                raise RewardmanError("TRANSACTION_NOT_FOUND", transaction_id=transaction_id)

            if redemption.status == status:
                return redemption

            current = RedemptionStatus(redemption.status)
            if RedemptionStatus(status) not in REDEMPTION_TRANSITIONS[current]:
                raise RewardmanError(
                    "INVALID_STATUS_TRANSITION",
                    from_status=redemption.status,
                    to_status=status,
                )

            redemption.status = status
            update_fields = ["status", "updated_at"]
            if status == RedemptionStatus.USED and redemption.used_at is None:
                redemption.used_at = timezone.now()
                update_fields.append("used_at")
            redemption.save(update_fields=update_fields)

        logger.info("Redemption %s moved %s -> %s", redemption.pk, current, status)
        return redemption

    @classmethod
    def get_redemption_catalog(
        cls,
        account_id: int,
        property_id: str | None = None,
        room_type_id: str | None = None,
        today: date | None = None,
    ) -> list[CatalogEntry]:
        """
        Items a member may redeem today, cheapest first.

        Out-of-stock items are left out. Property and room-type scopes are
        only checked when the matching id is given.

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND
        """
        account = get_account(account_id)
        today = today or timezone.localdate()

        items = (
            RedemptionItem.objects.filter(is_active=True)
            .filter(Q(start_date__isnull=True) | Q(start_date__lte=today))
            .filter(Q(end_date__isnull=True) | Q(end_date__gte=today))
            .order_by("base_points_required", "id")
        )

        catalog = []
        for item in items:
            _, tier_scope, property_scope, room_type_scope = item.parsed()
            if not tier_scope.admits(account.tier):
                continue
            if property_id is not None and not property_scope.admits(property_id):
                continue
            if room_type_id is not None and not room_type_scope.admits(room_type_id):
                continue
            remaining = item.remaining_quantity
            if remaining is not None and remaining <= 0:
                continue

            points_required = cls.calculate_redemption_points(
                item,
                RedemptionContext(property_id=property_id, room_type_id=room_type_id, redemption_date=today),
            )
            catalog.append(CatalogEntry(
                item=item,
                points_required=points_required,
                can_afford=account.points >= points_required,
            ))
        return catalog

    @classmethod
    def get_member_redemptions(
        cls,
        account_id: int,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Page:
        """A member's redemption transactions, newest first."""
        limit = limit or rewardman_settings.DEFAULT_PAGE_SIZE
        qs = RedemptionTransaction.objects.filter(account_id=account_id).select_related("item")
        if status:
            qs = qs.filter(status=status)
        return Page(
            items=list(qs[offset:offset + limit]),
            total=qs.count(),
            limit=limit,
            offset=offset,
        )
