"""Perk service — eligibility, capacity enforcement and redemption."""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime

from django.db import transaction
from django.db.models import F, Q

from rewardman.conditions import as_date
from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.models import Perk, PerkRedemption, PerkRedemptionStatus, tier_index
from rewardman.services.accounts import get_account, lock_account

logger = logging.getLogger(__name__)


# Redemptions that count against member and stay limits
_COUNTED_STATUSES = [PerkRedemptionStatus.ACTIVE, PerkRedemptionStatus.USED]


@dataclass(frozen=True)
class PerkContext:
    """Member and booking facts a perk is evaluated against."""

    check_in: date | datetime
    member_tier: str | None = None
    booking_source: str | None = None
    stay_length: int = 0
    property_id: str | None = None
    booking_ref: str | None = None


@dataclass
class CapacityCheck:
    available: bool
    reason: str = ""


@dataclass
class Page:
    """One page of a member history listing."""

    items: list
    total: int
    limit: int
    offset: int


class PerkService:
    """
    Service for perk operations.

    Uses @classmethod for extensibility (consistent with other services).
    Capacity checks return CapacityCheck; redeem_perk raises.
    """

    @classmethod
    def evaluate_perk_conditions(cls, perk: Perk, context: PerkContext) -> bool:
        """
        Whether a perk's conditions admit a member and booking.

        Checks the tier floor (min_tier), the tier and property scopes,
        booking source, stay length and the perk's own date window.
        """
        conditions, tier_scope, property_scope = perk.parsed()

        if conditions.min_tier and tier_index(context.member_tier) < tier_index(conditions.min_tier):
            return False
        if not tier_scope.admits(context.member_tier):
            return False
        if not property_scope.admits(context.property_id):
            return False
        if conditions.booking_source and context.booking_source != conditions.booking_source:
            return False
        if conditions.stay_length and not conditions.stay_length.contains(context.stay_length):
            return False

        check_in = as_date(context.check_in)
        if perk.start_date and (check_in is None or check_in < perk.start_date):
            return False
        if perk.end_date and (check_in is None or check_in > perk.end_date):
            return False
        return True

    @classmethod
    def check_perk_capacity(
        cls,
        perk_id: int,
        account_id: int,
        booking_ref: str | None = None,
    ) -> CapacityCheck:
        """
        Check the three capacity limits of a perk.

        - total: current_usage < total_capacity
        - per member: ACTIVE/USED redemptions < max_usage_per_member
        - per stay: ACTIVE/USED redemptions for booking_ref < max_usage_per_stay

        Unset limits are skipped; the per-stay limit needs a booking_ref.
        """
        try:
            perk = Perk.objects.get(pk=perk_id)
        except Perk.DoesNotExist:
            return CapacityCheck(available=False, reason="Perk not found")

        if perk.total_capacity is not None and perk.current_usage >= perk.total_capacity:
            return CapacityCheck(available=False, reason="Total capacity reached")

        counted = PerkRedemption.objects.filter(perk=perk, status__in=_COUNTED_STATUSES)

        if perk.max_usage_per_member is not None:
            if counted.filter(account_id=account_id).count() >= perk.max_usage_per_member:
                return CapacityCheck(available=False, reason="Member limit reached")

        if perk.max_usage_per_stay is not None and booking_ref:
            if counted.filter(booking_ref=booking_ref).count() >= perk.max_usage_per_stay:
                return CapacityCheck(available=False, reason="Per-stay limit reached")

        return CapacityCheck(available=True)

    @classmethod
    def redeem_perk(
        cls,
        perk_id: int,
        account_id: int,
        booking_ref: str | None = None,
        value_applied: dict | None = None,
        metadata: dict | None = None,
    ) -> PerkRedemption:
        """
        Grant a perk to a member.

        The account row is locked while limits are re-checked, and the
        usage counter is incremented with a conditional UPDATE so the last
        unit of total capacity cannot be handed out twice.

        Args:
            perk_id: Perk pk
            account_id: LoyaltyAccount pk
            booking_ref: Booking the perk is attached to
            value_applied: Value granted (defaults to perk.value)
            metadata: Free-form audit data

        Returns:
            Created PerkRedemption (ACTIVE)

        Raises:
            RewardmanError: PERK_NOT_FOUND, ACCOUNT_NOT_FOUND, PERK_CAPACITY_REACHED
        """
        try:
            perk = Perk.objects.get(pk=perk_id, is_active=True)
        except Perk.DoesNotExist:
            raise RewardmanError("PERK_NOT_FOUND", perk_id=perk_id)

        with transaction.atomic():
            account = lock_account(account_id)

            check = cls.check_perk_capacity(perk.pk, account.pk, booking_ref)
            if not check.available:
                raise RewardmanError(
                    "PERK_CAPACITY_REACHED",
                    message=f"Perk capacity limit reached: {check.reason}",
                    perk_id=perk.pk,
                    reason=check.reason,
                )

            redemption = PerkRedemption.objects.create(
                perk=perk,
                account=account,
                booking_ref=booking_ref or "",
                status=PerkRedemptionStatus.ACTIVE,
                value_applied=value_applied if value_applied is not None else perk.value,
                metadata=metadata or {},
            )

            usage = Perk.objects.filter(pk=perk.pk)
            if perk.total_capacity is not None:
                usage = usage.filter(current_usage__lt=F("total_capacity"))
            if not usage.update(current_usage=F("current_usage") + 1):
                raise RewardmanError(
                    "PERK_CAPACITY_REACHED",
                    message="Perk capacity limit reached: Total capacity reached",
                    perk_id=perk.pk,
                    reason="Total capacity reached",
                )

        logger.info("Perk %s redeemed by account %s (booking %s)", perk.code, account.pk, booking_ref)
        return redemption

    @classmethod
    def get_eligible_perks(cls, account_id: int, booking_context: PerkContext) -> list[Perk]:
        """
        Active perks a member can receive for a booking right now.

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND
        """
        account = get_account(account_id)
        context = replace(booking_context, member_tier=account.tier)
        check_in = as_date(context.check_in)

        perks = (
            Perk.objects.filter(is_active=True)
            .filter(Q(start_date__isnull=True) | Q(start_date__lte=check_in))
            .filter(Q(end_date__isnull=True) | Q(end_date__gte=check_in))
        )

        eligible = []
        for perk in perks:
            if not cls.evaluate_perk_conditions(perk, context):
                continue
            if not cls.check_perk_capacity(perk.pk, account.pk, context.booking_ref).available:
                continue
            eligible.append(perk)
        return eligible

    @classmethod
    def apply_perks_to_booking(
        cls,
        account_id: int,
        booking_ref: str,
        booking_context: PerkContext,
    ) -> list[PerkRedemption]:
        """
        Redeem every eligible perk for a booking.

        Best-effort: a perk that fails to redeem is logged and skipped.
        """
        context = replace(booking_context, booking_ref=booking_ref)
        applied = []
        for perk in cls.get_eligible_perks(account_id, context):
            try:
                redemption = cls.redeem_perk(
                    perk.pk,
                    account_id,
                    booking_ref=booking_ref,
                    value_applied=perk.value,
                    metadata={"auto_applied": True},
                )
            except RewardmanError as exc:
                logger.warning("Could not auto-apply perk %s to booking %s: %s", perk.code, booking_ref, exc)
                continue
            except Exception:
                logger.exception("Auto-apply of perk %s to booking %s failed", perk.code, booking_ref)
                continue
            applied.append(redemption)
        return applied

    @classmethod
    def get_member_perk_redemptions(
        cls,
        account_id: int,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Page:
        """A member's perk redemptions, newest first."""
        limit = limit or rewardman_settings.DEFAULT_PAGE_SIZE
        qs = PerkRedemption.objects.filter(account_id=account_id).select_related("perk")
        if status:
            qs = qs.filter(status=status)
        return Page(
            items=list(qs[offset:offset + limit]),
            total=qs.count(),
            limit=limit,
            offset=offset,
        )
