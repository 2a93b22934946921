"""Ledger service — points award/redeem with an append-only audit log."""

import logging

from django.db import transaction

from rewardman.exceptions import RewardmanError
from rewardman.models import LedgerEntry, LedgerEntryKind, LoyaltyAccount
from rewardman.services.accounts import get_account, lock_account
from rewardman.services.tiers import TierService
from rewardman.signals import points_awarded, points_redeemed

logger = logging.getLogger(__name__)


def _check_points(points) -> None:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise RewardmanError("INVALID_POINTS", points=points)


def append_entry(
    account: LoyaltyAccount,
    points: int,
    reason: str,
    *,
    kind: str,
    booking_ref: str = "",
    rule=None,
    campaign=None,
    perk=None,
    redemption_item=None,
    metadata: dict | None = None,
    created_by: str = "",
    idempotency_key: str | None = None,
) -> LedgerEntry:
    """
    Append one signed entry and move the account balance to match.

    The caller holds the account lock (see lock_account) inside
    transaction.atomic().
    """
    balance_before = account.points
    balance_after = balance_before + points
    if balance_after < 0:
        raise RewardmanError(
            "INSUFFICIENT_POINTS",
            available=balance_before,
            requested=-points,
        )

    entry = LedgerEntry.objects.create(
        account=account,
        kind=kind,
        points=points,
        reason=reason,
        balance_before=balance_before,
        balance_after=balance_after,
        booking_ref=booking_ref or "",
        rule=rule,
        campaign=campaign,
        perk=perk,
        redemption_item=redemption_item,
        metadata=metadata or {},
        created_by=created_by,
        idempotency_key=idempotency_key,
    )

    account.points = balance_after
    account.save(update_fields=["points", "updated_at"])
    return entry


class LedgerService:
    """
    Service for points accounting.

    Uses @classmethod for extensibility (consistent with other services).
    Every balance mutation is one transaction.atomic() block with the
    account row locked: read balance, append entry, write balance.
    """

    @classmethod
    def award_points(
        cls,
        account_id: int,
        points: int,
        reason: str,
        *,
        booking_ref: str = "",
        rule=None,
        campaign=None,
        perk=None,
        metadata: dict | None = None,
        created_by: str = "",
        idempotency_key: str | None = None,
        kind: str = LedgerEntryKind.EARN,
    ) -> LedgerEntry:
        """
        Award points to an account.

        The tier is re-checked (upgrades only) once the award has committed.

        Args:
            account_id: LoyaltyAccount pk
            points: Points to award (must be positive)
            reason: Reason for the award
            booking_ref: Booking reference
            rule: PointsRule that produced the award
            campaign: Campaign that produced the award
            perk: Perk that produced the award
            metadata: Free-form audit data
            created_by: Who triggered the award
            idempotency_key: At most one entry per account carries this key
            kind: EARN or ADJUST

        Returns:
            Created LedgerEntry

        Raises:
            RewardmanError: INVALID_POINTS, ACCOUNT_NOT_FOUND
            IntegrityError: If idempotency_key was already used on this account
        """
        _check_points(points)

        with transaction.atomic():
            account = lock_account(account_id)
            entry = append_entry(
                account,
                points,
                reason,
                kind=kind,
                booking_ref=booking_ref,
                rule=rule,
                campaign=campaign,
                perk=perk,
                metadata=metadata,
                created_by=created_by,
                idempotency_key=idempotency_key,
            )

        logger.info(
            "Awarded %d points to account %s (%s), balance %d",
            points, account.pk, reason, entry.balance_after,
        )
        points_awarded.send(sender=LoyaltyAccount, entry=entry)

        TierService.check_and_update_tier(account_id)
        return entry

    @classmethod
    def redeem_points(
        cls,
        account_id: int,
        points: int,
        reason: str,
        *,
        booking_ref: str = "",
        redemption_item=None,
        perk=None,
        metadata: dict | None = None,
        created_by: str = "",
    ) -> LedgerEntry:
        """
        Deduct points from an account.

        Args:
            account_id: LoyaltyAccount pk
            points: Points to redeem (must be positive)
            reason: What was redeemed
            booking_ref: Booking reference
            redemption_item: RedemptionItem redeemed
            perk: Perk redeemed
            metadata: Free-form audit data
            created_by: Who triggered the redemption

        Returns:
            Created LedgerEntry (negative points)

        Raises:
            RewardmanError: INVALID_POINTS, ACCOUNT_NOT_FOUND, INSUFFICIENT_POINTS
        """
        _check_points(points)

        with transaction.atomic():
            account = lock_account(account_id)
            entry = append_entry(
                account,
                -points,
                reason,
                kind=LedgerEntryKind.REDEEM,
                booking_ref=booking_ref,
                redemption_item=redemption_item,
                perk=perk,
                metadata=metadata,
                created_by=created_by,
            )

        logger.info(
            "Redeemed %d points from account %s (%s), balance %d",
            points, account.pk, reason, entry.balance_after,
        )
        points_redeemed.send(sender=LoyaltyAccount, entry=entry)
        return entry

    @classmethod
    def get_entries(cls, account_id: int, limit: int = 50) -> list[LedgerEntry]:
        """Most recent ledger entries for an account."""
        return list(LedgerEntry.objects.filter(account_id=account_id)[:limit])

    @classmethod
    def verify_account(cls, account_id: int) -> bool:
        """
        Check the ledger invariant for one account.

        Every entry chains from the previous one, each balance_after equals
        balance_before + points, and the account balance equals both the
        last balance_after and the sum of all deltas.
        """
        account = get_account(account_id)
        expected = 0
        total = 0
        for entry in LedgerEntry.objects.filter(account=account).order_by("created_at", "id"):
            if entry.balance_before != expected:
                return False
            if entry.balance_after != entry.balance_before + entry.points:
                return False
            if entry.balance_after < 0:
                return False
            expected = entry.balance_after
            total += entry.points
        return account.points == expected == total
