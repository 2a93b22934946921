"""Account service — enrollment, lifetime metrics and member profile."""

import logging
from dataclasses import asdict
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.models import LoyaltyAccount

logger = logging.getLogger(__name__)


def get_account(account_id: int) -> LoyaltyAccount:
    """Get account by pk or raise ACCOUNT_NOT_FOUND."""
    try:
        return LoyaltyAccount.objects.get(pk=account_id)
    except LoyaltyAccount.DoesNotExist:
        raise RewardmanError("ACCOUNT_NOT_FOUND", account_id=account_id)


def lock_account(account_id: int) -> LoyaltyAccount:
    """
    Get account with a row lock.

    Must be called inside transaction.atomic(). Every read-then-write of
    the balance, tier or lifetime metrics goes through this lock.
    """
    try:
        return LoyaltyAccount.objects.select_for_update().get(pk=account_id)
    except LoyaltyAccount.DoesNotExist:
        raise RewardmanError("ACCOUNT_NOT_FOUND", account_id=account_id)


class AccountService:
    """
    Service for loyalty account operations.

    Uses @classmethod for extensibility (consistent with other services).
    """

    @classmethod
    def create_or_get_account(cls, user_ref: str) -> LoyaltyAccount:
        """
        Enroll a user in the loyalty program.

        Idempotent — returns the existing account if already enrolled.
        A new account starts at MEMBER with its first qualification year
        opening today.

        Args:
            user_ref: External user identity

        Returns:
            LoyaltyAccount (created or existing)
        """
        from rewardman.services.tiers import qualification_window

        start, end = qualification_window(timezone.localdate())
        with transaction.atomic():
            account, created = LoyaltyAccount.objects.get_or_create(
                user_ref=user_ref,
                defaults={
                    "qualification_year_start": start,
                    "qualification_year_end": end,
                },
            )
            if created:
                account.member_number = str(account.pk).zfill(rewardman_settings.MEMBER_NUMBER_DIGITS)
                account.save(update_fields=["member_number", "updated_at"])
                logger.info("Enrolled %s as member %s", user_ref, account.member_number)
        return account

    @classmethod
    def get_account(cls, account_id: int) -> LoyaltyAccount:
        """
        Get loyalty account.

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND
        """
        return get_account(account_id)

    @classmethod
    def get_by_user_ref(cls, user_ref: str) -> LoyaltyAccount | None:
        """Get loyalty account for a user, or None."""
        try:
            return LoyaltyAccount.objects.get(user_ref=user_ref)
        except LoyaltyAccount.DoesNotExist:
            return None

    @classmethod
    def update_lifetime_metrics(cls, account_id: int, nights: int, spend) -> LoyaltyAccount:
        """
        Record a completed stay and re-check the tier.

        Args:
            account_id: LoyaltyAccount pk
            nights: Nights stayed
            spend: Amount spent

        Returns:
            Updated LoyaltyAccount

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND
        """
        from rewardman.services.tiers import TierService

        with transaction.atomic():
            account = lock_account(account_id)
            account.lifetime_stays += 1
            account.lifetime_nights += nights
            account.lifetime_spend += Decimal(str(spend))
            account.save(update_fields=[
                "lifetime_stays",
                "lifetime_nights",
                "lifetime_spend",
                "updated_at",
            ])

        TierService.check_and_update_tier(account_id)
        account.refresh_from_db()
        return account

    @classmethod
    def get_member_profile(cls, account_id: int) -> dict:
        """
        Member dashboard: account, tier progress, active perks, campaigns
        and recent redemptions.

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND, TIER_CONFIG_NOT_FOUND
        """
        from rewardman.models import PerkRedemptionStatus
        from rewardman.services.campaigns import CampaignService
        from rewardman.services.perks import PerkService
        from rewardman.services.redemptions import RedemptionService
        from rewardman.services.tiers import TierService

        account = get_account(account_id)
        config = TierService.get_tier_config(account.tier)
        progress = TierService.calculate_tier_progress(account)

        return {
            "account": {
                "id": account.pk,
                "member_number": account.member_number,
                "user_ref": account.user_ref,
                "points": account.points,
                "tier": account.tier,
                "lifetime_stays": account.lifetime_stays,
                "lifetime_nights": account.lifetime_nights,
                "lifetime_spend": account.lifetime_spend,
                "qualification_year_start": account.qualification_year_start,
                "qualification_year_end": account.qualification_year_end,
                "updated_at": account.updated_at,
                "created_at": account.created_at,
            },
            "tier_progress": asdict(progress),
            "tier_config": {
                "name": config.name,
                "description": config.description,
                "base_points_per_100": config.base_points_per_100,
                "benefits": config.benefits,
            } if config else None,
            "active_perks": PerkService.get_member_perk_redemptions(
                account.pk,
                status=PerkRedemptionStatus.ACTIVE,
            ).items,
            "active_campaigns": CampaignService.get_member_campaigns(account.tier),
            "recent_redemptions": RedemptionService.get_member_redemptions(account.pk, limit=10).items,
        }
