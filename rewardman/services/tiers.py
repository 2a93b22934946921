"""Tier service — tier resolution, progression and yearly re-qualification."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.db import transaction
from django.utils import timezone

from rewardman.exceptions import RewardmanError
from rewardman.models import (
    LoyaltyAccount,
    Tier,
    TierChangeReason,
    TierConfig,
    TierHistory,
    tier_index,
)
from rewardman.services.accounts import lock_account
from rewardman.signals import tier_changed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierMetrics:
    """Qualification metrics a tier is resolved from."""

    points: int = 0
    stays: int = 0
    nights: int = 0
    spend: Decimal = Decimal("0")

    @classmethod
    def coerce(cls, value: Any) -> "TierMetrics":
        """Accept TierMetrics, a mapping, or a LoyaltyAccount."""
        if isinstance(value, cls):
            return value
        if isinstance(value, LoyaltyAccount):
            return value.metrics
        return cls(
            points=value.get("points") or 0,
            stays=value.get("stays") or 0,
            nights=value.get("nights") or 0,
            spend=Decimal(str(value.get("spend") or 0)),
        )

    def value_for(self, metric: str):
        return getattr(self, metric)


@dataclass
class TierProgress:
    """Progress toward the next tier."""

    current_tier: str
    next_tier: str | None
    progress: int
    points_needed: int = 0
    stays_needed: int = 0
    nights_needed: int = 0
    spend_needed: Decimal = Decimal("0")
    is_max_tier: bool = False


@dataclass
class RequalificationResult:
    """Summary of a re-qualification sweep."""

    checked: int = 0
    upgraded: int = 0
    downgraded: int = 0
    unchanged: int = 0
    errors: list[dict] = field(default_factory=list)


def _add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year + years, day=28)


def qualification_window(start: date) -> tuple[date, date]:
    """First qualification year for an account opened on `start`."""
    return start, _add_years(start, 1) - timedelta(days=1)


def _qualifies(config: TierConfig, metrics: TierMetrics) -> bool:
    if config.tier == Tier.MEMBER:
        return True
    for metric, threshold in config.thresholds().items():
        if metrics.value_for(metric) >= threshold:
            return True
    return False


class TierService:
    """
    Service for tier operations.

    Uses @classmethod for extensibility (consistent with other services).
    Tier writes lock the account row with select_for_update().
    """

    @classmethod
    def active_configs(cls) -> list[TierConfig]:
        """Active tier configs, lowest tier first."""
        return list(TierConfig.objects.filter(is_active=True).order_by("sort_order"))

    @classmethod
    def get_tier_config(cls, tier: str) -> TierConfig | None:
        """Get tier config by tier, or None."""
        try:
            return TierConfig.objects.get(tier=tier)
        except TierConfig.DoesNotExist:
            return None

    @classmethod
    def calculate_tier(cls, metrics) -> str:
        """
        Resolve the tier for a set of qualification metrics.

        Active configs are scanned from the highest sort_order down. A
        config qualifies if ANY of its defined thresholds is met. MEMBER
        always qualifies, and is the answer when no configs exist.

        Args:
            metrics: TierMetrics, {"points", "stays", "nights", "spend"} or LoyaltyAccount

        Returns:
            Tier value
        """
        metrics = TierMetrics.coerce(metrics)
        for config in reversed(cls.active_configs()):
            if _qualifies(config, metrics):
                return config.tier
        return Tier.MEMBER

    @classmethod
    def calculate_tier_progress(cls, account: LoyaltyAccount) -> TierProgress:
        """
        Progress of an account toward the next tier.

        Progress is the best ratio over the next tier's defined thresholds
        (a member qualifies when any one is met), capped at 100.

        Raises:
            RewardmanError: TIER_CONFIG_NOT_FOUND if the account's tier has no config
        """
        if cls.get_tier_config(account.tier) is None:
            raise RewardmanError("TIER_CONFIG_NOT_FOUND", tier=account.tier)

        configs = cls.active_configs()
        tiers = [c.tier for c in configs]
        position = tiers.index(account.tier) if account.tier in tiers else -1
        next_config = configs[position + 1] if position + 1 < len(configs) else None

        if next_config is None:
            return TierProgress(
                current_tier=account.tier,
                next_tier=None,
                progress=100,
                is_max_tier=True,
            )

        metrics = account.metrics
        needed = {}
        ratios = []
        for metric, threshold in next_config.thresholds().items():
            value = metrics.value_for(metric)
            needed[metric] = max(0, threshold - value)
            if threshold > 0:
                ratios.append(min(Decimal(100), Decimal(value) / Decimal(threshold) * 100))
            else:
                ratios.append(Decimal(100))

        progress = max(ratios) if ratios else Decimal(0)
        return TierProgress(
            current_tier=account.tier,
            next_tier=next_config.tier,
            progress=int(progress.quantize(Decimal(1), rounding=ROUND_HALF_UP)),
            points_needed=needed.get("points", 0),
            stays_needed=needed.get("stays", 0),
            nights_needed=needed.get("nights", 0),
            spend_needed=needed.get("spend", Decimal("0")),
        )

    @classmethod
    def check_and_update_tier(
        cls,
        account_id: int,
        allow_downgrade: bool = False,
        today: date | None = None,
    ) -> TierHistory | None:
        """
        Recompute an account's tier and persist it if it changed.

        Downgrades are blocked while the qualification year is still
        running unless allow_downgrade is set.

        Args:
            account_id: LoyaltyAccount pk
            allow_downgrade: Permit moving to a lower tier
            today: Reference date (defaults to today)

        Returns:
            TierHistory row if the tier changed, None otherwise

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND
        """
        today = today or timezone.localdate()

        with transaction.atomic():
            account = lock_account(account_id)
            new_tier = cls.calculate_tier(account.metrics)
            old_tier = account.tier
            if new_tier == old_tier:
                return None

            order = [c.tier for c in cls.active_configs()]
            old_index = order.index(old_tier) if old_tier in order else tier_index(old_tier)
            new_index = order.index(new_tier) if new_tier in order else tier_index(new_tier)
            is_downgrade = new_index < old_index

            if is_downgrade and not allow_downgrade:
                year_end = account.qualification_year_end
                if year_end is None or year_end >= today:
                    logger.info(
                        "Downgrade %s -> %s blocked for account %s until %s",
                        old_tier, new_tier, account.pk, year_end,
                    )
                    return None

            account.tier = new_tier
            account.save(update_fields=["tier", "updated_at"])

            history = TierHistory.objects.create(
                account=account,
                from_tier=old_tier,
                to_tier=new_tier,
                points_at_change=account.points,
                stays_at_change=account.lifetime_stays,
                nights_at_change=account.lifetime_nights,
                spend_at_change=account.lifetime_spend,
                reason=(
                    TierChangeReason.RE_QUALIFICATION if is_downgrade
                    else TierChangeReason.AUTO_UPGRADE
                ),
            )

        logger.info("Account %s tier changed: %s -> %s", account.pk, old_tier, new_tier)
        tier_changed.send(sender=LoyaltyAccount, account=account, history=history)
        return history

    @classmethod
    def process_tier_requalification(cls, check_date: date | None = None) -> RequalificationResult:
        """
        Re-qualify every non-MEMBER account whose qualification year has ended.

        Each account is recomputed with downgrades allowed and its
        qualification window advanced by one year, in its own transaction.
        A failure on one account is recorded and the sweep continues.

        Args:
            check_date: Sweep date (defaults to today)

        Returns:
            RequalificationResult
        """
        check_date = check_date or timezone.localdate()
        account_ids = list(
            LoyaltyAccount.objects.filter(qualification_year_end__lte=check_date)
            .exclude(tier=Tier.MEMBER)
            .order_by("pk")
            .values_list("pk", flat=True)
        )
        result = RequalificationResult(checked=len(account_ids))

        for account_id in account_ids:
            try:
                with transaction.atomic():
                    history = cls.check_and_update_tier(
                        account_id,
                        allow_downgrade=True,
                        today=check_date,
                    )
                    account = lock_account(account_id)
                    new_start = account.qualification_year_end + timedelta(days=1)
                    account.qualification_year_start = new_start
                    account.qualification_year_end = _add_years(new_start, 1)
                    account.save(update_fields=[
                        "qualification_year_start",
                        "qualification_year_end",
                        "updated_at",
                    ])
            except Exception as exc:
                logger.exception("Re-qualification failed for account %s", account_id)
                result.errors.append({"account_id": account_id, "error": str(exc)})
                continue

            if history is None:
                result.unchanged += 1
            elif tier_index(history.to_tier) > tier_index(history.from_tier):
                result.upgraded += 1
            else:
                result.downgraded += 1

        logger.info(
            "Tier re-qualification %s: checked=%d upgraded=%d downgraded=%d unchanged=%d errors=%d",
            check_date, result.checked, result.upgraded, result.downgraded,
            result.unchanged, len(result.errors),
        )
        return result
