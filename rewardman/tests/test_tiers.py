"""Tests for tier resolution, progression and re-qualification."""

from datetime import date
from decimal import Decimal
from unittest import mock

import pytest

from rewardman.exceptions import RewardmanError
from rewardman.models import LoyaltyAccount, Tier, TierChangeReason, TierConfig, TierHistory
from rewardman.services.tiers import TierMetrics, TierService, qualification_window
from rewardman.signals import tier_changed


pytestmark = pytest.mark.django_db


def make_account(user_ref, tier=Tier.MEMBER, **fields):
    fields.setdefault("qualification_year_start", date(2025, 1, 1))
    fields.setdefault("qualification_year_end", date(2025, 12, 31))
    return LoyaltyAccount.objects.create(user_ref=user_ref, tier=tier, **fields)


# ═══════════════════════════════════════════════════════════════════
# calculate_tier
# ═══════════════════════════════════════════════════════════════════


class TestCalculateTier:
    """Tier resolution from qualification metrics."""

    def test_no_configs_defaults_to_member(self, db):
        assert TierService.calculate_tier({"points": 10**9, "stays": 500}) == Tier.MEMBER

    def test_any_threshold_qualifies(self, db):
        TierConfig.objects.create(tier=Tier.MEMBER, sort_order=0, base_points_per_100=5)
        TierConfig.objects.create(tier=Tier.SILVER, sort_order=1, min_stays=5, base_points_per_100=7)
        TierConfig.objects.create(tier=Tier.GOLD, sort_order=2, min_points=25000, base_points_per_100=10)

        assert TierService.calculate_tier({"points": 30000, "stays": 2}) == Tier.GOLD

    def test_gold_by_stays_alone(self, tier_configs):
        metrics = TierMetrics(points=100, stays=6, nights=0)
        assert TierService.calculate_tier(metrics) == Tier.GOLD

    def test_diamond_by_spend(self, tier_configs):
        assert TierService.calculate_tier({"spend": Decimal("150000")}) == Tier.DIAMOND

    def test_member_floor(self, tier_configs):
        assert TierService.calculate_tier({}) == Tier.MEMBER

    def test_inactive_configs_are_ignored(self, tier_configs):
        TierConfig.objects.filter(tier=Tier.GOLD).update(is_active=False)
        assert TierService.calculate_tier({"points": 30000}) == Tier.SILVER

    def test_accepts_account(self, tier_configs, account):
        account.lifetime_nights = 30
        assert TierService.calculate_tier(account) == Tier.PLATINUM

    @pytest.mark.parametrize("metric", ["points", "stays", "nights", "spend"])
    def test_monotonic_in_each_metric(self, tier_configs, metric):
        order = Tier.values
        previous = -1
        for value in [0, 1, 2, 5, 6, 12, 15, 30, 60, 5000, 25000, 75000, 150000, 10**6]:
            tier = TierService.calculate_tier({"points": 100, "stays": 1, metric: value})
            assert order.index(tier) >= previous
            previous = order.index(tier)


# ═══════════════════════════════════════════════════════════════════
# Tier progress
# ═══════════════════════════════════════════════════════════════════


class TestTierProgress:
    """Progress toward the next tier."""

    def test_best_metric_wins(self, tier_configs, account):
        account.points = 2500
        account.lifetime_stays = 1
        account.lifetime_nights = 4
        progress = TierService.calculate_tier_progress(account)

        assert progress.next_tier == Tier.SILVER
        assert progress.progress == 80
        assert progress.points_needed == 2500
        assert progress.stays_needed == 1
        assert progress.nights_needed == 1
        assert progress.is_max_tier is False

    def test_max_tier(self, tier_configs):
        top = make_account("top", tier=Tier.DIAMOND)
        progress = TierService.calculate_tier_progress(top)
        assert progress.is_max_tier is True
        assert progress.next_tier is None
        assert progress.progress == 100

    def test_missing_config(self, account):
        with pytest.raises(RewardmanError) as exc:
            TierService.calculate_tier_progress(account)
        assert exc.value.code == "TIER_CONFIG_NOT_FOUND"


# ═══════════════════════════════════════════════════════════════════
# check_and_update_tier
# ═══════════════════════════════════════════════════════════════════


class TestCheckAndUpdateTier:
    """Tier progression with downgrade protection."""

    def test_unchanged_is_noop(self, tier_configs, account):
        assert TierService.check_and_update_tier(account.pk) is None
        assert TierHistory.objects.count() == 0

    def test_upgrade_writes_history(self, tier_configs, account):
        LoyaltyAccount.objects.filter(pk=account.pk).update(lifetime_stays=2)

        history = TierService.check_and_update_tier(account.pk)

        account.refresh_from_db()
        assert account.tier == Tier.SILVER
        assert history.from_tier == Tier.MEMBER
        assert history.to_tier == Tier.SILVER
        assert history.reason == TierChangeReason.AUTO_UPGRADE
        assert history.stays_at_change == 2

    def test_upgrade_emits_signal(self, tier_configs, account):
        LoyaltyAccount.objects.filter(pk=account.pk).update(lifetime_stays=2)
        handler = mock.Mock()
        tier_changed.connect(handler)
        try:
            history = TierService.check_and_update_tier(account.pk)
        finally:
            tier_changed.disconnect(handler)

        handler.assert_called_once()
        assert handler.call_args.kwargs["history"] == history

    def test_downgrade_blocked_during_qualification_year(self, tier_configs):
        gold = make_account("gold", tier=Tier.GOLD, qualification_year_end=date(2025, 12, 31))

        result = TierService.check_and_update_tier(gold.pk, today=date(2025, 6, 1))

        assert result is None
        gold.refresh_from_db()
        assert gold.tier == Tier.GOLD

    def test_downgrade_blocked_without_year_end(self, tier_configs):
        gold = make_account("gold", tier=Tier.GOLD, qualification_year_end=None)
        assert TierService.check_and_update_tier(gold.pk) is None

    def test_downgrade_after_year_end(self, tier_configs):
        gold = make_account("gold", tier=Tier.GOLD, lifetime_stays=2)

        history = TierService.check_and_update_tier(gold.pk, today=date(2026, 1, 2))

        assert history.to_tier == Tier.SILVER
        assert history.reason == TierChangeReason.RE_QUALIFICATION

    def test_allow_downgrade(self, tier_configs):
        gold = make_account("gold", tier=Tier.GOLD)
        history = TierService.check_and_update_tier(gold.pk, allow_downgrade=True, today=date(2025, 6, 1))
        assert history.to_tier == Tier.MEMBER

    def test_missing_account(self, tier_configs):
        with pytest.raises(RewardmanError) as exc:
            TierService.check_and_update_tier(999999)
        assert exc.value.code == "ACCOUNT_NOT_FOUND"
        assert exc.value.category == "not_found"


# ═══════════════════════════════════════════════════════════════════
# Re-qualification sweep
# ═══════════════════════════════════════════════════════════════════


class TestRequalification:
    """Daily re-qualification of expired qualification years."""

    def test_sweep_tallies_and_advances_window(self, tier_configs):
        stays_gold = make_account("stays-gold", tier=Tier.GOLD, lifetime_stays=6)
        lapsed_gold = make_account("lapsed-gold", tier=Tier.GOLD, lifetime_stays=2)
        rising_silver = make_account("rising", tier=Tier.SILVER, lifetime_nights=30)
        make_account("member", tier=Tier.MEMBER)
        make_account("future", tier=Tier.GOLD, qualification_year_end=date(2026, 6, 30))

        result = TierService.process_tier_requalification(date(2026, 1, 1))

        assert result.checked == 3
        assert result.unchanged == 1
        assert result.downgraded == 1
        assert result.upgraded == 1
        assert result.errors == []

        lapsed_gold.refresh_from_db()
        assert lapsed_gold.tier == Tier.SILVER
        rising_silver.refresh_from_db()
        assert rising_silver.tier == Tier.PLATINUM

        stays_gold.refresh_from_db()
        assert stays_gold.tier == Tier.GOLD
        assert stays_gold.qualification_year_start == date(2026, 1, 1)
        assert stays_gold.qualification_year_end == date(2027, 1, 1)

    def test_failure_is_isolated(self, tier_configs):
        first = make_account("first", tier=Tier.GOLD)
        second = make_account("second", tier=Tier.GOLD)
        original = TierService.check_and_update_tier

        def flaky(account_id, **kwargs):
            if account_id == first.pk:
                raise RuntimeError("boom")
            return original(account_id, **kwargs)

        with mock.patch.object(TierService, "check_and_update_tier", side_effect=flaky):
            result = TierService.process_tier_requalification(date(2026, 1, 1))

        assert result.checked == 2
        assert result.errors == [{"account_id": first.pk, "error": "boom"}]
        assert result.downgraded == 1

        first.refresh_from_db()
        assert first.tier == Tier.GOLD
        assert first.qualification_year_end == date(2025, 12, 31)
        second.refresh_from_db()
        assert second.qualification_year_end == date(2027, 1, 1)

    def test_leap_day_window(self, tier_configs):
        leap = make_account(
            "leap",
            tier=Tier.GOLD,
            lifetime_stays=6,
            qualification_year_end=date(2028, 2, 28),
        )
        TierService.process_tier_requalification(date(2028, 3, 1))
        leap.refresh_from_db()
        assert leap.qualification_year_start == date(2028, 2, 29)
        assert leap.qualification_year_end == date(2029, 2, 28)

    def test_qualification_window(self):
        assert qualification_window(date(2025, 3, 10)) == (date(2025, 3, 10), date(2026, 3, 9))
        assert qualification_window(date(2024, 2, 29)) == (date(2024, 2, 29), date(2025, 2, 27))
