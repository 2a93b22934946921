"""Tests for perk eligibility, capacity and redemption."""

from datetime import date
from unittest import mock

import pytest
from django.db import DatabaseError

from rewardman.exceptions import RewardmanError
from rewardman.models import Perk, PerkRedemption, PerkRedemptionStatus, Tier
from rewardman.services.perks import CapacityCheck, PerkContext, PerkService


pytestmark = pytest.mark.django_db


def make_perk(code, **fields):
    fields.setdefault("name", code.replace("_", " ").title())
    return Perk.objects.create(code=code, **fields)


def context(**overrides):
    values = {
        "check_in": date(2025, 3, 4),
        "member_tier": Tier.MEMBER,
        "booking_source": "WEB_DIRECT",
        "stay_length": 2,
        "property_id": "P1",
    }
    values.update(overrides)
    return PerkContext(**values)


# ═══════════════════════════════════════════════════════════════════
# Eligibility
# ═══════════════════════════════════════════════════════════════════


class TestEvaluatePerkConditions:
    """Tier floor, scopes, source, stay length and date window."""

    def test_unconditional_perk(self, db):
        perk = make_perk("WELCOME_DRINK")
        assert PerkService.evaluate_perk_conditions(perk, context()) is True

    def test_min_tier(self, db):
        perk = make_perk("LATE_CHECKOUT", conditions={"min_tier": Tier.GOLD})
        assert PerkService.evaluate_perk_conditions(perk, context()) is False
        assert PerkService.evaluate_perk_conditions(perk, context(member_tier=Tier.GOLD)) is True
        assert PerkService.evaluate_perk_conditions(perk, context(member_tier=Tier.DIAMOND)) is True

    def test_tier_and_property_scope(self, db):
        perk = make_perk("SUITE", tier_ids=[Tier.PLATINUM], property_ids=["P2"])
        assert PerkService.evaluate_perk_conditions(perk, context(member_tier=Tier.PLATINUM)) is False
        assert PerkService.evaluate_perk_conditions(
            perk, context(member_tier=Tier.PLATINUM, property_id="P2"),
        ) is True

    def test_source_and_stay_length(self, db):
        perk = make_perk(
            "BREAKFAST",
            conditions={"booking_source": "WEB_DIRECT", "stay_length": {"min": 3}},
        )
        assert PerkService.evaluate_perk_conditions(perk, context()) is False
        assert PerkService.evaluate_perk_conditions(perk, context(stay_length=3)) is True
        assert PerkService.evaluate_perk_conditions(perk, context(stay_length=3, booking_source="PHONE")) is False

    def test_date_window(self, db):
        perk = make_perk("SPRING_SPA", start_date=date(2025, 3, 5), end_date=date(2025, 3, 31))
        assert PerkService.evaluate_perk_conditions(perk, context()) is False
        assert PerkService.evaluate_perk_conditions(perk, context(check_in=date(2025, 3, 5))) is True

    def test_eligible_perks_use_account_tier(self, account):
        make_perk("WELCOME_DRINK")
        make_perk("LATE_CHECKOUT", conditions={"min_tier": Tier.GOLD})
        make_perk("RETIRED", is_active=False)

        perks = PerkService.get_eligible_perks(account.pk, context(member_tier=Tier.DIAMOND))
        assert [p.code for p in perks] == ["WELCOME_DRINK"]

    def test_eligible_perks_skip_exhausted(self, account):
        make_perk("WELCOME_DRINK", total_capacity=1, current_usage=1)
        assert PerkService.get_eligible_perks(account.pk, context()) == []

    def test_eligible_perks_missing_account(self, db):
        with pytest.raises(RewardmanError) as exc:
            PerkService.get_eligible_perks(999999, context())
        assert exc.value.code == "ACCOUNT_NOT_FOUND"


# ═══════════════════════════════════════════════════════════════════
# Capacity
# ═══════════════════════════════════════════════════════════════════


class TestPerkCapacity:
    """Total, per-member and per-stay limits."""

    def test_member_limit(self, account):
        perk = make_perk("WELCOME_DRINK", max_usage_per_member=1)

        PerkService.redeem_perk(perk.pk, account.pk, booking_ref="BK-1")

        check = PerkService.check_perk_capacity(perk.pk, account.pk)
        assert check.available is False
        assert check.reason == "Member limit reached"

        with pytest.raises(RewardmanError) as exc:
            PerkService.redeem_perk(perk.pk, account.pk, booking_ref="BK-2")
        assert exc.value.code == "PERK_CAPACITY_REACHED"
        assert exc.value.data["reason"] == "Member limit reached"
        assert exc.value.message == "Perk capacity limit reached: Member limit reached"
        assert PerkRedemption.objects.filter(perk=perk).count() == 1

    def test_total_capacity(self, account, other_account):
        perk = make_perk("SUITE_UPGRADE", total_capacity=1)

        PerkService.redeem_perk(perk.pk, account.pk)
        perk.refresh_from_db()
        assert perk.current_usage == 1

        with pytest.raises(RewardmanError) as exc:
            PerkService.redeem_perk(perk.pk, other_account.pk)
        assert exc.value.data["reason"] == "Total capacity reached"
        perk.refresh_from_db()
        assert perk.current_usage == 1

    def test_lost_capacity_race_rolls_back(self, account):
        perk = make_perk("SUITE_UPGRADE", total_capacity=1, current_usage=1)
        stale = CapacityCheck(available=True)

        with mock.patch.object(PerkService, "check_perk_capacity", return_value=stale):
            with pytest.raises(RewardmanError) as exc:
                PerkService.redeem_perk(perk.pk, account.pk, booking_ref="BK-1")

        assert exc.value.code == "PERK_CAPACITY_REACHED"
        assert exc.value.data["reason"] == "Total capacity reached"
        assert not PerkRedemption.objects.filter(perk=perk).exists()
        perk.refresh_from_db()
        assert perk.current_usage == 1

    def test_per_stay_limit(self, account, other_account):
        perk = make_perk("CAKE", max_usage_per_stay=1)

        PerkService.redeem_perk(perk.pk, account.pk, booking_ref="BK-1")

        assert PerkService.check_perk_capacity(perk.pk, other_account.pk, "BK-1").reason == "Per-stay limit reached"
        assert PerkService.check_perk_capacity(perk.pk, other_account.pk, "BK-2").available is True
        assert PerkService.check_perk_capacity(perk.pk, other_account.pk).available is True

    def test_cancelled_redemptions_free_the_member_limit(self, account):
        perk = make_perk("WELCOME_DRINK", max_usage_per_member=1)
        redemption = PerkService.redeem_perk(perk.pk, account.pk)
        PerkRedemption.objects.filter(pk=redemption.pk).update(status=PerkRedemptionStatus.CANCELLED)

        assert PerkService.check_perk_capacity(perk.pk, account.pk).available is True

    def test_used_redemptions_count(self, account):
        perk = make_perk("WELCOME_DRINK", max_usage_per_member=1)
        redemption = PerkService.redeem_perk(perk.pk, account.pk)
        PerkRedemption.objects.filter(pk=redemption.pk).update(status=PerkRedemptionStatus.USED)

        assert PerkService.check_perk_capacity(perk.pk, account.pk).available is False

    def test_unknown_perk(self, account):
        check = PerkService.check_perk_capacity(999999, account.pk)
        assert check.available is False
        assert check.reason == "Perk not found"


# ═══════════════════════════════════════════════════════════════════
# Redemption
# ═══════════════════════════════════════════════════════════════════


class TestRedeemPerk:
    def test_redeem_defaults_value_to_perk(self, account):
        perk = make_perk("BREAKFAST", value={"covers": 2})

        redemption = PerkService.redeem_perk(perk.pk, account.pk, booking_ref="BK-1")

        assert redemption.status == PerkRedemptionStatus.ACTIVE
        assert redemption.value_applied == {"covers": 2}
        assert redemption.booking_ref == "BK-1"

    def test_inactive_perk(self, account):
        perk = make_perk("RETIRED", is_active=False)
        with pytest.raises(RewardmanError) as exc:
            PerkService.redeem_perk(perk.pk, account.pk)
        assert exc.value.code == "PERK_NOT_FOUND"

    def test_missing_account(self, db):
        perk = make_perk("BREAKFAST")
        with pytest.raises(RewardmanError) as exc:
            PerkService.redeem_perk(perk.pk, 999999)
        assert exc.value.code == "ACCOUNT_NOT_FOUND"
        perk.refresh_from_db()
        assert perk.current_usage == 0

    def test_apply_perks_to_booking(self, account):
        make_perk("WELCOME_DRINK", value={"drinks": 1})
        make_perk("LATE_CHECKOUT", conditions={"min_tier": Tier.GOLD})

        applied = PerkService.apply_perks_to_booking(account.pk, "BK-7", context())

        assert [r.perk.code for r in applied] == ["WELCOME_DRINK"]
        assert applied[0].booking_ref == "BK-7"
        assert applied[0].metadata == {"auto_applied": True}

    def test_apply_is_best_effort(self, account):
        make_perk("BREAKFAST")
        make_perk("WELCOME_DRINK")
        original = PerkService.redeem_perk

        def flaky(perk_id, account_id, **kwargs):
            if Perk.objects.get(pk=perk_id).code == "BREAKFAST":
                raise RewardmanError("PERK_CAPACITY_REACHED", reason="Total capacity reached")
            return original(perk_id, account_id, **kwargs)

        with mock.patch.object(PerkService, "redeem_perk", side_effect=flaky):
            applied = PerkService.apply_perks_to_booking(account.pk, "BK-7", context())

        assert [r.perk.code for r in applied] == ["WELCOME_DRINK"]

    def test_apply_survives_database_errors(self, account):
        make_perk("A_BREAKFAST")
        make_perk("B_DRINK")
        original = PerkService.redeem_perk

        def locked(perk_id, account_id, **kwargs):
            if Perk.objects.get(pk=perk_id).code == "A_BREAKFAST":
                raise DatabaseError("lock timeout")
            return original(perk_id, account_id, **kwargs)

        with mock.patch.object(PerkService, "redeem_perk", side_effect=locked):
            applied = PerkService.apply_perks_to_booking(account.pk, "BK-8", context())

        assert [r.perk.code for r in applied] == ["B_DRINK"]
        assert list(PerkRedemption.objects.values_list("perk__code", flat=True)) == ["B_DRINK"]

    def test_member_history_pagination(self, account):
        for code in ["A", "B", "C"]:
            PerkService.redeem_perk(make_perk(code).pk, account.pk)
        PerkRedemption.objects.filter(perk__code="A").update(status=PerkRedemptionStatus.USED)

        page = PerkService.get_member_perk_redemptions(account.pk, limit=2)
        assert page.total == 3
        assert len(page.items) == 2
        assert page.limit == 2

        rest = PerkService.get_member_perk_redemptions(account.pk, limit=2, offset=2)
        assert len(rest.items) == 1

        active = PerkService.get_member_perk_redemptions(account.pk, status=PerkRedemptionStatus.ACTIVE)
        assert active.total == 2
        assert active.limit == 50
