"""Tests for fraud heuristics."""

import logging
from dataclasses import replace
from datetime import timedelta

import pytest
from django.test import override_settings
from django.utils import timezone

from rewardman.exceptions import RewardmanError
from rewardman.services.fraud import FraudFlag, FraudService, recommendation, risk_score
from rewardman.services.ledger import LedgerService


pytestmark = pytest.mark.django_db


def flag_types(assessment):
    return [flag.type for flag in assessment.flags]


class TestScoring:
    def test_risk_score_weights(self):
        flags = [
            FraudFlag(type="A", severity="HIGH", message=""),
            FraudFlag(type="B", severity="MEDIUM", message=""),
            FraudFlag(type="C", severity="LOW", message=""),
        ]
        assert risk_score(flags) == 6
        assert risk_score([]) == 0

    @pytest.mark.parametrize("score,expected", [(0, "OK"), (2, "OK"), (3, "MONITOR"), (4, "MONITOR"), (5, "REVIEW")])
    def test_recommendation_bands(self, score, expected):
        assert recommendation(score) == expected


class TestDetectFraud:
    """Advisory flags over ledger and booking history."""

    def test_clean_transaction(self, account, booking_backend):
        result = FraudService.detect_fraud(account.pk, {"points": 500, "booking_ref": "BK-1001"})

        assert result.is_suspicious is False
        assert result.risk_score == 0
        assert result.flags == []
        assert result.recommendation == "OK"

    def test_large_award(self, account, booking_backend):
        result = FraudService.detect_fraud(account.pk, {"points": 150000})

        assert flag_types(result) == ["LARGE_POINTS_AWARD"]
        assert result.flags[0].severity == "HIGH"
        assert result.risk_score == 3
        assert result.recommendation == "MONITOR"

    def test_rapid_accumulation_and_large_award(self, account, booking_backend):
        LedgerService.award_points(account.pk, 60000, "Corporate event")

        result = FraudService.detect_fraud(account.pk, {"points": 150000})

        assert flag_types(result) == ["LARGE_POINTS_AWARD", "RAPID_ACCUMULATION"]
        assert result.risk_score == 5
        assert result.recommendation == "REVIEW"
        assert result.flags[1].message == "Rapid point accumulation: 60000 points in last 24 hours"

    def test_accumulation_outside_window(self, account, booking_backend):
        LedgerService.award_points(account.pk, 60000, "Corporate event")

        later = timezone.now() + timedelta(hours=25)
        result = FraudService.detect_fraud(account.pk, {"points": 10}, now=later)

        assert result.flags == []

    def test_redemptions_do_not_count_as_accumulation(self, account, booking_backend):
        LedgerService.award_points(account.pk, 40000, "A")
        LedgerService.redeem_points(account.pk, 30000, "B")
        LedgerService.award_points(account.pk, 15000, "C")

        result = FraudService.detect_fraud(account.pk, {"points": 10})
        assert flag_types(result) == ["RAPID_ACCUMULATION"]

    def test_excessive_bookings(self, account, booking_backend):
        booking_backend.recent_counts["user-001"] = 11

        result = FraudService.detect_fraud(account.pk, {"points": 10})

        assert flag_types(result) == ["EXCESSIVE_BOOKINGS"]
        assert result.flags[0].message == "Excessive bookings: 11 bookings in last 7 days"
        assert result.recommendation == "OK"

    def test_cancelled_booking(self, account, booking_backend, booking):
        booking_backend.bookings["BK-1001"] = replace(booking, status="CANCELLED")

        result = FraudService.detect_fraud(account.pk, {"points": 10, "booking_ref": "BK-1001"})

        assert flag_types(result) == ["POINTS_FROM_CANCELLED"]
        assert result.risk_score == 3

    def test_completed_booking(self, account, booking_backend, booking):
        booking_backend.bookings["BK-1001"] = booking
        result = FraudService.detect_fraud(account.pk, {"points": 10, "booking_ref": "BK-1001"})
        assert result.flags == []

    def test_accepts_ledger_entry(self, account, booking_backend, booking):
        booking_backend.bookings["BK-1001"] = replace(booking, status="CANCELLED")
        entry = LedgerService.award_points(account.pk, 100, "Booking #CNF-1001", booking_ref="BK-1001")

        result = FraudService.detect_fraud(account.pk, entry)
        assert flag_types(result) == ["POINTS_FROM_CANCELLED"]

    @override_settings(REWARDMAN={})
    def test_without_booking_backend(self, account, caplog):
        with caplog.at_level(logging.WARNING, logger="rewardman.services.fraud"):
            result = FraudService.detect_fraud(account.pk, {"points": 10, "booking_ref": "BK-1001"})

        assert result.flags == []
        assert "No BOOKING_BACKEND configured" in caplog.text

    @override_settings(REWARDMAN={
        "BOOKING_BACKEND": "rewardman.tests.backends.FakeBookingBackend",
        "FRAUD_LARGE_AWARD_POINTS": 1000,
    })
    def test_thresholds_are_configurable(self, account, booking_backend):
        result = FraudService.detect_fraud(account.pk, {"points": 1001})
        assert flag_types(result) == ["LARGE_POINTS_AWARD"]

    def test_missing_account(self, db):
        with pytest.raises(RewardmanError) as exc:
            FraudService.detect_fraud(999999, {"points": 10})
        assert exc.value.code == "ACCOUNT_NOT_FOUND"
