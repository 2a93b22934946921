"""Fraud service — advisory risk scoring over ledger and booking history."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.db.models import Sum
from django.utils import timezone

from rewardman.conf import rewardman_settings
from rewardman.models import LedgerEntry
from rewardman.protocols import get_booking_backend
from rewardman.services.accounts import get_account

logger = logging.getLogger(__name__)


HIGH = "HIGH"
MEDIUM = "MEDIUM"
LOW = "LOW"

_SEVERITY_SCORES = {HIGH: 3, MEDIUM: 2}


@dataclass
class FraudFlag:
    type: str
    severity: str
    message: str


@dataclass
class FraudAssessment:
    """Risk signal for one transaction. Advisory only."""

    is_suspicious: bool
    risk_score: int
    flags: list[FraudFlag] = field(default_factory=list)
    recommendation: str = "OK"


def _field(transaction, name: str, default=None):
    if isinstance(transaction, dict):
        return transaction.get(name, default)
    return getattr(transaction, name, default)


def risk_score(flags: list[FraudFlag]) -> int:
    return sum(_SEVERITY_SCORES.get(flag.severity, 1) for flag in flags)


def recommendation(score: int) -> str:
    if score >= 5:
        return "REVIEW"
    if score >= 3:
        return "MONITOR"
    return "OK"


class FraudService:
    """
    Service for fraud heuristics.

    Uses @classmethod for extensibility (consistent with other services).
    Read-only: never blocks or reverses a transaction.
    """

    @classmethod
    def detect_fraud(cls, account_id: int, transaction, now: datetime | None = None) -> FraudAssessment:
        """
        Score a points transaction for suspicious activity.

        Flags:
        - LARGE_POINTS_AWARD (HIGH): transaction points above the threshold
        - RAPID_ACCUMULATION (MEDIUM): positive ledger points in the
          trailing window above the threshold
        - EXCESSIVE_BOOKINGS (MEDIUM): too many bookings by the member in
          the trailing window
        - POINTS_FROM_CANCELLED (HIGH): the referenced booking is CANCELLED

        Booking-based flags need a configured BookingBackend.

        Args:
            account_id: LoyaltyAccount pk
            transaction: Mapping or object with points and optional booking_ref
            now: Reference time (defaults to now)

        Returns:
            FraudAssessment

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND
        """
        account = get_account(account_id)
        now = now or timezone.now()
        conf = rewardman_settings
        flags = []

        points = _field(transaction, "points", 0) or 0
        if points > conf.FRAUD_LARGE_AWARD_POINTS:
            flags.append(FraudFlag(
                type="LARGE_POINTS_AWARD",
                severity=HIGH,
                message=f"Unusually large points award: {points} points",
            ))

        window = timedelta(hours=conf.FRAUD_RAPID_WINDOW_HOURS)
        recent = LedgerEntry.objects.filter(
            account=account,
            created_at__gte=now - window,
            points__gt=0,
        ).aggregate(total=Sum("points"))["total"] or 0
        if recent > conf.FRAUD_RAPID_ACCUMULATION_POINTS:
            flags.append(FraudFlag(
                type="RAPID_ACCUMULATION",
                severity=MEDIUM,
                message=(
                    f"Rapid point accumulation: {recent} points in last "
                    f"{conf.FRAUD_RAPID_WINDOW_HOURS} hours"
                ),
            ))

        backend = get_booking_backend()
        booking_ref = _field(transaction, "booking_ref")
        if backend is None:
            logger.warning("No BOOKING_BACKEND configured, skipping booking fraud checks")
        else:
            days = conf.FRAUD_BOOKING_WINDOW_DAYS
            bookings = backend.count_recent_bookings(account.user_ref, now - timedelta(days=days))
            if bookings > conf.FRAUD_MAX_RECENT_BOOKINGS:
                flags.append(FraudFlag(
                    type="EXCESSIVE_BOOKINGS",
                    severity=MEDIUM,
                    message=f"Excessive bookings: {bookings} bookings in last {days} days",
                ))

            if booking_ref:
                booking = backend.get_booking(booking_ref)
                if booking is not None and booking.status == "CANCELLED":
                    flags.append(FraudFlag(
                        type="POINTS_FROM_CANCELLED",
                        severity=HIGH,
                        message="Points awarded from cancelled booking",
                    ))

        score = risk_score(flags)
        assessment = FraudAssessment(
            is_suspicious=bool(flags),
            risk_score=score,
            flags=flags,
            recommendation=recommendation(score),
        )
        if assessment.is_suspicious:
            logger.info(
                "Account %s flagged %s (score %d): %s",
                account.pk, assessment.recommendation, score,
                ", ".join(flag.type for flag in flags),
            )
        return assessment
