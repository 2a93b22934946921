"""Points service — earning calculation and booking awards."""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal

from django.db import IntegrityError
from django.db.models import Q

from rewardman.conditions import RuleConditions, RuleContext, as_date, floor_int
from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.models import LedgerEntry, PointsRule
from rewardman.protocols.bookings import BookingInfo
from rewardman.services.accounts import get_account
from rewardman.services.campaigns import CampaignService
from rewardman.services.ledger import LedgerService
from rewardman.services.tiers import TierService

logger = logging.getLogger(__name__)


@dataclass
class PointsCalculation:
    """Points earned by one booking, with the rules and campaigns behind them."""

    base_points: int = 0
    bonus_points: int = 0
    total_points: int = 0
    multiplier: Decimal = Decimal("1")
    rules_applied: list[dict] = field(default_factory=list)
    campaigns_applied: list[dict] = field(default_factory=list)
    message: str = ""

    def to_metadata(self) -> dict:
        """JSON-safe audit trail for the ledger entry."""
        return {
            "base_points": self.base_points,
            "bonus_points": self.bonus_points,
            "multiplier": str(self.multiplier),
            "rules_applied": self.rules_applied,
            "campaigns_applied": self.campaigns_applied,
        }


@dataclass
class BookingAward:
    """Outcome of awarding points for a completed booking."""

    points_awarded: int
    calculation: PointsCalculation | None = None
    entry: LedgerEntry | None = None
    duplicate: bool = False


def stay_length(check_in: date | datetime, check_out: date | datetime) -> int:
    """Nights between check-in and check-out, partial days rounded up."""
    if isinstance(check_in, datetime) and isinstance(check_out, datetime):
        return math.ceil((check_out - check_in) / timedelta(days=1))
    return (as_date(check_out) - as_date(check_in)).days


def is_weekend(check_in: date | datetime) -> bool:
    """Friday, Saturday and Sunday check-ins count as weekend."""
    return check_in.weekday() in (4, 5, 6)


def _decimal_or_none(value):
    return str(value) if value is not None else None


class PointsService:
    """
    Service for points calculation.

    Uses @classmethod for extensibility (consistent with other services).
    """

    @classmethod
    def evaluate_rule_conditions(cls, conditions, context: RuleContext) -> bool:
        """
        Whether every populated condition matches the booking context.

        Args:
            conditions: RuleConditions or its JSON form
            context: Booking facts

        Raises:
            RewardmanError: INVALID_RULE if conditions are malformed
        """
        if not isinstance(conditions, RuleConditions):
            conditions = RuleConditions.parse(conditions)
        return conditions.matches(context)

    @classmethod
    def get_active_rules(cls, day: date):
        """Active rules whose window contains `day`, highest priority first."""
        return (
            PointsRule.objects.filter(is_active=True)
            .filter(Q(start_date__isnull=True) | Q(start_date__lte=day))
            .filter(Q(end_date__isnull=True) | Q(end_date__gte=day))
            .order_by("-priority", "id")
        )

    @classmethod
    def calculate_points(
        cls,
        account_id: int,
        *,
        room_revenue,
        check_in: date | datetime,
        check_out: date | datetime,
        booking_source: str | None,
        add_on_revenue=0,
        property_id: str | None = None,
        room_type_id: str | None = None,
        is_prepaid: bool = False,
        room_type_category: str | None = None,
    ) -> PointsCalculation:
        """
        Points a booking earns.

        OTA bookings never earn. Otherwise base points come from the tier's
        earning rate, matching rules and campaigns stack their multipliers
        and bonuses, and total = floor(base * multiplier) + bonus.

        Args:
            account_id: LoyaltyAccount pk
            room_revenue: Room revenue
            check_in: Check-in date or datetime
            check_out: Check-out date or datetime
            booking_source: Booking channel (WEB_DIRECT, OTA_MMT, ...)
            add_on_revenue: Add-on revenue
            property_id: Property id
            room_type_id: Room type id
            is_prepaid: Prepaid / non-refundable booking
            room_type_category: Room type category (PREMIUM, ...)

        Returns:
            PointsCalculation

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND, TIER_CONFIG_NOT_FOUND, INVALID_RULE
        """
        if booking_source in rewardman_settings.OTA_SOURCES:
            return PointsCalculation(message="OTA bookings do not earn points")

        account = get_account(account_id)
        config = TierService.get_tier_config(account.tier)
        if config is None:
            raise RewardmanError("TIER_CONFIG_NOT_FOUND", tier=account.tier)

        total_revenue = Decimal(str(room_revenue)) + Decimal(str(add_on_revenue or 0))
        base_points = floor_int(total_revenue / 100 * config.base_points_per_100)

        context = RuleContext(
            tier=account.tier,
            booking_source=booking_source,
            stay_length=stay_length(check_in, check_out),
            is_weekend=is_weekend(check_in),
            check_in=as_date(check_in),
            property_id=property_id,
            room_type_id=room_type_id,
            is_prepaid=is_prepaid,
            room_type_category=room_type_category,
            total_revenue=total_revenue,
        )

        multiplier = Decimal("1")
        bonus = 0
        rules_applied = []
        for rule in cls.get_active_rules(context.check_in):
            conditions, action, property_scope, tier_scope = rule.parsed()
            if not property_scope.admits(property_id):
                continue
            if not tier_scope.admits(account.tier):
                continue
            if not conditions.matches(context):
                continue
            multiplier, bonus = action.apply(multiplier, bonus)
            rules_applied.append({
                "rule_id": rule.pk,
                "name": rule.name,
                "type": rule.rule_type,
                "action": action.type,
                "multiplier": _decimal_or_none(getattr(action, "multiplier", None)),
                "bonus_points": getattr(action, "bonus_points", None),
                "percentage": _decimal_or_none(getattr(action, "percentage", None)),
            })

        campaigns_applied = []
        for campaign in CampaignService.get_active_campaigns(account.tier, property_id, check_in):
            reward, _, _ = campaign.parsed()
            multiplier, bonus = reward.apply(multiplier, bonus)
            campaigns_applied.append({
                "campaign_id": campaign.pk,
                "name": campaign.name,
                "type": campaign.campaign_type,
                "multiplier": _decimal_or_none(reward.multiplier),
                "bonus_points": reward.bonus_points,
            })

        return PointsCalculation(
            base_points=base_points,
            bonus_points=bonus,
            total_points=floor_int(base_points * multiplier) + bonus,
            multiplier=multiplier,
            rules_applied=rules_applied,
            campaigns_applied=campaigns_applied,
        )

    @classmethod
    def award_points_for_booking(cls, account_id: int, booking: BookingInfo) -> BookingAward:
        """
        Calculate and award the points for a completed booking.

        At most once per booking: the ledger entry carries the key
        booking:<booking_ref>, and a repeat call returns the original entry
        flagged as duplicate.

        Args:
            account_id: LoyaltyAccount pk
            booking: Booking payload from the booking system

        Returns:
            BookingAward

        Raises:
            RewardmanError: ACCOUNT_NOT_FOUND, TIER_CONFIG_NOT_FOUND
        """
        key = f"booking:{booking.booking_ref}"

        existing = LedgerEntry.objects.filter(account_id=account_id, idempotency_key=key).first()
        if existing is not None:
            logger.warning("Booking %s already awarded to account %s", booking.booking_ref, account_id)
            return BookingAward(points_awarded=0, entry=existing, duplicate=True)

        calculation = cls.calculate_points(
            account_id,
            room_revenue=booking.room_revenue,
            add_on_revenue=booking.add_on_revenue,
            check_in=booking.check_in,
            check_out=booking.check_out,
            booking_source=booking.source,
            property_id=booking.property_id,
            room_type_id=booking.room_type_id,
            is_prepaid=booking.is_prepaid,
            room_type_category=booking.room_type_category,
        )
        if calculation.total_points <= 0:
            return BookingAward(points_awarded=0, calculation=calculation)

        try:
            entry = LedgerService.award_points(
                account_id,
                calculation.total_points,
                f"Booking #{booking.confirmation_number or booking.booking_ref}",
                booking_ref=booking.booking_ref,
                metadata=calculation.to_metadata(),
                idempotency_key=key,
            )
        except IntegrityError:
            # Lost a race with a concurrent award for the same booking
            existing = LedgerEntry.objects.get(account_id=account_id, idempotency_key=key)
            logger.warning("Booking %s already awarded to account %s", booking.booking_ref, account_id)
            return BookingAward(points_awarded=0, calculation=calculation, entry=existing, duplicate=True)

        return BookingAward(
            points_awarded=calculation.total_points,
            calculation=calculation,
            entry=entry,
        )
