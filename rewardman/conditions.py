"""
Rewardman conditions — typed views over the JSON rule blobs.

PointsRule.conditions/actions, Campaign.rules, Perk.conditions and
RedemptionItem.dynamic_pricing are stored as JSON. They are parsed here
into frozen dataclasses, once, when a model is saved and when a service
loads it. A malformed blob raises RewardmanError("INVALID_RULE").

Scopes (tier_ids, property_ids, room_type_ids) are explicit optional sets:
JSON null or an empty list means unscoped, a non-empty list admits only its
members.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any, Iterable, Union

from rewardman.exceptions import RewardmanError


def _invalid(message: str, **data) -> RewardmanError:
    return RewardmanError("INVALID_RULE", message=message, **data)


def _expect_mapping(raw: Any, what: str) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise _invalid(f"{what} must be an object", value=raw)
    return raw


def to_decimal(value: Any, name: str) -> Decimal:
    """Convert a JSON number to Decimal, rejecting bools and junk."""
    if isinstance(value, bool) or value is None:
        raise _invalid(f"'{name}' must be a number", value=value)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise _invalid(f"'{name}' must be a number", value=value)


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise _invalid(f"'{name}' must be an integer", value=value)
    if isinstance(value, float) and not value.is_integer():
        raise _invalid(f"'{name}' must be an integer", value=value)
    try:
        return int(value)
    except ValueError:
        raise _invalid(f"'{name}' must be an integer", value=value)


def _optional_bool(raw: dict, key: str) -> bool | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise _invalid(f"'{key}' must be a boolean", value=value)
    return value


def as_date(value: Any) -> date | None:
    """Normalize date, datetime or ISO string to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            raise _invalid("Invalid date", value=value)
    raise _invalid("Invalid date", value=value)


def floor_int(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


# =============================================================================
# Scope
# =============================================================================


@dataclass(frozen=True)
class Scope:
    """Explicit optional set of ids. `ids is None` means unscoped.

    Stored blobs use `[]` for unscoped, so `parse` maps it to `unscoped()`.
    `Scope.of([])` is still an empty set that admits nothing.
    """

    ids: frozenset[str] | None = None

    @classmethod
    def unscoped(cls) -> Scope:
        return cls(None)

    @classmethod
    def of(cls, ids: Iterable[Any]) -> Scope:
        return cls(frozenset(str(i) for i in ids))

    @classmethod
    def parse(cls, raw: Any) -> Scope:
        if raw is None or (isinstance(raw, (list, tuple)) and not raw):
            return cls.unscoped()
        if isinstance(raw, (list, tuple, set, frozenset)):
            return cls.of(raw)
        raise _invalid("Scope must be null or a list of ids", value=raw)

    @property
    def is_unscoped(self) -> bool:
        return self.ids is None

    def admits(self, value: Any) -> bool:
        if self.ids is None:
            return True
        if value is None:
            return False
        return str(value) in self.ids

    def to_json(self) -> list[str] | None:
        return None if self.ids is None else sorted(self.ids)


# =============================================================================
# Ranges
# =============================================================================


@dataclass(frozen=True)
class Range:
    """Inclusive numeric range with optional ends."""

    min: int | None = None
    max: int | None = None

    @classmethod
    def parse(cls, raw: Any, what: str = "range") -> Range | None:
        if raw is None:
            return None
        raw = _expect_mapping(raw, what)
        low = raw.get("min")
        high = raw.get("max")
        return cls(
            min=_to_int(low, f"{what}.min") if low is not None else None,
            max=_to_int(high, f"{what}.max") if high is not None else None,
        )

    def contains(self, value: int) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclass(frozen=True)
class DateRange:
    """Inclusive date window with optional ends."""

    start: date | None = None
    end: date | None = None

    @classmethod
    def parse(cls, raw: Any, what: str = "date_range") -> DateRange | None:
        if raw is None:
            return None
        raw = _expect_mapping(raw, what)
        return cls(start=as_date(raw.get("start")), end=as_date(raw.get("end")))

    def contains(self, value: date | datetime | None) -> bool:
        day = as_date(value)
        if day is None:
            return False
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


# =============================================================================
# Points rules
# =============================================================================


@dataclass(frozen=True)
class RuleContext:
    """Booking facts a points rule is evaluated against."""

    tier: str
    booking_source: str | None
    stay_length: int
    is_weekend: bool
    check_in: date
    property_id: str | None = None
    room_type_id: str | None = None
    is_prepaid: bool = False
    room_type_category: str | None = None
    total_revenue: Decimal = Decimal("0")


@dataclass(frozen=True)
class RuleConditions:
    """Populated fields must all match (AND)."""

    booking_source: str | None = None
    stay_length: Range | None = None
    is_weekend: bool | None = None
    date_range: DateRange | None = None
    property_ids: Scope = field(default_factory=Scope.unscoped)
    tier_ids: Scope = field(default_factory=Scope.unscoped)
    is_prepaid: bool | None = None
    room_type_category: str | None = None

    @classmethod
    def parse(cls, raw: Any) -> RuleConditions:
        raw = _expect_mapping(raw, "conditions")
        return cls(
            booking_source=raw.get("booking_source") or None,
            stay_length=Range.parse(raw.get("stay_length"), "stay_length"),
            is_weekend=_optional_bool(raw, "is_weekend"),
            date_range=DateRange.parse(raw.get("date_range")),
            property_ids=Scope.parse(raw.get("property_ids")),
            tier_ids=Scope.parse(raw.get("tier_ids")),
            is_prepaid=_optional_bool(raw, "is_prepaid"),
            room_type_category=raw.get("room_type_category") or None,
        )

    def matches(self, context: RuleContext) -> bool:
        if self.booking_source and context.booking_source != self.booking_source:
            return False
        if self.stay_length and not self.stay_length.contains(context.stay_length):
            return False
        if self.is_weekend is not None and context.is_weekend != self.is_weekend:
            return False
        if self.date_range and not self.date_range.contains(context.check_in):
            return False
        if not self.property_ids.admits(context.property_id):
            return False
        if not self.tier_ids.admits(context.tier):
            return False
        if self.is_prepaid is not None and bool(context.is_prepaid) != self.is_prepaid:
            return False
        if self.room_type_category and context.room_type_category != self.room_type_category:
            return False
        return True


@dataclass(frozen=True)
class MultiplierAction:
    multiplier: Decimal
    type: str = "MULTIPLIER"

    def apply(self, multiplier: Decimal, bonus: int) -> tuple[Decimal, int]:
        return multiplier * self.multiplier, bonus


@dataclass(frozen=True)
class BonusPointsAction:
    bonus_points: int
    type: str = "BONUS_POINTS"

    def apply(self, multiplier: Decimal, bonus: int) -> tuple[Decimal, int]:
        return multiplier, bonus + self.bonus_points


@dataclass(frozen=True)
class PercentageAction:
    percentage: Decimal
    type: str = "PERCENTAGE"

    def apply(self, multiplier: Decimal, bonus: int) -> tuple[Decimal, int]:
        return multiplier * (1 + self.percentage / 100), bonus


RuleAction = Union[MultiplierAction, BonusPointsAction, PercentageAction]


def parse_action(raw: Any) -> RuleAction:
    """Parse a PointsRule.actions blob into its tagged variant."""
    raw = _expect_mapping(raw, "actions")
    kind = raw.get("type")
    if not kind:
        raise _invalid("Rule action is missing 'type'", value=raw)
    if kind == "MULTIPLIER":
        return MultiplierAction(multiplier=to_decimal(raw.get("multiplier"), "multiplier"))
    if kind == "BONUS_POINTS":
        return BonusPointsAction(bonus_points=_to_int(raw.get("bonus_points"), "bonus_points"))
    if kind == "PERCENTAGE":
        return PercentageAction(percentage=to_decimal(raw.get("percentage"), "percentage"))
    raise _invalid(f"Unknown rule action type: {kind}", value=raw)


@dataclass(frozen=True)
class CampaignReward:
    multiplier: Decimal | None = None
    bonus_points: int | None = None

    @classmethod
    def parse(cls, raw: Any) -> CampaignReward:
        raw = _expect_mapping(raw, "rules")
        multiplier = raw.get("multiplier")
        bonus = raw.get("bonus_points")
        return cls(
            multiplier=to_decimal(multiplier, "multiplier") if multiplier is not None else None,
            bonus_points=_to_int(bonus, "bonus_points") if bonus is not None else None,
        )

    def apply(self, multiplier: Decimal, bonus: int) -> tuple[Decimal, int]:
        if self.multiplier:
            multiplier *= self.multiplier
        if self.bonus_points:
            bonus += self.bonus_points
        return multiplier, bonus


# =============================================================================
# Perks
# =============================================================================


@dataclass(frozen=True)
class PerkConditions:
    min_tier: str | None = None
    booking_source: str | None = None
    stay_length: Range | None = None

    @classmethod
    def parse(cls, raw: Any) -> PerkConditions:
        from rewardman.models.tier import Tier

        raw = _expect_mapping(raw, "conditions")
        min_tier = raw.get("min_tier") or None
        if min_tier is not None and min_tier not in Tier.values:
            raise _invalid(f"Unknown tier: {min_tier}", value=raw)
        return cls(
            min_tier=min_tier,
            booking_source=raw.get("booking_source") or None,
            stay_length=Range.parse(raw.get("stay_length"), "stay_length"),
        )


# =============================================================================
# Dynamic pricing
# =============================================================================


@dataclass(frozen=True)
class SetPoints:
    points: int

    def apply(self, points_required: int) -> int:
        return self.points


@dataclass(frozen=True)
class ScalePoints:
    multiplier: Decimal

    def apply(self, points_required: int) -> int:
        return floor_int(points_required * self.multiplier)


PricingEffect = Union[SetPoints, ScalePoints]


@dataclass(frozen=True)
class PricingContext:
    property_id: str | None = None
    room_type_id: str | None = None
    redemption_date: date | None = None


@dataclass(frozen=True)
class PricingRule:
    """
    One dynamic pricing override.

    Each matcher that is set is checked on its own; every one that
    matches applies the effect again.
    """

    effect: PricingEffect
    room_type_id: str | None = None
    property_id: str | None = None
    date_range: DateRange | None = None

    @classmethod
    def parse(cls, raw: Any) -> PricingRule:
        raw = _expect_mapping(raw, "pricing rule")
        if raw.get("points"):
            effect: PricingEffect = SetPoints(points=_to_int(raw["points"], "points"))
        elif raw.get("multiplier"):
            effect = ScalePoints(multiplier=to_decimal(raw["multiplier"], "multiplier"))
        else:
            raise _invalid("Pricing rule needs 'points' or 'multiplier'", value=raw)
        room_type_id = raw.get("room_type_id")
        property_id = raw.get("property_id")
        return cls(
            effect=effect,
            room_type_id=str(room_type_id) if room_type_id is not None else None,
            property_id=str(property_id) if property_id is not None else None,
            date_range=DateRange.parse(raw.get("date_range")),
        )

    def apply(self, points_required: int, context: PricingContext) -> int:
        if (
            self.room_type_id
            and context.room_type_id is not None
            and self.room_type_id == str(context.room_type_id)
        ):
            points_required = self.effect.apply(points_required)
        if self.property_id and self.property_id == str(context.property_id):
            points_required = self.effect.apply(points_required)
        if self.date_range and context.redemption_date:
            if self.date_range.contains(context.redemption_date):
                points_required = self.effect.apply(points_required)
        return points_required


@dataclass(frozen=True)
class DynamicPricing:
    dynamic: bool = False
    rules: tuple[PricingRule, ...] = ()

    @classmethod
    def parse(cls, raw: Any) -> DynamicPricing:
        raw = _expect_mapping(raw, "dynamic_pricing")
        rules = raw.get("rules") or []
        if not isinstance(rules, list):
            raise _invalid("dynamic_pricing.rules must be a list", value=raw)
        return cls(
            dynamic=bool(raw.get("dynamic")),
            rules=tuple(PricingRule.parse(r) for r in rules),
        )

    def price(self, base_points: int, context: PricingContext) -> int:
        points_required = base_points
        if not self.dynamic:
            return points_required
        for rule in self.rules:
            points_required = rule.apply(points_required, context)
        return points_required


@dataclass(frozen=True)
class RedemptionValue:
    """What a redemption grants. Only `expires_in_days` drives behaviour."""

    expires_in_days: int | None = None

    @classmethod
    def parse(cls, raw: Any) -> RedemptionValue:
        raw = _expect_mapping(raw, "value")
        days = raw.get("expires_in_days")
        if days is None:
            return cls()
        days = _to_int(days, "expires_in_days")
        if days < 0:
            raise _invalid("'expires_in_days' must not be negative", value=raw)
        return cls(expires_in_days=days or None)
