"""Tier models — tier configuration and tier change audit trail."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Tier(models.TextChoices):
    """Membership tiers, lowest first. Declaration order is the tier order."""

    MEMBER = "MEMBER", _("Member")
    SILVER = "SILVER", _("Silver")
    GOLD = "GOLD", _("Gold")
    PLATINUM = "PLATINUM", _("Platinum")
    DIAMOND = "DIAMOND", _("Diamond")


def tier_index(tier: str) -> int:
    """Position of a tier in the canonical order (-1 if unknown)."""
    try:
        return Tier.values.index(tier)
    except ValueError:
        return -1


class TierChangeReason(models.TextChoices):
    AUTO_UPGRADE = "AUTO_UPGRADE", _("Automatic upgrade")
    RE_QUALIFICATION = "RE_QUALIFICATION", _("Re-qualification")
    MANUAL = "MANUAL", _("Manual")


class TierConfig(models.Model):
    """
    Qualification thresholds and earning rate for one tier.

    A member qualifies for a tier when ANY defined threshold is met.
    Thresholds left empty are ignored. MEMBER always qualifies.
    """

    tier = models.CharField(
        _("tier"),
        max_length=20,
        choices=Tier.choices,
        unique=True,
    )
    name = models.CharField(_("name"), max_length=100, blank=True)
    description = models.TextField(_("description"), blank=True)
    sort_order = models.IntegerField(_("sort order"), default=0, db_index=True)

    min_points = models.IntegerField(_("minimum points"), null=True, blank=True)
    min_stays = models.IntegerField(_("minimum stays"), null=True, blank=True)
    min_nights = models.IntegerField(_("minimum nights"), null=True, blank=True)
    min_spend = models.DecimalField(
        _("minimum spend"),
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
    )

    base_points_per_100 = models.DecimalField(
        _("base points per 100"),
        max_digits=8,
        decimal_places=2,
        help_text=_("Points earned per 100 of booking revenue"),
    )
    qualification_period_months = models.PositiveIntegerField(
        _("qualification period (months)"),
        default=12,
    )
    benefits = models.JSONField(_("benefits"), default=list, blank=True)

    is_active = models.BooleanField(_("active"), default=True)

    class Meta:
        verbose_name = _("tier configuration")
        verbose_name_plural = _("tier configurations")
        ordering = ["sort_order"]

    def __str__(self):
        return f"{self.tier} (#{self.sort_order})"

    def thresholds(self) -> dict:
        """Defined qualification thresholds only."""
        values = {
            "points": self.min_points,
            "stays": self.min_stays,
            "nights": self.min_nights,
            "spend": self.min_spend,
        }
        return {k: v for k, v in values.items() if v is not None}


class TierHistory(models.Model):
    """
    Immutable audit row written whenever an account's tier changes.
    """

    account = models.ForeignKey(
        "rewardman.LoyaltyAccount",
        on_delete=models.CASCADE,
        related_name="tier_history",
        verbose_name=_("account"),
    )
    from_tier = models.CharField(_("from tier"), max_length=20, choices=Tier.choices)
    to_tier = models.CharField(_("to tier"), max_length=20, choices=Tier.choices)

    points_at_change = models.IntegerField(_("points at change"), default=0)
    stays_at_change = models.IntegerField(_("stays at change"), default=0)
    nights_at_change = models.IntegerField(_("nights at change"), default=0)
    spend_at_change = models.DecimalField(
        _("spend at change"),
        max_digits=14,
        decimal_places=2,
        default=0,
    )

    reason = models.CharField(
        _("reason"),
        max_length=20,
        choices=TierChangeReason.choices,
    )
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _("tier history")
        verbose_name_plural = _("tier history")
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.from_tier} → {self.to_tier} ({self.reason})"
