"""Earning configuration — points rules and campaigns."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class RuleType(models.TextChoices):
    BONUS = "BONUS", _("Bonus")
    MULTIPLIER = "MULTIPLIER", _("Multiplier")
    SEASONAL = "SEASONAL", _("Seasonal")
    PROMOTIONAL = "PROMOTIONAL", _("Promotional")


class PointsRule(models.Model):
    """
    Conditional earning rule evaluated on every booking award.

    conditions (all populated keys must match):
        {"booking_source": "WEB_DIRECT", "stay_length": {"min": 5},
         "is_weekend": true, "date_range": {"start": "...", "end": "..."},
         "property_ids": [...], "tier_ids": [...], "is_prepaid": true,
         "room_type_category": "PREMIUM"}

    actions (tagged by type):
        {"type": "MULTIPLIER", "multiplier": 2}
        {"type": "BONUS_POINTS", "bonus_points": 500}
        {"type": "PERCENTAGE", "percentage": 20}

    property_ids / tier_ids: null = unscoped, list = only those ids.
    """

    name = models.CharField(_("name"), max_length=200)
    description = models.TextField(_("description"), blank=True)
    rule_type = models.CharField(
        _("rule type"),
        max_length=20,
        choices=RuleType.choices,
        default=RuleType.BONUS,
    )
    conditions = models.JSONField(_("conditions"), default=dict, blank=True)
    actions = models.JSONField(_("actions"))

    priority = models.IntegerField(_("priority"), default=0, help_text=_("Higher runs first"))
    start_date = models.DateField(_("start date"), null=True, blank=True)
    end_date = models.DateField(_("end date"), null=True, blank=True)

    property_ids = models.JSONField(_("property scope"), null=True, blank=True, default=None)
    tier_ids = models.JSONField(_("tier scope"), null=True, blank=True, default=None)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        verbose_name = _("points rule")
        verbose_name_plural = _("points rules")
        ordering = ["-priority", "id"]

    def __str__(self):
        return f"{self.name} (p{self.priority})"

    def save(self, *args, **kwargs):
        # Reject malformed blobs before they reach the store
        self.parsed()
        super().save(*args, **kwargs)

    def parsed(self):
        """Return (conditions, action, property_scope, tier_scope) as typed values."""
        from rewardman.conditions import RuleConditions, Scope, parse_action

        return (
            RuleConditions.parse(self.conditions),
            parse_action(self.actions),
            Scope.parse(self.property_ids),
            Scope.parse(self.tier_ids),
        )


class Campaign(models.Model):
    """
    Time-boxed promotion.

    rules: {"multiplier": 1.5, "bonus_points": 200} (both optional)
    tier_ids / property_ids: null = unscoped, list = only those ids.
    """

    name = models.CharField(_("name"), max_length=200)
    description = models.TextField(_("description"), blank=True)
    campaign_type = models.CharField(_("campaign type"), max_length=50, blank=True)

    tier_ids = models.JSONField(_("tier scope"), null=True, blank=True, default=None)
    property_ids = models.JSONField(_("property scope"), null=True, blank=True, default=None)

    start_date = models.DateField(_("start date"))
    end_date = models.DateField(_("end date"))
    rules = models.JSONField(_("rules"), default=dict, blank=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        verbose_name = _("campaign")
        verbose_name_plural = _("campaigns")
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.name} ({self.start_date} – {self.end_date})"

    def save(self, *args, **kwargs):
        self.parsed()
        super().save(*args, **kwargs)

    def parsed(self):
        """Return (reward, tier_scope, property_scope) as typed values."""
        from rewardman.conditions import CampaignReward, Scope

        return (
            CampaignReward.parse(self.rules),
            Scope.parse(self.tier_ids),
            Scope.parse(self.property_ids),
        )
