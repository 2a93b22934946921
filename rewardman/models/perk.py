"""Perk models — capacity-limited stay benefits."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class PerkRedemptionStatus(models.TextChoices):
    ACTIVE = "ACTIVE", _("Active")
    USED = "USED", _("Used")
    EXPIRED = "EXPIRED", _("Expired")
    CANCELLED = "CANCELLED", _("Cancelled")


class Perk(models.Model):
    """
    Condition-gated benefit attachable to a stay.

    conditions: {"min_tier": "GOLD", "booking_source": "WEB_DIRECT",
                 "stay_length": {"min": 2, "max": 7}}
    tier_ids / property_ids: null = unscoped, list = only those ids.

    Capacity (each limit optional):
    - total_capacity: current_usage never exceeds it
    - max_usage_per_member: ACTIVE/USED redemptions per account
    - max_usage_per_stay: ACTIVE/USED redemptions per booking
    """

    code = models.CharField(_("code"), max_length=50, unique=True)
    name = models.CharField(_("name"), max_length=200)
    description = models.TextField(_("description"), blank=True)
    perk_type = models.CharField(_("perk type"), max_length=50, blank=True)

    conditions = models.JSONField(_("conditions"), default=dict, blank=True)
    tier_ids = models.JSONField(_("tier scope"), null=True, blank=True, default=None)
    property_ids = models.JSONField(_("property scope"), null=True, blank=True, default=None)
    value = models.JSONField(_("value"), default=dict, blank=True)

    total_capacity = models.PositiveIntegerField(_("total capacity"), null=True, blank=True)
    max_usage_per_member = models.PositiveIntegerField(_("max usage per member"), null=True, blank=True)
    max_usage_per_stay = models.PositiveIntegerField(_("max usage per stay"), null=True, blank=True)
    current_usage = models.PositiveIntegerField(_("current usage"), default=0)

    start_date = models.DateField(_("start date"), null=True, blank=True)
    end_date = models.DateField(_("end date"), null=True, blank=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        verbose_name = _("perk")
        verbose_name_plural = _("perks")
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"

    def save(self, *args, **kwargs):
        self.parsed()
        super().save(*args, **kwargs)

    def parsed(self):
        """Return (conditions, tier_scope, property_scope) as typed values."""
        from rewardman.conditions import PerkConditions, Scope

        return (
            PerkConditions.parse(self.conditions),
            Scope.parse(self.tier_ids),
            Scope.parse(self.property_ids),
        )


class PerkRedemption(models.Model):
    """One perk granted to one member, optionally tied to a booking."""

    perk = models.ForeignKey(
        Perk,
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("perk"),
    )
    account = models.ForeignKey(
        "rewardman.LoyaltyAccount",
        on_delete=models.CASCADE,
        related_name="perk_redemptions",
        verbose_name=_("account"),
    )
    booking_ref = models.CharField(_("booking reference"), max_length=100, blank=True, db_index=True)
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=PerkRedemptionStatus.choices,
        default=PerkRedemptionStatus.ACTIVE,
    )
    value_applied = models.JSONField(_("value applied"), default=dict, blank=True)
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    redeemed_at = models.DateTimeField(_("redeemed at"), auto_now_add=True)
    used_at = models.DateTimeField(_("used at"), null=True, blank=True)

    class Meta:
        verbose_name = _("perk redemption")
        verbose_name_plural = _("perk redemptions")
        ordering = ["-redeemed_at", "-id"]
        indexes = [
            models.Index(fields=["perk", "account", "status"], name="rewardman_pr_perk_acct_st_idx"),
        ]

    def __str__(self):
        return f"{self.perk_id} → {self.account_id} ({self.status})"
