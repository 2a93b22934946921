"""Redemption catalog — items exchangeable for points and their transactions."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class RedemptionStatus(models.TextChoices):
    PENDING = "PENDING", _("Pending")
    CONFIRMED = "CONFIRMED", _("Confirmed")
    USED = "USED", _("Used")
    EXPIRED = "EXPIRED", _("Expired")
    CANCELLED = "CANCELLED", _("Cancelled")


# Forward-only lifecycle
REDEMPTION_TRANSITIONS = {
    RedemptionStatus.PENDING: {
        RedemptionStatus.CONFIRMED,
        RedemptionStatus.USED,
        RedemptionStatus.EXPIRED,
        RedemptionStatus.CANCELLED,
    },
    RedemptionStatus.CONFIRMED: {
        RedemptionStatus.USED,
        RedemptionStatus.EXPIRED,
        RedemptionStatus.CANCELLED,
    },
    RedemptionStatus.USED: set(),
    RedemptionStatus.EXPIRED: set(),
    RedemptionStatus.CANCELLED: set(),
}


class RedemptionItem(models.Model):
    """
    Catalog entry exchangeable for points.

    dynamic_pricing: {"dynamic": true, "rules": [
        {"room_type_id": "DLX", "multiplier": 1.5},
        {"property_id": "P1", "points": 8000},
        {"date_range": {"start": "...", "end": "..."}, "multiplier": 2},
    ]}

    Inventory: total_quantity null = unlimited. Otherwise the remaining
    stock is available_quantity, falling back to total - sold.
    """

    code = models.CharField(_("code"), max_length=50, unique=True)
    name = models.CharField(_("name"), max_length=200)
    description = models.TextField(_("description"), blank=True)
    item_type = models.CharField(_("item type"), max_length=50, blank=True)

    base_points_required = models.PositiveIntegerField(_("base points required"))
    dynamic_pricing = models.JSONField(_("dynamic pricing"), default=dict, blank=True)

    total_quantity = models.PositiveIntegerField(_("total quantity"), null=True, blank=True)
    sold_quantity = models.PositiveIntegerField(_("sold quantity"), default=0)
    available_quantity = models.PositiveIntegerField(_("available quantity"), null=True, blank=True)

    tier_ids = models.JSONField(_("tier scope"), null=True, blank=True, default=None)
    property_ids = models.JSONField(_("property scope"), null=True, blank=True, default=None)
    room_type_ids = models.JSONField(_("room type scope"), null=True, blank=True, default=None)
    value = models.JSONField(_("value"), default=dict, blank=True)

    start_date = models.DateField(_("start date"), null=True, blank=True)
    end_date = models.DateField(_("end date"), null=True, blank=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        verbose_name = _("redemption item")
        verbose_name_plural = _("redemption items")
        ordering = ["base_points_required", "id"]

    def __str__(self):
        return f"{self.name} ({self.base_points_required}pts)"

    def save(self, *args, **kwargs):
        self.parsed()
        self.parsed_value()
        super().save(*args, **kwargs)

    def parsed_value(self):
        from rewardman.conditions import RedemptionValue

        return RedemptionValue.parse(self.value)

    def parsed(self):
        """Return (pricing, tier_scope, property_scope, room_type_scope) as typed values."""
        from rewardman.conditions import DynamicPricing, Scope

        return (
            DynamicPricing.parse(self.dynamic_pricing),
            Scope.parse(self.tier_ids),
            Scope.parse(self.property_ids),
            Scope.parse(self.room_type_ids),
        )

    @property
    def remaining_quantity(self) -> int | None:
        """Units left in stock, None when unlimited."""
        if self.total_quantity is None:
            return None
        if self.available_quantity is not None:
            return self.available_quantity
        return self.total_quantity - self.sold_quantity


class RedemptionTransaction(models.Model):
    """
    Record of one points-for-reward exchange.

    Created in the same transaction as its REDEEM ledger entry.
    """

    item = models.ForeignKey(
        RedemptionItem,
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name=_("item"),
    )
    account = models.ForeignKey(
        "rewardman.LoyaltyAccount",
        on_delete=models.CASCADE,
        related_name="redemptions",
        verbose_name=_("account"),
    )
    booking_ref = models.CharField(_("booking reference"), max_length=100, blank=True)
    ledger_entry = models.OneToOneField(
        "rewardman.LedgerEntry",
        on_delete=models.PROTECT,
        related_name="redemption_transaction",
        verbose_name=_("ledger entry"),
    )

    points_redeemed = models.PositiveIntegerField(_("points redeemed"))
    value_received = models.JSONField(_("value received"), default=dict, blank=True)
    dynamic_pricing_applied = models.JSONField(_("dynamic pricing applied"), default=dict, blank=True)

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.PENDING,
        db_index=True,
    )
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True)
    used_at = models.DateTimeField(_("used at"), null=True, blank=True)
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    redeemed_at = models.DateTimeField(_("redeemed at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("redemption transaction")
        verbose_name_plural = _("redemption transactions")
        ordering = ["-redeemed_at", "-id"]

    def __str__(self):
        return f"{self.item_id} × {self.points_redeemed}pts ({self.status})"
