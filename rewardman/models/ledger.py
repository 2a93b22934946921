"""LedgerEntry model — append-only points accounting log."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class LedgerEntryKind(models.TextChoices):
    EARN = "EARN", _("Earn")
    REDEEM = "REDEEM", _("Redeem")
    ADJUST = "ADJUST", _("Adjustment")


class LedgerEntry(models.Model):
    """
    Immutable record of one points movement.

    Every award and redemption is logged here with the balance before and
    after it. Entries are append-only — never modified or deleted.

    Invariants:
    - balance_after = balance_before + points
    - the account's points equal balance_after of its latest entry
    """

    account = models.ForeignKey(
        "rewardman.LoyaltyAccount",
        on_delete=models.CASCADE,
        related_name="ledger_entries",
        verbose_name=_("account"),
    )
    kind = models.CharField(
        _("kind"),
        max_length=20,
        choices=LedgerEntryKind.choices,
    )
    points = models.IntegerField(
        _("points"),
        help_text=_("Positive for awards, negative for redemptions"),
    )
    reason = models.CharField(_("reason"), max_length=200)
    balance_before = models.IntegerField(_("balance before"))
    balance_after = models.IntegerField(_("balance after"))

    # References
    booking_ref = models.CharField(_("booking reference"), max_length=100, blank=True, db_index=True)
    rule = models.ForeignKey(
        "rewardman.PointsRule",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ledger_entries",
        verbose_name=_("points rule"),
    )
    campaign = models.ForeignKey(
        "rewardman.Campaign",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ledger_entries",
        verbose_name=_("campaign"),
    )
    perk = models.ForeignKey(
        "rewardman.Perk",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ledger_entries",
        verbose_name=_("perk"),
    )
    redemption_item = models.ForeignKey(
        "rewardman.RedemptionItem",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ledger_entries",
        verbose_name=_("redemption item"),
    )
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    idempotency_key = models.CharField(
        _("idempotency key"),
        max_length=150,
        null=True,
        blank=True,
        help_text=_("At most one entry per (account, key), e.g. booking:ABC123"),
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    created_by = models.CharField(_("created by"), max_length=100, blank=True)

    class Meta:
        verbose_name = _("ledger entry")
        verbose_name_plural = _("ledger entries")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["account", "-created_at"], name="rewardman_le_acct_created_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "idempotency_key"],
                name="rewardman_ledger_unique_idempotency_key",
            ),
            models.CheckConstraint(
                condition=models.Q(balance_after=models.F("balance_before") + models.F("points")),
                name="rewardman_ledger_balance_chain",
            ),
        ]

    def __str__(self):
        sign = "+" if self.points > 0 else ""
        return f"{sign}{self.points}pts — {self.reason}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            from rewardman.exceptions import RewardmanError

            raise RewardmanError("LEDGER_IMMUTABLE", entry_id=self.pk)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        from rewardman.exceptions import RewardmanError

        raise RewardmanError("LEDGER_IMMUTABLE", entry_id=self.pk)
