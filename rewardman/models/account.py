"""LoyaltyAccount model — one per user."""

from django.db import models
from django.utils.translation import gettext_lazy as _

from rewardman.models.tier import Tier


class LoyaltyAccount(models.Model):
    """
    Member loyalty account.

    One account per user (user_ref is the identity in the host system).
    Tracks the current points balance, the tier and the lifetime metrics
    tiers qualify on.

    points is only written by LedgerService; tier only by TierService.
    """

    user_ref = models.CharField(
        _("user reference"),
        max_length=100,
        unique=True,
        help_text=_("External user id in the host system"),
    )
    member_number = models.CharField(
        _("member number"),
        max_length=20,
        unique=True,
        null=True,
        blank=True,
    )

    tier = models.CharField(
        _("tier"),
        max_length=20,
        choices=Tier.choices,
        default=Tier.MEMBER,
        db_index=True,
    )
    points = models.IntegerField(
        _("points balance"),
        default=0,
        help_text=_("Equals balance_after of the latest ledger entry"),
    )

    # Qualification metrics
    lifetime_stays = models.IntegerField(_("lifetime stays"), default=0)
    lifetime_nights = models.IntegerField(_("lifetime nights"), default=0)
    lifetime_spend = models.DecimalField(
        _("lifetime spend"),
        max_digits=14,
        decimal_places=2,
        default=0,
    )
    qualification_year_start = models.DateField(
        _("qualification year start"),
        null=True,
        blank=True,
    )
    qualification_year_end = models.DateField(
        _("qualification year end"),
        null=True,
        blank=True,
        db_index=True,
    )

    is_active = models.BooleanField(_("active"), default=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("loyalty account")
        verbose_name_plural = _("loyalty accounts")
        constraints = [
            models.CheckConstraint(
                condition=models.Q(points__gte=0),
                name="rewardman_account_points_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.member_number or self.user_ref}: {self.points}pts | {self.tier}"

    @property
    def metrics(self):
        """Qualification metrics snapshot."""
        from rewardman.services.tiers import TierMetrics

        return TierMetrics(
            points=self.points,
            stays=self.lifetime_stays,
            nights=self.lifetime_nights,
            spend=self.lifetime_spend,
        )
