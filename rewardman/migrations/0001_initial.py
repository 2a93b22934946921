# Initial schema for rewardman

import django.db.models.deletion
from django.db import migrations, models


TIER_CHOICES = [
    ("MEMBER", "Member"),
    ("SILVER", "Silver"),
    ("GOLD", "Gold"),
    ("PLATINUM", "Platinum"),
    ("DIAMOND", "Diamond"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="TierConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("tier", models.CharField(choices=TIER_CHOICES, max_length=20, unique=True, verbose_name="tier")),
                ("name", models.CharField(blank=True, max_length=100, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("sort_order", models.IntegerField(db_index=True, default=0, verbose_name="sort order")),
                ("min_points", models.IntegerField(blank=True, null=True, verbose_name="minimum points")),
                ("min_stays", models.IntegerField(blank=True, null=True, verbose_name="minimum stays")),
                ("min_nights", models.IntegerField(blank=True, null=True, verbose_name="minimum nights")),
                (
                    "min_spend",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=14,
                        null=True,
                        verbose_name="minimum spend",
                    ),
                ),
                (
                    "base_points_per_100",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Points earned per 100 of booking revenue",
                        max_digits=8,
                        verbose_name="base points per 100",
                    ),
                ),
                (
                    "qualification_period_months",
                    models.PositiveIntegerField(default=12, verbose_name="qualification period (months)"),
                ),
                ("benefits", models.JSONField(blank=True, default=list, verbose_name="benefits")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
            ],
            options={
                "verbose_name": "tier configuration",
                "verbose_name_plural": "tier configurations",
                "ordering": ["sort_order"],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "user_ref",
                    models.CharField(
                        help_text="External user id in the host system",
                        max_length=100,
                        unique=True,
                        verbose_name="user reference",
                    ),
                ),
                (
                    "member_number",
                    models.CharField(blank=True, max_length=20, null=True, unique=True, verbose_name="member number"),
                ),
                (
                    "tier",
                    models.CharField(
                        choices=TIER_CHOICES,
                        db_index=True,
                        default="MEMBER",
                        max_length=20,
                        verbose_name="tier",
                    ),
                ),
                (
                    "points",
                    models.IntegerField(
                        default=0,
                        help_text="Equals balance_after of the latest ledger entry",
                        verbose_name="points balance",
                    ),
                ),
                ("lifetime_stays", models.IntegerField(default=0, verbose_name="lifetime stays")),
                ("lifetime_nights", models.IntegerField(default=0, verbose_name="lifetime nights")),
                (
                    "lifetime_spend",
                    models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="lifetime spend"),
                ),
                (
                    "qualification_year_start",
                    models.DateField(blank=True, null=True, verbose_name="qualification year start"),
                ),
                (
                    "qualification_year_end",
                    models.DateField(blank=True, db_index=True, null=True, verbose_name="qualification year end"),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "loyalty account",
                "verbose_name_plural": "loyalty accounts",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("points__gte", 0)),
                        name="rewardman_account_points_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TierHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("from_tier", models.CharField(choices=TIER_CHOICES, max_length=20, verbose_name="from tier")),
                ("to_tier", models.CharField(choices=TIER_CHOICES, max_length=20, verbose_name="to tier")),
                ("points_at_change", models.IntegerField(default=0, verbose_name="points at change")),
                ("stays_at_change", models.IntegerField(default=0, verbose_name="stays at change")),
                ("nights_at_change", models.IntegerField(default=0, verbose_name="nights at change")),
                (
                    "spend_at_change",
                    models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="spend at change"),
                ),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("AUTO_UPGRADE", "Automatic upgrade"),
                            ("RE_QUALIFICATION", "Re-qualification"),
                            ("MANUAL", "Manual"),
                        ],
                        max_length=20,
                        verbose_name="reason",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tier_history",
                        to="rewardman.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
            ],
            options={
                "verbose_name": "tier history",
                "verbose_name_plural": "tier history",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="PointsRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                (
                    "rule_type",
                    models.CharField(
                        choices=[
                            ("BONUS", "Bonus"),
                            ("MULTIPLIER", "Multiplier"),
                            ("SEASONAL", "Seasonal"),
                            ("PROMOTIONAL", "Promotional"),
                        ],
                        default="BONUS",
                        max_length=20,
                        verbose_name="rule type",
                    ),
                ),
                ("conditions", models.JSONField(blank=True, default=dict, verbose_name="conditions")),
                ("actions", models.JSONField(verbose_name="actions")),
                ("priority", models.IntegerField(default=0, help_text="Higher runs first", verbose_name="priority")),
                ("start_date", models.DateField(blank=True, null=True, verbose_name="start date")),
                ("end_date", models.DateField(blank=True, null=True, verbose_name="end date")),
                ("property_ids", models.JSONField(blank=True, default=None, null=True, verbose_name="property scope")),
                ("tier_ids", models.JSONField(blank=True, default=None, null=True, verbose_name="tier scope")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
            ],
            options={
                "verbose_name": "points rule",
                "verbose_name_plural": "points rules",
                "ordering": ["-priority", "id"],
            },
        ),
        migrations.CreateModel(
            name="Campaign",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("campaign_type", models.CharField(blank=True, max_length=50, verbose_name="campaign type")),
                ("tier_ids", models.JSONField(blank=True, default=None, null=True, verbose_name="tier scope")),
                ("property_ids", models.JSONField(blank=True, default=None, null=True, verbose_name="property scope")),
                ("start_date", models.DateField(verbose_name="start date")),
                ("end_date", models.DateField(verbose_name="end date")),
                ("rules", models.JSONField(blank=True, default=dict, verbose_name="rules")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
            ],
            options={
                "verbose_name": "campaign",
                "verbose_name_plural": "campaigns",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="Perk",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=50, unique=True, verbose_name="code")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("perk_type", models.CharField(blank=True, max_length=50, verbose_name="perk type")),
                ("conditions", models.JSONField(blank=True, default=dict, verbose_name="conditions")),
                ("tier_ids", models.JSONField(blank=True, default=None, null=True, verbose_name="tier scope")),
                ("property_ids", models.JSONField(blank=True, default=None, null=True, verbose_name="property scope")),
                ("value", models.JSONField(blank=True, default=dict, verbose_name="value")),
                ("total_capacity", models.PositiveIntegerField(blank=True, null=True, verbose_name="total capacity")),
                (
                    "max_usage_per_member",
                    models.PositiveIntegerField(blank=True, null=True, verbose_name="max usage per member"),
                ),
                (
                    "max_usage_per_stay",
                    models.PositiveIntegerField(blank=True, null=True, verbose_name="max usage per stay"),
                ),
                ("current_usage", models.PositiveIntegerField(default=0, verbose_name="current usage")),
                ("start_date", models.DateField(blank=True, null=True, verbose_name="start date")),
                ("end_date", models.DateField(blank=True, null=True, verbose_name="end date")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
            ],
            options={
                "verbose_name": "perk",
                "verbose_name_plural": "perks",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="PerkRedemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "booking_ref",
                    models.CharField(blank=True, db_index=True, max_length=100, verbose_name="booking reference"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("ACTIVE", "Active"),
                            ("USED", "Used"),
                            ("EXPIRED", "Expired"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="ACTIVE",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("value_applied", models.JSONField(blank=True, default=dict, verbose_name="value applied")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("redeemed_at", models.DateTimeField(auto_now_add=True, verbose_name="redeemed at")),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="used at")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="perk_redemptions",
                        to="rewardman.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
                (
                    "perk",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="rewardman.perk",
                        verbose_name="perk",
                    ),
                ),
            ],
            options={
                "verbose_name": "perk redemption",
                "verbose_name_plural": "perk redemptions",
                "ordering": ["-redeemed_at", "-id"],
                "indexes": [
                    models.Index(fields=["perk", "account", "status"], name="rewardman_pr_perk_acct_st_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RedemptionItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=50, unique=True, verbose_name="code")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("item_type", models.CharField(blank=True, max_length=50, verbose_name="item type")),
                ("base_points_required", models.PositiveIntegerField(verbose_name="base points required")),
                ("dynamic_pricing", models.JSONField(blank=True, default=dict, verbose_name="dynamic pricing")),
                ("total_quantity", models.PositiveIntegerField(blank=True, null=True, verbose_name="total quantity")),
                ("sold_quantity", models.PositiveIntegerField(default=0, verbose_name="sold quantity")),
                (
                    "available_quantity",
                    models.PositiveIntegerField(blank=True, null=True, verbose_name="available quantity"),
                ),
                ("tier_ids", models.JSONField(blank=True, default=None, null=True, verbose_name="tier scope")),
                ("property_ids", models.JSONField(blank=True, default=None, null=True, verbose_name="property scope")),
                (
                    "room_type_ids",
                    models.JSONField(blank=True, default=None, null=True, verbose_name="room type scope"),
                ),
                ("value", models.JSONField(blank=True, default=dict, verbose_name="value")),
                ("start_date", models.DateField(blank=True, null=True, verbose_name="start date")),
                ("end_date", models.DateField(blank=True, null=True, verbose_name="end date")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
            ],
            options={
                "verbose_name": "redemption item",
                "verbose_name_plural": "redemption items",
                "ordering": ["base_points_required", "id"],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[("EARN", "Earn"), ("REDEEM", "Redeem"), ("ADJUST", "Adjustment")],
                        max_length=20,
                        verbose_name="kind",
                    ),
                ),
                (
                    "points",
                    models.IntegerField(
                        help_text="Positive for awards, negative for redemptions",
                        verbose_name="points",
                    ),
                ),
                ("reason", models.CharField(max_length=200, verbose_name="reason")),
                ("balance_before", models.IntegerField(verbose_name="balance before")),
                ("balance_after", models.IntegerField(verbose_name="balance after")),
                (
                    "booking_ref",
                    models.CharField(blank=True, db_index=True, max_length=100, verbose_name="booking reference"),
                ),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="At most one entry per (account, key), e.g. booking:ABC123",
                        max_length=150,
                        null=True,
                        verbose_name="idempotency key",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ledger_entries",
                        to="rewardman.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
                (
                    "rule",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ledger_entries",
                        to="rewardman.pointsrule",
                        verbose_name="points rule",
                    ),
                ),
                (
                    "campaign",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ledger_entries",
                        to="rewardman.campaign",
                        verbose_name="campaign",
                    ),
                ),
                (
                    "perk",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ledger_entries",
                        to="rewardman.perk",
                        verbose_name="perk",
                    ),
                ),
                (
                    "redemption_item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ledger_entries",
                        to="rewardman.redemptionitem",
                        verbose_name="redemption item",
                    ),
                ),
            ],
            options={
                "verbose_name": "ledger entry",
                "verbose_name_plural": "ledger entries",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["account", "-created_at"], name="rewardman_le_acct_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("account", "idempotency_key"),
                        name="rewardman_ledger_unique_idempotency_key",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("balance_after", models.F("balance_before") + models.F("points"))),
                        name="rewardman_ledger_balance_chain",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RedemptionTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("booking_ref", models.CharField(blank=True, max_length=100, verbose_name="booking reference")),
                ("points_redeemed", models.PositiveIntegerField(verbose_name="points redeemed")),
                ("value_received", models.JSONField(blank=True, default=dict, verbose_name="value received")),
                (
                    "dynamic_pricing_applied",
                    models.JSONField(blank=True, default=dict, verbose_name="dynamic pricing applied"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("CONFIRMED", "Confirmed"),
                            ("USED", "Used"),
                            ("EXPIRED", "Expired"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        db_index=True,
                        default="PENDING",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expires at")),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="used at")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("redeemed_at", models.DateTimeField(auto_now_add=True, verbose_name="redeemed at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="redemptions",
                        to="rewardman.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="rewardman.redemptionitem",
                        verbose_name="item",
                    ),
                ),
                (
                    "ledger_entry",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption_transaction",
                        to="rewardman.ledgerentry",
                        verbose_name="ledger entry",
                    ),
                ),
            ],
            options={
                "verbose_name": "redemption transaction",
                "verbose_name_plural": "redemption transactions",
                "ordering": ["-redeemed_at", "-id"],
            },
        ),
    ]
