"""Rewardman models.

- tier: Tier, TierConfig, TierHistory
- account: LoyaltyAccount
- ledger: LedgerEntry (append-only)
- rules: PointsRule, Campaign
- perk: Perk, PerkRedemption
- redemption: RedemptionItem, RedemptionTransaction
"""

from rewardman.models.tier import Tier, TierChangeReason, TierConfig, TierHistory, tier_index
from rewardman.models.account import LoyaltyAccount
from rewardman.models.ledger import LedgerEntry, LedgerEntryKind
from rewardman.models.rules import Campaign, PointsRule, RuleType
from rewardman.models.perk import Perk, PerkRedemption, PerkRedemptionStatus
from rewardman.models.redemption import (
    REDEMPTION_TRANSITIONS,
    RedemptionItem,
    RedemptionStatus,
    RedemptionTransaction,
)

__all__ = [
    # Tiers
    "Tier",
    "TierChangeReason",
    "TierConfig",
    "TierHistory",
    "tier_index",
    # Accounts & ledger
    "LoyaltyAccount",
    "LedgerEntry",
    "LedgerEntryKind",
    # Earning configuration
    "PointsRule",
    "RuleType",
    "Campaign",
    # Perks
    "Perk",
    "PerkRedemption",
    "PerkRedemptionStatus",
    # Redemption catalog
    "RedemptionItem",
    "RedemptionStatus",
    "RedemptionTransaction",
    "REDEMPTION_TRANSITIONS",
]
