"""
Rewardman signals — public event API.

Emitted signals:
- points_awarded: Emitted by LedgerService.award_points() after commit
- points_redeemed: Emitted by LedgerService.redeem_points() after commit
- tier_changed: Emitted by TierService.check_and_update_tier() after commit
"""

from django.dispatch import Signal

# Ledger signals (emitted by services)
points_awarded = Signal()  # sender=LoyaltyAccount, entry=LedgerEntry
points_redeemed = Signal()  # sender=LoyaltyAccount, entry=LedgerEntry

# Tier signals
tier_changed = Signal()  # sender=LoyaltyAccount, account=LoyaltyAccount, history=TierHistory
