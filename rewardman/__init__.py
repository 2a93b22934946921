"""
Django Rewardman - Loyalty Rewards Engine.

Usage:
    from rewardman import AccountService, LedgerService, PointsService, TierService

    account = AccountService.create_or_get_account("user-42")
    calc = PointsService.calculate_points(account.pk, room_revenue=..., ...)
    LedgerService.award_points(account.pk, calc.total_points, "Booking #ABC123")
    TierService.process_tier_requalification()
"""

_SERVICES = {
    "AccountService": "rewardman.services.accounts",
    "AnalyticsService": "rewardman.services.analytics",
    "CampaignService": "rewardman.services.campaigns",
    "FraudService": "rewardman.services.fraud",
    "LedgerService": "rewardman.services.ledger",
    "PerkService": "rewardman.services.perks",
    "PointsService": "rewardman.services.points",
    "RedemptionService": "rewardman.services.redemptions",
    "TierService": "rewardman.services.tiers",
}


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module

        return getattr(import_module(_SERVICES[name]), name)
    if name == "RewardmanError":
        from rewardman.exceptions import RewardmanError

        return RewardmanError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [*_SERVICES, "RewardmanError"]
__version__ = "0.1.0"
