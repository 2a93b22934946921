"""Rewardman services.

- accounts: AccountService (enrollment, lifetime metrics, member profile)
- ledger: LedgerService (award/redeem, append-only entries)
- tiers: TierService (resolution, progression, re-qualification)
- points: PointsService (earning calculation, booking awards)
- campaigns: CampaignService
- perks: PerkService
- redemptions: RedemptionService
- fraud: FraudService
- analytics: AnalyticsService

Import the service classes from their modules or lazily from `rewardman`.
"""
