"""Rewardman exceptions."""


class BaseError(Exception):
    """
    Structured exception with a machine-readable code.

    Subclasses provide `_default_messages` so callers only pass the code
    and any context they want to surface in `data`.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class RewardmanError(BaseError):
    """
    Structured exception for loyalty engine operations.

    Usage:
        try:
            LedgerService.redeem_points(account.pk, 500, "Voucher")
        except RewardmanError as e:
            if e.code == "INSUFFICIENT_POINTS":
                show_balance(e.data["available"])
    """

    _default_messages = {
        "ACCOUNT_NOT_FOUND": "Loyalty account not found",
        "TIER_CONFIG_NOT_FOUND": "Tier configuration not found",
        "PERK_NOT_FOUND": "Perk not found or inactive",
        "ITEM_NOT_FOUND": "Redemption item not found",
        "TRANSACTION_NOT_FOUND": "Redemption transaction not found",
        "CAMPAIGN_NOT_FOUND": "Campaign not found",
        "INVALID_POINTS": "Points must be positive",
        "INVALID_RULE": "Malformed rule definition",
        "INVALID_STATUS": "Invalid status",
        "INSUFFICIENT_POINTS": "Insufficient points",
        "PERK_CAPACITY_REACHED": "Perk capacity limit reached",
        "OUT_OF_STOCK": "Redemption item out of stock",
        "REDEMPTION_INVALID": "Redemption not allowed",
        "INVALID_STATUS_TRANSITION": "Status transition not allowed",
        "LEDGER_IMMUTABLE": "Ledger entries cannot be modified or deleted",
    }

    _categories = {
        "ACCOUNT_NOT_FOUND": "not_found",
        "TIER_CONFIG_NOT_FOUND": "not_found",
        "PERK_NOT_FOUND": "not_found",
        "ITEM_NOT_FOUND": "not_found",
        "TRANSACTION_NOT_FOUND": "not_found",
        "CAMPAIGN_NOT_FOUND": "not_found",
        "INVALID_POINTS": "invalid_input",
        "INVALID_RULE": "invalid_input",
        "INVALID_STATUS": "invalid_input",
    }

    @property
    def category(self) -> str:
        """Taxonomy bucket: not_found, invalid_input or invalid_state."""
        return self._categories.get(self.code, "invalid_state")
