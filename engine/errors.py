"""Typed rejections raised by the market engine.

Tick-internal activity absorbs these; manual requests surface them to the
caller.  ``code`` is a stable machine-readable string used by the API layer.
"""


class MarketError(Exception):
    """Base class for every engine rejection."""

    code = "market_error"


class NotFound(MarketError):
    code = "not_found"

    def __init__(self, participant_id: str) -> None:
        super().__init__(f"Participant {participant_id!r} not found")
        self.participant_id = participant_id


class InsufficientCredits(MarketError):
    code = "insufficient_credits"

    def __init__(self, buyer_id: str, balance: float, amount: float) -> None:
        super().__init__(
            f"Buyer {buyer_id!r} has insufficient credits ({balance} < {amount})"
        )
        self.buyer_id = buyer_id
        self.balance = balance
        self.amount = amount


class InvalidAmount(MarketError):
    code = "invalid_amount"


class InvalidAction(MarketError):
    code = "invalid_action"


class SelfTrade(MarketError):
    code = "self_trade"

    def __init__(self, participant_id: str) -> None:
        super().__init__(f"Seller and buyer must differ (both {participant_id!r})")
        self.participant_id = participant_id


class EngineBusy(MarketError):
    code = "engine_busy"
