"""Synthetic trade generation: random pairing against current balances.

This is not an order-matching algorithm.  Each attempt draws a random
seller/buyer pair and a random amount, then settles through
``ParticipantStore.transfer_credits``.  Failed attempts are expected and
absorbed silently.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from engine.config import MarketConfig
from engine.errors import InsufficientCredits, MarketError
from engine.participants import ParticipantStore
from engine.schemas import Trade

logger = logging.getLogger(__name__)


@dataclass
class TopUpPolicy:
    """Demo-only credit grant applied when a random buyer cannot pay.

    It adds ``amount`` credits to every participant, which breaks credit
    conservation; disable it to observe a closed economy.
    """

    enabled: bool = True
    amount: float = 20.0

    @classmethod
    def from_config(cls, config: MarketConfig) -> "TopUpPolicy":
        return cls(enabled=config.top_up_enabled, amount=config.top_up_amount)


class TradeMatcher:
    """Proposes and settles zero or more trades per tick."""

    def __init__(
        self,
        participants: ParticipantStore,
        config: MarketConfig,
        rng: np.random.Generator,
        top_up: Optional[TopUpPolicy] = None,
    ) -> None:
        self._participants = participants
        self._config = config
        self._rng = rng
        self.top_up = top_up if top_up is not None else TopUpPolicy.from_config(config)
        self.top_up_events = 0

    def pick_pair(self) -> Optional[Tuple[str, str]]:
        """Uniform seller and buyer; ``None`` when they cannot be made distinct."""
        ids = self._participants.ids()
        if len(ids) < 2:
            return None
        seller = ids[int(self._rng.integers(len(ids)))]
        buyer = ids[int(self._rng.integers(len(ids)))]
        tries = 0
        while seller == buyer and tries < self._config.pair_attempts:
            buyer = ids[int(self._rng.integers(len(ids)))]
            tries += 1
        if seller == buyer:
            return None
        return seller, buyer

    def draw_amount(self) -> float:
        cfg = self._config
        return round(float(self._rng.uniform(cfg.trade_amount_min, cfg.trade_amount_max)), cfg.precision)

    def attempt(self, batch: List[Trade]) -> Optional[Trade]:
        """One trade attempt; on success the trade is appended to ``batch``."""
        pair = self.pick_pair()
        if pair is None:
            return None
        seller, buyer = pair
        amount = self.draw_amount()
        try:
            trade = self._settle(seller, buyer, amount)
        except MarketError as e:
            logger.debug("Trade attempt %s -> %s abandoned: %s", seller, buyer, e)
            return None
        batch.append(trade)
        return trade

    def _settle(self, seller: str, buyer: str, amount: float) -> Trade:
        try:
            return self._participants.transfer_credits(seller, buyer, amount)
        except InsufficientCredits:
            if not self.top_up.enabled:
                raise
        self._participants.top_up_all(self.top_up.amount)
        self.top_up_events += 1
        return self._participants.transfer_credits(seller, buyer, amount)

    def run_tick(self) -> List[Trade]:
        """Retry until one trade settles (bounded), then a few extra attempts."""
        batch: List[Trade] = []
        attempts = 0
        while attempts < self._config.settle_attempts and not batch:
            self.attempt(batch)
            attempts += 1
        for _ in range(self._config.extra_trades):
            self.attempt(batch)
        return batch
