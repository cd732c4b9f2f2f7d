"""Participant table: tick physics, credit transfers and manual perturbations."""

import itertools
import logging
import math
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np

from engine.config import MarketConfig
from engine.errors import InsufficientCredits, InvalidAction, InvalidAmount, NotFound, SelfTrade
from engine.schemas import Participant, Trade, now_ms

logger = logging.getLogger(__name__)


class TradeIdGenerator:
    """Monotonically unique trade ids: ``<origin><ms>-<sequence>``.

    The sequence is shared by every origin so no two trades in the
    process lifetime collide, however many land in the same millisecond.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._seq = itertools.count(1)

    def next(self, origin: str = "T") -> str:
        return f"{origin}{self._clock()}-{next(self._seq):06d}"


class PerturbationKind(str, Enum):
    SPIKE = "spike"
    DRAIN = "drain"

    @classmethod
    def parse(cls, value: str) -> "PerturbationKind":
        aliases = {
            "spike": cls.SPIKE,
            "increase-generation": cls.SPIKE,
            "drain": cls.DRAIN,
            "increase-demand": cls.DRAIN,
        }
        try:
            return aliases[str(value).strip().lower()]
        except KeyError:
            raise InvalidAction(f"Unknown action {value!r}") from None


class ParticipantStore:
    """Owns every participant; the only place their state is mutated.

    Iteration order equals creation order.  The store performs no locking
    of its own: callers serialize access through the kernel's exclusion.
    """

    def __init__(
        self,
        participants: Iterable[Participant],
        config: MarketConfig,
        rng: np.random.Generator,
        trade_ids: Optional[TradeIdGenerator] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._participants: Dict[str, Participant] = {}
        for p in participants:
            if p.id in self._participants:
                raise ValueError(f"Duplicate participant id {p.id!r}")
            self._participants[p.id] = p
        self._config = config
        self._rng = rng
        self._clock = clock
        self._trade_ids = trade_ids or TradeIdGenerator(clock)
        self.top_up_total: float = 0.0

    @classmethod
    def create(
        cls,
        config: MarketConfig,
        rng: np.random.Generator,
        trade_ids: Optional[TradeIdGenerator] = None,
        clock: Callable[[], int] = now_ms,
    ) -> "ParticipantStore":
        """Create ``config.num_participants`` flats with randomized initial values."""
        nd = config.precision
        participants = []
        for i in range(1, config.num_participants + 1):
            participants.append(Participant(
                id=f"{config.id_prefix}{i}",
                generation_kw=round(float(rng.uniform(0.0, config.initial_rate_max_kw)), nd),
                demand_kw=round(float(rng.uniform(0.0, config.initial_rate_max_kw)), nd),
                battery_capacity_kwh=config.battery_capacity_kwh,
                soc_kwh=round(float(rng.uniform(config.initial_soc_min_kwh, config.initial_soc_max_kwh)), nd),
                credits=round(float(rng.uniform(config.initial_credits_min, config.initial_credits_max)), nd),
            ))
        return cls(participants, config, rng, trade_ids=trade_ids, clock=clock)

    # ── Queries ───────────────────────────────────

    def get(self, participant_id: str) -> Participant:
        try:
            return self._participants[participant_id]
        except KeyError:
            raise NotFound(participant_id) from None

    def all(self) -> List[Participant]:
        return list(self._participants.values())

    def ids(self) -> List[str]:
        return list(self._participants)

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def snapshot(self) -> Dict[str, Dict]:
        """Point-in-time copy of the table, keyed by id."""
        return {pid: p.to_dict() for pid, p in self._participants.items()}

    def total_credits(self) -> float:
        return sum(p.credits for p in self._participants.values())

    # ── Mutations ─────────────────────────────────

    def apply_tick_physics(self) -> None:
        """Random-walk generation and demand, then integrate the battery."""
        cfg = self._config
        nd = cfg.precision
        for p in self._participants.values():
            p.generation_kw = round(max(0.0, p.generation_kw + self._step()), nd)
            p.demand_kw = round(max(0.0, p.demand_kw + self._step()), nd)
            net = p.generation_kw - p.demand_kw
            soc = p.soc_kwh + net * cfg.dt
            p.soc_kwh = round(min(p.battery_capacity_kwh, max(0.0, soc)), nd)

    def _step(self) -> float:
        return (float(self._rng.random()) - 0.5) * 2.0 * self._config.rate_step_kw

    def transfer_credits(
        self, seller_id: str, buyer_id: str, amount: float, origin: str = "T"
    ) -> Trade:
        """Move ``amount`` credits from buyer to seller and return the Trade.

        Raises NotFound, SelfTrade, InvalidAmount or InsufficientCredits;
        nothing is mutated unless the transfer succeeds.
        """
        seller = self.get(seller_id)
        buyer = self.get(buyer_id)
        if seller_id == buyer_id:
            raise SelfTrade(seller_id)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidAmount(f"Amount must be a number, got {amount!r}")
        if not math.isfinite(amount) or amount <= 0:
            raise InvalidAmount(f"Amount must be positive, got {amount!r}")

        nd = self._config.precision
        credits = round(float(amount), nd)
        if credits <= 0:
            raise InvalidAmount(f"Amount {amount!r} rounds to zero")
        if buyer.credits < credits:
            raise InsufficientCredits(buyer_id, buyer.credits, credits)

        seller.credits = round(seller.credits + credits, nd)
        buyer.credits = round(buyer.credits - credits, nd)
        return Trade(
            trade_id=self._trade_ids.next(origin),
            seller=seller_id,
            buyer=buyer_id,
            amount_kwh=credits,
            energy_credits=credits,
            timestamp=self._clock(),
        )

    def revert(self, trades: Iterable[Trade]) -> None:
        """Undo settled transfers, newest first, when their block could not be recorded."""
        nd = self._config.precision
        batch = list(trades)
        for trade in reversed(batch):
            seller = self.get(trade.seller)
            buyer = self.get(trade.buyer)
            seller.credits = round(seller.credits - trade.energy_credits, nd)
            buyer.credits = round(buyer.credits + trade.energy_credits, nd)
        logger.warning("Reverted %d unrecorded trade(s)", len(batch))

    def top_up_all(self, amount: float) -> float:
        """Grant every participant ``amount`` credits; return the total added."""
        nd = self._config.precision
        for p in self._participants.values():
            p.credits = round(p.credits + amount, nd)
        added = amount * len(self._participants)
        self.top_up_total += added
        logger.info("Demo top-up: +%s credits to %d participants", amount, len(self._participants))
        return added

    def perturb(self, participant_id: str, kind: str, magnitude: float) -> Participant:
        """Add ``magnitude`` to generation (spike) or demand (drain)."""
        participant = self.get(participant_id)
        action = PerturbationKind.parse(kind)
        if isinstance(magnitude, bool) or not isinstance(magnitude, (int, float)):
            raise InvalidAmount(f"Magnitude must be a number, got {magnitude!r}")
        if not math.isfinite(magnitude) or magnitude < 0:
            raise InvalidAmount(f"Magnitude must be non-negative, got {magnitude!r}")
        nd = self._config.precision
        if action is PerturbationKind.SPIKE:
            participant.generation_kw = round(participant.generation_kw + magnitude, nd)
        else:
            participant.demand_kw = round(participant.demand_kw + magnitude, nd)
        return participant
