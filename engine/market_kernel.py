"""MarketKernel -- facade owning participants, matcher, ledger, clock and broadcaster."""

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Iterator, List, Optional

import numpy as np

from engine.broadcast import Announcement, StateBroadcaster, Subscription
from engine.clock import SimulationClock, capture
from engine.config import MarketConfig
from engine.errors import EngineBusy
from engine.ledger import Ledger
from engine.matcher import TopUpPolicy, TradeMatcher
from engine.metrics import compute_market_metrics
from engine.participants import ParticipantStore, TradeIdGenerator
from engine.schemas import Participant, Trade, now_ms
from engine.validator import ChainReport, inspect_chain

if TYPE_CHECKING:
    from engine.store import Store

logger = logging.getLogger(__name__)


class MarketKernel:
    """High-level facade over the simulation-and-ledger engine.

    Provides:
    - Point-in-time queries (participants, ledger, head, metrics)
    - Manual trade settlement and manual perturbation
    - Subscriptions to state announcements
    - The periodic SimulationClock

    One re-entrant lock serializes every mutation and every snapshot.  The
    clock waits on it without a timeout; external callers wait at most
    ``config.lock_timeout`` seconds and then get ``EngineBusy``.
    """

    def __init__(
        self,
        config: Optional[MarketConfig] = None,
        store: Optional["Store"] = None,
        participants: Optional[Iterable[Participant]] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config or MarketConfig()
        self._rng = np.random.default_rng(self.config.random_seed)
        self._lock = threading.RLock()
        self._trade_ids = TradeIdGenerator(clock)
        if participants is None:
            self.participants = ParticipantStore.create(
                self.config, self._rng, trade_ids=self._trade_ids, clock=clock,
            )
        else:
            self.participants = ParticipantStore(
                participants, self.config, self._rng, trade_ids=self._trade_ids, clock=clock,
            )
        self.ledger = Ledger(rng=self._rng, store=store, clock=clock)
        self.matcher = TradeMatcher(
            self.participants, self.config, self._rng, top_up=TopUpPolicy.from_config(self.config),
        )
        self.broadcaster = StateBroadcaster(queue_size=self.config.subscriber_queue_size)
        self.clock = SimulationClock(
            self.participants,
            self.matcher,
            self.ledger,
            self.broadcaster,
            self._lock,
            period=self.config.tick_period,
        )

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.config.lock_timeout):
            raise EngineBusy(f"Engine busy: lock not acquired within {self.config.lock_timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    # ── Queries ───────────────────────────────────

    def get_participants(self) -> Dict[str, Dict]:
        with self._exclusive():
            return self.participants.snapshot()

    def get_ledger(self) -> List[Dict]:
        with self._exclusive():
            return self.ledger.to_dicts()

    def get_head(self) -> Dict:
        with self._exclusive():
            return self.ledger.head().to_dict()

    def get_metrics(self) -> Dict:
        with self._exclusive():
            participants = self.participants.snapshot()
            chain = self.ledger.to_dicts()
            top_up_total = self.participants.top_up_total
            top_up_events = self.matcher.top_up_events
        metrics = compute_market_metrics(participants, chain)
        metrics["top_up_total"] = top_up_total
        metrics["top_up_events"] = top_up_events
        metrics["subscribers"] = self.broadcaster.subscriber_count()
        return metrics

    def verify_ledger(self) -> ChainReport:
        """Run the chain validator over the engine's own ledger."""
        with self._exclusive():
            chain = self.ledger.all()
        report = inspect_chain(chain)
        if not report.valid:
            logger.warning(
                "Ledger integrity violation at block %d: %s",
                report.violation.index, report.violation.reason,
            )
        return report

    # ── Manual operations ─────────────────────────

    def tick(self) -> Announcement:
        """Run one clock tick synchronously."""
        return self.clock.tick()

    def submit_trade(self, seller_id: str, buyer_id: str, amount: float) -> Trade:
        """Settle a manual trade into its own block and announce it.

        Raises NotFound, SelfTrade, InvalidAmount, InsufficientCredits or
        EngineBusy; on any rejection neither balances nor the ledger change.
        If the block cannot be recorded the transfer is reverted and the
        store error propagates.
        """
        with self._exclusive():
            trade = self.participants.transfer_credits(seller_id, buyer_id, amount, origin="M")
            try:
                self.ledger.append([trade])
            except Exception:
                self.participants.revert([trade])
                raise
            self.broadcaster.publish(capture("state", self.participants, [trade], self.ledger))
        logger.info("Manual trade %s: %s -> %s %.6f", trade.trade_id, seller_id, buyer_id, trade.amount_kwh)
        return trade

    def perturb(self, participant_id: str, kind: str, magnitude: float) -> Dict:
        """Raise a participant's generation (``spike``) or demand (``drain``)."""
        with self._exclusive():
            participant = self.participants.perturb(participant_id, kind, magnitude)
            return participant.to_dict()

    # ── Subscriptions ─────────────────────────────

    def subscribe(self) -> Subscription:
        """Attach a subscriber; its first message is a full ``init`` snapshot."""
        with self._exclusive():
            initial = capture("init", self.participants, [], self.ledger)
            return self.broadcaster.subscribe(initial)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.broadcaster.unsubscribe(subscription)
