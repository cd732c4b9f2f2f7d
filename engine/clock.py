"""SimulationClock -- drives periodic ticks on a background thread."""

import logging
import threading
from enum import Enum
from typing import Optional

from engine.broadcast import Announcement, StateBroadcaster
from engine.ledger import Ledger
from engine.matcher import TradeMatcher
from engine.participants import ParticipantStore

logger = logging.getLogger(__name__)


class ClockState(str, Enum):
    IDLE = "idle"
    TICKING = "ticking"


def capture(event: str, participants: ParticipantStore, trades, ledger: Ledger) -> Announcement:
    """Build an announcement from current state.  Call inside the exclusion."""
    return Announcement(
        event=event,
        participants=participants.snapshot(),
        trades=tuple(t.to_dict() for t in trades),
        ledger_head=ledger.head().to_dict(),
    )


class SimulationClock:
    """Idle -> Ticking -> Idle, once per ``period`` seconds.

    Tick phases, all inside the shared exclusion lock:
        physics -> matching -> append (non-empty batch) -> announce

    Ticks never overlap, so announce order equals ledger append order.
    """

    def __init__(
        self,
        participants: ParticipantStore,
        matcher: TradeMatcher,
        ledger: Ledger,
        broadcaster: StateBroadcaster,
        lock: threading.RLock,
        period: float = 2.0,
    ) -> None:
        self._participants = participants
        self._matcher = matcher
        self._ledger = ledger
        self._broadcaster = broadcaster
        self._lock = lock
        self.period = period
        self.state = ClockState.IDLE
        self.tick_count = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> Announcement:
        """Run one full tick and return what was announced."""
        with self._lock:
            self.state = ClockState.TICKING
            try:
                self._participants.apply_tick_physics()
                trades = self._matcher.run_tick()
                if trades:
                    try:
                        self._ledger.append(trades)
                    except Exception:
                        self._participants.revert(trades)
                        raise
                announcement = capture("state", self._participants, trades, self._ledger)
                self._broadcaster.publish(announcement)
                self.tick_count += 1
            finally:
                self.state = ClockState.IDLE
        logger.debug("Tick %d: %d trades", self.tick_count, len(announcement.trades))
        return announcement

    # ── Background loop ───────────────────────────

    def start(self) -> threading.Thread:
        """Start the background tick thread (idempotent) and return it."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="sim-clock")
        self._thread.start()
        logger.info("Simulation clock started (period %.2fs)", self.period)
        return self._thread

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        logger.info("Simulation clock stopped after %d ticks", self.tick_count)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.wait(timeout=self.period):
            try:
                self.tick()
            except Exception:
                logger.exception("Tick failed; clock continues")
