"""Fan-out of state announcements to live subscribers.

The engine publishes an immutable ``Announcement`` value; each subscriber
owns a bounded queue that a transport adapter drains at its own pace.
Publishing never blocks: a subscriber whose queue is full is dropped.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Announcement:
    """Point-in-time market state captured inside the exclusion scope."""

    event: str  # "init" for a new subscriber, "state" for incremental updates
    participants: Dict[str, Dict[str, Any]]
    trades: Tuple[Dict[str, Any], ...]
    ledger_head: Dict[str, Any]

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": self.event,
            "flats": self.participants,
            "trades": list(self.trades),
            "ledgerHead": self.ledger_head,
        }


@dataclass(eq=False)
class Subscription:
    """One subscriber's queue of pending announcements."""

    maxsize: int = 64
    closed: bool = False
    _queue: "queue.Queue[Announcement]" = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._queue = queue.Queue(maxsize=self.maxsize)

    def offer(self, announcement: Announcement) -> bool:
        try:
            self._queue.put_nowait(announcement)
            return True
        except queue.Full:
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[Announcement]:
        """Next announcement, or ``None`` if none arrived within ``timeout``."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()


class StateBroadcaster:
    """Thread-safe registry of subscriptions."""

    def __init__(self, queue_size: int = 64) -> None:
        self._queue_size = queue_size
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, initial: Announcement) -> Subscription:
        """Register a subscriber whose first message is ``initial``."""
        sub = Subscription(maxsize=self._queue_size)
        sub.offer(initial)
        with self._lock:
            self._subscriptions.append(sub)
        logger.info("Subscriber attached. Total subscribers: %d", self.subscriber_count())
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.closed = True
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)
        logger.info("Subscriber detached. Total subscribers: %d", self.subscriber_count())

    def publish(self, announcement: Announcement) -> int:
        """Offer ``announcement`` to every subscriber; return how many accepted it."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        delivered = 0
        for sub in subscriptions:
            if sub.offer(announcement):
                delivered += 1
            else:
                logger.warning("Subscriber queue full, dropping subscriber")
                self.unsubscribe(sub)
        return delivered

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)
