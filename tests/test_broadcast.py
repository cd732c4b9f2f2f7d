"""Tests for StateBroadcaster fan-out and subscriber queues."""

from engine.broadcast import Announcement, StateBroadcaster, Subscription


def _announcement(event="state", n=0):
    return Announcement(
        event=event,
        participants={"F1": {"id": "F1", "credits": float(n)}},
        trades=(),
        ledger_head={"index": n},
    )


class TestSubscription:
    def test_get_times_out_with_none(self):
        assert Subscription(maxsize=1).get(timeout=0.01) is None

    def test_offer_refused_when_full(self):
        sub = Subscription(maxsize=1)
        assert sub.offer(_announcement())
        assert not sub.offer(_announcement())
        assert sub.pending() == 1


class TestStateBroadcaster:
    def test_initial_announcement_comes_first(self):
        broadcaster = StateBroadcaster()
        sub = broadcaster.subscribe(_announcement("init"))
        broadcaster.publish(_announcement("state", 1))
        assert sub.get(timeout=0.1).event == "init"
        second = sub.get(timeout=0.1)
        assert second.event == "state"
        assert second.ledger_head == {"index": 1}

    def test_publish_reaches_every_subscriber_in_order(self):
        broadcaster = StateBroadcaster()
        subs = [broadcaster.subscribe(_announcement("init")) for _ in range(3)]
        for n in range(1, 4):
            assert broadcaster.publish(_announcement(n=n)) == 3
        for sub in subs:
            sub.get(timeout=0.1)
            assert [sub.get(timeout=0.1).ledger_head["index"] for _ in range(3)] == [1, 2, 3]

    def test_unsubscribe_stops_delivery(self):
        broadcaster = StateBroadcaster()
        sub = broadcaster.subscribe(_announcement("init"))
        broadcaster.unsubscribe(sub)
        assert sub.closed
        assert broadcaster.subscriber_count() == 0
        assert broadcaster.publish(_announcement()) == 0

    def test_slow_subscriber_is_dropped(self):
        broadcaster = StateBroadcaster(queue_size=2)
        slow = broadcaster.subscribe(_announcement("init"))
        fast = broadcaster.subscribe(_announcement("init"))
        fast.get(timeout=0.1)
        broadcaster.publish(_announcement(n=1))
        fast.get(timeout=0.1)
        assert broadcaster.publish(_announcement(n=2)) == 1
        assert slow.closed
        assert not fast.closed
        assert broadcaster.subscriber_count() == 1

    def test_message_shape(self):
        message = _announcement("init", 3).to_message()
        assert message == {
            "type": "init",
            "flats": {"F1": {"id": "F1", "credits": 3.0}},
            "trades": [],
            "ledgerHead": {"index": 3},
        }
