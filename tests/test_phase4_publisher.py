"""
Tests for Phase 4: Subscriber fan-out.

CRITICAL TESTS:
1. test_drop_oldest - Full queue evicts the oldest notification
2. test_slow_subscriber_isolated - One full queue never affects others
3. test_delivery_order - Per-subscriber order equals publish order
"""

import logging
import threading

import pytest

from pss_live.core.errors import DecodeError, ErrorCode
from pss_live.core.state import MatchState
from pss_live.protocol.events import Round, Score
from pss_live.streaming.publisher import (
    ERROR,
    EVENT,
    STATE,
    EventPublisher,
    StateSnapshot,
    Subscription,
    category_of,
)


class TestSubscription:
    """Test a single bounded queue."""

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            Subscription('bad', maxsize=0)

    def test_unknown_category(self):
        with pytest.raises(ValueError, match="Unknown notification categories"):
            Subscription('bad', categories=['metrics'])

    def test_drop_oldest(self):
        """
        CRITICAL TEST: Oldest notification goes when the queue is full.
        """
        sub = Subscription('slow', maxsize=2)
        for number in (1, 2, 3):
            assert sub.offer(Round(number))

        assert sub.dropped == 1
        assert sub.drain() == [Round(2), Round(3)]

    def test_overflow_warning_tagged(self, caplog):
        """First drop logs one E4002 warning; later drops are only counted."""
        sub = Subscription('slow', maxsize=1)
        with caplog.at_level(logging.WARNING, logger='pss_live.streaming.publisher'):
            for number in (1, 2, 3):
                sub.offer(Round(number))

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert ErrorCode.E4002_SUBSCRIBER_OVERFLOW.value in warnings[0].getMessage()
        assert sub.dropped == 2

    def test_get_timeout(self):
        sub = Subscription('idle')
        assert sub.get(timeout=0.05) is None
        assert sub.get_nowait() is None

    def test_close_wakes_reader(self):
        sub = Subscription('closing')
        result = []

        def reader():
            result.append(sub.get(timeout=5.0))

        thread = threading.Thread(target=reader)
        thread.start()
        sub.close()
        thread.join(timeout=2.0)

        assert result == [None]
        assert not sub.offer(Round(1))

    def test_iterate_until_closed(self):
        sub = Subscription('iter')
        sub.offer(Round(1))
        sub.offer(Round(2))
        sub.close()
        assert list(sub) == [Round(1), Round(2)]

    def test_stats(self):
        sub = Subscription('stats', maxsize=1)
        sub.offer(Round(1))
        sub.offer(Round(2))
        sub.get_nowait()
        stats = sub.stats()
        assert stats['offered'] == 2
        assert stats['delivered'] == 1
        assert stats['dropped'] == 1
        assert stats['queued'] == 0


class TestCategories:
    """Test notification categories."""

    def test_category_of(self):
        assert category_of(Round(1)) == EVENT
        assert category_of(StateSnapshot(MatchState(), Round(1))) == STATE
        assert category_of(DecodeError(ErrorCode.E2001_UNKNOWN_TAG)) == ERROR

    def test_filter(self, publisher):
        errors_only = publisher.subscribe('errors', categories=[ERROR])
        publisher.publish(Round(1))
        publisher.publish(DecodeError(ErrorCode.E2001_UNKNOWN_TAG, tag='zz1'))

        items = errors_only.drain()
        assert len(items) == 1
        assert items[0].tag == 'zz1'


class TestEventPublisher:
    """Test fan-out to several subscribers."""

    def test_delivery_order(self, publisher):
        """
        CRITICAL TEST: Each subscriber sees publish order.
        """
        a = publisher.subscribe('a')
        b = publisher.subscribe('b')
        events = [Round(1), Score(1, 3), Round(2)]
        for event in events:
            assert publisher.publish(event) == 2

        assert a.drain() == events
        assert b.drain() == events

    def test_slow_subscriber_isolated(self, publisher):
        """
        CRITICAL TEST: A full queue drops only for its owner.
        """
        slow = publisher.subscribe('slow', maxsize=1)
        fast = publisher.subscribe('fast', maxsize=100)

        for number in range(10):
            publisher.publish(Round(number))

        assert slow.dropped == 9
        assert len(fast.drain()) == 10
        assert fast.dropped == 0
        assert publisher.stats()['dropped'] == 9

    def test_default_queue_size(self):
        publisher = EventPublisher(queue_size=3)
        assert publisher.subscribe('x').maxsize == 3
        publisher.close()

    def test_unsubscribe(self, publisher):
        sub = publisher.subscribe('gone')
        publisher.unsubscribe(sub)
        assert publisher.publish(Round(1)) == 0
        assert sub.closed

    def test_no_subscribers(self, publisher):
        assert publisher.publish(Round(1)) == 0

    def test_callback_delivery(self, publisher):
        received = []
        done = threading.Event()

        def on_item(item):
            received.append(item)
            if len(received) == 2:
                done.set()

        publisher.subscribe_callback(on_item, name='cb')
        publisher.publish(Round(1))
        publisher.publish(Round(2))

        assert done.wait(timeout=2.0)
        assert received == [Round(1), Round(2)]

    def test_failing_callback_keeps_delivering(self, publisher):
        received = []
        done = threading.Event()

        def on_item(item):
            if item == Round(1):
                raise RuntimeError("overlay crashed")
            received.append(item)
            done.set()

        worker = publisher.subscribe_callback(on_item, name='flaky')
        publisher.publish(Round(1))
        publisher.publish(Round(2))

        assert done.wait(timeout=2.0)
        assert received == [Round(2)]
        assert worker.callback_errors == 1

    def test_close_stops_everything(self):
        publisher = EventPublisher()
        sub = publisher.subscribe('a')
        worker = publisher.subscribe_callback(lambda item: None, name='b')
        publisher.close()
        assert sub.closed
        assert worker.subscription.closed
