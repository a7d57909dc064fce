"""
Fan-out of events, state snapshots and diagnostics to subscribers.

Every subscriber owns a bounded queue. Publishing never blocks: when a
queue is full its oldest notification is dropped (drop-oldest) and the
subscriber's ``dropped`` counter goes up. Other subscribers and the
ingestion pipeline are unaffected.

Per-subscriber delivery order equals publish order.

Example:
    publisher = EventPublisher()
    overlay = publisher.subscribe('overlay', maxsize=64)

    publisher.publish(event)
    item = overlay.get(timeout=1.0)

    # Or push-style, delivered from a background thread
    publisher.subscribe_callback(print, name='console')
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Union

from ..core.errors import DecodeError, ErrorCode
from ..core.state import MatchState
from ..protocol.events import StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


@dataclass(frozen=True)
class StateSnapshot:
    """MatchState copy taken right after ``event`` was applied."""
    state: MatchState
    event: StreamEvent
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        return {
            'type': 'state',
            'event': self.event.kind.value,
            'timestamp': self.timestamp,
            'state': self.state.to_dict(),
        }


Notification = Union[StreamEvent, StateSnapshot, DecodeError]

# Notification categories for subscription filters
EVENT = 'event'
STATE = 'state'
ERROR = 'error'
CATEGORIES = frozenset({EVENT, STATE, ERROR})


def category_of(item: Notification) -> str:
    if isinstance(item, StateSnapshot):
        return STATE
    if isinstance(item, DecodeError):
        return ERROR
    return EVENT


class Subscription:
    """
    Subscription handle with its own bounded drop-oldest queue.

    Thread-safe: the pipeline offers from the ingestion thread, the
    consumer reads from its own.
    """

    def __init__(
        self,
        name: str,
        maxsize: int = DEFAULT_QUEUE_SIZE,
        categories: Optional[Iterable[str]] = None,
    ):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")

        self.name = name
        self.maxsize = maxsize
        self.categories: FrozenSet[str] = frozenset(categories) if categories else CATEGORIES
        unknown = self.categories - CATEGORIES
        if unknown:
            raise ValueError(f"Unknown notification categories: {sorted(unknown)}")

        self._queue: deque = deque(maxlen=maxsize)
        self._cond = threading.Condition()
        self._closed = False

        # Statistics
        self.offered = 0
        self.delivered = 0
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def wants(self, item: Notification) -> bool:
        return category_of(item) in self.categories

    def offer(self, item: Notification) -> bool:
        """
        Enqueue without blocking.

        Returns:
            False if the subscription is closed, True otherwise
        """
        with self._cond:
            if self._closed:
                return False
            if len(self._queue) == self.maxsize:
                # deque(maxlen) evicts the oldest on append
                self.dropped += 1
                if self.dropped == 1:
                    logger.warning(
                        f"[{ErrorCode.E4002_SUBSCRIBER_OVERFLOW.value}] "
                        f"Subscriber '{self.name}' queue full, dropping oldest notifications"
                    )
            self._queue.append(item)
            self.offered += 1
            self._cond.notify()
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[Notification]:
        """
        Wait for the next notification.

        Returns:
            The notification, or None on timeout or once closed and empty
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._queue or self._closed, timeout):
                return None
            if not self._queue:
                return None
            self.delivered += 1
            return self._queue.popleft()

    def get_nowait(self) -> Optional[Notification]:
        return self.get(timeout=0)

    def drain(self) -> List[Notification]:
        """Remove and return everything currently queued."""
        with self._cond:
            items = list(self._queue)
            self._queue.clear()
            self.delivered += len(items)
            return items

    def close(self) -> None:
        """Stop accepting notifications and wake any waiting reader."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def __iter__(self) -> Iterator[Notification]:
        """Iterate until closed and drained."""
        while True:
            item = self.get()
            if item is None:
                return
            yield item

    def stats(self) -> dict:
        return {
            'name': self.name,
            'queued': len(self),
            'offered': self.offered,
            'delivered': self.delivered,
            'dropped': self.dropped,
        }


class CallbackSubscriber:
    """
    Push-style subscriber: a daemon thread pulls from a Subscription and
    calls ``callback`` for each notification.

    A failing callback is logged and delivery continues.
    """

    def __init__(
        self,
        subscription: Subscription,
        callback: Callable[[Notification], None],
        poll_interval: float = 0.5,
    ):
        self.subscription = subscription
        self.callback = callback
        self.poll_interval = poll_interval
        self.callback_errors = 0
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._deliver_loop,
            name=f"subscriber-{self.subscription.name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Close the subscription and let the thread finish the backlog."""
        self.subscription.close()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _deliver_loop(self) -> None:
        sub = self.subscription
        while True:
            item = sub.get(timeout=self.poll_interval)
            if item is None:
                if sub.closed and not len(sub):
                    return
                continue
            try:
                self.callback(item)
            except Exception:
                self.callback_errors += 1
                logger.exception(f"Subscriber '{sub.name}' callback failed")


class EventPublisher:
    """
    Relay notifications to explicitly registered subscriptions.

    There is no global registry: whoever creates the publisher hands out
    the subscription handles.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []
        self._workers: Dict[str, CallbackSubscriber] = {}

    def subscribe(
        self,
        name: str,
        maxsize: Optional[int] = None,
        categories: Optional[Iterable[str]] = None,
    ) -> Subscription:
        """Register a pull-style subscription."""
        sub = Subscription(name, maxsize or self.queue_size, categories)
        with self._lock:
            self._subscriptions.append(sub)
        logger.debug(f"Subscriber '{name}' registered (queue={sub.maxsize})")
        return sub

    def subscribe_callback(
        self,
        callback: Callable[[Notification], None],
        name: str = 'callback',
        maxsize: Optional[int] = None,
        categories: Optional[Iterable[str]] = None,
    ) -> CallbackSubscriber:
        """Register a push-style subscriber running on its own thread."""
        worker = CallbackSubscriber(self.subscribe(name, maxsize, categories), callback)
        worker.start()
        with self._lock:
            self._workers[name] = worker
        return worker

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriptions(self) -> List[Subscription]:
        with self._lock:
            return list(self._subscriptions)

    def publish(self, item: Notification) -> int:
        """
        Offer a notification to every interested subscriber.

        Returns:
            Number of subscriptions that received it
        """
        delivered = 0
        for sub in self.subscriptions:
            if sub.wants(item) and sub.offer(item):
                delivered += 1
        return delivered

    def close(self) -> None:
        """Close every subscription and stop callback threads."""
        with self._lock:
            workers = list(self._workers.values())
            self._workers.clear()
        for worker in workers:
            worker.stop()
        for sub in self.subscriptions:
            sub.close()

    def stats(self) -> dict:
        subs = self.subscriptions
        return {
            'subscribers': len(subs),
            'dropped': sum(s.dropped for s in subs),
            'per_subscriber': [s.stats() for s in subs],
        }
