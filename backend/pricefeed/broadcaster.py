"""Fan-out of fetch results to subscriptions."""

from __future__ import annotations

import asyncio
import logging
from threading import Lock

from .models import PriceSnapshot, Symbol

logger = logging.getLogger(__name__)

# (canonical ids, interval): one poll loop per distinct key
FeedKey = tuple[frozenset[str], float]

DEFAULT_MAX_PENDING = 100

_CLOSED = object()


class Subscription:
    """Handle for one consumer's interest in a set of symbols.

    Iterate it with ``async for`` to receive PriceSnapshots filtered to the
    subscribed symbols. Iteration is lazy and restartable: breaking out of the
    loop and iterating again resumes with the next pending snapshot. Once the
    subscription is cancelled, iteration ends and nothing more is delivered.
    """

    def __init__(
        self,
        id: int,
        symbols: frozenset[Symbol],
        interval: float,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self.id = id
        self.symbols = symbols
        self.interval = interval
        self.last_delivered: PriceSnapshot | None = None
        self.cancelled = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)

    @property
    def key(self) -> FeedKey:
        return (frozenset(s.canonical for s in self.symbols), self.interval)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def __repr__(self) -> str:
        names = ",".join(sorted(s.canonical for s in self.symbols))
        return f"Subscription(id={self.id}, symbols={names}, interval={self.interval})"

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> PriceSnapshot:
        if self.cancelled and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def _deliver(self, snapshot: PriceSnapshot) -> bool:
        """Queue the part of ``snapshot`` this subscription cares about."""
        if self.cancelled:
            return False
        filtered = snapshot.filter(self.symbols)
        if not filtered:
            return False
        if self._queue.full():
            # Slow consumer: drop the oldest pending snapshot
            self._queue.get_nowait()
            logger.debug("Subscription %d: dropped oldest pending snapshot", self.id)
        self._queue.put_nowait(filtered)
        self.last_delivered = filtered
        return True

    def _close(self) -> None:
        self.cancelled = True
        while not self._queue.empty():
            self._queue.get_nowait()
        # Wake a consumer blocked in __anext__
        self._queue.put_nowait(_CLOSED)


class Broadcaster:
    """Symbol-interest fan-out table.

    Each snapshot produced by a feed goes to every live subscription of that
    feed, filtered to the subscription's symbols. The table and every
    subscription's cancelled flag are only touched under the lock, so a
    broadcast can never deliver to a subscription that remove() already
    released.
    """

    def __init__(self) -> None:
        self._feeds: dict[FeedKey, dict[int, Subscription]] = {}
        self._lock = Lock()

    def add(self, subscription: Subscription, initial: PriceSnapshot | None = None) -> int:
        """Register a subscription, optionally priming it. Returns the feed's subscriber count."""
        with self._lock:
            subscribers = self._feeds.setdefault(subscription.key, {})
            subscribers[subscription.id] = subscription
            if initial is not None:
                subscription._deliver(initial)
            return len(subscribers)

    def remove(self, subscription: Subscription) -> int | None:
        """Unregister and close a subscription.

        Returns the number of subscribers left on its feed, or None if the
        subscription was not registered (already removed).
        """
        with self._lock:
            subscribers = self._feeds.get(subscription.key)
            if subscribers is None or subscribers.pop(subscription.id, None) is None:
                return None
            subscription._close()
            if not subscribers:
                del self._feeds[subscription.key]
                return 0
            return len(subscribers)

    def publish(self, key: FeedKey, snapshot: PriceSnapshot) -> int:
        """Deliver a snapshot to the subscribers of one feed. Returns deliveries made."""
        with self._lock:
            subscribers = list(self._feeds.get(key, {}).values())
            return sum(1 for sub in subscribers if sub._deliver(snapshot))

    def count(self, key: FeedKey) -> int:
        with self._lock:
            return len(self._feeds.get(key, {}))

    def close_all(self) -> int:
        """Close every subscription. Returns how many were closed."""
        with self._lock:
            subscriptions = [s for subs in self._feeds.values() for s in subs.values()]
            self._feeds.clear()
            for subscription in subscriptions:
                subscription._close()
            return len(subscriptions)
