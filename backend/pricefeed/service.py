"""LiveFeedService: subscribe/unsubscribe API over polled, fallback-backed feeds."""

from __future__ import annotations

import asyncio
import functools
import itertools
import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .broadcaster import DEFAULT_MAX_PENDING, Broadcaster, FeedKey, Subscription
from .buffer import DEFAULT_CAPACITY, RollingBuffer
from .cache import PriceCache
from .clock import Clock, SystemClock
from .fallback import FallbackFetcher
from .interface import PriceProvider
from .models import PricePoint, PriceSnapshot, PriceUpdate, Symbol
from .scheduler import DEFAULT_CEILING, DEFAULT_MULTIPLIER, BackoffScheduler
from .symbols import SymbolResolver

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0
DEFAULT_GRACE_PERIOD = 2.0


@dataclass
class _Feed:
    key: FeedKey
    symbols: list[Symbol]
    scheduler: BackoffScheduler
    last_snapshot: PriceSnapshot | None = None
    teardown: asyncio.Task | None = None


class LiveFeedService:
    """Owns the poll loops, price history and subscriber table for a set of providers.

    One BackoffScheduler runs per distinct (symbol set, interval) pair, shared
    by every subscription that asks for exactly that pair. Each successful
    price updates the latest-quote cache and the symbol's RollingBuffer, then
    the feed's snapshot is broadcast to its subscribers.

    The service owns the providers it is given and closes them in close().

    Usage:
        async with LiveFeedService([CoinbaseProvider(), CoinGeckoProvider()]) as feed:
            sub = await feed.subscribe(["BTC", "ETHUSDT"], interval=5)
            async for snapshot in sub:
                ...
            await feed.unsubscribe(sub)
    """

    def __init__(
        self,
        providers: Sequence[PriceProvider] | None = None,
        *,
        fetcher: FallbackFetcher | None = None,
        resolver: SymbolResolver | None = None,
        clock: Clock | None = None,
        buffer_capacity: int = DEFAULT_CAPACITY,
        backoff_ceiling: float = DEFAULT_CEILING,
        backoff_multiplier: float = DEFAULT_MULTIPLIER,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        if fetcher is None:
            if not providers:
                raise ValueError("LiveFeedService needs providers or a fetcher")
            fetcher = FallbackFetcher(providers)
        if buffer_capacity <= 0:
            raise ValueError(f"buffer_capacity must be positive, got {buffer_capacity}")
        self._fetcher = fetcher
        self._resolver = resolver or SymbolResolver()
        self._clock = clock or SystemClock()
        self._buffer_capacity = buffer_capacity
        self._backoff_ceiling = backoff_ceiling
        self._backoff_multiplier = backoff_multiplier
        self._grace_period = grace_period
        self._max_pending = max_pending

        self._cache = PriceCache()
        self._buffers: dict[str, RollingBuffer] = {}
        self._broadcaster = Broadcaster()
        self._feeds: dict[FeedKey, _Feed] = {}
        self._ids = itertools.count(1)
        self._closed = False

    async def __aenter__(self) -> LiveFeedService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- Public API ---

    async def subscribe(
        self, symbols: Iterable[str | Symbol] | str, interval: float = DEFAULT_INTERVAL
    ) -> Subscription:
        """Start receiving snapshots for ``symbols`` every ``interval`` seconds.

        The first snapshot arrives after one fetch cycle, with no initial wait.
        Raises ValueError for an empty symbol set or an interval that is not a
        finite positive number.
        """
        if self._closed:
            raise RuntimeError("LiveFeedService is closed")
        resolved, interval = self.validate_subscription(symbols, interval)

        key: FeedKey = (frozenset(s.canonical for s in resolved), interval)
        feed = self._feeds.get(key)
        if feed is None:
            feed = self._start_feed(key, resolved, interval)
        elif feed.teardown is not None:
            feed.teardown.cancel()
            feed.teardown = None
            logger.info("Feed %s: resubscribed within grace period", _feed_name(key))

        subscription = Subscription(
            id=next(self._ids),
            symbols=frozenset(resolved),
            interval=interval,
            max_pending=self._max_pending,
        )
        count = self._broadcaster.add(subscription, initial=feed.last_snapshot)
        logger.info("Subscription %d added to feed %s (%d subscribers)", subscription.id, _feed_name(key), count)
        return subscription

    def validate_subscription(
        self, symbols: Iterable[str | Symbol] | str, interval: float
    ) -> tuple[list[Symbol], float]:
        """Resolve subscribe() arguments without starting anything. Raises ValueError."""
        if isinstance(symbols, (str, Symbol)):
            symbols = [symbols]
        wanted: list[str | Symbol] = []
        for s in symbols:
            if not isinstance(s, (str, Symbol)):
                raise ValueError(f"symbols must be strings, got {s!r}")
            if isinstance(s, Symbol) or s.strip():
                wanted.append(s)
        resolved = self._resolver.resolve_many(wanted)
        if not resolved:
            raise ValueError("subscribe() needs at least one symbol")
        if (
            isinstance(interval, bool)
            or not isinstance(interval, (int, float))
            or not math.isfinite(interval)
            or interval <= 0
        ):
            raise ValueError(f"interval must be a positive number of seconds, got {interval!r}")
        return resolved, float(interval)

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Stop deliveries to ``subscription``. Calling it again is a no-op.

        When the last subscriber of a feed leaves, the feed's scheduler is
        stopped after the grace period unless someone resubscribes first.
        """
        remaining = self._broadcaster.remove(subscription)
        if remaining is None:
            return
        logger.info("Subscription %d removed (%d left on feed)", subscription.id, remaining)
        if remaining > 0:
            return

        feed = self._feeds.get(subscription.key)
        if feed is None or feed.teardown is not None:
            return
        if self._grace_period > 0:
            feed.teardown = asyncio.create_task(
                self._teardown_later(feed), name=f"teardown-{_feed_name(feed.key)}"
            )
        else:
            self._stop_feed(feed)

    def current_value(self, symbol: str | Symbol) -> PricePoint | None:
        """Last known price, or None if the symbol was never priced."""
        update = self.quote(symbol)
        return update.point if update else None

    def quote(self, symbol: str | Symbol) -> PriceUpdate | None:
        """Last known price with its movement against the previous one."""
        return self._cache.get(self._resolver.resolve(symbol).canonical)

    def history(self, symbol: str | Symbol) -> tuple[PricePoint, ...]:
        """Recent prices for a symbol, oldest first."""
        buffer = self._buffers.get(self._resolver.resolve(symbol).canonical)
        return buffer.snapshot() if buffer else ()

    @property
    def resolver(self) -> SymbolResolver:
        return self._resolver

    @property
    def active_feeds(self) -> list[FeedKey]:
        return list(self._feeds)

    async def close(self) -> None:
        """Stop every feed, end every subscription and close the providers."""
        if self._closed:
            return
        self._closed = True
        feeds = list(self._feeds.values())
        for feed in feeds:
            self._stop_feed(feed)
        for feed in feeds:
            await feed.scheduler.wait_stopped()
        closed = self._broadcaster.close_all()
        await self._fetcher.aclose()
        logger.info("LiveFeedService closed (%d feeds, %d subscriptions)", len(feeds), closed)

    # --- Internal ---

    def _start_feed(self, key: FeedKey, symbols: list[Symbol], interval: float) -> _Feed:
        scheduler = BackoffScheduler(
            fetch=functools.partial(self._fetcher.fetch, symbols),
            on_result=lambda snapshot: self._handle_result(key, snapshot),
            floor=interval,
            ceiling=max(self._backoff_ceiling, interval),
            multiplier=self._backoff_multiplier,
            clock=self._clock,
            name=f"feed-{_feed_name(key)}",
        )
        feed = _Feed(key=key, symbols=symbols, scheduler=scheduler)
        self._feeds[key] = feed
        scheduler.start()
        return feed

    def _stop_feed(self, feed: _Feed) -> None:
        if feed.teardown is not None and feed.teardown is not asyncio.current_task():
            feed.teardown.cancel()
        feed.teardown = None
        feed.scheduler.stop()
        if self._feeds.get(feed.key) is not feed:
            return
        del self._feeds[feed.key]
        in_use = {canonical for symbols, _ in self._feeds for canonical in symbols}
        released = [s for s in feed.symbols if s.canonical not in in_use]
        if released:
            self._fetcher.release(released)

    async def _teardown_later(self, feed: _Feed) -> None:
        await self._clock.sleep(self._grace_period)
        if self._broadcaster.count(feed.key) == 0:
            logger.info("Feed %s: no subscribers after grace period, stopping", _feed_name(feed.key))
            self._stop_feed(feed)

    def _handle_result(self, key: FeedKey, snapshot: PriceSnapshot) -> None:
        """Fetch-completion handler: the only writer of the cache and buffers.

        Points are stamped with the service clock when the cycle completes.
        """
        feed = self._feeds.get(key)
        if feed is None or not snapshot:
            return
        now = self._clock.now()
        snapshot = PriceSnapshot(
            {k: PricePoint(value=p.value, timestamp=now) for k, p in snapshot.items()},
            timestamp=now,
        )
        feed.last_snapshot = snapshot
        for canonical, point in snapshot.items():
            self._cache.update(canonical, point.value, timestamp=point.timestamp)
            buffer = self._buffers.get(canonical)
            if buffer is None:
                buffer = self._buffers[canonical] = RollingBuffer(self._buffer_capacity)
            buffer.append(point)
        delivered = self._broadcaster.publish(key, snapshot)
        logger.debug("Feed %s: %d prices, %d deliveries", _feed_name(key), len(snapshot), delivered)


def _feed_name(key: FeedKey) -> str:
    symbols, interval = key
    return f"{'+'.join(sorted(symbols))}@{interval:g}s"
