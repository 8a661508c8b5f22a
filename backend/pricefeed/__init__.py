"""Live market-price aggregation.

Public API:
    LiveFeedService     - subscribe/unsubscribe API over polled price feeds
    Subscription        - Async-iterable handle yielding PriceSnapshots
    SymbolResolver      - Normalizes raw tickers into canonical Symbols
    PriceProvider       - Abstract interface for upstream price sources
    FallbackFetcher     - Ordered provider chain, first success wins
    BackoffScheduler    - Polling loop with exponential backoff
    RollingBuffer       - Fixed-capacity price history
    HistoricalSeriesClient - Longer price series for a Timeframe
    create_live_feed_service - Factory configured from the environment
    create_stream_router - FastAPI router factory for SSE and quote endpoints
"""

from .broadcaster import Subscription
from .buffer import RollingBuffer
from .errors import AllProvidersFailed, FetchError, FetchErrorKind, PriceFeedError
from .factory import FeedSettings, create_live_feed_service, create_providers
from .fallback import FallbackFetcher
from .history import HistoricalSeriesClient, Timeframe
from .interface import PriceProvider
from .models import PricePoint, PriceSnapshot, PriceUpdate, Symbol
from .scheduler import BackoffScheduler, BackoffState, SchedulerState
from .service import LiveFeedService
from .stream import create_stream_router
from .symbols import SymbolResolver

__all__ = [
    "AllProvidersFailed",
    "BackoffScheduler",
    "BackoffState",
    "FallbackFetcher",
    "FeedSettings",
    "FetchError",
    "FetchErrorKind",
    "HistoricalSeriesClient",
    "LiveFeedService",
    "PriceFeedError",
    "PricePoint",
    "PriceProvider",
    "PriceSnapshot",
    "PriceUpdate",
    "RollingBuffer",
    "SchedulerState",
    "Subscription",
    "Symbol",
    "SymbolResolver",
    "Timeframe",
    "create_live_feed_service",
    "create_providers",
    "create_stream_router",
]
