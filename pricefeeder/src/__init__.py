"""
Price Feeder - Multi-Provider Price Aggregation Module

This module provides canonical asset prices from many untrusted providers:
- CurrencyPair: Base/quote pair identity
- SubscriptionRegistry: Available and subscribed pairs per provider
- DeviationFilter: Mean/standard deviation outlier rejection
- PriceSelector: TVWAP from candles with VWAP fallback from tickers
- AggregationScheduler: Fixed-cadence fan-out collection loop
- PriceOracle: Concurrency-safe facade for consumers
- providers: Modular exchange adapters
"""

from .AggregationScheduler import AVAILABLE_PAIRS_RELOAD, TICK_PERIOD, AggregationScheduler
from .CurrencyPair import STABLECOIN_QUOTES, CurrencyPair, get_stablecoin_pairs
from .DeviationFilter import DEFAULT_DEVIATION_THRESHOLD, DeviationFilter, FilterResult
from .errors import OracleError, PriceNotFoundError, StatisticsError, SubscriptionError
from .OracleState import OracleState
from .PriceOracle import PriceOracle
from .PriceSelector import PriceSelector, SelectionResult
from .ProviderCollector import CollectionResult, ProviderCollector
from .ProviderHealth import ProviderHealth, ProviderStatus
from .SubscriptionRegistry import ProviderState, SubscriptionRegistry

__all__ = [
    "AVAILABLE_PAIRS_RELOAD",
    "AggregationScheduler",
    "CollectionResult",
    "CurrencyPair",
    "DEFAULT_DEVIATION_THRESHOLD",
    "DeviationFilter",
    "FilterResult",
    "OracleError",
    "OracleState",
    "PriceNotFoundError",
    "PriceOracle",
    "PriceSelector",
    "ProviderCollector",
    "ProviderHealth",
    "ProviderState",
    "ProviderStatus",
    "STABLECOIN_QUOTES",
    "SelectionResult",
    "StatisticsError",
    "SubscriptionError",
    "SubscriptionRegistry",
    "TICK_PERIOD",
    "get_stablecoin_pairs",
]
