"""
Market data provider adapters.

This module provides a unified interface over exchange APIs: available
pairs, subscriptions, ticker quotes and recent candles.

Usage:
    from pricefeeder.src.providers import get_provider, get_available_providers

    # Get list of available providers
    available = get_available_providers()
    # ['binance', 'coinbase', 'kraken']

    # Create a provider instance
    provider = get_provider("kraken")
    pairs = await provider.list_available_pairs()
"""

# Import base classes and utilities
from .base import (
    PROVIDER_REGISTRY,
    AggregatedProviderCandles,
    AggregatedProviderPrices,
    BaseProvider,
    CandlePrice,
    ProviderError,
    ProviderHTTPError,
    TickerPrice,
    get_available_providers,
    get_provider,
    register_provider,
)

# Import all provider implementations to trigger registration
from .binance import BinanceProvider
from .coinbase import CoinbaseProvider
from .kraken import KrakenProvider

__all__ = [
    # Base classes and sample types
    "BaseProvider",
    "TickerPrice",
    "CandlePrice",
    "AggregatedProviderPrices",
    "AggregatedProviderCandles",
    "ProviderError",
    "ProviderHTTPError",
    # Registry functions
    "register_provider",
    "get_provider",
    "get_available_providers",
    "PROVIDER_REGISTRY",
    # Provider implementations
    "BinanceProvider",
    "CoinbaseProvider",
    "KrakenProvider",
]
