"""Base provider interface and shared HTTP client management.

All provider adapters inherit from BaseProvider and implement the four
capabilities the aggregation engine depends on: listing available pairs,
subscribing to pairs, and fetching ticker and candle data. A shared
httpx.AsyncClient is used across all adapters to avoid connection overhead.

Pair identities passed in and out of adapters are always ``BASE/QUOTE``
strings (see :class:`~pricefeeder.src.CurrencyPair.CurrencyPair`); each
adapter translates them to its exchange-native symbols.

.. code-block:: python

    @register_provider
    class MyProvider(BaseProvider):
        name = "myexchange"

        async def list_available_pairs(self) -> set[str]:
            response = await self._get("https://api.example.com/markets")
            return {f"{m['base']}/{m['quote']}".upper() for m in response.json()}

        async def get_ticker_prices(self, pairs):
            ...

        async def get_candle_prices(self, pairs):
            ...
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar

import httpx

from ..CurrencyPair import CurrencyPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickerPrice:
    """Latest ticker quote for one pair on one provider.

    :ivar price: Last traded price.
    :ivar volume: Traded volume backing the quote (24h on most exchanges).
    """

    price: Decimal
    volume: Decimal


@dataclass(frozen=True)
class CandlePrice:
    """A single OHLCV candle reduced to what weighting needs.

    :ivar price: Close price of the candle.
    :ivar volume: Volume traded during the candle.
    :ivar timestamp: Candle end time in Unix milliseconds.
    """

    price: Decimal
    volume: Decimal
    timestamp: int


# provider name -> base symbol -> sample
AggregatedProviderPrices = dict[str, dict[str, TickerPrice]]
AggregatedProviderCandles = dict[str, dict[str, list[CandlePrice]]]


class ProviderError(Exception):
    """Base exception for provider errors."""

    pass


class ProviderHTTPError(ProviderError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


def to_decimal(value: Any) -> Decimal:
    """Convert an API number (usually a string) to Decimal.

    :param value: Raw numeric value from a JSON payload.
    :returns: Decimal value.
    :raises ProviderError: If the value is not numeric.
    """
    try:
        # str() first so floats keep their shortest repr, not binary noise
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ProviderError(f"Invalid numeric value {value!r}") from e


class BaseProvider(ABC):
    """Abstract base class for market data provider adapters.

    Subclasses must implement:
        - name: Class variable identifying the provider (e.g., "binance")
        - list_available_pairs(), get_ticker_prices(), get_candle_prices()

    The default subscribe_pairs() just records the pairs to poll, which is
    all a REST adapter needs. Streaming adapters override it to open their
    subscriptions.

    :cvar name: Unique identifier for this provider.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Provider identification
    name: ClassVar[str] = ""

    # Default timeout for HTTP requests (seconds)
    DEFAULT_TIMEOUT = 10.0

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize the provider.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.subscribed: dict[str, CurrencyPair] = {}

    @property
    def has_api_key(self) -> bool:
        """Check if this provider has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all provider instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseProvider._shared_client is None or BaseProvider._shared_client.is_closed:
            BaseProvider._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return BaseProvider._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseProvider._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseProvider._shared_client = None

    @abstractmethod
    async def list_available_pairs(self) -> set[str]:
        """List every pair this provider can quote.

        :returns: Set of pair identities (``BASE/QUOTE``).
        :raises ProviderError: On network or parse failure.
        """
        pass

    async def subscribe_pairs(self, pairs: Sequence[CurrencyPair]) -> None:
        """Start tracking the given pairs. Idempotent.

        :param pairs: Pairs to subscribe to, sent as one batch.
        :raises ProviderError: If the provider rejects the subscription.
        """
        for pair in pairs:
            self.subscribed[str(pair)] = pair
        if pairs:
            logger.debug(f"[{self.name}] Tracking {[str(p) for p in pairs]}")

    @abstractmethod
    async def get_ticker_prices(
        self, pairs: Sequence[CurrencyPair]
    ) -> dict[str, TickerPrice]:
        """Fetch the current ticker for each pair.

        :param pairs: Pairs to fetch.
        :returns: Dict mapping pair identity to TickerPrice. Pairs the
            provider did not return are absent.
        :raises ProviderError: On network or parse failure.
        """
        pass

    @abstractmethod
    async def get_candle_prices(
        self, pairs: Sequence[CurrencyPair]
    ) -> dict[str, list[CandlePrice]]:
        """Fetch recent candles for each pair.

        :param pairs: Pairs to fetch.
        :returns: Dict mapping pair identity to candles ordered old -> new.
        :raises ProviderError: On network or parse failure.
        """
        pass

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises ProviderHTTPError: On non-2xx response.
        :raises ProviderError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise ProviderHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise ProviderError(f"Request failed: {e}") from e

    async def _get_json(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> Any:
        """GET a URL and decode its JSON body.

        :raises ProviderError: On HTTP failure or invalid JSON.
        """
        response = await self._get(url, params=params, headers=headers)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from {url}: {e}") from e


# Registry of available providers (populated by subclass imports)
PROVIDER_REGISTRY: dict[str, type[BaseProvider]] = {}


def register_provider(cls: type[BaseProvider]) -> type[BaseProvider]:
    """Decorator to register a provider class in the global registry.

    :param cls: Provider class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If provider has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Provider {cls.__name__} must define a 'name' class variable")
    PROVIDER_REGISTRY[cls.name] = cls
    return cls


def get_provider(
    name: str, api_key: str | None = None, timeout: float | None = None
) -> BaseProvider:
    """Get a provider instance by name.

    :param name: Provider name (e.g., "binance", "kraken").
    :param api_key: Optional API key.
    :param timeout: Optional per-request timeout in seconds.
    :returns: Provider instance.
    :raises ValueError: If provider name is unknown.
    """
    if name not in PROVIDER_REGISTRY:
        available = ", ".join(sorted(PROVIDER_REGISTRY.keys()))
        raise ValueError(f"Unknown provider '{name}'. Available: {available}")
    return PROVIDER_REGISTRY[name](api_key=api_key, timeout=timeout)


def get_available_providers() -> list[str]:
    """Get list of available provider names.

    :returns: Sorted list of registered provider names.
    """
    return sorted(PROVIDER_REGISTRY.keys())
