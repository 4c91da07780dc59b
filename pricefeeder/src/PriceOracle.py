"""PriceOracle: Consumer-facing facade over the aggregation engine.

Architecture:
    - SubscriptionRegistry tracks available/subscribed pairs per provider
    - AggregationScheduler ticks on a fixed cadence, fanning out to every
      provider through ProviderCollector
    - DeviationFilter drops samples outside mean +/- N stddev
    - PriceSelector prefers candle TVWAP and falls back to ticker VWAP
    - OracleState holds the published prices; readers never block the loop

.. code-block:: python

    async with PriceOracle.from_provider_names(["binance", "kraken"]) as oracle:
        await oracle.subscribe_symbols("ATOM", "ETH")
        ...
        price = oracle.get_price("ATOM")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from .AggregationScheduler import AVAILABLE_PAIRS_RELOAD, TICK_PERIOD, AggregationScheduler
from .CurrencyPair import STABLECOIN_QUOTES
from .DeviationFilter import DEFAULT_DEVIATION_THRESHOLD, DeviationFilter
from .errors import PriceNotFoundError
from .OracleState import OracleState
from .PriceSelector import PriceSelector
from .ProviderCollector import ProviderCollector
from .ProviderHealth import ProviderHealth, ProviderStatus
from .providers import BaseProvider, get_provider
from .SubscriptionRegistry import SubscriptionRegistry

logger = logging.getLogger(__name__)


class PriceOracle:
    """Canonical price oracle over N market data providers.

    :ivar providers: Dict mapping provider names to adapter instances.
    :ivar state: Published prices and subscribed base symbols.
    :ivar registry: Per-provider subscription state.
    :ivar health: Per-provider collection outcomes.
    :ivar scheduler: Polling loop.
    """

    def __init__(
        self,
        providers: Mapping[str, BaseProvider],
        tick_period: float = TICK_PERIOD,
        refresh_period: float = AVAILABLE_PAIRS_RELOAD,
        deviation_threshold: Decimal | float | str = DEFAULT_DEVIATION_THRESHOLD,
        quotes: Iterable[str] = STABLECOIN_QUOTES,
    ) -> None:
        """Initialize the oracle. Nothing runs until start().

        :param providers: Dict mapping provider names to adapter instances.
        :param tick_period: Seconds between ticks (default: 1.0).
        :param refresh_period: Seconds between available pairs refreshes
            (default: 24h).
        :param deviation_threshold: Standard deviations a provider may be
            away from the mean (default: 2).
        :param quotes: Stablecoin quotes base symbols are expanded with.
        :raises ValueError: If no providers are given or a setting is invalid.
        """
        if not providers:
            raise ValueError("At least one provider must be specified")

        self.providers = dict(providers)
        self.state = OracleState()
        self.registry = SubscriptionRegistry(self.providers, quotes=quotes)
        self.health = ProviderHealth(list(self.providers))
        self.scheduler = AggregationScheduler(
            registry=self.registry,
            collector=ProviderCollector(self.providers, health=self.health),
            selector=PriceSelector(DeviationFilter(deviation_threshold)),
            state=self.state,
            tick_period=tick_period,
            refresh_period=refresh_period,
        )
        self._task: asyncio.Task | None = None

        logger.info(
            f"PriceOracle initialized: providers={list(self.providers)}, "
            f"quotes={list(self.registry.quotes)}, tick_period={tick_period}s, "
            f"deviation_threshold={self.scheduler.selector.deviation_filter.threshold}"
        )

    @classmethod
    def from_provider_names(
        cls,
        names: Iterable[str],
        api_keys: Mapping[str, str] | None = None,
        fetch_timeout: float | None = None,
        **kwargs,
    ) -> PriceOracle:
        """Build an oracle from registered provider names.

        :param names: Provider names (e.g., ["binance", "kraken"]).
        :param api_keys: Optional provider name -> API key.
        :param fetch_timeout: Optional per-request timeout in seconds.
        :param kwargs: Passed through to the constructor.
        :returns: New PriceOracle.
        :raises ValueError: If a provider name is unknown.
        """
        api_keys = api_keys or {}
        providers = {
            name: get_provider(name, api_key=api_keys.get(name), timeout=fetch_timeout)
            for name in names
        }
        return cls(providers, **kwargs)

    def get_price(self, base: str) -> Decimal:
        """Get the canonical price of a base symbol.

        :param base: Base symbol (e.g., "ATOM").
        :returns: Latest published price.
        :raises PriceNotFoundError: If the last tick produced no price for it.
        """
        base = base.upper()
        price = self.state.prices.get(base)
        if price is None:
            raise PriceNotFoundError(base)
        return price

    def get_prices(self, *bases: str) -> dict[str, Decimal]:
        """Get canonical prices for several base symbols from one tick.

        :param bases: Base symbols.
        :returns: base -> price for every requested base.
        :raises PriceNotFoundError: Naming the first base without a price;
            no partial map is returned.
        """
        snapshot = self.state.prices
        prices: dict[str, Decimal] = {}
        for base in bases:
            base = base.upper()
            price = snapshot.get(base)
            if price is None:
                raise PriceNotFoundError(base)
            prices[base] = price
        return prices

    async def subscribe_symbols(self, *bases: str) -> None:
        """Subscribe base symbols on every provider that offers them.

        Already subscribed symbols are skipped.

        :param bases: Base symbols (e.g., "UMEE", "ATOM").
        :raises SubscriptionError: If a provider rejects a subscription. The
            failing symbol is not marked subscribed and may be retried.
        """
        async with self.state.lock:
            for base in bases:
                base = base.strip().upper()
                if not base or base in self.state.subscribed_base_symbols:
                    continue
                await self.registry.subscribe(base)
                self.state.add_subscribed_symbol(base)

    @property
    def subscribed_symbols(self) -> frozenset[str]:
        """Base symbols currently subscribed."""
        return self.state.subscribed_base_symbols

    @property
    def last_updated(self) -> float | None:
        """Unix timestamp of the last successful tick, or None."""
        return self.state.updated_at

    def provider_status(self) -> dict[str, ProviderStatus]:
        """Per-provider collection outcomes.

        :returns: Dict mapping provider names to status copies.
        """
        return self.health.get_all_status()

    @property
    def running(self) -> bool:
        """Whether the polling loop is running."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Load available pairs and launch the polling loop.

        :raises RuntimeError: If the oracle is already running.
        """
        if self.running:
            raise RuntimeError("PriceOracle is already running")
        await self._launch()

    async def _launch(self) -> asyncio.Task:
        async with self.state.lock:
            loaded = await self.registry.refresh_available_pairs()
        logger.info(f"Loaded available pairs from {sorted(loaded)}")

        self._task = asyncio.create_task(self.scheduler.run(), name="oracle-loop")
        return self._task

    async def stop(self) -> None:
        """Stop the polling loop and wait for it to exit.

        The in-flight tick, if any, completes and publishes first.
        """
        if self._task is None:
            return
        self.scheduler.request_stop()
        await self._task
        self._task = None

    async def run(self) -> None:
        """Start the oracle, unless already started, and block until the loop exits."""
        task = self._task if self.running else await self._launch()
        try:
            await task
        finally:
            self._task = None
            await BaseProvider.close_shared_client()

    async def __aenter__(self) -> PriceOracle:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
        await BaseProvider.close_shared_client()
