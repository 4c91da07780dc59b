"""ProviderCollector: Per-tick concurrent collection from all providers.

Architecture:
    - One task per provider that has subscribed pairs
    - Each task fetches tickers, then candles, for that provider's pairs
    - A failure in either call drops the provider for this tick only
    - Tasks still running when the collection window closes are cancelled
    - Per-provider results are merged after all tasks are done, keyed by
      base symbol, so no shared map is written concurrently
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .CurrencyPair import CurrencyPair
from .ProviderHealth import ProviderHealth
from .providers.base import (
    AggregatedProviderCandles,
    AggregatedProviderPrices,
    BaseProvider,
    CandlePrice,
    TickerPrice,
)

logger = logging.getLogger(__name__)


@dataclass
class CollectionResult:
    """Everything collected during one tick.

    :ivar prices: provider -> base -> TickerPrice.
    :ivar candles: provider -> base -> candles.
    :ivar failed: provider -> error message, for providers that contributed
        nothing this tick.
    """

    prices: AggregatedProviderPrices = field(default_factory=dict)
    candles: AggregatedProviderCandles = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)


class ProviderCollector:
    """Fans out one collection task per provider and merges the results.

    :ivar providers: Dict mapping provider names to adapter instances.
    :ivar health: Record of per-provider outcomes.
    """

    def __init__(
        self,
        providers: Mapping[str, BaseProvider],
        health: ProviderHealth | None = None,
    ) -> None:
        """Initialize the collector.

        :param providers: Dict mapping provider names to adapter instances.
        :param health: Optional shared health record (created if omitted).
        """
        self.providers = dict(providers)
        self.health = health or ProviderHealth(list(self.providers))

    async def collect(
        self,
        subscribed: Mapping[str, Sequence[CurrencyPair]],
        timeout: float | None = None,
    ) -> CollectionResult:
        """Collect tickers and candles from every provider concurrently.

        :param subscribed: provider -> pairs currently subscribed there.
        :param timeout: Collection window in seconds; providers that have
            not answered by then are cancelled and count as failed.
        :returns: CollectionResult with merged per-provider samples.
        """
        result = CollectionResult()

        tasks: dict[str, asyncio.Task] = {}
        for name, pairs in subscribed.items():
            if not pairs or name not in self.providers:
                continue
            tasks[name] = asyncio.create_task(
                self._collect_provider(name, list(pairs)), name=f"collect-{name}"
            )

        if not tasks:
            return result

        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
        finally:
            for task in tasks.values():
                if not task.done():
                    task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for name, task in tasks.items():
            if task in pending:
                error = f"no response within {timeout}s"
            elif task.exception() is not None:
                error = str(task.exception()) or type(task.exception()).__name__
            else:
                prices, candles = task.result()
                if prices:
                    result.prices[name] = prices
                if candles:
                    result.candles[name] = candles
                self.health.record_success(name)
                continue

            result.failed[name] = error
            failures = self.health.record_failure(name, error)
            logger.warning(
                f"[{name}] Collection failed ({failures} in a row): {error}"
            )

        return result

    async def _collect_provider(
        self, name: str, pairs: list[CurrencyPair]
    ) -> tuple[dict[str, TickerPrice], dict[str, list[CandlePrice]]]:
        """Fetch and flatten one provider's samples by base symbol.

        :param name: Provider name.
        :param pairs: Subscribed pairs to fetch.
        :returns: Tuple of (base -> TickerPrice, base -> candles).
        :raises ProviderError: If either fetch fails.
        """
        provider = self.providers[name]
        tickers = await provider.get_ticker_prices(pairs)
        candles = await provider.get_candle_prices(pairs)

        # e.g.: {"ATOM": <price, volume>, ...}; for a base quoted in several
        # stablecoins the first quote in subscription order wins
        prices_by_base: dict[str, TickerPrice] = {}
        candles_by_base: dict[str, list[CandlePrice]] = {}
        for pair in pairs:
            tp = tickers.get(str(pair))
            if tp is not None:
                prices_by_base.setdefault(pair.base, tp)
            cp = candles.get(str(pair))
            if cp:
                candles_by_base.setdefault(pair.base, cp)

        logger.debug(
            f"[{name}] Collected {len(prices_by_base)} tickers, "
            f"{len(candles_by_base)} candle series"
        )
        return prices_by_base, candles_by_base
