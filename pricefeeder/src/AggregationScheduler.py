"""AggregationScheduler: Fixed-cadence polling loop.

Each tick:
    1. Snapshot every provider's subscribed pairs
    2. Collect tickers and candles from all providers concurrently, with the
       tick period as the collection window
    3. Deviation-filter and select canonical prices (TVWAP, else VWAP)
    4. Publish the complete price map into OracleState

A failing provider only loses its own samples for the tick. A failing
computation is logged and the previously published prices stay visible.
Available pairs are refreshed by a separate task on a much slower cadence.
"""

from __future__ import annotations

import asyncio
import logging

from .errors import StatisticsError
from .OracleState import OracleState
from .PriceSelector import PriceSelector, SelectionResult
from .ProviderCollector import ProviderCollector
from .SubscriptionRegistry import SubscriptionRegistry

logger = logging.getLogger(__name__)

# Seconds between the start of two ticks.
TICK_PERIOD = 1.0

# Seconds between available pairs refreshes.
AVAILABLE_PAIRS_RELOAD = 24 * 60 * 60


class AggregationScheduler:
    """Drives ticks and availability refreshes, publishing into OracleState.

    :ivar registry: Subscription registry read each tick.
    :ivar collector: Per-tick fan-out collector.
    :ivar selector: Canonical price selector.
    :ivar state: Published state.
    :ivar tick_period: Seconds between tick starts.
    :ivar refresh_period: Seconds between available pairs refreshes.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        collector: ProviderCollector,
        selector: PriceSelector,
        state: OracleState,
        tick_period: float = TICK_PERIOD,
        refresh_period: float = AVAILABLE_PAIRS_RELOAD,
    ) -> None:
        """Initialize the scheduler.

        :param registry: Subscription registry.
        :param collector: Provider collector.
        :param selector: Price selector.
        :param state: Oracle state to publish into.
        :param tick_period: Seconds between ticks (default: 1.0).
        :param refresh_period: Seconds between refreshes (default: 24h).
        :raises ValueError: If a period is not positive.
        """
        if tick_period <= 0:
            raise ValueError("tick_period must be positive")
        if refresh_period <= 0:
            raise ValueError("refresh_period must be positive")

        self.registry = registry
        self.collector = collector
        self.selector = selector
        self.state = state
        self.tick_period = tick_period
        self.refresh_period = refresh_period

        self._stop_event = asyncio.Event()
        self._running = False

    @property
    def running(self) -> bool:
        """Whether the loop is currently running."""
        return self._running

    @property
    def stop_requested(self) -> bool:
        """Whether a stop has been requested."""
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        """Ask the loop to exit once the in-flight tick has published."""
        self._stop_event.set()

    async def tick(self) -> SelectionResult | None:
        """Run one complete tick and publish its prices.

        :returns: SelectionResult that was published, or None if no pair is
            subscribed on any provider yet.
        :raises StatisticsError: If computation fails or produces no price
            at all; nothing is published in that case.
        """
        subscribed = self.registry.subscribed_pairs()
        if not any(subscribed.values()):
            logger.debug("No subscribed pairs, skipping tick")
            return None

        collection = await self.collector.collect(subscribed, timeout=self.tick_period)

        result = self.selector.select(
            collection.prices,
            collection.candles,
            expected=self.state.subscribed_base_symbols,
        )
        if not result.prices:
            raise StatisticsError(
                f"no prices computed ({len(collection.failed)} providers failed)"
            )

        await self.state.publish(result.prices, result.source)
        return result

    async def refresh_available_pairs(self) -> None:
        """Reload available pairs and subscribe newly available ones.

        Providers are queried without holding the state lock; the new sets
        and any resulting subscriptions are applied under it.
        """
        loaded = await self.registry.load_available_pairs()
        async with self.state.lock:
            self.registry.apply_available_pairs(loaded)
            await self.registry.resubscribe(self.state.subscribed_base_symbols)
        logger.info(f"Refreshed available pairs for {sorted(loaded)}")

    async def _tick_safely(self) -> None:
        try:
            await self.tick()
        except Exception:
            logger.exception("oracle tick failed")

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep up to ``delay`` seconds, waking early on stop.

        :returns: True if a stop was requested.
        """
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=max(0.0, delay))
        except asyncio.TimeoutError:
            pass
        return self._stop_event.is_set()

    async def _refresh_loop(self) -> None:
        while not await self._wait_for_stop(self.refresh_period):
            try:
                await self.refresh_available_pairs()
            except Exception:
                logger.exception("available pairs refresh failed")

    async def run(self) -> None:
        """Run ticks until a stop is requested.

        A tick is never interrupted by a stop request: the in-flight tick
        completes and publishes, then the loop exits without starting
        another. A slow tick delays the next one rather than overlapping it.
        A stop requested before the loop starts makes it exit at once.
        """
        if self._running:
            raise RuntimeError("scheduler is already running")

        self._running = True
        loop = asyncio.get_running_loop()
        refresh_task = asyncio.create_task(self._refresh_loop(), name="refresh-available-pairs")
        logger.info(
            f"Starting oracle loop (tick={self.tick_period}s, "
            f"refresh={self.refresh_period}s)"
        )

        try:
            delay = self.tick_period
            while not await self._wait_for_stop(delay):
                started = loop.time()
                await self._tick_safely()
                delay = self.tick_period - (loop.time() - started)
        finally:
            refresh_task.cancel()
            await asyncio.gather(refresh_task, return_exceptions=True)
            self._stop_event.clear()
            self._running = False
            logger.info("Oracle loop stopped")
