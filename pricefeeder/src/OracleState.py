"""OracleState: Published prices and subscribed symbols.

Writers (tick publication, subscription changes, availability refresh)
serialize on a single asyncio.Lock. Readers never take it: both the price
map and the symbol set are immutable snapshots replaced by reference, so a
reader always sees the full result of one tick and never a half-updated
map, from the event loop or from another thread.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from decimal import Decimal
from types import MappingProxyType

logger = logging.getLogger(__name__)


class OracleState:
    """Process-wide oracle state owned by the aggregation scheduler.

    :ivar lock: Writer lock for publication and subscription changes.
    """

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self._prices: Mapping[str, Decimal] = MappingProxyType({})
        self._subscribed: frozenset[str] = frozenset()
        self._updated_at: float | None = None
        self._price_source: str | None = None

    @property
    def prices(self) -> Mapping[str, Decimal]:
        """Snapshot of the latest canonical prices (base -> price)."""
        return self._prices

    @property
    def subscribed_base_symbols(self) -> frozenset[str]:
        """Snapshot of the subscribed base symbols."""
        return self._subscribed

    @property
    def updated_at(self) -> float | None:
        """Unix timestamp of the last publication, or None."""
        return self._updated_at

    @property
    def price_source(self) -> str | None:
        """Which path produced the published prices ("tvwap" or "vwap")."""
        return self._price_source

    async def publish(self, prices: Mapping[str, Decimal], source: str) -> None:
        """Replace the published prices with a complete new map.

        :param prices: base -> canonical price for one tick.
        :param source: Path that produced the prices.
        """
        snapshot = MappingProxyType(dict(prices))
        async with self.lock:
            self._prices = snapshot
            self._price_source = source
            self._updated_at = time.time()
        logger.debug(f"Published {len(snapshot)} {source} prices")

    def add_subscribed_symbol(self, base: str) -> None:
        """Record a base symbol as subscribed. Caller must hold ``lock``.

        :param base: Uppercase base symbol.
        :raises RuntimeError: If the writer lock is not held.
        """
        if not self.lock.locked():
            raise RuntimeError("add_subscribed_symbol requires the state lock")
        self._subscribed = self._subscribed | {base}
