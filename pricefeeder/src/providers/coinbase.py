"""Coinbase Exchange provider.

Endpoints:
    - https://api.exchange.coinbase.com/products (available pairs)
    - https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/ticker
    - https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/candles?granularity=60
Rate Limit: High (no key required)
"""

import asyncio
import logging
from collections.abc import Sequence

from ..CurrencyPair import CurrencyPair
from .base import (
    BaseProvider,
    CandlePrice,
    ProviderError,
    TickerPrice,
    register_provider,
    to_decimal,
)

logger = logging.getLogger(__name__)


@register_provider
class CoinbaseProvider(BaseProvider):
    """Provider for Coinbase Exchange API.

    No batch endpoint exists, so tickers and candles are fetched with one
    request per pair, concurrently. No API key required.
    """

    name = "coinbase"
    BASE_URL = "https://api.exchange.coinbase.com"

    # Candle granularity in seconds
    GRANULARITY = 60

    @staticmethod
    def _product_id(pair: CurrencyPair) -> str:
        return f"{pair.base}-{pair.quote}"

    async def list_available_pairs(self) -> set[str]:
        """List online, tradable products.

        :returns: Set of ``BASE/QUOTE`` identities.
        """
        data = await self._get_json(f"{self.BASE_URL}/products")
        try:
            return {
                f"{p['base_currency']}/{p['quote_currency']}".upper()
                for p in data
                if p.get("status") == "online" and not p.get("trading_disabled")
            }
        except (KeyError, TypeError) as e:
            raise ProviderError(f"[coinbase] Failed to parse products: {e}") from e

    async def get_ticker_prices(
        self, pairs: Sequence[CurrencyPair]
    ) -> dict[str, TickerPrice]:
        """Fetch tickers for each pair concurrently.

        :param pairs: Pairs to fetch.
        :returns: Dict mapping pair identity to TickerPrice.
        """
        tickers = await asyncio.gather(*(self._fetch_ticker(p) for p in pairs))
        return {str(pair): tp for pair, tp in zip(pairs, tickers, strict=True)}

    async def _fetch_ticker(self, pair: CurrencyPair) -> TickerPrice:
        product_id = self._product_id(pair)
        data = await self._get_json(f"{self.BASE_URL}/products/{product_id}/ticker")
        if "price" not in data:
            raise ProviderError(f"[coinbase] No price in response for {product_id}: {data}")
        return TickerPrice(
            price=to_decimal(data["price"]),
            volume=to_decimal(data.get("volume", "0")),
        )

    async def get_candle_prices(
        self, pairs: Sequence[CurrencyPair]
    ) -> dict[str, list[CandlePrice]]:
        """Fetch one-minute candles for each pair concurrently.

        :param pairs: Pairs to fetch.
        :returns: Dict mapping pair identity to candles ordered old -> new.
        """
        candles = await asyncio.gather(*(self._fetch_candles(p) for p in pairs))
        return {str(pair): cp for pair, cp in zip(pairs, candles, strict=True) if cp}

    async def _fetch_candles(self, pair: CurrencyPair) -> list[CandlePrice]:
        product_id = self._product_id(pair)
        data = await self._get_json(
            f"{self.BASE_URL}/products/{product_id}/candles",
            params={"granularity": self.GRANULARITY},
        )
        try:
            # [time, low, high, open, close, volume], newest first, time is
            # the bucket start in seconds
            candles = [
                CandlePrice(
                    price=to_decimal(row[4]),
                    volume=to_decimal(row[5]),
                    timestamp=(int(row[0]) + self.GRANULARITY) * 1000,
                )
                for row in data
            ]
        except (IndexError, TypeError, ValueError) as e:
            raise ProviderError(
                f"[coinbase] Failed to parse candles for {product_id}: {e}"
            ) from e
        return sorted(candles, key=lambda c: c.timestamp)
