"""Binance spot provider.

Endpoints:
    - https://api.binance.com/api/v3/exchangeInfo (available pairs)
    - https://api.binance.com/api/v3/ticker/24hr?symbols=[...] (tickers, batch)
    - https://api.binance.com/api/v3/klines?symbol=...&interval=1m (candles)
Rate Limit: High (no key required for public endpoints)
"""

import asyncio
import json
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
class BinanceProvider(BaseProvider):
    """Provider for Binance public spot API.

    Tickers for all pairs are fetched in one batched request; candles need
    one request per pair and are fetched concurrently.
    """

    name = "binance"
    BASE_URL = "https://api.binance.com/api/v3"

    # Number of one-minute candles requested per pair
    CANDLE_LIMIT = 10

    @staticmethod
    def _symbol(pair: CurrencyPair) -> str:
        return f"{pair.base}{pair.quote}"

    def _headers(self) -> dict | None:
        # Keyed requests get a higher rate limit
        if self.has_api_key:
            return {"X-MBX-APIKEY": self.api_key}
        return None

    async def list_available_pairs(self) -> set[str]:
        """List pairs currently trading on Binance.

        :returns: Set of ``BASE/QUOTE`` identities.
        """
        data = await self._get_json(
            f"{self.BASE_URL}/exchangeInfo", headers=self._headers()
        )
        try:
            return {
                f"{s['baseAsset']}/{s['quoteAsset']}".upper()
                for s in data["symbols"]
                if s.get("status") == "TRADING"
            }
        except (KeyError, TypeError) as e:
            raise ProviderError(f"[binance] Failed to parse exchangeInfo: {e}") from e

    async def get_ticker_prices(
        self, pairs: Sequence[CurrencyPair]
    ) -> dict[str, TickerPrice]:
        """Fetch 24h tickers for all pairs in a single API call.

        :param pairs: Pairs to fetch.
        :returns: Dict mapping pair identity to TickerPrice.
        """
        if not pairs:
            return {}

        by_symbol = {self._symbol(p): p for p in pairs}
        symbols = json.dumps(list(by_symbol), separators=(",", ":"))
        data = await self._get_json(
            f"{self.BASE_URL}/ticker/24hr",
            params={"symbols": symbols},
            headers=self._headers(),
        )

        results: dict[str, TickerPrice] = {}
        try:
            for item in data:
                pair = by_symbol.get(item["symbol"])
                if pair is None:
                    continue
                results[str(pair)] = TickerPrice(
                    price=to_decimal(item["lastPrice"]),
                    volume=to_decimal(item["volume"]),
                )
        except (KeyError, TypeError) as e:
            raise ProviderError(f"[binance] Failed to parse tickers: {e}") from e

        return results

    async def get_candle_prices(
        self, pairs: Sequence[CurrencyPair]
    ) -> dict[str, list[CandlePrice]]:
        """Fetch recent one-minute klines for each pair concurrently.

        :param pairs: Pairs to fetch.
        :returns: Dict mapping pair identity to candles ordered old -> new.
        """
        candles = await asyncio.gather(*(self._fetch_klines(p) for p in pairs))
        return {str(pair): cp for pair, cp in zip(pairs, candles, strict=True) if cp}

    async def _fetch_klines(self, pair: CurrencyPair) -> list[CandlePrice]:
        data = await self._get_json(
            f"{self.BASE_URL}/klines",
            params={
                "symbol": self._symbol(pair),
                "interval": "1m",
                "limit": self.CANDLE_LIMIT,
            },
            headers=self._headers(),
        )
        try:
            # [openTime, open, high, low, close, volume, closeTime, ...]
            return [
                CandlePrice(
                    price=to_decimal(k[4]),
                    volume=to_decimal(k[5]),
                    timestamp=int(k[6]),
                )
                for k in data
            ]
        except (IndexError, TypeError, ValueError) as e:
            raise ProviderError(f"[binance] Failed to parse klines for {pair}: {e}") from e
