"""Kraken provider.

Endpoints:
    - https://api.kraken.com/0/public/AssetPairs (available pairs)
    - https://api.kraken.com/0/public/Ticker?pair=A,B,... (tickers, batch)
    - https://api.kraken.com/0/public/OHLC?pair=...&interval=1 (candles)
Rate Limit: High (no key required)
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

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
class KrakenProvider(BaseProvider):
    """Provider for Kraken public API.

    Kraken uses non-standard asset codes (XBT for BTC) and answers with its
    own pair names (e.g. "XXBTZUSD") as result keys, so the pair name and
    altname for every available pair are remembered from AssetPairs.
    """

    name = "kraken"
    BASE_URL = "https://api.kraken.com/0/public"

    # Kraken asset code -> common symbol
    SYMBOL_MAP = {
        "XBT": "BTC",
        "XDG": "DOGE",
    }

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        super().__init__(api_key=api_key, timeout=timeout)
        # pair identity -> (pair name, altname)
        self._pair_names: dict[str, tuple[str, str]] = {}

    def _normalize(self, symbol: str) -> str:
        symbol = symbol.upper()
        return self.SYMBOL_MAP.get(symbol, symbol)

    def _native(self, pair: CurrencyPair) -> str:
        names = self._pair_names.get(str(pair))
        if names is not None:
            return names[1]
        reverse = {v: k for k, v in self.SYMBOL_MAP.items()}
        return f"{reverse.get(pair.base, pair.base)}{pair.quote}"

    def _find_result(self, result: dict[str, Any], pair: CurrencyPair) -> Any:
        names = self._pair_names.get(str(pair))
        candidates = list(names) if names else [self._native(pair)]
        for key in candidates:
            if key in result:
                return result[key]
        return None

    async def _public(self, path: str, params: dict | None = None) -> dict[str, Any]:
        data = await self._get_json(f"{self.BASE_URL}/{path}", params=params)
        if data.get("error"):
            raise ProviderError(f"[kraken] API error on {path}: {data['error']}")
        result = data.get("result")
        if not isinstance(result, dict):
            raise ProviderError(f"[kraken] No result in {path} response")
        return result

    async def list_available_pairs(self) -> set[str]:
        """List pairs Kraken can quote, remembering native pair names.

        :returns: Set of ``BASE/QUOTE`` identities.
        """
        result = await self._public("AssetPairs")
        pair_names: dict[str, tuple[str, str]] = {}
        for name, info in result.items():
            wsname = info.get("wsname")
            if not wsname or "/" not in wsname:
                continue
            base, quote = wsname.split("/", 1)
            identity = f"{self._normalize(base)}/{self._normalize(quote)}"
            pair_names[identity] = (name, info.get("altname", name))

        self._pair_names = pair_names
        return set(pair_names)

    async def get_ticker_prices(
        self, pairs: Sequence[CurrencyPair]
    ) -> dict[str, TickerPrice]:
        """Fetch tickers for all pairs in a single API call.

        :param pairs: Pairs to fetch.
        :returns: Dict mapping pair identity to TickerPrice.
        """
        if not pairs:
            return {}

        result = await self._public(
            "Ticker", {"pair": ",".join(self._native(p) for p in pairs)}
        )

        results: dict[str, TickerPrice] = {}
        for pair in pairs:
            pair_data = self._find_result(result, pair)
            if pair_data is None:
                logger.debug(f"[kraken] No ticker returned for {pair}")
                continue
            try:
                # 'c' is the last trade closed array: [price, lot volume]
                # 'v' is volume: [today, last 24 hours]
                results[str(pair)] = TickerPrice(
                    price=to_decimal(pair_data["c"][0]),
                    volume=to_decimal(pair_data["v"][1]),
                )
            except (KeyError, IndexError, TypeError) as e:
                raise ProviderError(f"[kraken] Failed to parse ticker for {pair}: {e}") from e

        return results

    async def get_candle_prices(
        self, pairs: Sequence[CurrencyPair]
    ) -> dict[str, list[CandlePrice]]:
        """Fetch one-minute OHLC data for each pair concurrently.

        :param pairs: Pairs to fetch.
        :returns: Dict mapping pair identity to candles ordered old -> new.
        """
        candles = await asyncio.gather(*(self._fetch_ohlc(p) for p in pairs))
        return {str(pair): cp for pair, cp in zip(pairs, candles, strict=True) if cp}

    async def _fetch_ohlc(self, pair: CurrencyPair) -> list[CandlePrice]:
        result = await self._public(
            "OHLC", {"pair": self._native(pair), "interval": 1}
        )
        rows = self._find_result(result, pair)
        if rows is None:
            return []
        try:
            # [time, open, high, low, close, vwap, volume, count], time is the
            # candle start in seconds
            return [
                CandlePrice(
                    price=to_decimal(row[4]),
                    volume=to_decimal(row[6]),
                    timestamp=(int(row[0]) + 60) * 1000,
                )
                for row in rows
            ]
        except (IndexError, TypeError, ValueError) as e:
            raise ProviderError(f"[kraken] Failed to parse OHLC for {pair}: {e}") from e
