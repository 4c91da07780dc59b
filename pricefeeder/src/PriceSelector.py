"""PriceSelector: Chooses canonical prices from filtered candles or tickers.

Candle data is preferred. If TVWAP over the deviation-filtered candles
yields at least one asset, those prices are the whole result for the tick
and tickers are not looked at. Otherwise tickers are deviation-filtered and
their VWAP is used.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from .compute import compute_tvwap, compute_vwap
from .DeviationFilter import DeviationFilter
from .providers.base import AggregatedProviderCandles, AggregatedProviderPrices

logger = logging.getLogger(__name__)

SOURCE_TVWAP = "tvwap"
SOURCE_VWAP = "vwap"


@dataclass
class SelectionResult:
    """Canonical prices chosen for one tick.

    :ivar prices: base -> canonical price.
    :ivar source: Which path produced the prices ("tvwap" or "vwap").
    :ivar dropped: provider -> base -> rejected value, for the path used.
    :ivar missing: Expected bases that ended up without a price.
    """

    prices: dict[str, Decimal]
    source: str
    dropped: dict[str, dict[str, Decimal]] = field(default_factory=dict)
    missing: set[str] = field(default_factory=set)


class PriceSelector:
    """Computes canonical prices with TVWAP-first, VWAP-fallback policy.

    :ivar deviation_filter: Filter applied to candles and tickers.
    """

    def __init__(self, deviation_filter: DeviationFilter | None = None) -> None:
        self.deviation_filter = deviation_filter or DeviationFilter()

    def select(
        self,
        prices: AggregatedProviderPrices,
        candles: AggregatedProviderCandles,
        expected: Iterable[str] = (),
        now: int | None = None,
    ) -> SelectionResult:
        """Select canonical prices for a tick.

        :param prices: provider -> base -> TickerPrice.
        :param candles: provider -> base -> candles.
        :param expected: Base symbols we hope to price, used only to report
            missing assets.
        :param now: Reference time in Unix ms for the TVWAP window.
        :returns: SelectionResult for the tick.
        :raises StatisticsError: If weighting or deviation input is invalid.
        """
        candle_result = self.deviation_filter.filter_candle_deviations(candles, now=now)

        # attempt to use candles for TVWAP calculations
        tvwap_prices = compute_tvwap(candle_result.filtered, now=now)
        if tvwap_prices:
            result = SelectionResult(
                prices=tvwap_prices,
                source=SOURCE_TVWAP,
                dropped=candle_result.dropped,
            )
        else:
            # candles unavailable or all stale: use most recent tickers
            ticker_result = self.deviation_filter.filter_ticker_deviations(prices)
            result = SelectionResult(
                prices=compute_vwap(ticker_result.filtered),
                source=SOURCE_VWAP,
                dropped=ticker_result.dropped,
            )

        result.missing = {base for base in expected if base not in result.prices}
        if result.missing:
            logger.debug(
                f"No {result.source} price this tick for: {', '.join(sorted(result.missing))}"
            )

        return result
