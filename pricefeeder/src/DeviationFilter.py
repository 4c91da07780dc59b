"""DeviationFilter: Cross-provider outlier rejection by standard deviation.

Algorithm, per asset:
    1. Reduce each provider's sample to a scalar (ticker price, or the
       provider's own TVWAP for candles)
    2. Compute the mean and population standard deviation across providers
    3. Keep a sample if no deviation could be computed (fewer than two
       providers) or it lies within mean +/- threshold * stddev, inclusive
    4. Drop and report everything else

Only the offending (provider, asset) sample is discarded for that tick; the
provider's other assets are unaffected.

.. code-block:: python

    >>> f = DeviationFilter(threshold=Decimal("1"))
    >>> result = f.filter_ticker_deviations({
    ...     "a": {"ATOM": TickerPrice(Decimal("9.00"), Decimal("1"))},
    ...     "b": {"ATOM": TickerPrice(Decimal("9.05"), Decimal("1"))},
    ...     "c": {"ATOM": TickerPrice(Decimal("15.00"), Decimal("1"))},
    ... })
    >>> result.dropped
    {'c': {'ATOM': Decimal('15.00')}}
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Generic, TypeVar

from .compute import compute_tvwap, standard_deviation
from .providers.base import AggregatedProviderCandles, AggregatedProviderPrices

logger = logging.getLogger(__name__)

# How many standard deviations a provider can be away from the mean
# without being considered faulty.
DEFAULT_DEVIATION_THRESHOLD = Decimal("2")

T = TypeVar("T")


@dataclass
class FilterResult(Generic[T]):
    """Result of deviation filtering.

    :ivar filtered: provider -> base -> sample, for samples that survived.
    :ivar dropped: provider -> base -> the scalar value that was rejected.
    :ivar means: base -> cross-provider mean, where computable.
    :ivar deviations: base -> cross-provider stddev, where computable.
    """

    filtered: dict[str, dict[str, T]] = field(default_factory=dict)
    dropped: dict[str, dict[str, Decimal]] = field(default_factory=dict)
    means: dict[str, Decimal] = field(default_factory=dict)
    deviations: dict[str, Decimal] = field(default_factory=dict)

    @property
    def dropped_count(self) -> int:
        """Number of (provider, asset) samples rejected."""
        return sum(len(bases) for bases in self.dropped.values())


class DeviationFilter:
    """Filters per-provider samples that deviate from the cross-provider mean.

    :ivar threshold: Number of standard deviations a sample may be away
        from the mean.
    """

    def __init__(self, threshold: Decimal | float | str = DEFAULT_DEVIATION_THRESHOLD) -> None:
        """Initialize the filter.

        :param threshold: Deviation threshold in standard deviations
            (default: 2).
        :raises ValueError: If threshold is negative.
        """
        threshold = Decimal(str(threshold))
        if threshold < 0:
            raise ValueError("deviation threshold must not be negative")
        self.threshold = threshold

    def is_within(
        self, value: Decimal, mean: Decimal | None, deviation: Decimal | None
    ) -> bool:
        """Check whether a value is acceptable against an asset's statistics.

        :param value: Provider's scalar for the asset.
        :param mean: Cross-provider mean, or None if not computable.
        :param deviation: Cross-provider stddev, or None if not computable.
        :returns: True if the value is kept.
        """
        if mean is None or deviation is None:
            return True
        band = deviation * self.threshold
        return mean - band <= value <= mean + band

    def filter(
        self,
        samples: Mapping[str, Mapping[str, T]],
        values: Mapping[str, Mapping[str, Decimal]],
        kind: str = "samples",
    ) -> FilterResult[T]:
        """Filter samples using their per-provider scalar values.

        Only (provider, base) entries present in ``values`` are considered;
        a sample without a scalar does not survive.

        :param samples: provider -> base -> sample to pass through.
        :param values: provider -> base -> scalar used for the statistics.
        :param kind: Label used in log messages ("prices", "candles").
        :returns: FilterResult with surviving samples and dropped values.
        """
        deviations, means = standard_deviation(values)
        result: FilterResult[T] = FilterResult(means=means, deviations=deviations)

        for provider_name, provider_values in values.items():
            for base, value in provider_values.items():
                if self.is_within(value, means.get(base), deviations.get(base)):
                    result.filtered.setdefault(provider_name, {})[base] = (
                        samples[provider_name][base]
                    )
                else:
                    result.dropped.setdefault(provider_name, {})[base] = value
                    logger.warning(
                        f"[{provider_name}] {base} deviating from other {kind}: "
                        f"{value} (mean={means[base]}, stddev={deviations[base]}, "
                        f"threshold={self.threshold})"
                    )

        return result

    def filter_ticker_deviations(
        self, prices: AggregatedProviderPrices
    ) -> FilterResult:
        """Filter ticker samples by price deviation.

        :param prices: provider -> base -> TickerPrice.
        :returns: FilterResult over TickerPrice samples.
        """
        values = {
            provider_name: {base: tp.price for base, tp in tickers.items()}
            for provider_name, tickers in prices.items()
        }
        return self.filter(prices, values, kind="prices")

    def filter_candle_deviations(
        self, candles: AggregatedProviderCandles, now: int | None = None
    ) -> FilterResult:
        """Filter candle samples by the deviation of each provider's TVWAP.

        :param candles: provider -> base -> candles.
        :param now: Reference time in Unix ms for the TVWAP window.
        :returns: FilterResult over candle lists.
        :raises StatisticsError: If a provider's TVWAP cannot be computed.
        """
        tvwaps: dict[str, dict[str, Decimal]] = {}
        for provider_name, provider_candles in candles.items():
            tvwap = compute_tvwap({provider_name: provider_candles}, now=now)
            if tvwap:
                tvwaps[provider_name] = tvwap

        return self.filter(candles, tvwaps, kind="candles")
