"""Price weighting and dispersion functions.

Pure functions over the per-tick aggregates:

- compute_vwap: volume-weighted average of ticker prices
- compute_tvwap: volume-and-recency weighted average of candle close prices
- standard_deviation: cross-provider mean and population stddev per asset

All arithmetic uses Decimal so results do not depend on float rounding.

.. code-block:: python

    >>> from decimal import Decimal
    >>> tickers = {
    ...     "kraken": {"ATOM": TickerPrice(Decimal("10"), Decimal("1"))},
    ...     "binance": {"ATOM": TickerPrice(Decimal("12"), Decimal("3"))},
    ... }
    >>> compute_vwap(tickers)
    {'ATOM': Decimal('11.5')}
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from decimal import Decimal

from .errors import StatisticsError
from .providers.base import AggregatedProviderCandles, AggregatedProviderPrices

# Only candles that ended within this window count towards TVWAP.
TVWAP_CANDLE_PERIOD_MS = 5 * 60 * 1000

# Weight given to the oldest candle in the window; the newest gets 1.
MINIMUM_TIME_WEIGHT = Decimal("0.2")


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


def _vwap(
    weighted_prices: Mapping[str, Decimal], volume_sums: Mapping[str, Decimal]
) -> dict[str, Decimal]:
    # assets with no volume have no defined average and are left out
    return {
        base: weighted / volume_sums[base]
        for base, weighted in weighted_prices.items()
        if volume_sums[base] != 0
    }


def compute_vwap(prices: AggregatedProviderPrices) -> dict[str, Decimal]:
    """Compute the volume-weighted average price per asset.

    :param prices: provider -> base -> TickerPrice.
    :returns: base -> VWAP. Assets whose total volume is zero are omitted.
    :raises StatisticsError: If a volume is negative.
    """
    weighted_prices: dict[str, Decimal] = {}
    volume_sums: dict[str, Decimal] = {}

    for provider_name, tickers in prices.items():
        for base, tp in tickers.items():
            if tp.volume < 0:
                raise StatisticsError(
                    f"negative volume {tp.volume} for {base} from {provider_name}"
                )
            weighted_prices[base] = weighted_prices.get(base, Decimal(0)) + tp.price * tp.volume
            volume_sums[base] = volume_sums.get(base, Decimal(0)) + tp.volume

    return _vwap(weighted_prices, volume_sums)


def compute_tvwap(
    candles: AggregatedProviderCandles, now: int | None = None
) -> dict[str, Decimal]:
    """Compute the time-and-volume weighted average price per asset.

    Only candles that ended within the last TVWAP_CANDLE_PERIOD_MS count.
    Each candle's volume is scaled linearly by recency, from
    MINIMUM_TIME_WEIGHT at the oldest candle a provider returned up to 1 at
    ``now``. A candle still open at ``now`` is weighted as ending at ``now``,
    so no weight exceeds 1.

    :param candles: provider -> base -> candles.
    :param now: Reference time in Unix ms (default: current time).
    :returns: base -> TVWAP. Assets without fresh, non-zero volume candles
        are omitted.
    :raises StatisticsError: If an asset's oldest candle ends exactly at
        ``now`` (the weighting period would be zero) or a volume is negative.
    """
    if now is None:
        now = now_ms()
    window_start = now - TVWAP_CANDLE_PERIOD_MS

    weighted_prices: dict[str, Decimal] = {}
    volume_sums: dict[str, Decimal] = {}

    for provider_name, provider_candles in candles.items():
        for base, cp in provider_candles.items():
            if not cp:
                continue

            weighted_prices.setdefault(base, Decimal(0))
            volume_sums.setdefault(base, Decimal(0))

            # an unfinished candle ends after now and counts as ending at now
            oldest = min(min(c.timestamp, now) for c in cp)
            period = Decimal(now - oldest)
            if period == 0:
                raise StatisticsError(
                    f"zero candle period for {base} from {provider_name}"
                )
            weight_unit = (1 - MINIMUM_TIME_WEIGHT) / period

            for candle in sorted(cp, key=lambda c: c.timestamp):
                if candle.timestamp <= window_start:
                    continue
                if candle.volume < 0:
                    raise StatisticsError(
                        f"negative candle volume for {base} from {provider_name}"
                    )
                time_diff = Decimal(now - min(candle.timestamp, now))
                volume = candle.volume * (
                    weight_unit * (period - time_diff) + MINIMUM_TIME_WEIGHT
                )
                volume_sums[base] += volume
                weighted_prices[base] += candle.price * volume

    return _vwap(weighted_prices, volume_sums)


def standard_deviation(
    values: Mapping[str, Mapping[str, Decimal]],
) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
    """Compute the cross-provider mean and population stddev per asset.

    :param values: provider -> base -> value.
    :returns: Tuple of (deviations, means), both base -> Decimal. Assets with
        fewer than two contributing providers appear in neither.
    """
    samples: dict[str, list[Decimal]] = {}
    for provider_values in values.values():
        for base, value in provider_values.items():
            samples.setdefault(base, []).append(value)

    deviations: dict[str, Decimal] = {}
    means: dict[str, Decimal] = {}

    for base, base_values in samples.items():
        if len(base_values) < 2:
            continue

        count = len(base_values)
        mean = sum(base_values, Decimal(0)) / count
        variance = sum(((v - mean) ** 2 for v in base_values), Decimal(0)) / count

        means[base] = mean
        deviations[base] = variance.sqrt()

    return deviations, means
