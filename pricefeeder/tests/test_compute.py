"""Unit tests for VWAP, TVWAP and standard deviation."""

from decimal import Decimal

import pytest

from pricefeeder.src.compute import (
    TVWAP_CANDLE_PERIOD_MS,
    compute_tvwap,
    compute_vwap,
    standard_deviation,
)
from pricefeeder.src.errors import StatisticsError
from pricefeeder.src.providers.base import CandlePrice, TickerPrice

NOW = 1_700_000_000_000


def ticker(price: str, volume: str = "1") -> TickerPrice:
    return TickerPrice(Decimal(price), Decimal(volume))


def candle(price: str, volume: str, age_ms: int) -> CandlePrice:
    return CandlePrice(Decimal(price), Decimal(volume), NOW - age_ms)


class TestComputeVWAP:
    """Test volume-weighted average price."""

    def test_weighted_by_volume(self) -> None:
        """Prices should be weighted by their volume across providers."""
        result = compute_vwap({
            "kraken": {"ATOM": ticker("10", "1")},
            "binance": {"ATOM": ticker("12", "3")},
        })
        assert result == {"ATOM": Decimal("11.5")}

    def test_single_provider(self) -> None:
        """One provider's price should be returned as-is."""
        assert compute_vwap({"a": {"ETH": ticker("2000", "5")}}) == {"ETH": Decimal("2000")}

    def test_zero_volume_omitted(self) -> None:
        """Assets with zero total volume should be left out."""
        result = compute_vwap({
            "a": {"ATOM": ticker("10", "0"), "ETH": ticker("2000", "1")},
            "b": {"ATOM": ticker("11", "0")},
        })
        assert result == {"ETH": Decimal("2000")}

    def test_empty_input(self) -> None:
        """No tickers should produce no prices."""
        assert compute_vwap({}) == {}

    def test_negative_volume(self) -> None:
        """Negative volume should raise StatisticsError."""
        with pytest.raises(StatisticsError, match="negative volume"):
            compute_vwap({"a": {"ATOM": ticker("10", "-1")}})


class TestComputeTVWAP:
    """Test time-and-volume weighted average price."""

    def test_recent_candles_weigh_more(self) -> None:
        """Newer candles should carry more weight than older ones."""
        # period is 80s: the oldest candle gets weight 0.2, the 40s old one 0.6
        candles = {"a": {"ATOM": [candle("10", "1", 80_000), candle("20", "1", 40_000)]}}
        assert compute_tvwap(candles, now=NOW) == {"ATOM": Decimal("17.5")}

    def test_candle_order_does_not_matter(self) -> None:
        """Unsorted candles should give the same result."""
        candles = {"a": {"ATOM": [candle("20", "1", 40_000), candle("10", "1", 80_000)]}}
        assert compute_tvwap(candles, now=NOW) == {"ATOM": Decimal("17.5")}

    def test_open_candle_weighted_as_ending_now(self) -> None:
        """A candle ending after now should get weight 1, not more."""
        # weights 0.2 and 1: (10 * 0.2 + 40 * 1) / 1.2
        candles = {"a": {"ATOM": [candle("10", "1", 80_000), candle("40", "1", -30_000)]}}
        assert compute_tvwap(candles, now=NOW) == {"ATOM": Decimal("35")}

    def test_stale_candles_excluded(self) -> None:
        """Candles older than the window should not contribute."""
        candles = {"a": {"ATOM": [candle("1000", "50", 400_000), candle("10", "1", 100_000)]}}
        assert compute_tvwap(candles, now=NOW) == {"ATOM": Decimal("10")}

    def test_candle_on_window_edge_excluded(self) -> None:
        """A candle exactly one window old should not contribute."""
        candles = {"a": {"ATOM": [candle("1000", "1", TVWAP_CANDLE_PERIOD_MS)]}}
        assert compute_tvwap(candles, now=NOW) == {}

    def test_all_stale_omitted(self) -> None:
        """An asset with only stale candles should be left out."""
        candles = {
            "a": {"ATOM": [candle("10", "1", 600_000)], "ETH": [candle("2000", "1", 60_000)]},
        }
        assert compute_tvwap(candles, now=NOW) == {"ETH": Decimal("2000")}

    def test_combines_providers(self) -> None:
        """Candles of the same asset from several providers should be combined."""
        candles = {
            "a": {"ATOM": [candle("10", "1", 60_000)]},
            "b": {"ATOM": [candle("20", "1", 60_000)]},
        }
        assert compute_tvwap(candles, now=NOW) == {"ATOM": Decimal("15")}

    def test_empty_series_skipped(self) -> None:
        """Empty candle lists should be ignored."""
        assert compute_tvwap({"a": {"ATOM": []}}, now=NOW) == {}

    def test_zero_period(self) -> None:
        """Oldest candle ending exactly now should raise StatisticsError."""
        with pytest.raises(StatisticsError, match="zero candle period"):
            compute_tvwap({"a": {"ATOM": [candle("10", "1", 0)]}}, now=NOW)


class TestStandardDeviation:
    """Test cross-provider mean and standard deviation."""

    def test_population_deviation(self) -> None:
        """Deviation should be the population standard deviation."""
        values = {
            f"p{i}": {"ATOM": Decimal(v)}
            for i, v in enumerate(["2", "4", "4", "4", "5", "5", "7", "9"])
        }
        deviations, means = standard_deviation(values)
        assert means == {"ATOM": Decimal("5")}
        assert deviations == {"ATOM": Decimal("2")}

    def test_identical_values(self) -> None:
        """Identical values should have zero deviation."""
        deviations, means = standard_deviation({
            "a": {"ATOM": Decimal("10")},
            "b": {"ATOM": Decimal("10")},
        })
        assert means["ATOM"] == Decimal("10")
        assert deviations["ATOM"] == 0

    def test_single_sample_skipped(self) -> None:
        """Assets with fewer than two providers should be absent."""
        deviations, means = standard_deviation({
            "a": {"ATOM": Decimal("10"), "ETH": Decimal("2000")},
            "b": {"ATOM": Decimal("12")},
        })
        assert set(means) == {"ATOM"}
        assert set(deviations) == {"ATOM"}
        assert means["ATOM"] == Decimal("11")
        assert deviations["ATOM"] == Decimal("1")

    def test_empty_input(self) -> None:
        """No values should give empty results."""
        assert standard_deviation({}) == ({}, {})
