"""Unit tests for DeviationFilter."""

from decimal import Decimal

import pytest

from pricefeeder.src.DeviationFilter import DEFAULT_DEVIATION_THRESHOLD, DeviationFilter
from pricefeeder.src.providers.base import CandlePrice, TickerPrice

NOW = 1_700_000_000_000


def ticker(price: str, volume: str = "1") -> TickerPrice:
    return TickerPrice(Decimal(price), Decimal(volume))


def candles(price: str, volume: str = "1") -> list[CandlePrice]:
    return [CandlePrice(Decimal(price), Decimal(volume), NOW - 60_000)]


ATOM_TICKERS = {
    "a": {"ATOM": ticker("9.00")},
    "b": {"ATOM": ticker("9.05")},
    "c": {"ATOM": ticker("15.00")},
}


class TestDeviationFilterInit:
    """Test DeviationFilter initialization."""

    def test_default_threshold(self) -> None:
        """Default threshold should be two standard deviations."""
        assert DeviationFilter().threshold == DEFAULT_DEVIATION_THRESHOLD == Decimal("2")

    def test_threshold_converted_to_decimal(self) -> None:
        """Float and string thresholds should become Decimal."""
        assert DeviationFilter(1.5).threshold == Decimal("1.5")
        assert DeviationFilter("3").threshold == Decimal("3")

    def test_negative_threshold(self) -> None:
        """Negative threshold should raise ValueError."""
        with pytest.raises(ValueError, match="must not be negative"):
            DeviationFilter(-1)


class TestIsWithin:
    """Test the acceptance band."""

    def test_bounds_inclusive(self) -> None:
        """Values exactly on the band edge should be kept."""
        f = DeviationFilter(2)
        assert f.is_within(Decimal("14"), Decimal("10"), Decimal("2"))
        assert f.is_within(Decimal("6"), Decimal("10"), Decimal("2"))
        assert not f.is_within(Decimal("14.01"), Decimal("10"), Decimal("2"))
        assert not f.is_within(Decimal("5.99"), Decimal("10"), Decimal("2"))

    def test_no_statistics_keeps_value(self) -> None:
        """Without mean or deviation every value should be kept."""
        f = DeviationFilter()
        assert f.is_within(Decimal("1000"), None, None)
        assert f.is_within(Decimal("1000"), Decimal("1"), None)


class TestFilterTickerDeviations:
    """Test ticker outlier rejection."""

    def test_no_outlier_at_two_sigma(self) -> None:
        """15.00 is about 1.41 sigma from the mean, so nothing is dropped at 2."""
        result = DeviationFilter(2).filter_ticker_deviations(ATOM_TICKERS)

        assert result.dropped == {}
        assert result.dropped_count == 0
        assert set(result.filtered) == {"a", "b", "c"}

    def test_outlier_dropped_at_one_sigma(self) -> None:
        """At one sigma only the 15.00 sample should be dropped."""
        result = DeviationFilter(1).filter_ticker_deviations(ATOM_TICKERS)

        assert result.dropped == {"c": {"ATOM": Decimal("15.00")}}
        assert result.filtered == {
            "a": {"ATOM": ticker("9.00")},
            "b": {"ATOM": ticker("9.05")},
        }
        assert Decimal("11.0166") < result.means["ATOM"] < Decimal("11.0167")
        assert Decimal("2.8167") < result.deviations["ATOM"] < Decimal("2.8168")

    def test_identical_prices_never_dropped(self) -> None:
        """Zero deviation should keep every identical sample."""
        prices = {name: {"ATOM": ticker("10")} for name in ("a", "b", "c")}
        result = DeviationFilter(0).filter_ticker_deviations(prices)
        assert result.dropped == {}
        assert len(result.filtered) == 3

    def test_single_provider_not_filtered(self) -> None:
        """An asset quoted by only one provider should be kept whatever its price."""
        prices = {
            "a": {"ATOM": ticker("10"), "OSMO": ticker("1000")},
            "b": {"ATOM": ticker("10")},
        }
        result = DeviationFilter(1).filter_ticker_deviations(prices)
        assert result.filtered["a"]["OSMO"] == ticker("1000")
        assert "OSMO" not in result.means

    def test_drop_is_per_asset(self) -> None:
        """A provider dropped for one asset should keep its other assets."""
        prices = {
            "a": {"ATOM": ticker("9.00"), "ETH": ticker("2000")},
            "b": {"ATOM": ticker("9.05"), "ETH": ticker("2000")},
            "c": {"ATOM": ticker("15.00"), "ETH": ticker("2000")},
        }
        result = DeviationFilter(1).filter_ticker_deviations(prices)
        assert result.dropped == {"c": {"ATOM": Decimal("15.00")}}
        assert result.filtered["c"] == {"ETH": ticker("2000")}

    def test_empty_input(self) -> None:
        """No tickers should produce an empty result."""
        result = DeviationFilter().filter_ticker_deviations({})
        assert result.filtered == {}
        assert result.dropped == {}

    def test_drop_logged(self, caplog) -> None:
        """Dropped samples should be logged as warnings."""
        with caplog.at_level("WARNING"):
            DeviationFilter(1).filter_ticker_deviations(ATOM_TICKERS)
        assert "[c] ATOM deviating from other prices" in caplog.text


class TestFilterCandleDeviations:
    """Test candle outlier rejection by per-provider TVWAP."""

    def test_outlier_dropped(self) -> None:
        """A provider whose TVWAP is far off should be dropped."""
        data = {
            "a": {"ATOM": candles("10")},
            "b": {"ATOM": candles("10.1")},
            "c": {"ATOM": candles("30")},
        }
        result = DeviationFilter(1).filter_candle_deviations(data, now=NOW)

        assert result.dropped == {"c": {"ATOM": Decimal("30")}}
        assert result.filtered == {"a": {"ATOM": data["a"]["ATOM"]}, "b": {"ATOM": data["b"]["ATOM"]}}

    def test_stale_series_does_not_survive(self) -> None:
        """A series with no candle in the window has no TVWAP and is excluded."""
        stale = [CandlePrice(Decimal("10"), Decimal("1"), NOW - 600_000)]
        data = {"a": {"ATOM": stale}, "b": {"ATOM": candles("10")}}
        result = DeviationFilter().filter_candle_deviations(data, now=NOW)
        assert result.filtered == {"b": {"ATOM": data["b"]["ATOM"]}}
        assert result.dropped == {}

    def test_independent_of_tickers(self) -> None:
        """Candle and ticker filtering should not influence each other."""
        f = DeviationFilter(1)
        candle_result = f.filter_candle_deviations({
            "a": {"ATOM": candles("10")},
            "b": {"ATOM": candles("10")},
            "c": {"ATOM": candles("10")},
        }, now=NOW)
        ticker_result = f.filter_ticker_deviations(ATOM_TICKERS)

        assert candle_result.dropped == {}
        assert ticker_result.dropped == {"c": {"ATOM": Decimal("15.00")}}
