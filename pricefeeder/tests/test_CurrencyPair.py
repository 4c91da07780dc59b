"""Unit tests for CurrencyPair."""

import pytest

from pricefeeder.src.CurrencyPair import STABLECOIN_QUOTES, CurrencyPair, get_stablecoin_pairs


class TestCurrencyPair:
    """Test CurrencyPair identity."""

    def test_symbols_are_uppercased(self) -> None:
        """Lowercase and padded symbols should be normalized."""
        pair = CurrencyPair(" atom ", "usdt")
        assert pair.base == "ATOM"
        assert pair.quote == "USDT"

    def test_str_is_identity(self) -> None:
        """String form should be BASE/QUOTE."""
        assert str(CurrencyPair("umee", "usd")) == "UMEE/USD"

    def test_repr(self) -> None:
        """repr should show both symbols."""
        assert repr(CurrencyPair("ATOM", "USDT")) == "CurrencyPair('ATOM', 'USDT')"

    def test_equality_and_hash(self) -> None:
        """Pairs with the same symbols should be equal and hash the same."""
        a = CurrencyPair("atom", "usdt")
        b = CurrencyPair("ATOM", "USDT")
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1
        assert a != CurrencyPair("ATOM", "USD")

    def test_not_equal_to_string(self) -> None:
        """A pair should not compare equal to its string form."""
        assert CurrencyPair("ATOM", "USDT") != "ATOM/USDT"

    def test_immutable(self) -> None:
        """Attributes should not be assignable."""
        pair = CurrencyPair("ATOM", "USDT")
        with pytest.raises(AttributeError):
            pair.base = "ETH"
        with pytest.raises(AttributeError):
            pair._quote = "USD"

    def test_empty_symbol_rejected(self) -> None:
        """Empty base or quote should raise ValueError."""
        with pytest.raises(ValueError, match="non-empty"):
            CurrencyPair("", "USD")
        with pytest.raises(ValueError, match="non-empty"):
            CurrencyPair("ATOM", "  ")


class TestCurrencyPairFromString:
    """Test parsing pair identities."""

    def test_from_string(self) -> None:
        """Valid identity should parse."""
        pair = CurrencyPair.from_string("atom/usdt")
        assert pair == CurrencyPair("ATOM", "USDT")

    def test_from_string_invalid(self) -> None:
        """Identity without exactly one slash should raise ValueError."""
        with pytest.raises(ValueError, match="Invalid pair format"):
            CurrencyPair.from_string("ATOMUSDT")
        with pytest.raises(ValueError, match="Invalid pair format"):
            CurrencyPair.from_string("A/B/C")


class TestStablecoinPairs:
    """Test expansion of base symbols into candidate pairs."""

    def test_default_quotes(self) -> None:
        """Default expansion should use USD, USDT and UST in order."""
        assert STABLECOIN_QUOTES == ("USD", "USDT", "UST")
        pairs = get_stablecoin_pairs("umee")
        assert [str(p) for p in pairs] == ["UMEE/USD", "UMEE/USDT", "UMEE/UST"]

    def test_custom_quotes(self) -> None:
        """Custom quotes should be used as given."""
        pairs = get_stablecoin_pairs("ETH", ["usdc"])
        assert pairs == [CurrencyPair("ETH", "USDC")]
