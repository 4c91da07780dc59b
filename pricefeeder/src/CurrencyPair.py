"""CurrencyPair: Base/quote pair identity shared by every provider.

The string form ``BASE/QUOTE`` is the pair identity used as the key in a
provider's available and subscribed sets and in adapter results. Adapters
translate it to their own native symbol format.

.. code-block:: python

    >>> pair = CurrencyPair("atom", "usdt")
    >>> str(pair)
    'ATOM/USDT'
    >>> [str(p) for p in get_stablecoin_pairs("umee")]
    ['UMEE/USD', 'UMEE/USDT', 'UMEE/UST']
"""

from __future__ import annotations

from collections.abc import Iterable

# Quote symbols a base symbol is expanded against when subscribing.
STABLECOIN_QUOTES: tuple[str, ...] = ("USD", "USDT", "UST")


class CurrencyPair:
    """An immutable trading pair.

    :ivar base: Base currency symbol (uppercase).
    :ivar quote: Quote currency symbol (uppercase).
    """

    __slots__ = ("_base", "_quote")

    def __init__(self, base: str, quote: str) -> None:
        """Initialize a currency pair.

        :param base: Base currency symbol (e.g., "ATOM", "umee").
        :param quote: Quote currency symbol (e.g., "USDT").
        :raises ValueError: If either symbol is empty.
        """
        base = base.strip().upper()
        quote = quote.strip().upper()
        if not base or not quote:
            raise ValueError("base and quote symbols must be non-empty")
        object.__setattr__(self, "_base", base)
        object.__setattr__(self, "_quote", quote)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("CurrencyPair is immutable")

    @property
    def base(self) -> str:
        return self._base

    @property
    def quote(self) -> str:
        return self._quote

    def __str__(self) -> str:
        """Return the pair identity, e.g. ``ATOM/USDT``."""
        return f"{self._base}/{self._quote}"

    def __repr__(self) -> str:
        return f"CurrencyPair({self._base!r}, {self._quote!r})"

    def __hash__(self) -> int:
        return hash((self._base, self._quote))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CurrencyPair):
            return NotImplemented
        return (self._base, self._quote) == (other._base, other._quote)

    @classmethod
    def from_string(cls, pair_str: str) -> CurrencyPair:
        """Parse a pair identity in format "base/quote".

        :param pair_str: Pair string like "atom/usdt".
        :returns: New CurrencyPair instance.
        :raises ValueError: If pair string format is invalid.
        """
        parts = pair_str.split("/")
        if len(parts) != 2:
            raise ValueError(
                f"Invalid pair format '{pair_str}'. Expected 'base/quote' (e.g., 'atom/usdt')"
            )
        return cls(parts[0], parts[1])


def get_stablecoin_pairs(
    base: str, quotes: Iterable[str] = STABLECOIN_QUOTES
) -> list[CurrencyPair]:
    """Expand a base symbol into candidate pairs quoted by stablecoins.

    :param base: Base symbol to expand (e.g., "ATOM").
    :param quotes: Quote symbols to pair it with.
    :returns: One CurrencyPair per quote, in the order given.
    """
    return [CurrencyPair(base, quote) for quote in quotes]
