"""Shared fixtures: an in-memory provider adapter."""

import asyncio
from collections.abc import Sequence

import pytest

from pricefeeder.src.CurrencyPair import CurrencyPair
from pricefeeder.src.providers.base import BaseProvider, CandlePrice, TickerPrice


class FakeProvider(BaseProvider):
    """Provider serving canned data and recording every call.

    Set ``fail_*`` attributes to an exception to make the matching call
    raise it. Set ``gate`` to an asyncio.Event to hold ticker fetches until
    it is set; ``entered`` is set when a fetch starts waiting.
    """

    name = "fake"

    def __init__(
        self,
        available: set[str] | None = None,
        tickers: dict[str, TickerPrice] | None = None,
        candles: dict[str, list[CandlePrice]] | None = None,
    ):
        super().__init__()
        self.available = set(available or ())
        self.tickers = dict(tickers or {})
        self.candles = dict(candles or {})
        self.fail_available: Exception | None = None
        self.fail_subscribe: Exception | None = None
        self.fail_tickers: Exception | None = None
        self.fail_candles: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.entered: asyncio.Event | None = None
        self.subscribe_calls: list[list[str]] = []
        self.ticker_calls: list[list[str]] = []
        self.candle_calls: list[list[str]] = []

    async def list_available_pairs(self) -> set[str]:
        if self.fail_available:
            raise self.fail_available
        return set(self.available)

    async def subscribe_pairs(self, pairs: Sequence[CurrencyPair]) -> None:
        self.subscribe_calls.append([str(p) for p in pairs])
        if self.fail_subscribe:
            raise self.fail_subscribe
        await super().subscribe_pairs(pairs)

    async def get_ticker_prices(self, pairs):
        self.ticker_calls.append([str(p) for p in pairs])
        if self.gate is not None:
            if self.entered is not None:
                self.entered.set()
            await self.gate.wait()
        if self.fail_tickers:
            raise self.fail_tickers
        return {str(p): self.tickers[str(p)] for p in pairs if str(p) in self.tickers}

    async def get_candle_prices(self, pairs):
        self.candle_calls.append([str(p) for p in pairs])
        if self.fail_candles:
            raise self.fail_candles
        return {str(p): self.candles[str(p)] for p in pairs if str(p) in self.candles}


@pytest.fixture
def make_provider():
    """Factory fixture building FakeProvider instances."""
    return FakeProvider
