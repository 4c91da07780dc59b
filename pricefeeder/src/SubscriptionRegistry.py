"""SubscriptionRegistry: Which pairs each provider offers and is polled for.

Every provider has a ProviderState:
    - available_pairs: pair identities the provider lists, refreshed slowly
    - subscribed_pairs: pairs the provider accepted a subscription for

A pair is only subscribed if it is in the provider's available set, and only
polled while it is still listed there. Subscribing a base symbol expands it against the
configured stablecoin quotes and sends each provider one batch with the
candidates it offers and is not already subscribed to.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .CurrencyPair import STABLECOIN_QUOTES, CurrencyPair, get_stablecoin_pairs
from .errors import SubscriptionError
from .providers.base import BaseProvider

logger = logging.getLogger(__name__)


@dataclass
class ProviderState:
    """Subscription state of a single provider.

    :ivar available_pairs: Pair identities the provider can quote.
    :ivar subscribed_pairs: Pair identity -> subscribed CurrencyPair.
    """

    available_pairs: set[str] = field(default_factory=set)
    subscribed_pairs: dict[str, CurrencyPair] = field(default_factory=dict)


class SubscriptionRegistry:
    """Tracks available and subscribed pairs for every provider.

    Mutating methods must be called by the owner of the oracle state's
    writer lock; readers get copies.

    :ivar providers: Dict mapping provider names to adapter instances.
    :ivar quotes: Stablecoin quote symbols base symbols are expanded with.
    """

    def __init__(
        self,
        providers: Mapping[str, BaseProvider],
        quotes: Iterable[str] = STABLECOIN_QUOTES,
    ) -> None:
        """Initialize the registry with empty state for every provider.

        :param providers: Dict mapping provider names to adapter instances.
        :param quotes: Quote symbols (default: USD, USDT, UST).
        :raises ValueError: If no quote symbols are given.
        """
        self.providers = dict(providers)
        self.quotes = tuple(q.strip().upper() for q in quotes if q.strip())
        if not self.quotes:
            raise ValueError("At least one quote symbol must be specified")
        self._states: dict[str, ProviderState] = {
            name: ProviderState() for name in self.providers
        }

    def get_state(self, provider: str) -> ProviderState | None:
        """Get a copy of a provider's state.

        :param provider: Provider name.
        :returns: ProviderState copy or None if provider is unknown.
        """
        state = self._states.get(provider)
        if state is None:
            return None
        return ProviderState(
            available_pairs=set(state.available_pairs),
            subscribed_pairs=dict(state.subscribed_pairs),
        )

    def subscribed_pairs(self) -> dict[str, list[CurrencyPair]]:
        """Get the pairs to poll for every provider.

        A subscribed pair that a refresh no longer lists as available is not
        polled. It stays subscribed and is polled again once it is listed.

        :returns: provider -> subscribed and available pairs, in
            subscription order.
        """
        return {
            name: [
                pair
                for symbol, pair in state.subscribed_pairs.items()
                if symbol in state.available_pairs
            ]
            for name, state in self._states.items()
        }

    async def load_available_pairs(self) -> dict[str, set[str]]:
        """Query every provider for its available pairs, concurrently.

        Providers that fail or answer with an empty set are left out of the
        result, so their last-known set is kept when applied.

        :returns: provider -> available pair identities.
        """
        names = list(self.providers)
        results = await asyncio.gather(
            *(self.providers[name].list_available_pairs() for name in names),
            return_exceptions=True,
        )

        loaded: dict[str, set[str]] = {}
        for name, result in zip(names, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"[{name}] Error getting available pairs: {result}")
                continue
            if not result:
                logger.debug(f"[{name}] No available pairs returned, keeping last set")
                continue
            loaded[name] = set(result)
        return loaded

    def apply_available_pairs(self, loaded: Mapping[str, set[str]]) -> None:
        """Replace the available sets of the providers present in ``loaded``.

        :param loaded: provider -> available pair identities.
        """
        for name, pairs in loaded.items():
            state = self._states.get(name)
            if state is None:
                continue
            state.available_pairs = set(pairs)
            logger.debug(f"[{name}] {len(pairs)} available pairs")

    async def refresh_available_pairs(self) -> dict[str, set[str]]:
        """Load and apply available pairs in one step.

        :returns: provider -> available pair identities that were applied.
        """
        loaded = await self.load_available_pairs()
        self.apply_available_pairs(loaded)
        return loaded

    async def subscribe(self, base: str) -> dict[str, list[CurrencyPair]]:
        """Subscribe a base symbol on every provider that offers it.

        Each provider gets at most one subscribe call with the candidate
        pairs it has available and is not already subscribed to. Providers
        with nothing new are not called.

        :param base: Base symbol (e.g., "ATOM").
        :returns: provider -> pairs newly subscribed by this call.
        :raises SubscriptionError: If a provider rejects the batch or its
            subscribe call fails with any other exception. Nothing is
            recorded for that provider; providers handled before it keep
            their new subscriptions.
        """
        candidates = get_stablecoin_pairs(base, self.quotes)
        subscribed: dict[str, list[CurrencyPair]] = {}

        for name, provider in self.providers.items():
            state = self._states[name]
            to_subscribe: list[CurrencyPair] = []

            for pair in candidates:
                symbol = str(pair)
                if symbol in state.subscribed_pairs:
                    continue
                if symbol not in state.available_pairs:
                    logger.debug(f"[{name}] {symbol} is not available")
                    continue
                to_subscribe.append(pair)

            if not to_subscribe:
                continue

            try:
                await provider.subscribe_pairs(to_subscribe)
            except Exception as e:
                logger.error(f"[{name}] Subscribing to {[str(p) for p in to_subscribe]} failed: {e}")
                raise SubscriptionError(name, str(e) or type(e).__name__) from e

            for pair in to_subscribe:
                state.subscribed_pairs[str(pair)] = pair
            subscribed[name] = to_subscribe
            logger.info(f"[{name}] Subscribed pairs {[str(p) for p in to_subscribe]}")

        return subscribed

    async def resubscribe(self, bases: Iterable[str]) -> None:
        """Pick up newly available pairs for already-subscribed base symbols.

        Failures are logged and retried at the next call.

        :param bases: Base symbols that are subscribed.
        """
        for base in sorted(bases):
            try:
                await self.subscribe(base)
            except SubscriptionError as e:
                logger.warning(f"Resubscribing {base} failed, will retry: {e}")
