"""ProviderHealth: Per-provider record of collection outcomes.

Every tick, each provider's collection either succeeds or fails. The
outcome is recorded here so operators can see which providers are
persistently failing. Recording never excludes a provider: a provider that
failed on one tick is polled again on the next.

.. code-block:: python

    >>> health = ProviderHealth(["binance", "kraken"])
    >>> health.record_failure("kraken", "HTTP 502: Bad Gateway")
    1
    >>> health.record_failure("kraken", "timeout")
    2
    >>> health.record_success("kraken")
    >>> health.get_status("kraken").consecutive_failures
    0
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace


@dataclass
class ProviderStatus:
    """Tracks collection outcomes of a single provider.

    :ivar consecutive_failures: Number of failed ticks in a row.
    :ivar total_failures: Failed ticks since tracking began.
    :ivar total_successes: Successful ticks since tracking began.
    :ivar last_error: Message of the most recent failure.
    :ivar last_success: Unix timestamp of the most recent success.
    """

    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_error: str | None = None
    last_success: float | None = None


class ProviderHealth:
    """Records per-provider collection successes and failures.

    :ivar providers: List of tracked provider names.
    """

    def __init__(self, providers: list[str]) -> None:
        """Initialize the health record.

        :param providers: Provider names to track.
        """
        self.providers = list(providers)
        self._status: dict[str, ProviderStatus] = {p: ProviderStatus() for p in providers}

    def _get_or_create(self, provider: str) -> ProviderStatus:
        if provider not in self._status:
            self.providers.append(provider)
            self._status[provider] = ProviderStatus()
        return self._status[provider]

    def record_failure(self, provider: str, error: str) -> int:
        """Record a failed collection.

        :param provider: Provider name that failed.
        :param error: Description of the failure.
        :returns: Number of consecutive failures including this one.
        """
        status = self._get_or_create(provider)
        status.consecutive_failures += 1
        status.total_failures += 1
        status.last_error = error
        return status.consecutive_failures

    def record_success(self, provider: str) -> None:
        """Record a successful collection, resetting the failure streak.

        :param provider: Provider name that succeeded.
        """
        status = self._get_or_create(provider)
        status.consecutive_failures = 0
        status.total_successes += 1
        status.last_success = time.time()

    def get_status(self, provider: str) -> ProviderStatus | None:
        """Get the status of a specific provider.

        :param provider: Provider name to query.
        :returns: ProviderStatus or None if provider not tracked.
        """
        return self._status.get(provider)

    def get_all_status(self) -> dict[str, ProviderStatus]:
        """Get status of all providers.

        :returns: Dict mapping provider names to a copy of their status.
        """
        return {name: replace(status) for name, status in self._status.items()}

    def get_failing_providers(self) -> list[str]:
        """Get providers whose most recent collection failed.

        :returns: Provider names with a non-zero failure streak.
        """
        return [p for p in self.providers if self._status[p].consecutive_failures > 0]
