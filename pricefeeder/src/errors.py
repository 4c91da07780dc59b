"""Exceptions raised by the aggregation engine and the oracle facade."""


class OracleError(Exception):
    """Base exception for oracle errors."""

    pass


class PriceNotFoundError(OracleError, KeyError):
    """Raised when no canonical price is published for a base symbol.

    :ivar base: The base symbol that has no price.
    """

    def __init__(self, base: str):
        """Initialize the lookup error.

        :param base: Missing base symbol.
        """
        self.base = base
        super().__init__(f"no price for {base}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class SubscriptionError(OracleError):
    """Raised when a provider rejects a subscription request.

    :ivar provider: Name of the provider whose subscribe call failed.
    """

    def __init__(self, provider: str, message: str):
        """Initialize the subscription error.

        :param provider: Provider name.
        :param message: Error description.
        """
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class StatisticsError(OracleError):
    """Raised when weighting or deviation input cannot be computed."""

    pass
