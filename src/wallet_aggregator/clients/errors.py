"""Error taxonomy for the wallet aggregation clients."""


class WalletAggregatorError(Exception):
    """Base exception for wallet aggregator errors."""

    pass


class InvalidAddressError(WalletAggregatorError):
    """Malformed Sui wallet address."""

    pass


class MissingInputError(WalletAggregatorError):
    """No wallet address could be resolved for a request."""

    pass


class UpstreamUnavailableError(WalletAggregatorError):
    """Upstream failed, returned a malformed payload, or retries were exhausted."""

    pass


class RateLimitedError(UpstreamUnavailableError):
    """Upstream kept answering 429 beyond the retry or abort threshold."""

    pass
