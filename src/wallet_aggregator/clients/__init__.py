"""Upstream clients and top-level fetchers."""

from .balances import BalanceFetcher
from .errors import (
    InvalidAddressError,
    MissingInputError,
    RateLimitedError,
    UpstreamUnavailableError,
    WalletAggregatorError,
)
from .graphql import SuiGraphQLClient
from .http_client import HttpRequest, HttpResponse, RateLimitTracker, RetryingFetcher, RetryPolicy
from .kiosk import GraphQLKioskSource, KioskNFTAggregator, KioskSource
from .metadata import NFTMetadataClient
from .price_oracle import PriceOracleClient
from .protocols import ProtocolDataClient, ProtocolInfo, ProtocolSummary
from .transactions import TransactionActivityFetcher

__all__ = [
    "BalanceFetcher",
    "GraphQLKioskSource",
    "HttpRequest",
    "HttpResponse",
    "InvalidAddressError",
    "KioskNFTAggregator",
    "KioskSource",
    "MissingInputError",
    "NFTMetadataClient",
    "PriceOracleClient",
    "ProtocolDataClient",
    "ProtocolInfo",
    "ProtocolSummary",
    "RateLimitTracker",
    "RateLimitedError",
    "RetryPolicy",
    "RetryingFetcher",
    "SuiGraphQLClient",
    "TransactionActivityFetcher",
    "UpstreamUnavailableError",
    "WalletAggregatorError",
]
