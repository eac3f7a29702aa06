"""Application facade wiring configuration, clients and caches together."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import aiohttp

from .clients import (
    BalanceFetcher,
    GraphQLKioskSource,
    InvalidAddressError,
    KioskNFTAggregator,
    KioskSource,
    MissingInputError,
    NFTMetadataClient,
    PriceOracleClient,
    ProtocolDataClient,
    ProtocolSummary,
    RetryingFetcher,
    RetryPolicy,
    SuiGraphQLClient,
    TransactionActivityFetcher,
)
from .clients.sui_types import (
    BalanceEntry,
    FetchResult,
    Kiosk,
    TransactionRecord,
    extract_wallet_address,
    is_valid_sui_address,
    normalize_address,
)
from .config import AppConfig, get_config
from .utils.cache import CacheInterface, CacheManager
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class WalletOverview:
    """Results of the three wallet fetchers for one address."""

    address: str
    activity: FetchResult[TransactionRecord]
    balances: FetchResult[BalanceEntry]
    kiosks: FetchResult[Kiosk]


class WalletAggregator:
    """Entry point for collaborators: one call per data set, keyed by wallet."""

    def __init__(
        self,
        config: AppConfig,
        session: aiohttp.ClientSession | None = None,
        durable_cache: CacheInterface | None = None,
        kiosk_source: KioskSource | None = None,
    ):
        self.config = config
        policy = RetryPolicy.from_config(config.retry)

        self.sui_fetcher = RetryingFetcher(policy=policy, session=session, rate_limit=config.sui.rate_limit)
        self.price_fetcher = RetryingFetcher(policy=policy, session=session, rate_limit=config.prices.rate_limit)

        self.cache_manager = CacheManager(config.cache, durable=durable_cache)
        self.graphql = SuiGraphQLClient(config.sui, self.sui_fetcher)
        self.price_oracle = PriceOracleClient(config.prices, self.price_fetcher)
        self.metadata_client = NFTMetadataClient(config.metadata, self.price_fetcher)
        self.protocol_client = ProtocolDataClient(config.protocols, self.price_fetcher)

        self.transactions = TransactionActivityFetcher(self.graphql, self.price_oracle, config.retry)
        self.balances = BalanceFetcher(self.graphql, self.price_oracle, config.retry)
        self.kiosks = KioskNFTAggregator(
            kiosk_source=kiosk_source or GraphQLKioskSource(self.graphql),
            graphql=self.graphql,
            metadata_client=self.metadata_client,
            cache=self.cache_manager.get_layered_cache(config.kiosk.cache_namespace),
            config=config.kiosk,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def resolve_address(self, address: str | None = None, text: str | None = None) -> str:
        """Pick the wallet for a request: explicit address, then free text, then the default.

        Raises:
            InvalidAddressError: an explicit address is malformed.
            MissingInputError: no address could be resolved.
        """
        if address:
            if not is_valid_sui_address(address):
                raise InvalidAddressError(f"Invalid Sui address: {address}")
            return normalize_address(address)

        found = extract_wallet_address(text) or self.config.default_wallet_address
        if not found:
            raise MissingInputError("No valid wallet address found")
        return normalize_address(found)

    async def get_activity(
        self,
        address: str | None = None,
        text: str | None = None,
    ) -> FetchResult[TransactionRecord]:
        wallet = self.resolve_address(address, text)
        return await self.transactions.fetch_activity(wallet)

    async def get_balances(self, address: str | None = None, text: str | None = None) -> FetchResult[BalanceEntry]:
        wallet = self.resolve_address(address, text)
        return await self.balances.fetch_balances(wallet)

    async def get_nfts(
        self,
        address: str | None = None,
        text: str | None = None,
        floor_price: Decimal | None = None,
    ) -> FetchResult[Kiosk]:
        wallet = self.resolve_address(address, text)
        return await self.kiosks.fetch_kiosks(wallet, floor_price=floor_price)

    async def get_overview(self, address: str | None = None, text: str | None = None) -> WalletOverview:
        """Run the three wallet fetchers concurrently."""
        wallet = self.resolve_address(address, text)
        activity, balances, kiosks = await asyncio.gather(
            self.transactions.fetch_activity(wallet),
            self.balances.fetch_balances(wallet),
            self.kiosks.fetch_kiosks(wallet),
        )
        return WalletOverview(address=wallet, activity=activity, balances=balances, kiosks=kiosks)

    async def clear_wallet_data(self, address: str) -> None:
        """Drop cached data for a wallet so the next fetch goes upstream."""
        await self.kiosks.invalidate(self.resolve_address(address))

    async def get_protocols(self, chain: str | None = None) -> ProtocolSummary:
        return await self.protocol_client.fetch_protocols(chain)

    async def get_stats(self) -> dict[str, Any]:
        return {
            "sui_http": self.sui_fetcher.get_stats(),
            "price_http": self.price_fetcher.get_stats(),
            "prices": self.price_oracle.get_stats(),
            "cache": await self.cache_manager.get_stats(),
        }

    async def close(self) -> None:
        await self.sui_fetcher.close()
        await self.price_fetcher.close()
        await self.cache_manager.close()


@asynccontextmanager
async def create_application(config: AppConfig | None = None, **kwargs: Any) -> AsyncIterator[WalletAggregator]:
    """Create a configured WalletAggregator and close it on exit."""
    config = config or get_config()
    setup_logging(config.logging)
    app = WalletAggregator(config, **kwargs)
    try:
        yield app
    finally:
        await app.close()
