"""Tests for the application facade."""

from typing import Any

import pytest
from fakes import WALLET, FakeResponse, FakeSession, balance_change, graphql_ok, transaction_block

from wallet_aggregator.app import WalletAggregator, create_application
from wallet_aggregator.clients.errors import InvalidAddressError, MissingInputError
from wallet_aggregator.clients.sui_types import FetchStatus
from wallet_aggregator.config import AppConfig, PriceConfig, SuiConfig
from wallet_aggregator.utils.cache import MemoryCache

GRAPHQL_URL = "https://graphql.test/graphql"
SUI = "0x2::sui::SUI"

PROTOCOLS = [
    {"name": "Cetus", "slug": "cetus", "chain": "Sui", "chains": ["Sui"], "tvl": 1.5e8},
    {"name": "Aave", "slug": "aave", "chain": "Multi-Chain", "chains": ["Ethereum", "Sui"], "tvl": 1e10},
    {"name": "Uniswap", "slug": "uniswap", "chain": "Ethereum", "chains": ["Ethereum"], "tvl": 5e9},
]


class EmptyKioskSource:
    """Wallet without kiosks."""

    async def get_owned_kiosk_ids(self, address: str) -> list[str]:
        return []

    async def get_kiosk_items(self, kiosk_id: str) -> list[dict[str, Any]]:
        return []


def upstream_handler(method: str, url: str, body: Any) -> Any:
    if url == GRAPHQL_URL and "WalletTransactions" in body["query"]:
        return graphql_ok(
            {
                "transactionBlocks": {
                    "nodes": [transaction_block([balance_change(WALLET, "-1.5", SUI)])],
                    "pageInfo": {"hasNextPage": False, "endCursor": None},
                }
            }
        )
    if url == GRAPHQL_URL and "WalletBalances" in body["query"]:
        return graphql_ok(
            {
                "address": {
                    "balances": {
                        "nodes": [{"coinType": {"repr": SUI}, "coinObjectCount": 2, "totalBalance": "2000000000"}],
                        "pageInfo": {"hasNextPage": False, "endCursor": None},
                    }
                }
            }
        )
    if url.startswith("https://prices.test/"):
        return FakeResponse(200, [{"baseToken": {"address": SUI}, "priceUsd": "3.25"}])
    if url == "https://api.llama.fi/protocols":
        return FakeResponse(200, PROTOCOLS)
    return FakeResponse(404, {"error": f"unexpected {method} {url}"})


@pytest.fixture
def session() -> FakeSession:
    return FakeSession(upstream_handler)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        sui=SuiConfig(graphql_url=GRAPHQL_URL, rate_limit=10_000),
        prices=PriceConfig(api_url="https://prices.test", rate_limit=10_000),
    )


@pytest.fixture
def app(config: AppConfig, session: FakeSession) -> WalletAggregator:
    return WalletAggregator(config, session=session, durable_cache=MemoryCache(), kiosk_source=EmptyKioskSource())


class TestResolveAddress:
    """Test wallet selection."""

    def test_explicit_address_is_normalized(self, app: WalletAggregator) -> None:
        assert app.resolve_address(WALLET.upper().replace("0X", "0x")) == WALLET

    def test_invalid_explicit_address(self, app: WalletAggregator) -> None:
        with pytest.raises(InvalidAddressError):
            app.resolve_address("0x1234")

    def test_address_extracted_from_text(self, app: WalletAggregator) -> None:
        assert app.resolve_address(text=f"what is in wallet {WALLET} right now?") == WALLET

    def test_default_wallet_fallback(self, config: AppConfig, session: FakeSession) -> None:
        other = "0x" + "cd" * 32
        config.default_wallet_address = other
        app = WalletAggregator(config, session=session, durable_cache=MemoryCache())

        assert app.resolve_address(text="show my balances") == other

    @pytest.mark.asyncio
    async def test_missing_address_fails_before_any_request(
        self, app: WalletAggregator, session: FakeSession
    ) -> None:
        """Test no address and no default raises without touching the network."""
        with pytest.raises(MissingInputError):
            await app.get_balances(text="show my balances")

        assert session.calls == []


class TestWalletAggregator:
    """Test the per-dataset entry points."""

    @pytest.mark.asyncio
    async def test_get_balances(self, app: WalletAggregator) -> None:
        result = await app.get_balances(WALLET)

        assert result.status == FetchStatus.OK
        [entry] = result.records
        assert entry.display_name == "SUI"
        assert entry.balance_usd == 2 * entry.price_usd

    @pytest.mark.asyncio
    async def test_get_overview(self, app: WalletAggregator) -> None:
        """Test the three data sets are fetched for one resolved wallet."""
        overview = await app.get_overview(text=f"overview for {WALLET}")

        assert overview.address == WALLET
        assert overview.activity.status == FetchStatus.OK
        assert len(overview.activity.records) == 1
        assert overview.balances.status == FetchStatus.OK
        assert overview.kiosks.status == FetchStatus.OK
        assert overview.kiosks.records == []

    @pytest.mark.asyncio
    async def test_get_protocols_filters_by_chain(self, app: WalletAggregator) -> None:
        summary = await app.get_protocols()

        assert summary.chain == "sui"
        assert [protocol.name for protocol in summary.protocols] == ["Cetus", "Aave"]
        assert summary.total_protocols == 2

    @pytest.mark.asyncio
    async def test_get_protocols_other_chain(self, app: WalletAggregator) -> None:
        summary = await app.get_protocols("ethereum")

        assert [protocol.name for protocol in summary.protocols] == ["Aave", "Uniswap"]

    @pytest.mark.asyncio
    async def test_clear_wallet_data_drops_cached_kiosks(self, app: WalletAggregator) -> None:
        await app.get_nfts(WALLET)
        key = app.kiosks.cache_key(WALLET)
        assert await app.kiosks.cache.get(key) == []

        await app.clear_wallet_data(WALLET)

        assert await app.kiosks.cache.get(key) is None

    @pytest.mark.asyncio
    async def test_stats(self, app: WalletAggregator) -> None:
        await app.get_balances(WALLET)

        stats = await app.get_stats()

        assert stats["sui_http"]["requests"] >= 1
        assert "sui/kiosk" in stats["cache"]

    @pytest.mark.asyncio
    async def test_create_application_keeps_injected_session_open(
        self, config: AppConfig, session: FakeSession
    ) -> None:
        async with create_application(config, session=session, durable_cache=MemoryCache()) as app:
            assert isinstance(app, WalletAggregator)

        assert session.closed is False
