"""Tests for wallet balance fetching."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fakes import WALLET, FakeResponse, graphql_ok, make_fetcher, sequence_handler

from wallet_aggregator.clients.balances import BalanceFetcher, parse_balance_node, sort_by_value
from wallet_aggregator.clients.errors import UpstreamUnavailableError
from wallet_aggregator.clients.graphql import SuiGraphQLClient
from wallet_aggregator.clients.price_oracle import PriceOracleClient
from wallet_aggregator.clients.sui_types import BalanceEntry, FetchStatus, total_balance_usd
from wallet_aggregator.config import PriceConfig, SuiConfig


def coin(i: int) -> str:
    return f"0x{i:x}::coin::C{i}"


def balance_node(coin_type: str, total: int, objects: int = 1) -> dict:
    return {"coinType": {"repr": coin_type}, "coinObjectCount": objects, "totalBalance": str(total)}


def balances_page(nodes: list, has_next: bool = False, cursor: str | None = None) -> FakeResponse:
    return graphql_ok(
        {"address": {"balances": {"nodes": nodes, "pageInfo": {"hasNextPage": has_next, "endCursor": cursor}}}}
    )


def make_balance_fetcher(page_responses: list, price_payload: list | None = None) -> BalanceFetcher:
    graphql = SuiGraphQLClient(
        SuiConfig(graphql_url="https://graphql.test"),
        make_fetcher(sequence_handler(page_responses)),
    )
    prices = PriceOracleClient(
        PriceConfig(api_url="https://prices.test"),
        make_fetcher(sequence_handler([FakeResponse(200, price_payload or [])])),
    )
    return BalanceFetcher(graphql, prices)


class TestBalanceEntry:
    """Test derived balance fields."""

    def test_scaled_balance_is_exact(self) -> None:
        """Test raw units scale by 10^9 without rounding."""
        entry = BalanceEntry(token_id="0x2::sui::SUI", raw_units=4504862384)
        assert entry.scaled_balance == Decimal("4.504862384")

    def test_scaled_balance_keeps_tiny_amounts(self) -> None:
        entry = BalanceEntry(token_id="0x2::sui::SUI", raw_units=1)
        assert entry.scaled_balance == Decimal("1E-9")

    def test_balance_usd(self) -> None:
        entry = BalanceEntry(token_id="0x2::sui::SUI", raw_units=2_000_000_000, price_usd=Decimal("3.5"))
        assert entry.balance_usd == Decimal("7.0")

    def test_balance_usd_without_price_is_zero(self) -> None:
        entry = BalanceEntry(token_id="0x2::sui::SUI", raw_units=2_000_000_000)
        assert entry.price_usd is None
        assert entry.balance_usd == Decimal("0")

    @pytest.mark.parametrize(
        ("token_id", "expected"),
        [("0x2::sui::SUI", "SUI"), ("0xabc::usdc::USDC", "USDC"), ("weird-token", "weird-token")],
    )
    def test_display_name(self, token_id: str, expected: str) -> None:
        assert BalanceEntry(token_id=token_id, raw_units=0).display_name == expected

    def test_parse_rejects_malformed_node(self) -> None:
        with pytest.raises(UpstreamUnavailableError):
            parse_balance_node({"coinType": {"repr": "0x2::sui::SUI"}, "totalBalance": "not-a-number"})


class TestSortByValue:
    """Test output ordering."""

    def test_sorted_descending(self) -> None:
        """Test [A: 5 USD, B: 50 USD] comes back as [B, A]."""
        a = BalanceEntry(token_id="A", raw_units=5 * 10**9, price_usd=Decimal("1"))
        b = BalanceEntry(token_id="B", raw_units=50 * 10**9, price_usd=Decimal("1"))

        assert [entry.token_id for entry in sort_by_value([a, b])] == ["B", "A"]

    def test_ties_keep_input_order(self) -> None:
        entries = [BalanceEntry(token_id=name, raw_units=10**9) for name in ("X", "Y", "Z")]
        assert [entry.token_id for entry in sort_by_value(entries)] == ["X", "Y", "Z"]


class TestBalanceFetcher:
    """Test paginated balance retrieval."""

    @pytest.mark.asyncio
    async def test_two_pages_end_to_end(self, sleep_mock: AsyncMock) -> None:
        """Test 50 + 3 entries, one unpriced token, sorted by USD value."""
        first = [balance_node(coin(i), (i + 1) * 10**9) for i in range(50)]
        second = [balance_node(coin(i), (i + 1) * 10**9) for i in range(50, 53)]
        priced = [{"baseToken": {"address": coin(i)}, "priceUsd": "2"} for i in range(53) if i != 7]
        fetcher = make_balance_fetcher(
            [balances_page(first, True, "cursor-1"), balances_page(second, False, None)],
            price_payload=priced,
        )

        result = await fetcher.fetch_balances(WALLET)

        assert result.status == FetchStatus.OK
        assert len(result.records) == 53
        unpriced = [entry for entry in result.records if entry.price_usd is None]
        assert [entry.token_id for entry in unpriced] == [coin(7)]
        values = [entry.balance_usd for entry in result.records]
        assert values == sorted(values, reverse=True)
        assert result.records[0].token_id == coin(52)
        assert result.records[-1].token_id == coin(7)

        calls = fetcher.graphql.fetcher._session.calls
        assert [call["json"]["variables"]["after"] for call in calls] == [None, "cursor-1"]
        assert [call["json"]["variables"]["first"] for call in calls] == [50, 50]
        assert len(fetcher.price_oracle.fetcher._session.calls) == 1

    @pytest.mark.asyncio
    async def test_failure_on_later_page_is_all_or_nothing(self, sleep_mock: AsyncMock) -> None:
        """Test a failed page discards earlier pages."""
        fetcher = make_balance_fetcher(
            [balances_page([balance_node(coin(1), 10**9)], True, "cursor-1"), FakeResponse(500, {})]
        )

        result = await fetcher.fetch_balances(WALLET)

        assert result.status == FetchStatus.UNAVAILABLE
        assert result.records == []
        assert not result.is_available
        assert fetcher.price_oracle.fetcher._session.calls == []

    @pytest.mark.asyncio
    async def test_missing_address_data_is_unavailable(self) -> None:
        fetcher = make_balance_fetcher([graphql_ok({"address": None})])

        result = await fetcher.fetch_balances(WALLET)

        assert result.status == FetchStatus.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_graphql_errors_are_unavailable(self) -> None:
        fetcher = make_balance_fetcher([FakeResponse(200, {"errors": [{"message": "bad address"}]})])

        result = await fetcher.fetch_balances(WALLET)

        assert result.status == FetchStatus.UNAVAILABLE
        assert "bad address" in result.error

    @pytest.mark.asyncio
    async def test_empty_wallet_is_ok_not_unavailable(self) -> None:
        """Test no balances is distinguishable from a failure."""
        fetcher = make_balance_fetcher([balances_page([])])

        result = await fetcher.fetch_balances(WALLET)

        assert result.status == FetchStatus.OK
        assert result.records == []
        assert fetcher.price_oracle.fetcher._session.calls == []

    @pytest.mark.asyncio
    async def test_price_failure_degrades_to_null(self, sleep_mock: AsyncMock) -> None:
        fetcher = make_balance_fetcher([balances_page([balance_node("0x2::sui::SUI", 3 * 10**9)])])
        fetcher.price_oracle.fetcher._session.handler = sequence_handler([FakeResponse(502, {})])

        result = await fetcher.fetch_balances(WALLET)

        assert result.status == FetchStatus.OK
        assert result.records[0].price_usd is None
        assert total_balance_usd(result.records) == Decimal("0")

    @pytest.mark.asyncio
    async def test_malformed_coin_object_count_is_unavailable(self) -> None:
        node = {"coinType": {"repr": "0x2::sui::SUI"}, "coinObjectCount": "n/a", "totalBalance": "1"}
        fetcher = make_balance_fetcher([balances_page([node])])

        result = await fetcher.fetch_balances(WALLET)

        assert result.status == FetchStatus.UNAVAILABLE
        assert "n/a" in result.error
