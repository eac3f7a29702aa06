"""All-or-nothing paginated wallet balances with price enrichment."""

import logging
from typing import Any

from ..config import RetryConfig
from .errors import UpstreamUnavailableError
from .graphql import SuiGraphQLClient
from .http_client import RateLimitTracker, RetryPolicy
from .price_oracle import PriceOracleClient
from .sui_types import BalanceEntry, FetchResult, normalize_address

logger = logging.getLogger(__name__)


def parse_balance_node(node: dict[str, Any]) -> BalanceEntry:
    """Convert a GraphQL balance node; raises UpstreamUnavailableError on malformed input."""
    try:
        token_id = node["coinType"]["repr"]
        raw_units = int(node["totalBalance"])
        count = node.get("coinObjectCount")
        coin_object_count = int(count) if count is not None else None
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise UpstreamUnavailableError(f"Malformed balance entry {node!r}: {e}") from e

    return BalanceEntry(token_id=token_id, raw_units=raw_units, coin_object_count=coin_object_count)


def sort_by_value(entries: list[BalanceEntry]) -> list[BalanceEntry]:
    """Sort descending by USD value; equal values keep their input order."""
    return sorted(entries, key=lambda entry: entry.balance_usd, reverse=True)


class BalanceFetcher:
    """Fetches every balance page for a wallet.

    A failure on any page yields an unavailable result rather than a partial
    list, so portfolio totals are never silently understated.
    """

    def __init__(
        self,
        graphql: SuiGraphQLClient,
        price_oracle: PriceOracleClient,
        config: RetryConfig | None = None,
    ):
        self.graphql = graphql
        self.price_oracle = price_oracle
        self.config = config or RetryConfig()
        self.policy = RetryPolicy.from_config(self.config)

    async def fetch_balances(self, wallet_address: str) -> FetchResult[BalanceEntry]:
        wallet = normalize_address(wallet_address)
        logger.info(f"💰 Fetching balances for wallet {wallet}")

        try:
            entries = await self._fetch_all_pages(wallet)
        except UpstreamUnavailableError as e:
            logger.error(f"❌ Failed to fetch balances for {wallet}: {e}")
            return FetchResult.unavailable(str(e))

        prices = await self.price_oracle.fetch_prices(sorted({entry.token_id for entry in entries}))
        for entry in entries:
            entry.price_usd = prices.get(entry.token_id)

        logger.info(f"🪙 Found {len(entries)} balances for wallet {wallet}")
        return FetchResult.ok(sort_by_value(entries))

    async def _fetch_all_pages(self, wallet: str) -> list[BalanceEntry]:
        tracker = RateLimitTracker(self.policy.rate_limit_abort_threshold)
        entries: list[BalanceEntry] = []
        cursor: str | None = None

        while True:
            nodes, page_info = await self.graphql.balances_page(wallet, self.config.page_size, cursor, tracker=tracker)
            entries.extend(parse_balance_node(node) for node in nodes)

            if not page_info.has_next_page:
                return entries
            if not page_info.end_cursor:
                raise UpstreamUnavailableError("Balance page reports more results without a cursor")
            cursor = page_info.end_cursor
