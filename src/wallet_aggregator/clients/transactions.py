"""Paginated wallet transaction history with price enrichment."""

import asyncio
import logging
from decimal import Decimal
from typing import Any

from ..config import RetryConfig
from .errors import RateLimitedError, UpstreamUnavailableError
from .graphql import SuiGraphQLClient
from .http_client import RateLimitTracker, RetryPolicy
from .price_oracle import PriceOracleClient
from .sui_types import (
    UNKNOWN_PRICE,
    UNKNOWN_TOKEN,
    FetchResult,
    TransactionLeg,
    TransactionRecord,
    balance_change_nodes,
    get_path,
    normalize_address,
    parse_decimal,
    parse_timestamp_ms,
    transaction_passes_filter,
)

logger = logging.getLogger(__name__)


def legs_from_block(node: dict[str, Any]) -> list[TransactionLeg]:
    """Unpriced legs of a block; a single UNKNOWN leg when it has no balance changes."""
    legs = []
    for change in balance_change_nodes(node):
        token_id = get_path(change, "coinType", "repr") or UNKNOWN_TOKEN
        amount = parse_decimal(change.get("amount"))
        legs.append(TransactionLeg(token_id=token_id, amount=amount if amount is not None else Decimal("0")))
    return legs or [TransactionLeg(token_id=UNKNOWN_TOKEN, amount=Decimal("0"))]


def transform_transaction_blocks(nodes: list[dict[str, Any]], wallet_address: str) -> list[TransactionRecord]:
    """Filter transaction blocks for the wallet and reduce them to records.

    Blocks that failed or have no balance change owned by the wallet are
    dropped.

    Raises:
        UpstreamUnavailableError: a kept block has a malformed timestamp.
    """
    return [
        TransactionRecord(
            timestamp_ms=parse_timestamp_ms(get_path(node, "effects", "timestamp")),
            legs=legs_from_block(node),
        )
        for node in nodes
        if transaction_passes_filter(node, wallet_address)
    ]


class TransactionActivityFetcher:
    """Fetches recent transactions for a wallet from Sui GraphQL.

    Pages are requested strictly in order. Sustained throttling across pages
    aborts the loop and returns the pages aggregated so far.
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

    async def fetch_activity(self, wallet_address: str) -> FetchResult[TransactionRecord]:
        wallet = normalize_address(wallet_address)
        records, error = await self._fetch_pages(wallet)

        if error and not records:
            return FetchResult.unavailable(error)

        await self._attach_prices(records)

        if error:
            return FetchResult.partial(records, error)
        return FetchResult.ok(records)

    async def _fetch_pages(self, wallet: str) -> tuple[list[TransactionRecord], str | None]:
        tracker = RateLimitTracker(self.policy.rate_limit_abort_threshold)
        records: list[TransactionRecord] = []
        cursor: str | None = None
        has_next_page = True
        page_count = 0
        throttled_retries = 0

        while has_next_page and page_count < self.config.max_transaction_pages:
            logger.info(f"🔍 Fetching transactions page {page_count + 1} for wallet {wallet}")
            try:
                nodes, page_info = await self.graphql.transaction_blocks_page(
                    wallet, self.config.page_size, cursor, tracker=tracker
                )
                page_records = transform_transaction_blocks(nodes, wallet)
            except RateLimitedError as e:
                throttled_retries += 1
                if tracker.exceeded or throttled_retries >= self.policy.rate_limit_abort_threshold:
                    logger.error(f"❌ Too many 429 responses, stopping after {page_count} pages")
                    return records, str(e)
                logger.warning(f"⚠️ Page {page_count + 1} throttled, retrying: {e}")
                continue
            except UpstreamUnavailableError as e:
                logger.error(f"❌ Error fetching transactions for {wallet}: {e}")
                return records, str(e)

            throttled_retries = 0
            records.extend(page_records)
            has_next_page = page_info.has_next_page
            cursor = page_info.end_cursor
            page_count += 1
            logger.debug(f"📄 Fetched page {page_count}. hasNextPage: {has_next_page}, nextCursor: {cursor}")

            if has_next_page and page_count < self.config.max_transaction_pages:
                await asyncio.sleep(self.config.page_delay)

        logger.info(f"📊 Total transaction pages fetched: {page_count}, {len(records)} transactions kept")
        return records, None

    async def _attach_prices(self, records: list[TransactionRecord]) -> None:
        token_ids = {leg.token_id for record in records for leg in record.legs if not leg.is_sentinel}
        prices = await self.price_oracle.fetch_prices(sorted(token_ids))

        for record in records:
            for leg in record.legs:
                leg.price_usd = prices.get(leg.token_id, UNKNOWN_PRICE)
