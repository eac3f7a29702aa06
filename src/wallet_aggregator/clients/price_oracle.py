"""Batched current-price lookup via DexScreener."""

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from ..config import PriceConfig
from .errors import WalletAggregatorError
from .http_client import HttpRequest, RetryingFetcher
from .sui_types import get_path, parse_decimal

logger = logging.getLogger(__name__)


class PriceOracleClient:
    """Current USD prices for a set of coin types.

    Failures degrade to an empty mapping; a missing key means "unknown",
    never zero.
    """

    def __init__(self, config: PriceConfig, fetcher: RetryingFetcher):
        self.config = config
        self.fetcher = fetcher
        self._stats = {"price_requests": 0, "price_failures": 0}

    def _build_url(self, token_ids: list[str]) -> str:
        return f"{self.config.api_url.rstrip('/')}/tokens/v1/{self.config.chain}/{','.join(token_ids)}"

    async def fetch_prices(self, token_ids: Iterable[str]) -> dict[str, Decimal]:
        unique_tokens = list(dict.fromkeys(token for token in token_ids if token))
        if not unique_tokens:
            return {}

        url = self._build_url(unique_tokens)
        logger.debug(f"💰 Fetching token prices from: {url}")
        self._stats["price_requests"] += 1

        try:
            response = await self.fetcher.fetch(HttpRequest(method="GET", url=url))
            data = response.json()
        except WalletAggregatorError as e:
            self._stats["price_failures"] += 1
            logger.warning(f"⚠️ Failed to fetch token prices: {e}")
            return {}

        prices = self._parse_prices(data)
        logger.info(f"💰 Retrieved prices for {len(prices)}/{len(unique_tokens)} tokens")
        return prices

    @staticmethod
    def _parse_prices(data: Any) -> dict[str, Decimal]:
        prices: dict[str, Decimal] = {}
        if not isinstance(data, list):
            logger.warning(f"⚠️ Unexpected price response type: {type(data).__name__}")
            return prices

        for entry in data:
            if not isinstance(entry, dict):
                continue
            address = get_path(entry, "baseToken", "address")
            price = parse_decimal(entry.get("priceUsd"))
            if isinstance(address, str) and address and price is not None:
                prices[address] = price
        return prices

    def get_stats(self) -> dict[str, Any]:
        return dict(self._stats)
