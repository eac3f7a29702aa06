"""NFT metadata lookup via the Blockberry batch endpoint."""

import logging
from typing import Any

from ..config import MetadataConfig
from .errors import WalletAggregatorError
from .http_client import HttpRequest, RetryingFetcher

logger = logging.getLogger(__name__)


class NFTMetadataClient:
    """Batch metadata (image URLs etc.) for NFT object ids."""

    def __init__(self, config: MetadataConfig, fetcher: RetryingFetcher):
        self.config = config
        self.fetcher = fetcher

    async def fetch_metadata(self, object_ids: list[str]) -> dict[str, dict[str, Any]] | None:
        """Return object id -> metadata, or None when the lookup failed."""
        if not object_ids:
            return {}

        request = HttpRequest(
            method="POST",
            url=self.config.api_url,
            headers={
                "accept": "*/*",
                "content-type": "application/json",
                "x-api-key": self.config.api_key.get_secret_value(),
            },
            json_body={"hashes": object_ids},
        )

        try:
            response = await self.fetcher.fetch(request)
            data = response.json()
        except WalletAggregatorError as e:
            logger.warning(f"⚠️ Metadata lookup failed for {len(object_ids)} objects: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"⚠️ Unexpected metadata response type: {type(data).__name__}")
            return None

        return {key: value for key, value in data.items() if isinstance(value, dict)}
