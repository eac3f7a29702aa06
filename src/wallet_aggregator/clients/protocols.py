"""DeFi protocol listings from DefiLlama, filtered by chain."""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import ProtocolConfig
from .errors import WalletAggregatorError
from .http_client import HttpRequest, RetryingFetcher

logger = logging.getLogger(__name__)


@dataclass
class ProtocolInfo:
    """Summary of a DeFi protocol."""

    name: str
    slug: str | None = None
    url: str | None = None
    description: str | None = None
    logo_url: str | None = None
    tvl: float | None = None
    change_1h: float | None = None
    change_1d: float | None = None
    change_7d: float | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ProtocolInfo":
        return cls(
            name=data.get("name") or "",
            slug=data.get("slug"),
            url=data.get("url"),
            description=data.get("description"),
            logo_url=data.get("logo"),
            tvl=data.get("tvl"),
            change_1h=data.get("change_1h"),
            change_1d=data.get("change_1d"),
            change_7d=data.get("change_7d"),
        )


@dataclass
class ProtocolSummary:
    """Protocols deployed on a chain."""

    chain: str
    protocols: list[ProtocolInfo] = field(default_factory=list)

    @property
    def total_protocols(self) -> int:
        return len(self.protocols)


def protocol_on_chain(protocol: dict[str, Any], chain: str) -> bool:
    """A protocol matches if its primary chain or any listed chain equals ``chain``."""
    chain = chain.lower()
    primary = (protocol.get("chain") or "").lower()
    chains = [str(c).lower() for c in protocol.get("chains") or []]
    return primary == chain or chain in chains


class ProtocolDataClient:
    """Fetch and filter the DefiLlama protocol list."""

    def __init__(self, config: ProtocolConfig, fetcher: RetryingFetcher):
        self.config = config
        self.fetcher = fetcher

    async def fetch_protocols(self, chain: str | None = None) -> ProtocolSummary:
        chain = (chain or self.config.default_chain).lower()
        logger.info(f"🌐 Fetching protocols for chain: {chain}")

        try:
            response = await self.fetcher.fetch(HttpRequest(method="GET", url=self.config.api_url))
            data = response.json()
        except WalletAggregatorError as e:
            logger.error(f"❌ Error fetching DeFi protocols: {e}")
            return ProtocolSummary(chain=chain)

        if not isinstance(data, list):
            logger.error(f"❌ Unexpected protocol response type: {type(data).__name__}")
            return ProtocolSummary(chain=chain)

        protocols = [
            ProtocolInfo.from_api(protocol)
            for protocol in data
            if isinstance(protocol, dict) and protocol_on_chain(protocol, chain)
        ]
        logger.info(f"🌐 Found {len(protocols)} protocols on {chain}")
        return ProtocolSummary(chain=chain, protocols=protocols)
