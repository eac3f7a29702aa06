"""Kiosk NFT enumeration with last-trade price and metadata enrichment."""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Protocol

from ..config import KioskConfig
from ..utils.cache import LayeredCache
from .errors import UpstreamUnavailableError, WalletAggregatorError
from .graphql import SuiGraphQLClient
from .metadata import NFTMetadataClient
from .sui_types import (
    FetchResult,
    Kiosk,
    KioskItem,
    balance_change_nodes,
    first_negative_amount,
    normalize_address,
)

logger = logging.getLogger(__name__)

KIOSK_OWNER_CAP_TYPE = "0x2::kiosk::KioskOwnerCap"
PERSONAL_KIOSK_CAP_TYPE = (
    "0x0cb4bcc0560340eb1a1b929cabe56b33fc6449820ec8c1980d69bb98b649b802::personal_kiosk::PersonalKioskCap"
)
KIOSK_ITEM_KEY = "::kiosk::Item"
KIOSK_LOCK_KEY = "::kiosk::Lock"
KIOSK_LISTING_KEY = "::kiosk::Listing"


class KioskSource(Protocol):
    """Enumerates kiosks and their items for an address."""

    async def get_owned_kiosk_ids(self, address: str) -> list[str]: ...

    async def get_kiosk_items(self, kiosk_id: str) -> list[dict[str, Any]]:
        """Items as ``{objectId, type, isLocked, kioskId, listing, data}`` dicts."""
        ...


class GraphQLKioskSource:
    """KioskSource reading owner caps and kiosk dynamic fields over Sui GraphQL."""

    cap_types = (KIOSK_OWNER_CAP_TYPE, PERSONAL_KIOSK_CAP_TYPE)

    def __init__(self, graphql: SuiGraphQLClient):
        self.graphql = graphql

    async def get_owned_kiosk_ids(self, address: str) -> list[str]:
        kiosk_ids: list[str] = []
        for cap_type in self.cap_types:
            cursor = None
            while True:
                nodes, page_info = await self.graphql.owned_objects_page(address, cap_type, cursor)
                for node in nodes:
                    kiosk_id = self._kiosk_id_from_cap((node.get("contents") or {}).get("json") or {})
                    if kiosk_id and kiosk_id not in kiosk_ids:
                        kiosk_ids.append(kiosk_id)
                if not page_info.has_next_page:
                    break
                cursor = page_info.end_cursor
        return kiosk_ids

    @staticmethod
    def _kiosk_id_from_cap(cap: dict[str, Any]) -> str | None:
        # PersonalKioskCap wraps the KioskOwnerCap under "cap"
        if "for" in cap:
            return cap["for"]
        inner = cap.get("cap")
        if isinstance(inner, dict):
            return inner.get("for")
        return None

    async def get_kiosk_items(self, kiosk_id: str) -> list[dict[str, Any]]:
        items: dict[str, dict[str, Any]] = {}
        locked: set[str] = set()
        listings: dict[str, Any] = {}

        cursor = None
        while True:
            nodes, page_info = await self.graphql.dynamic_fields_page(kiosk_id, cursor)
            for node in nodes:
                name = node.get("name") or {}
                name_type = ((name.get("type") or {}).get("repr")) or ""
                name_id = (name.get("json") or {}).get("id") if isinstance(name.get("json"), dict) else None
                value = node.get("value") or {}

                if name_type.endswith(KIOSK_ITEM_KEY) and value.get("address"):
                    contents = value.get("contents") or {}
                    items[value["address"]] = {
                        "objectId": value["address"],
                        "type": (contents.get("type") or {}).get("repr"),
                        "data": contents.get("json") or {},
                    }
                elif name_type.endswith(KIOSK_LOCK_KEY) and name_id:
                    locked.add(name_id)
                elif name_type.endswith(KIOSK_LISTING_KEY) and name_id:
                    listings[name_id] = value.get("json")

            if not page_info.has_next_page:
                break
            cursor = page_info.end_cursor

        return [
            {
                **item,
                "kioskId": kiosk_id,
                "isLocked": object_id in locked,
                "listing": listings.get(object_id),
            }
            for object_id, item in items.items()
        ]


def item_from_source(raw: dict[str, Any]) -> KioskItem:
    try:
        return KioskItem(
            object_id=raw["objectId"],
            collection_id=raw.get("type") or "",
            kiosk_id=raw.get("kioskId"),
            is_locked=bool(raw.get("isLocked", False)),
        )
    except (KeyError, TypeError) as e:
        raise UpstreamUnavailableError(f"Malformed kiosk item {raw!r}: {e}") from e


class KioskNFTAggregator:
    """Lists a wallet's kiosk NFTs and enriches them with prices and images.

    Enumeration failures make the whole result unavailable; enrichment
    failures only leave the affected fields as None.
    """

    def __init__(
        self,
        kiosk_source: KioskSource,
        graphql: SuiGraphQLClient,
        metadata_client: NFTMetadataClient,
        cache: LayeredCache | None = None,
        config: KioskConfig | None = None,
    ):
        self.kiosk_source = kiosk_source
        self.graphql = graphql
        self.metadata_client = metadata_client
        self.cache = cache
        self.config = config or KioskConfig()

    @staticmethod
    def cache_key(address: str) -> str:
        return f"kiosk-nfts-{address}"

    async def fetch_kiosks(self, wallet_address: str, floor_price: Decimal | None = None) -> FetchResult[Kiosk]:
        wallet = normalize_address(wallet_address)

        try:
            contents = await self._enumerate(wallet)
            kiosks = [
                Kiosk(
                    index=index,
                    kiosk_id=content["kiosk_id"],
                    items=[KioskItem.from_dict(item) for item in content["items"]],
                )
                for index, content in enumerate(contents, start=1)
            ]
        except (WalletAggregatorError, KeyError, TypeError) as e:
            logger.error(f"❌ Error fetching kiosk NFTs for {wallet}: {e}")
            return FetchResult.unavailable(f"Unable to fetch kiosk NFTs: {e}")

        items = [item for kiosk in kiosks for item in kiosk.items]
        await self._enrich_prices(items)
        await self._enrich_metadata(items)
        for item in items:
            item.floor_price = floor_price

        logger.info(f"🖼️ Found {len(items)} NFTs in {len(kiosks)} kiosks for {wallet}")
        return FetchResult.ok(kiosks)

    async def invalidate(self, wallet_address: str) -> None:
        if self.cache is not None:
            await self.cache.delete(self.cache_key(normalize_address(wallet_address)))

    async def _enumerate(self, wallet: str) -> list[dict[str, Any]]:
        key = self.cache_key(wallet)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.debug(f"💾 Cache hit for kiosk NFTs of {wallet}")
                return cached
            logger.debug(f"💾 Cache miss for kiosk NFTs of {wallet}")

        kiosk_ids = await self.kiosk_source.get_owned_kiosk_ids(wallet)
        contents = list(await asyncio.gather(*(self._load_kiosk(kiosk_id) for kiosk_id in kiosk_ids)))

        if self.cache is not None:
            await self.cache.set(key, contents)
        return contents

    async def _load_kiosk(self, kiosk_id: str) -> dict[str, Any]:
        raw_items = await self.kiosk_source.get_kiosk_items(kiosk_id)
        return {"kiosk_id": kiosk_id, "items": [item_from_source(raw).to_dict() for raw in raw_items]}

    async def _enrich_prices(self, items: list[KioskItem]) -> None:
        semaphore = asyncio.Semaphore(self.config.enrichment_concurrency)

        async def guarded(item: KioskItem) -> None:
            async with semaphore:
                item.latest_price = await self.fetch_latest_price(item.object_id)

        await asyncio.gather(*(guarded(item) for item in items))

    async def fetch_latest_price(self, object_id: str) -> Decimal | None:
        """Price paid in the most recent transaction touching the object.

        Takes the first negative balance change of that transaction. This
        also matches gas payments or unrelated legs.
        """
        try:
            block = await self.graphql.latest_object_transaction(object_id)
        except WalletAggregatorError as e:
            logger.warning(f"⚠️ Last trade lookup failed for {object_id}: {e}")
            return None

        if block is None:
            logger.debug(f"🔍 No transaction blocks found for {object_id}")
            return None

        price = first_negative_amount(balance_change_nodes(block))
        if price is None:
            logger.debug(f"🔍 No negative balance change found for {object_id}")
        return price

    async def _enrich_metadata(self, items: list[KioskItem]) -> None:
        if not items:
            return
        metadata = await self.metadata_client.fetch_metadata([item.object_id for item in items])
        if metadata is None:
            return
        for item in items:
            item.img_url = (metadata.get(item.object_id) or {}).get("imgUrl") or None
