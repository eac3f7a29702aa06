"""Sui data types and helper functions."""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from .errors import UpstreamUnavailableError

SUI_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")
SUI_ADDRESS_SEARCH_RE = re.compile(r"0x[a-fA-F0-9]{64}")

SUI_DECIMALS = 9
UNKNOWN_TOKEN = "UNKNOWN"
UNKNOWN_PRICE = "unknown"
SUCCESS_STATUS = "SUCCESS"
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

T = TypeVar("T")


class FetchStatus(str, Enum):
    """Outcome of a top-level fetch."""

    OK = "ok"
    PARTIAL = "partial"
    UNAVAILABLE = "unavailable"


@dataclass
class FetchResult(Generic[T]):
    """Typed envelope returned by every top-level fetcher.

    An ``OK`` result with no records means "nothing found"; ``UNAVAILABLE``
    means the data could not be determined.
    """

    status: FetchStatus
    records: list[T] = field(default_factory=list)
    error: str | None = None

    @property
    def is_available(self) -> bool:
        return self.status is not FetchStatus.UNAVAILABLE

    @property
    def is_partial(self) -> bool:
        return self.status is FetchStatus.PARTIAL

    @classmethod
    def ok(cls, records: list[T]) -> "FetchResult[T]":
        return cls(status=FetchStatus.OK, records=records)

    @classmethod
    def partial(cls, records: list[T], error: str) -> "FetchResult[T]":
        return cls(status=FetchStatus.PARTIAL, records=records, error=error)

    @classmethod
    def unavailable(cls, error: str) -> "FetchResult[T]":
        return cls(status=FetchStatus.UNAVAILABLE, records=[], error=error)


@dataclass
class PageInfo:
    """GraphQL pagination cursor."""

    has_next_page: bool
    end_cursor: str | None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PageInfo":
        if not isinstance(data, dict):
            data = {}
        return cls(has_next_page=bool(data.get("hasNextPage")), end_cursor=data.get("endCursor"))


@dataclass
class TransactionLeg:
    """One token movement within a transaction."""

    token_id: str
    amount: Decimal
    price_usd: Decimal | Literal["unknown"] = UNKNOWN_PRICE

    @property
    def is_sentinel(self) -> bool:
        return self.token_id == UNKNOWN_TOKEN


@dataclass
class TransactionRecord:
    """A successful transaction block touching the wallet."""

    timestamp_ms: int
    legs: list[TransactionLeg]

    @property
    def token_ids(self) -> list[str]:
        return [leg.token_id for leg in self.legs]


@dataclass
class BalanceEntry:
    """Token balance held by a wallet."""

    token_id: str
    raw_units: int
    decimals: int = SUI_DECIMALS
    coin_object_count: int | None = None
    price_usd: Decimal | None = None

    @property
    def display_name(self) -> str:
        return display_name_for(self.token_id)

    @property
    def scaled_balance(self) -> Decimal:
        return scale_raw_units(self.raw_units, self.decimals)

    @property
    def balance_usd(self) -> Decimal:
        return calculate_token_value(self.scaled_balance, self.price_usd)


@dataclass
class KioskItem:
    """NFT held in a kiosk."""

    object_id: str
    collection_id: str
    kiosk_id: str | None = None
    is_locked: bool = False
    latest_price: Decimal | None = None
    floor_price: Decimal | None = None
    img_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "object_id": self.object_id,
            "collection_id": self.collection_id,
            "kiosk_id": self.kiosk_id,
            "is_locked": self.is_locked,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KioskItem":
        return cls(
            object_id=data["object_id"],
            collection_id=data["collection_id"],
            kiosk_id=data.get("kiosk_id"),
            is_locked=bool(data.get("is_locked", False)),
        )


@dataclass
class Kiosk:
    """A wallet-owned kiosk and its items."""

    index: int
    kiosk_id: str
    items: list[KioskItem] = field(default_factory=list)


def is_valid_sui_address(address: str | None) -> bool:
    """Check for a 0x-prefixed, 64 hex digit Sui address."""
    if not address or not isinstance(address, str):
        return False
    return bool(SUI_ADDRESS_RE.match(address.strip()))


def normalize_address(address: str) -> str:
    """Normalize a Sui address to lowercase."""
    return address.strip().lower()


def extract_wallet_address(text: str | None) -> str | None:
    """Return the first Sui address found in free text."""
    if not text:
        return None
    match = SUI_ADDRESS_SEARCH_RE.search(text)
    return match.group(0) if match else None


def display_name_for(token_id: str) -> str:
    """Short display name from a coin type, e.g. ``0x2::sui::SUI`` -> ``SUI``."""
    segments = token_id.split("::")
    return segments[2] if len(segments) >= 3 else token_id


def scale_raw_units(raw_units: int, decimals: int = SUI_DECIMALS) -> Decimal:
    """Convert raw on-chain units to a token amount without rounding."""
    return Decimal(raw_units) / (Decimal(10) ** decimals)


def calculate_token_value(amount: Decimal, price_usd: Decimal | None) -> Decimal:
    """USD value of a token amount; zero when the price is unknown."""
    if price_usd is None:
        return Decimal("0")
    return amount * price_usd


def total_balance_usd(entries: list[BalanceEntry]) -> Decimal:
    """Portfolio value across balance entries."""
    return sum((entry.balance_usd for entry in entries), Decimal("0"))


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a numeric string/number into a Decimal, returning None when invalid."""
    if value is None:
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def parse_timestamp_ms(value: Any) -> int:
    """Convert a GraphQL timestamp (ISO-8601 or epoch millis) to integer milliseconds."""
    if value is None:
        return 0
    if isinstance(value, int | float):
        return int(value)
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise UpstreamUnavailableError(f"Malformed timestamp {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return (parsed - EPOCH) // timedelta(milliseconds=1)


def get_path(data: Any, *keys: str) -> Any:
    """Walk nested dicts; None as soon as a level is missing or not a dict."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def balance_change_nodes(block: dict[str, Any]) -> list[dict[str, Any]]:
    """Balance change entries of a transaction block node; non-dict entries are skipped."""
    nodes = get_path(block, "effects", "balanceChanges", "nodes")
    if not isinstance(nodes, list):
        return []
    return [node for node in nodes if isinstance(node, dict)]


def transaction_passes_filter(block: dict[str, Any], wallet_address: str) -> bool:
    """Keep a block only if it succeeded and at least one balance change is owned by the wallet."""
    if str(get_path(block, "effects", "status") or "").upper() != SUCCESS_STATUS:
        return False

    wallet = wallet_address.lower()
    return any(
        str(get_path(change, "owner", "address") or "").lower() == wallet
        for change in balance_change_nodes(block)
    )


def first_negative_amount(changes: list[dict[str, Any]]) -> Decimal | None:
    """Absolute value of the first negative balance change, if any."""
    for change in changes:
        amount = parse_decimal(get_path(change, "amount"))
        if amount is not None and amount < 0:
            return abs(amount)
    return None
