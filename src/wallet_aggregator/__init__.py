"""Sui wallet data aggregation: transactions, balances and kiosk NFTs."""

from .app import WalletAggregator, WalletOverview, create_application
from .clients.sui_types import (
    BalanceEntry,
    FetchResult,
    FetchStatus,
    Kiosk,
    KioskItem,
    TransactionLeg,
    TransactionRecord,
    total_balance_usd,
)
from .config import AppConfig, get_config

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "BalanceEntry",
    "FetchResult",
    "FetchStatus",
    "Kiosk",
    "KioskItem",
    "TransactionLeg",
    "TransactionRecord",
    "WalletAggregator",
    "WalletOverview",
    "create_application",
    "get_config",
    "total_balance_usd",
]
