"""Configuration models for the wallet aggregator.

Every component receives its section explicitly; nothing below the
application layer reads the process environment.
"""

import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, TypeAdapter, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

SUI_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")


class CacheBackend(str, Enum):
    """Durable cache backends."""

    FILE = "file"
    REDIS = "redis"


class SuiConfig(BaseModel):
    """Sui GraphQL endpoint configuration."""

    graphql_url: str = "https://sui-mainnet.mystenlabs.com/graphql"
    network: str = "mainnet"
    scan_limit: int = Field(default=100_000_000, gt=0)
    rate_limit: int = Field(default=60, gt=0, description="Requests per minute")

    @field_validator("network")
    @classmethod
    def validate_network(cls, value: str) -> str:
        value = value.lower()
        if value not in {"mainnet", "testnet", "devnet", "localnet"}:
            raise ValueError(f"Unsupported Sui network: {value}")
        return value


class RetryConfig(BaseModel):
    """Retry and pagination limits shared by all fetchers."""

    max_attempts: int = Field(default=4, ge=1)
    initial_delay: float = Field(default=3.0, gt=0, description="Seconds")
    rate_limit_abort_threshold: int = Field(default=5, ge=1)
    page_delay: float = Field(default=1.5, ge=0, description="Pause between transaction pages, seconds")
    max_transaction_pages: int = Field(default=5, ge=1)
    page_size: int = Field(default=50, ge=1, le=50)


class PriceConfig(BaseModel):
    """DexScreener price API configuration."""

    api_url: str = "https://api.dexscreener.com"
    chain: str = "sui"
    rate_limit: int = Field(default=300, gt=0)


class MetadataConfig(BaseModel):
    """Blockberry NFT metadata API configuration."""

    api_url: str = "https://api.blockberry.one/sui/v1/metadata/objects"
    api_key: SecretStr = SecretStr("")


class ProtocolConfig(BaseModel):
    """DefiLlama protocol listing configuration."""

    api_url: str = "https://api.llama.fi/protocols"
    default_chain: str = "sui"


class CacheConfig(BaseModel):
    """Layered cache configuration."""

    backend: CacheBackend = CacheBackend.FILE
    file_cache_dir: Path = Path(".cache/wallet_aggregator")
    redis_url: str = "redis://localhost:6379/0"
    memory_ttl: int = Field(default=300, gt=0)
    durable_ttl: int = Field(default=300, gt=0)
    max_size_mb: int = Field(default=100, gt=0)
    key_prefix: str = "wallet_aggregator:"


class KioskConfig(BaseModel):
    """Kiosk NFT aggregation settings."""

    enrichment_concurrency: int = Field(default=4, ge=1, le=64)
    cache_namespace: str = "sui/kiosk"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        value = value.upper()
        if value not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return value


class AppConfig(BaseModel):
    """Top-level application configuration."""

    sui: SuiConfig = Field(default_factory=SuiConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    prices: PriceConfig = Field(default_factory=PriceConfig)
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    protocols: ProtocolConfig = Field(default_factory=ProtocolConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    kiosk: KioskConfig = Field(default_factory=KioskConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    default_wallet_address: str | None = None

    @field_validator("default_wallet_address")
    @classmethod
    def validate_default_wallet(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not SUI_ADDRESS_PATTERN.match(value):
            raise ValueError(f"Invalid default wallet address: {value}")
        return value.lower()

    @model_validator(mode="after")
    def check_cache_ttls(self) -> "AppConfig":
        if self.cache.memory_ttl > self.cache.durable_ttl:
            logger.warning(
                f"⚠️ Memory cache TTL ({self.cache.memory_ttl}s) outlives durable TTL ({self.cache.durable_ttl}s)"
            )
        return self


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _env_as(name: str, type_: Any, default: str) -> Any:
    """Read and validate an environment variable, naming it in the error."""
    value = _env(name, default)
    try:
        return TypeAdapter(type_).validate_python(value)
    except ValidationError as e:
        raise ValueError(f"Invalid value for {name}: {value!r} ({e.errors()[0]['msg']})") from e


def get_config(env_file: str | Path | None = None) -> AppConfig:
    """Build an AppConfig from environment variables (and a .env file if present)."""
    load_dotenv(env_file)

    network = _env("SUI_NETWORK", "mainnet")
    graphql_url = _env("SUI_GRAPHQL_URL", f"https://sui-{network}.mystenlabs.com/graphql")

    return AppConfig(
        sui=SuiConfig(
            graphql_url=graphql_url,
            network=network,
            rate_limit=_env_as("SUI_RATE_LIMIT", int, "60"),
        ),
        retry=RetryConfig(
            max_attempts=_env_as("FETCH_MAX_ATTEMPTS", int, "4"),
            initial_delay=_env_as("FETCH_INITIAL_DELAY", float, "3.0"),
            rate_limit_abort_threshold=_env_as("FETCH_RATE_LIMIT_ABORT", int, "5"),
        ),
        metadata=MetadataConfig(api_key=SecretStr(_env("BLOCKBERRY_API_KEY", ""))),
        cache=CacheConfig(
            backend=_env_as("CACHE_BACKEND", CacheBackend, "file"),
            file_cache_dir=Path(_env("CACHE_DIR", ".cache/wallet_aggregator")),
            redis_url=_env("REDIS_URL", "redis://localhost:6379/0"),
        ),
        kiosk=KioskConfig(enrichment_concurrency=_env_as("KIOSK_ENRICHMENT_CONCURRENCY", int, "4")),
        logging=LoggingConfig(level=_env("LOG_LEVEL", "INFO")),
        default_wallet_address=_env("DEFAULT_WALLET_ADDRESS"),
    )
