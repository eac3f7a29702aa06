"""Shared test fixtures."""

from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest

from wallet_aggregator.config import SuiConfig


@pytest.fixture
def sleep_mock() -> Generator[AsyncMock]:
    """Record backoff and page waits instead of sleeping."""
    with patch("asyncio.sleep", new_callable=AsyncMock) as mocked:
        yield mocked


@pytest.fixture
def sui_config() -> SuiConfig:
    return SuiConfig(graphql_url="https://graphql.test/graphql")
