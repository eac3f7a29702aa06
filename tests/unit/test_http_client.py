"""Tests for the retrying HTTP fetcher."""

from unittest.mock import AsyncMock

import aiohttp
import pytest
from fakes import FakeResponse, make_fetcher, sequence_handler

from wallet_aggregator.clients.errors import RateLimitedError, UpstreamUnavailableError
from wallet_aggregator.clients.http_client import (
    HttpRequest,
    HttpResponse,
    RateLimitTracker,
    RetryPolicy,
    parse_retry_after,
)

REQUEST = HttpRequest(method="POST", url="https://upstream.test/graphql", json_body={"query": "{}"})


def sleep_delays(sleep_mock: AsyncMock) -> list[float]:
    return [call.args[0] for call in sleep_mock.await_args_list]


class TestRetryPolicy:
    """Test retry policy validation."""

    def test_defaults(self) -> None:
        """Test default limits."""
        policy = RetryPolicy()
        assert policy.max_attempts == 4
        assert policy.initial_delay == 3.0
        assert policy.rate_limit_abort_threshold == 5

    def test_backoff_schedule_doubles(self) -> None:
        """Test the exponential backoff series."""
        assert RetryPolicy(max_attempts=4, initial_delay=3.0).backoff_schedule() == [3.0, 6.0, 12.0]

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"initial_delay": 0}, {"rate_limit_abort_threshold": 0}],
    )
    def test_invalid_values_rejected(self, kwargs: dict) -> None:
        """Test eager validation."""
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestRetryAfter:
    """Test Retry-After parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("2", 2.0), (" 5 ", 5.0), ("0", 0.0), (None, None), ("", None), ("Wed, 21 Oct 2015 07:28:00 GMT", None)],
    )
    def test_parse_retry_after(self, value: str | None, expected: float | None) -> None:
        assert parse_retry_after(value) == expected

    def test_header_lookup_is_case_insensitive(self) -> None:
        response = HttpResponse(status=429, headers={"retry-after": "3"}, body=b"")
        assert response.header("Retry-After") == "3"


class TestRetryingFetcher:
    """Test retry and backoff behavior."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, sleep_mock: AsyncMock) -> None:
        """Test no waits on immediate success."""
        fetcher = make_fetcher(sequence_handler([FakeResponse(200, {"ok": True})]))

        response = await fetcher.fetch(REQUEST)

        assert response.status == 200
        assert response.json() == {"ok": True}
        assert sleep_mock.await_count == 0

    @pytest.mark.asyncio
    async def test_retry_after_then_backoff_then_success(self, sleep_mock: AsyncMock) -> None:
        """Test 429 (Retry-After: 2), 429, 200 succeeds on the third attempt."""
        fetcher = make_fetcher(
            sequence_handler(
                [
                    FakeResponse(429, {}, headers={"Retry-After": "2"}),
                    FakeResponse(429, {}),
                    FakeResponse(200, {"data": {}}),
                ]
            )
        )

        response = await fetcher.fetch(REQUEST)

        assert response.status == 200
        assert len(fetcher._session.calls) == 3
        delays = sleep_delays(sleep_mock)
        assert delays[0] >= 2.0
        assert delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_attempts(self, sleep_mock: AsyncMock) -> None:
        """Test non-429 failures retry on the backoff schedule, then fail."""
        fetcher = make_fetcher(sequence_handler([FakeResponse(500, {"error": "boom"})]))

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await fetcher.fetch(REQUEST)

        assert not isinstance(exc_info.value, RateLimitedError)
        assert len(fetcher._session.calls) == 4
        assert sleep_delays(sleep_mock) == [3.0, 6.0, 12.0]

    @pytest.mark.asyncio
    async def test_persistent_429_raises_rate_limited(self, sleep_mock: AsyncMock) -> None:
        """Test exhausted 429s surface as RateLimitedError."""
        fetcher = make_fetcher(sequence_handler([FakeResponse(429, {})]), max_attempts=3)

        with pytest.raises(RateLimitedError):
            await fetcher.fetch(REQUEST)

        assert len(fetcher._session.calls) == 3
        assert fetcher.get_stats()["rate_limit_errors"] == 3

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, sleep_mock: AsyncMock) -> None:
        """Test transport errors never escape while attempts remain."""
        fetcher = make_fetcher(
            sequence_handler([aiohttp.ClientConnectionError("reset"), FakeResponse(200, {"ok": 1})])
        )

        response = await fetcher.fetch(REQUEST)

        assert response.status == 200
        assert fetcher.get_stats()["transport_errors"] == 1
        assert sleep_delays(sleep_mock) == [3.0]

    @pytest.mark.asyncio
    async def test_transport_errors_wrapped_after_exhaustion(self, sleep_mock: AsyncMock) -> None:
        """Test raw aiohttp errors are converted."""
        fetcher = make_fetcher(sequence_handler([aiohttp.ClientConnectionError("down")]), max_attempts=2)

        with pytest.raises(UpstreamUnavailableError, match="ClientConnectionError"):
            await fetcher.fetch(REQUEST)

    @pytest.mark.asyncio
    async def test_tracker_aborts_across_requests(self, sleep_mock: AsyncMock) -> None:
        """Test consecutive 429s are counted across calls sharing a tracker."""
        fetcher = make_fetcher(sequence_handler([FakeResponse(429, {})]), max_attempts=2)
        tracker = RateLimitTracker(threshold=3)

        with pytest.raises(RateLimitedError):
            await fetcher.fetch(REQUEST, tracker=tracker)
        assert tracker.consecutive == 2
        assert not tracker.exceeded

        with pytest.raises(RateLimitedError):
            await fetcher.fetch(REQUEST, tracker=tracker)
        assert tracker.exceeded
        assert len(fetcher._session.calls) == 3

    def test_tracker_resets_on_other_status(self) -> None:
        tracker = RateLimitTracker(threshold=2)
        tracker.record(429)
        tracker.record(200)
        tracker.record(429)
        assert tracker.consecutive == 1
        assert not tracker.exceeded

    @pytest.mark.asyncio
    async def test_malformed_json_raises_upstream_error(self, sleep_mock: AsyncMock) -> None:
        fetcher = make_fetcher(sequence_handler([FakeResponse(200, body=b"<html>")]))

        response = await fetcher.fetch(REQUEST)

        with pytest.raises(UpstreamUnavailableError, match="parse JSON"):
            response.json()

    @pytest.mark.asyncio
    async def test_close_keeps_injected_session(self) -> None:
        """Test the fetcher does not close a session it does not own."""
        fetcher = make_fetcher(sequence_handler([FakeResponse(200, {})]))
        session = fetcher._session

        await fetcher.close()

        assert session.closed is False
