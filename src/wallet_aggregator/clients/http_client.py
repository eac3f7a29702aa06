"""HTTP request execution with exponential backoff and rate-limit awareness."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from asyncio_throttle import Throttler

from ..config import RetryConfig
from .errors import RateLimitedError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits shared by every upstream call.

    ``rate_limit_abort_threshold`` only applies when a RateLimitTracker is
    passed to ``RetryingFetcher.fetch``.
    """

    max_attempts: int = 4
    initial_delay: float = 3.0
    rate_limit_abort_threshold: int = 5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if self.rate_limit_abort_threshold < 1:
            raise ValueError("rate_limit_abort_threshold must be at least 1")

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay,
            rate_limit_abort_threshold=config.rate_limit_abort_threshold,
        )

    def backoff_schedule(self) -> list[float]:
        """Waits between attempts when no Retry-After header is seen."""
        return [self.initial_delay * (2**i) for i in range(self.max_attempts - 1)]


class RateLimitTracker:
    """Counts consecutive 429 responses across the requests of one operation."""

    def __init__(self, threshold: int):
        self.threshold = threshold
        self.consecutive = 0

    def record(self, status: int) -> None:
        if status == HTTP_TOO_MANY_REQUESTS:
            self.consecutive += 1
        else:
            self.consecutive = 0

    @property
    def exceeded(self) -> bool:
        return self.consecutive >= self.threshold


@dataclass
class HttpRequest:
    """Description of an outgoing HTTP request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json_body: Any = None
    params: dict[str, str] | None = None


@dataclass
class HttpResponse:
    """Buffered HTTP response."""

    status: int
    headers: dict[str, str]
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        try:
            return json.loads(self.body)
        except (ValueError, UnicodeDecodeError) as e:
            raise UpstreamUnavailableError(f"Failed to parse JSON response: {e}") from e


def parse_retry_after(value: str | None) -> float | None:
    """Retry-After header in seconds; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class RetryingFetcher:
    """Executes HTTP requests with retries, backoff and throttling."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        session: aiohttp.ClientSession | None = None,
        rate_limit: int = 60,
        user_agent: str = "SuiWalletAggregator/0.1",
    ):
        self.policy = policy or RetryPolicy()
        self._session = session
        self._own_session = session is None
        self._user_agent = user_agent

        # Rate limiting
        self.throttler = Throttler(rate_limit=rate_limit, period=60)

        self._stats = {
            "requests": 0,
            "successes": 0,
            "failures": 0,
            "retries": 0,
            "rate_limit_errors": 0,
            "transport_errors": 0,
        }

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            connector = aiohttp.TCPConnector(
                limit=100,
                limit_per_host=30,
                ttl_dns_cache=300,
                keepalive_timeout=30,
            )
            timeout = aiohttp.ClientTimeout(total=60, connect=15, sock_read=30)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                connector=connector,
                headers={"User-Agent": self._user_agent, "accept": "*/*"},
                raise_for_status=False,
            )
            self._own_session = True
        return self._session

    async def _send(self, request: HttpRequest) -> HttpResponse:
        session = await self._ensure_session()
        async with self.throttler:
            async with session.request(
                request.method.upper(),
                request.url,
                headers=request.headers,
                json=request.json_body,
                params=request.params,
            ) as response:
                body = await response.read()
                return HttpResponse(status=response.status, headers=dict(response.headers), body=body)

    async def fetch(
        self,
        request: HttpRequest,
        policy: RetryPolicy | None = None,
        tracker: RateLimitTracker | None = None,
    ) -> HttpResponse:
        """Execute a request, retrying on 429, non-2xx statuses and transport errors.

        Raises:
            RateLimitedError: the last attempt was throttled, or ``tracker``
                reached its consecutive-429 threshold.
            UpstreamUnavailableError: retries exhausted for any other reason.
        """
        policy = policy or self.policy
        delay = policy.initial_delay
        last_status: int | None = None
        last_error = "no attempt made"

        for attempt in range(policy.max_attempts):
            self._stats["requests"] += 1
            try:
                response = await self._send(request)
            except (aiohttp.ClientError, TimeoutError) as e:
                self._stats["transport_errors"] += 1
                last_status = None
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"⚠️ Attempt {attempt + 1} for {request.url} threw an error: {last_error}")
            else:
                if tracker is not None:
                    tracker.record(response.status)

                if response.ok:
                    self._stats["successes"] += 1
                    return response

                last_status = response.status
                if response.status == HTTP_TOO_MANY_REQUESTS:
                    self._stats["rate_limit_errors"] += 1
                    last_error = "HTTP 429 Too Many Requests"
                    if tracker is not None and tracker.exceeded:
                        self._stats["failures"] += 1
                        logger.error(f"❌ {tracker.consecutive} consecutive 429s from {request.url}; aborting")
                        raise RateLimitedError(f"Rate limited {tracker.consecutive} consecutive times by {request.url}")

                    retry_after = parse_retry_after(response.header("Retry-After"))
                    if retry_after is not None:
                        delay = retry_after
                    logger.warning(f"⚠️ Attempt {attempt + 1} for {request.url} returned 429 (Too Many Requests)")
                else:
                    last_error = f"HTTP {response.status}"
                    logger.warning(f"⚠️ Attempt {attempt + 1} for {request.url} failed: HTTP {response.status}")

            if attempt < policy.max_attempts - 1:
                self._stats["retries"] += 1
                logger.info(f"⏳ Waiting {delay:.1f}s before retrying {request.url}")
                await asyncio.sleep(delay)
                delay *= 2

        self._stats["failures"] += 1
        logger.error(f"❌ All {policy.max_attempts} attempts failed for {request.url}: {last_error}")
        if last_status == HTTP_TOO_MANY_REQUESTS:
            raise RateLimitedError(f"Rate limited by {request.url} after {policy.max_attempts} attempts")
        raise UpstreamUnavailableError(
            f"Request to {request.url} failed after {policy.max_attempts} attempts: {last_error}"
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "max_attempts": self.policy.max_attempts,
            "initial_delay": self.policy.initial_delay,
        }

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and self._own_session:
            await self._session.close()
            self._session = None
            logger.info("🔌 HTTP session closed")
