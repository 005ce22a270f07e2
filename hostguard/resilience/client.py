"""GuardedClient: breaker-protected async HTTP client.

Wraps an ``httpx.AsyncClient`` so that every request is checked against a
``HostCircuitBreaker`` first and its outcome is reported afterwards.  The
breaker is injected, never looked up globally, so tests and independent
subsystems can each own their registry.

Host keys are the lower-cased hostname of the request URL.  Retries wait out
the breaker's own backoff window instead of using a separate schedule.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from hostguard.core.errors import CircuitOpenError, HostUnavailableError, RequestTimeoutError
from hostguard.diagnostics.perf_trace import ameasure
from hostguard.resilience.circuit_breaker import HostCircuitBreaker

if TYPE_CHECKING:
    from hostguard.core.config import Settings

logger = logging.getLogger(__name__)

# Requests slower than this show up as [Perf] diagnostics lines
_SLOW_REQUEST_SECONDS = 1.0

# Breaker deadlines are wall-clock; asyncio sleeps on the monotonic clock
_RETRY_SLACK_SECONDS = 0.01


class GuardedClient:
    """Issues HTTP requests through a per-host circuit breaker.

    Args:
        breaker:        Registry consulted before and updated after each request.
        client:         Underlying ``httpx.AsyncClient``; one is created when omitted.
        timeout:        Default per-request timeout in seconds.
        max_retries:    Further attempts after a failed one.
        max_retry_wait: Longest breaker window a retry will sleep through.
        settings:       Passed to request timing spans; the cached process
                        settings are used when omitted.

    An injected *client* stays owned by the caller and is not closed by
    ``aclose()``.
    """

    # HTTP status codes that count as host failures
    _RETRYABLE_STATUS_CODES = frozenset({502, 503, 504, 429})

    def __init__(
        self,
        breaker: HostCircuitBreaker,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        max_retries: int = 1,
        max_retry_wait: float = 5.0,
        settings: Settings | None = None,
    ) -> None:
        self._breaker = breaker
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient()
        self._settings = settings
        self._timeout = timeout
        self._max_retries = max_retries
        self._max_retry_wait = max_retry_wait

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        breaker: HostCircuitBreaker | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> GuardedClient:
        """Build a client (and, if not given, a breaker) from Settings."""
        from hostguard.core.config import breaker_configuration

        if breaker is None:
            breaker = HostCircuitBreaker(breaker_configuration(settings))
        return cls(
            breaker,
            client=client,
            timeout=settings.CLIENT_TIMEOUT_SECONDS,
            max_retries=settings.CLIENT_MAX_RETRIES,
            max_retry_wait=settings.CLIENT_MAX_RETRY_WAIT_SECONDS,
            settings=settings,
        )

    @property
    def circuit_breaker(self) -> HostCircuitBreaker:
        """Expose the breaker registry for health/metrics reporting."""
        return self._breaker

    def host_key(self, url: str | httpx.URL) -> str:
        """Return the breaker key for *url*, resolving relative URLs against ``base_url``.

        Raises:
            ValueError: *url* has no host and the client has no ``base_url``.
        """
        resolved = httpx.URL(url)
        if not resolved.host:
            resolved = self._client.base_url.join(resolved)
        if not resolved.host:
            raise ValueError(f"Cannot determine host for URL {str(url)!r}; pass an absolute URL or set base_url")
        return resolved.host.lower()

    async def request(
        self,
        method: str,
        url: str | httpx.URL,
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request unless the host's breaker is open.

        Raises:
            CircuitOpenError: The breaker rejected the request.
            HostUnavailableError: Connection failure or retryable status.
            RequestTimeoutError: The request exceeded *timeout*.
        """
        host = self.host_key(url)
        timeout = self._timeout if timeout is None else timeout
        attempts = 1 + self._max_retries

        for attempt in range(attempts):
            await self._check_circuit_breaker(host)
            try:
                return await self._attempt(host, method, url, timeout, kwargs)
            except (HostUnavailableError, RequestTimeoutError) as exc:
                if attempt >= attempts - 1 or not await self._wait_for_window(host, attempt, attempts, exc):
                    raise
        raise HostUnavailableError(host, "All retry attempts exhausted")

    async def get(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def _check_circuit_breaker(self, host: str) -> None:
        if not await self._breaker.allow_request(host):
            retry_after = await self._breaker.retry_after(host)
            raise CircuitOpenError(host, retry_after or 0.0)

    async def _attempt(
        self,
        host: str,
        method: str,
        url: str | httpx.URL,
        timeout: float,
        kwargs: dict[str, Any],
    ) -> httpx.Response:
        """Execute one request and report its outcome to the breaker."""
        try:
            async with ameasure(
                "http.request",
                target_seconds=_SLOW_REQUEST_SECONDS,
                metadata=f"{method} {host}",
                settings=self._settings,
            ):
                response = await self._client.request(method, url, timeout=timeout, **kwargs)
        except (httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout):
            await self._breaker.record_failure(host)
            raise RequestTimeoutError(host, timeout) from None
        except (httpx.ConnectError, httpx.ConnectTimeout):
            await self._breaker.record_failure(host)
            raise HostUnavailableError(host, "Connection failed") from None
        except httpx.TransportError as exc:
            await self._breaker.record_failure(host)
            raise HostUnavailableError(host, type(exc).__name__) from exc

        if response.status_code in self._RETRYABLE_STATUS_CODES:
            await self._breaker.record_failure(host)
            raise HostUnavailableError(host, f"HTTP {response.status_code}")

        await self._breaker.record_success(host)
        return response

    async def _wait_for_window(
        self,
        host: str,
        attempt: int,
        attempts: int,
        exc: Exception,
    ) -> bool:
        """Sleep until the breaker window for *host* elapses; False if it is too long."""
        delay = await self._breaker.retry_after(host) or 0.0
        if delay > self._max_retry_wait:
            logger.warning("%s; backoff %.1fs exceeds retry wait limit, giving up", exc, delay)
            return False
        logger.warning("%s (attempt %d/%d), retrying in %.1fs", exc, attempt + 1, attempts, delay)
        await asyncio.sleep(delay + _RETRY_SLACK_SECONDS)
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GuardedClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
