"""Per-host async circuit breaker with exponential backoff.

Every recorded failure opens the breaker for a host until a backoff window
elapses:

    CLOSED  →  (record_failure)              →  OPEN
    OPEN    →  (record_failure)              →  OPEN, window pushed out
    OPEN    →  (record_success)              →  CLOSED
    OPEN    →  (now >= open_until, implicit) →  CLOSED

The window doubles with each consecutive failure, is capped both by
``max_exponent`` and ``max_backoff_seconds``, and has additive jitter so that
callers sharing a failing host do not retry in lockstep.

Once the window elapses any number of callers may proceed; there is no
single-probe half-open gate.  The state name is never stored, it is derived
from the failure count and deadline on every read.

Usage::

    breaker = HostCircuitBreaker()
    if await breaker.allow_request("api.example.com"):
        try:
            ...  # issue the request
        except SomeTransportError:
            await breaker.record_failure("api.example.com")
        else:
            await breaker.record_success("api.example.com")
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, model_validator

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Derived circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"


class BreakerConfiguration(BaseModel):
    """Immutable backoff policy shared by every host in a registry.

    Attributes:
        base_backoff_seconds: Window after the first failure.
        max_backoff_seconds:  Hard cap on the computed window.
        max_exponent:         How many times the base may be doubled.
        jitter_range:         ``(low, high)`` additive random jitter.

    Invalid values raise ``pydantic.ValidationError`` at construction;
    nothing is clamped.  Every float must be finite.
    """

    model_config = ConfigDict(frozen=True)

    base_backoff_seconds: float = Field(default=2.0, gt=0, allow_inf_nan=False)
    max_backoff_seconds: float = Field(default=60.0, allow_inf_nan=False)
    max_exponent: int = Field(default=6, ge=0)
    jitter_range: tuple[FiniteFloat, FiniteFloat] = (0.0, 0.5)

    @model_validator(mode="after")
    def check_bounds(self) -> BreakerConfiguration:
        if self.max_backoff_seconds < self.base_backoff_seconds:
            raise ValueError("max_backoff_seconds must be >= base_backoff_seconds")
        low, high = self.jitter_range
        if low < 0:
            raise ValueError("jitter_range lower bound must be >= 0")
        if low > high:
            raise ValueError("jitter_range lower bound must be <= upper bound")
        return self

    @classmethod
    def default(cls) -> BreakerConfiguration:
        return _DEFAULT_CONFIGURATION


_DEFAULT_CONFIGURATION = BreakerConfiguration()


def compute_backoff(failures: int, configuration: BreakerConfiguration) -> float:
    """Return the backoff window in seconds for *failures* consecutive failures.

    Jitter is not included.  The exponent is clamped to
    ``[0, max_exponent]`` and the result to ``max_backoff_seconds``.
    """
    exponent = max(0, min(configuration.max_exponent, failures - 1))
    try:
        raw = math.ldexp(configuration.base_backoff_seconds, exponent)
    except OverflowError:
        # base * 2**exponent is past the float range, so the cap applies
        return configuration.max_backoff_seconds
    return min(raw, configuration.max_backoff_seconds)


@dataclass
class _HostState:
    failures: int = 0
    open_until: float | None = None


class HostCircuitBreaker:
    """Async-safe registry of per-host breaker state.

    Unknown hosts are closed with zero failures; an entry is only created
    by the first ``record_failure``.  All operations go through a single
    ``asyncio.Lock`` and never await anything else while holding it.  The
    lock is created lazily and replaced when the breaker is used from a new
    event loop, so one instance survives successive ``asyncio.run()`` calls.
    It is not meant to be shared between loops running in different threads.

    Args:
        configuration: Backoff policy (defaults to ``BreakerConfiguration.default()``).
        rng:           Source of jitter.  Pass a seeded ``random.Random`` for
                       reproducible windows.
        clock:         Returns "now" in epoch seconds when a caller omits it.
    """

    def __init__(
        self,
        configuration: BreakerConfiguration | None = None,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.configuration = configuration or BreakerConfiguration.default()
        self._rng = rng or random.Random()
        self._clock = clock
        self._states: dict[str, _HostState] = {}
        self._lock_instance: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    @property
    def _lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock_instance is None or self._lock_loop is not loop:
            self._lock_instance = asyncio.Lock()
            self._lock_loop = loop
        return self._lock_instance

    # ── Queries ──────────────────────────────────────────────────────

    async def allow_request(self, host: str, now: float | None = None) -> bool:
        """Return whether a request to *host* may be issued at *now*.

        Evaluating an elapsed window does not close the breaker; only
        ``record_success`` resets the failure count.
        """
        now = self._now(now)
        async with self._lock:
            return self._allows(self._states.get(host), now)

    async def failure_count(self, host: str) -> int:
        """Return the consecutive failures tracked for *host* (0 if unseen)."""
        async with self._lock:
            entry = self._states.get(host)
            return entry.failures if entry is not None else 0

    async def retry_after(self, host: str, now: float | None = None) -> float | None:
        """Return seconds until *host* is allowed again, or ``None`` if it already is."""
        now = self._now(now)
        async with self._lock:
            return self._remaining(self._states.get(host), now)

    async def state(self, host: str, now: float | None = None) -> CircuitState:
        now = self._now(now)
        async with self._lock:
            if self._allows(self._states.get(host), now):
                return CircuitState.CLOSED
            return CircuitState.OPEN

    async def snapshot(self, now: float | None = None) -> dict[str, dict]:
        """Return a JSON-serializable view of every tracked host."""
        now = self._now(now)
        async with self._lock:
            return {
                host: {
                    "failures": entry.failures,
                    "open_until": entry.open_until,
                    "state": (CircuitState.CLOSED if self._allows(entry, now) else CircuitState.OPEN).value,
                    "retry_after": self._remaining(entry, now),
                }
                for host, entry in self._states.items()
            }

    # ── Outcomes ─────────────────────────────────────────────────────

    async def record_success(self, host: str) -> None:
        """Close the breaker for *host* regardless of its failure history."""
        async with self._lock:
            previous = self._states.get(host)
            self._states[host] = _HostState()
        if previous is not None and previous.failures:
            logger.debug("Circuit closed for %s after %d failure(s)", host, previous.failures)

    async def record_failure(self, host: str, now: float | None = None) -> None:
        """Count a failure for *host* and (re)open its backoff window.

        The new deadline always replaces the old one, even while open.
        """
        now = self._now(now)
        async with self._lock:
            entry = self._states.setdefault(host, _HostState())
            entry.failures += 1
            window = compute_backoff(entry.failures, self.configuration) + self._jitter()
            entry.open_until = now + window
            failures = entry.failures
        logger.warning("Circuit open for %s: %d failure(s), backing off %.2fs", host, failures, window)

    # ── Administration ───────────────────────────────────────────────

    async def reset(self, host: str) -> None:
        """Forget everything tracked for *host*."""
        async with self._lock:
            self._states.pop(host, None)

    async def reset_all(self) -> None:
        """Forget every tracked host."""
        async with self._lock:
            self._states.clear()

    # ── Internals ────────────────────────────────────────────────────

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def _jitter(self) -> float:
        low, high = self.configuration.jitter_range
        if low == high:
            return low
        return self._rng.uniform(low, high)

    @staticmethod
    def _allows(entry: _HostState | None, now: float) -> bool:
        if entry is None or entry.open_until is None:
            return True
        return now >= entry.open_until

    @staticmethod
    def _remaining(entry: _HostState | None, now: float) -> float | None:
        if entry is None or entry.open_until is None or entry.open_until <= now:
            return None
        return entry.open_until - now


# Process-wide convenience instance.  Library code never depends on it;
# pass a breaker explicitly where testability matters.  Use it from one
# event loop at a time.
shared_breaker = HostCircuitBreaker()
