"""Resilience patterns: per-host circuit breaker and a breaker-guarded HTTP client.

Callers consult the breaker before each request and report the outcome
afterwards, so a single failing host cannot absorb retries meant for others.
"""

from hostguard.resilience.circuit_breaker import (
    BreakerConfiguration,
    CircuitState,
    HostCircuitBreaker,
    compute_backoff,
    shared_breaker,
)
from hostguard.resilience.client import GuardedClient

__all__ = [
    "BreakerConfiguration",
    "CircuitState",
    "GuardedClient",
    "HostCircuitBreaker",
    "compute_backoff",
    "shared_breaker",
]
