"""Exception hierarchy for hostguard.

The circuit breaker itself never raises at runtime; these errors are raised
by ``GuardedClient`` when a request is rejected or fails.  Invalid breaker
configuration surfaces as ``pydantic.ValidationError`` at construction.
"""


class HostGuardError(Exception):
    """Base exception for all hostguard errors."""


class HostUnavailableError(HostGuardError):
    """Raised when a host cannot be reached or answers with a retryable status."""

    def __init__(self, host: str, detail: str = "") -> None:
        self.host = host
        self.detail = detail
        msg = f"Host unavailable: {host}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class RequestTimeoutError(HostGuardError):
    """Raised when a request to a host exceeds its timeout."""

    def __init__(self, host: str, timeout_seconds: float) -> None:
        self.host = host
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Request to '{host}' timed out after {timeout_seconds}s")


class CircuitOpenError(HostGuardError):
    """Raised when the circuit breaker suppresses a request to a host.

    Attributes:
        host:        Host key whose breaker is open.
        retry_after: Seconds until the backoff window elapses (never negative).
    """

    def __init__(self, host: str, retry_after: float) -> None:
        self.host = host
        self.retry_after = max(0.0, retry_after)
        super().__init__(f"Circuit open for '{host}', retry after {self.retry_after:.1f}s")
