"""Error hierarchy tests."""

from hostguard.core.errors import (
    CircuitOpenError,
    HostGuardError,
    HostUnavailableError,
    RequestTimeoutError,
)


class TestErrorHierarchy:
    """All custom errors inherit from HostGuardError."""

    def test_all_inherit(self) -> None:
        for cls in (CircuitOpenError, HostUnavailableError, RequestTimeoutError):
            assert issubclass(cls, HostGuardError)

    def test_host_unavailable_message(self) -> None:
        err = HostUnavailableError("api.example.com", "connection refused")
        assert "api.example.com" in str(err)
        assert "connection refused" in str(err)
        assert err.host == "api.example.com"

    def test_host_unavailable_without_detail(self) -> None:
        assert str(HostUnavailableError("api.example.com")) == "Host unavailable: api.example.com"

    def test_request_timeout_message(self) -> None:
        err = RequestTimeoutError("api.example.com", 30.0)
        assert "api.example.com" in str(err)
        assert err.timeout_seconds == 30.0


class TestCircuitOpenError:
    def test_attributes(self) -> None:
        exc = CircuitOpenError("api.example.com", 25.5)
        assert exc.host == "api.example.com"
        assert exc.retry_after == 25.5
        assert "retry after 25.5s" in str(exc)

    def test_negative_retry_clamped(self) -> None:
        assert CircuitOpenError("api.example.com", -5.0).retry_after == 0.0
