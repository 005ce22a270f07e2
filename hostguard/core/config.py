"""Settings: centralized configuration for hostguard.

All settings are loaded from environment variables with the HOSTGUARD_ prefix.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from hostguard.resilience.circuit_breaker import BreakerConfiguration

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def _tolerant_bool(value: Any, default: bool) -> Any:
    """Map 1/true/yes/on and 0/false/no/off; anything else falls back to *default*."""
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in _TRUTHY:
            return True
        if raw in _FALSY:
            return False
        return default
    return value


class Settings(BaseSettings):
    """hostguard configuration.

    All fields can be overridden by environment variables prefixed with
    ``HOSTGUARD_``.  For example, ``HOSTGUARD_BREAKER_MAX_EXPONENT=4``
    overrides the exponent cap.
    """

    # ── Identity / logging ──────────────────────────────────────────
    SERVICE_NAME: str = "hostguard"
    LOG_LEVEL: str = "INFO"
    DIAGNOSTICS: bool = False  # Redacted [Diagnostics] lines
    PERF_TRACE_ALL: bool = False  # Log every timed span, not only slow ones

    # ── Circuit breaker ─────────────────────────────────────────────
    BREAKER_BASE_BACKOFF_SECONDS: float = 2.0
    BREAKER_MAX_BACKOFF_SECONDS: float = 60.0
    BREAKER_MAX_EXPONENT: int = 6
    BREAKER_JITTER_LOW: float = 0.0
    BREAKER_JITTER_HIGH: float = 0.5

    # ── Guarded HTTP client ─────────────────────────────────────────
    CLIENT_TIMEOUT_SECONDS: float = 30.0
    CLIENT_MAX_RETRIES: int = 1  # Extra attempts after the breaker window
    CLIENT_MAX_RETRY_WAIT_SECONDS: float = 5.0  # Longer windows are not waited out

    # ── JSON disk store ─────────────────────────────────────────────
    DATA_DIRECTORY: Path = Path("~/.hostguard").expanduser()
    STORE_DEBOUNCE_SECONDS: float = 0.25

    model_config = {
        "env_prefix": "HOSTGUARD_",
    }

    @field_validator("DIAGNOSTICS", "PERF_TRACE_ALL", mode="before")
    @classmethod
    def parse_toggle(cls, v: Any) -> Any:
        return _tolerant_bool(v, default=False)

    @field_validator("DATA_DIRECTORY", mode="after")
    @classmethod
    def expand_data_directory(cls, v: Path) -> Path:
        return v.expanduser()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide Settings, parsed from the environment once.

    Call ``get_settings.cache_clear()`` to pick up environment changes.
    """
    return Settings()


def breaker_configuration(settings: Settings) -> BreakerConfiguration:
    """Build a ``BreakerConfiguration`` from Settings.

    Raises ``pydantic.ValidationError`` if the configured values violate
    the breaker's constraints.
    """
    from hostguard.resilience.circuit_breaker import BreakerConfiguration

    return BreakerConfiguration(
        base_backoff_seconds=settings.BREAKER_BASE_BACKOFF_SECONDS,
        max_backoff_seconds=settings.BREAKER_MAX_BACKOFF_SECONDS,
        max_exponent=settings.BREAKER_MAX_EXPONENT,
        jitter_range=(settings.BREAKER_JITTER_LOW, settings.BREAKER_JITTER_HIGH),
    )
