"""Redacting diagnostics logging.

Diagnostics lines are opt-in (``HOSTGUARD_DIAGNOSTICS=1``) and always pass
through ``redact()`` so that e-mail addresses, bearer tokens and API keys
never reach a log sink.  ``configure_logging()`` installs the same redaction
on every record emitted under the ``hostguard`` logger tree.
"""

from __future__ import annotations

import logging
import re

from hostguard.core.config import Settings, get_settings

_diagnostics_logger = logging.getLogger("hostguard.diagnostics")

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9_\-.]+")
_API_KEY_RE = re.compile(r"(?:sk|key|api[_-]?key)[_-][A-Za-z0-9]{16,}")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def redact(message: str) -> str:
    """Return *message* with e-mails, bearer tokens and API keys masked."""
    result = _EMAIL_RE.sub("[REDACTED_EMAIL]", message)
    result = _BEARER_RE.sub("Bearer [REDACTED]", result)
    return _API_KEY_RE.sub("[REDACTED_KEY]", result)


class RedactingFilter(logging.Filter):
    """Rewrite each record's rendered message through ``redact()``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def diagnostics_enabled(settings: Settings | None = None) -> bool:
    """Return whether diagnostics lines should be emitted."""
    return (settings or get_settings()).DIAGNOSTICS


def log(message: str, settings: Settings | None = None) -> None:
    """Emit a redacted ``[Diagnostics]`` line when diagnostics are enabled."""
    if not diagnostics_enabled(settings):
        return
    _diagnostics_logger.info("[Diagnostics] %s", redact(message))


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    """Attach a redacting stream handler to the ``hostguard`` logger.

    Safe to call more than once; the handler is only installed the first time.
    """
    settings = settings or get_settings()
    root = logging.getLogger("hostguard")
    root.setLevel(settings.LOG_LEVEL.upper())

    for handler in root.handlers:
        if any(isinstance(f, RedactingFilter) for f in handler.filters):
            return root

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler.addFilter(RedactingFilter())
    root.addHandler(handler)
    return root
