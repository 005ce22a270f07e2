"""Lightweight timing spans for end-to-end profiling.

Spans are logged through the diagnostics logger only when they run past
their target, or always when ``HOSTGUARD_PERF_TRACE_ALL`` is set.  A span
without a target is always logged.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass

from hostguard.core.config import Settings, get_settings
from hostguard.diagnostics.logger import log


@dataclass
class Span:
    """A timed region; ``elapsed`` is filled in when the region exits."""

    name: str
    target_seconds: float | None = None
    metadata: str | None = None
    elapsed: float = 0.0


@contextmanager
def measure(
    name: str,
    target_seconds: float | None = None,
    metadata: str | None = None,
    settings: Settings | None = None,
) -> Iterator[Span]:
    """Time the enclosed block (exceptions included) and maybe log it."""
    span = Span(name, target_seconds, metadata)
    start = time.perf_counter()
    try:
        yield span
    finally:
        span.elapsed = time.perf_counter() - start
        _maybe_log(span, settings)


@asynccontextmanager
async def ameasure(
    name: str,
    target_seconds: float | None = None,
    metadata: str | None = None,
    settings: Settings | None = None,
) -> AsyncIterator[Span]:
    """Async counterpart of ``measure``."""
    span = Span(name, target_seconds, metadata)
    start = time.perf_counter()
    try:
        yield span
    finally:
        span.elapsed = time.perf_counter() - start
        _maybe_log(span, settings)


def format_span(span: Span) -> str:
    """Render ``[Perf] <name> <ms>ms[ target=<ms>ms][ <metadata>]``."""
    line = f"[Perf] {span.name} {int(span.elapsed * 1000)}ms"
    if span.target_seconds is not None:
        line += f" target={int(span.target_seconds * 1000)}ms"
    meta = span.metadata.strip() if span.metadata else ""
    if meta:
        line += f" {meta}"
    return line


def _maybe_log(span: Span, settings: Settings | None) -> None:
    settings = settings or get_settings()
    exceeded = span.target_seconds is None or span.elapsed >= span.target_seconds
    if settings.PERF_TRACE_ALL or exceeded:
        log(format_span(span), settings)
