"""Network path status and coarse quality classification.

``NetworkMonitor`` does not probe the OS itself; an integration layer feeds
it ``NetworkPath`` observations and it republishes the derived status and
quality to subscribers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class NetworkStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class NetworkQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"
    OFFLINE = "offline"


class InterfaceType(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    WIRED_ETHERNET = "wired_ethernet"
    LOOPBACK = "loopback"
    OTHER = "other"


@dataclass(frozen=True)
class NetworkPath:
    """One observation of the active network path."""

    connected: bool
    is_constrained: bool = False
    is_expensive: bool = False
    interface_type: InterfaceType | None = None


def derive_quality(
    connected: bool,
    is_constrained: bool,
    is_expensive: bool,
    interface_type: InterfaceType | None,
) -> NetworkQuality:
    """Classify expected network quality from coarse path characteristics."""
    if not connected:
        return NetworkQuality.OFFLINE
    if is_constrained:
        return NetworkQuality.POOR
    if is_expensive and interface_type == InterfaceType.CELLULAR:
        return NetworkQuality.GOOD
    if interface_type in (InterfaceType.WIFI, InterfaceType.WIRED_ETHERNET):
        return NetworkQuality.EXCELLENT
    return NetworkQuality.GOOD


Subscriber = Callable[["NetworkMonitor"], None]


class NetworkMonitor:
    """Holds the latest path observation and notifies subscribers on change."""

    def __init__(self) -> None:
        self.status = NetworkStatus.CONNECTED
        self.is_constrained = False
        self.is_expensive = False
        self.interface_type: InterfaceType | None = None
        self.quality = NetworkQuality.EXCELLENT
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def update(self, path: NetworkPath) -> NetworkQuality:
        """Apply *path* and notify every subscriber; returns the new quality."""
        self.status = NetworkStatus.CONNECTED if path.connected else NetworkStatus.DISCONNECTED
        self.is_constrained = path.is_constrained
        self.is_expensive = path.is_expensive
        self.interface_type = path.interface_type
        self.quality = derive_quality(
            connected=path.connected,
            is_constrained=path.is_constrained,
            is_expensive=path.is_expensive,
            interface_type=path.interface_type,
        )

        for callback in list(self._subscribers):
            try:
                callback(self)
            except Exception:
                logger.exception("Network subscriber %r failed", callback)
        return self.quality
