"""Network reachability probes.

`is_connected()` answers "is some non-loopback interface up?", which is what
Wi-Fi/cellular status reports on a client device. It is a heuristic: an
interface can be up while the API server is unreachable (captive portal, DNS
outage, server down). Callers must not treat True as a promise; the
repository absorbs those false positives through FetchClient retries and
stale-serving fallback.
"""
from __future__ import annotations

from typing import Iterable, Protocol

import psutil

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="connectivity")

LOOPBACK_PREFIXES = ("lo", "loopback")
# Virtual interfaces that say nothing about outside reachability.
VIRTUAL_PREFIXES = ("docker", "veth", "br-", "virbr", "vmnet", "utun", "awdl", "llw")


class ConnectivityProbe(Protocol):
    """Anything that can report current network reachability."""

    def is_connected(self) -> bool:
        ...


class InterfaceConnectivityProbe(ConnectivityProbe):
    """Reports True if any physical, non-loopback interface is up."""

    def __init__(self, ignore_prefixes: Iterable[str] = LOOPBACK_PREFIXES + VIRTUAL_PREFIXES) -> None:
        self.ignore_prefixes = tuple(p.lower() for p in ignore_prefixes)

    def _counts(self, name: str) -> bool:
        return not name.lower().startswith(self.ignore_prefixes)

    def is_connected(self) -> bool:
        try:
            stats = psutil.net_if_stats()
        except Exception as exc:
            logger.error("Error checking connectivity", extra={"error": str(exc)})
            return False
        up = sorted(name for name, st in stats.items() if st.isup and self._counts(name))
        connected = bool(up)
        logger.debug("Connection check result", extra={"interfaces_up": up, "is_connected": connected})
        return connected


class StaticConnectivityProbe(ConnectivityProbe):
    """Fixed answer; used for forced offline mode and in tests."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected

    def is_connected(self) -> bool:
        return self.connected
