"""Public entry point for looking up NAT translations of connections."""

from __future__ import annotations

import ipaddress
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Protocol

from clustermeta.conntrack.config import Config
from clustermeta.conntrack.iputil import int32_to_ip
from clustermeta.conntrack.model import ConnectionStats, ConnectionType, IPTranslation

logger = logging.getLogger(__name__)


class _Backend(Protocol):
    def get_translation_for_conn(self, conn: ConnectionStats) -> Optional[IPTranslation]: ...

    def get_stats(self) -> dict[str, int]: ...


BackendFactory = Callable[[Config], _Backend]


class ConntrackerError(RuntimeError):
    """The connection tracker could not be created.

    ``fallback`` holds the no-op tracker that stands in for it.
    """

    def __init__(self, message: str, fallback: "NoopConntracker") -> None:
        super().__init__(message)
        self.fallback = fallback


class Conntracker(ABC):
    """Looks up the destination NAT translation of a connection."""

    @abstractmethod
    def get_dnat_tuple_with_string(
        self, src_ip: str, dst_ip: str, src_port: int, dst_port: int, is_udp: int
    ) -> Optional[IPTranslation]:
        """Translation for a connection given with textual IP addresses."""

    @abstractmethod
    def get_dnat_tuple(
        self, src_ip: int, dst_ip: int, src_port: int, dst_port: int, is_udp: int
    ) -> Optional[IPTranslation]:
        """Translation for a connection given with little-endian uint32 addresses."""

    @abstractmethod
    def get_stats(self) -> dict[str, int]:
        """Telemetry of the tracker."""


def _parse_ip(text: str) -> Optional[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def _connection_type(is_udp: int) -> Optional[ConnectionType]:
    try:
        return ConnectionType(is_udp & 0xFF)
    except ValueError:
        return None


class NetlinkConntracker(Conntracker):
    """A tracker backed by a live record of the kernel's conntrack table."""

    def __init__(self, backend: _Backend, config: Config) -> None:
        self.backend = backend
        self.config = config

    def _lookup(self, source: Any, dest: Any, src_port: int, dst_port: int,
                is_udp: int) -> Optional[IPTranslation]:
        transport = _connection_type(is_udp)
        if transport is None:
            # No cached entry can carry any other transport.
            return None
        conn = ConnectionStats(source=source, dest=dest, sport=src_port, dport=dst_port,
                               type=transport)
        return self.backend.get_translation_for_conn(conn)

    def get_dnat_tuple_with_string(self, src_ip, dst_ip, src_port, dst_port, is_udp):
        return self._lookup(_parse_ip(src_ip), _parse_ip(dst_ip), src_port, dst_port, is_udp)

    def get_dnat_tuple(self, src_ip, dst_ip, src_port, dst_port, is_udp):
        return self._lookup(int32_to_ip(src_ip), int32_to_ip(dst_ip), src_port, dst_port, is_udp)

    def get_stats(self) -> dict[str, int]:
        stats = dict(self.backend.get_stats())
        stats["cache_max_size"] = self.config.conntrack_max_state_size
        return stats


class NoopConntracker(Conntracker):
    """A tracker that never finds a translation."""

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config
        self.stats: dict[str, int] = {}

    def get_dnat_tuple_with_string(self, src_ip, dst_ip, src_port, dst_port, is_udp):
        return None

    def get_dnat_tuple(self, src_ip, dst_ip, src_port, dst_port, is_udp):
        return None

    def get_stats(self) -> dict[str, int]:
        return self.stats


def _create_backend(config: Config, factory: Optional[BackendFactory]) -> _Backend:
    if factory is None:
        raise RuntimeError("no conntrack backend available")
    outcome: dict[str, Any] = {}

    def run() -> None:
        try:
            outcome["backend"] = factory(config)
        except Exception as exc:  # reported to the caller below
            outcome["error"] = exc

    worker = threading.Thread(target=run, name="conntrack-init", daemon=True)
    worker.start()
    worker.join(config.conntrack_init_timeout)
    if worker.is_alive():
        raise TimeoutError(
            f"could not initialize conntrack after: {config.conntrack_init_timeout}s"
        )
    if "error" in outcome:
        raise outcome["error"]
    return outcome["backend"]


class _Singleton:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.initialized = False
        self.tracker: Optional[Conntracker] = None
        self.error: Optional[ConntrackerError] = None

    def initialize(self, config: Optional[Config], factory: Optional[BackendFactory]) -> None:
        self.initialized = True
        if config is None or not config.enabled:
            logger.info("Conntracker is not enabled.")
            self.tracker = NoopConntracker(config)
            return
        try:
            backend = _create_backend(config, factory)
        except Exception as exc:
            fallback = NoopConntracker(config)
            error = ConntrackerError(f"failed to create conntracker: {exc}", fallback)
            error.__cause__ = exc
            self.tracker = fallback
            self.error = error
            return
        self.tracker = NetlinkConntracker(backend, config)


_singleton = _Singleton()


def new_conntracker(
    config: Optional[Config], backend_factory: Optional[BackendFactory] = None
) -> Conntracker:
    """Create the process-wide tracker on the first call and return it on every call.

    ``backend_factory`` builds the conntrack record from the config; it must
    finish within ``config.conntrack_init_timeout`` seconds. If it fails,
    ConntrackerError is raised (now and on later calls) with a no-op
    tracker as its ``fallback``.
    """
    with _singleton.lock:
        if not _singleton.initialized:
            _singleton.initialize(config, backend_factory)
        if _singleton.error is not None:
            raise _singleton.error
        return _singleton.tracker