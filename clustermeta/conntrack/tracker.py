"""User-space record of NAT translations seen in the conntrack table."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from clustermeta.conntrack.address import Address, address_from_ip
from clustermeta.conntrack.codec import Con, Decoder, Event, IPTuple
from clustermeta.conntrack.model import ConnectionStats, ConnectionType, IPTranslation

COMPACT_INTERVAL = 60.0
DEFAULT_ORPHAN_TIMEOUT = 120.0

SAMPLING_PCT = "sampling_pct"

IPPROTO_TCP = 6
IPPROTO_UDP = 17


class _Consumer(Protocol):
    def get_stats(self) -> dict[str, int]: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class ConnKey:
    """Cache key: the endpoints and transport of one connection direction."""

    src_ip: Address
    src_port: int
    dst_ip: Address
    dst_port: int
    transport: ConnectionType = ConnectionType.TCP


@dataclass
class OrphanEntry:
    """An entry not yet looked up, with the time (epoch seconds) it expires."""

    key: ConnKey
    expires: float


@dataclass
class TranslationEntry:
    """A cached translation and, while it is unclaimed, its orphan record."""

    translation: IPTranslation
    orphan: Optional[OrphanEntry] = None


class ConntrackCache:
    """An LRU cache of translations that also expires unclaimed entries."""

    def __init__(self, max_size: int, orphan_timeout: float = DEFAULT_ORPHAN_TIMEOUT) -> None:
        if max_size <= 0:
            raise ValueError("must provide a positive size")
        self.max_size = max_size
        self.orphan_timeout = orphan_timeout
        # Least recently used first.
        self._entries: OrderedDict[ConnKey, TranslationEntry] = OrderedDict()
        # Oldest orphan first.
        self._orphans: OrderedDict[ConnKey, OrphanEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def orphan_count(self) -> int:
        return len(self._orphans)

    @property
    def orphans(self) -> tuple[OrphanEntry, ...]:
        """Orphan records, oldest first."""
        return tuple(self._orphans.values())

    def _drop_orphan(self, entry: TranslationEntry) -> None:
        orphan = entry.orphan
        if orphan is not None and self._orphans.get(orphan.key) is orphan:
            del self._orphans[orphan.key]

    def peek(self, key: ConnKey) -> Optional[TranslationEntry]:
        """Return an entry without touching its recency or orphan state."""
        return self._entries.get(key)

    def get(self, key: ConnKey) -> Optional[TranslationEntry]:
        """Return an entry, mark it recently used and no longer orphaned."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        if entry.orphan is not None:
            self._drop_orphan(entry)
            entry.orphan = None
        return entry

    def remove(self, key: ConnKey) -> bool:
        """Remove an entry; True if it was present."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._drop_orphan(entry)
        return True

    def _put(self, key: ConnKey, entry: TranslationEntry) -> bool:
        if key in self._entries:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            return False
        self._entries[key] = entry
        if len(self._entries) > self.max_size:
            _, evicted = self._entries.popitem(last=False)
            self._drop_orphan(evicted)
            return True
        return False

    def add(self, con: Con, orphan: bool) -> int:
        """Register both directions of a connection; return how many entries were evicted."""
        evicts = 0
        for key_tuple, trans_tuple in ((con.origin, con.reply), (con.reply, con.origin)):
            key = format_key(key_tuple)
            if key is None:
                continue
            existing = self._entries.get(key)
            if existing is not None:
                self._drop_orphan(existing)
            entry = TranslationEntry(format_ip_translation(trans_tuple))
            if orphan:
                record = OrphanEntry(key, time.time() + self.orphan_timeout)
                self._orphans.pop(key, None)
                self._orphans[key] = record
                entry.orphan = record
            if self._put(key, entry):
                evicts += 1
        return evicts

    def remove_orphans(self, now: float) -> int:
        """Drop orphans that expired before ``now``; return how many were removed."""
        removed = 0
        while self._orphans:
            oldest = next(iter(self._orphans.values()))
            if not oldest.expires < now:
                break
            self.remove(oldest.key)
            self._orphans.pop(oldest.key, None)
            removed += 1
        return removed


def _ip_equal(a, b) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return address_from_ip(a) == address_from_ip(b)


def is_nat(con: Con) -> bool:
    """Whether a conntrack entry represents a NAT translation."""
    origin, reply = con.origin, con.reply
    if origin is None or reply is None or origin.proto is None or reply.proto is None:
        return False
    if None in (
        origin.proto.src_port,
        origin.proto.dst_port,
        reply.proto.src_port,
        reply.proto.dst_port,
    ):
        return False
    return (
        not _ip_equal(origin.src, reply.dst)
        or not _ip_equal(origin.dst, reply.src)
        or origin.proto.src_port != reply.proto.dst_port
        or origin.proto.dst_port != reply.proto.src_port
    )


def format_ip_translation(tuple: IPTuple) -> IPTranslation:
    """Build the translation described by a tuple."""
    return IPTranslation(
        repl_src_ip=tuple.src,
        repl_dst_ip=tuple.dst,
        repl_src_port=tuple.proto.src_port,
        repl_dst_port=tuple.proto.dst_port,
    )


def format_key(tuple: IPTuple) -> Optional[ConnKey]:
    """Build a cache key from a tuple; None for protocols other than TCP and UDP."""
    proto = tuple.proto
    if proto is None:
        return None
    if proto.number == IPPROTO_TCP:
        transport = ConnectionType.TCP
    elif proto.number == IPPROTO_UDP:
        transport = ConnectionType.UDP
    else:
        return None
    return ConnKey(
        src_ip=address_from_ip(tuple.src),
        src_port=proto.src_port,
        dst_ip=address_from_ip(tuple.dst),
        dst_port=proto.dst_port,
        transport=transport,
    )


def _key_for(conn: ConnectionStats) -> ConnKey:
    return ConnKey(
        src_ip=address_from_ip(conn.source),
        src_port=conn.sport,
        dst_ip=address_from_ip(conn.dest),
        dst_port=conn.dport,
        transport=conn.type,
    )


class RealConntracker:
    """Keeps the NAT translations reported by a conntrack event consumer."""

    def __init__(
        self,
        max_state_size: int,
        consumer: Optional[_Consumer] = None,
        orphan_timeout: float = DEFAULT_ORPHAN_TIMEOUT,
    ) -> None:
        self.max_state_size = max_state_size
        self.consumer = consumer
        self.cache = ConntrackCache(max_state_size, orphan_timeout)
        self.decoder = Decoder()
        self._lock = threading.RLock()
        self._stats_lock = threading.Lock()
        self._gets = 0
        self._registers = 0
        self._registers_dropped = 0
        self._unregisters = 0
        self._evicts = 0

    def _count(self, name: str, n: int = 1) -> None:
        with self._stats_lock:
            setattr(self, name, getattr(self, name) + n)

    def get_translation_for_conn(self, conn: ConnectionStats) -> Optional[IPTranslation]:
        """Return the translation of a connection, or None if it is not NAT-ed."""
        try:
            with self._lock:
                entry = self.cache.get(_key_for(conn))
            return entry.translation if entry is not None else None
        finally:
            self._count("_gets")

    def delete_translation(self, conn: ConnectionStats) -> None:
        """Forget the translation of a connection."""
        with self._lock:
            removed = self.cache.remove(_key_for(conn))
        if removed:
            self._count("_unregisters")

    def is_sampling(self) -> bool:
        """Whether the consumer currently drops part of the events."""
        if self.consumer is None:
            return False
        return self.consumer.get_stats().get(SAMPLING_PCT, 100) < 100

    def get_stats(self) -> dict[str, int]:
        """Telemetry of the tracker merged with that of its consumer."""
        with self._lock:
            size = len(self.cache)
            orphan_size = self.cache.orphan_count
        stats = {"state_size": size, "orphan_size": orphan_size}
        with self._stats_lock:
            if self._gets:
                stats["gets_total"] = self._gets
            if self._registers:
                stats["registers_total"] = self._registers
            stats["registers_dropped"] = self._registers_dropped
            if self._unregisters:
                stats["unregisters_total"] = self._unregisters
            stats["evicts_total"] = self._evicts
        if self.consumer is not None:
            stats.update(self.consumer.get_stats())
        return stats

    def close(self) -> None:
        """Stop the consumer."""
        if self.consumer is not None:
            self.consumer.stop()

    def load_initial_state(self, events: Iterable[Event]) -> None:
        """Load NAT entries from a table dump; they are not treated as orphans."""
        for event in events:
            for con in self.decoder.decode_and_release_event(event):
                if not is_nat(con):
                    continue
                with self._lock:
                    evicts = self.cache.add(con, False)
                self._count("_registers")
                self._count("_evicts", evicts)

    def register(self, con: Con) -> None:
        """Record a connection reported by a create or update event."""
        if not is_nat(con):
            self._count("_registers_dropped")
            return
        with self._lock:
            evicts = self.cache.add(con, True)
        self._count("_registers")
        self._count("_evicts", evicts)

    def compact(self) -> None:
        """Drop expired orphans."""
        with self._lock:
            removed = self.cache.remove_orphans(time.time())
        self._count("_unregisters", removed)