"""Record of the cluster's nodes, keyed by internal IP."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class NodeInfo:
    ip: str
    name: str
    labels: dict[str, str] = field(default_factory=dict)


class NodeMap:
    """Thread-safe map from node IP to node information."""

    def __init__(self) -> None:
        self.info: dict[str, NodeInfo] = {}
        self._lock = threading.RLock()

    def add(self, info: Optional[NodeInfo]) -> None:
        """Store a node under its IP; None is ignored."""
        if info is None:
            return
        with self._lock:
            self.info[info.ip] = info

    def get_node_name(self, ip: str) -> Optional[str]:
        """Name of the node with this IP, or None."""
        with self._lock:
            node = self.info.get(ip)
        return node.name if node is not None else None

    def get_all_node_addresses(self) -> list[str]:
        """IPs of all known nodes."""
        with self._lock:
            return list(self.info)

    def delete(self, name: str) -> None:
        """Remove the entry stored under the given key.

        Entries are keyed by IP, so only an entry whose IP equals ``name`` goes.
        """
        with self._lock:
            self.info.pop(name, None)