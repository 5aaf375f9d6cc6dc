"""Record of pods by namespace and name, and container id handling."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from clustermeta.kube.services import selectors_match_labels


@dataclass
class PodInfo:
    """The parts of a pod needed to link it to services."""

    ip: str = ""
    ports: list[int] = field(default_factory=list)
    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    namespace: str = ""
    container_ids: list[str] = field(default_factory=list)


class PodMap:
    """Thread-safe map of namespace to pod name to PodInfo."""

    def __init__(self) -> None:
        self.info: dict[str, dict[str, PodInfo]] = {}
        self._lock = threading.RLock()

    def add(self, info: PodInfo) -> None:
        with self._lock:
            self.info.setdefault(info.namespace, {})[info.name] = info

    def delete(self, namespace: str, name: str) -> None:
        with self._lock:
            pods = self.info.get(namespace)
            if pods is not None:
                pods.pop(name, None)

    def get(self, namespace: str, name: str) -> Optional[PodInfo]:
        with self._lock:
            pods = self.info.get(namespace)
            return pods.get(name) if pods is not None else None

    def get_pods_match_selectors(self, namespace: str, selectors: Optional[dict[str, str]]) -> list[PodInfo]:
        """Pods of the namespace whose labels match every selector; none for empty selectors."""
        if not selectors:
            return []
        with self._lock:
            pods = self.info.get(namespace, {})
            return [p for p in pods.values() if selectors_match_labels(selectors, p.labels)]


def truncate_container_id(container_id: str) -> str:
    """The first 12 characters after "://"; empty when there is no "://"."""
    _, sep, rest = container_id.partition("://")
    if not sep:
        return ""
    return rest[:12]