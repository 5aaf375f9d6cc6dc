"""Record of services by namespace and name, matched to pods by label selectors."""

from __future__ import annotations

import threading
from typing import Mapping, Optional

from clustermeta.kube.cache import K8sServiceInfo


def selectors_match_labels(selectors: Mapping[str, str], labels: Optional[Mapping[str, str]]) -> bool:
    """True only if the labels carry every selector key with the same value."""
    labels = labels or {}
    return all(key in labels and labels[key] == value for key, value in selectors.items())


class ServiceMap:
    """Thread-safe map of namespace to service name to K8sServiceInfo."""

    def __init__(self) -> None:
        self.service_map: dict[str, dict[str, K8sServiceInfo]] = {}
        self._lock = threading.RLock()

    def get_service_match_labels(self, namespace: str, labels: Optional[Mapping[str, str]]) -> list[K8sServiceInfo]:
        """Services of the namespace whose non-empty selector matches the labels."""
        with self._lock:
            services = self.service_map.get(namespace, {})
            return [
                s for s in services.values()
                if s.selector and selectors_match_labels(s.selector, labels)
            ]

    def add(self, info: K8sServiceInfo) -> None:
        with self._lock:
            self.service_map.setdefault(info.namespace, {})[info.service_name] = info

    def delete(self, namespace: str, service_name: str) -> None:
        """Empty the stored service in place so every reference to it sees it emptied."""
        with self._lock:
            service = self.service_map.get(namespace, {}).get(service_name)
            if service is not None:
                service.clear()