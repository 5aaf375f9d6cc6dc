"""In-memory index of Kubernetes metadata by container id and by IP and port."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from typing import Optional

from clustermeta.kube.nodes import NodeMap

DAEMONSET_KIND = "daemonset"


@dataclass
class K8sServiceInfo:
    """A service together with the workload behind it."""

    ip: str = ""
    service_name: str = ""
    namespace: str = ""
    is_node_port: bool = False
    selector: Optional[dict[str, str]] = None
    workload_kind: str = ""
    workload_name: str = ""

    def clear(self) -> None:
        """Empty every field in place, so all holders of this object see it emptied."""
        self.ip = ""
        self.service_name = ""
        self.namespace = ""
        self.is_node_port = False
        self.selector = None
        self.workload_kind = ""
        self.workload_name = ""


@dataclass
class K8sPodInfo:
    """A pod, its workload and the service it belongs to."""

    ip: str = ""
    pod_name: str = ""
    workload_kind: str = ""
    workload_name: str = ""
    namespace: str = ""
    node_name: str = ""
    node_address: str = ""
    is_host_network: bool = False
    service_info: Optional[K8sServiceInfo] = None


@dataclass
class K8sContainerInfo:
    """A container and the pod it runs in."""

    container_id: str = ""
    name: str = ""
    ref_pod_info: Optional[K8sPodInfo] = None


def _reachable(info: K8sContainerInfo) -> bool:
    pod = info.ref_pod_info
    return (
        pod is not None
        and not pod.is_host_network
        and pod.workload_kind != DAEMONSET_KIND
    )


class K8sMetaDataCache:
    """Thread-safe lookup tables of containers, pods and services."""

    def __init__(self, nodes: Optional[NodeMap] = None) -> None:
        self.nodes = nodes if nodes is not None else NodeMap()
        self._c_lock = threading.RLock()
        self._p_lock = threading.RLock()
        self._s_lock = threading.RLock()
        self.container_id_info: dict[str, K8sContainerInfo] = {}
        self.ip_container_info: dict[str, dict[int, K8sContainerInfo]] = {}
        self.ip_service_info: dict[str, dict[int, K8sServiceInfo]] = {}

    # Containers by id.

    def add_by_container_id(self, container_id: str, resource: K8sContainerInfo) -> None:
        with self._c_lock:
            self.container_id_info[container_id] = resource

    def get_by_container_id(self, container_id: str) -> Optional[K8sContainerInfo]:
        with self._c_lock:
            return self.container_id_info.get(container_id)

    def get_pod_by_container_id(self, container_id: str) -> Optional[K8sPodInfo]:
        with self._c_lock:
            info = self.container_id_info.get(container_id)
        return info.ref_pod_info if info is not None else None

    def delete_by_container_id(self, container_id: str) -> None:
        with self._c_lock:
            self.container_id_info.pop(container_id, None)

    # Containers by IP and port.

    def add_container_by_ip_port(self, ip: str, port: int, resource: K8sContainerInfo) -> None:
        with self._p_lock:
            self.ip_container_info.setdefault(ip, {})[port] = resource

    def get_container_by_ip_port(self, ip: str, port: int) -> Optional[K8sContainerInfo]:
        """Find the container serving ip:port.

        Falls back to a container without declared ports (port 0), or else to
        the first container whose pod is neither host-networked nor a daemonset.
        """
        with self._p_lock:
            by_port = self.ip_container_info.get(ip)
            if by_port is None:
                return None
            info = by_port.get(port)
            if info is not None:
                return info
            undeclared = by_port.get(0)
            if undeclared is None:
                return next((c for c in by_port.values() if _reachable(c)), None)
            return undeclared if _reachable(undeclared) else None

    def get_pod_by_ip_port(self, ip: str, port: int) -> Optional[K8sPodInfo]:
        info = self.get_container_by_ip_port(ip, port)
        return info.ref_pod_info if info is not None else None

    def get_pod_by_ip(self, ip: str) -> Optional[K8sPodInfo]:
        """The first pod at this IP that is neither host-networked nor a daemonset."""
        with self._p_lock:
            by_port = self.ip_container_info.get(ip)
            if by_port is None:
                return None
            info = next((c for c in by_port.values() if _reachable(c)), None)
        return info.ref_pod_info if info is not None else None

    def delete_container_by_ip_port(self, ip: str, port: int) -> None:
        with self._p_lock:
            by_port = self.ip_container_info.get(ip)
            if by_port is None:
                return
            by_port.pop(port, None)
            if not by_port:
                del self.ip_container_info[ip]

    # Services by IP and port.

    def add_service_by_ip_port(self, ip: str, port: int, resource: K8sServiceInfo) -> None:
        with self._s_lock:
            self.ip_service_info.setdefault(ip, {})[port] = resource

    def get_service_by_ip_port(self, ip: str, port: int) -> Optional[K8sServiceInfo]:
        with self._s_lock:
            by_port = self.ip_service_info.get(ip)
            return by_port.get(port) if by_port is not None else None

    def delete_service_by_ip_port(self, ip: str, port: int) -> None:
        with self._s_lock:
            by_port = self.ip_service_info.get(ip)
            if by_port is None:
                return
            by_port.pop(port, None)
            if not by_port:
                del self.ip_service_info[ip]

    def clear_all(self) -> None:
        """Drop every cached entry."""
        with self._p_lock:
            self.ip_container_info = {}
        with self._s_lock:
            self.ip_service_info = {}
        with self._c_lock:
            self.container_id_info = {}

    def get_node_name_by_ip(self, ip: str) -> Optional[str]:
        """Name of the node with this IP, or None."""
        return self.nodes.get_node_name(ip)

    def __str__(self) -> str:
        with self._c_lock:
            by_id = {k: asdict(v) for k, v in self.container_id_info.items()}
        with self._p_lock:
            by_ip = {
                ip: {port: asdict(v) for port, v in ports.items()}
                for ip, ports in self.ip_container_info.items()
            }
        with self._s_lock:
            services = {
                ip: {port: asdict(v) for port, v in ports.items()}
                for ip, ports in self.ip_service_info.items()
            }
        return json.dumps(
            {
                "containerIdPodInfo": by_id,
                "ipContainerInfo": by_ip,
                "ipServiceInfo": services,
            }
        )