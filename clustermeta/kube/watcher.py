"""Keeps the metadata cache in step with pod, service, replica set and node events."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from clustermeta.kube.cache import K8sContainerInfo, K8sMetaDataCache, K8sPodInfo, K8sServiceInfo
from clustermeta.kube.config import DEFAULT_GRACE_DELETE_PERIOD
from clustermeta.kube.nodes import NodeInfo, NodeMap
from clustermeta.kube.objects import Node, Pod, ReplicaSet, Service
from clustermeta.kube.pods import PodInfo, PodMap, truncate_container_id
from clustermeta.kube.replicasets import REPLICA_SET_KIND, Controller, ReplicaSetMap
from clustermeta.kube.scheme import complete_gvk, map_key
from clustermeta.kube.services import ServiceMap

NODE_PORT = "NodePort"
INTERNAL_IP = "InternalIP"
DEFAULT_DELETE_INTERVAL = 10.0


@dataclass
class DeleteRequest:
    """A deleted pod and the time (epoch seconds) its delete event arrived."""

    pod: Pod
    ts: float


def _has_cluster_ip(ip: str) -> bool:
    return ip not in ("", "None")


class MetadataWatcher:
    """Applies Kubernetes object events to the metadata cache and its side tables.

    Pod metadata is removed from the cache only after ``grace_delete_period``
    seconds, by flush_expired_pods() or the loop of run_pod_delete_loop().
    """

    def __init__(
        self,
        cache: Optional[K8sMetaDataCache] = None,
        pods: Optional[PodMap] = None,
        services: Optional[ServiceMap] = None,
        replica_sets: Optional[ReplicaSetMap] = None,
        nodes: Optional[NodeMap] = None,
        grace_delete_period: float = DEFAULT_GRACE_DELETE_PERIOD,
    ) -> None:
        if cache is None:
            cache = K8sMetaDataCache(nodes)
        self.cache = cache
        self.nodes = nodes if nodes is not None else cache.nodes
        self.pods = pods if pods is not None else PodMap()
        self.services = services if services is not None else ServiceMap()
        self.replica_sets = replica_sets if replica_sets is not None else ReplicaSetMap()
        self.grace_delete_period = grace_delete_period
        self._delete_lock = threading.Lock()
        self._delete_queue: list[DeleteRequest] = []
        self._pod_update_lock = threading.Lock()
        self._service_update_lock = threading.Lock()
        self._rs_update_lock = threading.Lock()

    @property
    def pending_deletes(self) -> tuple[DeleteRequest, ...]:
        """Pods waiting for their grace period to end, oldest first."""
        with self._delete_lock:
            return tuple(self._delete_queue)

    # Pods.

    def _workload_of(self, pod: Pod) -> tuple[str, str]:
        for owner in pod.owner_references:
            # Only the controller counts.
            if not owner.controller:
                continue
            if owner.kind == REPLICA_SET_KIND:
                workload = self.replica_sets.get_owner_reference(map_key(pod.namespace, owner.name))
                if workload is not None:
                    return complete_gvk(workload.api_version, workload.kind.lower()), workload.name
            return complete_gvk(owner.api_version, owner.kind.lower()), owner.name
        return "", ""

    def on_add_pod(self, pod: Pod) -> None:
        """Index a new pod by its container ids and by IP and port."""
        info = PodInfo(
            ip=pod.pod_ip,
            name=pod.name,
            labels=pod.labels,
            namespace=pod.namespace,
        )
        workload_kind, workload_name = self._workload_of(pod)

        matched = self.services.get_service_match_labels(info.namespace, info.labels)
        service_info: Optional[K8sServiceInfo] = None
        if matched:
            # A service also carries the workload behind it.
            for service in matched:
                service.workload_kind = workload_kind
                service.workload_name = workload_name
            service_info = matched[0]

        pod_info = K8sPodInfo(
            ip=pod.pod_ip,
            namespace=pod.namespace,
            pod_name=pod.name,
            workload_kind=workload_kind,
            workload_name=workload_name,
            node_name=pod.node_name,
            node_address=pod.host_ip,
            is_host_network=pod.host_network,
            service_info=service_info,
        )

        for status in pod.container_statuses:
            container_id = truncate_container_id(status.container_id)
            if not container_id:
                continue
            info.container_ids.append(container_id)
            self.cache.add_by_container_id(
                container_id,
                K8sContainerInfo(container_id=container_id, name=status.name, ref_pod_info=pod_info),
            )

        if pod.pod_ip:
            for container in pod.containers:
                container_info = K8sContainerInfo(name=container.name, ref_pod_info=pod_info)
                if not container.ports:
                    # Later port-less containers of the same pod overwrite earlier ones.
                    self.cache.add_container_by_ip_port(pod.pod_ip, 0, container_info)
                for port in container.ports:
                    info.ports.append(port.container_port)
                    self.cache.add_container_by_ip_port(pod.pod_ip, port.container_port, container_info)
        self.pods.add(info)

    def on_update_pod(self, old: Pod, new: Pod) -> None:
        """Replace a pod; periodic resyncs with an unchanged version are ignored."""
        if old.resource_version == new.resource_version:
            return
        with self._pod_update_lock:
            self.on_delete_pod(old)
            self.on_add_pod(new)

    def on_delete_pod(self, pod: Pod) -> None:
        """Forget the pod now and queue its cache entries for removal later."""
        self.pods.delete(pod.namespace, pod.name)
        with self._delete_lock:
            self._delete_queue.append(DeleteRequest(pod=pod, ts=time.time()))

    def delete_pod(self, pod: Pod) -> None:
        """Remove a pod's entries from the cache."""
        for status in pod.container_statuses:
            container_id = truncate_container_id(status.container_id)
            if not container_id:
                continue
            self.cache.delete_by_container_id(container_id)
        for container in pod.containers:
            for port in container.ports:
                self.cache.delete_container_by_ip_port(pod.pod_ip, port.container_port)

    def flush_expired_pods(self, now: Optional[float] = None) -> int:
        """Delete queued pods whose grace period ended by ``now``; return how many."""
        if now is None:
            now = time.time()
        with self._delete_lock:
            cutoff = 0
            for request in self._delete_queue:
                if request.ts + self.grace_delete_period > now:
                    break
                cutoff += 1
            expired = self._delete_queue[:cutoff]
            self._delete_queue = self._delete_queue[cutoff:]
        for request in expired:
            self.delete_pod(request.pod)
        return len(expired)

    def run_pod_delete_loop(self, interval: float, stop_event: threading.Event) -> None:
        """Flush expired pods every ``interval`` seconds until ``stop_event`` is set."""
        while not stop_event.wait(interval):
            self.flush_expired_pods(time.time())

    # Services.

    def on_add_service(self, service: Service) -> None:
        """Record a service, link it to matching pods and index it by IP and port."""
        is_node_port = service.type == NODE_PORT
        info = K8sServiceInfo(
            ip=service.cluster_ip,
            service_name=service.name,
            namespace=service.namespace,
            is_node_port=is_node_port,
            selector=service.selector,
        )
        self.services.add(info)

        for pod_info in self.pods.get_pods_match_selectors(info.namespace, info.selector):
            for container_id in pod_info.container_ids:
                cached = self.cache.get_pod_by_container_id(container_id)
                if cached is not None:
                    info.workload_name = cached.workload_name
                    info.workload_kind = cached.workload_kind
                    cached.service_info = info
            for port in pod_info.ports:
                cached = self.cache.get_pod_by_ip_port(pod_info.ip, port)
                if cached is not None:
                    info.workload_name = cached.workload_name
                    info.workload_kind = cached.workload_kind
                    cached.service_info = info

        if not _has_cluster_ip(info.ip):
            return
        for port in service.ports:
            self.cache.add_service_by_ip_port(service.cluster_ip, port.port, info)
            if is_node_port:
                for address in self.nodes.get_all_node_addresses():
                    self.cache.add_service_by_ip_port(address, port.node_port, info)

    def on_update_service(self, old: Service, new: Service) -> None:
        """Replace a service unless its version is unchanged."""
        if old.resource_version == new.resource_version:
            return
        with self._service_update_lock:
            self.on_delete_service(old)
            self.on_add_service(new)

    def on_delete_service(self, service: Service) -> None:
        """Empty the service everywhere it is referenced and drop its IP and port entries."""
        self.services.delete(service.namespace, service.name)
        ip = service.cluster_ip
        if not _has_cluster_ip(ip):
            return
        for port in service.ports:
            self.cache.delete_service_by_ip_port(ip, port.port)
            if service.type == NODE_PORT:
                for address in self.nodes.get_all_node_addresses():
                    self.cache.delete_service_by_ip_port(address, port.node_port)

    # Replica sets.

    def on_add_replica_set(self, replica_set: ReplicaSet) -> None:
        """Remember the controller of a replica set, if it has one."""
        owner = replica_set.controller_ref()
        if owner is None:
            return
        self.replica_sets.put(
            map_key(replica_set.namespace, replica_set.name),
            Controller(name=owner.name, kind=owner.kind, api_version=owner.api_version),
        )

    def on_update_replica_set(self, old: ReplicaSet, new: ReplicaSet) -> None:
        """Replace a replica set unless its version is unchanged."""
        if old.resource_version == new.resource_version:
            return
        with self._rs_update_lock:
            self.on_delete_replica_set(old)
            self.on_add_replica_set(new)

    def on_delete_replica_set(self, replica_set: ReplicaSet) -> None:
        self.replica_sets.delete_owner_reference(map_key(replica_set.namespace, replica_set.name))

    # Nodes.

    def add_node(self, node: Node) -> None:
        """Record a node under its (last listed) internal IP."""
        ip = ""
        for address in node.addresses:
            if address.type == INTERNAL_IP:
                ip = address.address
        self.nodes.add(NodeInfo(ip=ip, name=node.name, labels=node.labels))

    def update_node(self, old: Node, new: Node) -> None:
        self.delete_node(old)
        self.add_node(new)

    def delete_node(self, node: Node) -> None:
        self.nodes.delete(node.name)