"""The parts of Kubernetes objects that metadata collection reads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class OwnerReference:
    """A reference from an object to the object that owns it."""

    kind: str = ""
    name: str = ""
    api_version: str = ""
    controller: Optional[bool] = None


@dataclass
class ContainerPort:
    container_port: int = 0


@dataclass
class Container:
    name: str = ""
    ports: list[ContainerPort] = field(default_factory=list)


@dataclass
class ContainerStatus:
    name: str = ""
    container_id: str = ""


@dataclass
class Pod:
    """Metadata, spec and status fields of a pod."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)
    resource_version: str = ""
    node_name: str = ""
    host_network: bool = False
    containers: list[Container] = field(default_factory=list)
    pod_ip: str = ""
    host_ip: str = ""
    container_statuses: list[ContainerStatus] = field(default_factory=list)


@dataclass
class ServicePort:
    port: int = 0
    node_port: int = 0


@dataclass
class Service:
    """Metadata and spec fields of a service."""

    name: str = ""
    namespace: str = ""
    resource_version: str = ""
    cluster_ip: str = ""
    type: str = ""
    selector: dict[str, str] = field(default_factory=dict)
    ports: list[ServicePort] = field(default_factory=list)


@dataclass
class ReplicaSet:
    """Metadata fields of a replica set."""

    name: str = ""
    namespace: str = ""
    resource_version: str = ""
    owner_references: list[OwnerReference] = field(default_factory=list)

    def controller_ref(self) -> Optional[OwnerReference]:
        """The first owner reference marked as the controller, if any."""
        return next((ref for ref in self.owner_references if ref.controller), None)


@dataclass
class NodeAddress:
    type: str = ""
    address: str = ""


@dataclass
class Node:
    """Metadata and status fields of a node."""

    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    addresses: list[NodeAddress] = field(default_factory=list)
    resource_version: str = ""