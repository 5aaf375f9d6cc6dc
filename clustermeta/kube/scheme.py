"""Built-in Kubernetes API group versions and workload kind naming."""

from __future__ import annotations

from typing import Iterable, Optional

BUILT_IN_GROUP_VERSIONS: tuple[str, ...] = (
    "v1",
    "admissionregistration.k8s.io/v1",
    "admissionregistration.k8s.io/v1beta1",
    "internal.apiserver.k8s.io/v1alpha1",
    "apps/v1",
    "apps/v1beta1",
    "apps/v1beta2",
    "authentication.k8s.io/v1",
    "authentication.k8s.io/v1beta1",
    "authorization.k8s.io/v1",
    "authorization.k8s.io/v1beta1",
    "autoscaling/v1",
    "autoscaling/v2",
    "autoscaling/v2beta1",
    "autoscaling/v2beta2",
    "batch/v1",
    "batch/v1beta1",
    "certificates.k8s.io/v1",
    "certificates.k8s.io/v1beta1",
    "coordination.k8s.io/v1",
    "coordination.k8s.io/v1beta1",
    "discovery.k8s.io/v1",
    "discovery.k8s.io/v1beta1",
    "events.k8s.io/v1",
    "events.k8s.io/v1beta1",
    "extensions/v1beta1",
    "flowcontrol.apiserver.k8s.io/v1alpha1",
    "flowcontrol.apiserver.k8s.io/v1beta1",
    "networking.k8s.io/v1",
    "networking.k8s.io/v1beta1",
    "node.k8s.io/v1",
    "node.k8s.io/v1alpha1",
    "node.k8s.io/v1beta1",
    "policy/v1",
    "policy/v1beta1",
    "rbac.authorization.k8s.io/v1",
    "rbac.authorization.k8s.io/v1beta1",
    "rbac.authorization.k8s.io/v1alpha1",
    "scheduling.k8s.io/v1",
    "scheduling.k8s.io/v1beta1",
    "scheduling.k8s.io/v1alpha1",
    "storage.k8s.io/v1",
    "storage.k8s.io/v1beta1",
    "storage.k8s.io/v1alpha1",
)


class BuiltInScheme:
    """A set of API group versions known to be built into Kubernetes."""

    def __init__(self, group_versions: Optional[Iterable[str]] = None) -> None:
        source = BUILT_IN_GROUP_VERSIONS if group_versions is None else group_versions
        self.group_versions = frozenset(source)

    def is_built_in_gv(self, group_version: str) -> bool:
        """Whether the group version (such as "apps/v1") is built in."""
        return group_version in self.group_versions


def new_known_scheme() -> BuiltInScheme:
    """A scheme holding every built-in group version."""
    return BuiltInScheme(BUILT_IN_GROUP_VERSIONS)


_BUILT_IN_SCHEME = new_known_scheme()


def complete_gvk(api_version: str, kind: str) -> str:
    """The workload kind, prefixed with its apiVersion when that is not built in."""
    if not api_version or _BUILT_IN_SCHEME.is_built_in_gv(api_version):
        return kind
    return f"{api_version}/{kind}"


def map_key(namespace: str, name: str) -> str:
    """Key of a namespaced object: "<namespace>/<name>"."""
    return f"{namespace}/{name}"