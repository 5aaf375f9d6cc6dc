"""Settings for connecting to the Kubernetes API."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

DEFAULT_KUBE_CONFIG_PATH = "~/.kube/config"
DEFAULT_GRACE_DELETE_PERIOD = 60.0


class AuthType(str, Enum):
    """How to authenticate to the Kubernetes API server."""

    NONE = "none"
    SERVICE_ACCOUNT = "serviceAccount"
    KUBE_CONFIG = "kubeConfig"

    def __str__(self) -> str:
        return self.value


@dataclass
class APIConfig:
    """Options for reaching the Kubernetes API."""

    auth_type: Union[AuthType, str]
    auth_file_path: str = ""

    def validate(self) -> None:
        """Raise ValueError if the authentication type is unknown."""
        try:
            AuthType(self.auth_type)
        except ValueError:
            raise ValueError(f"invalid authType for kubernetes: {self.auth_type}") from None


@dataclass
class KubeConfig:
    """Optional settings for watching Kubernetes.

    ``grace_delete_period`` is the delay, in seconds, between a pod's delete
    event and the removal of its metadata; it should not be below 30.
    """

    kube_auth_type: AuthType = AuthType.KUBE_CONFIG
    kube_config_dir: str = DEFAULT_KUBE_CONFIG_PATH
    grace_delete_period: float = DEFAULT_GRACE_DELETE_PERIOD


Option = Callable[[KubeConfig], None]


def with_auth_type(auth_type: Union[AuthType, str]) -> Option:
    """Option setting the way of authenticating to the API server."""

    def apply(cfg: KubeConfig) -> None:
        cfg.kube_auth_type = AuthType(auth_type)

    return apply


def with_kube_config_dir(directory: str) -> Option:
    """Option setting where the kubeconfig file is stored."""

    def apply(cfg: KubeConfig) -> None:
        cfg.kube_config_dir = directory

    return apply


def with_grace_delete_period(interval: int) -> Option:
    """Option setting the grace period, in whole seconds, before deleting pod metadata."""

    def apply(cfg: KubeConfig) -> None:
        cfg.grace_delete_period = float(interval)

    return apply


def build_config(*args: Option) -> KubeConfig:
    """Start from the defaults and apply the options in order."""
    cfg = KubeConfig()
    for option in args:
        option(cfg)
    return cfg