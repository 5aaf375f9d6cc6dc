"""Settings of the connection tracker."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Config:
    """Options that control how NAT translations are tracked.

    ``conntrack_init_timeout`` is in seconds.
    """

    enabled: bool = True
    proc_root: str = "/proc"
    conntrack_init_timeout: float = 30.0
    conntrack_rate_limit: int = 500
    conntrack_max_state_size: int = 130000
    enable_conntrack_all_namespaces: bool = True