"""Connection descriptions shared by the connection tracker."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Union

IPAddress = Union[IPv4Address, IPv6Address]


class ConnectionType(IntEnum):
    """Transport protocol of a connection."""

    TCP = 0
    UDP = 1

    def __str__(self) -> str:
        return "TCP" if self is ConnectionType.TCP else "UDP"


@dataclass(frozen=True)
class IPTranslation:
    """The reply tuple that a NAT-ed connection is translated to."""

    repl_src_ip: Optional[IPAddress]
    repl_dst_ip: Optional[IPAddress]
    repl_src_port: int
    repl_dst_port: int


@dataclass(frozen=True)
class ConnectionStats:
    """The endpoints of a single connection."""

    source: Optional[IPAddress]
    dest: Optional[IPAddress]
    sport: int
    dport: int
    type: ConnectionType = ConnectionType.TCP