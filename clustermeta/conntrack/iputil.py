"""Conversions between IPv4 addresses and their little-endian uint32 form."""

from __future__ import annotations

import ipaddress
import re
from typing import Union

_UINT32 = 0xFFFFFFFF
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")


def int32_to_ip(i: int) -> ipaddress.IPv4Address:
    """The IPv4 address whose first octet is the low byte of ``i``."""
    return ipaddress.IPv4Address((i & _UINT32).to_bytes(4, "little"))


def ip_to_uint32(ip: Union[ipaddress.IPv4Address, ipaddress.IPv6Address, bytes, None]) -> int:
    """Little-endian uint32 of an IPv4 (or v4-mapped) address; 0 for anything else."""
    if ip is None:
        return 0
    if isinstance(ip, ipaddress.IPv6Address):
        ip = ip.ipv4_mapped
        if ip is None:
            return 0
    if isinstance(ip, ipaddress.IPv4Address):
        raw = ip.packed
    else:
        raw = bytes(ip)
        if len(raw) == 16 and raw[:12] == bytes(10) + b"\xff\xff":
            raw = raw[12:]
        elif len(raw) != 4:
            return 0
    return int.from_bytes(raw, "little")


def _atoi(text: str) -> int:
    if not _DECIMAL.fullmatch(text):
        return 0
    return max(_INT64_MIN, min(_INT64_MAX, int(text)))


def string_to_uint32(ip: str) -> int:
    """Little-endian uint32 of a dotted string; 0 when it has fewer than four parts.

    Parts that are not numbers count as 0 and large parts wrap around.
    """
    parts = ip.split(".")
    if len(parts) < 4:
        return 0
    result = 0
    for shift, part in zip((0, 8, 16, 24), parts[:4]):
        result |= ((_atoi(part) & _UINT32) << shift) & _UINT32
    return result