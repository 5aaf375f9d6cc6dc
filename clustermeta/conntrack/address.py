"""Family-agnostic IP addresses used as cache keys."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Optional, Union

_V4_MAPPED_PREFIX = bytes(10) + b"\xff\xff"

IPLike = Union[ipaddress.IPv4Address, ipaddress.IPv6Address, bytes, bytearray, None]


@dataclass(frozen=True)
class Address:
    """An IPv4 (4 bytes) or IPv6 (16 bytes) address."""

    packed: bytes

    def __post_init__(self) -> None:
        if len(self.packed) not in (4, 16):
            raise ValueError(f"address must be 4 or 16 bytes, got {len(self.packed)}")

    def __bytes__(self) -> bytes:
        return self.packed

    def __len__(self) -> int:
        return len(self.packed)

    def __str__(self) -> str:
        if len(self.packed) == 4:
            return str(ipaddress.IPv4Address(self.packed))
        ip = ipaddress.IPv6Address(self.packed)
        return str(ip.ipv4_mapped or ip)

    def is_loopback(self) -> bool:
        """Return True for 127.0.0.0/8 (also when v4-mapped) and ::1."""
        v4 = _to4(self.packed)
        if v4 is not None:
            return v4[0] == 127
        return ipaddress.IPv6Address(self.packed).is_loopback


def _to4(raw: bytes) -> Optional[bytes]:
    if len(raw) == 4:
        return raw
    if len(raw) == 16 and raw[:12] == _V4_MAPPED_PREFIX:
        return raw[12:]
    return None


def _raw_bytes(ip: IPLike) -> bytes:
    if ip is None:
        return b""
    if isinstance(ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return ip.packed
    if isinstance(ip, (bytes, bytearray)):
        return bytes(ip)
    raise TypeError(f"cannot make an address from {type(ip).__name__}")


def address_from_ip(ip: IPLike) -> Address:
    """Build an Address; v4 and v4-mapped addresses become 4-byte addresses."""
    raw = _raw_bytes(ip)
    v4 = _to4(raw)
    if v4 is not None:
        return Address(v4)
    return v6_address_from_bytes(raw)


def address_from_string(ip: str) -> Address:
    """Parse an IP string; an unparsable string yields the all-zero IPv6 address."""
    try:
        parsed = ipaddress.ip_address(ip)
    except ValueError:
        parsed = None
    return address_from_ip(parsed)


def ip_from_address(addr: Address) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
    """Return the ipaddress object for an Address."""
    return ipaddress.ip_address(addr.packed)


def to_low_high(addr: Optional[Address]) -> tuple[int, int]:
    """Split an address into a (low, high) pair of unsigned 64-bit numbers."""
    if addr is None:
        return 0, 0
    raw = addr.packed
    if len(raw) == 4:
        return int.from_bytes(raw, "little"), 0
    return int.from_bytes(raw[8:], "little"), int.from_bytes(raw[:8], "little")


def v4_address(ip: int) -> Address:
    """Build an IPv4 Address from its little-endian uint32 form."""
    return Address((ip & 0xFFFFFFFF).to_bytes(4, "little"))


def v4_address_from_bytes(buf: bytes) -> Address:
    """Build an IPv4 Address from up to 4 bytes, zero padded."""
    return Address(bytes(buf[:4]).ljust(4, b"\x00"))


def v6_address(low: int, high: int) -> Address:
    """Build an IPv6 Address from its (low, high) uint64 pair."""
    mask = 0xFFFFFFFFFFFFFFFF
    return Address((high & mask).to_bytes(8, "little") + (low & mask).to_bytes(8, "little"))


def v6_address_from_bytes(buf: bytes) -> Address:
    """Build an IPv6 Address from up to 16 bytes, zero padded."""
    return Address(bytes(buf[:16]).ljust(16, b"\x00"))