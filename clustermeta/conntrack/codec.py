"""Decoding and encoding of conntrack entries carried in netlink messages."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from clustermeta.conntrack.address import address_from_ip
from clustermeta.conntrack.netlink import (
    Attribute,
    AttributeScanner,
    NetlinkError,
    NetlinkMessage,
    marshal_attributes,
)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

CTA_TUPLE_ORIG = 1
CTA_TUPLE_REPLY = 2

CTA_TUPLE_IP = 1
CTA_TUPLE_PROTO = 2
CTA_TUPLE_ZONE = 3

CTA_IPV4_SRC = 1
CTA_IPV4_DST = 2
CTA_IPV6_SRC = 3
CTA_IPV6_DST = 4

CTA_PROTO_NUM = 1
CTA_PROTO_SRC_PORT = 2
CTA_PROTO_DST_PORT = 3

NLA_F_NESTED = 0x8000


@dataclass
class ProtoTuple:
    """Protocol number and ports of one direction of a connection."""

    number: Optional[int] = None
    src_port: Optional[int] = None
    dst_port: Optional[int] = None


@dataclass
class IPTuple:
    """Addresses and protocol of one direction of a connection."""

    src: Optional[IPAddress] = None
    dst: Optional[IPAddress] = None
    proto: Optional[ProtoTuple] = None


@dataclass
class Con:
    """A conntrack entry with the network namespace it was seen in."""

    origin: Optional[IPTuple] = None
    reply: Optional[IPTuple] = None
    net_ns: int = 0

    def __str__(self) -> str:
        o, r = self.origin, self.reply
        return (
            f"netns={self.net_ns} src={o.src} dst={o.dst} "
            f"sport={o.proto.src_port} dport={o.proto.dst_port} "
            f"src={r.src} dst={r.dst} sport={r.proto.src_port} "
            f"dport={r.proto.dst_port} proto={o.proto.number}"
        )


@dataclass
class Event:
    """The messages of one socket read, with an optional buffer release hook."""

    messages: list[NetlinkMessage] = field(default_factory=list)
    netns: int = 0
    release: Optional[Callable[[], None]] = None

    def done(self) -> None:
        """Release the resources behind the messages once they are decoded."""
        if self.release is not None:
            self.release()
            self.release = None


def _parse_ip(data: bytes) -> IPAddress:
    if len(data) not in (4, 16):
        raise NetlinkError(f"invalid IP address length: {len(data)}")
    return ipaddress.ip_address(bytes(data))


def _parse_port(data: bytes) -> int:
    if len(data) < 2:
        raise NetlinkError("port attribute is too short")
    return int.from_bytes(data[:2], "big")


class Decoder:
    """Turns netlink conntrack messages into Con objects."""

    def __init__(self) -> None:
        self._scanner = AttributeScanner()

    def decode_and_release_event(self, event: Event) -> list[Con]:
        """Decode every well-formed message of an event, then release the event."""
        conns: list[Con] = []
        try:
            for message in event.messages:
                try:
                    self._scanner.reset_to(message.data)
                except NetlinkError:
                    continue
                con = Con(net_ns=event.netns)
                if self._unmarshal_con(con) is None:
                    conns.append(con)
        finally:
            event.done()
        return conns

    def _unmarshal_con(self, con: Con) -> Optional[NetlinkError]:
        scanner = self._scanner
        con.origin = IPTuple()
        con.reply = IPTuple()
        to_decode = 2
        while to_decode > 0 and scanner.next():
            kind = scanner.attr_type()
            if kind == CTA_TUPLE_ORIG:
                target = con.origin
            elif kind == CTA_TUPLE_REPLY:
                target = con.reply
            else:
                continue
            to_decode -= 1
            with scanner.nested():
                self._unmarshal_tuple(target)
        return scanner.error()

    def _unmarshal_tuple(self, tup: IPTuple) -> None:
        scanner = self._scanner
        to_decode = 2
        while to_decode > 0 and scanner.next():
            kind = scanner.attr_type()
            if kind == CTA_TUPLE_IP:
                to_decode -= 1
                with scanner.nested():
                    self._unmarshal_tuple_ip(tup)
            elif kind == CTA_TUPLE_PROTO:
                to_decode -= 1
                with scanner.nested():
                    self._unmarshal_proto(tup)

    def _unmarshal_tuple_ip(self, tup: IPTuple) -> None:
        scanner = self._scanner
        to_decode = 2
        while to_decode > 0 and scanner.next():
            kind = scanner.attr_type()
            if kind in (CTA_IPV4_SRC, CTA_IPV6_SRC):
                to_decode -= 1
                tup.src = _parse_ip(scanner.data())
            elif kind in (CTA_IPV4_DST, CTA_IPV6_DST):
                to_decode -= 1
                tup.dst = _parse_ip(scanner.data())

    def _unmarshal_proto(self, tup: IPTuple) -> None:
        scanner = self._scanner
        proto = ProtoTuple()
        tup.proto = proto
        to_decode = 3
        while to_decode > 0 and scanner.next():
            kind = scanner.attr_type()
            if kind == CTA_PROTO_NUM:
                to_decode -= 1
                data = scanner.data()
                if not data:
                    raise NetlinkError("protocol number attribute is empty")
                proto.number = data[0]
            elif kind == CTA_PROTO_SRC_PORT:
                to_decode -= 1
                proto.src_port = _parse_port(scanner.data())
            elif kind == CTA_PROTO_DST_PORT:
                to_decode -= 1
                proto.dst_port = _parse_port(scanner.data())


def _nested(attr_type: int, children: list[Attribute]) -> Attribute:
    return Attribute(attr_type | NLA_F_NESTED, marshal_attributes(children))


def _marshal_proto(proto: ProtoTuple) -> list[Attribute]:
    if proto.number is None or proto.src_port is None or proto.dst_port is None:
        raise ValueError("protocol tuple needs a number, a source port and a destination port")
    return [
        Attribute(CTA_PROTO_NUM, bytes([proto.number & 0xFF])),
        Attribute(CTA_PROTO_SRC_PORT, (proto.src_port & 0xFFFF).to_bytes(2, "big")),
        Attribute(CTA_PROTO_DST_PORT, (proto.dst_port & 0xFFFF).to_bytes(2, "big")),
    ]


def _marshal_ip_tuple(tup: IPTuple) -> list[Attribute]:
    ips: list[Attribute] = []
    if tup.src is not None:
        raw = address_from_ip(tup.src).packed
        ips.append(Attribute(CTA_IPV4_SRC if len(raw) == 4 else CTA_IPV6_SRC, raw))
    if tup.dst is not None:
        raw = address_from_ip(tup.dst).packed
        ips.append(Attribute(CTA_IPV4_DST if len(raw) == 4 else CTA_IPV6_DST, raw))
    attrs = [_nested(CTA_TUPLE_IP, ips)]
    if tup.proto is not None:
        attrs.append(_nested(CTA_TUPLE_PROTO, _marshal_proto(tup.proto)))
    return attrs


def encode_conn(conn: Con) -> bytes:
    """Encode the origin and reply tuples of a Con as netlink attributes."""
    attrs: list[Attribute] = []
    if conn.origin is not None:
        attrs.append(_nested(CTA_TUPLE_ORIG, _marshal_ip_tuple(conn.origin)))
    if conn.reply is not None:
        attrs.append(_nested(CTA_TUPLE_REPLY, _marshal_ip_tuple(conn.reply)))
    return marshal_attributes(attrs)