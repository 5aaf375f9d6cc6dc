import ipaddress

import pytest

from clustermeta.conntrack.codec import (
    Con,
    Decoder,
    Event,
    IPTuple,
    ProtoTuple,
    encode_conn,
)
from clustermeta.conntrack.netlink import NetlinkMessage

IPPROTO_TCP = 6

# orig_src=10.0.2.15:58472 orig_dst=2.2.2.2:5432 reply_src=1.1.1.1:5432 reply_dst=10.0.2.15:58472 proto=tcp(6)
MESSAGE_DATA = bytes([
    0x2, 0x0, 0x0, 0x0, 0x34, 0x0, 0x1, 0x80, 0x14, 0x0, 0x1, 0x80, 0x8, 0x0, 0x1, 0x0, 0xa, 0x0, 0x2, 0xf,
    0x8, 0x0, 0x2, 0x0, 0x2, 0x2, 0x2, 0x2, 0x1c, 0x0, 0x2, 0x80, 0x5, 0x0, 0x1, 0x0, 0x6, 0x0, 0x0, 0x0,
    0x6, 0x0, 0x2, 0x0, 0xe4, 0x68, 0x0, 0x0, 0x6, 0x0, 0x3, 0x0, 0x15, 0x38, 0x0, 0x0, 0x34, 0x0, 0x2, 0x80,
    0x14, 0x0, 0x1, 0x80, 0x8, 0x0, 0x1, 0x0, 0x1, 0x1, 0x1, 0x1, 0x8, 0x0, 0x2, 0x0, 0xa, 0x0, 0x2, 0xf,
    0x1c, 0x0, 0x2, 0x80, 0x5, 0x0, 0x1, 0x0, 0x6, 0x0, 0x0, 0x0, 0x6, 0x0, 0x2, 0x0, 0x15, 0x38, 0x0, 0x0,
    0x6, 0x0, 0x3, 0x0, 0xe4, 0x68, 0x0, 0x0, 0x8, 0x0, 0xc, 0x0, 0x3e, 0x63, 0x25, 0x71, 0x8, 0x0, 0x3, 0x0,
    0x0, 0x0, 0x1, 0xa8, 0x8, 0x0, 0x7, 0x0, 0x0, 0x0, 0x0, 0x78, 0x30, 0x0, 0x4, 0x80, 0x2c, 0x0, 0x1, 0x80,
    0x5, 0x0, 0x1, 0x0, 0x1, 0x0, 0x0, 0x0, 0x5, 0x0, 0x2, 0x0, 0x7, 0x0, 0x0, 0x0, 0x5, 0x0, 0x3, 0x0,
    0x0, 0x0, 0x0, 0x0, 0x6, 0x0, 0x4, 0x0, 0x3, 0x0, 0x0, 0x0, 0x6, 0x0, 0x5, 0x0, 0x0, 0x0, 0x0, 0x0,
])


def ip(text):
    return ipaddress.ip_address(text)


def new_ip_tuple(src, dst, sport, dport, proto):
    return IPTuple(src=ip(src), dst=ip(dst), proto=ProtoTuple(number=proto, src_port=sport, dst_port=dport))


def sample_con():
    return Con(
        origin=new_ip_tuple("10.0.2.15", "2.2.2.2", 58472, 5432, IPPROTO_TCP),
        reply=new_ip_tuple("1.1.1.1", "10.0.2.15", 5432, 58472, IPPROTO_TCP),
    )


def test_decode_and_release_event():
    event = Event(messages=[NetlinkMessage(data=MESSAGE_DATA)])
    connections = Decoder().decode_and_release_event(event)
    assert len(connections) == 1
    c = connections[0]

    assert c.origin.src == ip("10.0.2.15")
    assert c.origin.dst == ip("2.2.2.2")
    assert c.origin.proto.src_port == 58472
    assert c.origin.proto.dst_port == 5432
    assert c.origin.proto.number == 6

    assert c.reply.src == ip("1.1.1.1")
    assert c.reply.dst == ip("10.0.2.15")
    assert c.reply.proto.src_port == 5432
    assert c.reply.proto.dst_port == 58472
    assert c.reply.proto.number == 6


def test_decode_releases_event_and_keeps_netns():
    released = []
    event = Event(messages=[NetlinkMessage(data=MESSAGE_DATA)], netns=7, release=lambda: released.append(True))
    connections = Decoder().decode_and_release_event(event)
    assert released == [True]
    assert connections[0].net_ns == 7


def test_decode_skips_short_and_malformed_messages():
    malformed = bytes([0x2, 0x0, 0x0, 0x0, 0x34, 0x0, 0x1, 0x80, 0x1])
    event = Event(messages=[
        NetlinkMessage(data=b"\x02"),
        NetlinkMessage(data=malformed),
        NetlinkMessage(data=MESSAGE_DATA),
    ])
    connections = Decoder().decode_and_release_event(event)
    assert len(connections) == 1
    assert connections[0].origin.src == ip("10.0.2.15")


def test_encode_conn_round_trip():
    conn = sample_con()
    data = encode_conn(conn)
    assert len(data) > 0

    connections = Decoder().decode_and_release_event(Event(messages=[NetlinkMessage(data=data)]))
    assert len(connections) == 1
    c = connections[0]

    assert c.origin.src == conn.origin.src
    assert c.origin.dst == conn.origin.dst
    assert c.origin.proto == conn.origin.proto
    assert c.reply.src == conn.reply.src
    assert c.reply.dst == conn.reply.dst
    assert c.reply.proto == conn.reply.proto


def test_encode_conn_layout_size_and_payloads():
    data = encode_conn(sample_con())
    # Two nested tuples of 0x34 bytes each, as in the kernel's message.
    assert len(data) == 104
    assert bytes([10, 0, 2, 15]) in data
    assert bytes([2, 2, 2, 2]) in data
    assert bytes([1, 1, 1, 1]) in data
    # Ports are big-endian regardless of host order.
    assert bytes([0xE4, 0x68]) in data
    assert bytes([0x15, 0x38]) in data


def test_encode_conn_ipv6_round_trip():
    conn = Con(
        origin=new_ip_tuple("fd00::1", "fd00::2", 1000, 80, 17),
        reply=new_ip_tuple("fd00::3", "fd00::1", 80, 1000, 17),
    )
    data = b"\x00\x00\x00\x00" + encode_conn(conn)
    connections = Decoder().decode_and_release_event(Event(messages=[NetlinkMessage(data=data)]))
    assert connections[0].origin.dst == ip("fd00::2")
    assert connections[0].reply.src == ip("fd00::3")
    assert connections[0].reply.proto.number == 17


def test_encode_conn_rejects_incomplete_proto():
    conn = Con(origin=IPTuple(src=ip("1.1.1.1"), dst=ip("2.2.2.2"), proto=ProtoTuple(number=6)))
    with pytest.raises(ValueError):
        encode_conn(conn)


def test_con_str():
    text = str(sample_con())
    assert text == (
        "netns=0 src=10.0.2.15 dst=2.2.2.2 sport=58472 dport=5432 "
        "src=1.1.1.1 dst=10.0.2.15 sport=5432 dport=58472 proto=6"
    )