import ipaddress

import pytest

from clustermeta.conntrack.address import (
    Address,
    address_from_ip,
    address_from_string,
    ip_from_address,
    to_low_high,
    v4_address,
    v4_address_from_bytes,
    v6_address,
    v6_address_from_bytes,
)


def test_v4_address_from_uint32():
    addr = v4_address(67305985)
    assert str(addr) == "1.2.3.4"
    assert len(addr) == 4


def test_to_low_high_round_trip_v4():
    addr = v4_address(67305985)
    assert to_low_high(addr) == (67305985, 0)


@pytest.mark.parametrize("low,high", [(0, 0), (1, 2), (2**64 - 1, 12345), (987654321, 2**63)])
def test_to_low_high_round_trip_v6(low, high):
    addr = v6_address(low, high)
    assert len(addr) == 16
    assert to_low_high(addr) == (low, high)


def test_to_low_high_of_none():
    assert to_low_high(None) == (0, 0)


@pytest.mark.parametrize("text", ["10.0.2.15", "2.2.2.2", "fd00::1", "2001:db8::42"])
def test_string_round_trip(text):
    addr = address_from_string(text)
    assert ip_from_address(addr) == ipaddress.ip_address(text)
    assert str(addr) == text


def test_v4_mapped_becomes_v4():
    addr = address_from_string("::ffff:10.0.2.15")
    assert len(addr) == 4
    assert addr == address_from_string("10.0.2.15")


def test_invalid_string_is_zero_v6():
    addr = address_from_string("2.2.2..2")
    assert bytes(addr) == bytes(16)
    assert addr == address_from_ip(None)


def test_address_from_ip_bytes_and_objects_agree():
    ip = ipaddress.ip_address("50.30.40.10")
    assert address_from_ip(ip) == address_from_ip(ip.packed)
    assert address_from_ip(ip) == v4_address_from_bytes(ip.packed)


def test_address_from_ip_rejects_other_types():
    with pytest.raises(TypeError):
        address_from_ip(12345)  # type: ignore[arg-type]


def test_from_bytes_pads_and_truncates():
    assert bytes(v4_address_from_bytes(b"\x01\x02")) == b"\x01\x02\x00\x00"
    assert len(v6_address_from_bytes(b"\x01" * 20)) == 16
    assert bytes(v6_address_from_bytes(b"\x01" * 20)) == b"\x01" * 16


def test_address_requires_valid_length():
    with pytest.raises(ValueError):
        Address(b"\x01\x02\x03")


@pytest.mark.parametrize(
    "text,expected",
    [("127.0.0.1", True), ("127.5.6.7", True), ("::1", True), ("10.0.0.1", False), ("fd00::1", False)],
)
def test_is_loopback(text, expected):
    assert address_from_string(text).is_loopback() is expected


def test_v6_mapped_string_prints_dotted():
    raw = ipaddress.ip_address("::ffff:1.2.3.4").packed
    addr = v6_address_from_bytes(raw)
    assert len(addr) == 16
    assert str(addr) == "1.2.3.4"
    assert addr.is_loopback() is False


def test_addresses_are_hashable():
    keys = {address_from_string("1.1.1.1"), address_from_string("::ffff:1.1.1.1")}
    assert len(keys) == 1