"""Netlink message alignment, error checking and attribute scanning."""

from __future__ import annotations

import os
import struct
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

AF_INET = 2
AF_INET6 = 10
NFNETLINK_V0 = 0

NLMSG_ERROR = 0x2
NLMSG_DONE = 0x3

NLMSG_ALIGNTO = 4
NLA_ALIGNTO = 4

ATTR_TYPE_MASK = 0x3FFF

_ATTR_HEADER = struct.Struct("=HH")
_ERROR_CODE = struct.Struct("=i")


def nlmsg_align(length: int) -> int:
    """Round a message length up to the netlink message alignment."""
    return (length + NLMSG_ALIGNTO - 1) & ~(NLMSG_ALIGNTO - 1)


def nla_align(length: int) -> int:
    """Round an attribute length up to the netlink attribute alignment."""
    return (length + NLA_ALIGNTO - 1) & ~(NLA_ALIGNTO - 1)


NLMSG_HDRLEN = nlmsg_align(16)
NLA_HDRLEN = nla_align(4)


class NetlinkError(OSError):
    """A netlink message or attribute could not be processed."""


class MessageTooShortError(NetlinkError):
    """The netlink message holds too few bytes."""

    def __init__(self, message: str = "netlink message is too short") -> None:
        super().__init__(message)


class InvalidAttributeError(NetlinkError):
    """An attribute header declares an impossible length."""

    def __init__(self, message: str = "invalid attribute; length too short or too large") -> None:
        super().__init__(message)


@dataclass
class NetlinkHeader:
    length: int = 0
    type: int = 0
    flags: int = 0
    sequence: int = 0
    pid: int = 0


@dataclass
class NetlinkMessage:
    header: NetlinkHeader = field(default_factory=NetlinkHeader)
    data: bytes = b""


@dataclass
class Attribute:
    type: int
    data: bytes = b""


def message_offset(data: bytes) -> int:
    """Return the length of the nfnetlink preamble at the start of data, if any."""
    if data[0] in (AF_INET, AF_INET6) and data[1] == NFNETLINK_V0:
        return 4
    return 0


def check_message(message: NetlinkMessage) -> None:
    """Raise if an error message carries a non-zero error code."""
    if message.header.type != NLMSG_ERROR:
        return None
    if len(message.data) < 4:
        raise MessageTooShortError("not enough data for netlink error code")
    (code,) = _ERROR_CODE.unpack_from(message.data)
    if code != 0:
        errno = -code
        raise NetlinkError(errno, os.strerror(errno))
    return None


def marshal_attributes(attributes: Iterable[Attribute]) -> bytes:
    """Encode attributes as a packed, aligned netlink attribute stream."""
    out = bytearray()
    for attr in attributes:
        length = NLA_HDRLEN + len(attr.data)
        if length > 0xFFFF:
            raise ValueError(f"attribute {attr.type} is too large: {length} bytes")
        if not 0 <= attr.type <= 0xFFFF:
            raise ValueError(f"attribute type out of range: {attr.type}")
        out += _ATTR_HEADER.pack(length, attr.type)
        out += attr.data
        out += bytes(nla_align(length) - length)
    return bytes(out)


@dataclass
class _Frame:
    buffer: bytes = b""
    position: int = 0
    error: Optional[NetlinkError] = None
    attr: Attribute = field(default_factory=lambda: Attribute(0))

    def unmarshal(self) -> int:
        chunk = self.buffer[self.position:]
        if len(chunk) < NLA_HDRLEN:
            raise InvalidAttributeError()
        length, attr_type = _ATTR_HEADER.unpack_from(chunk)
        if length > len(chunk):
            raise InvalidAttributeError()
        if length == 0:
            data = b""
        elif length < NLA_HDRLEN:
            raise InvalidAttributeError()
        else:
            data = chunk[NLA_HDRLEN:length]
        self.attr = Attribute(attr_type, data)
        return length


class AttributeScanner:
    """Walks the attributes of a netlink message, entering nested attributes on demand.

    A scanner can be reused for many messages through reset_to().
    """

    def __init__(self) -> None:
        self._frames: list[_Frame] = [_Frame()]

    @property
    def _frame(self) -> _Frame:
        return self._frames[-1]

    def next(self) -> bool:
        """Advance to the next attribute of the current level; False at the end or on error."""
        frame = self._frame
        if frame.error is not None or frame.position >= len(frame.buffer):
            return False
        try:
            length = frame.unmarshal()
        except NetlinkError as exc:
            frame.error = exc
            return False
        frame.position += NLA_HDRLEN if length < NLA_HDRLEN else nla_align(length)
        return True

    def attr_type(self) -> int:
        """Type of the current attribute with the flag bits masked off."""
        return self._frame.attr.type & ATTR_TYPE_MASK

    def error(self) -> Optional[NetlinkError]:
        """The first error met at the current level, if any."""
        return self._frame.error

    def data(self) -> bytes:
        """Payload of the current attribute."""
        return self._frame.attr.data

    @contextmanager
    def nested(self) -> Iterator["AttributeScanner"]:
        """Scan the attributes nested in the current one within the with-block.

        On leaving, an error met inside (or a NetlinkError raised by the block)
        becomes the error of the enclosing level.
        """
        self._frames.append(_Frame(buffer=self._frame.attr.data))
        raised: Optional[NetlinkError] = None
        try:
            yield self
        except NetlinkError as exc:
            raised = exc
        finally:
            child = self._frames.pop()
        self._frame.error = raised if raised is not None else child.error

    def reset_to(self, data: bytes) -> None:
        """Prepare the scanner for a new message; raises MessageTooShortError."""
        self._frames = [_Frame()]
        if len(data) < 2:
            raise MessageTooShortError()
        offset = message_offset(data)
        if len(data) <= offset:
            raise MessageTooShortError()
        self._frames[0].buffer = bytes(data[offset:])