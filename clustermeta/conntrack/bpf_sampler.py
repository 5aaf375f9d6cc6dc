"""Classic BPF program that samples netlink traffic at random."""

from __future__ import annotations

import struct
from dataclasses import dataclass

# Classic BPF opcode pieces.
_CLASS_LD = 0x00
_CLASS_JMP = 0x05
_CLASS_RET = 0x06
_SIZE_W = 0x00
_MODE_ABS = 0x20
_JMP_JGE = 0x30
_SRC_K = 0x00
_RET_K = 0x00

# Ancillary data offset and the random-number extension.
_EXT_OFFSET = 0xFFFFF000
_EXT_RAND = 56

_CAPTURE_LENGTH = 4096

_SOCK_FILTER = struct.Struct("=HBBI")


@dataclass(frozen=True)
class RawInstruction:
    """One assembled classic BPF instruction (struct sock_filter)."""

    op: int
    jt: int = 0
    jf: int = 0
    k: int = 0

    def __bytes__(self) -> bytes:
        return _SOCK_FILTER.pack(self.op, self.jt, self.jf, self.k)


def generate_bpf_sampler(sampling_rate: float) -> list[RawInstruction]:
    """Assemble a filter that keeps roughly sampling_rate of all messages."""
    if sampling_rate < 0 or sampling_rate > 1:
        raise ValueError("sampling rate must be within (0, 1)")

    cutoff = int(2**32 * sampling_rate) & 0xFFFFFFFF

    return [
        # Load a 32-bit random number from the kernel.
        RawInstruction(op=_CLASS_LD | _SIZE_W | _MODE_ABS, k=_EXT_OFFSET + _EXT_RAND),
        # Below the cutoff: fall through to capture; otherwise skip to ignore.
        RawInstruction(op=_CLASS_JMP | _JMP_JGE | _SRC_K, jt=1, jf=0, k=cutoff),
        RawInstruction(op=_CLASS_RET | _RET_K, k=_CAPTURE_LENGTH),
        RawInstruction(op=_CLASS_RET | _RET_K, k=0),
    ]