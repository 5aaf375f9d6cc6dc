import pytest

from clustermeta.conntrack.bpf_sampler import RawInstruction, generate_bpf_sampler


def test_program_shape():
    program = generate_bpf_sampler(0.5)
    assert len(program) == 4
    load, jump, capture, ignore = program
    assert load.op == 0x20
    assert load.k == 0xFFFFF038
    assert jump.op == 0x35
    assert (jump.jt, jump.jf) == (1, 0)
    assert capture.op == ignore.op
    assert capture.k == 4096
    assert ignore.k == 0


@pytest.mark.parametrize("rate", [0.25, 0.5, 0.75])
def test_cutoff_scales_with_rate(rate):
    cutoff = generate_bpf_sampler(rate)[1].k
    assert cutoff / 2**32 == rate


def test_cutoff_is_monotonic():
    cutoffs = [generate_bpf_sampler(r)[1].k for r in (0.0, 0.1, 0.4, 0.9)]
    assert cutoffs == sorted(cutoffs)
    assert cutoffs[0] == 0


@pytest.mark.parametrize("rate", [-0.1, 1.5])
def test_invalid_rate(rate):
    with pytest.raises(ValueError, match="sampling rate must be within"):
        generate_bpf_sampler(rate)


def test_raw_instruction_packs_to_sock_filter_size():
    for instruction in generate_bpf_sampler(0.3):
        packed = bytes(instruction)
        assert len(packed) == 8


def test_instruction_equality():
    assert generate_bpf_sampler(0.3) == generate_bpf_sampler(0.3)
    assert RawInstruction(op=6, k=0) == generate_bpf_sampler(0.3)[3]