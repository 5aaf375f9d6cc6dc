import dataclasses

from clustermeta.conntrack.config import Config


def test_defaults_match_documented_values():
    cfg = Config()
    assert cfg.enabled is True
    assert cfg.proc_root == "/proc"
    assert cfg.conntrack_init_timeout == 30.0
    assert cfg.conntrack_rate_limit == 500
    assert cfg.conntrack_max_state_size == 130000
    assert cfg.enable_conntrack_all_namespaces is True


def test_override_keeps_other_defaults():
    cfg = Config(enabled=False, conntrack_rate_limit=10)
    assert cfg.enabled is False
    assert cfg.conntrack_rate_limit == 10
    assert cfg.proc_root == Config().proc_root
    assert cfg.conntrack_max_state_size == Config().conntrack_max_state_size


def test_replace_round_trip():
    original = Config()
    changed = dataclasses.replace(original, proc_root="/host/proc")
    assert changed.proc_root == "/host/proc"
    assert dataclasses.replace(changed, proc_root=original.proc_root) == original


def test_instances_are_independent():
    first = Config()
    second = Config()
    first.conntrack_rate_limit = 1
    assert second.conntrack_rate_limit == 500
    assert first != second