import pytest

from clustermeta.kube.config import (
    DEFAULT_GRACE_DELETE_PERIOD,
    DEFAULT_KUBE_CONFIG_PATH,
    APIConfig,
    AuthType,
    build_config,
    with_auth_type,
    with_grace_delete_period,
    with_kube_config_dir,
)


def test_defaults():
    cfg = build_config()
    assert cfg.kube_auth_type is AuthType.KUBE_CONFIG
    assert cfg.kube_config_dir == "~/.kube/config"
    assert cfg.kube_config_dir == DEFAULT_KUBE_CONFIG_PATH
    assert cfg.grace_delete_period == DEFAULT_GRACE_DELETE_PERIOD


def test_options_apply_in_order():
    cfg = build_config(
        with_auth_type("serviceAccount"),
        with_kube_config_dir("/etc/kube"),
        with_grace_delete_period(30),
        with_kube_config_dir("/opt/kube"),
    )
    assert cfg.kube_auth_type is AuthType.SERVICE_ACCOUNT
    assert cfg.kube_config_dir == "/opt/kube"
    assert cfg.grace_delete_period == 30.0


def test_auth_type_values():
    assert AuthType("none") is AuthType.NONE
    assert AuthType("serviceAccount") is AuthType.SERVICE_ACCOUNT
    assert AuthType("kubeConfig") is AuthType.KUBE_CONFIG
    assert build_config(with_auth_type("none")).kube_auth_type is AuthType.NONE


@pytest.mark.parametrize("auth_type", list(AuthType) + ["none", "kubeConfig"])
def test_validate_accepts_known_types(auth_type):
    config = APIConfig(auth_type)
    config.validate()
    assert AuthType(config.auth_type) in set(AuthType)


def test_validate_rejects_unknown_type():
    with pytest.raises(ValueError, match="invalid authType for kubernetes: bogus"):
        APIConfig("bogus").validate()


def test_with_auth_type_rejects_unknown_type():
    with pytest.raises(ValueError):
        build_config(with_auth_type("bogus"))