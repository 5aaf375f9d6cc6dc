import pytest

from clustermeta.kube.scheme import BuiltInScheme, complete_gvk, map_key, new_known_scheme


@pytest.mark.parametrize("group_version, expected", [("apps/v1", True), ("test", False), ("", False)])
def test_is_built_in_gv(group_version, expected):
    assert new_known_scheme().is_built_in_gv(group_version) is expected


def test_known_scheme_has_core_group():
    assert new_known_scheme().is_built_in_gv("v1")


def test_custom_scheme():
    scheme = BuiltInScheme(["my.apps.io/v1"])
    assert scheme.is_built_in_gv("my.apps.io/v1")
    assert not scheme.is_built_in_gv("apps/v1")


@pytest.mark.parametrize(
    "api_version, kind, expected",
    [
        ("apps/v1", "StatefulSet", "StatefulSet"),
        ("apps.kruise.io/v1beta1", "StatefulSet", "apps.kruise.io/v1beta1/StatefulSet"),
        ("", "DaemonSet", "DaemonSet"),
    ],
)
def test_complete_gvk(api_version, kind, expected):
    assert complete_gvk(api_version, kind) == expected


def test_map_key():
    assert map_key("CustomNamespace", "deploy-1a2b3c4d") == "CustomNamespace/deploy-1a2b3c4d"