from clustermeta.kube.objects import Container, OwnerReference, Pod, ReplicaSet, Service


def _replica_set():
    return ReplicaSet(
        name="deploy-1a2b3c4d",
        namespace="CustomNamespace",
        owner_references=[
            OwnerReference(kind="Custom", name="deploy", api_version="my.apps.io/v1"),
            OwnerReference(kind="Deployment", name="deploy", api_version="apps/v1", controller=True),
        ],
    )


def test_controller_ref_picks_the_controller():
    ref = _replica_set().controller_ref()
    assert ref == OwnerReference(kind="Deployment", name="deploy", api_version="apps/v1", controller=True)


def test_controller_ref_without_controller():
    rs = ReplicaSet(owner_references=[OwnerReference(kind="Custom", name="a", controller=False)])
    assert rs.controller_ref() is None
    assert ReplicaSet().controller_ref() is None


def test_controller_ref_takes_the_first_controller():
    first = OwnerReference(kind="Deployment", name="one", controller=True)
    second = OwnerReference(kind="Deployment", name="two", controller=True)
    assert ReplicaSet(owner_references=[first, second]).controller_ref() is first


def test_defaults_are_not_shared():
    a, b = Pod(), Pod()
    a.labels["x"] = "1"
    a.containers.append(Container(name="c"))
    assert b.labels == {}
    assert b.containers == []
    s1, s2 = Service(), Service()
    s1.selector["a"] = "1"
    assert s2.selector == {}