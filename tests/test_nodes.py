from clustermeta.kube.nodes import NodeInfo, NodeMap


def test_add_and_lookup():
    nodes = NodeMap()
    nodes.add(NodeInfo(ip="10.0.0.1", name="node1", labels={"role": "worker"}))
    assert nodes.get_node_name("10.0.0.1") == "node1"
    assert nodes.get_node_name("10.0.0.2") is None


def test_add_none_is_ignored():
    nodes = NodeMap()
    nodes.add(None)
    assert nodes.get_all_node_addresses() == []


def test_all_addresses():
    nodes = NodeMap()
    nodes.add(NodeInfo(ip="10.0.0.1", name="node1"))
    nodes.add(NodeInfo(ip="10.0.0.2", name="node2"))
    assert sorted(nodes.get_all_node_addresses()) == ["10.0.0.1", "10.0.0.2"]


def test_same_ip_replaces_node():
    nodes = NodeMap()
    nodes.add(NodeInfo(ip="10.0.0.1", name="node1"))
    nodes.add(NodeInfo(ip="10.0.0.1", name="node2"))
    assert nodes.get_node_name("10.0.0.1") == "node2"
    assert nodes.get_all_node_addresses() == ["10.0.0.1"]


def test_delete_by_key():
    nodes = NodeMap()
    nodes.add(NodeInfo(ip="10.0.0.1", name="node1"))
    nodes.delete("10.0.0.1")
    assert nodes.get_node_name("10.0.0.1") is None
    nodes.delete("missing")
    assert nodes.get_all_node_addresses() == []