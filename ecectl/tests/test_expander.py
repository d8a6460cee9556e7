import pytest

from conftest import cluster_tree
from ecectl.errors import ConfigurationError
from ecectl.expander import (
    build_companion_request,
    build_create_request,
    expand_cluster_plan,
    expand_desired_state,
    expand_node_roles,
    validate_tree,
)
from ecectl.models import NodeRoleSet, TopologyElement


def test_empty_topology_gets_default_element():
    plan = expand_cluster_plan({"engine": {"version": "7.10.0"}})

    assert plan.version == "7.10.0"
    assert plan.topology == [TopologyElement()]
    assert plan.topology[0].memory_per_node == 1024
    assert plan.zone_count == 1


def test_explicit_sizing_is_kept():
    plan = expand_cluster_plan({
        "engine": {"version": "7.10.0"},
        "topology": [
            {"memory_per_node": 4096, "node_count_per_zone": 2, "zone_count": 3},
            {"memory_per_node": 1024, "roles": {"data": False, "ingest": False}},
        ],
    })

    assert [e.memory_per_node for e in plan.topology] == [4096, 1024]
    assert plan.topology[1].node_count_per_zone == 1
    assert plan.zone_count == 3


def test_roles_override_only_given_keys():
    assert expand_node_roles(None) == NodeRoleSet(data=True, ingest=True, master=True, ml=False)
    assert expand_node_roles({"ml": True}) == NodeRoleSet(data=True, ingest=True, master=True, ml=True)
    assert expand_node_roles({"master": False, "data": False}) == \
        NodeRoleSet(data=False, ingest=True, master=False, ml=False)


def test_missing_plan_is_rejected():
    with pytest.raises(ConfigurationError):
        expand_cluster_plan(None)


def test_missing_version_is_rejected():
    with pytest.raises(ConfigurationError) as exc:
        expand_desired_state({"name": "logs", "plan": {"engine": {}}})

    assert "version" in str(exc.value)


@pytest.mark.parametrize("tree", [
    {"plan": {"engine": {"version": "7.10.0"}}},
    {"name": "", "plan": {"engine": {"version": "7.10.0"}}},
    cluster_tree(memory_per_node=0),
    cluster_tree(roles={"coordinating": True}),
    cluster_tree(node_count_per_zone="two"),
])
def test_invalid_trees_are_rejected(tree):
    with pytest.raises(ConfigurationError):
        validate_tree(tree)


def test_companion_defaults_to_cluster_version_and_name():
    desired = expand_desired_state(cluster_tree(version="7.9.3", companion={}))

    assert desired.wants_companion
    assert desired.companion_name == "logs-companion"
    assert desired.companion_plan.version == "7.9.3"
    assert desired.companion_plan.topology[0].memory_per_node == 1024


def test_companion_settings_are_kept():
    desired = expand_desired_state(cluster_tree(companion={
        "name": "logs-dashboards",
        "plan": {"engine": {"version": "7.10.1"}, "topology": [{"memory_per_node": 2048, "zone_count": 2}]},
    }))

    assert desired.companion_name == "logs-dashboards"
    assert desired.companion_plan.version == "7.10.1"
    assert desired.companion_plan.zone_count == 2


def test_no_companion():
    desired = expand_desired_state(cluster_tree(companion=None))

    assert not desired.wants_companion
    with pytest.raises(ConfigurationError):
        build_companion_request(desired, "abc123")


def test_create_request_carries_companion_only_when_combined():
    desired = expand_desired_state(cluster_tree(companion={}))

    assert build_create_request(desired).companion is None
    combined = build_create_request(desired, combined=True)
    assert combined.companion.name == "logs-companion"
    assert combined.companion.primary_cluster_id == ""


def test_companion_request_references_primary():
    desired = expand_desired_state(cluster_tree(companion={"name": "kb"}))

    request = build_companion_request(desired, "abc123")

    assert request.primary_cluster_id == "abc123"
    assert request.name == "kb"
