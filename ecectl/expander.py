"""
Expansion of a desired-state tree into typed control-plane plans.

The tree is the dict form of a cluster definition (usually loaded from
YAML). It is validated once against ``CLUSTER_SCHEMA`` and then mapped onto
the dataclasses in ``ecectl.models``. Nothing here touches the network.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jsonschema import ValidationError, validate

from .errors import ConfigurationError
from .models import (
    DEFAULT_MEMORY_PER_NODE,
    DEFAULT_NODE_COUNT_PER_ZONE,
    DEFAULT_ZONE_COUNT,
    ClusterPlan,
    CompanionPlan,
    CompanionTopologyElement,
    CreateClusterRequest,
    CreateCompanionRequest,
    NodeRoleSet,
    TopologyElement,
)

logger = logging.getLogger(__name__)

ROLE_NAMES = ("data", "ingest", "master", "ml")

ROLES_SCHEMA = {
    "type": "object",
    "properties": {name: {"type": "boolean"} for name in ROLE_NAMES},
    "additionalProperties": False,
}

_SIZING_PROPERTIES = {
    "memory_per_node": {"type": "integer", "minimum": 1},
    "node_count_per_zone": {"type": "integer", "minimum": 1},
    "zone_count": {"type": "integer", "minimum": 1},
}

TOPOLOGY_ELEMENT_SCHEMA = {
    "type": "object",
    "properties": dict(_SIZING_PROPERTIES, roles=ROLES_SCHEMA),
    "additionalProperties": False,
}

COMPANION_TOPOLOGY_ELEMENT_SCHEMA = {
    "type": "object",
    "properties": dict(_SIZING_PROPERTIES),
    "additionalProperties": False,
}

ENGINE_SCHEMA = {
    "type": "object",
    "properties": {"version": {"type": "string", "minLength": 1}},
    "required": ["version"],
}

CLUSTER_PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "engine": ENGINE_SCHEMA,
        "topology": {"type": "array", "items": TOPOLOGY_ELEMENT_SCHEMA},
    },
    "required": ["engine"],
}

COMPANION_PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "engine": ENGINE_SCHEMA,
        "topology": {"type": "array", "items": COMPANION_TOPOLOGY_ELEMENT_SCHEMA},
    },
}

CLUSTER_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "plan": CLUSTER_PLAN_SCHEMA,
        "companion": {
            "type": ["object", "null"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "plan": COMPANION_PLAN_SCHEMA,
            },
        },
    },
    "required": ["name", "plan"],
}


@dataclass
class DesiredState:
    """Typed form of a validated desired-state tree."""
    name: str
    plan: ClusterPlan
    companion_name: Optional[str] = None
    companion_plan: Optional[CompanionPlan] = None

    @property
    def wants_companion(self) -> bool:
        return self.companion_plan is not None


def _check(instance: Any, schema: Dict[str, Any], what: str) -> None:
    try:
        validate(instance=instance, schema=schema)
    except ValidationError as ve:
        location = ".".join(str(p) for p in ve.absolute_path)
        where = f"{what}.{location}" if location else what
        raise ConfigurationError(f"Invalid {where}: {ve.message}") from ve


def validate_tree(tree: Dict[str, Any]) -> None:
    """Validate a whole desired-state tree, raising ``ConfigurationError``."""
    _check(tree, CLUSTER_SCHEMA, "cluster")


def expand_node_roles(roles_tree: Optional[Dict[str, Any]]) -> NodeRoleSet:
    """Merge the given role flags over the defaults.

    Only the keys present in ``roles_tree`` are overridden.
    """
    roles = NodeRoleSet()
    for name in ROLE_NAMES:
        if roles_tree and name in roles_tree:
            setattr(roles, name, roles_tree[name])
            logger.debug(f"Expanded roles.{name} as: {roles_tree[name]}")
    return roles


def expand_topology_element(element_tree: Dict[str, Any]) -> TopologyElement:
    return TopologyElement(
        memory_per_node=element_tree.get("memory_per_node", DEFAULT_MEMORY_PER_NODE),
        node_count_per_zone=element_tree.get("node_count_per_zone", DEFAULT_NODE_COUNT_PER_ZONE),
        zone_count=element_tree.get("zone_count", DEFAULT_ZONE_COUNT),
        roles=expand_node_roles(element_tree.get("roles")),
    )


def expand_companion_topology_element(element_tree: Dict[str, Any]) -> CompanionTopologyElement:
    return CompanionTopologyElement(
        memory_per_node=element_tree.get("memory_per_node", DEFAULT_MEMORY_PER_NODE),
        node_count_per_zone=element_tree.get("node_count_per_zone", DEFAULT_NODE_COUNT_PER_ZONE),
        zone_count=element_tree.get("zone_count", DEFAULT_ZONE_COUNT),
    )


def expand_cluster_plan(plan_tree: Optional[Dict[str, Any]]) -> ClusterPlan:
    """Build a ``ClusterPlan`` from the ``plan`` section of a cluster tree."""
    if plan_tree is None:
        raise ConfigurationError("cluster plan is required")
    _check(plan_tree, CLUSTER_PLAN_SCHEMA, "plan")

    topology = [expand_topology_element(t) for t in plan_tree.get("topology") or []]

    # Create a default topology element if none is provided.
    if not topology:
        topology = [TopologyElement()]

    return ClusterPlan(
        version=plan_tree["engine"]["version"],
        topology=topology,
        zone_count=topology[0].zone_count,
    )


def expand_companion_plan(plan_tree: Optional[Dict[str, Any]],
                          default_version: Optional[str] = None) -> CompanionPlan:
    """Build a ``CompanionPlan``; the version falls back to ``default_version``."""
    plan_tree = plan_tree or {}
    _check(plan_tree, COMPANION_PLAN_SCHEMA, "companion.plan")

    version = (plan_tree.get("engine") or {}).get("version") or default_version
    if not version:
        raise ConfigurationError("companion version is required")

    topology = [expand_companion_topology_element(t) for t in plan_tree.get("topology") or []]
    if not topology:
        topology = [CompanionTopologyElement()]

    return CompanionPlan(version=version, topology=topology, zone_count=topology[0].zone_count)


def expand_desired_state(tree: Dict[str, Any]) -> DesiredState:
    """Validate and expand a full desired-state tree."""
    validate_tree(tree)

    plan = expand_cluster_plan(tree["plan"])
    desired = DesiredState(name=tree["name"], plan=plan)

    companion_tree = tree.get("companion")
    if companion_tree is not None:
        desired.companion_name = companion_tree.get("name") or f"{desired.name}-companion"
        desired.companion_plan = expand_companion_plan(companion_tree.get("plan"), plan.version)

    logger.debug(f"Expanded desired state for '{desired.name}' "
                 f"(companion: {desired.wants_companion})")
    return desired


def build_create_request(desired: DesiredState, combined: bool = False) -> CreateClusterRequest:
    """Cluster create request; carries the companion only for combined submission."""
    request = CreateClusterRequest(name=desired.name, plan=desired.plan)
    if combined and desired.wants_companion:
        request.companion = CreateCompanionRequest(name=desired.companion_name, plan=desired.companion_plan)
    return request


def build_companion_request(desired: DesiredState, primary_cluster_id: str) -> CreateCompanionRequest:
    if not desired.wants_companion:
        raise ConfigurationError(f"'{desired.name}' does not define a companion")
    return CreateCompanionRequest(
        name=desired.companion_name,
        plan=desired.companion_plan,
        primary_cluster_id=primary_cluster_id,
    )
