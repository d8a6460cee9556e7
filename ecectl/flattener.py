"""
Projection of control-plane state back into desired-state trees.

The trees produced here have the same shape the expander accepts, so a
desired tree and a live tree can be compared key by key.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .expander import expand_desired_state
from .models import (
    ClusterInfo,
    ClusterPlan,
    CompanionInfo,
    CompanionPlan,
    NodeRoleSet,
)
from .utils import log_json

logger = logging.getLogger(__name__)

_MISSING = object()


def roles_to_tree(roles: NodeRoleSet) -> Dict[str, bool]:
    return {"data": roles.data, "ingest": roles.ingest, "master": roles.master, "ml": roles.ml}


def flatten_node_roles(info: ClusterInfo, index: int) -> Dict[str, bool]:
    """Role flags of the topology element at ``index``.

    The control plane does not echo the submitted roles, so they are read
    back from the service roles of the instance at the same position.
    """
    instances = info.topology.instances
    if index >= len(instances):
        logger.debug(f"No instance at position {index} for '{info.cluster_id}', flattening roles as unset")
        return roles_to_tree(NodeRoleSet.none())
    return roles_to_tree(NodeRoleSet.from_service_roles(instances[index].service_roles))


def _zone_count(element_zone_count: int, plan_zone_count: int) -> int:
    # The zone count moved from the plan to the topology element between API
    # versions; use the element's value unless it is unset.
    if element_zone_count and element_zone_count > 0:
        return element_zone_count
    return plan_zone_count


def flatten_cluster(info: ClusterInfo) -> Dict[str, Any]:
    """Flatten a cluster read response into a desired-state tree."""
    plan = info.plan_info.current.plan or ClusterPlan(version="", topology=[], zone_count=0)

    topology = []
    for i, element in enumerate(plan.topology):
        topology.append({
            "memory_per_node": element.memory_per_node,
            "node_count_per_zone": element.node_count_per_zone,
            "zone_count": _zone_count(element.zone_count, plan.zone_count),
            "roles": flatten_node_roles(info, i),
        })

    tree = {
        "name": info.name,
        "plan": {"engine": {"version": plan.version}, "topology": topology},
    }
    log_json("Flattened cluster", tree, logger)
    return tree


def flatten_companion(info: CompanionInfo) -> Dict[str, Any]:
    """Flatten a companion read response into the ``companion`` sub-tree."""
    plan = info.plan_info.current.plan or CompanionPlan(version="", topology=[], zone_count=0)

    topology = [
        {
            "memory_per_node": element.memory_per_node,
            "node_count_per_zone": element.node_count_per_zone,
            "zone_count": _zone_count(element.zone_count, plan.zone_count),
        }
        for element in plan.topology
    ]

    tree = {
        "name": info.name,
        "plan": {"engine": {"version": plan.version}, "topology": topology},
    }
    log_json("Flattened companion", tree, logger)
    return tree


def flatten_state(cluster_info: ClusterInfo,
                  companion_info: Optional[CompanionInfo] = None) -> Dict[str, Any]:
    tree = flatten_cluster(cluster_info)
    if companion_info is not None:
        tree["companion"] = flatten_companion(companion_info)
    return tree


def plan_to_tree(plan: ClusterPlan) -> Dict[str, Any]:
    return {
        "engine": {"version": plan.version},
        "topology": [
            {
                "memory_per_node": element.memory_per_node,
                "node_count_per_zone": element.node_count_per_zone,
                "zone_count": element.zone_count,
                "roles": roles_to_tree(element.roles),
            }
            for element in plan.topology
        ],
    }


def companion_plan_to_tree(plan: CompanionPlan) -> Dict[str, Any]:
    return {
        "engine": {"version": plan.version},
        "topology": [
            {
                "memory_per_node": element.memory_per_node,
                "node_count_per_zone": element.node_count_per_zone,
                "zone_count": element.zone_count,
            }
            for element in plan.topology
        ],
    }


def normalize_tree(tree: Dict[str, Any]) -> Dict[str, Any]:
    """Fill every default into a desired-state tree."""
    desired = expand_desired_state(tree)
    normalized = {"name": desired.name, "plan": plan_to_tree(desired.plan)}
    if desired.wants_companion:
        normalized["companion"] = {
            "name": desired.companion_name,
            "plan": companion_plan_to_tree(desired.companion_plan),
        }
    return normalized


@dataclass
class Drift:
    """One leaf that differs between desired and live state."""
    path: str
    desired: Any
    live: Any

    def __str__(self):
        desired = "<absent>" if self.desired is _MISSING else repr(self.desired)
        live = "<absent>" if self.live is _MISSING else repr(self.live)
        return f"{self.path}: desired {desired}, live {live}"


def _walk(path: str, desired: Any, live: Any, drifts: List[Drift]) -> None:
    if isinstance(desired, dict) and isinstance(live, dict):
        for key in sorted(set(desired) | set(live)):
            child = f"{path}.{key}" if path else key
            _walk(child, desired.get(key, _MISSING), live.get(key, _MISSING), drifts)
    elif isinstance(desired, list) and isinstance(live, list):
        for i in range(max(len(desired), len(live))):
            _walk(f"{path}[{i}]",
                  desired[i] if i < len(desired) else _MISSING,
                  live[i] if i < len(live) else _MISSING,
                  drifts)
    elif desired != live:
        drifts.append(Drift(path=path, desired=desired, live=live))


def detect_drift(desired_tree: Dict[str, Any], live_tree: Optional[Dict[str, Any]]) -> List[Drift]:
    """Compare a desired tree against a flattened live tree.

    A missing live tree reports the whole resource as drifted.
    """
    normalized = normalize_tree(desired_tree)
    if live_tree is None:
        return [Drift(path=normalized["name"], desired=normalized, live=_MISSING)]
    drifts: List[Drift] = []
    _walk("", normalized, live_tree, drifts)
    return drifts
