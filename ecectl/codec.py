"""
Wire codec for the control-plane API.

Requests are rendered from the dataclasses in ``ecectl.models`` into JSON
bodies. Responses are parsed, checked against a minimal JSON schema and
mapped back onto the same dataclasses. Anything that does not parse or does
not match the schema raises ``DecodingError``.
"""
import json
from typing import Any, Dict, List, Optional, Union

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from .errors import DecodingError
from .models import (
    ClusterInfo,
    ClusterPlan,
    CompanionInfo,
    CompanionPlan,
    CompanionTopologyElement,
    CreateClusterRequest,
    CreateCompanionRequest,
    Credentials,
    CrudResponse,
    InstanceInfo,
    NodeRoleSet,
    Plan,
    PlanActivityRecord,
    PlanAttemptInfo,
    PlanStepInfo,
    PlanStepLogMessage,
    ResourceKind,
    TopologyElement,
    TopologyInfo,
)

_STRING = {"type": "string"}
_BOOL = {"type": "boolean"}
_INT = {"type": "integer"}
_OBJECT = {"type": "object"}
_NULLABLE_OBJECT = {"type": ["object", "null"]}

_STEP_SCHEMA = {
    "type": "object",
    "properties": {
        "step_id": _STRING,
        "stage": _STRING,
        "status": _STRING,
        "info_log": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"message": _STRING, "stage": _STRING, "timestamp": _STRING},
            },
        },
    },
}

_ATTEMPT_SCHEMA = {
    "type": ["object", "null"],
    "properties": {
        "healthy": _BOOL,
        "attempt_id": _STRING,
        "plan": _NULLABLE_OBJECT,
        "step_log": {"type": ["array", "null"], "items": _STEP_SCHEMA},
    },
}

PLAN_ACTIVITY_SCHEMA = {
    "type": "object",
    "properties": {
        "healthy": _BOOL,
        "current": _ATTEMPT_SCHEMA,
        "pending": _ATTEMPT_SCHEMA,
        "history": {"type": ["array", "null"], "items": _ATTEMPT_SCHEMA},
    },
}

INFO_SCHEMA = {
    "type": "object",
    "properties": {
        "cluster_id": _STRING,
        "name": _STRING,
        "status": _STRING,
        "healthy": _BOOL,
        "plan_info": PLAN_ACTIVITY_SCHEMA,
        "topology": {
            "type": "object",
            "properties": {
                "healthy": _BOOL,
                "instances": {
                    "type": ["array", "null"],
                    "items": {
                        "type": "object",
                        "properties": {
                            "instance_name": _STRING,
                            "service_roles": {"type": ["array", "null"], "items": _STRING},
                        },
                    },
                },
            },
        },
        "associated_companions": {"type": ["array", "null"], "items": _STRING},
    },
    "required": ["cluster_id"],
}

CRUD_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "cluster_id": _STRING,
        "companion_cluster_id": _STRING,
        "credentials": {
            "type": ["object", "null"],
            "properties": {"username": _STRING, "password": _STRING},
        },
    },
    "required": ["cluster_id"],
}

TOKEN_SCHEMA = {
    "type": "object",
    "properties": {"token": _STRING},
    "required": ["token"],
}


# ── Encoding ────────────────────────────────────────────────────


def roles_to_wire(roles: NodeRoleSet) -> Dict[str, bool]:
    return {"data": roles.data, "ingest": roles.ingest, "master": roles.master, "ml": roles.ml}


def cluster_plan_to_wire(plan: ClusterPlan) -> Dict[str, Any]:
    return {
        "engine": {"version": plan.version},
        "topology": [
            {
                "memory_per_node": element.memory_per_node,
                "node_count_per_zone": element.node_count_per_zone,
                "zone_count": element.zone_count,
                "roles": roles_to_wire(element.roles),
            }
            for element in plan.topology
        ],
        "zone_count": plan.zone_count,
    }


def companion_plan_to_wire(plan: CompanionPlan) -> Dict[str, Any]:
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
        "zone_count": plan.zone_count,
    }


def plan_to_wire(plan: Plan) -> Dict[str, Any]:
    if isinstance(plan, ClusterPlan):
        return cluster_plan_to_wire(plan)
    return companion_plan_to_wire(plan)


def create_request_to_wire(request: Union[CreateClusterRequest, CreateCompanionRequest]) -> Dict[str, Any]:
    if isinstance(request, CreateCompanionRequest):
        body = {"name": request.name, "plan": companion_plan_to_wire(request.plan)}
        if request.primary_cluster_id:
            body["primary_cluster_id"] = request.primary_cluster_id
        return body

    body = {"name": request.name, "plan": cluster_plan_to_wire(request.plan)}
    if request.companion is not None:
        body["companion"] = {
            "name": request.companion.name,
            "plan": companion_plan_to_wire(request.companion.plan),
        }
    return body


def encode(payload: Dict[str, Any]) -> bytes:
    """Serialize a wire dict to a request body."""
    return json.dumps(payload, sort_keys=True).encode("utf-8")


# ── Decoding ────────────────────────────────────────────────────


def _text(body: Union[bytes, str, None]) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body


def decode_json(body: Union[bytes, str, None], schema: Optional[Dict[str, Any]] = None) -> Any:
    """Parse a response body and optionally validate it against a schema."""
    text = _text(body)
    try:
        data = json.loads(text)
    except ValueError as e:
        raise DecodingError(f"error unmarshalling response body: {e}", body=text) from e

    if schema is not None:
        first = best_match(Draft7Validator(schema).iter_errors(data))
        if first is not None:
            location = "/".join(str(p) for p in first.path) or "<root>"
            raise DecodingError(f"unexpected response shape at {location}: {first.message}", body=text)
    return data


def _roles_from_wire(data: Optional[Dict[str, Any]]) -> NodeRoleSet:
    roles = NodeRoleSet()
    for name in ("data", "ingest", "master", "ml"):
        if data and name in data:
            setattr(roles, name, bool(data[name]))
    return roles


def plan_from_wire(kind: ResourceKind, data: Optional[Dict[str, Any]]) -> Optional[Plan]:
    """Map a plan object from a read response; zero values where fields are missing."""
    if not data:
        return None
    version = (data.get("engine") or {}).get("version", "")
    zone_count = data.get("zone_count") or 0
    elements = data.get("topology") or []

    if kind is ResourceKind.CLUSTER:
        return ClusterPlan(
            version=version,
            topology=[
                TopologyElement(
                    memory_per_node=element.get("memory_per_node", 0),
                    node_count_per_zone=element.get("node_count_per_zone", 0),
                    zone_count=element.get("zone_count") or 0,
                    roles=_roles_from_wire(element.get("roles")),
                )
                for element in elements
            ],
            zone_count=zone_count,
        )
    return CompanionPlan(
        version=version,
        topology=[
            CompanionTopologyElement(
                memory_per_node=element.get("memory_per_node", 0),
                node_count_per_zone=element.get("node_count_per_zone", 0),
                zone_count=element.get("zone_count") or 0,
            )
            for element in elements
        ],
        zone_count=zone_count,
    )


def _step_from_wire(data: Dict[str, Any]) -> PlanStepInfo:
    return PlanStepInfo(
        step_id=data.get("step_id", ""),
        stage=data.get("stage", ""),
        status=data.get("status", ""),
        started=data.get("started", ""),
        completed=data.get("completed", ""),
        duration_in_millis=data.get("duration_in_millis", 0),
        info_log=[
            PlanStepLogMessage(
                message=entry.get("message", ""),
                stage=entry.get("stage", ""),
                timestamp=entry.get("timestamp", ""),
                delta_in_millis=entry.get("delta_in_millis", 0),
            )
            for entry in data.get("info_log") or []
        ],
    )


def _attempt_from_wire(kind: ResourceKind, data: Optional[Dict[str, Any]]) -> Optional[PlanAttemptInfo]:
    if not data:
        return None
    return PlanAttemptInfo(
        plan=plan_from_wire(kind, data.get("plan")),
        healthy=bool(data.get("healthy", False)),
        attempt_id=data.get("attempt_id", ""),
        attempt_start_time=data.get("attempt_start_time", ""),
        attempt_end_time=data.get("attempt_end_time", ""),
        step_log=[_step_from_wire(step) for step in data.get("step_log") or []],
    )


def _activity_from_wire(kind: ResourceKind, data: Optional[Dict[str, Any]]) -> PlanActivityRecord:
    data = data or {}
    history: List[PlanAttemptInfo] = []
    for item in data.get("history") or []:
        attempt = _attempt_from_wire(kind, item)
        if attempt is not None:
            history.append(attempt)
    return PlanActivityRecord(
        current=_attempt_from_wire(kind, data.get("current")) or PlanAttemptInfo(),
        pending=_attempt_from_wire(kind, data.get("pending")),
        history=history,
        healthy=bool(data.get("healthy", False)),
    )


def decode_plan_activity(kind: ResourceKind, body: Union[bytes, str]) -> PlanActivityRecord:
    return _activity_from_wire(kind, decode_json(body, PLAN_ACTIVITY_SCHEMA))


def decode_info(kind: ResourceKind, body: Union[bytes, str]) -> Union[ClusterInfo, CompanionInfo]:
    """Decode a read response into ``ClusterInfo`` or ``CompanionInfo``."""
    data = decode_json(body, INFO_SCHEMA)
    topology_data = data.get("topology") or {}
    topology = TopologyInfo(
        healthy=bool(topology_data.get("healthy", False)),
        instances=[
            InstanceInfo(
                instance_name=instance.get("instance_name", ""),
                service_roles=list(instance.get("service_roles") or []),
            )
            for instance in topology_data.get("instances") or []
        ],
    )
    fields = dict(
        cluster_id=data["cluster_id"],
        name=data.get("name", ""),
        status=data.get("status", ""),
        healthy=bool(data.get("healthy", False)),
        plan_info=_activity_from_wire(kind, data.get("plan_info")),
        topology=topology,
    )
    if kind is ResourceKind.CLUSTER:
        return ClusterInfo(associated_companions=list(data.get("associated_companions") or []), **fields)
    return CompanionInfo(**fields)


def decode_crud_response(body: Union[bytes, str]) -> CrudResponse:
    data = decode_json(body, CRUD_RESPONSE_SCHEMA)
    credentials = None
    if data.get("credentials"):
        credentials = Credentials(
            username=data["credentials"].get("username", ""),
            password=data["credentials"].get("password", ""),
        )
    return CrudResponse(
        cluster_id=data["cluster_id"],
        companion_cluster_id=data.get("companion_cluster_id", ""),
        credentials=credentials,
    )


def decode_token(body: Union[bytes, str]) -> str:
    return decode_json(body, TOKEN_SCHEMA)["token"]
