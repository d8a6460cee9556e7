"""Data models for control-plane plans, state and convergence results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union

DEFAULT_MEMORY_PER_NODE = 1024
DEFAULT_NODE_COUNT_PER_ZONE = 1
DEFAULT_ZONE_COUNT = 1

STEP_SUCCESS = 'success'


class ResourceKind(str, Enum):
    """Kinds of resources managed through the control plane."""
    CLUSTER = 'cluster'
    COMPANION = 'companion'

    @property
    def collection_path(self) -> str:
        if self is ResourceKind.CLUSTER:
            return '/api/v1/clusters/elasticsearch'
        return '/api/v1/clusters/kibana'


class ResourceState(str, Enum):
    """Lifecycle states a resource moves through during convergence."""
    ABSENT = 'absent'
    SUBMITTING = 'submitting'
    CONVERGING = 'converging'
    READY = 'ready'
    SHUTTING_DOWN = 'shutting_down'
    DELETED = 'deleted'
    FAILED = 'failed'


class ClusterStatus(str, Enum):
    """Status strings reported by the control plane for a cluster."""
    STARTED = 'started'
    STOPPED = 'stopped'


@dataclass
class NodeRoleSet:
    """Which duties nodes of a topology element take on.

    By default a node is master eligible, can hold data and run ingest
    pipelines. Unsupported combinations are rejected by the control plane.
    """
    data: bool = True
    ingest: bool = True
    master: bool = True
    ml: bool = False

    @classmethod
    def from_service_roles(cls, service_roles: Optional[List[str]]) -> 'NodeRoleSet':
        roles = set(service_roles or [])
        return cls(
            data='data' in roles,
            ingest='ingest' in roles,
            master='master' in roles,
            ml='ml' in roles,
        )

    @classmethod
    def none(cls) -> 'NodeRoleSet':
        return cls(data=False, ingest=False, master=False, ml=False)


@dataclass
class TopologyElement:
    """One homogeneous group of search nodes."""
    memory_per_node: int = DEFAULT_MEMORY_PER_NODE
    node_count_per_zone: int = DEFAULT_NODE_COUNT_PER_ZONE
    zone_count: int = DEFAULT_ZONE_COUNT
    roles: NodeRoleSet = field(default_factory=NodeRoleSet)


@dataclass
class ClusterPlan:
    """Plan for a search cluster."""
    version: str
    topology: List[TopologyElement] = field(default_factory=lambda: [TopologyElement()])
    zone_count: int = DEFAULT_ZONE_COUNT


@dataclass
class CompanionTopologyElement:
    """One group of dashboard instances."""
    memory_per_node: int = DEFAULT_MEMORY_PER_NODE
    node_count_per_zone: int = DEFAULT_NODE_COUNT_PER_ZONE
    zone_count: int = DEFAULT_ZONE_COUNT


@dataclass
class CompanionPlan:
    """Plan for the dashboard instance attached to a cluster."""
    version: str
    topology: List[CompanionTopologyElement] = field(
        default_factory=lambda: [CompanionTopologyElement()])
    zone_count: int = DEFAULT_ZONE_COUNT


Plan = Union[ClusterPlan, CompanionPlan]


@dataclass
class CreateCompanionRequest:
    """Request body for creating a companion.

    ``primary_cluster_id`` is empty when the companion rides along in a
    combined cluster create request.
    """
    name: str
    plan: CompanionPlan
    primary_cluster_id: str = ''


@dataclass
class CreateClusterRequest:
    name: str
    plan: ClusterPlan
    companion: Optional[CreateCompanionRequest] = None


CreateRequest = Union[CreateClusterRequest, CreateCompanionRequest]


@dataclass
class Credentials:
    """Credentials returned once when a cluster is created."""
    username: str = ''
    password: str = ''


@dataclass
class CrudResponse:
    cluster_id: str
    companion_cluster_id: str = ''
    credentials: Optional[Credentials] = None


@dataclass
class InstanceInfo:
    instance_name: str = ''
    service_roles: List[str] = field(default_factory=list)


@dataclass
class TopologyInfo:
    healthy: bool = False
    instances: List[InstanceInfo] = field(default_factory=list)


@dataclass
class PlanStepLogMessage:
    message: str = ''
    stage: str = ''
    timestamp: str = ''
    delta_in_millis: int = 0


@dataclass
class PlanStepInfo:
    step_id: str = ''
    stage: str = ''
    status: str = ''
    started: str = ''
    completed: str = ''
    duration_in_millis: int = 0
    info_log: List[PlanStepLogMessage] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == STEP_SUCCESS


@dataclass
class PlanAttemptInfo:
    """One execution attempt of a plan."""
    plan: Optional[Plan] = None
    healthy: bool = False
    attempt_id: str = ''
    attempt_start_time: str = ''
    attempt_end_time: str = ''
    step_log: List[PlanStepInfo] = field(default_factory=list)

    def failed_steps(self) -> List[PlanStepInfo]:
        return [step for step in self.step_log if not step.succeeded]

    def failed_messages(self) -> List[str]:
        """Messages of every step that did not succeed, in log order."""
        return [entry.message for step in self.failed_steps() for entry in step.info_log]


@dataclass
class PlanActivityRecord:
    """Current, pending and past plan attempts of a resource."""
    current: PlanAttemptInfo = field(default_factory=PlanAttemptInfo)
    pending: Optional[PlanAttemptInfo] = None
    history: List[PlanAttemptInfo] = field(default_factory=list)
    healthy: bool = False


@dataclass
class ClusterInfo:
    cluster_id: str
    name: str = ''
    status: str = ''
    healthy: bool = False
    plan_info: PlanActivityRecord = field(default_factory=PlanActivityRecord)
    topology: TopologyInfo = field(default_factory=TopologyInfo)
    associated_companions: List[str] = field(default_factory=list)


@dataclass
class CompanionInfo:
    cluster_id: str
    name: str = ''
    status: str = ''
    healthy: bool = False
    plan_info: PlanActivityRecord = field(default_factory=PlanActivityRecord)
    topology: TopologyInfo = field(default_factory=TopologyInfo)


ResourceInfo = Union[ClusterInfo, CompanionInfo]


@dataclass
class ResourceIdentity:
    """Identifiers assigned by the control plane; empty until created."""
    cluster_id: str = ''
    companion_id: str = ''

    @property
    def exists(self) -> bool:
        return bool(self.cluster_id)

    def clear(self) -> None:
        self.cluster_id = ''
        self.companion_id = ''


@dataclass
class ConvergenceResult:
    """Outcome of one engine operation on one resource."""
    kind: ResourceKind
    resource_id: str = ''
    state: ResourceState = ResourceState.ABSENT
    history: List[ResourceState] = field(default_factory=list)
    credentials: Optional[Credentials] = None
    polls: int = 0
    diagnostics: List[str] = field(default_factory=list)
    info: Optional[Any] = None

    @property
    def ready(self) -> bool:
        return self.state == ResourceState.READY
