"""
Lifecycle of a search cluster and its optional companion.

The companion depends on the cluster's identifier, so a create runs in two
phases: the cluster is converged first, then the companion is created with
a reference to it. Targets that accept both in one request are handled by
``combined_create``.

``ResourceIdentity`` objects passed in are updated in place as identifiers
are assigned or found gone, so callers can persist them even when an
operation fails halfway.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .engine import ConvergenceEngine
from .errors import DecodingError
from .expander import (
    DesiredState,
    build_companion_request,
    build_create_request,
    expand_desired_state,
)
from .flattener import Drift, detect_drift, flatten_state
from .models import (
    ConvergenceResult,
    Credentials,
    ResourceIdentity,
    ResourceKind,
    ResourceState,
)

logger = logging.getLogger(__name__)


@dataclass
class LifecycleResult:
    identity: ResourceIdentity
    cluster: Optional[ConvergenceResult] = None
    companion: Optional[ConvergenceResult] = None
    credentials: Optional[Credentials] = None


class ClusterLifecycle:
    """Orchestrates create, read, update and delete of a cluster and companion."""

    def __init__(self, engine: ConvergenceEngine, combined_create: bool = False,
                 companion_teardown: bool = False):
        self.engine = engine
        self.client = engine.client
        self.combined_create = combined_create
        self.companion_teardown = companion_teardown

    @classmethod
    def from_config(cls, engine: ConvergenceEngine) -> "ClusterLifecycle":
        config = engine.client.config
        return cls(engine, combined_create=config.combined_create,
                   companion_teardown=config.companion_teardown)

    # ── Create ───────────────────────────────────────────────────

    def create_primary(self, desired: DesiredState, identity: ResourceIdentity) -> ConvergenceResult:
        """Phase one: create the cluster and wait until it is started."""
        result, crud = self.engine.submit_create(ResourceKind.CLUSTER, build_create_request(desired))
        identity.cluster_id = crud.cluster_id
        return self.engine.converge(result)

    def create_companion(self, desired: DesiredState, identity: ResourceIdentity) -> ConvergenceResult:
        """Phase two: create the companion against an existing cluster."""
        request = build_companion_request(desired, identity.cluster_id)
        result, crud = self.engine.submit_create(ResourceKind.COMPANION, request)
        identity.companion_id = crud.cluster_id
        return self.engine.converge(result)

    def _create_combined(self, desired: DesiredState, identity: ResourceIdentity) -> LifecycleResult:
        request = build_create_request(desired, combined=True)
        cluster, crud = self.engine.submit_create(ResourceKind.CLUSTER, request)
        identity.cluster_id = crud.cluster_id
        if not crud.companion_cluster_id:
            raise DecodingError(f"'{crud.cluster_id}': create response did not report a companion ID")
        identity.companion_id = crud.companion_cluster_id

        companion = self.engine.adopt(ResourceKind.COMPANION, crud.companion_cluster_id)
        self.engine.converge(cluster)
        self.engine.converge(companion)
        return LifecycleResult(identity=identity, cluster=cluster, companion=companion,
                               credentials=cluster.credentials)

    def create(self, tree: Dict[str, Any], identity: Optional[ResourceIdentity] = None) -> LifecycleResult:
        """Create the cluster (and companion, when desired) from a desired-state tree."""
        desired = expand_desired_state(tree)
        identity = identity if identity is not None else ResourceIdentity()

        if self.combined_create and desired.wants_companion:
            logger.info(f"Creating '{desired.name}' with companion in one request")
            return self._create_combined(desired, identity)

        logger.info(f"Creating cluster '{desired.name}'")
        cluster = self.create_primary(desired, identity)
        result = LifecycleResult(identity=identity, cluster=cluster, credentials=cluster.credentials)

        if desired.wants_companion:
            logger.info(f"Creating companion '{desired.companion_name}' for cluster {identity.cluster_id}")
            result.companion = self.create_companion(desired, identity)
        return result

    # ── Read ─────────────────────────────────────────────────────

    def read(self, identity: ResourceIdentity) -> Optional[Dict[str, Any]]:
        """Flattened live state, or ``None`` when the cluster no longer exists."""
        if not identity.exists:
            return None

        cluster_info = self.client.get_cluster(identity.cluster_id)
        if cluster_info is None:
            logger.info(f"Cluster {identity.cluster_id} not found, clearing identity")
            identity.clear()
            return None

        companion_info = None
        if identity.companion_id:
            companion_info = self.client.get_companion(identity.companion_id)
            if companion_info is None:
                logger.info(f"Companion {identity.companion_id} not found, clearing its identity")
                identity.companion_id = ""

        return flatten_state(cluster_info, companion_info)

    def diff(self, tree: Dict[str, Any], identity: ResourceIdentity) -> List[Drift]:
        return detect_drift(tree, self.read(identity))

    # ── Update ───────────────────────────────────────────────────

    def _update_companion(self, desired: DesiredState, identity: ResourceIdentity) -> Optional[ConvergenceResult]:
        if not desired.wants_companion:
            if identity.companion_id:
                logger.info(f"Companion no longer desired, deleting {identity.companion_id}")
                result = self.engine.delete(ResourceKind.COMPANION, identity.companion_id)
                identity.companion_id = ""
                return result
            return None

        if identity.companion_id:
            info = self.client.get_companion(identity.companion_id)
            if info is None:
                logger.info(f"Companion {identity.companion_id} not found, creating a new one")
                identity.companion_id = ""
            else:
                rename = desired.companion_name if info.name != desired.companion_name else None
                result = self.engine.update(ResourceKind.COMPANION, identity.companion_id,
                                            desired.companion_plan, name=rename)
                if result.state == ResourceState.ABSENT:
                    identity.companion_id = ""
                return result

        return self.create_companion(desired, identity)

    def update(self, tree: Dict[str, Any], identity: ResourceIdentity) -> LifecycleResult:
        """Converge existing resources towards a desired-state tree.

        The cluster and companion converge independently. A companion that is
        desired but unknown is created; a known one that is no longer desired
        is deleted.
        """
        desired = expand_desired_state(tree)
        result = LifecycleResult(identity=identity)
        if not identity.exists:
            logger.info(f"'{desired.name}' has no cluster ID, nothing to update")
            return result

        info = self.client.get_cluster(identity.cluster_id)
        if info is None:
            logger.info(f"Cluster {identity.cluster_id} was not found for update, clearing identity")
            identity.clear()
            return result

        rename = desired.name if info.name != desired.name else None
        result.cluster = self.engine.update(ResourceKind.CLUSTER, identity.cluster_id, desired.plan, name=rename)
        if result.cluster.state == ResourceState.ABSENT:
            identity.clear()
            return result

        result.companion = self._update_companion(desired, identity)
        return result

    def apply(self, tree: Dict[str, Any], identity: ResourceIdentity) -> LifecycleResult:
        """Create when nothing exists yet, otherwise update."""
        if identity.exists:
            result = self.update(tree, identity)
            if identity.exists:
                return result
        return self.create(tree, identity)

    # ── Delete ───────────────────────────────────────────────────

    def delete(self, identity: ResourceIdentity) -> LifecycleResult:
        """Tear down the cluster; the companion first when the target requires it."""
        result = LifecycleResult(identity=identity)
        if not identity.exists:
            return result

        if self.companion_teardown and identity.companion_id:
            result.companion = self.engine.delete(ResourceKind.COMPANION, identity.companion_id)
            identity.companion_id = ""

        result.cluster = self.engine.delete(ResourceKind.CLUSTER, identity.cluster_id)
        identity.clear()
        return result
