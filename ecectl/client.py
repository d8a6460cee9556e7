"""
Control-plane API client.

One method per verb, for both the search cluster and its companion. Every
method maps exactly one documented success status; anything else becomes an
``OperationError`` carrying the raw response body.
"""
import base64
import logging
from typing import Dict, Optional

from . import codec
from .config import Config
from .errors import OperationError
from .models import (
    ClusterInfo,
    ClusterPlan,
    CompanionInfo,
    CompanionPlan,
    CreateClusterRequest,
    CreateCompanionRequest,
    CreateRequest,
    CrudResponse,
    Plan,
    PlanActivityRecord,
    ResourceInfo,
    ResourceKind,
)
from .transport import HTTPTransport, Response
from .utils import log_json

JSON_CONTENT_TYPE = "application/json"
LOGIN_PATH = "/api/v1/users/_login"


class ControlPlaneClient:
    """Client for the cluster-orchestration control plane."""

    def __init__(self, config: Config, transport=None):
        """Initialize the client.

        Args:
            config: Connection settings; ``auth_mode`` selects static
                credentials or a bearer token obtained through ``login``.
            transport: Object with ``send(method, path, body, headers)`` and
                ``close()`` methods. Defaults to an ``HTTPTransport`` for ``config.url``.
        """
        self.config = config
        self.transport = transport or HTTPTransport(
            config.url, timeout=config.api_timeout, verify=not config.insecure)
        self.auth_token: Optional[str] = None
        self.logger = logging.getLogger(f"{__name__}.ControlPlaneClient")

    # ── Auth ─────────────────────────────────────────────────────

    def login(self) -> str:
        """Exchange username/password for a bearer token."""
        self.logger.debug(f"Logging in to control plane as {self.config.username}")
        body = codec.encode({"username": self.config.username, "password": self.config.password})
        resp = self.transport.send("POST", LOGIN_PATH, body, {"Content-Type": JSON_CONTENT_TYPE})
        self._expect(resp, "login", 200)
        self.auth_token = codec.decode_token(resp.body)
        return self.auth_token

    def _authorization(self) -> str:
        if self.config.uses_bearer_token:
            if not self.auth_token:
                self.login()
            return f"Bearer {self.auth_token}"
        raw = f"{self.config.username}:{self.config.password}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": JSON_CONTENT_TYPE, "Authorization": self._authorization()}

    # ── Plumbing ─────────────────────────────────────────────────

    def _send(self, method: str, path: str, payload: Optional[dict] = None) -> Response:
        if payload is not None:
            log_json(f"{method} {path} request body", payload, self.logger)
        body = codec.encode(payload) if payload is not None else None
        return self.transport.send(method, path, body, self._headers())

    def _expect(self, resp: Response, operation: str, *statuses: int) -> None:
        if resp.status_code not in statuses:
            self.logger.debug(f"{operation} returned {resp.status_code}: {resp.text}")
            raise OperationError(operation, resp.status_code, resp.text)

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.transport.close()

    @staticmethod
    def _path(kind: ResourceKind, resource_id: str = "", suffix: str = "") -> str:
        path = kind.collection_path
        if resource_id:
            path = f"{path}/{resource_id}"
        return path + suffix

    # ── Generic verbs ────────────────────────────────────────────

    def create(self, kind: ResourceKind, request: CreateRequest) -> CrudResponse:
        operation = f"create {kind.value}"
        resp = self._send("POST", self._path(kind), codec.create_request_to_wire(request))
        self._expect(resp, operation, 201)
        crud = codec.decode_crud_response(resp.body)
        self.logger.info(f"Created {kind.value} '{request.name}' with ID {crud.cluster_id}")
        return crud

    def update_plan(self, kind: ResourceKind, resource_id: str, plan: Plan) -> None:
        resp = self._send("POST", self._path(kind, resource_id, "/plan"), codec.plan_to_wire(plan))
        self._expect(resp, f"update {kind.value} plan '{resource_id}'", 202)

    def update_metadata(self, kind: ResourceKind, resource_id: str, name: str) -> None:
        resp = self._send("PATCH", self._path(kind, resource_id, "/metadata"), {"name": name})
        self._expect(resp, f"update {kind.value} metadata '{resource_id}'", 200)

    def read(self, kind: ResourceKind, resource_id: str) -> Optional[ResourceInfo]:
        """Fetch resource info, or ``None`` when the control plane reports it absent."""
        resp = self._send("GET", self._path(kind, resource_id))
        self._expect(resp, f"read {kind.value} '{resource_id}'", 200, 404)
        if resp.status_code == 404:
            self.logger.debug(f"{kind.value} '{resource_id}' not found")
            return None
        return codec.decode_info(kind, resp.body)

    def read_plan_activity(self, kind: ResourceKind, resource_id: str) -> Optional[PlanActivityRecord]:
        resp = self._send("GET", self._path(kind, resource_id, "/plan/activity"))
        self._expect(resp, f"read {kind.value} plan activity '{resource_id}'", 200, 404)
        if resp.status_code == 404:
            return None
        return codec.decode_plan_activity(kind, resp.body)

    def shutdown(self, kind: ResourceKind, resource_id: str) -> None:
        resp = self._send("POST", self._path(kind, resource_id, "/_shutdown"))
        self._expect(resp, f"shutdown {kind.value} '{resource_id}'", 202)

    def delete(self, kind: ResourceKind, resource_id: str) -> None:
        resp = self._send("DELETE", self._path(kind, resource_id))
        self._expect(resp, f"delete {kind.value} '{resource_id}'", 200)

    # ── Search cluster ───────────────────────────────────────────

    def create_cluster(self, request: CreateClusterRequest) -> CrudResponse:
        return self.create(ResourceKind.CLUSTER, request)

    def update_cluster_plan(self, cluster_id: str, plan: ClusterPlan) -> None:
        self.update_plan(ResourceKind.CLUSTER, cluster_id, plan)

    def update_cluster_metadata(self, cluster_id: str, name: str) -> None:
        self.update_metadata(ResourceKind.CLUSTER, cluster_id, name)

    def get_cluster(self, cluster_id: str) -> Optional[ClusterInfo]:
        return self.read(ResourceKind.CLUSTER, cluster_id)

    def get_cluster_plan_activity(self, cluster_id: str) -> Optional[PlanActivityRecord]:
        return self.read_plan_activity(ResourceKind.CLUSTER, cluster_id)

    def shutdown_cluster(self, cluster_id: str) -> None:
        self.shutdown(ResourceKind.CLUSTER, cluster_id)

    def delete_cluster(self, cluster_id: str) -> None:
        self.delete(ResourceKind.CLUSTER, cluster_id)

    # ── Companion ────────────────────────────────────────────────

    def create_companion(self, request: CreateCompanionRequest) -> CrudResponse:
        return self.create(ResourceKind.COMPANION, request)

    def update_companion_plan(self, companion_id: str, plan: CompanionPlan) -> None:
        self.update_plan(ResourceKind.COMPANION, companion_id, plan)

    def update_companion_metadata(self, companion_id: str, name: str) -> None:
        self.update_metadata(ResourceKind.COMPANION, companion_id, name)

    def get_companion(self, companion_id: str) -> Optional[CompanionInfo]:
        return self.read(ResourceKind.COMPANION, companion_id)

    def get_companion_plan_activity(self, companion_id: str) -> Optional[PlanActivityRecord]:
        return self.read_plan_activity(ResourceKind.COMPANION, companion_id)

    def shutdown_companion(self, companion_id: str) -> None:
        self.shutdown(ResourceKind.COMPANION, companion_id)

    def delete_companion(self, companion_id: str) -> None:
        self.delete(ResourceKind.COMPANION, companion_id)
