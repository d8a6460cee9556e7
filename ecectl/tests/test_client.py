import pytest
import requests

from conftest import CLUSTERS, COMPANIONS, info_payload
from ecectl.client import ControlPlaneClient
from ecectl.errors import DecodingError, OperationError, TransportError
from ecectl.models import (
    ClusterInfo,
    ClusterPlan,
    CompanionInfo,
    CompanionPlan,
    CreateClusterRequest,
    CreateCompanionRequest,
    NodeRoleSet,
    TopologyElement,
)
from ecectl.transport import HTTPTransport


def test_basic_auth_header(client, transport):
    transport.add("GET", f"{CLUSTERS}/abc123", 200, info_payload("abc123"))

    client.get_cluster("abc123")

    assert transport.requests[0].headers["Authorization"] == "Basic YWRtaW46c2VjcmV0"
    assert transport.requests[0].headers["Content-Type"] == "application/json"


def test_bearer_token_is_fetched_once(config, transport):
    config.auth_mode = "bearer"
    client = ControlPlaneClient(config, transport=transport)
    transport.add("POST", "/api/v1/users/_login", 200, {"token": "tok-123"})
    transport.add("GET", f"{CLUSTERS}/abc123", 200, info_payload("abc123"))

    client.get_cluster("abc123")
    client.get_cluster("abc123")

    assert len(transport.calls("POST", "/api/v1/users/_login")) == 1
    assert transport.calls("POST")[0].payload == {"username": "admin", "password": "secret"}
    for request in transport.calls("GET"):
        assert request.headers["Authorization"] == "Bearer tok-123"


def test_create_cluster_body(client, transport):
    transport.add("POST", CLUSTERS, 201, {"cluster_id": "abc123"})
    plan = ClusterPlan(version="7.10.0", topology=[
        TopologyElement(memory_per_node=2048, node_count_per_zone=2, zone_count=3,
                        roles=NodeRoleSet(ml=True)),
    ], zone_count=3)

    crud = client.create_cluster(CreateClusterRequest(name="logs", plan=plan))

    assert crud.cluster_id == "abc123"
    assert crud.credentials is None
    assert transport.requests[0].payload == {
        "name": "logs",
        "plan": {
            "engine": {"version": "7.10.0"},
            "topology": [{
                "memory_per_node": 2048,
                "node_count_per_zone": 2,
                "zone_count": 3,
                "roles": {"data": True, "ingest": True, "master": True, "ml": True},
            }],
            "zone_count": 3,
        },
    }


def test_create_companion_references_primary(client, transport):
    transport.add("POST", COMPANIONS, 201, {"cluster_id": "kb1"})

    client.create_companion(CreateCompanionRequest(
        name="logs-companion", plan=CompanionPlan(version="7.10.0"), primary_cluster_id="abc123"))

    payload = transport.requests[0].payload
    assert payload["primary_cluster_id"] == "abc123"
    assert "roles" not in payload["plan"]["topology"][0]


def test_read_returns_typed_info(client, transport):
    transport.add("GET", f"{CLUSTERS}/abc123", 200, info_payload("abc123", status="started"))
    transport.add("GET", f"{COMPANIONS}/kb1", 200, info_payload("kb1", name="logs-companion"))

    cluster = client.get_cluster("abc123")
    companion = client.get_companion("kb1")

    assert isinstance(cluster, ClusterInfo)
    assert cluster.status == "started"
    assert cluster.plan_info.current.plan.version == "7.10.0"
    assert isinstance(companion, CompanionInfo)
    assert companion.name == "logs-companion"


def test_read_not_found_is_none(client, transport):
    transport.add("GET", f"{CLUSTERS}/missing", 404, raw='{"errors": [{"code": "clusters.cluster_not_found"}]}')
    transport.add("GET", f"{CLUSTERS}/missing/plan/activity", 404, raw="")

    assert client.get_cluster("missing") is None
    assert client.get_cluster_plan_activity("missing") is None


@pytest.mark.parametrize("call, method, path, status", [
    (lambda c: c.update_cluster_plan("abc123", ClusterPlan(version="7.10.0")),
     "POST", f"{CLUSTERS}/abc123/plan", 200),
    (lambda c: c.update_cluster_metadata("abc123", "logs"), "PATCH", f"{CLUSTERS}/abc123/metadata", 400),
    (lambda c: c.shutdown_companion("kb1"), "POST", f"{COMPANIONS}/kb1/_shutdown", 200),
    (lambda c: c.delete_cluster("abc123"), "DELETE", f"{CLUSTERS}/abc123", 404),
    (lambda c: c.get_cluster("abc123"), "GET", f"{CLUSTERS}/abc123", 500),
])
def test_unexpected_status_raises_operation_error(client, transport, call, method, path, status):
    transport.add(method, path, status, raw="unexpected")

    with pytest.raises(OperationError) as exc:
        call(client)

    assert exc.value.status_code == status
    assert exc.value.body == "unexpected"


def test_malformed_body_raises_decoding_error(client, transport):
    transport.add("POST", CLUSTERS, 201, raw="not json")

    with pytest.raises(DecodingError):
        client.create_cluster(CreateClusterRequest(name="logs", plan=ClusterPlan(version="7.10.0")))


class _BrokenSession:
    verify = True

    def request(self, *args, **kwargs):
        raise requests.ConnectionError("connection refused")


class _CannedSession:
    verify = True

    def __init__(self):
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        resp = requests.Response()
        resp.status_code = 200
        resp._content = b'{"cluster_id": "abc123"}'
        return resp


def test_http_transport_wraps_request_errors():
    transport = HTTPTransport("https://ece.example.com", session=_BrokenSession())

    with pytest.raises(TransportError) as exc:
        transport.send("GET", f"{CLUSTERS}/abc123")

    assert "connection refused" in str(exc.value)


def test_http_transport_sends_to_base_url():
    session = _CannedSession()
    transport = HTTPTransport("https://ece.example.com/", timeout=5, verify=False, session=session)

    resp = transport.send("GET", f"{CLUSTERS}/abc123", headers={"Accept": "application/json"})

    assert resp.status_code == 200
    assert resp.text == '{"cluster_id": "abc123"}'
    method, url, kwargs = session.calls[0]
    assert url == f"https://ece.example.com{CLUSTERS}/abc123"
    assert kwargs["timeout"] == 5
    assert session.verify is False
