import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

from ecectl.client import ControlPlaneClient
from ecectl.config import Config
from ecectl.engine import ConvergenceEngine
from ecectl.lifecycle import ClusterLifecycle
from ecectl.transport import Response

CLUSTERS = "/api/v1/clusters/elasticsearch"
COMPANIONS = "/api/v1/clusters/kibana"


@dataclass
class SentRequest:
    method: str
    path: str
    payload: Optional[dict] = None
    headers: Dict[str, str] = field(default_factory=dict)


class FakeTransport:
    """Scripted transport: each (method, path) answers from a queue.

    The last queued response for a route repeats once the others are used.
    A queued exception is raised instead of answered.
    """

    def __init__(self):
        self.routes = {}
        self.requests: List[SentRequest] = []
        self.closed = False

    def add(self, method, path, status, payload=None, raw=None):
        if raw is not None:
            body = raw.encode("utf-8")
        elif payload is not None:
            body = json.dumps(payload).encode("utf-8")
        else:
            body = b""
        self.routes.setdefault((method, path), []).append(Response(status_code=status, body=body))
        return self

    def add_error(self, method, path, error):
        self.routes.setdefault((method, path), []).append(error)
        return self

    def send(self, method, path, body=None, headers=None):
        payload = json.loads(body) if body else None
        self.requests.append(SentRequest(method, path, payload, dict(headers or {})))
        queue = self.routes.get((method, path))
        if not queue:
            raise AssertionError(f"unexpected request: {method} {path}")
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, Exception):
            raise answer
        return answer

    def close(self):
        self.closed = True

    def calls(self, method=None, path=None) -> List[SentRequest]:
        return [r for r in self.requests
                if (method is None or r.method == method) and (path is None or r.path == path)]


class FakeClock:
    """Clock whose sleep only advances simulated time."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def info_payload(cluster_id, name="logs", status="started", version="7.10.0",
                 topology=None, instances=None, plan_zone_count=1):
    """Read response body for a cluster or companion."""
    if topology is None:
        topology = [{"memory_per_node": 1024, "node_count_per_zone": 1, "zone_count": 1,
                     "roles": {"data": True, "ingest": True, "master": True, "ml": False}}]
    if instances is None:
        instances = [{"instance_name": "instance-0000000000",
                      "service_roles": ["master", "data", "ingest"]}]
    return {
        "cluster_id": cluster_id,
        "name": name,
        "status": status,
        "healthy": True,
        "plan_info": {
            "healthy": True,
            "current": {
                "healthy": True,
                "attempt_id": "attempt-0000000000",
                "plan": {
                    "engine": {"version": version},
                    "topology": topology,
                    "zone_count": plan_zone_count,
                },
            },
        },
        "topology": {"healthy": True, "instances": instances},
    }


def activity_payload(healthy=True, step_log=None):
    return {
        "healthy": healthy,
        "current": {
            "healthy": healthy,
            "attempt_id": "attempt-0000000001",
            "step_log": step_log or [],
        },
    }


def cluster_tree(name="logs", version="7.10.0", companion=None, **element):
    tree = {
        "name": name,
        "plan": {"engine": {"version": version}, "topology": [element] if element else []},
    }
    if companion is not None:
        tree["companion"] = companion
    return tree


@pytest.fixture
def config(tmp_path):
    return Config(
        url="https://ece.example.com:12443",
        username="admin",
        password="secret",
        timeout=60,
        poll_interval=10,
        settle_delay=5,
        state_path=str(tmp_path / "state.json"),
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(config, transport):
    return ControlPlaneClient(config, transport=transport)


@pytest.fixture
def engine(client, clock):
    return ConvergenceEngine.from_config(client, clock=clock)


@pytest.fixture
def lifecycle(engine):
    return ClusterLifecycle(engine)
