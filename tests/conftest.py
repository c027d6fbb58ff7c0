"""Shared fixtures: canned Teraslice API payloads and a fake requests session."""

import json
import threading

import pytest
import requests
from prometheus_client import CollectorRegistry

from teraslice_exporter.metrics import TerasliceMetrics
from teraslice_exporter.stats import TerasliceStats

BASE_URL = "http://cluster.local"

ENV_VARS = [
    "TERASLICE_URL",
    "TERASLICE_DISPLAY_URL",
    "TERASLICE_REQUEST_TIMEOUT",
    "TERASLICE_JOBS_QUERY_SIZE",
    "TERASLICE_EXECUTION_BATCH_SIZE",
    "TERASLICE_EXECUTION_BATCH_DELAY",
    "TERASLICE_QUERY_DELAY",
    "PORT",
    "DEBUG",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FILE",
]


def make_response(status_code, body):
    response = requests.Response()
    response.status_code = status_code
    if body is None:
        response._content = b""
    elif isinstance(body, bytes):
        response._content = body
    else:
        response._content = json.dumps(body).encode()
    return response


class FakeSession:
    """Stands in for requests.Session; routes map full URLs to (status, body) or an exception."""

    def __init__(self, routes):
        self.routes = dict(routes)
        self.headers = {}
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def get(self, url, timeout=None):
        with self._lock:
            self.calls.append(url)
        if url not in self.routes:
            return make_response(404, {"error": "not found"})
        route = self.routes[url]
        if isinstance(route, Exception):
            raise route
        status_code, body = route
        return make_response(status_code, body)

    def close(self):
        self.closed = True


def controller(ex_id, job_id="B", name="job1", **overrides):
    data = {
        "ex_id": ex_id,
        "job_id": job_id,
        "name": name,
        "workers_available": 0,
        "workers_active": 2,
        "workers_joined": 2,
        "workers_reconnected": 0,
        "workers_disconnected": 0,
        "job_duration": 0,
        "failed": 1,
        "subslices": 0,
        "queued": 3,
        "processed": 10,
        "slicers": 1,
        "started": "2024-01-01T00:00:00.000Z",
        "queuing_complete": "",
    }
    data.update(overrides)
    return data


def execution(ex_id, job_id="B", name="job1", **overrides):
    data = {
        "ex_id": ex_id,
        "job_id": job_id,
        "name": name,
        "cpu": 1.5,
        "memory": 1073741824,
        "_status": "running",
        "_created": "2024-01-01T00:00:00Z",
        "_updated": "2024-01-01T00:01:00Z",
        "slicers": 1,
        "workers": 2,
        "lifecycle": "persistent",
        "_context": "ex",
    }
    data.update(overrides)
    return data


def cluster_routes(controllers=None, executions=None, state=None, base_url=BASE_URL):
    controllers = [controller("A")] if controllers is None else controllers
    if executions is None:
        executions = [execution(c["ex_id"], c["job_id"], c["name"]) for c in controllers]
    if state is None:
        state = {
            "10.123.4.111": {
                "node_id": "10.123.4.111",
                "hostname": "10.123.4.111",
                "state": "connected",
                "active": [
                    {
                        "assignment": "worker",
                        "ex_id": "A",
                        "job_id": "B",
                        "image": "teraslice:v0.70.0_12345",
                        "pod_name": "ts-wkr-job1-a",
                        "worker_id": "ts-wkr-job1-a",
                    },
                ],
            },
        }
    routes = {
        f"{base_url}/": (200, {
            "arch": "x64",
            "clustering_type": "kubernetes",
            "name": "demo",
            "node_version": "v18.19.0",
            "platform": "linux",
            "teraslice_version": "v0.87.0",
        }),
        f"{base_url}/v1/jobs?size=200": (200, [{"job_id": "B", "name": "job1"}]),
        f"{base_url}/v1/cluster/controllers": (200, controllers),
        f"{base_url}/v1/cluster/state": (200, state),
    }
    for ex in executions:
        routes[f"{base_url}/v1/ex/{ex['ex_id']}"] = (200, ex)
    return routes


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def routes():
    return cluster_routes()


@pytest.fixture
def session(routes):
    return FakeSession(routes)


@pytest.fixture
def stats(session):
    return TerasliceStats(BASE_URL, session=session, execution_batch_delay=0)


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return TerasliceMetrics(registry)
