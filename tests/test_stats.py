"""Tests for the TerasliceStats collector."""

from unittest.mock import patch

import pytest
import requests

from teraslice_exporter.exceptions import CollectionError, FetchError
from teraslice_exporter.stats import TerasliceStats
from tests.conftest import BASE_URL, FakeSession, cluster_routes, controller


class TestGetTerasliceApi:
    """Test fetching a single resource."""

    def test_returns_data_and_duration(self, stats):
        response = stats.get_teraslice_api('/v1/cluster/controllers')
        assert response.url == f"{BASE_URL}/v1/cluster/controllers"
        assert response.data[0]["ex_id"] == "A"
        assert response.query_duration >= 0

    def test_non_200_raises(self, session, stats):
        session.routes[f"{BASE_URL}/"] = (503, {"error": "unavailable"})
        with pytest.raises(FetchError) as exc_info:
            stats.get_teraslice_api('/')
        assert exc_info.value.url == f"{BASE_URL}/"
        assert "503" in str(exc_info.value)

    def test_empty_body_raises(self, session, stats):
        session.routes[f"{BASE_URL}/"] = (200, None)
        with pytest.raises(FetchError):
            stats.get_teraslice_api('/')

    def test_invalid_json_raises(self, session, stats):
        session.routes[f"{BASE_URL}/"] = (200, b"<html>not json</html>")
        with pytest.raises(FetchError) as exc_info:
            stats.get_teraslice_api('/')
        assert "invalid JSON" in str(exc_info.value)

    def test_transport_error_raises(self, session, stats):
        session.routes[f"{BASE_URL}/"] = requests.ConnectionError("connection refused")
        with pytest.raises(FetchError) as exc_info:
            stats.get_teraslice_api('/')
        assert isinstance(exc_info.value.cause, requests.ConnectionError)

    def test_timeout_is_passed_to_session(self, session):
        stats = TerasliceStats(BASE_URL, session=session, timeout=2.5)
        with patch.object(session, 'get', wraps=session.get) as get:
            stats.get_teraslice_api('/')
        get.assert_called_once_with(f"{BASE_URL}/", timeout=2.5)


class TestUpdate:
    """Test a full collection cycle."""

    def test_builds_snapshot(self, stats):
        snapshot = stats.update()
        assert stats.snapshot is snapshot
        assert snapshot.base_url == BASE_URL
        assert snapshot.display_url == BASE_URL
        assert snapshot.info.name == "demo"
        assert [j.job_id for j in snapshot.jobs] == ["B"]
        assert [c.ex_id for c in snapshot.controllers] == ["A"]
        assert [e.ex_id for e in snapshot.executions] == ["A"]
        assert list(snapshot.state) == ["10.123.4.111"]

    def test_queries_every_resource(self, session, stats):
        stats.update()
        assert sorted(session.calls) == sorted([
            f"{BASE_URL}/",
            f"{BASE_URL}/v1/jobs?size=200",
            f"{BASE_URL}/v1/cluster/controllers",
            f"{BASE_URL}/v1/cluster/state",
            f"{BASE_URL}/v1/ex/A",
        ])
        # the execution detail is only requested once the controller list is known
        assert session.calls[-1] == f"{BASE_URL}/v1/ex/A"

    def test_jobs_query_size(self, routes):
        routes[f"{BASE_URL}/v1/jobs?size=50"] = routes.pop(f"{BASE_URL}/v1/jobs?size=200")
        stats = TerasliceStats(BASE_URL, session=FakeSession(routes), jobs_query_size=50)
        assert len(stats.update().jobs) == 1

    def test_query_durations_recorded(self, stats):
        durations = stats.update().query_duration.as_dict()
        assert set(durations) == {"info", "jobs", "controllers", "executions", "state"}
        assert all(value >= 0 for value in durations.values())

    def test_one_execution_per_controller(self):
        controllers = [controller(f"ex-{i}", job_id=f"job-{i}") for i in range(25)]
        session = FakeSession(cluster_routes(controllers=controllers, state={}))
        stats = TerasliceStats(BASE_URL, session=session, execution_batch_size=10)
        with patch('teraslice_exporter.stats.pause') as pause:
            snapshot = stats.update()
        assert [e.ex_id for e in snapshot.executions] == [c["ex_id"] for c in controllers]
        # three batches, paused between them only
        assert pause.call_count == 2
        pause.assert_called_with(stats.execution_batch_delay)

    def test_no_controllers_means_no_execution_queries(self, session):
        session.routes = cluster_routes(controllers=[], state={})
        stats = TerasliceStats(BASE_URL, session=session)
        snapshot = stats.update()
        assert snapshot.executions == ()
        assert not any("/v1/ex/" in url for url in session.calls)

    def test_display_url(self, session):
        stats = TerasliceStats(BASE_URL, display_url="https://teraslice.example.com", session=session)
        assert stats.update().display_url == "https://teraslice.example.com"


class TestUpdateFailures:
    """Test that a failed cycle never replaces the snapshot."""

    def test_execution_failure_keeps_previous_snapshot(self, session, stats):
        previous = stats.update()

        session.routes = cluster_routes(controllers=[controller("A"), controller("C", job_id="D")])
        session.routes[f"{BASE_URL}/v1/ex/C"] = (500, {"error": "boom"})

        with pytest.raises(CollectionError) as exc_info:
            stats.update()
        assert f"{BASE_URL}/v1/ex/C" in str(exc_info.value)
        assert exc_info.value.url == f"{BASE_URL}/v1/ex/C"
        assert stats.snapshot is previous
        assert [c.ex_id for c in stats.snapshot.controllers] == ["A"]

    def test_first_phase_failure(self, session, stats):
        session.routes[f"{BASE_URL}/v1/cluster/state"] = requests.Timeout("read timed out")
        with pytest.raises(CollectionError) as exc_info:
            stats.update()
        assert exc_info.value.url == f"{BASE_URL}/v1/cluster/state"
        assert stats.snapshot is None
        assert not any("/v1/ex/" in url for url in session.calls)

    def test_malformed_payload(self, session, stats):
        session.routes[f"{BASE_URL}/v1/cluster/controllers"] = (200, {"not": "a list"})
        with pytest.raises(CollectionError) as exc_info:
            stats.update()
        assert exc_info.value.url == f"{BASE_URL}/v1/cluster/controllers"

    def test_controller_missing_ex_id(self, session, stats):
        session.routes[f"{BASE_URL}/v1/cluster/controllers"] = (200, [{"job_id": "B"}])
        with pytest.raises(CollectionError):
            stats.update()

    def test_count_too_large_for_float(self, session, stats):
        session.routes[f"{BASE_URL}/v1/cluster/controllers"] = (200, [controller("A", processed=10 ** 400)])
        with pytest.raises(CollectionError) as exc_info:
            stats.update()
        assert exc_info.value.url == f"{BASE_URL}/v1/cluster/controllers"
        assert stats.snapshot is None

    def test_unexpected_error_is_wrapped(self, session, stats):
        previous = stats.update()
        # urllib3 raises ValueError, not a RequestException, for an invalid timeout
        session.routes[f"{BASE_URL}/"] = ValueError("Attempted to set connect timeout to 0.0")
        with pytest.raises(CollectionError) as exc_info:
            stats.update()
        assert isinstance(exc_info.value.cause, ValueError)
        assert stats.snapshot is previous


def test_close_only_closes_owned_session(session):
    stats = TerasliceStats(BASE_URL, session=session)
    stats.close()
    assert not session.closed

    owned = TerasliceStats(BASE_URL)
    with patch.object(owned.session, 'close') as close:
        owned.close()
    close.assert_called_once()
