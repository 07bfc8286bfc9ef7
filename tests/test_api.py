"""Tests for the HTTP control surface."""

import inspect
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from ledger_indexer import main
from ledger_indexer.core.log_buffer import get_log_buffer
from ledger_indexer.ledger.clients.mock_client import MockLedgerClient, make_transaction
from ledger_indexer.ledger.pipeline import build_pipeline
from ledger_indexer.ledger.poller import set_poller


def mock_pipeline(progress):
    client = MockLedgerClient([make_transaction(v) for v in (1, 2, 3)])
    return build_pipeline(main.settings, client=client, progress=progress)


@pytest.fixture
def pipeline(memory_progress):
    memory_progress.version = 0
    pipeline = mock_pipeline(memory_progress)
    main.app.state.pipeline = pipeline
    set_poller(pipeline.poller)
    yield pipeline
    main.app.state.pipeline = None
    set_poller(None)


@pytest.fixture
def client():
    return TestClient(main.app)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "ledger-indexer"
        assert "time" in body

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"x-request-id": "abc-123"})

        assert response.headers["x-request-id"] == "abc-123"

    @pytest.mark.parametrize("route", ["health", "indexer_status", "recent_logs"])
    def test_routes_run_on_event_loop(self, route):
        assert inspect.iscoroutinefunction(getattr(main, route))


class TestStatus:
    def test_status_without_pipeline(self, client):
        response = client.get("/status")

        assert response.status_code == 200
        assert response.json()["running"] is False
        assert response.json()["last_version"] is None

    def test_manual_poll_then_status(self, client, pipeline):
        poll = client.post("/indexer/poll")

        assert poll.status_code == 200
        assert poll.json()["status"] == "success"
        assert poll.json()["details"]["to_version"] == 3

        status = client.get("/status").json()
        assert status["last_version"] == 3
        assert status["running"] is False
        assert status["rotator"]["total_rotations"] == 0
        assert status["notifier"] is None

    def test_metrics(self, client, pipeline):
        client.post("/indexer/poll")

        response = client.get("/indexer/metrics", params={"hours": 24})

        assert response.status_code == 200
        assert response.json()["aggregate"]["total_runs"] == 1

    def test_metrics_rejects_bad_window(self, client, pipeline):
        assert client.get("/indexer/metrics", params={"hours": 0}).status_code == 422

    def test_poll_without_pipeline(self, client):
        set_poller(None)

        assert client.post("/indexer/poll").status_code == 503


class TestLogs:
    def test_recent_logs(self, client):
        client.get("/health")

        response = client.get("/logs", params={"limit": 5})

        assert response.status_code == 200
        body = response.json()
        assert 0 < body["count"] <= 5
        assert any(entry["message"] == "request.completed" for entry in body["logs"])

    def test_limit_capped(self, client):
        assert client.get("/logs", params={"limit": 501}).status_code == 422

    def test_buffer_size_from_settings(self):
        assert get_log_buffer().max_size == main.settings.LOG_BUFFER_SIZE


class TestLifespan:
    def test_start_and_stop_through_routes(self, monkeypatch, memory_progress):
        monkeypatch.setattr(main, "create_tables", AsyncMock())
        monkeypatch.setattr(
            main, "build_pipeline", lambda settings: mock_pipeline(memory_progress)
        )

        with TestClient(main.app) as client:
            assert client.get("/status").json()["running"] is False

            started = client.post("/indexer/start")
            assert started.json()["status"] == "started"
            assert started.json()["last_version"] == 3
            assert client.post("/indexer/start").json()["status"] == "already_running"

            stopped = client.post("/indexer/stop")
            assert stopped.json()["status"] == "stopped"
            assert client.post("/indexer/stop").json()["status"] == "not_running"

        assert memory_progress.saves == [3]

    def test_unreachable_ledger_at_boot_keeps_api_up(
        self, monkeypatch, memory_progress
    ):
        ledger = MockLedgerClient([make_transaction(v) for v in (1, 2)], failure_rate=1.0)
        monkeypatch.setattr(main, "create_tables", AsyncMock())
        monkeypatch.setattr(main.settings, "INDEXER_AUTOSTART", True)
        monkeypatch.setattr(
            main,
            "build_pipeline",
            lambda settings: build_pipeline(
                settings, client=ledger, progress=memory_progress
            ),
        )

        with TestClient(main.app) as client:
            assert client.get("/health").status_code == 200
            assert client.get("/status").json()["running"] is False
            assert client.post("/indexer/start").status_code == 502

            ledger.clear_failures()
            started = client.post("/indexer/start")
            assert started.json()["status"] == "started"
            assert started.json()["last_version"] == 2

        assert memory_progress.saves == [2]
