"""
Integration Tests - HTTP API

Drives the FastAPI adapter with a core over in-memory storage and a
scripted submitter.
"""

import time
from pathlib import Path
from typing import Iterator
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from astral.config import Settings
from astral.infrastructure.storage.key_value_store import InMemoryKeyValueStore
from astral.main import create_application
from astral.services.orchestration import ResilienceCore
from conftest import FakeSubmitter, fast_device_signals

CRISIS_TEXT = "I want to end it all tonight"


@pytest.fixture
def client(test_settings: Settings, submitter: FakeSubmitter) -> Iterator[TestClient]:
    """Test client over an in-memory core with a scripted submitter."""
    core = ResilienceCore(
        test_settings,
        store=InMemoryKeyValueStore(),
        submitter=submitter,
        signals=fast_device_signals(),
    )
    app = create_application(core=core, settings=test_settings)

    @app.get("/boom", include_in_schema=False)
    async def boom() -> None:
        raise RuntimeError("I want to end it all")

    with TestClient(app) as test_client:
        yield test_client


class TestCrisisEndpoints:
    """Crisis detection routes."""

    def test_analyze_returns_alert_without_echoing_text(self, client: TestClient) -> None:
        """Test that analysis returns an alert and never echoes the text."""
        response = client.post("/api/v1/crisis/analyze", json={"text": CRISIS_TEXT})

        assert response.status_code == 200
        body = response.json()
        assert body["result"]["risk_level"] == "critical"
        assert body["alert"]["emergency_mode"] is True
        assert body["alert"]["resources"]
        assert CRISIS_TEXT not in response.text

    def test_short_text_is_neutral(self, client: TestClient) -> None:
        """Test a neutral response for short text."""
        response = client.post("/api/v1/crisis/analyze", json={"text": "hi"})

        assert response.json()["result"]["risk_level"] == "none"
        assert response.json()["alert"] is None

    def test_debounced_analysis(self, client: TestClient) -> None:
        """Test the debounced analysis endpoint."""
        response = client.post(
            "/api/v1/crisis/analyze",
            json={"text": CRISIS_TEXT, "debounce": True},
        )

        assert response.json() == {"scheduled": True, "sequence": 1}

        deadline = time.monotonic() + 5
        state = client.get("/api/v1/crisis/alert").json()
        while state["alert"] is None and time.monotonic() < deadline:
            time.sleep(0.05)
            state = client.get("/api/v1/crisis/alert").json()

        assert state["alert"]["severity"] == "critical"
        assert state["history_size"] == 1

    def test_dismiss_alert(self, client: TestClient) -> None:
        """Test alert dismissal."""
        client.post("/api/v1/crisis/analyze", json={"text": CRISIS_TEXT})

        assert client.post("/api/v1/crisis/alert/dismiss").json() == {"dismissed": True}
        assert client.get("/api/v1/crisis/alert").json()["alert"] is None

    def test_take_and_mark_actions(self, client: TestClient) -> None:
        """Test taking actions and marking one executed."""
        client.post("/api/v1/crisis/analyze", json={"text": CRISIS_TEXT})

        actions = client.post("/api/v1/crisis/actions/take").json()["actions"]
        action_id = actions[0]["id"]
        response = client.post(f"/api/v1/crisis/actions/{action_id}", json={"status": "executed"})

        assert response.status_code == 200
        assert response.json() == {"action_id": action_id, "status": "executed"}

    def test_mark_unknown_action(self, client: TestClient) -> None:
        """Test 404 for an unknown action."""
        response = client.post(f"/api/v1/crisis/actions/{uuid4()}", json={"status": "failed"})

        assert response.status_code == 404


class TestOfflineEndpoints:
    """Offline and sync routes."""

    def test_status(self, client: TestClient) -> None:
        """Test the offline status document."""
        body = client.get("/api/v1/offline/status").json()

        assert body["is_online"] is True
        assert body["queue_size"] == 0
        assert body["degraded"] is False

    def test_enqueue_and_sync(self, client: TestClient, submitter: FakeSubmitter) -> None:
        """Test queueing an item and forcing a sync."""
        client.post("/api/v1/offline/network", json={"online": False})

        response = client.post(
            "/api/v1/offline/sync-queue",
            json={"type": "mood-entry", "payload": {"mood": 3}},
        )

        assert response.status_code == 202
        item_id = response.json()["id"]
        assert response.json()["queue_size"] == 1
        assert client.post("/api/v1/offline/sync").json()["aborted"] is True

        assert client.post("/api/v1/offline/network", json={"online": True}).json() == {"online": True}
        result = client.post("/api/v1/offline/sync").json()

        assert item_id in submitter.calls
        assert result["remaining"] == 0

    def test_invalid_priority_rejected(self, client: TestClient) -> None:
        """Test that an out-of-range priority is rejected."""
        response = client.post(
            "/api/v1/offline/sync-queue",
            json={"type": "goal", "payload": {}, "priority": 42},
        )

        assert response.status_code == 422

    def test_resources(self, client: TestClient) -> None:
        """Test the cached resource listing."""
        resources = client.get("/api/v1/offline/resources", params={"type": "hotline"}).json()["resources"]

        assert resources
        assert all(r["type"] == "hotline" for r in resources)

    def test_crisis_feature_always_available(self, client: TestClient) -> None:
        """Test that the crisis hotline feature is available."""
        body = client.get("/api/v1/offline/features/crisis-hotline").json()

        assert body == {"feature": "crisis-hotline", "available": True}

    def test_clear_data_keeps_crisis_resources(self, client: TestClient) -> None:
        """Test that clearing keeps crisis resources."""
        assert "removed" in client.delete("/api/v1/offline/data").json()
        assert client.get("/api/v1/offline/resources").json()["resources"]

    def test_refresh_ignores_client_supplied_path(self, client: TestClient) -> None:
        """Test that a body cannot choose the catalogue file."""
        response = client.post(
            "/api/v1/offline/resources/refresh",
            json={"catalogue_path": "/etc/passwd"},
        )

        assert response.json() == {"updated": True}

    def test_refresh_with_missing_configured_catalogue(
        self, client: TestClient, test_settings: Settings, tmp_path: Path
    ) -> None:
        """Test that a missing configured catalogue reports no update."""
        test_settings.resources.catalogue_path = str(tmp_path / "missing.json")

        response = client.post("/api/v1/offline/resources/refresh")

        assert response.json() == {"updated": False}


class TestCapabilities:
    """Capability reporting routes."""

    def test_slow_connection_report(self, client: TestClient) -> None:
        """Test strategy selection from a capability report."""
        response = client.post(
            "/api/v1/capabilities",
            json={"hardware_concurrency": 8, "connection": {"effective_type": "2g"}},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["strategy"]["cache_strategy"] == "aggressive"
        assert body["strategy"]["offline_crisis_support"] is True
        assert body["thresholds"]["slow_connection"] is True

    def test_malformed_report(self, client: TestClient) -> None:
        """Test that a malformed report is rejected."""
        response = client.post("/api/v1/capabilities", json={"battery": {"level": "empty"}})

        assert response.status_code == 422


class TestOperationalEndpoints:
    """Health, metrics and middleware."""

    def test_liveness(self, client: TestClient) -> None:
        """Test the liveness probe."""
        assert client.get("/api/v1/health/live").json()["status"] == "healthy"

    def test_readiness(self, client: TestClient) -> None:
        """Test the readiness probe."""
        response = client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["storage"]["status"] == "healthy"

    def test_metrics(self, client: TestClient) -> None:
        """Test the Prometheus endpoint."""
        client.get("/api/v1/health/live")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "astral_http_requests_total" in response.text

    def test_correlation_id_echoed(self, client: TestClient) -> None:
        """Test that the correlation id is echoed back."""
        response = client.get("/api/v1/health/live", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_unhandled_error_is_sanitized(self, client: TestClient) -> None:
        """Test that unhandled errors hide their message."""
        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert "end it all" not in response.text
