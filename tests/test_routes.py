# ============================================================================
# API ROUTE TESTS
# ============================================================================
# EPOCH: 1 - STACK SUPERVISION
# STATUS: Tests - Supervisor HTTP surface
# PURPOSE: Verify /livez, /readyz and the /api/v1 stack endpoints
# CREATED: 16 OCT 2026
# ============================================================================
"""
API Route Tests

Uses FastAPI TestClient against an app with both routers mounted and a
real Orchestrator driven by the fake executor.

Run with:
    pytest tests/test_routes.py -v
"""

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import router, set_orchestrator
from health.router import health_router, set_state_source
from orchestrator import Orchestrator


@pytest.fixture
def orchestrator(parking_graph, fake_executor, fake_prober, recording_sleep):
    return Orchestrator(
        parking_graph,
        executor=fake_executor,
        prober=fake_prober,
        sleep=recording_sleep,
    )


@pytest.fixture
def client(orchestrator):
    app = FastAPI()
    app.include_router(health_router)
    app.include_router(router, prefix="/api/v1")
    set_orchestrator(orchestrator)
    set_state_source(orchestrator)
    yield TestClient(app)
    set_orchestrator(None)
    set_state_source(None)


# ============================================================================
# HEALTH
# ============================================================================

class TestHealthEndpoints:

    def test_livez(self, client):
        response = client.get("/livez")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_readyz_before_up(self, client):
        response = client.get("/readyz")

        assert response.status_code == 503
        assert response.json()["services"] == {
            "auth": "pending",
            "db": "pending",
            "gateway": "pending",
        }

    def test_readyz_after_up(self, client, orchestrator):
        asyncio.run(orchestrator.up())

        response = client.get("/readyz")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "services": 3}

    def test_readyz_without_orchestrator(self):
        app = FastAPI()
        app.include_router(health_router)
        set_state_source(None)

        response = TestClient(app).get("/readyz")

        assert response.status_code == 503


# ============================================================================
# STACK
# ============================================================================

class TestStackEndpoints:

    def test_status(self, client, orchestrator):
        asyncio.run(orchestrator.up())

        response = client.get("/api/v1/status")

        assert response.status_code == 200
        data = response.json()
        assert data["stack_id"] == "test-stack"
        assert data["all_ready"] is True
        assert data["orchestrator"]["last_outcome"] == "completed"
        assert [s["service_id"] for s in data["services"]] == ["auth", "db", "gateway"]

    def test_plan(self, client):
        response = client.get("/api/v1/plan")

        assert response.status_code == 200
        assert response.json()["stages"] == [["db"], ["auth"], ["gateway"]]
        assert response.json()["teardown_order"] == [["gateway"], ["auth"], ["db"]]

    def test_service_detail(self, client):
        response = client.get("/api/v1/services/auth")

        assert response.status_code == 200
        data = response.json()
        assert data["stage"] == 1
        assert data["depends_on"] == ["db"]
        assert data["dependents"] == ["gateway"]
        assert data["state"]["phase"] == "pending"

    def test_unknown_service_is_404(self, client):
        response = client.get("/api/v1/services/nope")

        assert response.status_code == 404
        assert "nope" in response.json()["detail"]

    def test_cancel_when_idle(self, client):
        response = client.post("/api/v1/cancel")

        assert response.status_code == 200
        assert response.json()["cancelled"] is False

    def test_not_initialized(self):
        app = FastAPI()
        app.include_router(router, prefix="/api/v1")
        set_orchestrator(None)

        response = TestClient(app).get("/api/v1/status")

        assert response.status_code == 500
