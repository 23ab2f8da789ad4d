"""Tests for health endpoints without services wired."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from personnel_ledger.api.health import router


def test_live():
    app = FastAPI()
    app.include_router(router)

    response = TestClient(app).get("/health/live")

    assert response.json() == {"status": "alive"}


def test_not_ready_without_services():
    app = FastAPI()
    app.include_router(router)

    response = TestClient(app).get("/health/ready")

    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"]["database"] == "not_configured"
    assert data["checks"]["ledger"] == "not_configured"
    assert data["open_review_items"] is None
