"""Tests for the FastAPI application, exercised through Starlette's TestClient."""

import pytest
from fastapi.testclient import TestClient

from api.app import create_app, resolve_port
from utils.config_utils import validate_config
from utils.data_utils import SAMPLE_CASES

# --- Fixtures ---

@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    return TestClient(create_app())

# --- Port resolution ---

def test_port_from_config(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    assert resolve_port(validate_config({"server": {"port": 8123}})) == 8123

def test_port_from_environment(monkeypatch):
    monkeypatch.setenv("PORT", "9001")
    assert resolve_port(validate_config({})) == 9001

def test_non_numeric_port_environment_is_ignored(monkeypatch, caplog):
    monkeypatch.setenv("PORT", "eighty")
    assert resolve_port(validate_config({})) == 7000
    assert "Ignoring non-numeric PORT" in caplog.text

# --- Endpoints ---

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "port": 7000}

def test_sample(client):
    response = client.get("/api/sample")
    assert response.status_code == 200
    assert response.json() == [float(v) for v in SAMPLE_CASES]

def test_analyze_sample(client):
    response = client.post("/api/analyze", json={"cases": list(SAMPLE_CASES), "forecastSteps": 4})
    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"regression", "forecast"}
    assert len(body["forecast"]) == 4

@pytest.mark.parametrize("content, error", [
    (b"", "Missing request body"),
    (b"{oops", "Invalid JSON"),
    (b'{"cases": []}', "Empty 'cases' array"),
    (b'{"cases": [1, "two"]}', "All case values must be numbers"),
])
def test_analyze_errors_are_in_band(client, content, error):
    """
    Scenario: The analysis request is malformed.
    Assumptions: The server still answers 200 and reports the problem in the error field.
    """
    response = client.post("/api/analyze", content=content, headers={"Content-Type": "application/json"})
    assert response.status_code == 200
    assert response.json() == {"error": error}

def test_health_reports_environment_port(monkeypatch):
    monkeypatch.setenv("PORT", "8088")
    response = TestClient(create_app()).get("/api/health")
    assert response.json()["port"] == 8088
