import inspect

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from distcalc.config import OrchestratorConfig
from distcalc.web.server import create_app


@pytest.fixture
def client():
    return TestClient(create_app(config=OrchestratorConfig(operation_time_ms=250)))


def test_calculate_returns_created_id(client):
    response = client.post("/api/v1/calculate", json={"expression": "2+2*2"})
    assert response.status_code == 201
    assert response.json() == {"id": "1"}


def test_calculate_rejects_malformed_body(client):
    assert client.post("/api/v1/calculate", json={"expr": "1+1"}).status_code == 400
    response = client.post(
        "/api/v1/calculate", content="not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400


@pytest.mark.parametrize(
    "expression, message",
    [("", "invalid expression"), ("(2+3", "mismatched parentheses"), ("2 + a", "invalid character: a")],
)
def test_calculate_reports_compiler_errors(client, expression, message):
    response = client.post("/api/v1/calculate", json={"expression": expression})
    assert response.status_code == 500
    assert message in response.json()["detail"]
    assert client.get("/api/v1/expressions").json() == []


def test_expression_listing_and_lookup(client):
    client.post("/api/v1/calculate", json={"expression": "1+1"})
    client.post("/api/v1/calculate", json={"expression": "7"})

    listing = client.get("/api/v1/expressions")
    assert listing.status_code == 200
    assert [(item["id"], item["status"]) for item in listing.json()] == [("1", "pending"), ("2", "done")]

    single = client.get("/api/v1/expressions/2")
    assert single.status_code == 200
    assert single.json()["result"] == 7

    assert client.get("/api/v1/expressions/3").status_code == 404
    assert client.get("/api/v1/expressions/abc").status_code == 404


def test_task_round_trip_completes_expression(client):
    client.post("/api/v1/calculate", json={"expression": "(2+3)*4"})

    first = client.get("/internal/task")
    assert first.status_code == 200
    assert first.json() == {
        "id": "1",
        "arg1": 2.0,
        "arg2": 3.0,
        "operation": "+",
        "operation_time": 250,
        "seq": 0,
    }
    assert client.get("/api/v1/expressions/1").json()["status"] == "in_progress"
    assert client.post("/internal/task", json={"id": "1", "result": 5, "seq": 0}).status_code == 200

    second = client.get("/internal/task").json()
    assert (second["arg1"], second["arg2"], second["operation"]) == (5.0, 4.0, "*")
    client.post("/internal/task", json={"id": "1", "result": 20, "seq": 1})

    assert client.get("/internal/task").status_code == 404
    assert client.get("/api/v1/expressions/1").json() == {
        "id": "1",
        "status": "done",
        "result": 20.0,
        "expression": "(2+3)*4",
    }


def test_task_failure_report_marks_expression_failed(client):
    client.post("/api/v1/calculate", json={"expression": "1+2"})
    client.get("/internal/task")
    response = client.post("/internal/task", json={"id": "1", "error": "division by zero"})
    assert response.status_code == 200
    body = client.get("/api/v1/expressions/1").json()
    assert body["status"] == "failed"
    assert body["error"] == "division by zero"


def test_task_report_validation(client):
    assert client.post("/internal/task", json={"result": 1}).status_code == 400
    assert client.post("/internal/task", json={"id": "1"}).status_code == 400
    assert client.post("/internal/task", json={"id": "5", "result": 1}).status_code == 404


def test_retried_report_is_not_applied_twice(client):
    client.post("/api/v1/calculate", json={"expression": "2+2*2"})
    client.get("/internal/task")
    assert client.post("/internal/task", json={"id": "1", "result": 4, "seq": 0}).json() == {"accepted": True}
    assert client.post("/internal/task", json={"id": "1", "result": 4, "seq": 0}).json() == {"accepted": False}
    assert client.get("/api/v1/expressions/1").json()["status"] == "in_progress"


def test_out_of_range_literal_is_rejected(client):
    response = client.post("/api/v1/calculate", json={"expression": "1e999+1"})
    assert response.status_code == 500
    assert "invalid character: 1e999" in response.json()["detail"]
    assert client.get("/internal/task").status_code == 404


def test_route_handlers_run_in_threadpool(client):
    endpoints = [route.endpoint for route in client.app.routes if isinstance(route, APIRoute)]
    assert len(endpoints) == 5
    assert not any(inspect.iscoroutinefunction(endpoint) for endpoint in endpoints)
