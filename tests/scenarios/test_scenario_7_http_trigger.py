"""Scenario 7: HTTP Trigger

Write events pushed to the FastAPI adapter:
- POST /events runs the processor and reports the outcome
- Failures are still answered with 200
- Malformed events are rejected by validation
- GET /healthz reports template readiness
- GET /metrics exposes the relay counters
"""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from change_relay.adapters.asgi import create_app
from change_relay.core.processor import RecordProcessor
from change_relay.exceptions import EndpointError
from change_relay.storage.memory import MemoryRecordStore
from change_relay.templates import TemplateStore

RECORD_ID = "requests/abc"


def seed(store: MemoryRecordStore, record_id: str, data: dict[str, Any]) -> None:
    store._documents[record_id] = data


def event(before: dict | None, after: dict | None, event_id: str = "evt-1") -> dict[str, Any]:
    return {"recordId": RECORD_ID, "eventId": event_id, "before": before, "after": after}


@pytest.fixture
def client(store, endpoint):
    """Test client for a processor without templating."""
    processor = RecordProcessor(store, endpoint, "input", "output")
    with TestClient(create_app(processor)) as test_client:
        yield test_client


def test_event_is_processed(client, store, endpoint) -> None:
    seed(store, RECORD_ID, {"input": "abc"})

    response = client.post("/events", json=event(None, {"input": "abc"}))

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "processed"
    assert body["changeType"] == "CREATE"
    assert body["error"] is None
    assert isinstance(body["executionTimeMs"], int)
    assert store._documents[RECORD_ID]["output"] == {"result": "abc"}
    assert endpoint.calls == ["abc"]


def test_redelivered_event(client, store, endpoint) -> None:
    seed(store, RECORD_ID, {"input": "abc"})
    payload = event(None, {"input": "abc"})

    client.post("/events", json=payload)
    response = client.post("/events", json=payload)

    assert response.json()["outcome"] == "already_handled"
    assert len(endpoint.calls) == 1


def test_delete_event(client) -> None:
    response = client.post("/events", json=event({"input": "abc"}, None))
    assert response.json() == {
        "outcome": "deleted",
        "changeType": "DELETE",
        "error": None,
        "executionTimeMs": response.json()["executionTimeMs"],
    }


def test_failure_is_answered_with_200(store, endpoint_factory) -> None:
    failing = endpoint_factory(error=EndpointError("upstream down", status_code=503))
    processor = RecordProcessor(store, failing, "input", "output")
    seed(store, RECORD_ID, {"input": "abc"})

    with TestClient(create_app(processor)) as client:
        response = client.post("/events", json=event(None, {"input": "abc"}))

    assert response.status_code == 200
    assert response.json()["outcome"] == "failed"
    assert response.json()["error"] == "upstream down"
    assert store._documents[RECORD_ID]["metadata"]["status"] == "pending"


def test_event_outside_collection_is_skipped(store, endpoint) -> None:
    processor = RecordProcessor(store, endpoint, "input", "output", collection_path="requests")
    seed(store, "archive/abc", {"input": "abc"})

    with TestClient(create_app(processor)) as client:
        response = client.post(
            "/events",
            json={"recordId": "archive/abc", "before": None, "after": {"input": "abc"}},
        )

    assert response.status_code == 200
    assert response.json()["outcome"] == "skipped"
    assert response.json()["changeType"] is None
    assert endpoint.calls == []


def test_malformed_event_rejected(client) -> None:
    response = client.post("/events", json={"before": None, "after": {"input": "x"}})
    assert response.status_code == 422


def test_healthz_without_template(client) -> None:
    assert client.get("/healthz").json() == {
        "status": "ok",
        "templateReady": None,
        "templateVersion": None,
    }


def test_healthz_with_template(store, endpoint) -> None:
    seed(store, "config/template", {"template": {"t": "{{result}}"}, "version": 4})
    templates = TemplateStore(store, "config/template")
    processor = RecordProcessor(store, endpoint, "input", "output", templates=templates)

    with TestClient(create_app(processor)) as client:
        body = client.get("/healthz").json()
        seed(store, RECORD_ID, {"input": "abc"})
        outcome = client.post("/events", json=event(None, {"input": "abc"})).json()["outcome"]

    assert body == {"status": "ok", "templateReady": True, "templateVersion": 4}
    assert outcome == "processed"
    assert store._documents[RECORD_ID]["output"] == {"t": "abc"}
    assert store._documents[RECORD_ID]["metadata"]["currentVersion"] == 4


def test_metrics_exposed(client, store) -> None:
    seed(store, RECORD_ID, {"other": 1})
    client.post("/events", json=event(None, {"other": 1}))

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "relay_events_total" in response.text
    assert 'outcome="skipped"' in response.text
