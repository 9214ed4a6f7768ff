from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from workflow_studio.server.app import create_app
from workflow_studio.studio import Studio
from workflow_studio.workflow.editing import EditResult


@pytest.fixture
def client(studio: Studio) -> TestClient:
    return TestClient(create_app(studio))


def _create(client: TestClient) -> dict:
    response = client.post(
        "/api/workflows",
        json={
            "name": "Email triage",
            "steps": [
                {"id": "s1", "label": "New email", "type": "trigger", "order": 0},
                {
                    "id": "s2",
                    "label": "Draft reply",
                    "order": 1,
                    "assigned_to": {"type": "ai", "agent_name": "Ada"},
                },
                {"id": "s3", "label": "Done", "type": "end", "order": 2},
            ],
        },
    )
    assert response.status_code == 201
    return response.json()


def test_health(client: TestClient) -> None:
    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert health["ok"] is True
    assert "version" in health
    assert health["controlRoomAttached"] is True


def test_activation_is_gated_by_negotiation(client: TestClient, negotiator, make_result) -> None:
    negotiator.results.append(make_result())
    workflow_id = _create(client)["id"]

    refused = client.post(f"/api/workflows/{workflow_id}/activate")
    assert refused.status_code == 409
    assert refused.json() == {"isReady": False, "errors": ["Draft reply needs attention"]}

    base = f"/api/workflows/{workflow_id}/steps/s2/negotiation"
    turn = client.post(f"{base}/messages", json={"text": "Reply to support emails"}).json()
    assert turn["outcome"] == "replied"
    assert turn["session"]["blueprint"]["green_list"] == ["allowed-0", "allowed-1"]

    completed = client.post(f"{base}/complete")
    assert completed.status_code == 200
    assert completed.json()["is_complete"] is True

    assert client.get(f"/api/workflows/{workflow_id}/readiness").json() == {
        "isReady": True,
        "errors": [],
    }
    activated = client.post(f"/api/workflows/{workflow_id}/activate")
    assert activated.status_code == 200
    assert client.get(f"/api/workflows/{workflow_id}").json()["status"] == "active"


def test_negotiation_view_follows_requirements_put(client: TestClient) -> None:
    workflow_id = _create(client)["id"]
    base = f"/api/workflows/{workflow_id}/steps/s2"
    assert client.get(f"{base}/negotiation").json()["marked_complete"] is False

    put = client.put(
        f"{base}/requirements", json={"requirements_text": "edited", "is_complete": True}
    )
    assert put.status_code == 200

    view = client.get(f"{base}/negotiation").json()
    assert view["requirements_text"] == "edited"
    assert view["marked_complete"] is True


def test_empty_post_creates_a_draft(client: TestClient) -> None:
    draft = client.post("/api/workflows", json={}).json()
    assert draft["name"] == "New Workflow"
    assert draft["status"] == "draft"


def test_unknown_workflow_is_404(client: TestClient) -> None:
    response = client.get("/api/workflows/missing")
    assert response.status_code == 404
    assert "missing" in response.json()["detail"]


def test_duplicate_step_ids_are_422(client: TestClient) -> None:
    workflow_id = _create(client)["id"]
    response = client.put(
        f"/api/workflows/{workflow_id}",
        json={
            "steps": [
                {"id": "a", "label": "A", "order": 0},
                {"id": "a", "label": "B", "order": 1},
            ]
        },
    )
    assert response.status_code == 422


def test_chat_edits_workflow(client: TestClient, editor) -> None:
    editor.results.append(EditResult(response="Renamed it."))
    draft_id = client.post("/api/workflows", json={}).json()["id"]

    turn = client.post(f"/api/workflows/{draft_id}/chat", json={"text": "Triage invoices"}).json()

    assert turn["outcome"] == "replied"
    assert turn["workflow"]["name"] == "Triage invoices"
    assert [m["text"] for m in client.get(f"/api/workflows/{draft_id}/chat").json()] == [
        "Triage invoices",
        "Renamed it.",
    ]


def test_control_room_roster_and_events(client: TestClient) -> None:
    snapshot = client.put(
        "/api/control-room/roster",
        json=[{"name": "Ada", "type": "ai", "status": "active"}],
    ).json()
    assert [(w["name"], w["workflow"]) for w in snapshot["watching"]] == [("Ada", "standby")]

    event = {
        "type": "review_needed",
        "data": {
            "workflow_id": "W1",
            "step_id": "s2",
            "action": {"type": "approval_required", "payload": {"message": "Send?"}},
        },
    }
    assert client.post("/api/control-room/events", json=event).json() == {"delivered": 1}
    assert client.post("/api/control-room/events", json=event).status_code == 202

    review = client.get("/api/control-room").json()["review"]
    assert len(review) == 2
    assert review[0]["id"] != review[1]["id"]

    approved = client.post(f"/api/control-room/reviews/{review[0]['id']}/approve")
    assert approved.status_code == 200
    rejected = client.post(f"/api/control-room/reviews/{review[1]['id']}/reject")
    assert rejected.status_code == 200
    assert client.get("/api/control-room").json()["review"] == []

    assert client.post("/api/control-room/reviews/review-404/approve").status_code == 404


def test_execute_requires_active_workflow(client: TestClient) -> None:
    workflow_id = _create(client)["id"]
    response = client.post(f"/api/workflows/{workflow_id}/execute")
    assert response.status_code == 409


def test_delete_workflow(client: TestClient) -> None:
    workflow_id = _create(client)["id"]
    assert client.delete(f"/api/workflows/{workflow_id}").status_code == 204
    assert client.get("/api/workflows").json() == []
