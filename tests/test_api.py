import pytest
from fastapi.testclient import TestClient

from app.api import routes
from app.api.routes import get_service
from app.main import app

VISIT_QUESTION = "What time would work best for your visit?"


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _start(client, user_id="chris"):
    response = client.post("/api/sessions", json={"user_id": user_id})
    assert response.status_code == 200
    return response.json()


def test_stage_catalog(client):
    response = client.get("/api/stages")

    assert response.status_code == 200
    stages = response.json()
    assert [s["value"] for s in stages][:2] == ["trust_building", "situation_discovery"]
    assert len(stages) == 9
    assert stages[-1]["label"] == "Next Steps"


def test_start_session(client):
    body = _start(client)

    assert body["user_id"] == "chris"
    assert len(body["messages"]) == 1
    assert body["progress"]["current_stage"] == "trust_building"
    assert body["progress"]["completed_stages"] == []


def test_message_advances_stage_and_refetches(client, backend):
    session_id = _start(client)["session_id"]
    backend.reply_with(
        {"text": "Why did you reach out?", "metadata": {"stage": "Situation Discovery"}}
    )
    backend.set_record(
        {
            "situation_discovery": [
                {
                    "question": "What made you decide to reach out about senior living today?",
                    "answer": "just exploring",
                }
            ]
        }
    )

    response = client.post(f"/api/sessions/{session_id}/messages", json={"message": "Hello"})

    assert response.status_code == 200
    body = response.json()
    assert body["reply"]["content"] == "Why did you reach out?"
    assert body["progress"]["current_stage"] == "situation_discovery"
    assert body["progress"]["completed_stages"] == ["trust_building"]
    assert body["progress"]["notification"] == "situation_discovery"
    assert body["unexpected_situation"] is False

    # background refetch already ran
    intake = client.get(f"/api/sessions/{session_id}/intake").json()
    assert intake["form"]["reason_for_call"] == "just exploring"


def test_empty_message_is_rejected(client):
    session_id = _start(client)["session_id"]
    response = client.post(f"/api/sessions/{session_id}/messages", json={"message": "   "})
    assert response.status_code == 422


def test_unknown_session_is_404(client):
    assert client.get("/api/sessions/does-not-exist/progress").status_code == 404
    assert client.post("/api/sessions/does-not-exist/refresh").status_code == 404


def test_refresh_reports_completion(client, backend):
    session_id = _start(client)["session_id"]
    backend.set_record({"visit_scheduling": [{"question": VISIT_QUESTION, "answer": "Tuesday 2PM"}]})

    body = client.post(f"/api/sessions/{session_id}/refresh").json()
    assert body["completion"] == {
        "shown": True,
        "scheduled_time": "Tuesday 2PM",
        "modal_open": True,
    }

    body = client.post(f"/api/sessions/{session_id}/completion/dismiss").json()
    assert body["completion"]["shown"] is True
    assert body["completion"]["modal_open"] is False


def test_manual_intake_edit(client):
    session_id = _start(client)["session_id"]

    response = client.patch(
        f"/api/sessions/{session_id}/intake",
        json={"fields": {"referral_source": "A friend"}},
    )
    assert response.status_code == 200
    assert response.json()["form"]["referral_source"] == "A friend"

    response = client.patch(
        f"/api/sessions/{session_id}/intake",
        json={"fields": {"shoe_size": "9"}},
    )
    assert response.status_code == 422


def test_reset(client, backend):
    session_id = _start(client)["session_id"]
    backend.reply_with({"text": "ok", "metadata": {"stage": "needs_matching"}})
    client.post(f"/api/sessions/{session_id}/messages", json={"message": "Hello"})

    body = client.post(f"/api/sessions/{session_id}/reset").json()

    assert body["progress"]["current_stage"] == "trust_building"
    assert len(body["messages"]) == 1


def test_reset_failure_is_502(client, backend):
    session_id = _start(client)["session_id"]
    backend.fail_reset = True

    response = client.post(f"/api/sessions/{session_id}/reset")

    assert response.status_code == 502


def test_intake_edit_outside_choices_is_422(client):
    session_id = _start(client)["session_id"]

    response = client.patch(
        f"/api/sessions/{session_id}/intake",
        json={"fields": {"aware_looking": "maybe"}},
    )
    assert response.status_code == 422

    form = client.get(f"/api/sessions/{session_id}/intake").json()["form"]
    assert form["aware_looking"] == ""

    response = client.patch(
        f"/api/sessions/{session_id}/intake",
        json={"fields": {"preferred_contact_method": "email"}},
    )
    assert response.status_code == 200
    assert response.json()["form"]["preferred_contact_method"] == "email"


def test_shutdown_closes_agent_client(service):
    app.dependency_overrides[get_service] = lambda: service
    try:
        with TestClient(app):
            assert not routes._backend.client.is_closed
    finally:
        app.dependency_overrides.clear()

    assert routes._backend.client.is_closed
