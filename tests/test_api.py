"""HTTP surface tests through FastAPI's TestClient against the in-memory Supabase."""
import httpx
import pytest
from fastapi.testclient import TestClient

from workdesk.config import Settings
from workdesk.main import create_app

from conftest import ANON_KEY, BASE_URL, SERVICE_KEY


def _settings(**overrides) -> Settings:
    values = dict(
        supabase_url=BASE_URL,
        supabase_anon_key=ANON_KEY,
        supabase_service_role_key=SERVICE_KEY,
        guest_email_domain="example.test",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def client(fake_supabase):
    app = create_app(_settings(), http_client=httpx.AsyncClient(transport=fake_supabase.transport()))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def agent(fake_supabase):
    user = fake_supabase.add_user("agent@example.com", "s3cret", "agent-jwt", display_name="Alex")
    return {"id": user["id"], "headers": {"Authorization": "Bearer agent-jwt"}}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["supabase"] == "configured"


def test_widget_start_and_resume(client, fake_supabase):
    payload = {"customer_name": "Ada", "customer_email": "ada@example.com"}

    first = client.post("/api/chat/sessions", json=payload)
    second = client.post("/api/chat/sessions", json=payload)

    assert first.status_code == 200
    assert first.json()["is_returning_customer"] is False
    assert second.json() == {
        "session_id": first.json()["session_id"],
        "is_returning_customer": True,
        "is_reusing_session": True,
    }
    assert len(fake_supabase.tables["chat_sessions"]) == 1


def test_widget_conversation_with_agent_reply(client, agent, fake_supabase):
    fake_supabase.add_row("team_members", id=agent["id"], display_name="Alex")
    session_id = client.post("/api/chat/sessions", json={"customer_name": "Ada"}).json()["session_id"]

    client.post(f"/api/chat/sessions/{session_id}/messages", json={"message": "Hello?"})
    reply = client.post(
        f"/api/chat/sessions/{session_id}/agent-messages", json={"message": "Hi Ada"}, headers=agent["headers"]
    )
    assert reply.status_code == 200
    assert reply.json()["sender_id"] == agent["id"]

    history = client.get(f"/api/chat/sessions/{session_id}/messages").json()
    assert [(m["sender_type"], m["agent_name"]) for m in history] == [("customer", None), ("agent", "Alex")]


def test_inbox_requires_authentication(client):
    assert client.get("/api/chat/sessions").status_code == 401
    assert client.get("/api/chat/sessions", headers={"Authorization": "Bearer bogus"}).status_code == 401


def test_inbox_forwards_user_token(client, agent, fake_supabase):
    client.post("/api/chat/sessions", json={"customer_name": "Ada", "customer_email": "ada@example.com"})

    response = client.get("/api/chat/sessions", headers=agent["headers"])

    assert response.status_code == 200
    assert response.json()[0]["customer_email"] == "ada@example.com"
    request = fake_supabase.rest_requests("GET", "chat_sessions")[-1]
    assert request.headers["Authorization"] == "Bearer agent-jwt"


def test_not_configured_is_503(fake_supabase):
    app = create_app(
        _settings(supabase_url="https://your-project-ref.supabase.co"),
        http_client=httpx.AsyncClient(transport=fake_supabase.transport()),
    )
    with TestClient(app) as client:
        response = client.post("/api/chat/sessions", json={"customer_name": "Ada"})
        assert client.get("/health").json()["supabase"] == "not configured"

    assert response.status_code == 503
    assert fake_supabase.requests == []


def test_row_level_denial_passes_through(client, agent, fake_supabase):
    fake_supabase.fail("GET", "projects", 403, "permission denied for table projects")

    response = client.get("/api/projects", headers=agent["headers"])

    assert response.status_code == 403
    assert response.json()["detail"] == "permission denied for table projects"


def test_server_side_fault_becomes_bad_gateway(client, fake_supabase):
    fake_supabase.fail("POST", "customer_contacts", 500, "internal error")

    response = client.post("/api/chat/sessions", json={"customer_name": "Ada"})

    assert response.status_code == 502
    assert response.json()["status"] == 500


def test_projects_and_tasks(client, agent):
    project = client.post("/api/projects", json={"name": "Apollo"}, headers=agent["headers"]).json()
    task = client.post(
        "/api/projects/tasks", json={"project_id": project["id"], "title": "Launch"}, headers=agent["headers"]
    ).json()
    assert task["status"] == "To Do"

    detail = client.get(f"/api/projects/{project['id']}", headers=agent["headers"]).json()
    assert [t["title"] for t in detail["tasks"]] == ["Launch"]

    assert client.get("/api/projects/999", headers=agent["headers"]).status_code == 404


def test_sign_in(client, agent):
    ok = client.post("/api/auth/sign-in", json={"email": "agent@example.com", "password": "s3cret"})
    bad = client.post("/api/auth/sign-in", json={"email": "agent@example.com", "password": "wrong"})

    assert ok.status_code == 200
    assert ok.json()["access_token"] == "agent-jwt"
    assert bad.status_code == 401


def test_me(client, agent):
    response = client.get("/api/auth/me", headers=agent["headers"])
    assert response.json()["user_id"] == agent["id"]
    assert response.json()["metadata"] == {"display_name": "Alex"}


def test_history_read_by_agent_uses_agent_token(client, agent, fake_supabase):
    fake_supabase.add_row("team_members", id=agent["id"], display_name="Alex")
    session = fake_supabase.add_row("chat_sessions", status="active")
    fake_supabase.add_row("chat_messages", session_id=session["id"], sender_type="agent",
                          sender_id=agent["id"], message="Hi")

    history = client.get(f"/api/chat/sessions/{session['id']}/messages", headers=agent["headers"])

    assert history.json()[0]["agent_name"] == "Alex"
    for table in ("chat_messages", "team_members"):
        request = fake_supabase.rest_requests("GET", table)[-1]
        assert request.headers["Authorization"] == "Bearer agent-jwt"


def test_history_read_by_visitor_uses_anon_key(client, fake_supabase):
    session = fake_supabase.add_row("chat_sessions", status="active")

    assert client.get(f"/api/chat/sessions/{session['id']}/messages").status_code == 200
    request = fake_supabase.rest_requests("GET", "chat_messages")[-1]
    assert request.headers["Authorization"] == f"Bearer {ANON_KEY}"


def test_updating_missing_task_is_404(client, agent):
    response = client.put("/api/projects/tasks/999", json={"title": "x"}, headers=agent["headers"])

    assert response.status_code == 404
    assert response.json()["detail"] == "Task not found"
