import pytest
from fastapi.testclient import TestClient

from flowly.api import routes
from flowly.api.session import identify_command, resolve_session_id

from conftest import USER_ID


@pytest.fixture
def client(engine):
    routes.app.dependency_overrides[routes.get_engine] = lambda: engine
    yield TestClient(routes.app)
    routes.app.dependency_overrides.clear()


class TestChatEndpoint:
    def test_returns_action(self, client, provider):
        provider.reply_with(
            'Opening it. [COMMAND: navigateToWorkspace] {"workspaceSlug": "beta"}'
        )
        response = client.post(
            "/v1/chat",
            json={"message": "open beta", "session_id": "s1"},
            headers={"x-user-id": USER_ID},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["action"] == {
            "name": "navigateToWorkspace",
            "parameters": {"workspaceSlug": "beta"},
        }

    def test_failure_payload(self, client):
        response = client.post("/v1/chat", json={"message": "hi"})
        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["error"].startswith("AI chat is currently disabled")

    def test_empty_message_is_rejected(self, client):
        response = client.post("/v1/chat", json={"message": "   "})
        assert response.status_code == 400

    def test_clear_command_resets_context(self, client, store):
        store.get_or_create("s1")
        response = client.post("/v1/chat", json={"message": "/clear", "session_id": "s1"})
        assert response.json()["message"] == "Conversation context cleared."
        assert "s1" not in store

    def test_context_command_reports_selection(self, client, store):
        response = client.post("/v1/chat", json={"message": "/context", "session_id": "s2"})
        assert response.json()["message"] == "No workspace or project selected yet."

        def select(ctx):
            ctx.workspace_slug, ctx.workspace_name = "beta", "Beta"
            ctx.project_slug = "alpha"
            return True

        store.update("s2", select)
        response = client.post("/v1/chat", json={"message": "/context", "session_id": "s2"})
        assert response.json()["message"] == "Workspace: Beta (beta)\nProject: alpha (alpha)"

    def test_unknown_slash_command(self, client):
        response = client.post("/v1/chat", json={"message": "/teleport"})
        assert response.status_code == 400


class TestOtherEndpoints:
    def test_connection_check(self, client, provider):
        provider.reply_with("Connection successful.")
        response = client.post(
            "/v1/chat/test-connection",
            json={"api_key": "sk", "model": "gpt-4o", "api_url": "https://api.openai.com/v1"},
        )
        assert response.json()["success"] is True

    def test_delete_session(self, client, store):
        store.get_or_create("s9")
        response = client.delete("/v1/chat/sessions/s9")
        assert response.json() == {"success": True}
        assert "s9" not in store


class TestSessionHelpers:
    def test_identify_command(self):
        assert identify_command("/clear") == "clear"
        assert identify_command(" /CLEAR ") == "clear"
        assert identify_command("clear") is None
        assert identify_command("/clear everything") is None

    def test_resolve_session_id(self):
        assert resolve_session_id(None) == "default"
        assert resolve_session_id("  ") == "default"
        assert resolve_session_id("abc") == "abc"
