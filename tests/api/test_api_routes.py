"""HTTP API tests with injected collaborators."""

import pytest
from fastapi.testclient import TestClient

from codechat.api.deps import get_encoder_factory, get_settings_view
from codechat.app import get_app
from codechat.configs.config import AppConfig, SettingsView, get_app_config
from codechat.configs.system import LlamaConfig, ServiceType
from codechat.core.conversation import ConversationStore, get_conversation_store
from codechat.core.embedding.deps import get_context_builder
from codechat.core.llama import LlamaServerSupervisor, get_llama_supervisor
from codechat.core.models import get_model_registry
from fakes import StubContextBuilder, TableEncoder


@pytest.fixture(scope="module")
def app():
    return get_app()


@pytest.fixture()
def config() -> AppConfig:
    return AppConfig()


@pytest.fixture()
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture()
def supervisor(tmp_path) -> LlamaServerSupervisor:
    return LlamaServerSupervisor(LlamaConfig(source_path=tmp_path))


@pytest.fixture()
def client(app, config, store, supervisor, registry):
    context_builder = StubContextBuilder("CONTEXT + question")
    app.dependency_overrides.update(
        {
            get_app_config: lambda: config,
            get_conversation_store: lambda: store,
            get_llama_supervisor: lambda: supervisor,
            get_model_registry: lambda: registry,
            get_encoder_factory: lambda: (lambda model: TableEncoder()),
            get_context_builder: lambda: context_builder,
        }
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def _start(client, **body) -> str:
    response = client.post("/api/v1/conversations", json=body)
    assert response.status_code == 201
    return response.json()["id"]


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class TestConversationRoutes:
    def test_start_and_get(self, client):
        conversation_id = _start(client, model="tiny")

        response = client.get(f"/api/v1/conversations/{conversation_id}")

        assert response.status_code == 200
        assert response.json()["model"] == "tiny"
        state = client.get("/api/v1/conversations/state").json()
        assert state["current_conversation_id"] == conversation_id

    def test_unknown_conversation(self, client):
        response = client.get("/api/v1/conversations/conv_missing")

        assert response.status_code == 404
        assert response.json()["code"] == "CONVERSATION_NOT_FOUND"

    def test_save_and_replace_turn(self, client):
        conversation_id = _start(client)
        url = f"/api/v1/conversations/{conversation_id}/turns"

        saved = client.post(url, json={"prompt": "hi", "response": "hello"}).json()
        turn_id = saved["turns"][0]["id"]
        replaced = client.post(
            url, json={"id": turn_id, "prompt": "hi", "response": "hey"}
        ).json()

        assert [t["response"] for t in replaced["turns"]] == ["hey"]

    def test_flags(self, client):
        conversation_id = _start(client)

        patched = client.patch(
            f"/api/v1/conversations/{conversation_id}",
            json={"discard_token_limit": True},
        ).json()
        state = client.put(
            "/api/v1/conversations/state", json={"discard_all_token_limits": True}
        ).json()

        assert patched["discard_token_limit"] is True
        assert state["discard_all_token_limits"] is True

    def test_delete(self, client):
        conversation_id = _start(client)

        response = client.delete(f"/api/v1/conversations/{conversation_id}")

        assert response.status_code == 204
        assert client.get("/api/v1/conversations").json() == {"conversations": []}


# ---------------------------------------------------------------------------
# Request assembly
# ---------------------------------------------------------------------------


class TestBuildRequest:
    def test_chat_request(self, client, config):
        config.chat.system_prompt = "SYSTEM"
        config.chat.max_tokens = 100
        conversation_id = _start(client, model="tiny")
        client.post(
            f"/api/v1/conversations/{conversation_id}/turns",
            json={"prompt": "first", "response": "answer"},
        )

        response = client.post(
            f"/api/v1/conversations/{conversation_id}/requests",
            json={"prompt": "second"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["backend"] == "chat"
        assert body["model"] == "tiny"
        assert body["max_tokens"] == 100
        assert [(m["role"], m["content"]) for m in body["messages"]] == [
            ("system", "SYSTEM"),
            ("user", "first"),
            ("assistant", "answer"),
            ("user", "second"),
        ]

    def test_settings_view_dependency(self, app, client):
        app.dependency_overrides[get_settings_view] = lambda: SettingsView(
            system_prompt="OVERRIDDEN", max_output_tokens=7, temperature=1.5
        )
        conversation_id = _start(client, model="tiny")

        body = client.post(
            f"/api/v1/conversations/{conversation_id}/requests",
            json={"prompt": "hi"},
        ).json()

        assert body["messages"][0] == {"role": "system", "content": "OVERRIDDEN"}
        assert body["max_tokens"] == 7
        assert body["temperature"] == 1.5

    def test_contextual_search(self, client):
        conversation_id = _start(client, model="tiny")

        body = client.post(
            f"/api/v1/conversations/{conversation_id}/requests",
            json={"prompt": "question", "use_contextual_search": True},
        ).json()

        assert body["messages"] == [
            {"role": "user", "content": "CONTEXT + question"}
        ]

    def test_over_budget_is_rejected(self, client, config):
        config.chat.max_tokens = 600
        conversation_id = _start(client, model="small")

        response = client.post(
            f"/api/v1/conversations/{conversation_id}/requests",
            json={"prompt": "hello"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "TOTAL_USAGE_EXCEEDED"
        assert body["max_tokens"] == 500
        assert body["model"] == "small"

    def test_retry_requires_turn_id(self, client):
        conversation_id = _start(client, model="tiny")

        response = client.post(
            f"/api/v1/conversations/{conversation_id}/requests",
            json={"prompt": "again", "is_retry": True},
        )

        assert response.status_code == 422

    def test_alternate_backend(self, client, config):
        config.service.active = ServiceType.YOU
        config.service.use_larger_model = True
        conversation_id = _start(client, model="small")
        client.post(
            f"/api/v1/conversations/{conversation_id}/turns",
            json={"prompt": "q1", "response": "a1"},
        )

        body = client.post(
            f"/api/v1/conversations/{conversation_id}/requests",
            json={"prompt": "q2"},
        ).json()

        assert body == {
            "backend": "alternate",
            "prompt": "q2",
            "history": [{"user_text": "q1", "assistant_text": "a1"}],
            "use_larger_model": True,
        }

    def test_local_server_not_ready(self, client, config):
        config.service.active = ServiceType.LLAMA
        conversation_id = _start(client, model="tiny")

        response = client.post(
            f"/api/v1/conversations/{conversation_id}/requests",
            json={"prompt": "hello"},
        )

        assert response.status_code == 503
        assert response.json()["code"] == "BACKEND_NOT_READY"


# ---------------------------------------------------------------------------
# Models and local server
# ---------------------------------------------------------------------------


def test_list_models(client):
    codes = [m["code"] for m in client.get("/api/v1/models").json()]
    assert codes == ["tiny", "small"]


def test_llama_status_idle(client):
    body = client.get("/api/v1/llama/status").json()
    assert body["state"] == "idle"
    assert body["pid"] is None


def test_llama_start_without_model(client):
    response = client.post("/api/v1/llama/start", json={})
    assert response.status_code == 400


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
