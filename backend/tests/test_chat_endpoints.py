from fastapi.testclient import TestClient

from multichat.core.container import AppContainer, get_container, set_container
from multichat.main import create_app
from multichat.providers.base import ProviderName
from multichat.providers.catalog import LLM_MODELS
from multichat.providers.http import HTTPClientProvider
from multichat.providers.registry import ProviderRegistry
from tests.fakes import USER_HEADERS, FakeProvider, parse_sse


def _send(client: TestClient, **payload) -> list[dict]:
    response = client.post("/api/chats/messages", json=payload, headers=USER_HEADERS)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    return parse_sse(response.text)


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_models_lists_catalog_with_capabilities(client) -> None:
    response = client.get("/api/models")
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    models = {m["id"]: m for m in body["data"]["models"]}
    assert set(models) == {m.id for m in LLM_MODELS}
    assert models["gemini-2.0-flash"]["provider"] == "Google"
    assert models["gemini-2.0-flash"]["supportsVision"] is True
    assert models["meta/llama-3.1-8b-instruct"]["features"]["maxTokens"] == 1024


def test_model_capabilities_resolve_aliases(client) -> None:
    body = client.get("/api/models/hf-stabilityai/stable-diffusion-xl-base-1.0/capabilities").json()
    assert body["data"]["provider"] == "HuggingFace"
    assert body["data"]["actualModelId"] == "stabilityai/stable-diffusion-xl-base-1.0"


def test_object_id_and_title_endpoints(client) -> None:
    object_id = client.post("/api/chats/object-id").json()["data"]["id"]
    assert len(object_id) == 24

    title = client.post("/api/chats/title", json={"model": "gemini-2.0-flash", "content": "hi"})
    assert title.json()["data"]["title"] == "Fake title"


def test_send_message_stream_then_list_and_update_model(client) -> None:
    events = _send(client, model="gemini-2.0-flash", content="hello there")
    assert [e["type"] for e in events] == ["chat", "content_delta", "content_delta", "done"]
    chat = events[-1]["payload"]["chat"]
    assert chat["chatHistory"][-1]["content"] == "Hello world"

    listed = client.get("/api/chats", headers=USER_HEADERS).json()["data"]["chats"]
    summary = next(c for c in listed if c["id"] == chat["_id"])
    assert summary["messageCount"] == 2
    assert summary["title"] == "Fake title"

    updated = client.put(
        f"/api/chats/{chat['_id']}/model",
        json={"model": "meta/llama-3.1-8b-instruct"},
        headers=USER_HEADERS,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["chat"]["model"] == "meta/llama-3.1-8b-instruct"

    loaded = client.get(f"/api/chats/{chat['_id']}", headers=USER_HEADERS).json()
    assert loaded["data"]["chat"]["model"] == "meta/llama-3.1-8b-instruct"
    assert len(loaded["data"]["chat"]["chatHistory"]) == 2


def test_send_without_model_uses_default(client, fake_registry) -> None:
    events = _send(client, content="no model picked")
    assert events[-1]["payload"]["chat"]["model"] == "gemini-2.0-flash"
    google = fake_registry.get_provider(ProviderName.GOOGLE)
    assert google.sent[-1][0] == "gemini-2.0-flash"


def test_missing_identity_is_a_service_error(client) -> None:
    response = client.get("/api/chats")
    assert response.status_code == 400
    body = response.json()
    assert body["ok"] is False
    assert "X-User-Email" in body["error"]


def test_unknown_chat_is_a_service_error(client) -> None:
    response = client.post(
        "/api/chats/messages",
        json={"model": "gemini-2.0-flash", "content": "hi", "chatId": "000000000000000000000000"},
        headers=USER_HEADERS,
    )
    assert response.status_code == 400
    assert "Chat not found" in response.json()["error"]


def test_validation_errors_use_envelope(client) -> None:
    response = client.post("/api/chats/title", json={"model": "gemini-2.0-flash"})
    assert response.status_code == 422
    body = response.json()
    assert body["ok"] is False
    assert "content" in body["error"]


def test_missing_adapter_is_reported_as_unavailable() -> None:
    app = create_app()
    set_container(
        AppContainer(
            registry=ProviderRegistry({ProviderName.GOOGLE: FakeProvider("Google")}),
            http=HTTPClientProvider(),
        )
    )
    try:
        response = TestClient(app).get("/api/models")
        assert response.status_code == 503
        assert response.json()["ok"] is False
    finally:
        set_container(None)


def test_lifespan_builds_real_registry_without_network() -> None:
    set_container(None)
    with TestClient(create_app()) as client:
        container = get_container()
        assert container is not None
        assert set(container.registry.provider_names) == set(ProviderName)
        models = client.get("/api/models").json()["data"]["models"]
        image_model = next(m for m in models if m["id"] == "stabilityai/stable-diffusion-xl")
        assert image_model["supportsImageGeneration"] is True
        assert image_model["supportsStreaming"] is False
    assert get_container() is None
