import asyncio
import base64
import json

import httpx
import pytest

from multichat.providers.errors import ProviderConfigError, UpstreamError
from multichat.providers.http import HTTPClientProvider
from multichat.providers.huggingface import HuggingFaceProvider
from multichat.providers.nvidia import NvidiaProvider
from multichat.providers.openai_compat import OpenAICompatClient
from multichat.schemas.chat import Chat, MediaItem, Message


def _completion(content: str) -> dict:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def _delta_stream(*deltas: str) -> bytes:
    frames = [
        f"data: {json.dumps({'choices': [{'delta': {'content': d}}]})}\n\n" for d in deltas
    ]
    return ("".join(frames) + "data: [DONE]\n\n").encode("utf-8")


def _chat(model: str, *, with_image: bool = True) -> Chat:
    media = [
        MediaItem(
            id=1.5,
            messageId=1,
            fileName="cat.png",
            fileData="Y2F0",
            fileType="image/png",
            mediaType="image",
            timestamp=1,
        ),
        MediaItem(
            id=1.75,
            messageId=1,
            fileName="notes.txt",
            fileData="bm90ZXM=",
            fileType="text/plain",
            mediaType="file",
            timestamp=1,
        ),
    ]
    return Chat(
        _id="65f000000000000000000020",
        title="t",
        model=model,
        chatHistory=[
            Message(id=1, content="describe this", role="user"),
            Message(id=2, role="model", isStreaming=True),
        ],
        mediaItems=media if with_image else [],
    )


def _huggingface(handler, token: str = "hf-token") -> tuple[HuggingFaceProvider, HTTPClientProvider]:
    http = HTTPClientProvider(transport=httpx.MockTransport(handler))
    client = OpenAICompatClient(
        provider="HuggingFace", api_key=token, base_url="https://hf.test/v1", http=http
    )
    provider = HuggingFaceProvider(
        client,
        http=http,
        inference_url="https://hf.test/hf-inference/models",
        title_model="microsoft/DialoGPT-medium",
    )
    return provider, http


def _nvidia(handler, key: str = "nv-key") -> tuple[NvidiaProvider, HTTPClientProvider]:
    http = HTTPClientProvider(transport=httpx.MockTransport(handler))
    client = OpenAICompatClient(
        provider="Nvidia", api_key=key, base_url="https://nim.test/v1", http=http
    )
    provider = NvidiaProvider(
        client,
        http=http,
        genai_url="https://nim.test/v1/genai",
        title_model="meta/llama-3.1-8b-instruct",
    )
    return provider, http


def _run(provider_factory, handler, model: str, chat: Chat):
    async def scenario():
        provider, http = provider_factory(handler)
        result = await provider.send_message(model, chat)
        text = await result.stream.collect()
        images = [data async for data in result.img] if result.img is not None else None
        await http.aclose()
        return text, images

    return asyncio.run(scenario())


def test_huggingface_streaming_model_forwards_deltas() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, content=_delta_stream("Hel", "lo"))

    text, images = _run(_huggingface, handler, "HuggingFaceH4/zephyr-7b-beta", _chat("x", with_image=False))
    assert text == "Hello"
    assert images is None
    assert bodies[0]["stream"] is True
    assert bodies[0]["max_tokens"] == 1000
    assert bodies[0]["messages"] == [{"role": "user", "content": "describe this"}]


def test_huggingface_non_streaming_model_notes_unreadable_media() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_completion("I cannot see files."))

    text, _ = _run(_huggingface, handler, "mistralai/Mistral-7B-Instruct-v0.3", _chat("x"))
    assert text == "I cannot see files."
    assert "stream" not in bodies[0]
    last = bodies[0]["messages"][-1]["content"]
    assert last.startswith("describe this")
    assert "2 new attachments and 0 previous" in last


def test_huggingface_text_to_image_returns_base64_png() -> None:
    png = b"\x89PNG\r\n\x1a\nfake"
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, headers={"content-type": "image/png"}, content=png)

    model = "stabilityai/stable-diffusion-xl-base-1.0"
    text, images = _run(_huggingface, handler, model, _chat("x", with_image=False))
    assert text == "Here is the generated image."
    assert images == [base64.b64encode(png).decode("ascii")]
    assert str(seen[0].url) == f"https://hf.test/hf-inference/models/{model}"
    assert json.loads(seen[0].content) == {"inputs": "describe this"}


def test_huggingface_text_to_image_rejects_non_image_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "Model is loading"})

    async def scenario():
        provider, http = _huggingface(handler)
        result = await provider.send_message("stabilityai/stable-diffusion-2-1", _chat("x"))
        with pytest.raises(UpstreamError):
            await result.stream.collect()
        with pytest.raises(UpstreamError):
            await result.img.collect()
        await http.aclose()

    asyncio.run(scenario())


def test_huggingface_empty_title_falls_back() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion("   "))

    async def scenario():
        provider, http = _huggingface(handler)
        title = await provider.generate_title("x", Message(id=1, content="hi", role="user"))
        await http.aclose()
        return title

    assert asyncio.run(scenario()) == "New Chat"


def test_huggingface_missing_token_fails_synchronously() -> None:
    provider, _http = _huggingface(lambda request: httpx.Response(200), token="")
    with pytest.raises(ProviderConfigError):
        asyncio.run(provider.send_message("HuggingFaceH4/zephyr-7b-beta", _chat("x")))


def test_nvidia_vision_model_gets_image_blocks() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        assert request.headers["authorization"] == "Bearer nv-key"
        return httpx.Response(200, content=_delta_stream("A cat", "."))

    model = "meta/llama-3.2-11b-vision-instruct"
    text, _ = _run(_nvidia, handler, model, _chat(model))
    assert text == "A cat."
    content = bodies[0]["messages"][-1]["content"]
    assert content == [
        {"type": "text", "text": "describe this"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,Y2F0"}},
    ]
    assert bodies[0]["max_tokens"] == 1024


def test_nvidia_text_model_keeps_plain_content() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, content=_delta_stream("ok"))

    text, _ = _run(_nvidia, handler, "meta/llama-3.1-8b-instruct", _chat("x"))
    assert text == "ok"
    assert bodies[0]["messages"][-1]["content"] == "describe this"


def test_nvidia_image_model_pushes_artifacts() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"artifacts": [{"base64": "AAAA", "finishReason": "SUCCESS"}]}
        )

    model = "stabilityai/stable-diffusion-xl"
    text, images = _run(_nvidia, handler, model, _chat(model, with_image=False))
    assert text == "Here is the generated image."
    assert images == ["AAAA"]
    assert str(seen[0].url) == f"https://nim.test/v1/genai/{model}"
    assert json.loads(seen[0].content)["text_prompts"][0]["text"] == "describe this"


def test_nvidia_title_uses_small_llama() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_completion("Describing a Cat"))

    async def scenario():
        provider, http = _nvidia(handler)
        title = await provider.generate_title(
            "meta/llama-3.2-11b-vision-instruct",
            Message(id=1, content="describe this", role="user"),
        )
        await http.aclose()
        return title

    assert asyncio.run(scenario()) == "Describing a Cat"
    assert bodies[0]["model"] == "meta/llama-3.1-8b-instruct"
    assert bodies[0]["max_tokens"] == 50
    assert bodies[0]["temperature"] == 0.3


def test_nvidia_predicates() -> None:
    provider, _http = _nvidia(lambda request: httpx.Response(200))
    assert provider.supports_vision("meta/llama-3.2-11b-vision-instruct")
    assert not provider.supports_vision("meta/llama-3.1-8b-instruct")
    assert provider.supports_image_generation("stabilityai/stable-diffusion-xl")
    assert not provider.supports_streaming("stabilityai/stable-diffusion-xl")
    assert provider.supports_streaming("some/unknown-model")


def test_nvidia_rejected_key_reaches_the_consumer() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"status": 401, "title": "Unauthorized"})

    async def scenario():
        provider, http = _nvidia(handler, key="wrong")
        result = await provider.send_message("meta/llama-3.1-8b-instruct", _chat("x"))
        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await asyncio.wait_for(result.stream.collect(), timeout=5)
        await http.aclose()
        return exc_info.value.response.status_code

    assert asyncio.run(scenario()) == 401


def test_huggingface_connection_drop_after_first_delta() -> None:
    first_frame = f"data: {json.dumps({'choices': [{'delta': {'content': 'Hel'}}]})}\n\n"

    async def broken_stream():
        yield first_frame.encode("utf-8")
        raise httpx.ReadError("connection reset by peer")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=broken_stream()
        )

    async def scenario():
        provider, http = _huggingface(handler)
        result = await provider.send_message("HuggingFaceH4/zephyr-7b-beta", _chat("x"))
        received: list[str] = []

        async def drain() -> None:
            async for chunk in result.stream:
                received.append(chunk)

        with pytest.raises(httpx.ReadError):
            await asyncio.wait_for(drain(), timeout=5)
        await http.aclose()
        return received

    assert asyncio.run(scenario()) == ["Hel"]
