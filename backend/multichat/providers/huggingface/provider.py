from __future__ import annotations

import base64
import logging

from multichat.config.defaults import (
    DEFAULT_CHAT_TITLE,
    HUGGINGFACE_MAX_TOKENS,
    TITLE_MAX_TOKENS,
    TITLE_TEMPERATURE,
)
from multichat.config.prompts import (
    CHAT_TITLE_PROMPT,
    GENERATED_IMAGE_CAPTION,
    UNREADABLE_MEDIA_NOTE,
)
from multichat.providers.base import ProviderName, SendResult
from multichat.providers.errors import UpstreamError
from multichat.providers.http import HTTPClientProvider, post_json
from multichat.providers.openai_compat import OpenAICompatClient
from multichat.providers.streaming import (
    StreamableValue,
    create_streamable_value,
    fill_channels,
    run_detached,
)
from multichat.providers.vision import model_has_vision
from multichat.schemas.chat import Chat, Message
from multichat.services.media import answering_message, format_chat_history, partition_media

logger = logging.getLogger(__name__)

HF_IMAGE_MODELS: frozenset[str] = frozenset({
    "stabilityai/stable-diffusion-2-1",
    "stabilityai/stable-diffusion-xl-base-1.0",
    "runwayml/stable-diffusion-v1-5",
})

HF_STREAMING_MODELS: frozenset[str] = frozenset({
    "meta-llama/Llama-2-7b-chat-hf",
    "meta-llama/Llama-2-13b-chat-hf",
    "meta-llama/Llama-2-70b-chat-hf",
    "meta-llama/Llama-3.1-8B-Instruct",
    "microsoft/DialoGPT-medium",
    "microsoft/DialoGPT-large",
    "HuggingFaceH4/zephyr-7b-beta",
    "mistralai/Mistral-7B-Instruct-v0.1",
    "mistralai/Mixtral-8x7B-Instruct-v0.1",
})


class HuggingFaceProvider:
    """Hub models through the OpenAI-compatible inference router."""

    name = ProviderName.HUGGINGFACE.value

    def __init__(
        self,
        client: OpenAICompatClient,
        *,
        http: HTTPClientProvider,
        inference_url: str,
        title_model: str,
        max_tokens: int = HUGGINGFACE_MAX_TOKENS,
        temperature: float = 0.7,
    ) -> None:
        self._client = client
        self._http = http
        self._inference_url = inference_url.rstrip("/")
        self._title_model = title_model
        self._max_tokens = max_tokens
        self._temperature = temperature

    def _build_messages(self, chat: Chat) -> list[dict]:
        messages = [
            {"role": m["role"], "content": m["content"]}
            for m in format_chat_history(chat, include_media=False)
        ]
        turn = answering_message(chat)
        current, previous = partition_media(chat, turn.id if turn else -1)
        logger.info(
            "HuggingFace Provider: Processing %d current media items and %d context media items",
            len(current),
            len(previous),
        )
        if messages and (current or previous):
            note = UNREADABLE_MEDIA_NOTE.format(
                current_count=len(current), context_count=len(previous)
            )
            messages[-1]["content"] += f"\n\n{note}"
        return messages

    async def send_message(self, model_id: str, chat: Chat) -> SendResult:
        headers = self._client.auth_headers()
        stream = create_streamable_value("text")

        if self.supports_image_generation(model_id):
            img = create_streamable_value("image")
            turn = answering_message(chat)
            prompt = turn.content if turn else ""
            run_detached(
                fill_channels(
                    lambda: self._text_to_image(model_id, prompt, headers, stream, img),
                    stream,
                    img,
                    label=f"HuggingFace text-to-image ({model_id})",
                ),
                name=f"huggingface:{model_id}",
            )
            return SendResult(stream=stream, img=img)

        messages = self._build_messages(chat)
        run_detached(
            fill_channels(
                lambda: self._complete(model_id, messages, stream),
                stream,
                label=f"HuggingFace completion ({model_id})",
            ),
            name=f"huggingface:{model_id}",
        )
        return SendResult(stream=stream)

    async def _complete(
        self, model_id: str, messages: list[dict], stream: StreamableValue[str]
    ) -> None:
        if self.supports_streaming(model_id):
            async for delta in self._client.create_chat_completion_stream(
                model=model_id,
                messages=messages,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            ):
                stream.update(delta)
            return

        content = await self._client.create_chat_completion(
            model=model_id,
            messages=messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        if content:
            stream.update(content)

    async def _text_to_image(
        self,
        model_id: str,
        prompt: str,
        headers: dict[str, str],
        stream: StreamableValue[str],
        img: StreamableValue[str],
    ) -> None:
        response = await post_json(
            self._http.get(),
            f"{self._inference_url}/{model_id}",
            provider=self.name,
            headers={**headers, "Accept": "image/png"},
            payload={"inputs": prompt},
        )
        if not response.headers.get("content-type", "").startswith("image/"):
            raise UpstreamError(
                self.name, f"Expected image bytes, got {response.headers.get('content-type')!r}"
            )
        stream.update(GENERATED_IMAGE_CAPTION)
        img.update(base64.b64encode(response.content).decode("ascii"))

    async def generate_title(self, model_id: str, user_message: Message) -> str:
        content = await self._client.create_chat_completion(
            model=self._title_model,
            messages=[
                {
                    "role": "user",
                    "content": CHAT_TITLE_PROMPT.format(content=user_message.content),
                }
            ],
            max_tokens=TITLE_MAX_TOKENS,
            temperature=TITLE_TEMPERATURE,
        )
        return content.strip() or DEFAULT_CHAT_TITLE

    def supports_image_generation(self, model_id: str) -> bool:
        return model_id in HF_IMAGE_MODELS

    def supports_streaming(self, model_id: str) -> bool:
        return model_id in HF_STREAMING_MODELS

    def supports_vision(self, model_id: str) -> bool:
        return model_has_vision(self.name, model_id)
