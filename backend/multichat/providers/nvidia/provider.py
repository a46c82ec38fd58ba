from __future__ import annotations

import logging
from typing import Any

from multichat.config.defaults import (
    DEFAULT_CHAT_TITLE,
    NVIDIA_MAX_TOKENS,
    TITLE_MAX_TOKENS,
    TITLE_TEMPERATURE,
)
from multichat.config.prompts import CHAT_TITLE_PROMPT, GENERATED_IMAGE_CAPTION
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
from multichat.schemas.chat import Chat, MediaItem, Message
from multichat.services.media import answering_message, format_chat_history, partition_media

logger = logging.getLogger(__name__)

NVIDIA_IMAGE_MODELS: frozenset[str] = frozenset({
    "stabilityai/stable-diffusion-xl",
    "stabilityai/stable-diffusion-3-medium",
})


def media_to_image_blocks(media_items: list[MediaItem]) -> list[dict]:
    """Images as OpenAI-style ``image_url`` blocks; other files are skipped."""
    return [
        {
            "type": "image_url",
            "image_url": {"url": f"data:{media.fileType};base64,{media.fileData}"},
        }
        for media in media_items
        if media.mediaType == "image"
    ]


def _image_payload(model_id: str, prompt: str) -> dict:
    if "stable-diffusion-3" in model_id:
        return {"prompt": prompt, "cfg_scale": 5, "steps": 50, "seed": 0, "aspect_ratio": "1:1"}
    return {
        "text_prompts": [{"text": prompt, "weight": 1}],
        "cfg_scale": 5,
        "sampler": "K_DPM_2_ANCESTRAL",
        "seed": 0,
        "steps": 25,
    }


def _images_from_body(body: Any) -> list[str]:
    if not isinstance(body, dict):
        return []
    images: list[str] = []
    artifacts = body.get("artifacts")
    if isinstance(artifacts, list):
        for artifact in artifacts:
            if isinstance(artifact, dict) and isinstance(artifact.get("base64"), str):
                images.append(artifact["base64"])
    if isinstance(body.get("image"), str):
        images.append(body["image"])
    return images


class NvidiaProvider:
    """NVIDIA NIM hosted models (OpenAI-compatible API)."""

    name = ProviderName.NVIDIA.value

    def __init__(
        self,
        client: OpenAICompatClient,
        *,
        http: HTTPClientProvider,
        genai_url: str,
        title_model: str,
        max_tokens: int = NVIDIA_MAX_TOKENS,
        temperature: float = 0.7,
    ) -> None:
        self._client = client
        self._http = http
        self._genai_url = genai_url.rstrip("/")
        self._title_model = title_model
        self._max_tokens = max_tokens
        self._temperature = temperature

    def _build_messages(self, model_id: str, chat: Chat) -> list[dict]:
        messages: list[dict] = [
            {"role": m["role"], "content": m["content"]}
            for m in format_chat_history(chat, include_media=False)
        ]
        turn = answering_message(chat)
        current, previous = partition_media(chat, turn.id if turn else -1)
        logger.info(
            "Nvidia Provider: Processing %d current media items and %d context media items",
            len(current),
            len(previous),
        )
        if messages and current and self.supports_vision(model_id):
            image_blocks = media_to_image_blocks(current)
            if image_blocks:
                last = messages[-1]
                last["content"] = [{"type": "text", "text": last["content"]}, *image_blocks]
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
                    lambda: self._generate_image(model_id, prompt, headers, stream, img),
                    stream,
                    img,
                    label=f"Nvidia image generation ({model_id})",
                ),
                name=f"nvidia:{model_id}",
            )
            return SendResult(stream=stream, img=img)

        messages = self._build_messages(model_id, chat)
        run_detached(
            fill_channels(
                lambda: self._complete(model_id, messages, stream),
                stream,
                label=f"Nvidia completion ({model_id})",
            ),
            name=f"nvidia:{model_id}",
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

    async def _generate_image(
        self,
        model_id: str,
        prompt: str,
        headers: dict[str, str],
        stream: StreamableValue[str],
        img: StreamableValue[str],
    ) -> None:
        response = await post_json(
            self._http.get(),
            f"{self._genai_url}/{model_id}",
            provider=self.name,
            headers={**headers, "Accept": "application/json"},
            payload=_image_payload(model_id, prompt),
        )
        images = _images_from_body(response.json())
        if not images:
            raise UpstreamError(self.name, "Image generation returned no artifacts")
        stream.update(GENERATED_IMAGE_CAPTION)
        for image in images:
            img.update(image)

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
        return model_id in NVIDIA_IMAGE_MODELS

    def supports_streaming(self, model_id: str) -> bool:
        return not self.supports_image_generation(model_id)

    def supports_vision(self, model_id: str) -> bool:
        return model_has_vision(self.name, model_id)
