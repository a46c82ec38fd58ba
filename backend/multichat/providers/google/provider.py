from __future__ import annotations

import json
import logging

from multichat.config.prompts import (
    CONVERSATION_CONTEXT_PROMPT,
    GOOGLE_TITLE_PROMPT,
    IMAGE_MODEL_SUFFIX,
)
from multichat.providers.base import ProviderName, SendResult
from multichat.providers.errors import UpstreamError
from multichat.providers.google.client import (
    GeminiClient,
    extract_parts,
    extract_text,
    part_inline_data,
    part_text,
    user_content,
)
from multichat.providers.streaming import (
    StreamableValue,
    create_streamable_value,
    fill_channels,
    run_detached,
)
from multichat.providers.vision import model_has_vision
from multichat.schemas.chat import Chat, MediaItem, Message
from multichat.services.media import answering_message, partition_media

logger = logging.getLogger(__name__)

IMAGE_GENERATION_MARKERS = ("image-generation", "flash-image")


def media_to_inline_data(media_items: list[MediaItem]) -> list[dict]:
    return [
        {"inlineData": {"mimeType": media.fileType, "data": media.fileData}}
        for media in media_items
    ]


def transcript_json(chat: Chat) -> str:
    return json.dumps(
        [
            m.model_dump(exclude_none=True)
            for m in chat.chatHistory
            if not m.isStreaming
        ]
    )


class GoogleProvider:
    """Gemini models: streamed text, or one-shot text+image for image models."""

    name = ProviderName.GOOGLE.value

    def __init__(self, client: GeminiClient, *, title_model: str) -> None:
        self._client = client
        self._title_model = title_model

    def _build_contents(self, model_id: str, chat: Chat) -> list[dict]:
        turn = answering_message(chat)
        current, previous = partition_media(chat, turn.id if turn else -1)
        current_inline = media_to_inline_data(current)
        previous_inline = media_to_inline_data(previous)
        logger.info(
            "Google Provider: Sending %d current media items and %d context media items",
            len(current_inline),
            len(previous_inline),
        )
        prompt = CONVERSATION_CONTEXT_PROMPT.format(
            transcript=transcript_json(chat),
            current_count=len(current_inline),
            context_count=len(previous_inline),
        )
        if self.supports_image_generation(model_id):
            prompt += IMAGE_MODEL_SUFFIX
        return user_content([{"text": prompt}, *current_inline, *previous_inline])

    async def send_message(self, model_id: str, chat: Chat) -> SendResult:
        self._client.ensure_configured()
        contents = self._build_contents(model_id, chat)
        stream = create_streamable_value("text")

        if self.supports_image_generation(model_id):
            img = create_streamable_value("image")
            run_detached(
                fill_channels(
                    lambda: self._generate_with_images(model_id, contents, stream, img),
                    stream,
                    img,
                    label=f"Google image generation ({model_id})",
                ),
                name=f"google:{model_id}",
            )
            return SendResult(stream=stream, img=img)

        run_detached(
            fill_channels(
                lambda: self._stream_text(model_id, contents, stream),
                stream,
                label=f"Google stream ({model_id})",
            ),
            name=f"google:{model_id}",
        )
        return SendResult(stream=stream)

    async def _stream_text(
        self, model_id: str, contents: list[dict], stream: StreamableValue[str]
    ) -> None:
        async for text in self._client.stream_generate_content(
            model=model_id, contents=contents
        ):
            stream.update(text)

    async def _generate_with_images(
        self,
        model_id: str,
        contents: list[dict],
        stream: StreamableValue[str],
        img: StreamableValue[str],
    ) -> None:
        body = await self._client.generate_content(
            model=model_id,
            contents=contents,
            response_modalities=["TEXT", "IMAGE"],
        )
        for part in extract_parts(body):
            text = part_text(part)
            if text:
                stream.update(text)
                continue
            data = part_inline_data(part)
            if data:
                img.update(data)

    async def generate_title(self, model_id: str, user_message: Message) -> str:
        body = await self._client.generate_content(
            model=self._title_model,
            contents=GOOGLE_TITLE_PROMPT.format(content=user_message.content),
        )
        title = extract_text(body).strip()
        if not title:
            raise UpstreamError(self.name, "Empty title response")
        return title

    def supports_image_generation(self, model_id: str) -> bool:
        return any(marker in model_id for marker in IMAGE_GENERATION_MARKERS)

    def supports_streaming(self, model_id: str) -> bool:
        return not self.supports_image_generation(model_id)

    def supports_vision(self, model_id: str) -> bool:
        return model_has_vision(self.name, model_id)
