from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from multichat.providers.streaming import StreamableValue
from multichat.schemas.chat import Chat, Message


class ProviderName(str, enum.Enum):
    GOOGLE = "Google"
    HUGGINGFACE = "HuggingFace"
    NVIDIA = "Nvidia"


@dataclass
class SendResult:
    """Channel handles returned by ``send_message`` before any chunk exists."""

    stream: StreamableValue[str]
    img: StreamableValue[str] | None = None


@dataclass(frozen=True)
class ModelCapabilities:
    streaming: bool
    image_generation: bool
    vision: bool


class ModelProvider(Protocol):
    """Abstract interface for an upstream AI service."""

    name: str

    async def send_message(self, model_id: str, chat: Chat) -> SendResult: ...

    def supports_image_generation(self, model_id: str) -> bool: ...

    def supports_streaming(self, model_id: str) -> bool: ...

    def supports_vision(self, model_id: str) -> bool: ...


@runtime_checkable
class TitleGenerator(Protocol):
    """Optional capability: single-shot chat title from the first user message."""

    async def generate_title(self, model_id: str, user_message: Message) -> str: ...
