"""Client for OpenAI-compatible chat-completion APIs (HF router, NVIDIA NIM)."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from multichat.providers.errors import ProviderConfigError
from multichat.providers.http import HTTPClientProvider, post_json, stream_sse

logger = logging.getLogger(__name__)


def _first_choice(body: Any) -> dict:
    choices = body.get("choices", []) if isinstance(body, dict) else []
    if not isinstance(choices, list) or not choices:
        return {}
    return choices[0] if isinstance(choices[0], dict) else {}


def extract_message_content(body: Any) -> str:
    message = _first_choice(body).get("message", {})
    content = message.get("content", "") if isinstance(message, dict) else ""
    return str(content) if content is not None else ""


def extract_delta_content(parsed: dict) -> str:
    delta = _first_choice(parsed).get("delta", {})
    content = delta.get("content") if isinstance(delta, dict) else None
    return str(content) if content else ""


class OpenAICompatClient:
    """Chat-completion calls against one OpenAI-compatible base URL."""

    def __init__(
        self,
        *,
        provider: str,
        api_key: str,
        base_url: str,
        http: HTTPClientProvider,
    ) -> None:
        self._provider = provider
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http = http

    def auth_headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ProviderConfigError(f"No {self._provider} API key configured")
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def create_chat_completion(
        self,
        *,
        model: str,
        messages: list[dict],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        """Create a non-streaming chat completion and return the message text."""
        payload: dict = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        response = await post_json(
            self._http.get(),
            f"{self._base_url}/chat/completions",
            provider=self._provider,
            headers=self.auth_headers(),
            payload=payload,
        )
        return extract_message_content(response.json())

    async def create_chat_completion_stream(
        self,
        *,
        model: str,
        messages: list[dict],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """Stream a chat completion, yielding content deltas in upstream order."""
        payload: dict = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": True,
        }
        async for parsed in stream_sse(
            self._http.get(),
            f"{self._base_url}/chat/completions",
            provider=self._provider,
            headers=self.auth_headers(),
            payload=payload,
        ):
            delta = extract_delta_content(parsed)
            if delta:
                yield delta
