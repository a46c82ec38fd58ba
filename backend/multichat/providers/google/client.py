"""Gemini REST client (generativelanguage v1beta) over the shared httpx client."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from multichat.providers.errors import ProviderConfigError, UpstreamError
from multichat.providers.http import HTTPClientProvider, post_json, stream_sse

logger = logging.getLogger(__name__)

PROVIDER = "Google"


def user_content(parts: list[dict]) -> list[dict]:
    """Wrap parts into a single user turn."""
    return [{"role": "user", "parts": parts}]


def extract_parts(body: Any) -> list[dict]:
    """Content parts of the first candidate; raises when the prompt was blocked."""
    if not isinstance(body, dict):
        return []
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        feedback = body.get("promptFeedback")
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            raise UpstreamError(PROVIDER, f"Prompt blocked: {feedback['blockReason']}")
        return []
    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content", {})
    parts = content.get("parts", []) if isinstance(content, dict) else []
    return [p for p in parts if isinstance(p, dict)] if isinstance(parts, list) else []


def part_text(part: dict) -> str:
    text = part.get("text")
    return text if isinstance(text, str) else ""


def part_inline_data(part: dict) -> str:
    inline = part.get("inlineData") or part.get("inline_data")
    if not isinstance(inline, dict):
        return ""
    data = inline.get("data")
    return data if isinstance(data, str) else ""


def extract_text(body: Any) -> str:
    return "".join(part_text(p) for p in extract_parts(body))


class GeminiClient:
    """Gemini generateContent / streamGenerateContent calls."""

    def __init__(self, *, api_key: str, base_url: str, http: HTTPClientProvider) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http = http

    def ensure_configured(self) -> None:
        if not self._api_key:
            raise ProviderConfigError("No Google API key configured")

    def _headers(self) -> dict[str, str]:
        self.ensure_configured()
        return {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }

    async def generate_content(
        self,
        *,
        model: str,
        contents: list[dict] | str,
        response_modalities: list[str] | None = None,
    ) -> dict:
        if isinstance(contents, str):
            contents = user_content([{"text": contents}])
        payload: dict = {"contents": contents}
        if response_modalities:
            payload["generationConfig"] = {"responseModalities": response_modalities}
        response = await post_json(
            self._http.get(),
            f"{self._base_url}/models/{model}:generateContent",
            provider=PROVIDER,
            headers=self._headers(),
            payload=payload,
        )
        body = response.json()
        return body if isinstance(body, dict) else {}

    async def stream_generate_content(
        self,
        *,
        model: str,
        contents: list[dict],
    ) -> AsyncIterator[str]:
        """Yield text chunks in the order Gemini emits them."""
        async for parsed in stream_sse(
            self._http.get(),
            f"{self._base_url}/models/{model}:streamGenerateContent?alt=sse",
            provider=PROVIDER,
            headers=self._headers(),
            payload={"contents": contents},
        ):
            text = "".join(part_text(p) for p in extract_parts(parsed))
            if text:
                yield text
