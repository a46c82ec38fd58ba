"""Shared upstream HTTP plumbing: the pooled client, SSE parsing and retries."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator

import httpx

logger = logging.getLogger(__name__)

RETRY_DELAYS = (5, 10, 15, 20)


class HTTPClientProvider:
    """Process-wide ``httpx.AsyncClient`` shared by every adapter.

    The client is created on first ``get()``. Creation never awaits, so two
    coroutines asking at once on the same loop still share one client.
    """

    def __init__(
        self,
        *,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def get(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10.0),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def should_retry(status_code: int) -> bool:
    """Retry on server errors (5xx) or rate limit (429)."""
    return status_code >= 500 or status_code == 429


def parse_sse_line(line: str) -> tuple[dict | None, bool]:
    """Parse SSE data line. Returns (parsed dict or None, stream_done)."""
    if not line.startswith("data:"):
        return (None, False)
    data = line[5:].strip()
    if not data:
        return (None, False)
    if data == "[DONE]":
        return (None, True)
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        return (None, False)
    return (parsed if isinstance(parsed, dict) else None, False)


def log_upstream_error(provider: str, status_code: int, body_bytes: bytes) -> None:
    try:
        err_body = json.loads(body_bytes.decode("utf-8"))
    except Exception:
        err_body = body_bytes.decode("utf-8", errors="replace")[:500]
    logger.error("%s API error %s: %s", provider, status_code, err_body)


async def _sleep_before_retry(provider: str, status_code: int, attempt: int) -> None:
    delay = RETRY_DELAYS[attempt]
    logger.warning(
        "%s API %s, retrying in %ss (attempt %d/%d)",
        provider,
        status_code,
        delay,
        attempt + 2,
        len(RETRY_DELAYS) + 1,
    )
    await asyncio.sleep(delay)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    provider: str,
    headers: dict[str, str],
    payload: dict,
) -> httpx.Response:
    """POST with retry on 429/5xx; raises ``httpx.HTTPStatusError`` otherwise."""
    for attempt in range(len(RETRY_DELAYS) + 1):
        response = await client.post(url, headers=headers, json=payload)
        if response.status_code >= 400:
            log_upstream_error(provider, response.status_code, response.content)
            if should_retry(response.status_code) and attempt < len(RETRY_DELAYS):
                await _sleep_before_retry(provider, response.status_code, attempt)
                continue
        response.raise_for_status()
        return response
    raise AssertionError("unreachable")


async def _iter_sse_payloads(response: httpx.Response) -> AsyncIterator[dict]:
    # Decoded incrementally; a character may span two network chunks.
    async for line in response.aiter_lines():
        parsed, stream_done = parse_sse_line(line.strip())
        if stream_done:
            return
        if parsed is not None:
            yield parsed


async def stream_sse(
    client: httpx.AsyncClient,
    url: str,
    *,
    provider: str,
    headers: dict[str, str],
    payload: dict,
) -> AsyncIterator[dict]:
    """POST and yield every SSE ``data:`` JSON payload in arrival order.

    Retries on 429/5xx only while nothing has been yielded yet.
    """
    for attempt in range(len(RETRY_DELAYS) + 1):
        try:
            async with client.stream(
                "POST", url, headers=headers, json=payload
            ) as response:
                if response.status_code >= 400:
                    log_upstream_error(provider, response.status_code, await response.aread())
                response.raise_for_status()
                async for parsed in _iter_sse_payloads(response):
                    yield parsed
                return
        except httpx.HTTPStatusError as e:
            if should_retry(e.response.status_code) and attempt < len(RETRY_DELAYS):
                await _sleep_before_retry(provider, e.response.status_code, attempt)
                continue
            raise
