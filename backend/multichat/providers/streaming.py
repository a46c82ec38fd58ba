"""Single-producer / single-consumer streamable values.

A provider hands a ``StreamableValue`` back to its caller straight away and
fills it from a detached task. The caller iterates it with ``async for``; the
iteration ends when the producer calls ``done()`` and raises the producer's
error after the last chunk when it calls ``error()``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from typing import Any, Generic, TypeVar

from multichat.providers.errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()

_background_tasks: set[asyncio.Task] = set()


class StreamState(str, enum.Enum):
    OPEN = "open"
    DONE = "done"
    ERROR = "error"


class StreamClosedError(RuntimeError):
    """Raised when a producer writes to a channel that already terminated."""


class StreamableValue(Generic[T]):
    def __init__(self, name: str = "stream") -> None:
        self.name = name
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._state = StreamState.OPEN
        self._exception: BaseException | None = None
        self._closed = asyncio.Event()
        self._consuming = False
        self._drained = False
        self._chunk_count = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is not StreamState.OPEN

    @property
    def exception(self) -> BaseException | None:
        return self._exception

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    # Producer side

    def update(self, chunk: T) -> None:
        if self.closed:
            raise StreamClosedError(
                f"Cannot update {self.name}: channel already {self._state.value}"
            )
        self._chunk_count += 1
        self._queue.put_nowait(chunk)

    def error(self, err: BaseException | str) -> None:
        if self.closed:
            logger.debug("Ignoring error() on %s channel already %s", self.name, self._state.value)
            return
        self._exception = err if isinstance(err, BaseException) else ProviderError(str(err))
        self._close(StreamState.ERROR)

    def done(self) -> None:
        if self.closed:
            return
        self._close(StreamState.DONE)

    def _close(self, state: StreamState) -> None:
        self._state = state
        self._queue.put_nowait(_END)
        self._closed.set()

    # Consumer side

    def __aiter__(self) -> AsyncIterator[T]:
        if self._drained:
            return _empty()
        if self._consuming:
            raise RuntimeError(f"{self.name} channel already has a consumer")
        self._consuming = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        try:
            while True:
                item = await self._queue.get()
                if item is _END:
                    self._drained = True
                    if self._exception is not None:
                        raise self._exception
                    return
                yield item
        finally:
            self._consuming = False

    async def wait(self) -> StreamState:
        """Block until the producer reaches a terminal state."""
        await self._closed.wait()
        return self._state

    async def collect(self) -> str:
        """Drain the channel and join the chunks as text."""
        parts: list[str] = []
        async for chunk in self:
            parts.append(str(chunk))
        return "".join(parts)


async def _empty() -> AsyncIterator[Any]:
    return
    yield


def create_streamable_value(name: str = "stream") -> StreamableValue[str]:
    return StreamableValue(name)


async def fill_channels(
    work: Callable[[], Awaitable[None]],
    *channels: StreamableValue | None,
    label: str,
) -> None:
    """Run ``work`` and close every channel with its outcome.

    Success closes each channel with ``done()``. Any failure, cancellation
    included, is placed on every channel so no consumer waits forever.
    """
    targets = [ch for ch in channels if ch is not None]
    try:
        await work()
    except asyncio.CancelledError:
        for ch in targets:
            ch.error(ProviderError(f"{label} was cancelled"))
        raise
    except Exception as exc:
        logger.warning("%s failed: %s", label, exc)
        for ch in targets:
            ch.error(exc)
    else:
        for ch in targets:
            ch.done()


def run_detached(coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
    """Schedule a producer coroutine and hold a reference until it finishes."""
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_on_task_done)
    return task


def _on_task_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Background producer %s failed", task.get_name(), exc_info=exc
        )


def pending_background_tasks() -> int:
    return len(_background_tasks)
