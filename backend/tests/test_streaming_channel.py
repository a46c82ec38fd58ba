import asyncio

import pytest

from multichat.providers.errors import ProviderError
from multichat.providers.streaming import (
    StreamClosedError,
    StreamState,
    create_streamable_value,
    fill_channels,
    pending_background_tasks,
    run_detached,
)


def test_chunks_arrive_in_order_and_match_final_content() -> None:
    async def scenario() -> tuple[list[str], str]:
        stream = create_streamable_value("text")

        async def produce() -> None:
            for chunk in ("The ", "quick ", "fox"):
                await asyncio.sleep(0)
                stream.update(chunk)
            stream.done()

        run_detached(produce(), name="producer")
        seen = [chunk async for chunk in stream]
        return seen, "".join(seen)

    seen, content = asyncio.run(scenario())
    assert seen == ["The ", "quick ", "fox"]
    assert content == "The quick fox"


def test_error_surfaces_once_after_delivered_chunks() -> None:
    async def scenario():
        stream = create_streamable_value("text")
        stream.update("partial")
        stream.error(RuntimeError("upstream went away"))

        seen: list[str] = []
        with pytest.raises(RuntimeError, match="upstream went away"):
            async for chunk in stream:
                seen.append(chunk)

        again = [chunk async for chunk in stream]
        return seen, again, stream.state

    seen, again, state = asyncio.run(scenario())
    assert seen == ["partial"]
    assert again == []
    assert state is StreamState.ERROR


def test_drained_channel_is_not_restartable() -> None:
    async def scenario():
        stream = create_streamable_value()
        stream.update("a")
        stream.done()
        first = await stream.collect()
        second = await stream.collect()
        return first, second

    assert asyncio.run(scenario()) == ("a", "")


def test_update_after_terminal_state_raises() -> None:
    async def scenario():
        stream = create_streamable_value()
        stream.done()
        with pytest.raises(StreamClosedError):
            stream.update("late")

    asyncio.run(scenario())


def test_only_first_terminal_call_counts() -> None:
    async def scenario():
        stream = create_streamable_value()
        stream.error("boom")
        stream.done()
        stream.error("second")
        return stream.state, stream.exception

    state, exc = asyncio.run(scenario())
    assert state is StreamState.ERROR
    assert isinstance(exc, ProviderError)
    assert str(exc) == "boom"


def test_second_concurrent_consumer_is_rejected() -> None:
    async def scenario():
        stream = create_streamable_value()
        stream.update("x")
        first = stream.__aiter__()
        assert await first.__anext__() == "x"
        with pytest.raises(RuntimeError, match="already has a consumer"):
            stream.__aiter__()
        stream.done()
        with pytest.raises(StopAsyncIteration):
            await first.__anext__()

    asyncio.run(scenario())


def test_wait_returns_terminal_state() -> None:
    async def scenario():
        stream = create_streamable_value()
        loop = asyncio.get_running_loop()
        loop.call_soon(stream.done)
        return await asyncio.wait_for(stream.wait(), timeout=1)

    assert asyncio.run(scenario()) is StreamState.DONE


def test_fill_channels_places_failure_on_every_channel() -> None:
    async def scenario():
        text = create_streamable_value("text")
        img = create_streamable_value("image")

        async def work() -> None:
            text.update("before")
            raise ValueError("bad payload")

        await fill_channels(work, text, img, None, label="test work")
        return text, img

    text, img = asyncio.run(scenario())
    assert text.state is StreamState.ERROR
    assert img.state is StreamState.ERROR
    assert isinstance(img.exception, ValueError)
    assert text.chunk_count == 1


def test_fill_channels_marks_cancelled_work_as_error() -> None:
    async def scenario():
        stream = create_streamable_value()

        async def work() -> None:
            await asyncio.sleep(10)

        task = run_detached(fill_channels(work, stream, label="slow work"))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return stream

    stream = asyncio.run(scenario())
    assert stream.state is StreamState.ERROR
    assert "slow work was cancelled" in str(stream.exception)


def test_detached_tasks_are_released_when_finished() -> None:
    async def scenario():
        before = pending_background_tasks()
        task = run_detached(asyncio.sleep(0), name="noop")
        assert pending_background_tasks() == before + 1
        await task
        await asyncio.sleep(0)
        return before, pending_background_tasks()

    before, after = asyncio.run(scenario())
    assert after == before
