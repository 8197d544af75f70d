import asyncio
import threading

import pytest

from signalr_client.completer import CompletedFuture, ManualFuture, ManualStream


@pytest.mark.asyncio
async def test_completed_future_returns_value_once():
    future = CompletedFuture(42)
    assert await future == 42
    with pytest.raises(RuntimeError):
        await future


@pytest.mark.asyncio
async def test_manual_future_completion_flags():
    future, completer = ManualFuture.create()
    assert not future.is_completed()
    assert not completer.is_completed()
    completer.complete("done")
    assert future.is_completed()
    assert completer.is_completed()
    assert await future == "done"


@pytest.mark.asyncio
async def test_manual_future_wakes_waiting_task():
    future, completer = ManualFuture.create()
    task = asyncio.ensure_future(future)
    await asyncio.sleep(0)
    assert not task.done()
    completer.complete([1, 2, 3])
    assert await asyncio.wait_for(task, 1) == [1, 2, 3]


@pytest.mark.asyncio
async def test_manual_future_completed_from_thread():
    future, completer = ManualFuture.create()
    timer = threading.Timer(0.01, completer.complete, args=("threaded",))
    timer.start()
    try:
        assert await asyncio.wait_for(future, 2) == "threaded"
    finally:
        timer.join()


@pytest.mark.asyncio
async def test_manual_future_double_complete_raises():
    future, completer = ManualFuture.create()
    completer.complete(1)
    with pytest.raises(asyncio.InvalidStateError):
        completer.complete(2)
    assert await future == 1


@pytest.mark.asyncio
async def test_manual_future_fail_raises_error():
    future, completer = ManualFuture.create()
    assert not future.is_completed()
    completer.fail(ValueError("hub error"))
    with pytest.raises(ValueError) as info:
        await future
    assert str(info.value) == "hub error"
    assert future.is_completed()


@pytest.mark.asyncio
async def test_manual_future_cancel_drops_value():
    future, completer = ManualFuture.create()
    completer.complete(1)
    completer.cancel()
    assert future.is_completed()
    with pytest.raises(asyncio.CancelledError):
        await future
    with pytest.raises(asyncio.InvalidStateError):
        completer.complete(3)


@pytest.mark.asyncio
async def test_manual_future_cancel_while_waiting():
    future, completer = ManualFuture.create()
    task = asyncio.ensure_future(future)
    await asyncio.sleep(0)
    assert not task.done()
    completer.cancel()
    assert future.is_completed()
    assert completer.is_completed()
    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, 1)
    assert task.done()


@pytest.mark.asyncio
async def test_manual_stream_yields_pushed_items_in_order():
    stream, completer = ManualStream.create()
    for value in range(5):
        completer.push(value)
    completer.close()
    assert [item async for item in stream] == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_manual_stream_wakes_consumer():
    stream, completer = ManualStream.create()

    async def collect():
        return [item async for item in stream]

    task = asyncio.ensure_future(collect())
    await asyncio.sleep(0)
    assert not task.done()
    completer.push("a")
    await asyncio.sleep(0)
    completer.push("b")
    completer.close()
    assert await asyncio.wait_for(task, 1) == ["a", "b"]


@pytest.mark.asyncio
async def test_manual_stream_closed_immediately_is_empty():
    stream, completer = ManualStream.create()
    completer.close()
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


@pytest.mark.asyncio
async def test_manual_stream_push_from_thread():
    stream, completer = ManualStream.create()

    def produce():
        for value in ("x", "y"):
            completer.push(value)
        completer.close()

    async def collect():
        return [item async for item in stream]

    task = asyncio.ensure_future(collect())
    await asyncio.sleep(0)
    thread = threading.Thread(target=produce)
    thread.start()
    try:
        assert await asyncio.wait_for(task, 2) == ["x", "y"]
    finally:
        thread.join()