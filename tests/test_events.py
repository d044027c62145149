"""Tests for the batch event emitter."""
import pytest

from blobdrive.utils.events import PROGRESS, EventEmitter


@pytest.mark.asyncio
async def test_sync_and_async_listeners():
    emitter = EventEmitter()
    seen = []

    async def on_async(value):
        seen.append(("async", value))

    emitter.on(PROGRESS, lambda value: seen.append(("sync", value)))
    emitter.on(PROGRESS, on_async)
    await emitter.emit(PROGRESS, 50)

    assert seen == [("sync", 50), ("async", 50)]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others():
    emitter = EventEmitter()
    seen = []

    def broken(value):
        raise RuntimeError("render failed")

    emitter.on(PROGRESS, broken)
    emitter.on(PROGRESS, seen.append)
    await emitter.emit(PROGRESS, 100)

    assert seen == [100]


@pytest.mark.asyncio
async def test_off_and_duplicate_subscription():
    emitter = EventEmitter()
    seen = []

    emitter.on(PROGRESS, seen.append)
    emitter.on(PROGRESS, seen.append)
    assert emitter.listener_count(PROGRESS) == 1

    emitter.off(PROGRESS, seen.append)
    await emitter.emit(PROGRESS, 10)
    await emitter.emit("unknown", 1)

    assert seen == []
    assert emitter.listener_count(PROGRESS) == 0
