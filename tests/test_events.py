from __future__ import annotations

import asyncio
import logging

import pytest

from miaw.util.asyncio import cancel_suppress, ensure_task
from miaw.util.events import AsyncEventEmitter


@pytest.mark.asyncio
async def test_emit_calls_sync_and_async_listeners_in_order() -> None:
    ee = AsyncEventEmitter()
    got: list[str] = []

    def sync_listener(x: str) -> None:
        got.append(f"sync:{x}")

    async def async_listener(x: str) -> None:
        await asyncio.sleep(0)
        got.append(f"async:{x}")

    ee.on("evt", sync_listener)
    ee.on("evt", async_listener)

    assert await ee.emit("evt", "a") is True
    assert got == ["sync:a", "async:a"]
    assert await ee.emit("other") is False


@pytest.mark.asyncio
async def test_once_and_off() -> None:
    ee = AsyncEventEmitter()
    got: list[int] = []
    ee.once("n", got.append)
    await ee.emit("n", 1)
    await ee.emit("n", 2)
    assert got == [1]

    ee.on("n", got.append)
    ee.off("n", got.append)
    await ee.emit("n", 3)
    assert got == [1]
    assert ee.listener_count("n") == 0


@pytest.mark.asyncio
async def test_wait_for_predicate() -> None:
    ee = AsyncEventEmitter()

    async def produce() -> None:
        await asyncio.sleep(0)
        await ee.emit("state", "connecting")
        await ee.emit("state", "connected")

    task = asyncio.create_task(produce())
    got = await ee.wait_for("state", predicate=lambda s: s == "connected", timeout_s=1)
    await task
    assert got == "connected"


@pytest.mark.asyncio
async def test_failing_listener_is_logged_when_error_logger_set(caplog) -> None:
    ee = AsyncEventEmitter(error_logger=logging.getLogger("test.events"))
    got: list[str] = []

    def broken(_x: str) -> None:
        raise RuntimeError("boom")

    ee.on("evt", broken)
    ee.on("evt", got.append)

    with caplog.at_level(logging.ERROR, logger="test.events"):
        await ee.emit("evt", "still delivered")

    assert got == ["still delivered"]
    assert "listener for 'evt' failed" in caplog.text


@pytest.mark.asyncio
async def test_failing_listener_propagates_without_error_logger() -> None:
    ee = AsyncEventEmitter()

    def broken() -> None:
        raise RuntimeError("boom")

    ee.on("evt", broken)
    with pytest.raises(RuntimeError):
        await ee.emit("evt")


@pytest.mark.asyncio
async def test_remove_all_listeners_cancels_waiters() -> None:
    ee = AsyncEventEmitter()
    fut = ee.wait_for_future("never")
    ee.on("x", lambda: None)
    ee.remove_all_listeners()
    assert fut.cancelled()
    assert ee.listener_count("x") == 0


@pytest.mark.asyncio
async def test_cancel_suppress_and_ensure_task() -> None:
    started = asyncio.Event()

    async def forever() -> None:
        started.set()
        await asyncio.Event().wait()

    task = ensure_task(forever(), name="forever")
    await started.wait()
    await cancel_suppress(task)
    assert task.cancelled()

    await cancel_suppress(None)
    await cancel_suppress(task)


@pytest.mark.asyncio
async def test_ensure_task_logs_failures(caplog) -> None:
    log = logging.getLogger("test.tasks")

    async def fail() -> None:
        raise ValueError("bad")

    with caplog.at_level(logging.ERROR, logger="test.tasks"):
        task = ensure_task(fail(), name="failing", logger=log)
        with pytest.raises(ValueError):
            await task
        await asyncio.sleep(0)

    assert "background task failing failed: bad" in caplog.text
