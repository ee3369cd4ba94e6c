import asyncio
import gc
import json
import os
from signal import Signals

import pytest

from enclaver.odyn.console import (
    APP_LOG_CAPACITY,
    AppStatus,
    ByteLog,
    EntrypointStatus,
    LogCursor,
    WatchSet,
)
from enclaver.odyn.launcher import Exited, Signaled


class _CollectingWriter:
    def __init__(self) -> None:
        self.data = bytearray()

    def write(self, data: bytes) -> None:
        self.data += data

    async def drain(self) -> None:
        await asyncio.sleep(0)


async def _wait_for(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def _read_all(log: ByteLog, cursor: LogCursor) -> bytes:
    out = bytearray()
    while chunk := log.read(cursor, 1024):
        out += chunk
    return bytes(out)


def _check_log(log: ByteLog, expected: int) -> None:
    data = _read_all(log, LogCursor())
    for actual in data:
        assert actual == expected
        expected = (expected + 1) & 0xFF


def _iota(length: int, start: int) -> tuple[bytes, int]:
    data = bytes((start + i) & 0xFF for i in range(length))
    return data, (start + length) & 0xFF


@pytest.mark.parametrize("capacity", [1000, 4096])
def test_byte_log(capacity):
    log = ByteLog(capacity)
    logged = 0
    quanta = 5
    i = 0
    while logged < log.capacity - quanta:
        data, i = _iota(quanta, i)
        assert log.append(data) == 0
        quanta += 1
        logged += len(data)
        _check_log(log, 0)

    expected = 0
    while logged < log.capacity * 3:
        data, i = _iota(quanta, i)
        trimmed = log.append(data)
        assert trimmed > 0
        quanta += 1
        expected = (expected + trimmed) & 0xFF
        _check_log(log, expected)
        logged += len(data)


def test_app_log_keeps_tail():
    log = ByteLog()
    expected = os.urandom(APP_LOG_CAPACITY * 3)
    for start in range(0, len(expected), 53):
        log.append(expected[start : start + 53])

    actual = _read_all(log, LogCursor())
    assert len(actual) == len(log) == APP_LOG_CAPACITY
    assert actual == expected[len(expected) - len(actual) :]


def test_read_with_stale_cursor_jumps_to_head():
    log = ByteLog(10)
    log.append(b"abcdefgh")
    cursor = LogCursor()
    assert log.read(cursor, 3) == b"abc"
    assert log.append(b"123456") == 4
    assert log.read(cursor, 100) == b"efgh123456"
    assert cursor.pos == 14
    assert log.read(cursor, 100) == b""


def test_append_larger_than_capacity_raises():
    log = ByteLog(4)
    with pytest.raises(ValueError):
        log.append(b"12345")


def test_watch_set_notifies_and_drops_dead_watches():
    watches = WatchSet()
    kept = watches.add()
    dropped = watches.add()
    closed = watches.add()
    closed.close()
    del dropped
    gc.collect()
    watches.notify()
    assert kept.has_changed
    assert not closed.has_changed
    assert len(watches) == 1


def test_append_notifies_watchers():
    log = ByteLog(16)
    watch = log.watch()
    assert not watch.has_changed
    log.append(b"x")
    assert watch.has_changed


@pytest.mark.asyncio
async def test_byte_log_stream_follows_appends():
    log = ByteLog(64)
    log.append(b"hello ")
    writer = _CollectingWriter()
    task = asyncio.create_task(log.stream(writer))
    await _wait_for(lambda: bytes(writer.data) == b"hello ")
    log.append(b"world")
    await _wait_for(lambda: bytes(writer.data) == b"hello world")
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert bytes(writer.data) == b"hello world"


def test_entrypoint_status_json():
    assert json.loads(EntrypointStatus().as_json()) == {"status": "running"}
    assert EntrypointStatus().as_json() == '{ "status": "running" }\n'
    assert json.loads(EntrypointStatus(exit_status=Exited(2)).as_json()) == {
        "status": "exited",
        "code": 2,
    }
    assert json.loads(EntrypointStatus(exit_status=Signaled(Signals.SIGTERM)).as_json()) == {
        "status": "signaled",
        "signal": "SIGTERM",
    }
    assert json.loads(EntrypointStatus(error="boom").as_json()) == {
        "status": "fatal",
        "error": "boom",
    }


def test_app_status_transitions():
    app_status = AppStatus()
    assert json.loads(app_status.as_json()) == {"status": "running"}
    app_status.fatal("no manifest")
    assert json.loads(app_status.as_json()) == {"status": "fatal", "error": "no manifest"}


def _lines(writer: _CollectingWriter) -> list[dict]:
    return [json.loads(line) for line in bytes(writer.data).decode().splitlines()]


@pytest.mark.asyncio
async def test_app_status_stream():
    app_status = AppStatus()
    client1 = _CollectingWriter()
    client2 = _CollectingWriter()
    tasks = [asyncio.create_task(app_status.stream(w)) for w in (client1, client2)]

    expected = [{"status": "running"}]
    await _wait_for(lambda: _lines(client1) == expected and _lines(client2) == expected)
    assert _lines(client1) == [{"status": "running"}]
    assert _lines(client2) == [{"status": "running"}]

    app_status.exited(Exited(2))
    expected.append({"status": "exited", "code": 2})
    await _wait_for(lambda: _lines(client1) == expected and _lines(client2) == expected)
    assert json.loads(app_status.as_json()) == {"status": "exited", "code": 2}
    assert _lines(client1)[-1] == {"status": "exited", "code": 2}
    assert _lines(client2)[-1] == {"status": "exited", "code": 2}

    app_status.exited(Signaled(Signals.SIGTERM))
    expected.append({"status": "signaled", "signal": "SIGTERM"})
    await _wait_for(lambda: _lines(client1) == expected and _lines(client2) == expected)
    assert json.loads(app_status.as_json()) == {"status": "signaled", "signal": "SIGTERM"}
    assert _lines(client1) == [
        {"status": "running"},
        {"status": "exited", "code": 2},
        {"status": "signaled", "signal": "SIGTERM"},
    ]
    assert _lines(client2) == _lines(client1)

    for task in tasks:
        task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    assert all(isinstance(r, asyncio.CancelledError) for r in results)