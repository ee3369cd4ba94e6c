"""The application log buffer and entrypoint status broadcast to watchers."""

from __future__ import annotations

import asyncio
import json
import weakref
from dataclasses import dataclass
from typing import Protocol

from enclaver.odyn.launcher import Exited, ExitStatus, Signaled

APP_LOG_CAPACITY = 128 * 1024

_READ_CHUNK = 4096


class _Writer(Protocol):
    def write(self, data: bytes) -> object: ...

    async def drain(self) -> None: ...


@dataclass
class LogCursor:
    """A reader's absolute position in a log."""

    pos: int = 0


class Watch:
    """Receives notifications that something being watched has changed."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.closed = False

    @property
    def has_changed(self) -> bool:
        return self._event.is_set()

    def _notify(self) -> None:
        self._event.set()

    async def changed(self) -> None:
        """Wait until a change is signalled, then mark it as seen."""
        await self._event.wait()
        self._event.clear()

    def close(self) -> None:
        self.closed = True


class WatchSet:
    """Broadcasts to every live watch that something has changed."""

    def __init__(self) -> None:
        self._watches: list[weakref.ref[Watch]] = []

    def __len__(self) -> int:
        return len(self._watches)

    def add(self) -> Watch:
        watch = Watch()
        self._watches.append(weakref.ref(watch))
        return watch

    def notify(self) -> None:
        live = [w for w in (ref() for ref in self._watches) if w is not None and not w.closed]
        self._watches = [weakref.ref(w) for w in live]
        for watch in live:
            watch._notify()


class ByteLog:
    """A bounded byte log that drops its oldest bytes when full."""

    def __init__(self, capacity: int = APP_LOG_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._buffer = bytearray()
        self._head = 0
        self._watches = WatchSet()

    def __len__(self) -> int:
        return len(self._buffer)

    def append(self, data: bytes) -> int:
        """Append data, notify watchers, and return how many bytes were trimmed."""
        if len(data) > self.capacity:
            raise ValueError(
                f"cannot append {len(data)} bytes to a log of capacity {self.capacity}"
            )
        trimmed = max(0, len(self._buffer) + len(data) - self.capacity)
        if trimmed:
            del self._buffer[:trimmed]
            self._head += trimmed
        self._buffer += data
        self._watches.notify()
        return trimmed

    def read(self, cursor: LogCursor, size: int) -> bytes:
        """Read up to `size` bytes from the cursor, skipping data already trimmed."""
        if cursor.pos < self._head:
            cursor.pos = self._head
        offset = cursor.pos - self._head
        data = bytes(self._buffer[offset : offset + size])
        cursor.pos += len(data)
        return data

    def watch(self) -> Watch:
        return self._watches.add()

    async def stream(self, writer: _Writer) -> None:
        """Write the log to `writer`, then keep writing whatever is appended."""
        cursor = LogCursor()
        watch = self.watch()
        try:
            while True:
                while chunk := self.read(cursor, _READ_CHUNK):
                    writer.write(chunk)
                await writer.drain()
                await watch.changed()
        finally:
            watch.close()


@dataclass(frozen=True)
class EntrypointStatus:
    """The entrypoint is running unless it has exited or failed fatally."""

    exit_status: ExitStatus | None = None
    error: str | None = None

    def as_json(self) -> str:
        if self.error is not None:
            return f'{{ "status": "fatal", "error": {json.dumps(self.error)} }}\n'
        if isinstance(self.exit_status, Exited):
            return f'{{ "status": "exited", "code": {self.exit_status.code} }}\n'
        if isinstance(self.exit_status, Signaled):
            return f'{{ "status": "signaled", "signal": "{self.exit_status.signal.name}" }}\n'
        return '{ "status": "running" }\n'


class AppStatus:
    """The entrypoint's status, pushed to every listener when it changes."""

    def __init__(self) -> None:
        self.status = EntrypointStatus()
        self._watches = WatchSet()

    def exited(self, status: ExitStatus) -> None:
        self.status = EntrypointStatus(exit_status=status)
        self._watches.notify()

    def fatal(self, err: str) -> None:
        self.status = EntrypointStatus(error=err)
        self._watches.notify()

    def as_json(self) -> str:
        return self.status.as_json()

    async def stream(self, writer: _Writer) -> None:
        """Write the status as a JSON line now and after every change."""
        watch = self._watches.add()
        try:
            while True:
                writer.write(self.as_json().encode())
                try:
                    await writer.drain()
                except ConnectionError:
                    return
                await watch.changed()
        finally:
            watch.close()