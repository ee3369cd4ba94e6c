"""Starting the entrypoint process and reaping its descendants."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from signal import Signals

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    uid: int
    gid: int


class ExitStatus:
    """How the entrypoint process ended."""


@dataclass(frozen=True)
class Exited(ExitStatus):
    code: int

    def __str__(self) -> str:
        return f"exited with {self.code}"


@dataclass(frozen=True)
class Signaled(ExitStatus):
    signal: Signals

    def __str__(self) -> str:
        return f"terminated by {self.signal.name}"


def _reap(sentinel: int) -> ExitStatus:
    """Reap processes until the sentinel exits; return its exit status."""
    while True:
        try:
            pid, status = os.waitpid(-1, 0)
        except OSError as err:
            raise RuntimeError(f"waitpid failed: {err}") from err

        if os.WIFEXITED(status):
            _log.debug("Zombie with PID %d reaped", pid)
            if pid == sentinel:
                return Exited(os.WEXITSTATUS(status))
        elif os.WIFSIGNALED(status):
            _log.debug("Zombie with PID %d reaped", pid)
            if pid == sentinel:
                return Signaled(Signals(os.WTERMSIG(status)))


def run_child(argv: Sequence[str | os.PathLike], creds: Credentials) -> ExitStatus:
    """Run a child in its own process group and reap all children until it exits."""
    child = subprocess.Popen(
        list(argv),
        user=creds.uid,
        group=creds.gid,
        process_group=0,
    )
    _log.debug("Child process started")
    status = _reap(child.pid)
    # The child has been reaped here; keep Popen from waiting on it again.
    child.returncode = status.code if isinstance(status, Exited) else -int(status.signal)
    return status


async def start_child(argv: Sequence[str | os.PathLike], creds: Credentials) -> ExitStatus:
    """Run the child on a worker thread without blocking the event loop."""
    return await asyncio.to_thread(run_child, list(argv), creds)