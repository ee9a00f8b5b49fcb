"""Shared pytest fixtures for sish client tests."""

import asyncio
import signal

import pytest


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process`` driven by the test."""

    def __init__(self, pid: int = 12345):
        self.pid = pid
        self.returncode: int | None = None
        self.stdout = asyncio.StreamReader()
        self.kill_calls = 0
        self._exited = asyncio.Event()

    def write(self, data: bytes) -> None:
        """Make the process print data on stdout."""
        self.stdout.feed_data(data)

    def exit(self, returncode: int = 0) -> None:
        """Terminate the process with the given return code."""
        if self.returncode is not None:
            return
        self.returncode = returncode
        self.stdout.feed_eof()
        self._exited.set()

    def kill(self) -> None:
        self.kill_calls += 1
        self.exit(-signal.SIGKILL)

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


class FakeSpawner:
    """Replacement for ``asyncio.create_subprocess_exec``."""

    def __init__(self) -> None:
        self.calls: list[tuple[tuple[str, ...], dict]] = []
        self.processes: list[FakeProcess] = []
        self.error: BaseException | None = None

    @property
    def process(self) -> FakeProcess:
        return self.processes[-1]

    async def __call__(self, *args: str, **kwargs) -> FakeProcess:
        self.calls.append((args, kwargs))
        if self.error is not None:
            raise self.error
        process = FakeProcess()
        self.processes.append(process)
        return process


@pytest.fixture
def fake_spawn(monkeypatch):
    """Patch process creation so sessions get a FakeProcess.

    Returns:
        FakeSpawner: Records spawn calls and the processes handed out
    """
    spawner = FakeSpawner()
    monkeypatch.setattr("asyncio.create_subprocess_exec", spawner)
    return spawner


async def settle(rounds: int = 10) -> None:
    """Let background reader tasks catch up with fed output."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def session_options():
    """Minimal valid session options.

    Returns:
        dict: Keyword options for TunnelSession
    """
    return {"local_port": 3000, "sish_host": "tunnel.example.com"}
