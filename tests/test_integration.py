"""Integration tests running a real child process in place of ssh."""

import asyncio
import os
import stat
import sys

import pytest

from sish_client.common.exceptions import ProcessError
from sish_client.events import CloseEvent, LogEvent, ReadyEvent, TunnelKind
from sish_client.session import TunnelSession

FAKE_SSH = """#!/bin/sh
printf 'Press Ctrl-C to close the session.\\r\\n'
printf '\\033[32mHTTP: http://abc.example.com\\033[0m\\r\\n'
printf '\\033[1mGET / 200\\033[0m\\r\\n'
exec sleep 30
"""

FAILING_SSH = """#!/bin/sh
exit 255
"""


def write_script(tmp_path, name: str, content: str) -> str:
    path = tmp_path / name
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return str(path)


@pytest.mark.integration
@pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")
class TestSessionIntegration:
    @pytest.mark.asyncio
    async def test_ready_log_and_disconnect(self, tmp_path):
        """A relay-like process goes through the whole lifecycle"""
        ssh = write_script(tmp_path, "fake-ssh", FAKE_SSH)
        session = await TunnelSession.open(
            local_port=3000, sish_host="tunnel.example.com", ssh_command=ssh
        )
        events = []
        got_log = asyncio.Event()
        session.add_listener(events.append)
        session.on(LogEvent, lambda event: got_log.set())

        assert await session.wait_ready(timeout=5) == "https://abc.example.com"
        await asyncio.wait_for(got_log.wait(), timeout=5)

        session.disconnect()
        assert await session.wait_closed() == 0

        assert events[0] == ReadyEvent(
            kind=TunnelKind.HTTPS, address="https://abc.example.com"
        )
        assert LogEvent(line="GET / 200") in events
        assert isinstance(events[-1], CloseEvent)
        assert events[-1].signal is not None
        assert session.tunnel_url is None

    @pytest.mark.asyncio
    async def test_exit_code_reported(self, tmp_path):
        """A failing client closes with its exit code"""
        ssh = write_script(tmp_path, "failing-ssh", FAILING_SSH)

        async with TunnelSession(
            local_port=3000, sish_host="tunnel.example.com", ssh_command=ssh
        ) as session:
            assert await session.wait_closed() == 255

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        """A missing ssh binary fails the connect call"""
        session = TunnelSession(
            local_port=3000,
            sish_host="tunnel.example.com",
            ssh_command=os.fspath(tmp_path / "does-not-exist"),
        )

        with pytest.raises(ProcessError):
            await session.connect()
