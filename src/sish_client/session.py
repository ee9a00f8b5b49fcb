"""Tunnel session driving an ssh reverse forward through a sish relay."""

import asyncio
from collections.abc import AsyncIterator, Callable
from types import TracebackType
from typing import Any, TypeVar

from pydantic import ValidationError

from .common.exceptions import ConfigurationError, ProcessError, TunnelClosedError
from .common.logging import get_logger
from .config import TunnelSessionConfig
from .events import (
    CloseEvent,
    LogEvent,
    ReadyEvent,
    SessionState,
    TunnelEvent,
    TunnelKind,
)
from .parser import LineKind, OutputLine, OutputParser

logger = get_logger(__name__)

READ_CHUNK_SIZE = 65536

Listener = Callable[[TunnelEvent], None]
EventT = TypeVar("EventT", ReadyEvent, LogEvent, CloseEvent)


def _describe_validation_error(error: ValidationError) -> str:
    """Flatten pydantic errors into a single readable message."""
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        message = err["msg"].removeprefix("Value error, ")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


class TunnelSession:
    """A single reverse tunnel backed by an ``ssh`` child process.

    The session starts in ``CONNECTING``, moves to ``READY`` when the relay
    announces the public address and ends in ``CLOSED`` when the process
    exits. Events are delivered to listeners in the order the relay wrote
    the corresponding output.

    Example:
        >>> async with TunnelSession(local_port=3000, sish_host="tuns.sh") as session:
        ...     url = await session.wait_ready(timeout=30)
    """

    def __init__(self, config: TunnelSessionConfig | None = None, **options: Any):
        """Validate configuration and prepare the ssh command.

        Args:
            config: Complete tunnel configuration
            **options: Configuration fields, used when ``config`` is omitted

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        if config is not None and options:
            raise ConfigurationError("Pass either a config or keyword options, not both")

        if config is None:
            try:
                config = TunnelSessionConfig(**options)
            except ValidationError as e:
                raise ConfigurationError(_describe_validation_error(e)) from e

        self.config = config
        self.args = config.ssh_args()

        self._process: asyncio.subprocess.Process | None = None
        self._drain_task: asyncio.Task[None] | None = None
        self._parser = OutputParser()
        self._listeners: list[Listener] = []

        self._state = SessionState.CONNECTING
        self._tunnel_url: str | None = None
        self._disconnect_requested = False
        self._close_event: CloseEvent | None = None
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()

        logger.debug(
            "TunnelSession initialized",
            sish_host=config.sish_host,
            forward_spec=config.forward_spec,
        )

    @classmethod
    async def open(
        cls, config: TunnelSessionConfig | None = None, **options: Any
    ) -> "TunnelSession":
        """Create a session and launch its ssh process."""
        session = cls(config, **options)
        await session.connect()
        return session

    @property
    def tunnel_url(self) -> str | None:
        """Public tunnel address, None until ready and after disconnect."""
        return self._tunnel_url

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def exit_code(self) -> int | None:
        """Exit code reported on close, None while the process is alive."""
        return self._close_event.exit_code if self._close_event else None

    @property
    def version(self) -> str:
        from . import __version__  # noqa: PLC0415

        return __version__

    async def connect(self) -> None:
        """Launch the ssh process and start draining its output.

        Raises:
            ProcessError: If the session was already started or ssh cannot be launched
        """
        if self._process is not None:
            raise ProcessError("Tunnel session already connected")
        if self._disconnect_requested:
            raise ProcessError("Tunnel session was disconnected")

        logger.info("Starting tunnel process", args=self.args)
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
            )
        except OSError as e:
            logger.error("Failed to start tunnel process", error=str(e))
            raise ProcessError(f"Failed to start ssh process: {e}") from e

        logger.info("Tunnel process started", pid=self._process.pid)
        self._drain_task = asyncio.create_task(self._run(self._process))

    def disconnect(self) -> None:
        """Kill the ssh process and forget the tunnel address.

        The ``close`` event follows once the process has actually exited.
        """
        self._tunnel_url = None
        self._disconnect_requested = True

        process = self._process
        if process is None or process.returncode is not None:
            logger.debug("Tunnel process not running, nothing to kill")
            return

        logger.info("Disconnecting tunnel", pid=process.pid)
        try:
            process.kill()
        except ProcessLookupError:
            logger.debug("Tunnel process already exited", pid=process.pid)

    async def wait_ready(self, timeout: float | None = None) -> str:
        """Wait until the relay announces the tunnel address.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            The tunnel URL

        Raises:
            ProcessError: If the session was never connected
            TunnelClosedError: If the tunnel closed or was disconnected first
            TimeoutError: If the timeout elapsed
        """
        if self._process is None:
            raise ProcessError("Tunnel session is not connected")

        waiters = {
            asyncio.ensure_future(self._ready.wait()),
            asyncio.ensure_future(self._closed.wait()),
        }
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                waiter.cancel()

        if not done:
            raise TimeoutError(f"Tunnel not ready after {timeout} seconds")

        if self._ready.is_set():
            if self._tunnel_url is None:
                raise TunnelClosedError("Tunnel was disconnected", self.exit_code)
            return self._tunnel_url

        raise TunnelClosedError(
            f"Tunnel closed before becoming ready (exit code {self.exit_code})",
            self.exit_code,
        )

    async def wait_closed(self) -> int | None:
        """Wait for the ssh process to exit.

        Returns:
            Reported exit code, or None if the session was never connected
        """
        if self._drain_task is not None:
            await self._drain_task
        return self.exit_code

    async def aclose(self) -> None:
        """Disconnect and wait until the process and its reader are gone."""
        self.disconnect()
        await self.wait_closed()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback for every event.

        Args:
            listener: Called with each event in emission order

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def on(
        self, event_type: type[EventT], listener: Callable[[EventT], None]
    ) -> Callable[[], None]:
        """Register a callback for one event type only."""

        def filtered(event: TunnelEvent) -> None:
            if isinstance(event, event_type):
                listener(event)

        return self.add_listener(filtered)

    def events(self) -> AsyncIterator[TunnelEvent]:
        """Iterate over events emitted from now on, ending with ``close``.

        The subscription starts when this method is called, not on the
        first iteration, so nothing emitted in between is missed.
        """
        queue: asyncio.Queue[TunnelEvent] = asyncio.Queue()
        remove: Callable[[], None] | None = None
        if self._close_event is not None:
            queue.put_nowait(self._close_event)
        else:
            remove = self.add_listener(queue.put_nowait)
        return self._iter_queue(queue, remove)

    @staticmethod
    async def _iter_queue(
        queue: "asyncio.Queue[TunnelEvent]", remove: Callable[[], None] | None
    ) -> AsyncIterator[TunnelEvent]:
        try:
            while True:
                event = await queue.get()
                yield event
                if isinstance(event, CloseEvent):
                    return
        finally:
            if remove is not None:
                remove()

    async def _run(self, process: asyncio.subprocess.Process) -> None:
        try:
            if process.stdout is not None:
                await self._drain(process.stdout)
        except asyncio.CancelledError:
            logger.debug("Output reader cancelled, killing tunnel process")
            if process.returncode is None:
                process.kill()
            raise
        finally:
            returncode = await process.wait()
            self._handle_exit(returncode)

    async def _drain(self, stream: asyncio.StreamReader) -> None:
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            self._handle_lines(self._parser.feed(chunk))
        self._handle_lines(self._parser.flush())

    def _handle_lines(self, lines: list[OutputLine]) -> None:
        for line in lines:
            if self._disconnect_requested or self._state is SessionState.CLOSED:
                return

            if line.is_ready and self._state is SessionState.CONNECTING:
                self._mark_ready(line)
            elif self._state is SessionState.READY:
                logger.debug("Tunnel output", line=line.text)
                self._emit(LogEvent(line=line.text))
            else:
                logger.debug("Discarding output before tunnel is ready", line=line.text)

    def _mark_ready(self, line: OutputLine) -> None:
        kind = TunnelKind.HTTPS if line.kind == LineKind.HTTP_READY else TunnelKind.TCP
        address = str(line.address)

        self._tunnel_url = address
        self._state = SessionState.READY
        self._ready.set()

        logger.info("Tunnel ready", kind=kind.value, address=address)
        self._emit(ReadyEvent(kind=kind, address=address))

    def _handle_exit(self, returncode: int) -> None:
        if self._state is SessionState.CLOSED:
            return

        # Negative return codes mean the process was killed by a signal
        if returncode < 0:
            event = CloseEvent(exit_code=0, signal=-returncode)
        else:
            event = CloseEvent(exit_code=returncode)

        self._state = SessionState.CLOSED
        self._close_event = event
        self._closed.set()

        logger.info(
            "Tunnel process exited", exit_code=event.exit_code, signal=event.signal
        )
        self._emit(event)

    def _emit(self, event: TunnelEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "Tunnel event listener failed", event_type=event.type, error=str(e)
                )

    async def __aenter__(self) -> "TunnelSession":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return (
            f"TunnelSession(sish_host={self.config.sish_host!r}, "
            f"forward_spec={self.config.forward_spec!r}, state={self._state.value})"
        )
