"""Command handler: runs a whitelisted program and streams its output.

The first message on the channel is the command line. It is split on
single spaces, with no shell parsing, into the program name and its
literal arguments. The program runs in the directory the request path
points to under the user's filesystem root, and its combined stdout and
stderr are flushed to the client at a fixed interval until it exits.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import shutil
import threading

from fastapi import status

from filedeck.domain.models import HandlerResult, MessageKind, UserContext
from filedeck.transport.channel import DuplexChannel, TransportError
from filedeck.utils.paths import working_directory

logger = logging.getLogger(__name__)

MSG_NOT_ALLOWED = "Command not allowed."
MSG_NOT_IMPLEMENTED = "Command not implemented."

DEFAULT_FLUSH_INTERVAL = 0.1
READ_CHUNK_SIZE = 4096

# Waiters outlive a handler that aborts mid-run; keep them referenced
# until the process they watch is reaped.
_background_tasks: set[asyncio.Task[None]] = set()


class OutputSink:
    """Append-only byte buffer that is drained as a whole.

    Appends come from the pipe reader, drains from the flush loop.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._lock = threading.Lock()

    def append(self, data: bytes) -> None:
        with self._lock:
            self._buffer.extend(data)

    def drain(self) -> bytes:
        """Return everything buffered so far and clear the buffer."""
        with self._lock:
            data = bytes(self._buffer)
            self._buffer.clear()
        return data


class ProcessHandle:
    """A spawned program, its output sink, and its completion flag.

    Use ``spawn`` to create one. ``done`` is set exactly once, after the
    program has exited and all of its output is in the sink.
    """

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self.sink = OutputSink()
        self.done = asyncio.Event()
        self._pump_task = asyncio.create_task(self._pump_output())
        self._wait_task = asyncio.create_task(self._wait_for_exit())
        _background_tasks.add(self._wait_task)
        self._wait_task.add_done_callback(_background_tasks.discard)

    @classmethod
    async def spawn(cls, program: str, args: list[str], cwd: str) -> ProcessHandle:
        """Start ``program`` with ``args`` in ``cwd``.

        Raises:
            OSError: If the process cannot be started, including when
                ``cwd`` does not exist.
            ValueError: If an argument contains a null byte.
        """
        process = await asyncio.create_subprocess_exec(
            program,
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        logger.info("Started %s (pid=%d) in %s", program, process.pid, cwd)
        return cls(process)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    async def _pump_output(self) -> None:
        assert self._process.stdout is not None
        while True:
            chunk = await self._process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            self.sink.append(chunk)

    async def _wait_for_exit(self) -> None:
        try:
            await self._pump_task
            await self._process.wait()
            logger.info("Process %d exited with %s", self.pid, self.returncode)
        except Exception as e:
            logger.warning("Waiting on process %d failed: %s", self.pid, e)
        finally:
            self.done.set()


async def run_command(
    context: UserContext,
    channel: DuplexChannel,
    request_path: str,
    flush_interval: float = DEFAULT_FLUSH_INTERVAL,
) -> HandlerResult:
    """Serve one command invocation over the channel.

    Returns status 0 when the command ran or was refused, 501 when the
    program is not installed, and 500 with the error when the process
    could not be started or the channel failed.
    """
    # str.split never returns an empty list, so an all-space message is
    # taken as a command whose program name is "".
    try:
        while True:
            message = await channel.receive()
            command = message.decode("utf-8", errors="replace").split(" ")
            if len(command) != 0:
                break
    except TransportError as e:
        return HandlerResult(status.HTTP_500_INTERNAL_SERVER_ERROR, e)

    program, args = command[0], command[1:]

    if program not in context.commands:
        logger.info("Refused command %r from %s", program, channel.client)
        return await _reply(channel, MSG_NOT_ALLOWED, 0)

    if shutil.which(program) is None:
        logger.info("Command %r is not installed", program)
        return await _reply(channel, MSG_NOT_IMPLEMENTED, status.HTTP_501_NOT_IMPLEMENTED)

    cwd = working_directory(context.filesystem, request_path)
    try:
        handle = await ProcessHandle.spawn(program, args, cwd)
    except (OSError, ValueError) as e:
        return HandlerResult(status.HTTP_500_INTERNAL_SERVER_ERROR, e)

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    async def flush(final: bool = False) -> None:
        text = decoder.decode(handle.sink.drain(), final=final)
        if text:
            await channel.send(text, MessageKind.TEXT)
            logger.debug("Sent %d chars of output from process %d", len(text), handle.pid)

    try:
        while not handle.done.is_set():
            await flush()
            await asyncio.sleep(flush_interval)

        # The process may have written more since the last flush.
        await flush(final=True)
    except TransportError as e:
        return HandlerResult(status.HTTP_500_INTERNAL_SERVER_ERROR, e)

    return HandlerResult(0)


async def _reply(channel: DuplexChannel, text: str, code: int) -> HandlerResult:
    try:
        await channel.send(text, MessageKind.TEXT)
    except TransportError as e:
        return HandlerResult(status.HTTP_500_INTERNAL_SERVER_ERROR, e)
    return HandlerResult(code)
