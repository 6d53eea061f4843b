"""
Named Pipe Transport
====================

FIFO endpoints for the command protocol.

This module provides:
    - ensure_fifo: create a named pipe if it does not exist yet
    - CommandPipeReader: polls the command FIFO and hands complete lines
      to a callback
    - StatusPipeWriter: writes framed replies to the status FIFO, or to
      stdout while no reader is attached

Design Rules:
    - Nothing here blocks the event loop; every descriptor is O_NONBLOCK
    - The reader polls on a fixed period instead of registering with the
      selector, so an idle FIFO with no writer costs nothing
    - The writer opens lazily and retries the open on every write until a
      reader shows up
    - A reply is never lost silently: if the pipe cannot take it, it is
      mirrored to stdout
"""

import asyncio
import errno
import logging
import os
import stat
import sys
from typing import Callable, Optional, TextIO

from variable_rtsp.errors import ConfigurationError, ExitCode
from variable_rtsp.protocol.codec import DEFAULT_MAX_LINE_LENGTH, LineAssembler


logger = logging.getLogger(__name__)


LineHandler = Callable[[str], None]

_READ_CHUNK = 256
_NO_READER = (errno.ENXIO, errno.EPIPE, errno.EAGAIN)


def ensure_fifo(path: str, mode: int = 0o666) -> None:
    """
    Create a FIFO at path unless one already exists.

    Raises:
        ConfigurationError: if path exists and is not a FIFO, or mkfifo fails
    """
    try:
        st = os.stat(path)
    except FileNotFoundError:
        try:
            os.mkfifo(path, mode)
            # mkfifo honours the umask
            os.chmod(path, mode)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create pipe {path}: {e}", exit_code=ExitCode.COMMAND_PIPE
            ) from e
        logger.info(f"Created pipe {path}")
        return

    if not stat.S_ISFIFO(st.st_mode):
        raise ConfigurationError(
            f"{path} exists and is not a named pipe",
            exit_code=ExitCode.COMMAND_PIPE,
        )


class PipeMetrics:
    """Counters for pipe observability."""

    __slots__ = (
        "lines_received",
        "lines_discarded",
        "lines_failed",
        "messages_written",
        "messages_mirrored",
    )

    def __init__(self) -> None:
        self.lines_received: int = 0
        self.lines_discarded: int = 0
        self.lines_failed: int = 0
        self.messages_written: int = 0
        self.messages_mirrored: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "lines_received": self.lines_received,
            "lines_discarded": self.lines_discarded,
            "lines_failed": self.lines_failed,
            "messages_written": self.messages_written,
            "messages_mirrored": self.messages_mirrored,
        }


class CommandPipeReader:
    """
    Polls the command FIFO and dispatches complete lines.

    The FIFO is opened read-only and non-blocking, so open() succeeds
    whether or not a writer is attached. When the last writer closes,
    reads return EOF until a new writer opens the pipe; the poll loop
    simply keeps going. Bytes left without a newline at EOF are handed
    over as a final line so they never prefix the next writer's command.

    Attributes:
        path: Filesystem path of the FIFO
        poll_interval: Seconds between polls
        metrics: Operational counters

    Example:
        reader = CommandPipeReader("/tmp/cmd", dispatcher.handle_line)
        reader.open()
        task = asyncio.create_task(reader.run())
        ...
        await reader.stop()
    """

    def __init__(
        self,
        path: str,
        on_line: LineHandler,
        poll_interval: float = 0.1,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        metrics: Optional[PipeMetrics] = None,
    ) -> None:
        self.path = path
        self.poll_interval = poll_interval
        self.metrics = metrics or PipeMetrics()

        self._on_line = on_line
        self._assembler = LineAssembler(max_line_length)
        self._fd: Optional[int] = None
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    def open(self) -> None:
        """
        Open the FIFO.

        Raises:
            ConfigurationError: with COMMAND_PIPE exit code on failure
        """
        try:
            self._fd = os.open(self.path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as e:
            raise ConfigurationError(
                f"Error opening pipe {self.path}: {e}",
                exit_code=ExitCode.COMMAND_PIPE,
            ) from e
        logger.info(f"Listening for commands on {self.path}")

    def poll(self) -> int:
        """
        Drain whatever is readable right now.

        Returns:
            Number of complete lines handed to the callback
        """
        if self._fd is None:
            return 0

        handled = 0
        while True:
            try:
                data = os.read(self._fd, _READ_CHUNK)
            except BlockingIOError:
                break
            if not data:
                # Writer closed; an unterminated tail is still a command
                tail = self._assembler.flush()
                if tail is not None:
                    handled += self._deliver(tail)
                break
            discarded_before = self._assembler.discarded
            for line in self._assembler.feed(data):
                handled += self._deliver(line)
            self.metrics.lines_discarded += self._assembler.discarded - discarded_before
        return handled

    def _deliver(self, line: str) -> int:
        self.metrics.lines_received += 1
        try:
            self._on_line(line)
        except Exception as e:
            self.metrics.lines_failed += 1
            logger.error(f"Command {line!r} failed: {e}")
        return 1

    async def run(self) -> None:
        """Poll until stop() is called."""
        if self._fd is None:
            self.open()

        self._running = True
        self._stop_event.clear()
        logger.debug(f"Command pipe poll every {self.poll_interval * 1000:.0f} ms")

        while self._running:
            self.poll()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                break
            except asyncio.TimeoutError:
                pass

        logger.info("CommandPipeReader stopped")

    async def stop(self) -> None:
        self._running = False
        self._stop_event.set()
        self.close()

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None
        self._assembler.reset()


class StatusPipeWriter:
    """
    Writes framed replies to the status FIFO.

    With no path configured every message goes to stdout. With a path,
    the FIFO is opened on the first write. Opening a FIFO write-only and
    non-blocking fails with ENXIO while nobody is reading; in that case,
    and whenever a write fails because the reader left or the pipe is
    full, the message is mirrored to stdout and the descriptor dropped so
    the next write retries the open.

    Attributes:
        path: FIFO path, or None for stdout only
        metrics: Operational counters
    """

    def __init__(
        self,
        path: Optional[str] = None,
        stream: Optional[TextIO] = None,
        metrics: Optional[PipeMetrics] = None,
    ) -> None:
        self.path = path
        self.metrics = metrics or PipeMetrics()
        self._stream = stream
        self._fd: Optional[int] = None

    def write(self, text: str) -> bool:
        """
        Deliver one framed message.

        Returns:
            True if it went to the status pipe, False if it was mirrored
        """
        if self.path is None:
            self._mirror(text)
            return False

        if self._fd is None and not self._open():
            self._mirror(text)
            return False

        payload = text.encode("ascii", errors="replace")
        view = memoryview(payload)
        try:
            while view:
                written = os.write(self._fd, view)
                view = view[written:]
        except OSError as e:
            if e.errno not in _NO_READER:
                raise
            if len(view) < len(payload):
                logger.warning(
                    f"Status pipe took {len(payload) - len(view)}/{len(payload)} bytes, "
                    f"mirroring whole message"
                )
            else:
                logger.debug(f"Status pipe unavailable ({errno.errorcode.get(e.errno)})")
            self.close()
            self._mirror(text)
            return False

        self.metrics.messages_written += 1
        return True

    def _open(self) -> bool:
        try:
            self._fd = os.open(self.path, os.O_WRONLY | os.O_NONBLOCK)
        except OSError as e:
            if e.errno not in _NO_READER:
                logger.error(f"Error opening pipe {self.path}: {e}")
            return False
        logger.info(f"Status pipe {self.path} opened")
        return True

    def _mirror(self, text: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(text)
        stream.flush()
        self.metrics.messages_mirrored += 1

    def close(self) -> None:
        if self._fd is not None:
            try:
                os.close(self._fd)
            except OSError:
                pass
            self._fd = None
