"""
Named Pipe Tests
================

FIFO reader and writer behavior on real FIFOs under tmp_path.
"""

import asyncio
import errno
import io
import os
import stat

import pytest

from variable_rtsp.errors import ConfigurationError, ExitCode
from variable_rtsp.protocol.pipes import CommandPipeReader, StatusPipeWriter, ensure_fifo


@pytest.fixture
def fifo(tmp_path):
    path = tmp_path / "pipe"
    ensure_fifo(str(path))
    return str(path)


class TestEnsureFifo:

    def test_creates_fifo(self, tmp_path):
        path = tmp_path / "cmd"
        ensure_fifo(str(path))
        assert stat.S_ISFIFO(os.stat(path).st_mode)

    def test_existing_fifo_kept(self, fifo):
        ensure_fifo(fifo)
        assert stat.S_ISFIFO(os.stat(fifo).st_mode)

    def test_regular_file_rejected(self, tmp_path):
        path = tmp_path / "file"
        path.write_text("")

        with pytest.raises(ConfigurationError) as exc_info:
            ensure_fifo(str(path))
        assert exc_info.value.exit_code == ExitCode.COMMAND_PIPE


class TestStatusPipeWriter:

    def test_no_path_writes_stream(self):
        stream = io.StringIO()
        writer = StatusPipeWriter(None, stream=stream)

        assert writer.write("hello\n") is False
        assert stream.getvalue() == "hello\n"

    def test_no_reader_mirrors(self, fifo):
        stream = io.StringIO()
        writer = StatusPipeWriter(fifo, stream=stream)

        assert writer.write("msg\n") is False
        assert stream.getvalue() == "msg\n"
        assert writer.metrics.messages_mirrored == 1

    def test_writes_to_reader(self, fifo):
        stream = io.StringIO()
        reader_fd = os.open(fifo, os.O_RDONLY | os.O_NONBLOCK)
        writer = StatusPipeWriter(fifo, stream=stream)
        try:
            assert writer.write("msg{...}\n") is True
            assert os.read(reader_fd, 64) == b"msg{...}\n"
            assert stream.getvalue() == ""
        finally:
            writer.close()
            os.close(reader_fd)

    def test_short_writes_completed(self, fifo, monkeypatch):
        stream = io.StringIO()
        reader_fd = os.open(fifo, os.O_RDONLY | os.O_NONBLOCK)
        writer = StatusPipeWriter(fifo, stream=stream)
        real_write = os.write

        monkeypatch.setattr(os, "write", lambda fd, data: real_write(fd, bytes(data[:4])))
        try:
            assert writer.write("msg{ status: data:{ }}\n") is True
            assert os.read(reader_fd, 64) == b"msg{ status: data:{ }}\n"
            assert stream.getvalue() == ""
        finally:
            monkeypatch.undo()
            writer.close()
            os.close(reader_fd)

    def test_pipe_full_mid_message_mirrors_whole(self, fifo, monkeypatch):
        stream = io.StringIO()
        reader_fd = os.open(fifo, os.O_RDONLY | os.O_NONBLOCK)
        writer = StatusPipeWriter(fifo, stream=stream)
        real_write = os.write
        calls = []

        def filling_write(fd, data):
            calls.append(len(data))
            if len(calls) > 1:
                raise BlockingIOError(errno.EAGAIN, "Resource temporarily unavailable")
            return real_write(fd, bytes(data[:4]))

        monkeypatch.setattr(os, "write", filling_write)
        try:
            assert writer.write("msg{ status: data:{ }}\n") is False
        finally:
            monkeypatch.undo()
            writer.close()
            os.close(reader_fd)

        assert stream.getvalue() == "msg{ status: data:{ }}\n"
        assert writer.metrics.messages_mirrored == 1

    def test_reader_gone_mirrors_and_reopens(self, fifo):
        stream = io.StringIO()
        writer = StatusPipeWriter(fifo, stream=stream)

        reader_fd = os.open(fifo, os.O_RDONLY | os.O_NONBLOCK)
        assert writer.write("one\n") is True
        os.close(reader_fd)

        assert writer.write("two\n") is False
        assert stream.getvalue() == "two\n"

        reader_fd = os.open(fifo, os.O_RDONLY | os.O_NONBLOCK)
        try:
            assert writer.write("three\n") is True
            assert os.read(reader_fd, 64) == b"three\n"
        finally:
            writer.close()
            os.close(reader_fd)


class TestCommandPipeReader:

    def test_open_missing_path(self, tmp_path):
        reader = CommandPipeReader(str(tmp_path / "missing"), lambda line: None)

        with pytest.raises(ConfigurationError) as exc_info:
            reader.open()
        assert exc_info.value.exit_code == ExitCode.COMMAND_PIPE

    def test_poll_without_writer(self, fifo):
        reader = CommandPipeReader(fifo, lambda line: None)
        reader.open()
        try:
            assert reader.poll() == 0
        finally:
            reader.close()

    def test_poll_delivers_lines(self, fifo):
        lines = []
        reader = CommandPipeReader(fifo, lines.append)
        reader.open()
        writer_fd = os.open(fifo, os.O_WRONLY | os.O_NONBLOCK)
        try:
            os.write(writer_fd, b"status::::\nprintbin::::\npart")
            assert reader.poll() == 2
            os.write(writer_fd, b"ial\n")
            assert reader.poll() == 1
        finally:
            os.close(writer_fd)
            reader.close()

        assert lines == ["status::::", "printbin::::", "partial"]
        assert reader.metrics.lines_received == 3

    def test_overlong_line_dropped(self, fifo):
        lines = []
        reader = CommandPipeReader(fifo, lines.append, max_line_length=16)
        reader.open()
        writer_fd = os.open(fifo, os.O_WRONLY | os.O_NONBLOCK)
        try:
            os.write(writer_fd, b"z" * 100 + b"\nstatus::::\n")
            reader.poll()
        finally:
            os.close(writer_fd)
            reader.close()

        assert lines == ["status::::"]
        assert reader.metrics.lines_discarded == 1

    def test_unterminated_tail_dispatched_at_eof(self, fifo):
        lines = []
        reader = CommandPipeReader(fifo, lines.append)
        reader.open()
        try:
            first = os.open(fifo, os.O_WRONLY | os.O_NONBLOCK)
            os.write(first, b"printbin")
            os.close(first)
            assert reader.poll() == 1

            second = os.open(fifo, os.O_WRONLY | os.O_NONBLOCK)
            os.write(second, b"status::::\n")
            os.close(second)
            assert reader.poll() == 1
        finally:
            reader.close()

        assert lines == ["printbin", "status::::"]

    def test_failing_line_does_not_stop_reader(self, fifo):
        lines = []

        def on_line(line):
            if line.startswith("setparam"):
                raise OverflowError("1e+20 not in range 0 to 4294967295")
            lines.append(line)

        async def scenario():
            reader = CommandPipeReader(fifo, on_line, poll_interval=0.01)
            reader.open()
            task = asyncio.create_task(reader.run())
            writer_fd = os.open(fifo, os.O_WRONLY | os.O_NONBLOCK)
            try:
                os.write(writer_fd, b"setparam:enc0::bitrate:1e20\nstatus::::\n")
                for _ in range(100):
                    if lines:
                        break
                    await asyncio.sleep(0.01)
                assert not task.done()
            finally:
                os.close(writer_fd)
                await reader.stop()
                await asyncio.wait_for(task, timeout=1.0)
            return reader

        reader = asyncio.run(scenario())

        assert lines == ["status::::"]
        assert reader.metrics.lines_received == 2
        assert reader.metrics.lines_failed == 1

    def test_run_until_stopped(self, fifo):
        lines = []

        async def scenario():
            reader = CommandPipeReader(fifo, lines.append, poll_interval=0.01)
            reader.open()
            task = asyncio.create_task(reader.run())
            writer_fd = os.open(fifo, os.O_WRONLY | os.O_NONBLOCK)
            try:
                os.write(writer_fd, b"status::::\n")
                for _ in range(100):
                    if lines:
                        break
                    await asyncio.sleep(0.01)
            finally:
                os.close(writer_fd)
                await reader.stop()
                await asyncio.wait_for(task, timeout=1.0)
            return reader

        reader = asyncio.run(scenario())

        assert lines == ["status::::"]
        assert not reader.is_open
