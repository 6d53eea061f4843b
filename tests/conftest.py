"""
Test Configuration
==================

Pytest fixtures and test configuration for variable-rtsp-server.
"""

import io
from typing import Callable, List

import pytest


class FakeTimer:
    """Stand-in for asyncio.TimerHandle."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Records call_later() requests so tests can fire them by hand."""

    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and t.callback is not None]

    def fire_next(self) -> None:
        """Run the oldest pending timer."""
        timer = self.pending[0]
        callback, timer.callback = timer.callback, None
        callback()


def split_messages(text: str) -> List[str]:
    """Split concatenated envelopes into individual messages."""
    parts = text.split("}}\n")
    return [part + "}}\n" for part in parts if part]


@pytest.fixture
def fake_loop():
    return FakeLoop()


@pytest.fixture
def output():
    """Captures everything the status writer mirrors to stdout."""
    return io.StringIO()


@pytest.fixture
def settings():
    """Validated defaults, mock engine, no pipes."""
    from variable_rtsp.config import Settings, validate_settings

    return validate_settings(Settings(engine={"backend": "mock"}))


@pytest.fixture
def make_context(fake_loop, output):
    """Factory building a ServerContext on the mock engine."""
    from variable_rtsp.context import build_context
    from variable_rtsp.engine.mock import MockPipelineEngine

    def _make(settings, engine=None):
        return build_context(
            settings,
            engine or MockPipelineEngine(),
            stream=output,
            loop=fake_loop,
        )

    return _make


@pytest.fixture
def context(make_context, settings):
    return make_context(settings)


@pytest.fixture
def messages(output):
    """Callable returning every message written so far, decoded."""
    from variable_rtsp.protocol.codec import decode_message

    def _messages():
        return [decode_message(m) for m in split_messages(output.getvalue())]

    return _messages
