"""
Command Dispatcher
==================

Routes parsed commands from the command pipe to their handlers.

Verbs:
    setparam:<element>:<pad>:<property>:<value>
        Set a numeric property on a live element (or one of its static
        pads). Always answered with one `setparam` message whose
        `result` line is one of RESULT_* below.
    status::::
        Emit a full status snapshot. Always succeeds.
    printbin::::
        Emit one `elementprops` message per pipeline element. No-op
        while not streaming.

Anything else, and setparam with fewer than four arguments, is logged
and dropped without a reply.
"""

import logging
import math

from variable_rtsp.control.reporter import StatusReporter
from variable_rtsp.engine.proxy import PropertyProxy
from variable_rtsp.errors import (
    ElementNotFoundError,
    NotStreamingError,
    PadNotFoundError,
    PropertyError,
    VariableRtspError,
)
from variable_rtsp.models.command import Command, CommandVerb
from variable_rtsp.models.session import Session
from variable_rtsp.models.status import MessageType, StatusMessage
from variable_rtsp.protocol.codec import element_properties_message, parse_command


logger = logging.getLogger(__name__)


RESULT_OK = "ok"
RESULT_NOT_STREAMING = "not streaming"
RESULT_ELEMENT_NOT_FOUND = "element not found"
RESULT_PAD_NOT_FOUND = "pad not found"
RESULT_INVALID_VALUE = "invalid value"
RESULT_REJECTED = "rejected"


class CommandDispatcher:
    """
    Verb-to-handler routing.

    Attributes:
        session: Shared-stream session (read only here)
        reporter: Output funnel for replies
        commands_handled: Count of commands that reached a handler
    """

    def __init__(
        self,
        session: Session,
        proxy: PropertyProxy,
        reporter: StatusReporter,
    ) -> None:
        self.session = session
        self.reporter = reporter
        self.commands_handled: int = 0
        self._proxy = proxy

    def handle_line(self, line: str) -> None:
        """Parse and dispatch one raw line from the command pipe."""
        command = parse_command(line)
        if command is None:
            return
        self.dispatch(command)

    def dispatch(self, command: Command) -> None:
        logger.debug(f"Dispatching {command!r}")
        try:
            if command.verb is CommandVerb.SETPARAM:
                if not command.is_complete:
                    logger.warning(
                        f"setparam needs 4 arguments, got {command.arg_count}, ignoring"
                    )
                    return
                self.commands_handled += 1
                self.setparam(command)
            elif command.verb is CommandVerb.STATUS:
                self.commands_handled += 1
                self.reporter.emit_status("status_command")
            elif command.verb is CommandVerb.PRINTBIN:
                self.commands_handled += 1
                self.printbin()
            else:
                logger.warning(f"Unknown command: {command.raw_verb!r}")
        except VariableRtspError as e:
            logger.error(f"Command {command.raw_verb!r} failed: {e}")

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def setparam(self, command: Command) -> str:
        """
        Apply one property write and emit the structured reply.

        Returns:
            The result keyword that was reported
        """
        result = self._setparam(command)
        if result == RESULT_OK:
            logger.info(
                f"Set {command.element}{':' + command.pad if command.pad else ''}"
                f".{command.prop}={command.value}"
            )
        else:
            logger.warning(
                f"setparam {command.element}.{command.prop}={command.value!r}: {result}"
            )

        reply = StatusMessage(MessageType.SETPARAM)
        reply.add("element", f'"{command.element}"')
        reply.add("pad", f'"{command.pad}"')
        reply.add("property", f'"{command.prop}"')
        reply.add("value", f'"{command.value}"')
        reply.add("result", f'"{result}"')
        self.reporter.emit(reply)
        return result

    def _setparam(self, command: Command) -> str:
        pipeline = self.session.pipeline
        if not self.session.connected or pipeline is None:
            return RESULT_NOT_STREAMING

        try:
            value = float(command.value)
        except ValueError:
            return RESULT_INVALID_VALUE
        if not math.isfinite(value):
            return RESULT_INVALID_VALUE

        try:
            self._proxy.set(pipeline, command.element, command.pad, command.prop, value)
        except NotStreamingError:
            return RESULT_NOT_STREAMING
        except ElementNotFoundError:
            return RESULT_ELEMENT_NOT_FOUND
        except PadNotFoundError:
            return RESULT_PAD_NOT_FOUND
        except PropertyError:
            return RESULT_REJECTED
        return RESULT_OK

    def printbin(self) -> int:
        """
        Dump every element's properties.

        Returns:
            Number of elementprops messages emitted
        """
        pipeline = self.session.pipeline
        if not self.session.connected or pipeline is None:
            logger.info("printbin ignored, not streaming")
            return 0

        count = 0
        for element in pipeline.iterate_elements():
            properties = self._proxy.list_properties(element)
            self.reporter.emit(
                element_properties_message(element.class_name, element.name, properties)
            )
            count += 1
        return count
