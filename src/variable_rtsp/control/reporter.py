"""
Status Reporter
===============

Single output funnel for every reply and status snapshot.

This module provides the StatusReporter class, which:
    - Builds the ordered status snapshot from session and rate state
    - Serializes every outbound message through one routine (emit)
    - Runs the periodic status timer while a stream is being served

Snapshot Body (in order):
    source              quoted name of whatever triggered the snapshot
    numConnectedClients
    connected
    configInterval
    idr
    enableVariableMode
    steps, currentQuantLevel, minQuantLevel, maxQuantLevel,
    currentBitrate, minBitrate, maxBitrate     (variable mode only)
    periodic_msg_rate

Periodic Timer:
    arm_periodic() schedules a tick msg_rate seconds out on the event loop.
    Each tick emits a snapshot, logs a summary, and schedules the next tick
    only while the session is still connected. At most one chain is alive.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from variable_rtsp.control.rate import RateController
from variable_rtsp.models.session import Session
from variable_rtsp.models.status import MessageType, StatusMessage
from variable_rtsp.protocol.codec import encode_message


logger = logging.getLogger(__name__)


class MessageSink(Protocol):
    def write(self, text: str) -> bool:
        ...


class StatusReporter:
    """
    Snapshot builder and output funnel.

    Attributes:
        session: Shared-stream session state
        rate: Rate controller (bounds and current values)
        msg_rate: Seconds between periodic snapshots, 0 disables
        config_interval: Payloader config interval, reported as-is
        idr_interval: Encoder IDR interval, reported as-is
        messages_emitted: Count of messages written
    """

    def __init__(
        self,
        session: Session,
        rate: RateController,
        sink: MessageSink,
        msg_rate: int = 5,
        config_interval: int = 2,
        idr_interval: int = 0,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.session = session
        self.rate = rate
        self.msg_rate = msg_rate
        self.config_interval = config_interval
        self.idr_interval = idr_interval
        self.messages_emitted: int = 0

        self._sink = sink
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self, source: str) -> StatusMessage:
        """Build the ordered status body."""
        config = self.rate.config
        state = self.rate.state

        message = StatusMessage(MessageType.STATUS)
        message.add("source", f'"{source}"')
        message.add("numConnectedClients", self.session.viewer_count)
        message.add("connected", self.session.connected)
        message.add("configInterval", self.config_interval)
        message.add("idr", self.idr_interval)
        message.add("enableVariableMode", config.variable_mode_enabled)

        if config.variable_mode_enabled:
            message.add("steps", config.steps)
            message.add("currentQuantLevel", state.current_quant)
            message.add("minQuantLevel", config.min_quant)
            message.add("maxQuantLevel", config.max_quant)
            message.add("currentBitrate", state.current_bitrate)
            message.add("minBitrate", config.min_bitrate)
            message.add("maxBitrate", config.max_bitrate)

        message.add("periodic_msg_rate", self.msg_rate)
        return message

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly snapshot for the HTTP surface."""
        config = self.rate.config
        state = self.rate.state
        data: Dict[str, Any] = {
            "numConnectedClients": self.session.viewer_count,
            "connected": self.session.connected,
            "configInterval": self.config_interval,
            "idr": self.idr_interval,
            "enableVariableMode": config.variable_mode_enabled,
            "mode": config.mode.value,
        }
        if config.variable_mode_enabled:
            data.update({
                "steps": config.steps,
                "currentQuantLevel": state.current_quant,
                "minQuantLevel": config.min_quant,
                "maxQuantLevel": config.max_quant,
                "currentBitrate": state.current_bitrate,
                "minBitrate": config.min_bitrate,
                "maxBitrate": config.max_bitrate,
            })
        data["periodic_msg_rate"] = self.msg_rate
        return data

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def emit(self, message: StatusMessage) -> None:
        """Serialize and write one message."""
        self._sink.write(encode_message(message))
        self.messages_emitted += 1
        logger.debug(f"Emitted {message.type.value} message ({len(message.body)} lines)")

    def emit_status(self, source: str) -> StatusMessage:
        message = self.snapshot(source)
        self.emit(message)
        return message

    # -------------------------------------------------------------------------
    # Periodic timer
    # -------------------------------------------------------------------------

    @property
    def periodic_armed(self) -> bool:
        return self._timer is not None

    def arm_periodic(self) -> bool:
        """
        Start the periodic chain if enabled and not already running.

        Returns:
            True if a new chain was scheduled
        """
        if self.msg_rate <= 0 or self._timer is not None:
            return False
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.msg_rate, self._tick)
        logger.debug(f"Periodic status every {self.msg_rate}s")
        return True

    def cancel_periodic(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self) -> None:
        self._timer = None
        if not self.session.connected:
            logger.debug("Stream not connected, periodic status stopped")
            return

        self.emit_status("periodic")
        self._log_summary()
        self.arm_periodic()

    def _log_summary(self) -> None:
        config = self.rate.config
        state = self.rate.state
        if config.max_bitrate > 0:
            step_factor = config.bitrate_step
        else:
            step_factor = config.quant_step

        lines = [
            "################################",
            f"Number of clients: {self.session.viewer_count}",
            f"Current quant level: {state.current_quant}",
            f"Current bitrate: {state.current_bitrate}",
            f"Step factor: {step_factor}",
        ]

        payloader = self.session.payloader
        if payloader is not None:
            try:
                stats = payloader.get_property("stats")
            except (TypeError, ValueError, AttributeError) as e:
                logger.debug(f"Payloader stats unavailable: {e}")
                stats = None
            if stats is not None:
                lines.append(f"Payloader stats: {stats}")

        logger.info("\n".join(lines))
