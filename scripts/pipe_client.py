#!/usr/bin/env python3
"""
Command Pipe Client
===================

Standalone script to exercise a running variable-rtsp-server over its pipes.

This script:
    1. Attaches to the status pipe as a reader
    2. Writes one or more commands to the command pipe
    3. Collects and decodes replies for a configurable duration
    4. Reports a final summary

Prerequisites:
    - variable-rtsp-server must be running with --command-pipe and
      --status-pipe pointing at the same paths

Usage:
    python scripts/pipe_client.py --duration 5
    python scripts/pipe_client.py -x status:::: -x printbin::::
    python scripts/pipe_client.py -x setparam:enc0::bitrate:4000
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from typing import List

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from variable_rtsp.models.status import MessageType
from variable_rtsp.protocol.codec import decode_message


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)

_TERMINATOR = "}}\n"


async def run_client(
    command_pipe: str,
    status_pipe: str,
    commands: List[str],
    duration: float,
) -> dict:
    """
    Send commands and collect replies.

    Args:
        command_pipe: Path of the server's command FIFO
        status_pipe: Path of the server's status FIFO
        commands: Command lines to send, without newline
        duration: Seconds to keep reading after sending

    Returns:
        Counts of decoded messages per type
    """
    logger.info("=" * 60)
    logger.info(f"Command pipe: {command_pipe}")
    logger.info(f"Status pipe: {status_pipe}")
    logger.info(f"Commands: {commands}")
    logger.info("=" * 60)

    status_fd = os.open(status_pipe, os.O_RDONLY | os.O_NONBLOCK)
    counts = {t.value: 0 for t in MessageType}
    malformed = 0
    pending = ""

    try:
        command_fd = os.open(command_pipe, os.O_WRONLY | os.O_NONBLOCK)
        try:
            for command in commands:
                os.write(command_fd, f"{command}\n".encode("ascii"))
                logger.info(f"Sent: {command}")
        finally:
            os.close(command_fd)

        deadline = time.time() + duration
        while time.time() < deadline:
            try:
                data = os.read(status_fd, 4096)
            except BlockingIOError:
                data = b""

            if data:
                pending += data.decode("ascii", errors="replace")
                while _TERMINATOR in pending:
                    raw, pending = pending.split(_TERMINATOR, 1)
                    try:
                        message = decode_message(raw + _TERMINATOR)
                    except ValueError as e:
                        malformed += 1
                        logger.warning(f"Malformed reply: {e}")
                        continue
                    counts[message.type.value] += 1
                    logger.info("-" * 40)
                    logger.info(f"{message.type.value}")
                    for key, value in message.body:
                        logger.info(f"  {key}: {value}")

            await asyncio.sleep(0.1)
    finally:
        os.close(status_fd)

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    for tag, count in counts.items():
        logger.info(f"{tag}: {count}")
    logger.info(f"malformed: {malformed}")
    logger.info("=" * 60)

    return {**counts, "malformed": malformed}


def main():
    parser = argparse.ArgumentParser(
        description="Send commands to a running variable-rtsp-server"
    )
    parser.add_argument(
        "--command-pipe",
        type=str,
        default=os.environ.get("VRTSP_COMMAND_PIPE", "/tmp/variable_rtsp_cmd"),
        help="Command FIFO path",
    )
    parser.add_argument(
        "--status-pipe",
        type=str,
        default=os.environ.get("VRTSP_STATUS_PIPE", "/tmp/variable_rtsp_status"),
        help="Status FIFO path",
    )
    parser.add_argument(
        "-x", "--command",
        action="append",
        dest="commands",
        help="Command line to send (repeatable, default status::::)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=3.0,
        help="Seconds to collect replies (default: 3)",
    )

    args = parser.parse_args()

    try:
        result = asyncio.run(run_client(
            command_pipe=args.command_pipe,
            status_pipe=args.status_pipe,
            commands=args.commands or ["status::::"],
            duration=args.duration,
        ))
    except OSError as e:
        logger.error(f"Cannot talk to server: {e}")
        sys.exit(2)

    sys.exit(0 if result["status"] > 0 else 1)


if __name__ == "__main__":
    main()
