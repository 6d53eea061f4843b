"""
variable-rtsp-server Main Application
=====================================

Command-line entry point for the adaptive shared RTSP stream.

Startup:
    1. Parse flags, merge with YAML and environment, validate
    2. Create the FIFOs and the pipeline engine
    3. Wire the ServerContext
    4. Run the engine, the command pipe poller and (optionally) the HTTP
       surface on one asyncio loop until SIGINT or SIGTERM

Exit Codes:
    See variable_rtsp.errors.ExitCode. Configuration problems exit with
    their category code; a clean shutdown exits 0.

Example:
    variable-rtsp-server -p 8554 -m /cam -b 8000 --steps 4 \\
        --command-pipe /tmp/rtsp_cmd --status-pipe /tmp/rtsp_status
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from typing import Any, Dict, Iterator, List, Optional

import uvicorn

from variable_rtsp import __version__
from variable_rtsp.config import Settings, load_config, setup_logging
from variable_rtsp.context import ServerContext, build_context
from variable_rtsp.engine.interface import PipelineEngine
from variable_rtsp.engine.mock import MockPipelineEngine
from variable_rtsp.errors import ConfigurationError, ExitCode
from variable_rtsp.observability.api import create_app
from variable_rtsp.protocol.pipes import ensure_fifo


logger = logging.getLogger(__name__)


# =============================================================================
# Command Line
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="variable-rtsp-server",
        description="Shared RTSP stream whose encoder quality adapts to the viewer count",
    )
    parser.add_argument("-c", "--config", help="YAML configuration file")
    parser.add_argument(
        "-d", "--debug", type=int, default=0, metavar="LEVEL",
        help="Debug level (0 = info, 1+ = debug)",
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")

    server = parser.add_argument_group("server")
    server.add_argument("-m", "--mount-point", help="Mount point (default /stream)")
    server.add_argument("-p", "--port", type=int, help="RTSP port (default 9099)")

    pipeline = parser.add_argument_group("pipeline")
    pipeline.add_argument("-u", "--user-pipeline", help="Launch line replacing the default pipeline")
    pipeline.add_argument("-s", "--src-element", help="Source element (default v4l2src)")
    pipeline.add_argument("-i", "--video-in", help="Input device (default /dev/video0)")
    pipeline.add_argument(
        "--shared", dest="shared", action="store_true", default=None,
        help="Share one media between all clients (default)",
    )
    pipeline.add_argument("--no-shared", dest="shared", action="store_false")
    pipeline.add_argument(
        "--no-suspend", dest="no_suspend", action="store_true", default=None,
        help="Never suspend the media",
    )
    pipeline.add_argument("--client-port-min", type=int, help="Lowest client RTP port")
    pipeline.add_argument("--client-port-max", type=int, help="Highest client RTP port")

    encoder = parser.add_argument_group("encoder")
    encoder.add_argument(
        "-e", "--enable-variable-mode", type=int, choices=(0, 1),
        help="Adapt encoder quality to the viewer count (default 1)",
    )
    encoder.add_argument("--steps", type=int, help="Quality levels, 2 or more (default 5)")
    encoder.add_argument("--min-bitrate", type=int, help="Bitrate floor in kbps (default 1)")
    encoder.add_argument(
        "-b", "--max-bitrate", type=int,
        help="Single-viewer bitrate in kbps, 0 selects quant mode (default 10000)",
    )
    encoder.add_argument("--cap-bitrate", type=int, help="Encoder bitrate ceiling")
    encoder.add_argument("-l", "--min-quant-lvl", type=int, help="Best quant level (default 0)")
    encoder.add_argument("--max-quant-lvl", type=int, help="Worst quant level (default 51)")
    encoder.add_argument("-a", "--idr", type=int, help="IDR frame interval (default 0)")
    encoder.add_argument("--config-interval", type=int, help="SPS/PPS interval in seconds (default 2)")

    ipc = parser.add_argument_group("ipc")
    ipc.add_argument("-r", "--msg-rate", type=int, help="Seconds between status messages, 0 disables")
    ipc.add_argument("--command-pipe", help="Command FIFO path")
    ipc.add_argument("--status-pipe", help="Status FIFO path")

    runtime = parser.add_argument_group("runtime")
    runtime.add_argument("--engine", choices=("gstreamer", "mock"), help="Pipeline engine")
    runtime.add_argument("--http-port", type=int, help="Serve /health and /status on this port")

    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map parsed flags onto the settings tree; unset flags stay None."""
    enable = None
    if args.enable_variable_mode is not None:
        enable = bool(args.enable_variable_mode)

    overrides: Dict[str, Any] = {
        "server": {
            "mount_point": args.mount_point,
            "port": args.port,
        },
        "pipeline": {
            "user_pipeline": args.user_pipeline,
            "src_element": args.src_element,
            "video_in": args.video_in,
            "shared": args.shared,
            "no_suspend": args.no_suspend,
            "client_port_min": args.client_port_min,
            "client_port_max": args.client_port_max,
        },
        "encoder": {
            "enable_variable_mode": enable,
            "steps": args.steps,
            "min_bitrate": args.min_bitrate,
            "max_bitrate": args.max_bitrate,
            "cap_bitrate": args.cap_bitrate,
            "min_quant": args.min_quant_lvl,
            "max_quant": args.max_quant_lvl,
            "idr_interval": args.idr,
            "config_interval": args.config_interval,
        },
        "reporting": {"msg_rate": args.msg_rate},
        "ipc": {
            "command_pipe": args.command_pipe,
            "status_pipe": args.status_pipe,
        },
        "engine": {"backend": args.engine},
    }

    if args.http_port is not None:
        overrides["http"] = {"enabled": True, "port": args.http_port}
    if args.debug > 0:
        overrides["logging"] = {"level": "DEBUG"}

    return overrides


# =============================================================================
# Engine Factory
# =============================================================================

def create_engine(settings: Settings) -> PipelineEngine:
    """
    Create the pipeline engine based on config.

    Fails fast if the GStreamer engine is requested but its bindings or
    typelibs are unavailable.
    """
    backend = settings.engine.backend

    if backend == "mock":
        logger.info("Using MockPipelineEngine")
        return MockPipelineEngine()

    if backend == "gstreamer":
        try:
            from variable_rtsp.engine.gstreamer import GstRtspEngine
        except (ImportError, ValueError) as e:
            raise ConfigurationError(
                f"GStreamer engine unavailable: {e}. "
                "Install PyGObject and the gst-rtsp-server typelibs.",
                exit_code=ExitCode.ENGINE,
            ) from e
        logger.info("Using GstRtspEngine")
        return GstRtspEngine(settings)

    raise ConfigurationError(f"Unknown engine backend: {backend}", exit_code=ExitCode.ENGINE)


# =============================================================================
# Run Loop
# =============================================================================

class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the host loop."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        pass


async def serve(context: ServerContext, stop_event: Optional[asyncio.Event] = None) -> None:
    """Run every component until stop_event is set."""
    loop = asyncio.get_running_loop()
    stop_event = stop_event or asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_event.set)

    tasks: List[asyncio.Task] = []
    http_server: Optional[_EmbeddedServer] = None

    await context.engine.start()

    if context.reader is not None:
        tasks.append(asyncio.create_task(context.reader.run(), name="command_pipe"))

    http = context.settings.http
    if http.enabled:
        config = uvicorn.Config(
            create_app(context),
            host=http.host,
            port=http.port,
            log_level="warning",
        )
        http_server = _EmbeddedServer(config)
        tasks.append(asyncio.create_task(http_server.serve(), name="http"))
        logger.info(f"HTTP status on http://{http.host}:{http.port}/status")

    logger.info("All components started")

    await stop_event.wait()

    # Shutdown
    logger.info("Shutting down gracefully...")

    context.reporter.cancel_periodic()
    if context.reader is not None:
        await context.reader.stop()
    if http_server is not None:
        http_server.should_exit = True

    if tasks:
        done, pending = await asyncio.wait(tasks, timeout=5.0)
        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    await context.engine.stop()
    context.writer.close()

    logger.info("Shutdown complete")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the server.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    # Until the settings are known, log warnings from validation
    logging.basicConfig(level=logging.DEBUG if args.debug > 0 else logging.INFO)

    try:
        settings = load_config(args.config, overrides_from_args(args))
        setup_logging(settings)

        logger.info(f"Starting variable-rtsp-server {__version__}")

        for path in (settings.ipc.command_pipe, settings.ipc.status_pipe):
            if path:
                ensure_fifo(path)

        engine = create_engine(settings)
        context = build_context(settings, engine)

        if context.reader is not None:
            context.reader.open()

        asyncio.run(serve(context))

    except ConfigurationError as e:
        logger.error(str(e))
        return int(e.exit_code)

    return int(ExitCode.OKAY)


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
