"""
variable-rtsp-server Configuration
==================================

This module handles configuration loading for the RTSP control plane.

Configuration Sources (in order of precedence):
    1. Command-line flags (highest priority)
    2. Environment variables
    3. config.yaml file
    4. Default values (lowest priority)

Environment Variable Mapping:
    VRTSP_PORT          -> server.port
    VRTSP_MOUNT_POINT   -> server.mount_point
    VRTSP_COMMAND_PIPE  -> ipc.command_pipe
    VRTSP_STATUS_PIPE   -> ipc.status_pipe
    VRTSP_ENGINE        -> engine.backend
    VRTSP_MSG_RATE      -> reporting.msg_rate
    VRTSP_LOG_LEVEL     -> logging.level

Validation:
    Single out-of-range values are clamped with a warning (quant levels
    to [0, 51], bitrates to the encoder cap). Inconsistent combinations
    raise ConfigurationError carrying a category-specific exit code.

Example:
    from variable_rtsp.config import load_config

    settings = load_config("config.yaml", overrides={"server": {"port": 8554}})
    print(settings.server.mount_point)
    print(settings.rate_config().steps)
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from variable_rtsp.errors import ConfigurationError, ExitCode
from variable_rtsp.models.rate import RateConfig


logger = logging.getLogger(__name__)


MIN_QUANT_LEVEL = 0
MAX_QUANT_LEVEL = 51
MAX_BITRATE = 4294967295


# =============================================================================
# Configuration Models
# =============================================================================

class ServerConfig(BaseModel):
    """RTSP server configuration."""

    host: str = Field(default="127.0.0.1", description="Host name used in the stream URL")
    port: int = Field(default=9099, ge=1, le=65535, description="RTSP listen port")
    mount_point: str = Field(default="/stream", description="URI mount point")


class PipelineConfig(BaseModel):
    """Media pipeline configuration."""

    user_pipeline: Optional[str] = Field(
        default=None,
        description="User supplied launch line; replaces the default pipeline",
    )
    src_element: str = Field(
        default="v4l2src",
        description="Source element factory; must have a 'device' property",
    )
    video_in: str = Field(default="/dev/video0", description="Input device path")
    source_name: str = Field(default="source0", description="Source element name")
    encoder_name: str = Field(default="enc0", description="Encoder element name")
    payloader_name: str = Field(default="pay0", description="Payloader element name")
    shared: bool = Field(default=True, description="Share one pipeline with all clients")
    no_suspend: bool = Field(default=False, description="Never suspend the media")
    client_port_min: Optional[int] = Field(default=None, description="Lowest client port")
    client_port_max: Optional[int] = Field(default=None, description="Highest client port")


class EncoderConfig(BaseModel):
    """Encoder bounds and adaptive rate settings."""

    enable_variable_mode: bool = Field(
        default=True,
        description="Enable automatic rate adjustment",
    )
    steps: int = Field(
        default=5,
        description="Quality levels between best and worst (must be >= 2)",
    )
    min_bitrate: int = Field(default=1, description="Bitrate floor (kbps)")
    max_bitrate: int = Field(
        default=10000,
        description="Bitrate for a single viewer (kbps), 0 = quant mode",
    )
    cap_bitrate: int = Field(
        default=MAX_BITRATE,
        ge=0,
        description="Highest bitrate the encoder accepts (kbps)",
    )
    min_quant: int = Field(default=MIN_QUANT_LEVEL, description="Best quant level")
    max_quant: int = Field(default=MAX_QUANT_LEVEL, description="Worst quant level")
    idr_interval: int = Field(default=0, ge=0, description="Interval between IDR frames")
    config_interval: int = Field(
        default=2,
        description="RTP SPS/PPS insertion interval (seconds)",
    )
    bitrate_property: str = Field(default="bitrate", description="Encoder bitrate property")
    quant_property: str = Field(default="quantizer", description="Encoder quant property")
    idr_property: str = Field(default="key-int-max", description="Encoder IDR property")


class ReportingConfig(BaseModel):
    """Periodic status reporting."""

    msg_rate: int = Field(
        default=5,
        ge=0,
        description="Seconds between periodic status messages (0 disables)",
    )


class IpcConfig(BaseModel):
    """Command and status pipe configuration."""

    command_pipe: Optional[str] = Field(default=None, description="Inbound command FIFO")
    status_pipe: Optional[str] = Field(default=None, description="Outbound status FIFO")
    poll_interval_ms: int = Field(
        default=100,
        ge=10,
        description="Command pipe poll period in milliseconds",
    )
    max_line_length: int = Field(
        default=256,
        ge=16,
        description="Longest accepted command line in bytes",
    )


class EngineConfig(BaseModel):
    """Pipeline engine selection."""

    backend: str = Field(
        default="gstreamer",
        description="Pipeline engine: 'gstreamer' or 'mock'",
    )


class HttpConfig(BaseModel):
    """Optional HTTP observability surface."""

    enabled: bool = Field(default=False, description="Serve /health and /status")
    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=8099, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for variable-rtsp-server.

    Loads configuration from YAML file, environment variables and CLI
    overrides. Later sources take precedence.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    encoder: EncoderConfig = Field(default_factory=EncoderConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    ipc: IpcConfig = Field(default_factory=IpcConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def rate_config(self) -> RateConfig:
        """
        Build the immutable rate bounds.

        The user-facing step count is the number of quality levels;
        the controller works with the increments between them.
        """
        enc = self.encoder
        return RateConfig(
            min_quant=enc.min_quant,
            max_quant=enc.max_quant,
            min_bitrate=enc.min_bitrate,
            max_bitrate=enc.max_bitrate,
            cap_bitrate=enc.cap_bitrate,
            steps=enc.steps - 1,
            variable_mode_enabled=enc.enable_variable_mode,
        )

    def launch_description(self) -> str:
        """Launch line for the media factory."""
        p = self.pipeline
        if p.user_pipeline:
            return f"( {p.user_pipeline} )"
        return (
            f"( {p.src_element} name={p.source_name} ! videoconvert ! "
            f"x264enc name={p.encoder_name} tune=zerolatency ! "
            f"rtph264pay name={p.payloader_name} pt=96 )"
        )


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """
    Load, normalize and validate configuration.

    Priority (highest to lowest):
        1. overrides (command-line flags)
        2. Environment variables
        3. YAML config file
        4. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.
        overrides: Nested dict of section -> field -> value

    Returns:
        Settings: Validated configuration

    Raises:
        ConfigurationError: on unreadable files, type errors or
            inconsistent bounds
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/etc/variable-rtsp-server/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: Dict[str, Any] = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e
    elif config_path:
        raise ConfigurationError(f"Config file not found: {config_path}")
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)
    _merge(config_data, overrides or {})

    try:
        settings = Settings.model_validate(config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    return validate_settings(settings)


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> None:
    """Recursively merge extra into base, skipping None leaves."""
    for key, value in extra.items():
        if isinstance(value, dict):
            _merge(base.setdefault(key, {}), value)
        elif value is not None:
            base[key] = value


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Server settings
    if env_port := os.environ.get("VRTSP_PORT"):
        config_data.setdefault("server", {})["port"] = _env_int("VRTSP_PORT", env_port)
    if env_mount := os.environ.get("VRTSP_MOUNT_POINT"):
        config_data.setdefault("server", {})["mount_point"] = env_mount

    # IPC settings
    if env_cmd := os.environ.get("VRTSP_COMMAND_PIPE"):
        config_data.setdefault("ipc", {})["command_pipe"] = env_cmd
    if env_status := os.environ.get("VRTSP_STATUS_PIPE"):
        config_data.setdefault("ipc", {})["status_pipe"] = env_status

    # Engine and reporting
    if env_engine := os.environ.get("VRTSP_ENGINE"):
        config_data.setdefault("engine", {})["backend"] = env_engine
    if env_rate := os.environ.get("VRTSP_MSG_RATE"):
        config_data.setdefault("reporting", {})["msg_rate"] = _env_int("VRTSP_MSG_RATE", env_rate)

    # Logging settings
    if env_log := os.environ.get("VRTSP_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def validate_settings(settings: Settings) -> Settings:
    """
    Clamp single values and reject inconsistent combinations.

    Raises:
        ConfigurationError: with QUANT_RANGE, BITRATE_RANGE, STEPS or
            PORT_RANGE exit codes
    """
    enc = settings.encoder

    # Bitrate clamping
    if enc.max_bitrate > enc.cap_bitrate:
        logger.warning(f"Maximum bitrate is {enc.cap_bitrate}")
        enc.max_bitrate = enc.cap_bitrate
    elif enc.max_bitrate < 0:
        logger.warning("Minimum bitrate is 0")
        enc.max_bitrate = 0
    if enc.min_bitrate > enc.cap_bitrate:
        logger.warning(f"Maximum bitrate is {enc.cap_bitrate}")
        enc.min_bitrate = enc.cap_bitrate
    elif enc.min_bitrate <= 0:
        logger.warning("Minimum bitrate is 1")
        enc.min_bitrate = 1

    # Quant clamping
    enc.min_quant = _clamp_quant(enc.min_quant, "min")
    enc.max_quant = _clamp_quant(enc.max_quant, "max")

    if enc.max_quant < enc.min_quant:
        raise ConfigurationError(
            "Max quant level must be greater than min quant level",
            exit_code=ExitCode.QUANT_RANGE,
        )

    if enc.max_bitrate > 0 and enc.max_bitrate <= enc.min_bitrate:
        raise ConfigurationError(
            "Max bitrate must be greater than min bitrate",
            exit_code=ExitCode.BITRATE_RANGE,
        )

    if enc.steps < 2:
        raise ConfigurationError(
            "Steps must be 2 or greater",
            exit_code=ExitCode.STEPS,
        )

    _validate_port_range(settings.pipeline)

    if settings.engine.backend not in ("gstreamer", "mock"):
        raise ConfigurationError(
            f"Unknown engine backend: {settings.engine.backend}",
            exit_code=ExitCode.ARGS,
        )

    return settings


def _clamp_quant(value: int, which: str) -> int:
    if value > MAX_QUANT_LEVEL:
        logger.warning(f"Maximum quant-lvl is {MAX_QUANT_LEVEL} ({which})")
        return MAX_QUANT_LEVEL
    if value < MIN_QUANT_LEVEL:
        logger.warning(f"Minimum quant-lvl is {MIN_QUANT_LEVEL} ({which})")
        return MIN_QUANT_LEVEL
    return value


def _validate_port_range(pipeline: PipelineConfig) -> None:
    low, high = pipeline.client_port_min, pipeline.client_port_max
    if low is None and high is None:
        return
    if low is None or high is None:
        raise ConfigurationError(
            "Client port range needs both a minimum and a maximum",
            exit_code=ExitCode.PORT_RANGE,
        )
    if not (1 <= low <= high <= 65535):
        raise ConfigurationError(
            f"Invalid client port range: {low}-{high}",
            exit_code=ExitCode.PORT_RANGE,
        )


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=True,
    )
