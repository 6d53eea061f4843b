"""
Errors
======

Exception hierarchy and process exit codes for variable-rtsp-server.

Error Taxonomy:
    - ConfigurationError: bad startup configuration, fatal, carries an exit code
    - NotStreamingError: an operation needs a configured pipeline but none exists
    - ElementNotFoundError / PadNotFoundError: named target could not be resolved
    - PropertyError: the pipeline engine rejected a property read or write

Propagation Rules:
    - Only ConfigurationError is allowed to terminate the process
    - Everything else is caught at the event-loop callback boundary,
      logged, and the single offending operation is abandoned
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """
    Process exit codes, one per configuration error category.

    Attributes:
        OKAY: Normal shutdown
        ARGS: Generic bad argument or unparseable configuration
        QUANT_RANGE: max quant level below min quant level
        BITRATE_RANGE: max bitrate not above min bitrate
        STEPS: fewer than 2 quality steps requested
        PORT_RANGE: client port range incomplete or inverted
        COMMAND_PIPE: requested command pipe could not be opened
        ENGINE: pipeline engine could not be created or attached
    """

    OKAY = 0
    ARGS = 2
    QUANT_RANGE = 3
    BITRATE_RANGE = 4
    STEPS = 5
    PORT_RANGE = 6
    COMMAND_PIPE = 7
    ENGINE = 8


class VariableRtspError(Exception):
    """Base class for all errors raised by this package."""
    pass


class ConfigurationError(VariableRtspError):
    """Raised when startup configuration is invalid. Fatal."""

    def __init__(self, message: str, exit_code: ExitCode = ExitCode.ARGS) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class NotStreamingError(VariableRtspError):
    """Raised when an operation requires a configured pipeline."""
    pass


class ElementNotFoundError(VariableRtspError):
    """Raised when a named pipeline element does not exist."""

    def __init__(self, element: str) -> None:
        super().__init__(f"Element not found: {element!r}")
        self.element = element


class PadNotFoundError(VariableRtspError):
    """Raised when a named static pad does not exist on an element."""

    def __init__(self, element: str, pad: str) -> None:
        super().__init__(f"Pad {pad!r} not found on element {element!r}")
        self.element = element
        self.pad = pad


class PropertyError(VariableRtspError):
    """Raised when the pipeline engine rejects a property get or set."""
    pass
