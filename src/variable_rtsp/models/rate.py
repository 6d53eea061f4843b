"""
Rate Models
===========

Encoder rate configuration and derived rate state.

Core Concepts:
    - RateConfig: Immutable bounds for adaptive encoding, fixed at startup
    - RateState: The quant level and bitrate currently applied to the encoder
    - RateMode: Which of the two mutually exclusive strategies is active

Mode Selection:
    BITRATE: max_bitrate > 0 (bitrate capping configured)
    QUANT:   max_bitrate == 0 and max_quant > 0
    NONE:    neither applies, the controller never touches the encoder

Example:
    from variable_rtsp.models.rate import RateConfig, RateState

    config = RateConfig(min_bitrate=1, max_bitrate=10000, steps=4)
    state = RateState.initial(config)
    assert state.current_bitrate == 10000
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RateMode(str, Enum):
    """
    Rate adaptation strategy.

    Attributes:
        BITRATE: Lower the bitrate as viewers join
        QUANT: Raise the quantization level as viewers join
        NONE: No adaptation possible with the configured bounds
    """

    BITRATE = "bitrate"
    QUANT = "quant"
    NONE = "none"


class RateConfig(BaseModel):
    """
    Bounds for adaptive rate control.

    Immutable after startup. `steps` is the number of viewer-count
    increments spanning the full quality range and is always >= 1,
    so it is safe to use as a divisor.

    Attributes:
        min_quant: Best (lowest) quant level
        max_quant: Worst (highest) quant level
        min_bitrate: Bitrate floor
        max_bitrate: Bitrate given to a single viewer (0 disables bitrate mode)
        cap_bitrate: Hard ceiling accepted by the encoder
        steps: Viewer-count increments between best and worst quality
        variable_mode_enabled: Master switch for adaptation
    """

    model_config = ConfigDict(frozen=True)

    min_quant: int = Field(default=0, ge=0, description="Best quant level")
    max_quant: int = Field(default=51, ge=0, description="Worst quant level")
    min_bitrate: int = Field(default=1, ge=0, description="Bitrate floor")
    max_bitrate: int = Field(default=10000, ge=0, description="Single-viewer bitrate")
    cap_bitrate: int = Field(default=4294967295, ge=0, description="Encoder ceiling")
    steps: int = Field(default=4, ge=1, description="Viewer increments across the range")
    variable_mode_enabled: bool = Field(default=True, description="Enable adaptation")

    @model_validator(mode="after")
    def _check_bounds(self) -> "RateConfig":
        if self.max_quant < self.min_quant:
            raise ValueError("max_quant must be >= min_quant")
        if self.max_bitrate > self.cap_bitrate:
            raise ValueError("max_bitrate must be <= cap_bitrate")
        return self

    @property
    def mode(self) -> RateMode:
        """Strategy selected by the configured bounds."""
        if self.max_bitrate > 0:
            return RateMode.BITRATE
        if self.max_quant > 0:
            return RateMode.QUANT
        return RateMode.NONE

    @property
    def bitrate_step(self) -> int:
        """Bitrate decrement per additional viewer."""
        return (self.max_bitrate - self.min_bitrate) // self.steps

    @property
    def quant_step(self) -> int:
        """Quant increment per additional viewer."""
        return (self.max_quant - self.min_quant) // self.steps


@dataclass(slots=True)
class RateState:
    """
    Encoder values currently applied.

    Attributes:
        current_quant: Quant level last written to the encoder
        current_bitrate: Bitrate last written to the encoder
    """

    current_quant: int
    current_bitrate: int

    @classmethod
    def initial(cls, config: RateConfig) -> "RateState":
        """First viewer gets the best quality the bounds allow."""
        return cls(
            current_quant=config.min_quant,
            current_bitrate=config.max_bitrate,
        )

    def __repr__(self) -> str:
        return (
            f"RateState(quant={self.current_quant}, "
            f"bitrate={self.current_bitrate})"
        )
