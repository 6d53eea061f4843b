"""
Adaptive Rate Controller
========================

Deterministic step function from viewer count to encoder quality.

Every additional viewer on the shared stream moves the encoder one step
towards its cheapest setting:

    Bitrate mode (max_bitrate > 0):
        step    = (max_bitrate - min_bitrate) // steps
        bitrate = max(max_bitrate - (viewers - 1) * step, min_bitrate)

    Quant mode (max_bitrate == 0, max_quant > 0):
        step    = (max_quant - min_quant) // steps
        quant   = min(min_quant + (viewers - 1) * step, max_quant)

Design Rules:
    - The step functions are pure and never touch the engine
    - RateController writes through the PropertyProxy only when a value
      actually changes, and commits RateState only after the write succeeds
    - PropertyError from the engine propagates to the caller

Example:
    config = RateConfig(min_bitrate=1, max_bitrate=10000, steps=4)
    bitrate_for_viewers(2, config)   # 7501
"""

import logging
from dataclasses import replace
from typing import Optional

from variable_rtsp.engine.interface import ElementHandle
from variable_rtsp.engine.proxy import PropertyProxy
from variable_rtsp.models.rate import RateConfig, RateMode, RateState


logger = logging.getLogger(__name__)


# =============================================================================
# Step functions
# =============================================================================

def bitrate_for_viewers(viewers: int, config: RateConfig) -> int:
    """Bitrate for the given viewer count, floored at min_bitrate."""
    target = config.max_bitrate - (viewers - 1) * config.bitrate_step
    return max(target, config.min_bitrate)


def quant_for_viewers(viewers: int, config: RateConfig) -> int:
    """Quant level for the given viewer count, capped at max_quant."""
    target = config.min_quant + (viewers - 1) * config.quant_step
    return min(target, config.max_quant)


def next_rate_state(viewers: int, config: RateConfig, state: RateState) -> RateState:
    """
    Compute the rate state for a new viewer count.

    Returns the input state unchanged (as a copy) when adaptation does
    not apply: variable mode off, fewer than one viewer, no usable mode,
    or a quant range with zero width.
    """
    result = replace(state)
    if not config.variable_mode_enabled or viewers < 1:
        return result

    mode = config.mode
    if mode is RateMode.BITRATE:
        result.current_bitrate = bitrate_for_viewers(viewers, config)
    elif mode is RateMode.QUANT and config.max_quant != config.min_quant:
        result.current_quant = quant_for_viewers(viewers, config)
    return result


# =============================================================================
# Controller
# =============================================================================

class RateController:
    """
    Applies the step function to the live encoder.

    Attributes:
        config: Immutable rate bounds
        state: Values currently applied to the encoder
        bitrate_property: Encoder property receiving the bitrate
        quant_property: Encoder property receiving the quant level
    """

    def __init__(
        self,
        config: RateConfig,
        proxy: PropertyProxy,
        state: Optional[RateState] = None,
        bitrate_property: str = "bitrate",
        quant_property: str = "quantizer",
    ) -> None:
        self.config = config
        self.state = state or RateState.initial(config)
        self.bitrate_property = bitrate_property
        self.quant_property = quant_property
        self._proxy = proxy

        logger.info(f"RateController initialized: mode={config.mode.value}, steps={config.steps}")

    @property
    def mode(self) -> RateMode:
        return self.config.mode

    def reset(self) -> None:
        """Return to single-viewer quality."""
        self.state = RateState.initial(self.config)

    def apply(self, viewers: int, encoder: Optional[ElementHandle]) -> bool:
        """
        Retune the encoder for the given viewer count.

        Args:
            viewers: Current number of attached viewers
            encoder: Encoder handle, None when not streaming

        Returns:
            True if a property was written

        Raises:
            PropertyError: if the engine rejects the write
        """
        if not self.config.variable_mode_enabled or encoder is None or viewers < 1:
            return False

        target = next_rate_state(viewers, self.config, self.state)
        changed = False

        if target.current_bitrate != self.state.current_bitrate:
            logger.info(f"Changing bitrate to {target.current_bitrate}")
            self._proxy.set_on(
                encoder, self.bitrate_property, target.current_bitrate, label=encoder.name
            )
            self.state.current_bitrate = target.current_bitrate
            changed = True

        if target.current_quant != self.state.current_quant:
            logger.info(f"Changing quant-lvl to {target.current_quant}")
            self._proxy.set_on(
                encoder, self.quant_property, target.current_quant, label=encoder.name
            )
            self.state.current_quant = target.current_quant
            changed = True

        return changed
