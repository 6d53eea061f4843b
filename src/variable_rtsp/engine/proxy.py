"""
Property Proxy
==============

Thin get/set/enumerate layer over pipeline element properties.

The proxy resolves `element` (and optionally `pad`) on a pipeline handle
for the duration of one call and never keeps references afterwards.
Handle ownership stays with the session registry.

Design Rules:
    - Resolution failures raise ElementNotFoundError / PadNotFoundError
    - Engine rejections raise PropertyError, never retried here
    - An empty pad name means "the element itself"
"""

import logging
from typing import Any, List, Optional, Tuple

from variable_rtsp.engine.interface import (
    ElementHandle,
    PipelineHandle,
    PropertyTarget,
)
from variable_rtsp.errors import (
    ElementNotFoundError,
    NotStreamingError,
    PadNotFoundError,
    PropertyError,
)
from variable_rtsp.models.properties import TypedValue


logger = logging.getLogger(__name__)


class PropertyProxy:
    """
    Named property access on a live pipeline.

    Example:
        proxy = PropertyProxy()
        proxy.set(pipeline, "enc0", "", "bitrate", 5000.0)
        value = proxy.get(pipeline, "pay0", "", "config-interval")
    """

    def resolve(
        self,
        pipeline: Optional[PipelineHandle],
        element: str,
        pad: str = "",
    ) -> PropertyTarget:
        """
        Resolve an element, or a static pad on it.

        Raises:
            NotStreamingError: pipeline is None
            ElementNotFoundError: no element with that name
            PadNotFoundError: element has no such pad
        """
        if pipeline is None:
            raise NotStreamingError("No pipeline is configured")

        target = pipeline.get_element(element)
        if target is None:
            raise ElementNotFoundError(element)

        if not pad:
            return target

        pad_target = target.get_pad(pad)
        if pad_target is None:
            raise PadNotFoundError(element, pad)
        return pad_target

    def get(
        self,
        pipeline: Optional[PipelineHandle],
        element: str,
        pad: str,
        name: str,
    ) -> Any:
        target = self.resolve(pipeline, element, pad)
        try:
            return target.get_property(name)
        except (TypeError, ValueError, OverflowError, AttributeError) as e:
            raise PropertyError(f"Cannot read {element}.{name}: {e}") from e

    def set(
        self,
        pipeline: Optional[PipelineHandle],
        element: str,
        pad: str,
        name: str,
        value: Any,
    ) -> None:
        target = self.resolve(pipeline, element, pad)
        self.set_on(target, name, value, label=_label(element, pad))

    def set_on(
        self,
        target: PropertyTarget,
        name: str,
        value: Any,
        label: str = "",
    ) -> None:
        """Set a property on an already-resolved element or pad."""
        logger.debug(f"Setting {label or target}.{name}={value!r}")
        try:
            target.set_property(name, value)
        except (TypeError, ValueError, OverflowError, AttributeError) as e:
            raise PropertyError(
                f"Engine rejected {label or target}.{name}={value!r}: {e}"
            ) from e

    def list_properties(self, element: ElementHandle) -> List[Tuple[str, TypedValue]]:
        """Enumerate all readable properties of an element."""
        try:
            return element.list_properties()
        except (TypeError, ValueError, OverflowError, AttributeError) as e:
            raise PropertyError(
                f"Cannot enumerate properties of {element.name}: {e}"
            ) from e


def _label(element: str, pad: str) -> str:
    return f"{element}:{pad}" if pad else element
