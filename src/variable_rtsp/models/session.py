"""
Session Model
=============

Lifecycle state of the single shared stream.

There is exactly one Session per process. It is created at startup with
no pipeline handles, populated when the first viewer's connection causes
the engine to configure its media, and torn down when the last viewer
leaves. The engine destroys the media at that point, so the next 0 -> 1
transition acquires fresh handles.

Invariants:
    - Handles are all-or-nothing: pipeline, source, encoder and payloader
      are either all set or all None
    - connected is True only while viewer_count > 0 and handles are set
    - viewer_count never goes below zero
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from variable_rtsp.engine.interface import ElementHandle, PipelineHandle


@dataclass(slots=True)
class PipelineHandles:
    """The four element references held while streaming."""

    pipeline: "PipelineHandle"
    source: "ElementHandle"
    encoder: "ElementHandle"
    payloader: "ElementHandle"


@dataclass(slots=True)
class Session:
    """
    Shared-stream session state.

    Attributes:
        viewer_count: Number of currently attached viewers
        connected: True while a configured pipeline is serving viewers
        handles: Element references, present only while connected
        configure_latch: Set once the configure hook has been installed
            on the engine; never cleared during normal operation
    """

    viewer_count: int = 0
    connected: bool = False
    handles: Optional[PipelineHandles] = None
    configure_latch: bool = False

    @property
    def pipeline(self) -> Optional["PipelineHandle"]:
        return self.handles.pipeline if self.handles else None

    @property
    def source(self) -> Optional["ElementHandle"]:
        return self.handles.source if self.handles else None

    @property
    def encoder(self) -> Optional["ElementHandle"]:
        return self.handles.encoder if self.handles else None

    @property
    def payloader(self) -> Optional["ElementHandle"]:
        return self.handles.payloader if self.handles else None

    def release(self) -> None:
        """Drop all handles and mark the session as not connected."""
        self.handles = None
        self.connected = False

    def reset(self) -> None:
        """Return to the startup state, including the one-shot latch."""
        self.viewer_count = 0
        self.configure_latch = False
        self.release()
