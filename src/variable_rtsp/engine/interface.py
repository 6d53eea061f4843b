"""
Pipeline Engine Interface
=========================

The narrow surface the control plane needs from the media pipeline engine.

The engine (capture, encoding, RTSP transport) is an external collaborator.
The core never imports an engine implementation directly; it only talks to
these protocols, so the state machine can be exercised with the mock engine.

Components:
    - PropertyTarget: Anything with gettable/settable named properties
    - PropertyInspectable: Can enumerate all readable properties as TypedValues
    - ElementHandle: A named pipeline element (target + inspectable + pads)
    - PipelineHandle: The top-level bin holding all elements
    - SessionEvents: Callbacks the core implements, the engine invokes
    - PipelineEngine: Lifecycle of the engine itself

Event Contract:
    on_client_connected()      - a viewer attached to the shared stream
    on_client_disconnected()   - a viewer detached
    on_configure(pipeline)     - the engine (re)built its media; fired after
                                 the hook has been installed via
                                 install_configure_hook()
"""

from typing import Any, Callable, Iterator, List, Optional, Protocol, Tuple

from variable_rtsp.models.properties import TypedValue


class PropertyTarget(Protocol):
    """Object with named, typed properties (element or pad)."""

    def get_property(self, name: str) -> Any:
        ...

    def set_property(self, name: str, value: Any) -> None:
        ...


class PropertyInspectable(Protocol):
    """Object whose readable properties can be enumerated."""

    def list_properties(self) -> List[Tuple[str, TypedValue]]:
        ...


class ElementHandle(PropertyTarget, PropertyInspectable, Protocol):
    """A single named pipeline element."""

    @property
    def name(self) -> str:
        ...

    @property
    def class_name(self) -> str:
        ...

    def get_pad(self, name: str) -> Optional[PropertyTarget]:
        ...


class PipelineHandle(Protocol):
    """The pipeline bin."""

    def get_element(self, name: str) -> Optional[ElementHandle]:
        ...

    def iterate_elements(self) -> Iterator[ElementHandle]:
        ...

    def stop(self) -> None:
        ...


class SessionEvents(Protocol):
    """Event sink implemented by the session registry."""

    def on_client_connected(self) -> None:
        ...

    def on_client_disconnected(self) -> None:
        ...

    def on_configure(self, pipeline: PipelineHandle) -> None:
        ...


ConfigureHook = Callable[[PipelineHandle], None]


class PipelineEngine(Protocol):
    """
    Lifecycle surface of a pipeline engine.

    start() attaches the engine to the running event loop and begins
    delivering client events to the bound SessionEvents sink.
    """

    def bind(self, events: SessionEvents) -> None:
        ...

    def install_configure_hook(self, hook: ConfigureHook) -> None:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...
