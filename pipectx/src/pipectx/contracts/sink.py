from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Protocol, runtime_checkable

from pipectx.errors import NotFound

ConnectionState = Literal["disconnected", "connecting", "connected", "degraded"]

# bytes are uploaded as-is, str/Path are read from disk, DataFrames are adapter-specific
UploadSource = Any

LogReporter = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class ContainerHandle:
    name: str
    metadata: Mapping[str, str] = field(default_factory=dict)
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class ObjectDescriptor:
    container: str
    name: str
    size: int | None = None
    last_modified: datetime | None = None


@dataclass(frozen=True, slots=True)
class UploadAck:
    container: str
    name: str
    size: int | None = None
    delivered: bool = True


@runtime_checkable
class SinkAdapter(Protocol):
    """
    Capability contract for external systems that receive logs or datasets.

    Listings are never cached: each call re-queries the sink.
    """

    @property
    def name(self) -> str:
        """Short identifier used in log lines and errors."""
        ...

    @property
    def required(self) -> bool:
        """Whether a failed connection must abort context creation."""
        ...

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        ...

    @property
    def endpoint(self) -> str:
        """Human-readable location of the sink (URL, DSN, path)."""
        ...

    def bind_log(self, reporter: LogReporter | None) -> None:
        """Route warnings and failure notices into a run log."""
        ...

    def connect(self) -> ConnectionState:
        """Connect once; raise for required sinks, degrade for optional ones."""
        ...

    def list_containers(self) -> Sequence[ContainerHandle]:
        """List top-level containers."""
        ...

    def ensure_container(self, name: str) -> ContainerHandle:
        """Create the container if absent and return a handle to it."""
        ...

    def upload(self, container: str, source: UploadSource, destination_name: str) -> UploadAck:
        """Upload bytes or a local file as `destination_name`."""
        ...

    def list_objects(self, container: str) -> Sequence[ObjectDescriptor]:
        """List objects stored in a container."""
        ...

    def get_object_metadata(self, container: str, name: str) -> Mapping[str, str] | NotFound:
        """Return user metadata for an object, or NotFound."""
        ...
