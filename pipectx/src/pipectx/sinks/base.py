from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, ClassVar, TypeVar

from pipectx.contracts.sink import (
    ConnectionState,
    ContainerHandle,
    LogReporter,
    ObjectDescriptor,
    UploadAck,
    UploadSource,
)
from pipectx.errors import InvalidArgumentError, NotFound, SinkConnectionError, TransferError

T = TypeVar("T")


class SinkAdapterBase:
    """
    Connection state machine shared by all sink adapters.

    Required sinks go disconnected -> connecting -> connected, and raise on
    failure. Optional sinks may end up degraded instead: a single warning is
    reported and every later operation returns an empty/default result. There
    is no reconnection; build a new adapter to retry.

    Subclasses implement the transport hooks (`_open`, `_list_containers`,
    `_create_container`, `_upload`, `_list_objects`, `_get_object_metadata`)
    and declare which exceptions their transport raises.
    """

    kind: ClassVar[str] = "sink"
    transport_errors: ClassVar[tuple[type[Exception], ...]] = (OSError,)

    def __init__(self, *, name: str, required: bool, timeout: float | None = None) -> None:
        if not name or not name.strip():
            raise InvalidArgumentError("Sink 'name' must be a non-empty string.")
        self._name = name
        self._required = required
        self._timeout = timeout
        self._state: ConnectionState = "disconnected"
        self._reporter: LogReporter | None = None
        self._logger = logging.getLogger(type(self).__module__)

    @property
    def name(self) -> str:
        return self._name

    @property
    def required(self) -> bool:
        return self._required

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_degraded(self) -> bool:
        return self._state == "degraded"

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def endpoint(self) -> str:
        raise NotImplementedError

    def bind_log(self, reporter: LogReporter | None) -> None:
        """Route connection and failure reports into a run log."""
        self._reporter = reporter

    def connect(self) -> ConnectionState:
        """Open the connection; a required sink raises SinkConnectionError on failure."""
        if self._state in ("connected", "degraded"):
            return self._state
        self._state = "connecting"
        try:
            self._open()
        except self.transport_errors as exc:
            if self._required:
                self._state = "disconnected"
                self._report(
                    f"Connection to required sink '{self._name}' at {self.endpoint} failed: {exc}",
                    level=logging.ERROR,
                )
                raise SinkConnectionError(self._name, self.endpoint, str(exc)) from exc
            self._degrade("connect", exc)
        else:
            self._state = "connected"
            self._report(f"Connected to {self.kind} sink '{self._name}' at {self.endpoint}.")
        return self._state

    def list_containers(self) -> list[ContainerHandle]:
        """List containers; re-queries the sink on every call."""
        if not self._ready("list containers", self.endpoint):
            return []
        try:
            return list(self._list_containers())
        except self.transport_errors as exc:
            return self._fail("list containers", self.endpoint, exc, default=[])

    def ensure_container(self, name: str) -> ContainerHandle:
        """Return the named container, creating it first if absent."""
        if not name:
            raise InvalidArgumentError("Container name must be a non-empty string.")
        if not self._ready("ensure container", name):
            return ContainerHandle(name=name, degraded=True)
        try:
            for container in self._list_containers():
                if container.name == name:
                    return container
            self._report(f"Creating '{name}' container as it does not exist.")
            return self._create_container(name)
        except self.transport_errors as exc:
            return self._fail(
                "ensure container", name, exc, default=ContainerHandle(name=name, degraded=True)
            )

    def upload(self, container: str, source: UploadSource, destination_name: str) -> UploadAck:
        """Upload bytes or a file path as `destination_name`, replacing any existing object."""
        if not destination_name:
            raise InvalidArgumentError("Upload destination name must be a non-empty string.")
        if not self._ready("upload", f"{container}/{destination_name}"):
            return UploadAck(container=container, name=destination_name, delivered=False)
        try:
            return self._upload(container, source, destination_name)
        except self.transport_errors as exc:
            return self._fail(
                "upload",
                f"{container}/{destination_name}",
                exc,
                default=UploadAck(container=container, name=destination_name, delivered=False),
            )

    def list_objects(self, container: str) -> list[ObjectDescriptor]:
        """List objects in a container; re-queries the sink on every call."""
        if not self._ready("list objects in", container):
            return []
        try:
            return list(self._list_objects(container))
        except self.transport_errors as exc:
            return self._fail("list objects in", container, exc, default=[])

    def get_object_metadata(self, container: str, name: str) -> Mapping[str, str] | NotFound:
        """Return the object's metadata, or NotFound if the object does not exist."""
        if not self._ready("get metadata for", f"{container}/{name}"):
            return {}
        try:
            return self._get_object_metadata(container, name)
        except self.transport_errors as exc:
            return self._fail("get metadata for", f"{container}/{name}", exc, default={})

    # transport hooks

    def _open(self) -> None:
        raise NotImplementedError

    def _list_containers(self) -> Sequence[ContainerHandle]:
        raise NotImplementedError

    def _create_container(self, name: str) -> ContainerHandle:
        raise NotImplementedError

    def _upload(self, container: str, source: UploadSource, destination_name: str) -> UploadAck:
        raise NotImplementedError

    def _list_objects(self, container: str) -> Sequence[ObjectDescriptor]:
        raise NotImplementedError

    def _get_object_metadata(self, container: str, name: str) -> Mapping[str, str] | NotFound:
        raise NotImplementedError

    # helpers

    @staticmethod
    def _read_source(source: Any) -> bytes:
        if isinstance(source, bytes):
            return source
        if isinstance(source, (str, Path)):
            return Path(source).read_bytes()
        raise InvalidArgumentError(f"Unsupported upload source type: {type(source).__name__}")

    def _ready(self, operation: str, target: str) -> bool:
        if self._state == "disconnected":
            # a lazy connect failing inside an operation is a failure of that operation
            try:
                self.connect()
            except SinkConnectionError as exc:
                raise TransferError(self._name, operation, target, exc.reason) from exc
        return self._state == "connected"

    def _fail(self, operation: str, target: str, exc: Exception, *, default: T) -> T:
        if self._required:
            self._report(
                f"Sink '{self._name}' failed to {operation} '{target}': {exc}",
                level=logging.ERROR,
            )
            raise TransferError(self._name, operation, target, str(exc)) from exc
        self._degrade(operation, exc)
        return default

    def _degrade(self, operation: str, exc: Exception) -> None:
        if self._state == "degraded":
            return
        self._state = "degraded"
        self._report(
            f"WARNING: Optional sink '{self._name}' unreachable during {operation} ({exc}); "
            "continuing in degraded mode.",
            level=logging.WARNING,
        )

    def _report(self, message: str, *, level: int = logging.INFO) -> None:
        if self._reporter is not None:
            self._reporter(message)
        else:
            self._logger.log(level, message)
