from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pipectx.contracts.sink import (
    ConnectionState,
    ContainerHandle,
    ObjectDescriptor,
    UploadAck,
    UploadSource,
)
from pipectx.errors import NotFound
from pipectx.sinks.base import SinkAdapterBase


@dataclass(frozen=True, slots=True)
class SinkCall:
    """Record of a public sink call for assertions in tests."""

    name: str
    kwargs: dict[str, Any]


class InMemorySinkAdapter(SinkAdapterBase):
    """
    In-memory SinkAdapter for unit tests.

    Flip `reachable` to simulate the remote end going away.
    """

    kind = "in-memory"

    def __init__(
        self,
        name: str = "memory",
        *,
        required: bool = True,
        containers: Iterable[str] = (),
        reachable: bool = True,
        endpoint: str = "memory://sink",
    ) -> None:
        super().__init__(name=name, required=required)
        self.reachable = reachable
        self._endpoint = endpoint
        self._containers: dict[str, dict[str, bytes]] = {name: {} for name in containers}
        self._metadata: dict[tuple[str, str], dict[str, str]] = {}
        self._calls: list[SinkCall] = []

    @property
    def endpoint(self) -> str:
        """Return the fake endpoint URI."""
        return self._endpoint

    @property
    def calls(self) -> list[SinkCall]:
        """Return the recorded calls in order."""
        return list(self._calls)

    def call_count(self, name: str, /, **kwargs: Any) -> int:
        """Count recorded calls by name whose kwargs include the given values."""
        return sum(
            1
            for call in self._calls
            if call.name == name and all(call.kwargs.get(k) == v for k, v in kwargs.items())
        )

    def container_names(self) -> list[str]:
        """Return the names of existing containers in creation order."""
        return list(self._containers)

    def stored(self, container: str, name: str) -> bytes | None:
        """Return the stored bytes of an object, if any."""
        return self._containers.get(container, {}).get(name)

    def set_object_metadata(self, container: str, name: str, metadata: Mapping[str, str]) -> None:
        """Seed metadata returned by get_object_metadata."""
        self._metadata[(container, name)] = dict(metadata)

    def connect(self) -> ConnectionState:
        """Record and connect."""
        self._record("connect")
        return super().connect()

    def list_containers(self) -> list[ContainerHandle]:
        """Record and list containers."""
        self._record("list_containers")
        return super().list_containers()

    def ensure_container(self, name: str) -> ContainerHandle:
        """Record and ensure the container exists."""
        self._record("ensure_container", name=name)
        return super().ensure_container(name)

    def upload(self, container: str, source: UploadSource, destination_name: str) -> UploadAck:
        """Record and store the upload in memory."""
        self._record(
            "upload", container=container, source=source, destination_name=destination_name
        )
        return super().upload(container, source, destination_name)

    def list_objects(self, container: str) -> list[ObjectDescriptor]:
        """Record and list objects."""
        self._record("list_objects", container=container)
        return super().list_objects(container)

    def get_object_metadata(self, container: str, name: str) -> Mapping[str, str] | NotFound:
        """Record and return object metadata."""
        self._record("get_object_metadata", container=container, name=name)
        return super().get_object_metadata(container, name)

    def _open(self) -> None:
        self._check_reachable()

    def _list_containers(self) -> list[ContainerHandle]:
        self._check_reachable()
        return [ContainerHandle(name=name) for name in self._containers]

    def _create_container(self, name: str) -> ContainerHandle:
        self._check_reachable()
        self._containers.setdefault(name, {})
        return ContainerHandle(name=name)

    def _upload(self, container: str, source: UploadSource, destination_name: str) -> UploadAck:
        self._check_reachable()
        if container not in self._containers:
            raise FileNotFoundError(f"container '{container}' does not exist")
        data = self._read_source(source)
        self._containers[container][destination_name] = data
        return UploadAck(container=container, name=destination_name, size=len(data))

    def _list_objects(self, container: str) -> list[ObjectDescriptor]:
        self._check_reachable()
        objects = self._containers.get(container, {})
        return [
            ObjectDescriptor(container=container, name=name, size=len(data))
            for name, data in objects.items()
        ]

    def _get_object_metadata(self, container: str, name: str) -> Mapping[str, str] | NotFound:
        self._check_reachable()
        if name not in self._containers.get(container, {}):
            return NotFound(kind="object", name=f"{container}/{name}")
        return dict(self._metadata.get((container, name), {}))

    def _check_reachable(self) -> None:
        if not self.reachable:
            raise ConnectionRefusedError(f"{self._endpoint} is unreachable")

    def _record(self, name: str, /, **kwargs: Any) -> None:
        self._calls.append(SinkCall(name=name, kwargs=kwargs))
