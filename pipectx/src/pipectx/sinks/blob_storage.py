from __future__ import annotations

from pathlib import Path
from typing import Any

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

from pipectx.configuration import BlobStorageSettings
from pipectx.contracts.sink import ContainerHandle, ObjectDescriptor, UploadAck, UploadSource
from pipectx.errors import NotFound
from pipectx.sinks.base import SinkAdapterBase


def build_service_client(
    settings: BlobStorageSettings, *, timeout: float | None = None
) -> BlobServiceClient:
    """Create a BlobServiceClient from a connection string, or an account URL and key."""
    kwargs: dict[str, Any] = {}
    if timeout is not None:
        kwargs["connection_timeout"] = timeout
        kwargs["read_timeout"] = timeout
    if settings.connection_string:
        return BlobServiceClient.from_connection_string(settings.connection_string, **kwargs)
    return BlobServiceClient(account_url=settings.endpoint, credential=settings.key, **kwargs)


class BlobStorageSinkAdapter(SinkAdapterBase):
    """
    Azure Blob Storage sink.

    Settings are read from the environment once, when the adapter is built.
    """

    kind = "blob storage"
    transport_errors = (AzureError, OSError)

    def __init__(
        self,
        settings: BlobStorageSettings | None = None,
        *,
        name: str = "blob",
        required: bool = True,
        timeout: float | None = None,
        service_client: Any = None,
    ) -> None:
        super().__init__(name=name, required=required, timeout=timeout)
        self._settings = settings if settings is not None else BlobStorageSettings.from_env()
        if service_client is None:
            service_client = build_service_client(self._settings, timeout=timeout)
        self._service = service_client

    @property
    def endpoint(self) -> str:
        """Return the storage account URL."""
        return getattr(self._service, "url", None) or self._settings.endpoint or "unknown"

    def _open(self) -> None:
        """Fetch the first container page to check reachability and credentials."""
        next(iter(self._service.list_containers(results_per_page=1)), None)

    def _list_containers(self) -> list[ContainerHandle]:
        """List containers with their metadata."""
        return [
            ContainerHandle(name=item.name, metadata=dict(item.metadata or {}))
            for item in self._service.list_containers(include_metadata=True)
        ]

    def _create_container(self, name: str) -> ContainerHandle:
        """Create a container; a concurrent creation counts as success."""
        try:
            self._service.create_container(name)
        except ResourceExistsError:
            pass
        return ContainerHandle(name=name)

    def _upload(self, container: str, source: UploadSource, destination_name: str) -> UploadAck:
        """Upload a block blob, streaming from disk when given a path."""
        container_client = self._service.get_container_client(container)
        if isinstance(source, (str, Path)):
            path = Path(source)
            with path.open("rb") as handle:
                container_client.upload_blob(name=destination_name, data=handle, overwrite=True)
            size = path.stat().st_size
        else:
            data = self._read_source(source)
            container_client.upload_blob(name=destination_name, data=data, overwrite=True)
            size = len(data)
        return UploadAck(container=container, name=destination_name, size=size)

    def _list_objects(self, container: str) -> list[ObjectDescriptor]:
        """List blobs in a container."""
        container_client = self._service.get_container_client(container)
        return [
            ObjectDescriptor(
                container=container,
                name=blob.name,
                size=blob.size,
                last_modified=blob.last_modified,
            )
            for blob in container_client.list_blobs()
        ]

    def _get_object_metadata(self, container: str, name: str) -> dict[str, str] | NotFound:
        """Return user metadata from the blob properties."""
        blob_client = self._service.get_container_client(container).get_blob_client(name)
        try:
            properties = blob_client.get_blob_properties()
        except ResourceNotFoundError:
            return NotFound(kind="object", name=f"{container}/{name}")
        return dict(properties.metadata or {})
