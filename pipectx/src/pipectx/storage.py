from __future__ import annotations

import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pandas as pd

from pipectx.context import PipelineRunContext
from pipectx.contracts.sink import ContainerHandle, ObjectDescriptor, SinkAdapter, UploadAck
from pipectx.errors import InvalidArgumentError, NotFound, TransferError

LOG_CONTAINER = "logs"


def upload_log(
    context: PipelineRunContext,
    sink: SinkAdapter,
    *,
    container: str = LOG_CONTAINER,
    destination_name: str | None = None,
) -> UploadAck:
    """Stage the run log in a temp file and upload it as `{run_id}.log`."""
    name = destination_name or context.log_object_name
    context.add_log(f"Uploading log file to container '{container}' as '{name}'")
    with tempfile.TemporaryDirectory(prefix="pipectx-log-") as staging:
        staged = Path(staging) / Path(name).name
        staged.write_text(context.log.to_text(), encoding="utf-8")
        return _upload_staged(context, sink, container, staged, name)


def upload_dataset(
    context: PipelineRunContext,
    sink: SinkAdapter,
    dataset: str,
    *,
    container: str,
    destination_name: str | None = None,
) -> UploadAck:
    """Stage a registered dataset as CSV and upload it."""
    payload = context.datasets.require(dataset)
    frame = payload if isinstance(payload, pd.DataFrame) else pd.DataFrame(payload)
    name = destination_name or f"{context.run_id}-{dataset}.csv"
    context.add_log(f"Uploading dataset '{dataset}' to container '{container}' as '{name}'")
    with tempfile.TemporaryDirectory(prefix="pipectx-data-") as staging:
        staged = Path(staging) / f"{dataset}.csv"
        frame.to_csv(staged, index=False)
        return _upload_staged(context, sink, container, staged, name)


def _upload_staged(
    context: PipelineRunContext,
    sink: SinkAdapter,
    container: str,
    staged: Path,
    name: str,
) -> UploadAck:
    try:
        ack = sink.upload(container, staged, name)
    except TransferError:
        context.add_log(f"Upload of '{name}' to container '{container}' failed.")
        raise
    if not ack.delivered:
        context.add_log(f"Upload of '{name}' skipped: sink '{sink.name}' is degraded.")
    return ack


class StoragePipeline:
    """
    A run context bound to a required object-storage sink.

    Construction connects the sink and makes sure the log container exists.
    Listings are not cached; each call re-queries the sink.
    """

    def __init__(
        self,
        context: PipelineRunContext,
        storage: SinkAdapter,
        *,
        log_container: str = LOG_CONTAINER,
    ) -> None:
        if not storage.required:
            raise InvalidArgumentError(f"Storage sink '{storage.name}' must be declared required")
        self._context = context
        self._storage = storage
        if storage not in context.sinks:
            context.attach_sink(storage)
        self._log_container = storage.ensure_container(log_container)

    @classmethod
    def create(
        cls,
        pipeline_name: str,
        pipeline_id: str,
        params: Mapping[str, str | None] | None = None,
        *,
        storage: SinkAdapter | None = None,
        log_container: str = LOG_CONTAINER,
        **context_options: Any,
    ) -> StoragePipeline:
        """
        Build the storage sink, then the context, then the pipeline.

        With no `storage`, a blob sink is configured from the environment, so
        missing settings fail before the run log has any entry.
        """
        if storage is None:
            from pipectx.sinks.blob_storage import BlobStorageSinkAdapter

            storage = BlobStorageSinkAdapter()
        context = PipelineRunContext(pipeline_name, pipeline_id, params, **context_options)
        return cls(context, storage, log_container=log_container)

    @property
    def context(self) -> PipelineRunContext:
        return self._context

    @property
    def storage(self) -> SinkAdapter:
        return self._storage

    @property
    def log_container(self) -> ContainerHandle:
        return self._log_container

    def list_containers(self) -> list[ContainerHandle]:
        return list(self._storage.list_containers())

    def list_objects(self, container: str) -> list[ObjectDescriptor]:
        return list(self._storage.list_objects(container))

    def get_object_metadata(self, container: str, name: str) -> Mapping[str, str] | NotFound:
        self._context.add_log(f"Getting metadata for object: '{name}'")
        return self._storage.get_object_metadata(container, name)

    def upload_log(self, destination_name: str | None = None) -> UploadAck:
        return upload_log(
            self._context,
            self._storage,
            container=self._log_container.name,
            destination_name=destination_name,
        )

    def upload_dataset(
        self, dataset: str, *, container: str, destination_name: str | None = None
    ) -> UploadAck:
        return upload_dataset(
            self._context,
            self._storage,
            dataset,
            container=container,
            destination_name=destination_name,
        )
