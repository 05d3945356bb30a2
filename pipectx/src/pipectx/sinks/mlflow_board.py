from __future__ import annotations

import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from mlflow.exceptions import MlflowException
from mlflow.tracking import MlflowClient

from pipectx.configuration import MlflowBoardSettings
from pipectx.contracts.sink import ContainerHandle, ObjectDescriptor, UploadAck, UploadSource
from pipectx.errors import NotFound
from pipectx.sinks.base import SinkAdapterBase

OBJECT_TAG = "pipectx.object"
_SYSTEM_TAG_PREFIX = "mlflow."


class MlflowBoardSinkAdapter(SinkAdapterBase):
    """
    Catalog board on an MLflow tracking server.

    Containers are experiments. Each uploaded object becomes a finished run
    named after the object, with the file attached as its artifact and the
    run's user tags as object metadata. Optional by default: a board is used
    for discovery, not as the system of record.
    """

    kind = "mlflow board"
    transport_errors = (MlflowException, OSError)

    def __init__(
        self,
        settings: MlflowBoardSettings | None = None,
        *,
        name: str = "board",
        required: bool = False,
        timeout: float | None = None,
        client: Any = None,
    ) -> None:
        super().__init__(name=name, required=required, timeout=timeout)
        self._settings = settings if settings is not None else MlflowBoardSettings.from_env()
        if client is None:
            client = MlflowClient(tracking_uri=self._settings.tracking_uri)
        self._client = client

    @property
    def endpoint(self) -> str:
        return (
            self._settings.tracking_uri
            or getattr(self._client, "tracking_uri", None)
            or "mlflow (default tracking uri)"
        )

    def _open(self) -> None:
        self._client.search_experiments(max_results=1)

    def _list_containers(self) -> list[ContainerHandle]:
        return [
            ContainerHandle(name=experiment.name, metadata=dict(experiment.tags or {}))
            for experiment in self._client.search_experiments()
        ]

    def _create_container(self, name: str) -> ContainerHandle:
        self._client.create_experiment(name)
        return ContainerHandle(name=name)

    def _upload(self, container: str, source: UploadSource, destination_name: str) -> UploadAck:
        experiment_id = self._experiment_id(container)
        data = self._read_source(source)
        run = self._client.create_run(
            experiment_id,
            run_name=destination_name,
            tags={OBJECT_TAG: destination_name},
        )
        run_id = run.info.run_id
        try:
            with tempfile.TemporaryDirectory(prefix="pipectx-board-") as staging:
                staged = Path(staging) / Path(destination_name).name
                staged.write_bytes(data)
                self._client.log_artifact(run_id, str(staged))
        except Exception:
            self._client.set_terminated(run_id, status="FAILED")
            raise
        self._client.set_terminated(run_id, status="FINISHED")
        return UploadAck(container=container, name=destination_name, size=len(data))

    def _list_objects(self, container: str) -> list[ObjectDescriptor]:
        experiment_id = self._experiment_id(container)
        return [
            ObjectDescriptor(
                container=container,
                name=run.info.run_name,
                last_modified=_from_millis(run.info.end_time),
            )
            for run in self._client.search_runs([experiment_id])
        ]

    def _get_object_metadata(self, container: str, name: str) -> dict[str, str] | NotFound:
        experiment_id = self._experiment_id(container)
        for run in self._client.search_runs([experiment_id]):
            if run.info.run_name == name:
                return {
                    key: value
                    for key, value in run.data.tags.items()
                    if not key.startswith(_SYSTEM_TAG_PREFIX)
                }
        return NotFound(kind="object", name=f"{container}/{name}")

    def _experiment_id(self, container: str) -> str:
        experiment = self._client.get_experiment_by_name(container)
        if experiment is None:
            raise FileNotFoundError(f"experiment '{container}' does not exist")
        return experiment.experiment_id


def _from_millis(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)
