from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pipectx.contracts.sink import SinkAdapter
from pipectx.contracts.validation import SchemaValidator
from pipectx.errors import InvalidArgumentError, NotFound
from pipectx.runtime.datasets import DatasetProfile, DatasetRegistry
from pipectx.runtime.environment import EnvironmentSnapshot, capture
from pipectx.runtime.identity import generate_run_id
from pipectx.runtime.log import AppendOnlyLog, Clock, ConsoleLogSink, FileLogSink


@dataclass(frozen=True, slots=True)
class RunMetadata:
    """Identity of a run as recorded at its start."""

    pipeline_name: str
    run_id: str
    run_user: str
    run_description: str
    run_start_time_utc: str


class PipelineRunContext:
    """
    State owned by one pipeline execution.

    Composes the environment snapshot, run identity, append-only log and
    dataset registry. External systems are attached as sink adapters; the
    context itself holds no connections and does no I/O beyond its log
    mirrors.
    """

    def __init__(
        self,
        pipeline_name: str,
        pipeline_id: str,
        params: Mapping[str, str | None] | None = None,
        *,
        description: str = "",
        sinks: Iterable[SinkAdapter] = (),
        mirror_to_file: bool = False,
        log_directory: str | Path | None = None,
        logger: logging.Logger | None = None,
        validator: SchemaValidator | None = None,
        environment: EnvironmentSnapshot | None = None,
        clock: Clock | None = None,
    ) -> None:
        if not pipeline_name or not pipeline_name.strip():
            raise InvalidArgumentError("pipeline_name must be a non-empty string")
        if not pipeline_id or not pipeline_id.strip():
            raise InvalidArgumentError("pipeline_id must be a non-empty string")

        self._pipeline_name = pipeline_name
        self._pipeline_id = pipeline_id
        self._description = description
        self._params = dict(params or {})
        self._clock: Clock = clock or datetime.now
        self._started_at = self._clock()
        self._environment = environment if environment is not None else capture()
        self._run_id = generate_run_id(pipeline_id, self._started_at)
        self._logger = logger or logging.getLogger(f"pipectx.run.{self._run_id}")

        self._log = AppendOnlyLog(sinks=[ConsoleLogSink(self._logger)], clock=self._clock)
        self._log_file: FileLogSink | None = None
        if mirror_to_file or log_directory is not None:
            self._log_file = FileLogSink(self._run_id, directory=log_directory)
            self._log.register_sink(self._log_file)

        self._datasets = DatasetRegistry(self._log, validator=validator)
        self._sinks: list[SinkAdapter] = []

        self.add_log(f"Pipeline '{pipeline_name}' initialized.")
        for sink in sinks:
            self.attach_sink(sink)

    @property
    def pipeline_name(self) -> str:
        return self._pipeline_name

    @property
    def pipeline_id(self) -> str:
        return self._pipeline_id

    @property
    def description(self) -> str:
        return self._description

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def environment(self) -> EnvironmentSnapshot:
        return self._environment

    @property
    def params(self) -> Mapping[str, str | None]:
        return MappingProxyType(self._params)

    @property
    def log(self) -> AppendOnlyLog:
        return self._log

    @property
    def log_file(self) -> FileLogSink | None:
        return self._log_file

    @property
    def log_object_name(self) -> str:
        return f"{self._run_id}.log"

    @property
    def datasets(self) -> DatasetRegistry:
        return self._datasets

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def sinks(self) -> tuple[SinkAdapter, ...]:
        return tuple(self._sinks)

    def attach_sink(self, sink: SinkAdapter) -> SinkAdapter:
        """
        Bind a sink to this run's log and connect it.

        A required sink that cannot connect raises and is not attached; an
        optional one is attached in degraded state after a single warning.
        """
        if any(existing.name == sink.name for existing in self._sinks):
            raise InvalidArgumentError(f"A sink named '{sink.name}' is already attached")
        sink.bind_log(self.add_log)
        sink.connect()
        self._sinks.append(sink)
        return sink

    def get_sink(self, name: str) -> SinkAdapter | NotFound:
        for sink in self._sinks:
            if sink.name == name:
                return sink
        return NotFound(kind="sink", name=name)

    def add_dataset(self, name: str, data: Any, **profile: Any) -> DatasetProfile:
        return self._datasets.add(name, data, **profile)

    def get_dataset(self, name: str) -> Any | NotFound:
        return self._datasets.get(name)

    def add_log(self, message: str) -> None:
        self._log.append(message)

    def get_logs(self) -> list[str]:
        return self._log.read_all()

    def run_metadata(self) -> RunMetadata:
        started = self._started_at
        if started.tzinfo is None:
            started = started.astimezone()
        return RunMetadata(
            pipeline_name=self._pipeline_name,
            run_id=self._run_id,
            run_user=self._environment.user,
            run_description=self._description,
            run_start_time_utc=started.astimezone(UTC).isoformat(),
        )

    def __repr__(self) -> str:
        return (
            f"PipelineRunContext(pipeline_name={self._pipeline_name!r}, run_id={self._run_id!r}, "
            f"datasets={self._datasets.names()!r}, sinks={[s.name for s in self._sinks]!r})"
        )
