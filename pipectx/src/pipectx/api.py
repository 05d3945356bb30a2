from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pipectx.configuration import (
    BlobStorageSettings,
    ContextConfig,
    MlflowBoardSettings,
    SinkConfig,
    SqlSettings,
    load_context_config,
)
from pipectx.context import PipelineRunContext
from pipectx.contracts.sink import SinkAdapter
from pipectx.errors import ConfigurationError, NotFound
from pipectx.sinks.fakes import InMemorySinkAdapter
from pipectx.storage import LOG_CONTAINER, StoragePipeline


def build_sink(config: SinkConfig, *, environ: Mapping[str, str] | None = None) -> SinkAdapter:
    """Build an adapter from config. Settings are read here, before any connection."""
    options = dict(config.options)

    if config.kind == "blob":
        from pipectx.sinks.blob_storage import BlobStorageSinkAdapter

        return BlobStorageSinkAdapter(
            BlobStorageSettings.from_env(environ=environ),
            name=config.name or "blob",
            required=_required(config, default=True),
            timeout=config.timeout,
        )

    if config.kind == "sql":
        from pipectx.sinks.sql import SqlSinkAdapter

        settings = SqlSettings.from_env(
            options.get("db_type", "azure_sql"),
            sqlite_path=options.get("sqlite_path"),
            environ=environ,
        )
        return SqlSinkAdapter(
            settings,
            name=config.name or "sql",
            required=_required(config, default=True),
            timeout=config.timeout,
        )

    if config.kind == "mlflow":
        from pipectx.sinks.mlflow_board import MlflowBoardSinkAdapter

        settings = MlflowBoardSettings.from_env(environ=environ)
        if options.get("tracking_uri"):
            settings = MlflowBoardSettings(tracking_uri=options["tracking_uri"])
        return MlflowBoardSinkAdapter(
            settings,
            name=config.name or "board",
            required=_required(config, default=False),
            timeout=config.timeout,
        )

    if config.kind == "memory":
        return InMemorySinkAdapter(
            config.name or "memory",
            required=_required(config, default=True),
            containers=options.get("containers", ()),
            reachable=options.get("reachable", True),
        )

    raise ConfigurationError(f"Unsupported sink kind: {config.kind}")


def setup_pipeline(
    config: ContextConfig,
    *,
    environ: Mapping[str, str] | None = None,
    **context_options: Any,
) -> PipelineRunContext:
    """
    Build a run context and attach every configured sink.

    All sink settings are resolved before the context exists, so a missing
    variable fails without producing a half-initialised run.
    """
    sinks = [build_sink(sink_config, environ=environ) for sink_config in config.sinks]
    return PipelineRunContext(
        config.pipeline.name,
        config.pipeline.id,
        config.params,
        description=config.pipeline.description,
        sinks=sinks,
        mirror_to_file=config.log.file,
        log_directory=config.log.directory,
        **context_options,
    )


def context_from_yaml(
    path: str | Path,
    *,
    environ: Mapping[str, str] | None = None,
    **context_options: Any,
) -> PipelineRunContext:
    config = load_context_config(path, environ=environ)
    return setup_pipeline(config, environ=environ, **context_options)


def storage_pipeline_from_yaml(
    path: str | Path,
    *,
    storage_sink: str | None = None,
    log_container: str = LOG_CONTAINER,
    environ: Mapping[str, str] | None = None,
    **context_options: Any,
) -> StoragePipeline:
    """Build a context from YAML and bind it to its storage sink (first required one by default)."""
    context = context_from_yaml(path, environ=environ, **context_options)
    storage = _select_storage(context, storage_sink)
    return StoragePipeline(context, storage, log_container=log_container)


def _select_storage(context: PipelineRunContext, storage_sink: str | None) -> SinkAdapter:
    if storage_sink is not None:
        sink = context.get_sink(storage_sink)
        if isinstance(sink, NotFound):
            raise ConfigurationError(f"Storage sink '{storage_sink}' is not configured")
        return sink
    for sink in context.sinks:
        if sink.required:
            return sink
    raise ConfigurationError("No required sink configured to act as storage")


def _required(config: SinkConfig, *, default: bool) -> bool:
    return default if config.required is None else config.required
