from __future__ import annotations

import io
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd
import pytest

from pipectx.context import PipelineRunContext
from pipectx.errors import ConfigurationError, InvalidArgumentError, TransferError
from pipectx.runtime.environment import EnvironmentSnapshot
from pipectx.sinks.fakes import InMemorySinkAdapter
from pipectx.storage import StoragePipeline, upload_dataset, upload_log
from pipectx.testkit.dummies import sites_frame

_ENV = EnvironmentSnapshot(config="default", sysname="Linux", user="etl", node="worker-1")


def _context(**kwargs) -> PipelineRunContext:
    return PipelineRunContext(
        "Daily Report",
        "daily-report",
        environment=_ENV,
        clock=lambda: datetime(2024, 7, 1, 6, tzinfo=UTC),
        **kwargs,
    )


def _messages(ctx: PipelineRunContext) -> list[str]:
    return [entry.message for entry in ctx.log.entries()]


def test_construction_attaches_storage_and_creates_log_container():
    storage = InMemorySinkAdapter("storage")
    ctx = _context()

    pipeline = StoragePipeline(ctx, storage)

    assert ctx.get_sink("storage") is storage
    assert pipeline.log_container.name == "logs"
    assert storage.container_names() == ["logs"]
    assert "Creating 'logs' container as it does not exist." in _messages(ctx)


def test_already_attached_storage_is_not_attached_twice():
    storage = InMemorySinkAdapter("storage", containers=["logs"])
    ctx = _context(sinks=[storage])

    StoragePipeline(ctx, storage)

    assert ctx.sinks == (storage,)
    assert storage.call_count("connect") == 1


def test_optional_storage_sink_is_rejected():
    with pytest.raises(InvalidArgumentError, match="must be declared required"):
        StoragePipeline(_context(), InMemorySinkAdapter("storage", required=False))


def test_create_without_storage_reads_blob_settings_before_building_context(monkeypatch):
    for name in ("AZURE_STORAGE_CONNECTION_STRING", "AZURE_BLOB_ENDPOINT", "AZURE_KEY"):
        monkeypatch.delenv(name, raising=False)
    created: list[str] = []
    monkeypatch.setattr(
        "pipectx.storage.PipelineRunContext",
        lambda *args, **kwargs: created.append("context"),
    )

    with pytest.raises(ConfigurationError, match="AZURE_BLOB_ENDPOINT"):
        StoragePipeline.create("Daily Report", "daily-report")

    assert created == []


def test_create_with_injected_storage_passes_context_options():
    storage = InMemorySinkAdapter("storage")

    pipeline = StoragePipeline.create(
        "Daily Report",
        "daily-report",
        {"division": "north"},
        storage=storage,
        log_container="run-logs",
        environment=_ENV,
    )

    assert pipeline.context.params["division"] == "north"
    assert pipeline.log_container.name == "run-logs"
    assert storage.container_names() == ["run-logs"]


def test_listings_always_requery_the_sink():
    storage = InMemorySinkAdapter("storage", containers=["raw"])
    pipeline = StoragePipeline(_context(), storage)

    assert [item.name for item in pipeline.list_objects("raw")] == []
    storage.upload("raw", b"x", "late.csv")

    assert [item.name for item in pipeline.list_objects("raw")] == ["late.csv"]
    assert [item.name for item in pipeline.list_containers()] == ["raw", "logs"]
    assert storage.call_count("list_objects", container="raw") == 2


def test_get_object_metadata_logs_lookup():
    storage = InMemorySinkAdapter("storage", containers=["raw"])
    storage.upload("raw", b"x", "sites.csv")
    storage.set_object_metadata("raw", "sites.csv", {"owner": "etl"})
    pipeline = StoragePipeline(_context(), storage)

    metadata = pipeline.get_object_metadata("raw", "sites.csv")

    assert metadata == {"owner": "etl"}
    assert _messages(pipeline.context)[-1] == "Getting metadata for object: 'sites.csv'"


def test_upload_log_sends_full_log_under_run_name_and_removes_staging():
    storage = InMemorySinkAdapter("storage")
    pipeline = StoragePipeline(_context(), storage)
    pipeline.context.add_log("step1")

    ack = pipeline.upload_log()

    assert ack.name == "run-daily-report-20240701.log"
    assert ack.container == "logs"
    uploaded = storage.stored("logs", "run-daily-report-20240701.log").decode("utf-8")
    assert uploaded.splitlines() == pipeline.context.get_logs()
    assert uploaded.splitlines()[-1].endswith(
        "Uploading log file to container 'logs' as 'run-daily-report-20240701.log'"
    )
    staged = storage.calls[-1].kwargs["source"]
    assert isinstance(staged, Path)
    assert not staged.exists()


def test_upload_log_failure_raises_logs_and_removes_staging():
    storage = InMemorySinkAdapter("storage")
    pipeline = StoragePipeline(_context(), storage)
    storage.reachable = False

    with pytest.raises(TransferError):
        pipeline.upload_log()

    staged = storage.calls[-1].kwargs["source"]
    assert not staged.exists()
    assert _messages(pipeline.context)[-1] == (
        "Upload of 'run-daily-report-20240701.log' to container 'logs' failed."
    )


def test_upload_dataset_stages_csv():
    storage = InMemorySinkAdapter("storage", containers=["data"])
    pipeline = StoragePipeline(_context(), storage)
    pipeline.context.add_dataset("sites", sites_frame())

    ack = pipeline.upload_dataset("sites", container="data")

    assert ack.name == "run-daily-report-20240701-sites.csv"
    stored = pd.read_csv(io.BytesIO(storage.stored("data", ack.name)))
    pd.testing.assert_frame_equal(stored, sites_frame())


def test_upload_to_degraded_sink_is_skipped_and_logged():
    ctx = _context()
    board = InMemorySinkAdapter("board", required=False, reachable=False)
    ctx.attach_sink(board)

    ack = upload_log(ctx, board, container="catalog")

    assert ack.delivered is False
    assert _messages(ctx)[-1] == (
        "Upload of 'run-daily-report-20240701.log' skipped: sink 'board' is degraded."
    )


def test_upload_dataset_accepts_records_payload():
    ctx = _context()
    storage = InMemorySinkAdapter("storage", containers=["data"])
    ctx.add_dataset("rows", [{"a": 1}, {"a": 2}])

    ack = upload_dataset(ctx, storage, "rows", container="data", destination_name="rows.csv")

    assert storage.stored("data", "rows.csv") == b"a\n1\n2\n"
    assert ack.size == len(b"a\n1\n2\n")


def test_upload_log_to_never_connected_unreachable_sink_logs_failure_and_cleans_up():
    ctx = _context()
    storage = InMemorySinkAdapter("storage", reachable=False)

    with pytest.raises(TransferError, match="failed to upload") as excinfo:
        upload_log(ctx, storage)

    assert excinfo.value.target == "logs/run-daily-report-20240701.log"
    staged = storage.calls[0].kwargs["source"]
    assert not staged.exists()
    assert _messages(ctx)[-1] == (
        "Upload of 'run-daily-report-20240701.log' to container 'logs' failed."
    )
