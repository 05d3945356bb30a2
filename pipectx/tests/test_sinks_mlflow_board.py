from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from mlflow.exceptions import MlflowException

from pipectx.configuration import MlflowBoardSettings
from pipectx.errors import NotFound, TransferError
from pipectx.sinks.mlflow_board import OBJECT_TAG, MlflowBoardSinkAdapter


class _FakeMlflowClient:
    def __init__(self, *, reachable: bool = True, fail_artifacts: bool = False) -> None:
        self.reachable = reachable
        self.fail_artifacts = fail_artifacts
        self.experiments: dict[str, SimpleNamespace] = {}
        self.runs: list[SimpleNamespace] = []
        self.artifacts: dict[str, tuple[str, bytes]] = {}

    def _check(self) -> None:
        if not self.reachable:
            raise MlflowException("API request failed: connection refused")

    def search_experiments(self, max_results: int | None = None) -> list[Any]:
        self._check()
        experiments = list(self.experiments.values())
        return experiments[:max_results] if max_results else experiments

    def get_experiment_by_name(self, name: str) -> Any:
        self._check()
        return self.experiments.get(name)

    def create_experiment(self, name: str) -> str:
        self._check()
        experiment_id = str(len(self.experiments) + 1)
        self.experiments[name] = SimpleNamespace(name=name, experiment_id=experiment_id, tags={})
        return experiment_id

    def create_run(
        self, experiment_id: str, run_name: str | None = None, tags: dict | None = None
    ) -> Any:
        self._check()
        run = SimpleNamespace(
            info=SimpleNamespace(
                run_id=f"r{len(self.runs) + 1}",
                run_name=run_name,
                experiment_id=experiment_id,
                status="RUNNING",
                end_time=None,
            ),
            data=SimpleNamespace(tags={"mlflow.runName": run_name, **(tags or {})}),
        )
        self.runs.append(run)
        return run

    def log_artifact(self, run_id: str, local_path: str, artifact_path: str | None = None) -> None:
        if self.fail_artifacts:
            raise MlflowException("artifact store unavailable")
        path = Path(local_path)
        self.artifacts[run_id] = (path.name, path.read_bytes())

    def set_terminated(self, run_id: str, status: str | None = None) -> None:
        for run in self.runs:
            if run.info.run_id == run_id:
                run.info.status = status
                run.info.end_time = 1_700_000_000_000

    def search_runs(self, experiment_ids: list[str]) -> list[Any]:
        self._check()
        return [run for run in self.runs if run.info.experiment_id in experiment_ids]


def _board(client: _FakeMlflowClient, **kwargs: Any) -> MlflowBoardSinkAdapter:
    settings = MlflowBoardSettings(tracking_uri="http://mlflow.test")
    return MlflowBoardSinkAdapter(settings, client=client, **kwargs)


def test_settings_from_env_reads_tracking_uri(monkeypatch):
    monkeypatch.setenv("MLFLOW_TRACKING_URI", "http://tracking:5000")

    assert MlflowBoardSettings.from_env().tracking_uri == "http://tracking:5000"


def test_board_is_optional_and_degrades_when_server_is_down():
    board = _board(_FakeMlflowClient(reachable=False))
    reports: list[str] = []
    board.bind_log(reports.append)

    assert board.required is False
    assert board.connect() == "degraded"
    assert board.list_containers() == []
    assert board.upload("catalog", b"x", "a.csv").delivered is False
    assert len(reports) == 1
    assert reports[0].startswith("WARNING: Optional sink 'board'")


def test_ensure_container_creates_experiment_once():
    client = _FakeMlflowClient()
    board = _board(client)

    board.ensure_container("catalog")
    board.ensure_container("catalog")

    assert list(client.experiments) == ["catalog"]
    assert [container.name for container in board.list_containers()] == ["catalog"]


def test_upload_records_finished_run_with_artifact_and_user_tags():
    client = _FakeMlflowClient()
    board = _board(client)
    board.ensure_container("catalog")

    ack = board.upload("catalog", b"site_id\n1\n", "sites.csv")

    assert ack.delivered
    assert ack.size == len(b"site_id\n1\n")
    run = client.runs[0]
    assert run.info.status == "FINISHED"
    assert client.artifacts[run.info.run_id] == ("sites.csv", b"site_id\n1\n")
    objects = board.list_objects("catalog")
    assert [item.name for item in objects] == ["sites.csv"]
    assert objects[0].last_modified is not None
    assert board.get_object_metadata("catalog", "sites.csv") == {OBJECT_TAG: "sites.csv"}
    assert isinstance(board.get_object_metadata("catalog", "missing.csv"), NotFound)


def test_failed_artifact_upload_marks_run_failed_and_raises_for_required_board():
    client = _FakeMlflowClient(fail_artifacts=True)
    board = _board(client, required=True)
    board.ensure_container("catalog")

    with pytest.raises(TransferError, match="artifact store unavailable"):
        board.upload("catalog", b"x", "a.csv")

    assert client.runs[0].info.status == "FAILED"


def test_upload_to_missing_experiment_is_a_transfer_error_for_required_board():
    board = _board(_FakeMlflowClient(), required=True)

    with pytest.raises(TransferError, match="experiment 'nowhere' does not exist"):
        board.upload("nowhere", b"x", "a.csv")
