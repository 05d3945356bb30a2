from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime

import pytest

from pipectx.runtime import environment
from pipectx.runtime.environment import capture
from pipectx.runtime.identity import generate_run_id


def test_capture_reads_active_config_name():
    snapshot = capture({"PIPECTX_CONFIG_ACTIVE": "production"})

    assert snapshot.config == "production"


def test_capture_defaults_config_name_when_unset_or_empty():
    assert capture({}).config == "default"
    assert capture({"PIPECTX_CONFIG_ACTIVE": ""}).config == "default"


def test_capture_falls_back_to_unknown_user_and_node(monkeypatch):
    def _no_user() -> str:
        raise OSError("no login name")

    monkeypatch.setattr(environment.getpass, "getuser", _no_user)
    monkeypatch.setattr(environment.platform, "node", lambda: "")

    snapshot = capture({})

    assert snapshot.user == "unknown"
    assert snapshot.node == "unknown"


def test_snapshot_as_dict_and_immutability(monkeypatch):
    monkeypatch.setattr(environment.getpass, "getuser", lambda: "etl")
    monkeypatch.setattr(environment.platform, "system", lambda: "Linux")
    monkeypatch.setattr(environment.platform, "node", lambda: "worker-1")

    snapshot = capture({"PIPECTX_CONFIG_ACTIVE": "staging"})

    assert snapshot.as_dict() == {
        "config": "staging",
        "sysname": "Linux",
        "user": "etl",
        "node": "worker-1",
    }
    with pytest.raises(FrozenInstanceError):
        snapshot.user = "other"  # type: ignore[misc]


def test_run_id_uses_pipeline_id_and_calendar_day():
    assert generate_run_id("daily-report", datetime(2024, 7, 1, 23, 59)) == (
        "run-daily-report-20240701"
    )


def test_run_id_is_shared_within_a_day_and_differs_across_days():
    morning = generate_run_id("sales", datetime(2024, 7, 1, 0, 0, 1))
    evening = generate_run_id("sales", datetime(2024, 7, 1, 23, 0))
    next_day = generate_run_id("sales", datetime(2024, 7, 2, 0, 0))

    assert morning == evening
    assert morning != next_day
