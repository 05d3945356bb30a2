from __future__ import annotations

from datetime import datetime

RUN_DATE_FORMAT = "%Y%m%d"


def generate_run_id(pipeline_id: str, at: datetime) -> str:
    """
    Build the run identifier `run-{pipeline_id}-{YYYYMMDD}`.

    Only the calendar day of `at` is used, so two runs of the same pipeline on
    the same day share an identifier.
    """
    return f"run-{pipeline_id}-{at.strftime(RUN_DATE_FORMAT)}"
