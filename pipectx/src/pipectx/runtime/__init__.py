"""Run-scoped building blocks: environment, identity, log and datasets."""

from pipectx.runtime.datasets import DatasetProfile, DatasetRegistry
from pipectx.runtime.environment import EnvironmentSnapshot, capture
from pipectx.runtime.identity import generate_run_id
from pipectx.runtime.log import AppendOnlyLog, ConsoleLogSink, FileLogSink, LogEntry, LogSink

__all__ = [
    "AppendOnlyLog",
    "ConsoleLogSink",
    "DatasetProfile",
    "DatasetRegistry",
    "EnvironmentSnapshot",
    "FileLogSink",
    "LogEntry",
    "LogSink",
    "capture",
    "generate_run_id",
]
