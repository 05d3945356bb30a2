from __future__ import annotations

import logging
import tempfile
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

Clock = Callable[[], datetime]

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: datetime
    message: str

    @property
    def formatted(self) -> str:
        return f"[{self.timestamp.strftime(LOG_TIMESTAMP_FORMAT)}] {self.message}"


@runtime_checkable
class LogSink(Protocol):
    """Receives each formatted log line as it is appended."""

    @property
    def name(self) -> str: ...

    def write(self, line: str) -> None: ...


class ConsoleLogSink:
    """Mirror log lines to a standard-library logger at INFO."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return "console"

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def write(self, line: str) -> None:
        self._logger.info(line)


class FileLogSink:
    """Mirror log lines to `{directory}/{run_id}.log`."""

    def __init__(self, run_id: str, *, directory: str | Path | None = None) -> None:
        root = Path(directory) if directory is not None else Path(tempfile.gettempdir())
        self._path = root / f"{run_id}.log"

    @property
    def name(self) -> str:
        return f"file:{self._path}"

    @property
    def path(self) -> Path:
        return self._path

    def write(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")

    def read(self) -> list[str]:
        """Read the mirrored lines back; empty if nothing was written yet."""
        if not self._path.exists():
            return []
        with self._path.open("r", encoding="utf-8") as handle:
            return [line.rstrip("\n") for line in handle]


class AppendOnlyLog:
    """
    Ordered, timestamped message log for one run.

    The in-memory sequence is the source of truth. Registered sinks are
    mirrors: a failing non-essential sink never fails `append`, the failure is
    recorded as a degraded-append entry instead.
    """

    def __init__(self, *, sinks: Iterable[LogSink] = (), clock: Clock | None = None) -> None:
        self._entries: list[LogEntry] = []
        self._sinks: list[tuple[LogSink, bool]] = []
        self._clock: Clock = clock or datetime.now
        self._lock = threading.RLock()
        for sink in sinks:
            self.register_sink(sink)

    @property
    def sinks(self) -> tuple[LogSink, ...]:
        return tuple(sink for sink, _ in self._sinks)

    def register_sink(self, sink: LogSink, *, essential: bool = False) -> None:
        """Add a mirror; failures of an essential sink propagate to the caller."""
        with self._lock:
            self._sinks.append((sink, essential))

    def append(self, message: str) -> LogEntry:
        with self._lock:
            entry = self._record(message)
            for failed_sink, exc in self._mirror(entry.formatted):
                notice = self._record(
                    f"Degraded append: log sink '{failed_sink.name}' failed: {exc}"
                )
                for other_sink, other_exc in self._mirror(notice.formatted, skip=failed_sink):
                    _logger.warning(
                        "Log sink '%s' failed while mirroring a degraded-append notice: %s",
                        other_sink.name,
                        other_exc,
                    )
        return entry

    def read_all(self) -> list[str]:
        """Return formatted entries in append order."""
        with self._lock:
            return [entry.formatted for entry in self._entries]

    def entries(self) -> tuple[LogEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def to_text(self) -> str:
        lines = self.read_all()
        return "\n".join(lines) + "\n" if lines else ""

    def __len__(self) -> int:
        return len(self._entries)

    def _record(self, message: str) -> LogEntry:
        timestamp = self._clock()
        if self._entries and timestamp < self._entries[-1].timestamp:
            # keep the sequence non-decreasing if the wall clock steps back
            timestamp = self._entries[-1].timestamp
        entry = LogEntry(timestamp=timestamp, message=message)
        self._entries.append(entry)
        return entry

    def _mirror(
        self, line: str, *, skip: LogSink | None = None
    ) -> list[tuple[LogSink, Exception]]:
        failures: list[tuple[LogSink, Exception]] = []
        for sink, essential in self._sinks:
            if sink is skip:
                continue
            try:
                sink.write(line)
            except Exception as exc:
                if essential:
                    raise
                failures.append((sink, exc))
        return failures
