from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

NotFoundKind = Literal["dataset", "object", "sink"]


class PipectxError(Exception):
    pass


class ConfigurationError(PipectxError, ValueError):
    """A required setting or environment value is missing or empty."""

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.missing = missing


class SinkConnectionError(PipectxError, ConnectionError):
    """A required sink could not be reached while connecting."""

    def __init__(self, sink_name: str, endpoint: str, reason: str) -> None:
        super().__init__(f"Sink '{sink_name}' unreachable at {endpoint}: {reason}")
        self.sink_name = sink_name
        self.endpoint = endpoint
        self.reason = reason


class TransferError(PipectxError, RuntimeError):
    """An operation against a connected sink failed mid-flight."""

    def __init__(self, sink_name: str, operation: str, target: str, reason: str) -> None:
        super().__init__(f"Sink '{sink_name}' failed to {operation} '{target}': {reason}")
        self.sink_name = sink_name
        self.operation = operation
        self.target = target


class DatasetNotFoundError(PipectxError, KeyError):
    def __str__(self) -> str:
        return f"Dataset not found: {self.args[0]}"


class InvalidArgumentError(PipectxError, ValueError):
    pass


class InvalidKeyError(InvalidArgumentError):
    pass


@dataclass(frozen=True, slots=True)
class NotFound:
    """
    Typed absence returned by lookups that miss.

    Falsy, so callers can write ``if not result: ...``.
    """

    kind: NotFoundKind
    name: str

    def __bool__(self) -> bool:
        return False
