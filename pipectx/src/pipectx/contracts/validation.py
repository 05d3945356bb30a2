from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ColumnSpec:
    name: str
    dtype: str
    nullable: bool = True


@dataclass(frozen=True, slots=True)
class DatasetSchema:
    """
    Opaque column-schema descriptor supplied by the caller.

    The core never infers a schema; it only stores one and hands it to a validator.
    """

    columns: tuple[ColumnSpec, ...]

    @classmethod
    def from_mapping(cls, columns: Mapping[str, str]) -> DatasetSchema:
        return cls(
            columns=tuple(ColumnSpec(name=name, dtype=dtype) for name, dtype in columns.items())
        )

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]


@dataclass(frozen=True, slots=True)
class RuleResult:
    column: str
    check: str
    passed: bool
    failure_count: int = 0
    failing_rows: tuple[Any, ...] = ()
    failure_cases: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """
    Pass/fail outcome per schema rule.

    Schema mismatches are returned as data, never raised.
    """

    dataset: str | None
    results: Sequence[RuleResult] = field(default_factory=tuple)
    # raw failure table from the validation backend, if any
    failure_cases: Any = None

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def failed(self) -> list[RuleResult]:
        return [result for result in self.results if not result.passed]

    @property
    def failing_columns(self) -> list[str]:
        seen: list[str] = []
        for result in self.failed:
            if result.column not in seen:
                seen.append(result.column)
        return seen


@runtime_checkable
class SchemaValidator(Protocol):
    def validate(
        self, payload: Any, schema: DatasetSchema, *, dataset: str | None = None
    ) -> ValidationReport:
        """Validate a tabular payload against a schema without mutating it."""
        ...
