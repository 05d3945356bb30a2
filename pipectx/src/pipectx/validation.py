from __future__ import annotations

from typing import Any

import pandas as pd
import pandera.errors
import pandera.pandas as pa

from pipectx.contracts.validation import DatasetSchema, RuleResult, ValidationReport

# frame-level checks report the offending column name as the failure case
_FRAME_LEVEL_CHECKS = {"column_in_dataframe", "column_in_schema"}
_PASSED_CHECK = "schema"


class PanderaSchemaValidator:
    """Validate tabular payloads with pandera and summarise failures per column rule."""

    def __init__(self, *, strict_columns: bool = False) -> None:
        self._strict_columns = strict_columns

    def build_schema(self, schema: DatasetSchema, *, name: str | None = None) -> pa.DataFrameSchema:
        columns = {
            column.name: pa.Column(column.dtype, nullable=column.nullable)
            for column in schema.columns
        }
        return pa.DataFrameSchema(columns, strict=self._strict_columns, name=name)

    def validate(
        self, payload: Any, schema: DatasetSchema, *, dataset: str | None = None
    ) -> ValidationReport:
        frame = payload if isinstance(payload, pd.DataFrame) else pd.DataFrame(payload)
        pandera_schema = self.build_schema(schema, name=dataset)
        try:
            pandera_schema.validate(frame, lazy=True)
        except pandera.errors.SchemaErrors as exc:
            failure_cases = exc.failure_cases
        else:
            failure_cases = None
        return _build_report(schema, failure_cases, dataset=dataset)


def _build_report(
    schema: DatasetSchema, failure_cases: pd.DataFrame | None, *, dataset: str | None
) -> ValidationReport:
    grouped: dict[str, dict[str, list[tuple[Any, Any]]]] = {}
    if failure_cases is not None:
        for row in failure_cases.to_dict(orient="records"):
            check = str(row.get("check"))
            case = row.get("failure_case")
            column = case if check in _FRAME_LEVEL_CHECKS else row.get("column")
            grouped.setdefault(str(column), {}).setdefault(check, []).append(
                (row.get("index"), case)
            )

    results: list[RuleResult] = []
    for column in schema.column_names:
        checks = grouped.pop(column, None)
        if not checks:
            results.append(RuleResult(column=column, check=_PASSED_CHECK, passed=True))
            continue
        results.extend(_failed_results(column, checks))
    # columns present in the data but not declared (strict mode)
    for column, checks in grouped.items():
        results.extend(_failed_results(column, checks))

    return ValidationReport(dataset=dataset, results=tuple(results), failure_cases=failure_cases)


def _failed_results(column: str, checks: dict[str, list[tuple[Any, Any]]]) -> list[RuleResult]:
    results: list[RuleResult] = []
    for check, cases in checks.items():
        rows = tuple(index for index, _ in cases if index is not None and not pd.isna(index))
        results.append(
            RuleResult(
                column=column,
                check=check,
                passed=False,
                failure_count=len(cases),
                failing_rows=rows,
                failure_cases=tuple(case for _, case in cases),
            )
        )
    return results
