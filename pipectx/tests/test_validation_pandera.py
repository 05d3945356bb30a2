from __future__ import annotations

import pandas as pd

from pipectx.contracts.validation import ColumnSpec, DatasetSchema
from pipectx.testkit.dummies import (
    INSURANCE_SCHEMA,
    SITES_SCHEMA,
    insurance_claims_frame,
    sites_frame,
)
from pipectx.validation import PanderaSchemaValidator


def test_matching_frame_passes_every_declared_column():
    report = PanderaSchemaValidator().validate(sites_frame(), SITES_SCHEMA, dataset="sites")

    assert report.passed
    assert report.dataset == "sites"
    assert [result.column for result in report.results] == ["site_id", "capacity"]
    assert report.failure_cases is None


def test_dtype_mismatch_and_missing_column_are_reported_per_column():
    schema = DatasetSchema.from_mapping(
        {"site_id": "float64", "capacity": "float64", "population": "int64"}
    )

    report = PanderaSchemaValidator().validate(sites_frame(), schema)

    assert not report.passed
    assert set(report.failing_columns) == {"site_id", "population"}
    capacity = [result for result in report.results if result.column == "capacity"]
    assert len(capacity) == 1
    assert capacity[0].passed


def test_null_failures_enumerate_failing_rows():
    frame = sites_frame()
    frame.loc[1, "capacity"] = None
    schema = DatasetSchema(
        columns=(
            ColumnSpec("site_id", "int64"),
            ColumnSpec("capacity", "float64", nullable=False),
        )
    )

    report = PanderaSchemaValidator().validate(frame, schema)

    failed = report.failed
    assert len(failed) == 1
    assert failed[0].column == "capacity"
    assert failed[0].failure_count == 1
    assert list(failed[0].failing_rows) == [1]


def test_strict_columns_flags_undeclared_columns():
    report = PanderaSchemaValidator(strict_columns=True).validate(sites_frame(), SITES_SCHEMA)

    assert not report.passed
    assert "name" in report.failing_columns


def test_records_payload_is_accepted():
    records = [{"site_id": 1, "capacity": 1.5}, {"site_id": 2, "capacity": 3.0}]

    report = PanderaSchemaValidator().validate(records, SITES_SCHEMA)

    assert report.passed


def test_validation_does_not_mutate_payload():
    frame = sites_frame()
    before = frame.copy()
    schema = DatasetSchema.from_mapping({"site_id": "float64"})

    PanderaSchemaValidator().validate(frame, schema)

    pd.testing.assert_frame_equal(frame, before)


def test_insurance_claims_anomalies_fail_non_nullable_rules():
    report = PanderaSchemaValidator().validate(insurance_claims_frame(), INSURANCE_SCHEMA)

    assert not report.passed
    assert "coverage_type" in report.failing_columns
    assert "claimant_id" not in report.failing_columns
