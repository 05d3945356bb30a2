from __future__ import annotations

import pandas as pd

from pipectx.testkit.dummies import INSURANCE_SCHEMA, insurance_claims_frame, sites_frame


def test_sites_frame_has_three_rows():
    frame = sites_frame()

    assert list(frame.columns) == ["site_id", "name", "capacity"]
    assert len(frame) == 3


def test_insurance_claims_frame_is_reproducible_and_includes_outlier():
    first = insurance_claims_frame(rows=50, seed=7)
    second = insurance_claims_frame(rows=50, seed=7)

    pd.testing.assert_frame_equal(first, second)
    assert len(first) == 51
    assert first.iloc[-1]["policy_id"] == "OUTLIER1"
    assert first["claim_amount"].max() == 500000.0
    assert list(first.columns) == INSURANCE_SCHEMA.column_names
