from __future__ import annotations

import string

import numpy as np
import pandas as pd

from pipectx.contracts.validation import ColumnSpec, DatasetSchema

SITES_SCHEMA = DatasetSchema.from_mapping({"site_id": "int64", "capacity": "float64"})

INSURANCE_SCHEMA = DatasetSchema(
    columns=(
        ColumnSpec("policy_id", "object", nullable=False),
        ColumnSpec("claimant_id", "int64", nullable=False),
        ColumnSpec("claim_amount", "float64", nullable=False),
        ColumnSpec("deductible", "int64"),
        ColumnSpec("claim_date", "datetime64[ns]"),
        ColumnSpec("coverage_type", "object", nullable=False),
        ColumnSpec("status", "object"),
        ColumnSpec("incident_zip_code", "object"),
    )
)

_COVERAGE_TYPES = ["Auto", "Home", "auto", "Renters", "Life"]
_CLAIM_STATUSES = ["Open", "Closed", "Pending", "In Review"]


def sites_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "site_id": [1, 2, 3],
            "name": ["North", "South", "East"],
            "capacity": [10.5, 20.0, 7.25],
        }
    )


def insurance_claims_frame(*, rows: int = 100, seed: int = 42) -> pd.DataFrame:
    """
    Synthetic insurance claims with anomalies for exercising validation.

    Includes missing claim amounts (~5%), missing coverage types (~10%),
    inconsistent casing ("auto") and one extreme claim-amount outlier.
    """
    rng = np.random.default_rng(seed)
    alphanumeric = list(string.ascii_uppercase + string.digits)
    digits = list(string.digits)
    days = pd.date_range("2022-01-01", "2023-12-31", freq="D")

    frame = pd.DataFrame(
        {
            "policy_id": ["".join(rng.choice(alphanumeric, size=8)) for _ in range(rows)],
            "claimant_id": np.arange(1, rows + 1, dtype="int64"),
            "claim_amount": np.round(rng.lognormal(mean=7, sigma=1.5, size=rows), 2),
            "deductible": rng.choice([500, 1000, 1500, 2000], size=rows).astype("int64"),
            "claim_date": pd.to_datetime(rng.choice(days, size=rows, replace=False)),
            "coverage_type": pd.Series(rng.choice(_COVERAGE_TYPES, size=rows), dtype="object"),
            "status": pd.Series(rng.choice(_CLAIM_STATUSES, size=rows), dtype="object"),
            "incident_zip_code": ["".join(rng.choice(digits, size=5)) for _ in range(rows)],
        }
    )

    frame.loc[rng.random(rows) < 0.05, "claim_amount"] = np.nan
    frame.loc[rng.random(rows) < 0.1, "coverage_type"] = None

    outlier = pd.DataFrame(
        {
            "policy_id": ["OUTLIER1"],
            "claimant_id": np.array([rows + 1], dtype="int64"),
            "claim_amount": [500000.0],
            "deductible": np.array([1000], dtype="int64"),
            "claim_date": pd.to_datetime(["2023-05-15"]),
            "coverage_type": ["Auto"],
            "status": ["Closed"],
            "incident_zip_code": ["90210"],
        }
    )
    return pd.concat([frame, outlier], ignore_index=True)
