from __future__ import annotations

import logging
import os

from pipectx import PipelineRunContext, StoragePipeline
from pipectx.sinks import InMemorySinkAdapter
from pipectx.testkit.dummies import INSURANCE_SCHEMA, insurance_claims_frame


def _use_blob_storage() -> bool:
    return bool(
        os.environ.get("AZURE_STORAGE_CONNECTION_STRING") or os.environ.get("AZURE_BLOB_ENDPOINT")
    )


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    params = {"division": os.environ.get("CLAIMS_DIVISION"), "program": "claims-qa"}

    if _use_blob_storage():
        pipeline = StoragePipeline.create(
            "Insurance Claims QA",
            "insurance-claims",
            params,
            description="Validate synthetic insurance claims",
        )
    else:
        context = PipelineRunContext(
            "Insurance Claims QA",
            "insurance-claims",
            params,
            description="Validate synthetic insurance claims (in-memory storage)",
        )
        pipeline = StoragePipeline(context, InMemorySinkAdapter("storage"))

    context = pipeline.context
    context.add_dataset(
        "claims", insurance_claims_frame(), schema=INSURANCE_SCHEMA, source="synthetic"
    )
    context.datasets.set_status("claims", "raw")

    report = context.datasets.validate("claims")
    for result in report.failed:
        context.add_log(
            f"Rule '{result.check}' failed on column '{result.column}' "
            f"({result.failure_count} case(s))."
        )

    ack = pipeline.upload_log()
    print(context.run_metadata())
    print(ack)


if __name__ == "__main__":
    main()
