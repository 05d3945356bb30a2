from __future__ import annotations

import argparse
import logging
from pathlib import Path

from pipectx.api import context_from_yaml, storage_pipeline_from_yaml


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start a pipeline run from YAML config.")
    parser.add_argument("config_yaml", type=Path, help="Path to pipeline context YAML")
    parser.add_argument(
        "--storage",
        dest="storage_sink",
        default=None,
        help="Name of the sink to use as log storage (default: first required sink)",
    )
    parser.add_argument(
        "--upload-log",
        action="store_true",
        help="Upload the run log to the storage sink before exiting",
    )
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    args = parse_args()

    if not args.upload_log:
        context = context_from_yaml(args.config_yaml)
        print(context.run_metadata())
        return

    pipeline = storage_pipeline_from_yaml(args.config_yaml, storage_sink=args.storage_sink)
    pipeline.context.add_log("Run finished.")
    ack = pipeline.upload_log()
    print(pipeline.context.run_metadata())
    print(ack)


if __name__ == "__main__":
    main()
