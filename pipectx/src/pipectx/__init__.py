"""Stateful run context for ETL pipelines."""

from pipectx.context import PipelineRunContext, RunMetadata
from pipectx.contracts import (
    ColumnSpec,
    ContainerHandle,
    DatasetSchema,
    ObjectDescriptor,
    SinkAdapter,
    UploadAck,
    ValidationReport,
)
from pipectx.errors import (
    ConfigurationError,
    DatasetNotFoundError,
    InvalidArgumentError,
    InvalidKeyError,
    NotFound,
    PipectxError,
    SinkConnectionError,
    TransferError,
)
from pipectx.runtime import DatasetProfile, EnvironmentSnapshot, generate_run_id
from pipectx.storage import StoragePipeline, upload_dataset, upload_log

__all__ = [
    "ColumnSpec",
    "ConfigurationError",
    "ContainerHandle",
    "DatasetNotFoundError",
    "DatasetProfile",
    "DatasetSchema",
    "EnvironmentSnapshot",
    "InvalidArgumentError",
    "InvalidKeyError",
    "NotFound",
    "ObjectDescriptor",
    "PipectxError",
    "PipelineRunContext",
    "RunMetadata",
    "SinkAdapter",
    "SinkConnectionError",
    "StoragePipeline",
    "TransferError",
    "UploadAck",
    "ValidationReport",
    "generate_run_id",
    "upload_dataset",
    "upload_log",
]
