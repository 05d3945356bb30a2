from .sink import (
    ConnectionState,
    ContainerHandle,
    LogReporter,
    ObjectDescriptor,
    SinkAdapter,
    UploadAck,
    UploadSource,
)
from .validation import ColumnSpec, DatasetSchema, RuleResult, SchemaValidator, ValidationReport

__all__ = [
    "ConnectionState",
    "ContainerHandle",
    "LogReporter",
    "ObjectDescriptor",
    "SinkAdapter",
    "UploadAck",
    "UploadSource",
    "ColumnSpec",
    "DatasetSchema",
    "RuleResult",
    "SchemaValidator",
    "ValidationReport",
]
