from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pipectx.contracts.validation import DatasetSchema, SchemaValidator, ValidationReport
from pipectx.errors import DatasetNotFoundError, InvalidArgumentError, InvalidKeyError, NotFound
from pipectx.runtime.log import AppendOnlyLog

INITIAL_STATUS = "initialized"


@dataclass(slots=True)
class DatasetProfile:
    """
    A dataset payload plus its schema, processing status and provenance metadata.

    Status and metadata change only through the explicit mutators below.
    """

    name: str
    payload: Any
    schema: DatasetSchema | None = None
    source: str | None = None
    status: str = INITIAL_STATUS
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidArgumentError("Dataset 'name' must be a non-empty string.")

    def add_metadata(self, key: str, value: Any) -> None:
        if not isinstance(key, str) or not key:
            raise InvalidKeyError("Metadata 'key' must be a non-empty string.")
        self.metadata[key] = value

    def get_metadata(self, key: str | None = None) -> Any:
        if key is None:
            return dict(self.metadata)
        return self.metadata.get(key)

    def set_status(self, new_status: str) -> None:
        if not isinstance(new_status, str) or not new_status.strip():
            raise InvalidArgumentError("Dataset status must be a non-empty string.")
        self.status = new_status


class DatasetRegistry:
    """
    Name-keyed store of dataset profiles for one run.

    Re-adding a name replaces the whole profile (last write wins). Every add
    is written to the run log.
    """

    def __init__(self, log: AppendOnlyLog, *, validator: SchemaValidator | None = None) -> None:
        self._log = log
        self._validator = validator
        self._profiles: dict[str, DatasetProfile] = {}
        self._lock = threading.RLock()

    def add(
        self,
        name: str,
        payload: Any,
        *,
        schema: DatasetSchema | None = None,
        source: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> DatasetProfile:
        profile = DatasetProfile(
            name=name,
            payload=payload,
            schema=schema,
            source=source,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            existed = name in self._profiles
            self._profiles[name] = profile
            verb = "overwritten" if existed else "added"
            self._log.append(f"Dataset '{name}' {verb}.")
        return profile

    def get(self, name: str) -> Any | NotFound:
        profile = self._profiles.get(name)
        if profile is None:
            return NotFound(kind="dataset", name=name)
        return profile.payload

    def require(self, name: str) -> Any:
        return self._require_profile(name).payload

    def profile(self, name: str) -> DatasetProfile | NotFound:
        profile = self._profiles.get(name)
        if profile is None:
            return NotFound(kind="dataset", name=name)
        return profile

    def names(self) -> list[str]:
        return list(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def attach_schema(self, name: str, schema: DatasetSchema) -> None:
        """Attach or replace the schema of an existing dataset, keeping its data."""
        with self._lock:
            self._require_profile(name).schema = schema
            self._log.append(f"Schema attached to dataset '{name}'.")

    def validate(self, name: str, schema: DatasetSchema | None = None) -> ValidationReport:
        """
        Validate a registered dataset against `schema` or its attached schema.

        The report is returned exactly as the validator built it; the dataset
        and its status are left untouched.
        """
        profile = self._require_profile(name)
        target = schema if schema is not None else profile.schema
        if target is None:
            raise InvalidArgumentError(f"Dataset '{name}' has no schema to validate against.")
        report = self.validate_payload(profile.payload, target, dataset=name)
        outcome = "passed" if report.passed else f"failed ({len(report.failed)} rule(s))"
        self._log.append(f"Dataset '{name}' validated: {outcome}.")
        return report

    def validate_payload(
        self, payload: Any, schema: DatasetSchema, *, dataset: str | None = None
    ) -> ValidationReport:
        return self._get_validator().validate(payload, schema, dataset=dataset)

    def set_status(self, name: str, new_status: str) -> None:
        with self._lock:
            self._require_profile(name).set_status(new_status)
            self._log.append(f"Dataset '{name}' status set to '{new_status}'.")

    def get_status(self, name: str) -> str | NotFound:
        profile = self.profile(name)
        if isinstance(profile, NotFound):
            return profile
        return profile.status

    def add_metadata(self, name: str, key: str, value: Any) -> None:
        with self._lock:
            self._require_profile(name).add_metadata(key, value)

    def get_metadata(self, name: str, key: str | None = None) -> Any:
        profile = self.profile(name)
        if isinstance(profile, NotFound):
            return profile
        return profile.get_metadata(key)

    def _require_profile(self, name: str) -> DatasetProfile:
        try:
            return self._profiles[name]
        except KeyError as e:
            raise DatasetNotFoundError(name) from e

    def _get_validator(self) -> SchemaValidator:
        if self._validator is None:
            from pipectx.validation import PanderaSchemaValidator

            self._validator = PanderaSchemaValidator()
        return self._validator
