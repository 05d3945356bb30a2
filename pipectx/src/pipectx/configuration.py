from __future__ import annotations

import os
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pipectx.errors import ConfigurationError

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

ENV_BLOB_ENDPOINT = "AZURE_BLOB_ENDPOINT"
ENV_BLOB_KEY = "AZURE_KEY"
ENV_BLOB_CONNECTION_STRING = "AZURE_STORAGE_CONNECTION_STRING"
ENV_SQL_SERVER = "AZURE_SQL_SERVER"
ENV_SQL_DATABASE = "AZURE_SQL_DB"
ENV_SQL_USER = "AZURE_SQL_USER"
ENV_SQL_PASSWORD = "AZURE_SQL_PWD"
ENV_MLFLOW_TRACKING_URI = "MLFLOW_TRACKING_URI"

SinkKind = Literal["blob", "sql", "mlflow", "memory"]
DbType = Literal["azure_sql", "sqlite"]


def load_yaml(path: str | Path) -> dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"YAML root must be a mapping: {path}")
    return payload


def resolve_env_vars(payload: Any, *, environ: Mapping[str, str] | None = None) -> Any:
    env = os.environ if environ is None else environ
    return _resolve_env_vars(payload, path="$", environ=env)


def _resolve_env_vars(payload: Any, *, path: str, environ: Mapping[str, str]) -> Any:
    if isinstance(payload, Mapping):
        return {
            str(key): _resolve_env_vars(value, path=f"{path}.{key}", environ=environ)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [
            _resolve_env_vars(value, path=f"{path}[{index}]", environ=environ)
            for index, value in enumerate(payload)
        ]
    if isinstance(payload, str):
        return _substitute_env(payload, path=path, environ=environ)
    return payload


def _substitute_env(value: str, *, path: str, environ: Mapping[str, str]) -> str:
    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        env_value = environ.get(key)
        if env_value is None:
            raise ConfigurationError(
                f"Missing environment variable '{key}' at {path}", missing=(key,)
            )
        return env_value

    return _ENV_VAR_PATTERN.sub(replace, value)


def require_env(
    names: Iterable[str], *, environ: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Read environment variables, failing with every unset or empty name at once."""
    env = os.environ if environ is None else environ
    values = {name: env.get(name) for name in names}
    missing = tuple(name for name, value in values.items() if value is None or not value.strip())
    if missing:
        raise ConfigurationError(
            f"Invalid or unset environment variables: {', '.join(missing)}", missing=missing
        )
    return {name: str(value) for name, value in values.items()}


class BlobStorageSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    endpoint: str | None = None
    key: str | None = Field(default=None, repr=False)
    connection_string: str | None = Field(default=None, repr=False)

    @classmethod
    def from_env(cls, *, environ: Mapping[str, str] | None = None) -> BlobStorageSettings:
        env = os.environ if environ is None else environ
        connection_string = env.get(ENV_BLOB_CONNECTION_STRING)
        if connection_string:
            return cls(connection_string=connection_string)
        values = require_env((ENV_BLOB_ENDPOINT, ENV_BLOB_KEY), environ=env)
        return cls(endpoint=values[ENV_BLOB_ENDPOINT], key=values[ENV_BLOB_KEY])


class SqlSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    db_type: DbType = "azure_sql"
    server: str | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = Field(default=None, repr=False)
    driver: str = "ODBC Driver 17 for SQL Server"
    port: int = 1433
    sqlite_path: str = "local_db.sqlite"

    @classmethod
    def from_env(
        cls,
        db_type: DbType = "azure_sql",
        *,
        sqlite_path: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> SqlSettings:
        if db_type == "sqlite":
            return cls(db_type="sqlite", sqlite_path=sqlite_path or "local_db.sqlite")
        values = require_env(
            (ENV_SQL_SERVER, ENV_SQL_DATABASE, ENV_SQL_USER, ENV_SQL_PASSWORD), environ=environ
        )
        return cls(
            db_type="azure_sql",
            server=values[ENV_SQL_SERVER],
            database=values[ENV_SQL_DATABASE],
            user=values[ENV_SQL_USER],
            password=values[ENV_SQL_PASSWORD],
        )


class MlflowBoardSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    tracking_uri: str | None = None

    @classmethod
    def from_env(cls, *, environ: Mapping[str, str] | None = None) -> MlflowBoardSettings:
        env = os.environ if environ is None else environ
        return cls(tracking_uri=env.get(ENV_MLFLOW_TRACKING_URI) or None)


class PipelineSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    id: str = Field(min_length=1)
    description: str = ""


class SinkConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: SinkKind
    name: str | None = None
    # None means the adapter's own default
    required: bool | None = None
    timeout: float | None = Field(default=None, gt=0)
    options: dict[str, Any] = Field(default_factory=dict)


class LogConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    file: bool = False
    directory: str | None = None


class ContextConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pipeline: PipelineSection
    params: dict[str, str | None] = Field(default_factory=dict)
    sinks: list[SinkConfig] = Field(default_factory=list)
    log: LogConfig = Field(default_factory=LogConfig)

    @field_validator("params", mode="before")
    @classmethod
    def _coerce_params_dict(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if isinstance(value, dict):
            return value
        raise ValueError("params must be a mapping")


def load_context_config(
    path: str | Path, *, environ: Mapping[str, str] | None = None
) -> ContextConfig:
    payload = resolve_env_vars(load_yaml(path), environ=environ)
    return load_context_config_dict(payload)


def load_context_config_dict(payload: Mapping[str, Any]) -> ContextConfig:
    try:
        return ContextConfig.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigurationError(_format_validation_error("context", exc)) from exc


def _format_validation_error(prefix: str, exc: ValidationError) -> str:
    details: list[str] = []
    for error in exc.errors(include_url=False):
        loc = ".".join(str(part) for part in error["loc"])
        details.append(f"{prefix}.{loc}: {error['msg']}")
    return "; ".join(details)
