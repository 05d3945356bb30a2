from __future__ import annotations

import io
import re
from pathlib import Path
from typing import Any

import pandas as pd
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateSchema

from pipectx.configuration import SqlSettings
from pipectx.contracts.sink import ContainerHandle, ObjectDescriptor, UploadAck, UploadSource
from pipectx.errors import InvalidArgumentError, NotFound
from pipectx.sinks.base import SinkAdapterBase

LINE_COLUMN = "line"

_SQLITE_SCHEMA_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def build_url(settings: SqlSettings) -> URL:
    if settings.db_type == "sqlite":
        return URL.create("sqlite", database=settings.sqlite_path)
    return URL.create(
        "mssql+pyodbc",
        username=settings.user,
        password=settings.password,
        host=settings.server,
        port=settings.port,
        database=settings.database,
        query={"driver": settings.driver},
    )


class SqlSinkAdapter(SinkAdapterBase):
    """
    Relational sink over SQLAlchemy (Azure SQL via ODBC, or SQLite).

    Containers are schemas and objects are tables. An upload writes a
    DataFrame or CSV source as a table, replacing any previous one; any other
    text source (such as a run log) is stored one line per row in a `line`
    column.

    SQLite has no CREATE SCHEMA: a new container is a database file
    `{name}.sqlite` next to the main one, attached on every connection.
    """

    kind = "sql"
    transport_errors = (SQLAlchemyError, OSError)

    def __init__(
        self,
        settings: SqlSettings | None = None,
        *,
        name: str = "sql",
        required: bool = True,
        timeout: float | None = None,
        engine: Engine | None = None,
    ) -> None:
        super().__init__(name=name, required=required, timeout=timeout)
        self._settings = settings if settings is not None else SqlSettings.from_env()
        if engine is None:
            connect_args: dict[str, Any] = {}
            if timeout is not None:
                connect_args["timeout"] = timeout
            engine = create_engine(build_url(self._settings), connect_args=connect_args)
        self._engine = engine
        self._attached: dict[str, str] = {}
        if self._is_sqlite:
            event.listen(self._engine, "connect", self._attach_sqlite_schemas)

    @property
    def endpoint(self) -> str:
        """Return the database URL with the password masked."""
        return self._engine.url.render_as_string(hide_password=True)

    @property
    def engine(self) -> Engine:
        return self._engine

    def dispose(self) -> None:
        """Close pooled connections."""
        self._engine.dispose()

    @property
    def _is_sqlite(self) -> bool:
        return self._engine.dialect.name == "sqlite"

    def _open(self) -> None:
        with self._engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def _list_containers(self) -> list[ContainerHandle]:
        return [ContainerHandle(name=name) for name in inspect(self._engine).get_schema_names()]

    def _create_container(self, name: str) -> ContainerHandle:
        if self._is_sqlite:
            return self._create_sqlite_schema(name)
        with self._engine.begin() as connection:
            connection.execute(CreateSchema(name))
        return ContainerHandle(name=name)

    def _upload(self, container: str, source: UploadSource, destination_name: str) -> UploadAck:
        frame = _as_frame(source, destination_name)
        with self._engine.begin() as connection:
            frame.to_sql(
                destination_name,
                connection,
                schema=self._schema_arg(container),
                if_exists="replace",
                index=False,
            )
        return UploadAck(container=container, name=destination_name, size=len(frame))

    def _list_objects(self, container: str) -> list[ObjectDescriptor]:
        names = inspect(self._engine).get_table_names(schema=self._schema_arg(container))
        return [ObjectDescriptor(container=container, name=name) for name in names]

    def _get_object_metadata(self, container: str, name: str) -> dict[str, str] | NotFound:
        inspector = inspect(self._engine)
        schema = self._schema_arg(container)
        if not inspector.has_table(name, schema=schema):
            return NotFound(kind="object", name=f"{container}/{name}")
        return {
            column["name"]: str(column["type"])
            for column in inspector.get_columns(name, schema=schema)
        }

    def _schema_arg(self, container: str) -> str | None:
        # the default schema is addressed unqualified
        if container == inspect(self._engine).default_schema_name:
            return None
        return container

    def _create_sqlite_schema(self, name: str) -> ContainerHandle:
        if not _SQLITE_SCHEMA_NAME.match(name):
            raise InvalidArgumentError(
                f"SQLite container name must be a plain identifier, got '{name}'."
            )
        database = self._engine.url.database
        if not database or database == ":memory:":
            raise InvalidArgumentError(
                "An in-memory SQLite database cannot hold additional containers."
            )
        self._attached[name] = str(Path(database).parent / f"{name}.sqlite")
        # pooled connections predate the attachment
        self._engine.dispose()
        with self._engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return ContainerHandle(name=name)

    def _attach_sqlite_schemas(self, dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        try:
            for name, path in self._attached.items():
                cursor.execute(f'ATTACH DATABASE ? AS "{name}"', (path,))
        finally:
            cursor.close()


def _as_frame(source: UploadSource, destination_name: str) -> pd.DataFrame:
    if isinstance(source, pd.DataFrame):
        return source
    if isinstance(source, (str, Path)):
        path = Path(source)
        is_csv = path.suffix.lower() == ".csv"
        raw = path.read_bytes()
    elif isinstance(source, bytes):
        is_csv = destination_name.lower().endswith(".csv")
        raw = source
    else:
        raise InvalidArgumentError(f"Unsupported upload source type: {type(source).__name__}")
    if is_csv:
        return pd.read_csv(io.BytesIO(raw))
    return pd.DataFrame({LINE_COLUMN: raw.decode("utf-8").splitlines()})
