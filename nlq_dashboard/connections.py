"""
Connection Provider

Resolves registered database targets into SQLAlchemy URLs for SQL Server,
MySQL and Oracle, opens connections off the event loop and runs queries.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Union
import asyncio
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from .config import Settings, get_settings
from .exceptions import (
    ConfigurationError,
    ConnectionFailureError,
    DatabaseNotFoundError,
    ExecutionFailureError,
    QueryTimeoutError,
    UnsupportedEngineError,
)
from .metadata_store import DatabaseTarget, MetadataStore
from .models import ConnectionTestRequest, ConnectionTestResult, EngineKind

logger = logging.getLogger(__name__)

SQLSERVER_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"
DEFAULT_PORTS = {
    EngineKind.MYSQL: 3306,
    EngineKind.ORACLE: 1521,
}
SQLSERVER_KINDS = (EngineKind.SQLSERVER, EngineKind.SQLSERVER2)


@dataclass(frozen=True)
class ConnectionParams:
    """Discrete connection fields, as stored on a target or sent for a test."""
    server: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    connection_string: Optional[str] = None


@dataclass(frozen=True)
class ConnectionHandle:
    """A resolved, engine-specific way of reaching one target database."""
    url: URL
    engine_kind: EngineKind

    @property
    def dialect_name(self) -> str:
        return DIALECT_NAMES.get(self.engine_kind, "SQL")


DIALECT_NAMES = {
    EngineKind.SQLSERVER: "SQL Server",
    EngineKind.SQLSERVER2: "SQL Server",
    EngineKind.MYSQL: "MySQL",
    EngineKind.ORACLE: "Oracle",
}


def dialect_for(type_id: Any) -> str:
    """SQL dialect name for an engine type id; generic SQL when unknown."""
    try:
        return DIALECT_NAMES.get(EngineKind(type_id), "SQL")
    except (ValueError, TypeError):
        return "SQL"


def decrypt_credentials(encrypted: Optional[str]) -> str:
    """Decrypt stored credentials. Credentials are currently stored in clear text."""
    return encrypted or ""


def parse_engine_kind(value: Any) -> EngineKind:
    """Parse an engine kind, rejecting anything outside the supported set."""
    try:
        kind = EngineKind.parse(value)
    except (ValueError, TypeError):
        raise UnsupportedEngineError(value)
    if kind == EngineKind.UNKNOWN:
        raise UnsupportedEngineError(value)
    return kind


def _explicit_url(engine_kind: EngineKind, connection_string: str) -> URL:
    if "://" in connection_string:
        try:
            return make_url(connection_string)
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid connection string: {e}") from e
    if engine_kind in SQLSERVER_KINDS:
        return URL.create("mssql+pyodbc", query={"odbc_connect": connection_string})
    raise ConfigurationError(
        f"Connection string for {DIALECT_NAMES[engine_kind]} must be a database URL"
    )


def build_connection_url(engine_kind: Any, params: ConnectionParams) -> URL:
    """Build the SQLAlchemy URL for an engine kind from explicit or discrete fields."""
    kind = parse_engine_kind(engine_kind)
    if params.connection_string:
        return _explicit_url(kind, params.connection_string)

    if kind in SQLSERVER_KINDS:
        query = {
            "driver": SQLSERVER_ODBC_DRIVER,
            "TrustServerCertificate": "yes",
        }
        if not params.username:
            query["Trusted_Connection"] = "yes"
        return URL.create(
            "mssql+pyodbc",
            username=params.username or None,
            password=params.password if params.username else None,
            host=params.server,
            port=params.port,
            database=params.database,
            query=query,
        )
    if kind == EngineKind.MYSQL:
        return URL.create(
            "mysql+pymysql",
            username=params.username,
            password=params.password,
            host=params.server,
            port=params.port or DEFAULT_PORTS[kind],
            database=params.database,
        )
    if kind == EngineKind.ORACLE:
        return URL.create(
            "oracle+oracledb",
            username=params.username,
            password=params.password,
            host=params.server,
            port=params.port or DEFAULT_PORTS[kind],
            query={"service_name": params.database} if params.database else {},
        )
    raise UnsupportedEngineError(engine_kind)


def _connect_args(handle: ConnectionHandle, timeout: int) -> Dict[str, Any]:
    backend = handle.url.get_backend_name()
    if backend == "mssql":
        return {"timeout": timeout}
    if backend == "mysql":
        return {"connect_timeout": timeout}
    if backend == "sqlite":
        # opened and used from different worker threads
        return {"check_same_thread": False}
    return {}


class ConnectionProvider:
    """Opens connections to registered target databases."""

    def __init__(self, metadata_store: MetadataStore, settings: Settings = None):
        self.metadata_store = metadata_store
        self.settings = settings or get_settings()
        # database id -> handle; entries are added, never replaced, until clear_cache()
        self._handles: Dict[int, ConnectionHandle] = {}

    def resolve(self, engine_kind: Any, params: ConnectionParams) -> ConnectionHandle:
        kind = parse_engine_kind(engine_kind)
        return ConnectionHandle(url=build_connection_url(kind, params), engine_kind=kind)

    def resolve_target(self, target: DatabaseTarget) -> ConnectionHandle:
        params = ConnectionParams(
            server=target.server_address,
            port=target.port,
            database=target.database_name,
            username=target.username,
            password=decrypt_credentials(target.encrypted_credentials) if target.username else None,
            connection_string=target.connection_string,
        )
        return self.resolve(target.type_id, params)

    def get_handle(self, database_id: int) -> ConnectionHandle:
        """Get the connection handle for an active target, caching it by id."""
        handle = self._handles.get(database_id)
        if handle is None:
            target = self.metadata_store.get_database_target(database_id)
            handle = self._handles.setdefault(database_id, self.resolve_target(target))
        return handle

    def clear_cache(self) -> None:
        self._handles = {}
        logger.info("Connection info cache cleared")

    def _connect_blocking(self, handle: ConnectionHandle) -> Connection:
        engine = create_engine(
            handle.url,
            pool_pre_ping=True,
            connect_args=_connect_args(handle, self.settings.connect_timeout_seconds),
        )
        try:
            return engine.connect()
        except Exception:
            engine.dispose()
            raise

    @asynccontextmanager
    async def open_handle(self, handle: ConnectionHandle) -> AsyncIterator[Connection]:
        """Open a connection for a resolved handle; closed and disposed on exit."""
        try:
            connection = await asyncio.wait_for(
                asyncio.to_thread(self._connect_blocking, handle),
                timeout=self.settings.connect_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out connecting to {handle.dialect_name} database")
            raise QueryTimeoutError(
                f"Connection to the database timed out after {self.settings.connect_timeout_seconds} seconds"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error opening {handle.dialect_name} connection: {str(e)}")
            raise ConnectionFailureError(f"Could not connect to the database: {e}") from e

        try:
            yield connection
        finally:
            engine = connection.engine
            await asyncio.to_thread(connection.close)
            await asyncio.to_thread(engine.dispose)

    @asynccontextmanager
    async def open_async(self, database_id: int) -> AsyncIterator[Connection]:
        """Open a connection to a registered target database."""
        handle = self.get_handle(database_id)
        async with self.open_handle(handle) as connection:
            yield connection

    async def execute_query(self, database_id: int, sql: str) -> List[Dict[str, Any]]:
        """Run SQL against a target and return rows as ordered dicts."""
        logger.info(f"Executing SQL on database {database_id}: {sql}")
        async with self.open_async(database_id) as connection:
            try:
                rows = await asyncio.wait_for(
                    asyncio.to_thread(_fetch_rows, connection, sql),
                    timeout=self.settings.query_timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                logger.error(f"Query timed out after {self.settings.query_timeout_seconds}s on database {database_id}")
                raise QueryTimeoutError(
                    f"Query execution timed out after {self.settings.query_timeout_seconds} seconds"
                ) from e
            except SQLAlchemyError as e:
                message = str(getattr(e, "orig", None) or e)
                logger.error(f"Error executing SQL on database {database_id}: {message}")
                raise ExecutionFailureError(message, sql=sql) from e
        logger.info(f"Query returned {len(rows)} rows")
        return rows

    async def test_connection(
        self, target: Union[int, ConnectionTestRequest]
    ) -> ConnectionTestResult:
        """Test a registered target (by id) or explicit parameters. Never raises."""
        database_id = target if isinstance(target, int) else None
        try:
            if database_id is not None:
                handle = self.resolve_target(self.metadata_store.get_database_target(database_id))
            else:
                handle = self.resolve(target.db_type, ConnectionParams(
                    server=target.server,
                    port=target.port,
                    database=target.database,
                    username=target.username,
                    password=target.password,
                    connection_string=target.connection_string,
                ))
            async with self.open_handle(handle) as connection:
                await asyncio.to_thread(connection.execute, text("SELECT 1" + _dual(handle)))
            result = ConnectionTestResult(success=True, message="Connection successful")
        except DatabaseNotFoundError as e:
            return ConnectionTestResult(success=False, message=str(e))
        except Exception as e:
            logger.warning(f"Connection test failed: {str(e)}")
            result = ConnectionTestResult(
                success=False,
                message="Connection failed",
                error_details=str(e),
            )

        if database_id is not None:
            try:
                self.metadata_store.record_connection_status(database_id, result.success)
            except Exception as e:
                logger.error(f"Error recording connection status for database {database_id}: {str(e)}")
        return result


def _dual(handle: ConnectionHandle) -> str:
    return " FROM DUAL" if handle.engine_kind == EngineKind.ORACLE else ""


def _column_names(keys) -> List[str]:
    """Result column names; a repeated name gets a _1, _2 ... suffix so no column is dropped."""
    names: List[str] = []
    used = set()
    for key in keys:
        name, counter = key, 0
        while name in used:
            counter += 1
            name = f"{key}_{counter}"
        used.add(name)
        names.append(name)
    return names


def _row_value(value: Any) -> Any:
    # binary columns (varbinary, rowversion, blobs) are returned as hex text
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "0x" + bytes(value).hex()
    return value


def _fetch_rows(connection: Connection, sql: str) -> List[Dict[str, Any]]:
    result = connection.execute(text(sql))
    if not result.returns_rows:
        return []
    names = _column_names(result.keys())
    return [
        {name: _row_value(value) for name, value in zip(names, row)}
        for row in result
    ]


__all__ = [
    'ConnectionParams',
    'ConnectionHandle',
    'ConnectionProvider',
    'build_connection_url',
    'decrypt_credentials',
    'dialect_for',
    'parse_engine_kind',
]
