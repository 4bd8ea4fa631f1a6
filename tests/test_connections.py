import pytest
from sqlalchemy.exc import SQLAlchemyError

from nlq_dashboard.connections import (
    ConnectionParams,
    ConnectionProvider,
    _column_names,
    build_connection_url,
    decrypt_credentials,
    dialect_for,
    parse_engine_kind,
)
from nlq_dashboard.exceptions import (
    ConfigurationError,
    DatabaseNotFoundError,
    ExecutionFailureError,
    UnsupportedEngineError,
)
from nlq_dashboard.models import ConnectionTestRequest, EngineKind


@pytest.fixture
def connection_provider(metadata_store, settings):
    return ConnectionProvider(metadata_store, settings)


def test_mysql_url_uses_pymysql_and_default_port():
    url = build_connection_url(EngineKind.MYSQL, ConnectionParams(
        server="db.local", database="sales", username="app", password="pw",
    ))

    assert url.drivername == "mysql+pymysql"
    assert url.host == "db.local"
    assert url.port == 3306
    assert url.database == "sales"
    assert url.username == "app"
    assert url.password == "pw"


@pytest.mark.parametrize("kind", [EngineKind.SQLSERVER, EngineKind.SQLSERVER2, "SQLServer", 1, 4])
def test_sqlserver_url_without_username_uses_integrated_security(kind):
    url = build_connection_url(kind, ConnectionParams(server="sql01", database="sales"))

    assert url.drivername == "mssql+pyodbc"
    assert url.query["driver"] == "ODBC Driver 18 for SQL Server"
    assert url.query["TrustServerCertificate"] == "yes"
    assert url.query["Trusted_Connection"] == "yes"
    assert url.username is None


def test_sqlserver_url_with_username_uses_sql_login():
    url = build_connection_url(EngineKind.SQLSERVER, ConnectionParams(
        server="sql01", database="sales", username="sa", password="pw",
    ))

    assert url.username == "sa"
    assert "Trusted_Connection" not in url.query


def test_oracle_url_uses_service_name_and_default_port():
    url = build_connection_url(EngineKind.ORACLE, ConnectionParams(
        server="ora01", database="ORCLPDB1", username="scott", password="tiger",
    ))

    assert url.drivername == "oracle+oracledb"
    assert url.port == 1521
    assert url.query["service_name"] == "ORCLPDB1"


def test_explicit_url_is_used_as_is():
    url = build_connection_url(EngineKind.MYSQL, ConnectionParams(
        server="ignored", connection_string="mysql+pymysql://u:p@other:3307/db",
    ))

    assert url.host == "other"
    assert url.port == 3307


def test_explicit_odbc_string_for_sqlserver():
    odbc = "Driver={ODBC Driver 18 for SQL Server};Server=sql01;Database=sales;Trusted_Connection=yes"

    url = build_connection_url(EngineKind.SQLSERVER, ConnectionParams(connection_string=odbc))

    assert url.drivername == "mssql+pyodbc"
    assert url.query["odbc_connect"] == odbc


def test_explicit_non_url_string_rejected_for_mysql():
    with pytest.raises(ConfigurationError):
        build_connection_url(EngineKind.MYSQL, ConnectionParams(connection_string="Server=x;Database=y"))


@pytest.mark.parametrize("kind", [0, 9, "Postgres", None, EngineKind.UNKNOWN])
def test_unsupported_engine_kinds_are_rejected(kind):
    with pytest.raises(UnsupportedEngineError):
        parse_engine_kind(kind)


def test_decrypt_credentials_passes_through():
    assert decrypt_credentials("secret") == "secret"
    assert decrypt_credentials(None) == ""


def test_dialect_for_type_ids():
    assert dialect_for(1) == "SQL Server"
    assert dialect_for(4) == "SQL Server"
    assert dialect_for(3) == "Oracle"
    assert dialect_for(42) == "SQL"


async def test_execute_query_returns_ordered_rows(connection_provider, database_id):
    rows = await connection_provider.execute_query(
        database_id, "SELECT id, name, country FROM customers ORDER BY id"
    )

    assert len(rows) == 3
    assert list(rows[0].keys()) == ["id", "name", "country"]
    assert rows[0] == {"id": 1, "name": "Ada", "country": "GB"}


async def test_execute_query_failure_carries_driver_message(connection_provider, database_id):
    with pytest.raises(ExecutionFailureError) as exc_info:
        await connection_provider.execute_query(database_id, "SELECT * FROM missing_table")

    assert "no such table" in str(exc_info.value)
    assert exc_info.value.sql == "SELECT * FROM missing_table"


async def test_open_async_unknown_database(connection_provider):
    with pytest.raises(DatabaseNotFoundError):
        async with connection_provider.open_async(999):
            pass


async def test_open_async_inactive_database(connection_provider, metadata_store, database_id):
    metadata_store.delete_database_target(database_id)

    with pytest.raises(DatabaseNotFoundError):
        async with connection_provider.open_async(database_id):
            pass


async def test_test_connection_by_id_records_status(connection_provider, metadata_store, database_id):
    result = await connection_provider.test_connection(database_id)

    assert result.success is True
    target = metadata_store.get_database_target(database_id)
    assert target.last_connection_status is True
    assert target.last_transaction_date is not None


async def test_test_connection_never_raises_for_unsupported_engine(connection_provider):
    result = await connection_provider.test_connection(ConnectionTestRequest(db_type="Postgres", server="x"))

    assert result.success is False
    assert "Unsupported database type" in result.error_details


async def test_test_connection_with_explicit_url(connection_provider, target_db_url):
    result = await connection_provider.test_connection(
        ConnectionTestRequest(db_type="MySQL", connection_string=target_db_url)
    )

    assert result.success is True
    assert result.message == "Connection successful"


def test_handles_are_cached_until_cleared(connection_provider, metadata_store, database_id):
    first = connection_provider.get_handle(database_id)
    metadata_store.update_database_target(database_id, connection_string="sqlite:///elsewhere.db")

    assert connection_provider.get_handle(database_id) is first

    connection_provider.clear_cache()
    assert connection_provider.get_handle(database_id).url.database == "elsewhere.db"


async def test_execute_query_returns_binary_values_as_hex(connection_provider, database_id):
    rows = await connection_provider.execute_query(database_id, "SELECT X'FF00' AS b, 1 AS n")

    assert rows == [{"b": "0xff00", "n": 1}]


async def test_execute_query_keeps_repeated_column_names(connection_provider, database_id):
    rows = await connection_provider.execute_query(
        database_id,
        "SELECT c.id, o.id FROM customers c JOIN orders o ON o.customer_id = c.id WHERE o.id = 3",
    )

    assert rows == [{"id": 2, "id_1": 3}]


def test_column_names_suffix_repeats_without_collisions():
    assert _column_names(["id", "id", "id_1"]) == ["id", "id_1", "id_1_1"]


async def test_execute_query_failure_chains_driver_error(connection_provider, database_id):
    with pytest.raises(ExecutionFailureError) as exc_info:
        await connection_provider.execute_query(database_id, "SELECT * FROM missing_table")

    assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
