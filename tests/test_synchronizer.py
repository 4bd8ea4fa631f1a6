import asyncio
from unittest.mock import patch

import pytest

from nlq_dashboard.exceptions import DatabaseNotFoundError, SchemaSyncError
from nlq_dashboard.models import EngineKind, IncomingSchema
from nlq_dashboard.synchronizer import SchemaSynchronizer

SALES_SCHEMA = {
    "tables": [
        {
            "dbName": "customers",
            "friendlyName": "Clients",
            "columns": [
                {"dbName": "id", "dataType": "INTEGER", "isPrimaryKey": True, "isNullable": False},
                {"dbName": "name", "dataType": "VARCHAR(100)"},
                {"dbName": "country", "dataType": "VARCHAR(2)"},
            ],
        },
        {
            "dbName": "orders",
            "columns": [
                {"dbName": "id", "dataType": "INTEGER", "isPrimaryKey": True, "isNullable": False},
                {"dbName": "customer_id", "dataType": "INTEGER", "isNullable": False},
                {"dbName": "total", "dataType": "NUMERIC(10, 2)"},
            ],
        },
    ],
    "relationships": [
        {
            "source": {"table": "orders", "column": "customer_id"},
            "target": {"table": "customers", "column": "id"},
            "type": "many-to-one",
            "enforced": True,
        },
    ],
}


def sales_schema(**changes):
    data = {**SALES_SCHEMA, **changes}
    return IncomingSchema.model_validate(data)


@pytest.fixture
def synchronizer(session_factory, metadata_store):
    return SchemaSynchronizer(session_factory)


@pytest.fixture
def empty_database_id(metadata_store):
    return metadata_store.add_database_target(name="Fresh", type_id=int(EngineKind.MYSQL)).database_id


def table_names(metadata_store, database_id):
    return sorted(table.db_table_name for table in metadata_store.get_tables(database_id))


async def test_first_sync_inserts_everything(synchronizer, metadata_store, empty_database_id):
    report = await synchronizer.sync(empty_database_id, sales_schema())

    assert report.tables_inserted == 2
    assert report.columns_inserted == 6
    assert report.relationships_inserted == 1
    assert report.tables_deleted == 0
    assert table_names(metadata_store, empty_database_id) == ["customers", "orders"]
    snapshot = metadata_store.get_schema_snapshot(empty_database_id)
    assert snapshot.tables[0].admin_table_name == "Clients"
    assert snapshot.relationships[0].is_enforced is True


async def test_repeated_sync_is_a_no_op(synchronizer, empty_database_id):
    await synchronizer.sync(empty_database_id, sales_schema())

    report = await synchronizer.sync(empty_database_id, sales_schema())

    assert report.total_changes == 0


async def test_dropped_table_takes_columns_and_relationships_with_it(synchronizer, metadata_store, empty_database_id):
    await synchronizer.sync(empty_database_id, sales_schema())

    report = await synchronizer.sync(empty_database_id, sales_schema(
        tables=SALES_SCHEMA["tables"][1:], relationships=[],
    ))

    assert report.tables_deleted == 1
    assert report.columns_deleted == 3
    assert report.relationships_deleted == 1
    assert table_names(metadata_store, empty_database_id) == ["orders"]
    snapshot = metadata_store.get_schema_snapshot(empty_database_id)
    assert snapshot.relationships == []
    assert {column.db_column_name for column in snapshot.columns} == {"id", "customer_id", "total"}


async def test_dropped_column_removes_its_relationships(synchronizer, metadata_store, empty_database_id):
    await synchronizer.sync(empty_database_id, sales_schema())
    orders = dict(SALES_SCHEMA["tables"][1])
    orders["columns"] = [c for c in orders["columns"] if c["dbName"] != "customer_id"]

    report = await synchronizer.sync(empty_database_id, sales_schema(
        tables=[SALES_SCHEMA["tables"][0], orders], relationships=[],
    ))

    assert report.columns_deleted == 1
    assert report.relationships_deleted == 1
    assert metadata_store.get_schema_snapshot(empty_database_id).relationships == []


async def test_failed_sync_rolls_back(synchronizer, metadata_store, empty_database_id):
    with patch.object(SchemaSynchronizer, "_sync_relationships", side_effect=RuntimeError("boom")):
        with pytest.raises(SchemaSyncError) as exc_info:
            await synchronizer.sync(empty_database_id, sales_schema())

    assert "boom" in str(exc_info.value)
    assert metadata_store.get_tables(empty_database_id) == []


async def test_failed_sync_restores_deleted_tables(synchronizer, metadata_store, empty_database_id):
    await synchronizer.sync(empty_database_id, sales_schema())

    with patch.object(SchemaSynchronizer, "_sync_relationships", side_effect=RuntimeError("boom")):
        with pytest.raises(SchemaSyncError):
            await synchronizer.sync(empty_database_id, sales_schema(tables=SALES_SCHEMA["tables"][1:]))

    snapshot = metadata_store.get_schema_snapshot(empty_database_id)
    assert table_names(metadata_store, empty_database_id) == ["customers", "orders"]
    assert len(snapshot.columns) == 6
    assert len(snapshot.relationships) == 1


async def test_duplicate_stored_relationships_are_collapsed(synchronizer, metadata_store, empty_database_id):
    await synchronizer.sync(empty_database_id, sales_schema())
    stored = metadata_store.get_schema_snapshot(empty_database_id).relationships[0]
    metadata_store.add_relationship(
        table_id=stored.table_id,
        column_id=stored.column_id,
        related_table_id=stored.related_table_id,
        related_column_id=stored.related_column_id,
        relationship_type="many-to-one",
        is_enforced=True,
    )

    report = await synchronizer.sync(empty_database_id, sales_schema())

    assert report.relationships_deleted == 1
    assert report.relationships_inserted == 0
    relationships = metadata_store.get_schema_snapshot(empty_database_id).relationships
    assert [r.relationship_id for r in relationships] == [stored.relationship_id]


async def test_friendly_name_updates_and_missing_values_are_kept(synchronizer, metadata_store, database_id):
    schema = sales_schema()
    schema.tables[0].friendly_name = "Customers"
    schema.tables[0].description = None

    report = await synchronizer.sync(database_id, schema)

    customers = metadata_store.get_tables(database_id)[0]
    assert customers.admin_table_name == "Customers"
    # no description supplied, the stored one survives
    assert customers.admin_description == "People who buy"
    assert report.tables_updated == 1
    assert report.tables_inserted == 0


async def test_names_match_case_insensitively(synchronizer, metadata_store, database_id):
    schema = sales_schema()
    schema.tables[0].db_name = "CUSTOMERS"
    schema.relationships[0].target.table = "Customers"

    report = await synchronizer.sync(database_id, schema)

    assert report.tables_inserted == 0
    assert report.tables_deleted == 0
    assert report.relationships_inserted == 0
    assert report.relationships_deleted == 0
    assert table_names(metadata_store, database_id) == ["customers", "orders"]


async def test_unresolved_relationship_is_skipped(synchronizer, metadata_store, empty_database_id):
    schema = sales_schema(relationships=[
        {"source": {"table": "orders", "column": "customer_id"}, "target": {"table": "people", "column": "id"}},
    ])

    report = await synchronizer.sync(empty_database_id, schema)

    assert report.tables_inserted == 2
    assert report.relationships_inserted == 0


async def test_advisory_relationships_survive_when_preserved(synchronizer, metadata_store, empty_database_id):
    await synchronizer.sync(empty_database_id, sales_schema())
    metadata_store.add_relationship_by_names(empty_database_id, "customers", "country", "orders", "id")

    preserved = await synchronizer.sync(empty_database_id, sales_schema(), preserve_advisory=True)
    assert preserved.relationships_deleted == 0
    assert len(metadata_store.get_schema_snapshot(empty_database_id).relationships) == 2

    full = await synchronizer.sync(empty_database_id, sales_schema())
    assert full.relationships_deleted == 1
    assert len(metadata_store.get_schema_snapshot(empty_database_id).relationships) == 1


async def test_concurrent_syncs_of_one_database_are_serialized(synchronizer, metadata_store, empty_database_id):
    reports = await asyncio.gather(
        synchronizer.sync(empty_database_id, sales_schema()),
        synchronizer.sync(empty_database_id, sales_schema()),
    )

    assert sum(report.tables_inserted for report in reports) == 2
    assert sum(report.columns_inserted for report in reports) == 6
    assert sum(report.relationships_inserted for report in reports) == 1
    assert table_names(metadata_store, empty_database_id) == ["customers", "orders"]


async def test_unknown_database_is_rejected(synchronizer):
    with pytest.raises(DatabaseNotFoundError):
        await synchronizer.sync(999, sales_schema())
