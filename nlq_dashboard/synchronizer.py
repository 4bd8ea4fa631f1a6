"""
Schema Synchronizer

Reconciles the stored admin metadata of a database with an incoming schema
(from introspection or an administrator upload). One call is one transaction:
either every change lands or none does.
"""

from typing import Dict, Optional, Tuple
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .exceptions import DatabaseNotFoundError, SchemaSyncError
from .metadata_store import (
    ColumnMetadata,
    DatabaseTarget,
    RelationshipMetadata,
    TableMetadata,
    delete_relationships_touching,
    delete_table_cascade,
)
from .models import ColumnSchema, IncomingSchema, SyncReport, TableSchema

logger = logging.getLogger(__name__)


def _apply_changes(record, changes: Dict[str, object]) -> bool:
    """Set attributes that differ. None means 'not supplied' and is skipped."""
    changed = False
    for attribute, value in changes.items():
        if value is None:
            continue
        if getattr(record, attribute) != value:
            setattr(record, attribute, value)
            changed = True
    return changed


class SchemaSynchronizer:
    """Applies incoming schemas to the metadata store, one database at a time."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, database_id: int) -> asyncio.Lock:
        return self._locks.setdefault(database_id, asyncio.Lock())

    async def sync(
        self, database_id: int, incoming: IncomingSchema, preserve_advisory: bool = False
    ) -> SyncReport:
        """
        Synchronize a database's metadata with an incoming schema.

        With `preserve_advisory`, stored relationships that are not enforced
        (admin suggestions) survive even when the incoming schema omits them.
        """
        async with self._lock_for(database_id):
            logger.info(
                f"Synchronizing schema for database ID {database_id}: "
                f"{len(incoming.tables)} tables, {len(incoming.relationships)} relationships"
            )
            report = await asyncio.to_thread(self._sync_blocking, database_id, incoming, preserve_advisory)
            logger.info(f"Schema sync for database ID {database_id} complete: {report.model_dump()}")
            return report

    def _sync_blocking(self, database_id: int, incoming: IncomingSchema, preserve_advisory: bool = False) -> SyncReport:
        report = SyncReport()
        session = self.session_factory()
        try:
            with session.begin():
                if session.get(DatabaseTarget, database_id) is None:
                    raise DatabaseNotFoundError(database_id)
                tables = self._sync_tables(session, database_id, incoming, report)
                self._sync_relationships(session, tables, incoming, report, preserve_advisory)
        except DatabaseNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Schema sync for database ID {database_id} rolled back: {str(e)}")
            raise SchemaSyncError(f"Schema synchronization failed for database ID {database_id}: {e}") from e
        finally:
            session.close()
        return report

    def _sync_tables(
        self, session: Session, database_id: int, incoming: IncomingSchema, report: SyncReport
    ) -> Dict[str, Tuple[TableMetadata, Dict[str, ColumnMetadata]]]:
        """Diff tables by physical name. Returns lower-cased name -> (table, columns by lower name)."""
        existing = {
            table.db_table_name.lower(): table
            for table in session.scalars(select(TableMetadata).where(TableMetadata.database_id == database_id))
        }
        incoming_names = {table.db_name.lower() for table in incoming.tables}

        for name, table in existing.items():
            if name not in incoming_names:
                columns_deleted, relationships_deleted = delete_table_cascade(session, table.table_id)
                report.tables_deleted += 1
                report.columns_deleted += columns_deleted
                report.relationships_deleted += relationships_deleted
                logger.info(f"Deleted table {table.db_table_name}")
        session.flush()

        synced = {}
        for table_schema in incoming.tables:
            key = table_schema.db_name.lower()
            if key in synced:
                logger.warning(f"Duplicate table {table_schema.db_name} in incoming schema, ignoring")
                continue
            table = existing.get(key)
            if table is None:
                table = TableMetadata(
                    database_id=database_id,
                    db_table_name=table_schema.db_name,
                    admin_table_name=table_schema.friendly_name,
                    admin_description=table_schema.description,
                )
                session.add(table)
                session.flush()
                report.tables_inserted += 1
            elif _apply_changes(table, {
                "admin_table_name": table_schema.friendly_name,
                "admin_description": table_schema.description,
            }):
                report.tables_updated += 1
            synced[key] = (table, self._sync_columns(session, table, table_schema, report))
        return synced

    def _sync_columns(
        self, session: Session, table: TableMetadata, table_schema: TableSchema, report: SyncReport
    ) -> Dict[str, ColumnMetadata]:
        existing = {
            column.db_column_name.lower(): column
            for column in session.scalars(select(ColumnMetadata).where(ColumnMetadata.table_id == table.table_id))
        }
        incoming_names = {column.db_name.lower() for column in table_schema.columns}

        for name, column in existing.items():
            if name not in incoming_names:
                report.relationships_deleted += delete_relationships_touching(session, column_id=column.column_id)
                session.delete(column)
                report.columns_deleted += 1
        session.flush()

        synced: Dict[str, ColumnMetadata] = {}
        for column_schema in table_schema.columns:
            key = column_schema.db_name.lower()
            if key in synced:
                continue
            column = existing.get(key)
            if column is None:
                column = ColumnMetadata(table_id=table.table_id, db_column_name=column_schema.db_name)
                _apply_changes(column, self._column_values(column_schema))
                session.add(column)
                report.columns_inserted += 1
            elif _apply_changes(column, self._column_values(column_schema)):
                report.columns_updated += 1
            synced[key] = column
        session.flush()
        return synced

    @staticmethod
    def _column_values(column_schema: ColumnSchema) -> Dict[str, object]:
        return {
            "admin_column_name": column_schema.friendly_name,
            "admin_description": column_schema.description,
            "data_type": column_schema.data_type,
            "is_nullable": column_schema.is_nullable,
            "is_primary_key": column_schema.is_primary_key,
            "is_lookup": column_schema.is_lookup,
        }

    def _sync_relationships(
        self,
        session: Session,
        tables: Dict[str, Tuple[TableMetadata, Dict[str, ColumnMetadata]]],
        incoming: IncomingSchema,
        report: SyncReport,
        preserve_advisory: bool = False,
    ) -> None:
        """Diff relationships across the whole schema by their endpoint ids."""
        table_ids = [table.table_id for table, _ in tables.values()]
        existing: Dict[tuple, RelationshipMetadata] = {}
        if table_ids:
            for relationship in session.scalars(
                select(RelationshipMetadata)
                .where(RelationshipMetadata.table_id.in_(table_ids))
                .order_by(RelationshipMetadata.relationship_id)
            ):
                key = relationship.endpoint_key()
                if key in existing:
                    # duplicate edge; the oldest row is kept
                    session.delete(relationship)
                    report.relationships_deleted += 1
                else:
                    existing[key] = relationship

        seen = set()
        for rel in incoming.relationships:
            source = self._resolve(tables, rel.source.table, rel.source.column)
            target = self._resolve(tables, rel.target.table, rel.target.column)
            if source is None or target is None:
                logger.warning(
                    f"Skipping relationship {rel.source.table}.{rel.source.column} -> "
                    f"{rel.target.table}.{rel.target.column}: endpoint not found"
                )
                continue
            key = (source.table_id, source.column_id, target.table_id, target.column_id)
            if key in seen:
                continue
            seen.add(key)

            relationship = existing.get(key)
            if relationship is None:
                session.add(RelationshipMetadata(
                    table_id=source.table_id,
                    column_id=source.column_id,
                    related_table_id=target.table_id,
                    related_column_id=target.column_id,
                    relationship_type=rel.type,
                    is_enforced=rel.enforced,
                    description=rel.description,
                ))
                report.relationships_inserted += 1
            elif _apply_changes(relationship, {
                "relationship_type": rel.type,
                "is_enforced": rel.enforced,
                "description": rel.description,
            }):
                report.relationships_updated += 1

        for key, relationship in existing.items():
            if key not in seen and not (preserve_advisory and not relationship.is_enforced):
                session.delete(relationship)
                report.relationships_deleted += 1
        session.flush()

    @staticmethod
    def _resolve(tables, table_name: str, column_name: str) -> Optional[ColumnMetadata]:
        entry = tables.get(table_name.lower())
        if entry is None:
            return None
        return entry[1].get(column_name.lower())


__all__ = ['SchemaSynchronizer']
