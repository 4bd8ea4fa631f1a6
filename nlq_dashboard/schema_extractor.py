from typing import List, Optional
import asyncio
import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from .connections import ConnectionProvider
from .exceptions import ConnectionFailureError
from .models import (
    ColumnSchema,
    IncomingSchema,
    RelationshipEndpoint,
    RelationshipSchema,
    TableSchema,
)

logger = logging.getLogger(__name__)


class SchemaExtractor:
    """Reads the physical schema of a target database through the SQLAlchemy inspector."""

    def __init__(self, connection_provider: ConnectionProvider):
        self.connection_provider = connection_provider

    async def extract_incoming_schema(self, database_id: int) -> IncomingSchema:
        """Introspect a registered database into a schema the synchronizer accepts."""
        logger.info(f"Starting schema extraction for database ID {database_id}")
        async with self.connection_provider.open_async(database_id) as connection:
            try:
                schema = await asyncio.to_thread(self.extract_from_connection, connection)
            except SQLAlchemyError as e:
                logger.error(f"SQLAlchemy error extracting schema: {e}")
                raise ConnectionFailureError(f"Could not read the database schema: {e}") from e
        logger.info(
            f"Extracted {len(schema.tables)} tables and {len(schema.relationships)} "
            f"foreign keys from database ID {database_id}"
        )
        return schema

    def extract_from_connection(self, connection: Connection, schema: Optional[str] = None) -> IncomingSchema:
        inspector = inspect(connection)
        tables: List[TableSchema] = []
        relationships: List[RelationshipSchema] = []

        for table_name in inspector.get_table_names(schema=schema):
            logger.debug(f"Processing table: {table_name}")
            pk = inspector.get_pk_constraint(table_name, schema=schema) or {}
            primary_keys = set(pk.get("constrained_columns") or [])

            columns = [
                ColumnSchema(
                    db_name=column["name"],
                    data_type=str(column["type"]),
                    is_nullable=bool(column.get("nullable", True)),
                    is_primary_key=column["name"] in primary_keys,
                )
                for column in inspector.get_columns(table_name, schema=schema)
            ]
            tables.append(TableSchema(db_name=table_name, columns=columns))

            for fk in inspector.get_foreign_keys(table_name, schema=schema):
                for local, remote in zip(fk["constrained_columns"], fk["referred_columns"]):
                    relationships.append(RelationshipSchema(
                        source=RelationshipEndpoint(table=table_name, column=local),
                        target=RelationshipEndpoint(table=fk["referred_table"], column=remote),
                        type="many-to-one",
                        enforced=True,
                    ))

        return IncomingSchema(tables=tables, relationships=relationships)


__all__ = ['SchemaExtractor']
