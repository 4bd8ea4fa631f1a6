"""
Schema Context Builder

Renders the admin metadata of a database into the plain-text schema the LLM
prompts are built from, and collects the admin terms used as friendly names.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List
import logging

from .connections import dialect_for
from .metadata_store import ColumnMetadata, MetadataStore, SchemaSnapshot, TableMetadata

logger = logging.getLogger(__name__)

NO_TABLES_SENTINEL = "No tables found for this database."


def _annotated(name: str, admin_name: str = None, description: str = None) -> str:
    line = name
    if admin_name:
        line += f' (Admin: "{admin_name}")'
    if description:
        line += f" - {description}"
    return line


def render_schema_text(snapshot: SchemaSnapshot) -> str:
    """Render a schema snapshot as prompt text."""
    if not snapshot.tables:
        return NO_TABLES_SENTINEL

    table_names = {table.table_id: table.db_table_name for table in snapshot.tables}
    column_names = {column.column_id: column.db_column_name for column in snapshot.columns}

    lines: List[str] = ["Tables:"]
    for table in snapshot.tables:
        lines.append("- " + _annotated(table.db_table_name, table.admin_table_name, table.admin_description))
        for column in snapshot.columns_for(table.table_id):
            column_line = _annotated(
                f"{column.db_column_name}: {column.data_type or 'unknown'}",
                column.admin_column_name,
                column.admin_description,
            )
            lines.append(f"  - {column_line}")
        lines.append("")

    if snapshot.relationships:
        lines.append("Relationships:")
        for rel in snapshot.relationships:
            source = f"{table_names.get(rel.table_id, rel.table_id)}.{column_names.get(rel.column_id, rel.column_id)}"
            target = (
                f"{table_names.get(rel.related_table_id, rel.related_table_id)}."
                f"{column_names.get(rel.related_column_id, rel.related_column_id)}"
            )
            lines.append(f"- ({rel.relationship_type}) {source} -> {target}")

    return "\n".join(lines)


def extract_admin_terms(
    tables: Iterable[TableMetadata], columns: Iterable[ColumnMetadata]
) -> Dict[str, str]:
    """Map physical names to admin names and '<name> description' keys to descriptions."""
    terms: Dict[str, str] = {}
    entries = [(t.db_table_name, t.admin_table_name, t.admin_description) for t in tables]
    entries += [(c.db_column_name, c.admin_column_name, c.admin_description) for c in columns]
    for db_name, admin_name, description in entries:
        if admin_name:
            terms[db_name] = admin_name
        if description:
            terms[f"{db_name} description"] = description
    return terms


@dataclass
class SchemaContext:
    """Everything a prompt needs about one database."""
    schema_text: str
    admin_terms: Dict[str, str] = field(default_factory=dict)
    dialect: str = "SQL"


class SchemaContextBuilder:
    """Builds schema text and admin terms for a registered database."""

    def __init__(self, metadata_store: MetadataStore):
        self.metadata_store = metadata_store

    def build(self, database_id: int) -> SchemaContext:
        snapshot = self.metadata_store.get_schema_snapshot(database_id)
        context = SchemaContext(
            schema_text=render_schema_text(snapshot),
            admin_terms=extract_admin_terms(snapshot.tables, snapshot.columns),
            dialect=dialect_for(snapshot.target.type_id),
        )
        logger.info(
            f"Built schema context for database {database_id}: "
            f"{len(snapshot.tables)} tables, {len(snapshot.relationships)} relationships"
        )
        return context

    def build_schema_text(self, database_id: int) -> str:
        return render_schema_text(self.metadata_store.get_schema_snapshot(database_id))


__all__ = [
    'NO_TABLES_SENTINEL',
    'SchemaContext',
    'SchemaContextBuilder',
    'extract_admin_terms',
    'render_schema_text',
]
