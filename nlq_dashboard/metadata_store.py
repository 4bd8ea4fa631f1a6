"""
Admin metadata store.

ORM mapping of the application database (registered databases, their tables,
columns and relationships) plus the keyed CRUD the query pipeline reads from.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    or_,
    select,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .exceptions import DatabaseNotFoundError, InvalidArgumentError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class DatabaseType(Base):
    __tablename__ = "database_types"

    type_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)


class DatabaseTarget(Base):
    """A registered, queryable database."""

    __tablename__ = "databases"

    database_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type_id: Mapped[int] = mapped_column(Integer, nullable=False)
    server_address: Mapped[Optional[str]] = mapped_column(String(255))
    database_name: Mapped[Optional[str]] = mapped_column(String(255))
    port: Mapped[Optional[int]] = mapped_column(Integer)
    username: Mapped[Optional[str]] = mapped_column(String(255))
    encrypted_credentials: Mapped[Optional[str]] = mapped_column(Text)
    connection_string: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_connection_status: Mapped[Optional[bool]] = mapped_column(Boolean)
    last_transaction_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class TableMetadata(Base):
    __tablename__ = "tables"

    table_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    database_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("databases.database_id", ondelete="CASCADE"), nullable=False
    )
    db_table_name: Mapped[str] = mapped_column(String(255), nullable=False)
    admin_table_name: Mapped[Optional[str]] = mapped_column(String(255))
    admin_description: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("database_id", "db_table_name", name="uq_tables_database_name"),
    )


class ColumnMetadata(Base):
    __tablename__ = "columns"

    column_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tables.table_id", ondelete="CASCADE"), nullable=False
    )
    db_column_name: Mapped[str] = mapped_column(String(255), nullable=False)
    admin_column_name: Mapped[Optional[str]] = mapped_column(String(255))
    admin_description: Mapped[Optional[str]] = mapped_column(Text)
    data_type: Mapped[Optional[str]] = mapped_column(String(100))
    is_nullable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_primary_key: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_lookup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("table_id", "db_column_name", name="uq_columns_table_name"),
    )


class RelationshipMetadata(Base):
    """Directed edge between two (table, column) pairs."""

    __tablename__ = "relationships"

    relationship_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tables.table_id", ondelete="CASCADE"), nullable=False
    )
    column_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("columns.column_id", ondelete="CASCADE"), nullable=False
    )
    related_table_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tables.table_id", ondelete="CASCADE"), nullable=False
    )
    related_column_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("columns.column_id", ondelete="CASCADE"), nullable=False
    )
    relationship_type: Mapped[str] = mapped_column(String(50), default="one-to-many", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_enforced: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    def endpoint_key(self) -> tuple:
        return (self.table_id, self.column_id, self.related_table_id, self.related_column_id)


@dataclass
class SchemaSnapshot:
    """A database target with all of its admin metadata, built fresh per request."""
    target: DatabaseTarget
    tables: List[TableMetadata] = field(default_factory=list)
    columns: List[ColumnMetadata] = field(default_factory=list)
    relationships: List[RelationshipMetadata] = field(default_factory=list)

    def columns_for(self, table_id: int) -> List[ColumnMetadata]:
        return [column for column in self.columns if column.table_id == table_id]


# Names used when the database_types table has no row for a type id
DEFAULT_TYPE_NAMES = {
    1: "SQLServer",
    2: "MySQL",
    3: "Oracle",
    4: "SQLServer2",
}


class TypeNameCache:
    """
    Read-through cache of engine type id -> display name.

    Entries are only ever added, never replaced, so concurrent readers can
    share it without locking.
    """

    def __init__(self, loader: Callable[[int], Optional[str]]):
        self._loader = loader
        self._names: Dict[int, str] = {}

    def get(self, type_id: int) -> str:
        cached = self._names.get(type_id)
        if cached is not None:
            return cached
        try:
            name = self._loader(type_id)
        except Exception as e:
            logger.error(f"Error retrieving database type name for ID {type_id}: {e}")
            name = None
        if not name:
            name = DEFAULT_TYPE_NAMES.get(type_id, f"CustomType_{type_id}")
        return self._names.setdefault(type_id, name)

    def __len__(self) -> int:
        return len(self._names)


class MetadataStore:
    """Keyed CRUD over the admin metadata tables."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.type_names = TypeNameCache(self._load_type_name)

    def create_all(self) -> None:
        """Create the metadata tables and seed the engine type names."""
        engine = self.session_factory.kw["bind"]
        Base.metadata.create_all(engine)
        with self.session_factory.begin() as session:
            existing = set(session.scalars(select(DatabaseType.type_id)))
            for type_id, type_name in DEFAULT_TYPE_NAMES.items():
                if type_id not in existing:
                    session.add(DatabaseType(type_id=type_id, type_name=type_name))

    # Database targets

    def get_database_target(self, database_id: int) -> DatabaseTarget:
        """Get an active database target or raise DatabaseNotFoundError."""
        with self.session_factory() as session:
            target = session.scalar(
                select(DatabaseTarget).where(
                    DatabaseTarget.database_id == database_id,
                    DatabaseTarget.is_active.is_(True),
                )
            )
        if target is None:
            raise DatabaseNotFoundError(database_id)
        return target

    def list_database_targets(self, include_inactive: bool = False) -> List[DatabaseTarget]:
        with self.session_factory() as session:
            query = select(DatabaseTarget).order_by(DatabaseTarget.database_id)
            if not include_inactive:
                query = query.where(DatabaseTarget.is_active.is_(True))
            return list(session.scalars(query))

    def add_database_target(self, **fields) -> DatabaseTarget:
        if not fields.get("name"):
            raise InvalidArgumentError("Database name cannot be empty")
        with self.session_factory.begin() as session:
            target = DatabaseTarget(**fields)
            session.add(target)
            session.flush()
            logger.info(f"Registered database {target.name} with ID {target.database_id}")
            return target

    def update_database_target(self, database_id: int, **fields) -> DatabaseTarget:
        with self.session_factory.begin() as session:
            target = session.get(DatabaseTarget, database_id)
            if target is None:
                raise DatabaseNotFoundError(database_id)
            for key, value in fields.items():
                setattr(target, key, value)
            return target

    def delete_database_target(self, database_id: int) -> None:
        """Soft delete: the row stays, flagged inactive."""
        self.update_database_target(database_id, is_active=False)
        logger.info(f"Deactivated database with ID {database_id}")

    def record_connection_status(self, database_id: int, status: bool) -> None:
        with self.session_factory.begin() as session:
            target = session.get(DatabaseTarget, database_id)
            if target is not None:
                target.last_connection_status = status
                target.last_transaction_date = datetime.now()

    def get_type_name(self, type_id: int) -> str:
        return self.type_names.get(type_id)

    def _load_type_name(self, type_id: int) -> Optional[str]:
        with self.session_factory() as session:
            return session.scalar(
                select(DatabaseType.type_name).where(DatabaseType.type_id == type_id)
            )

    # Tables, columns and relationships

    def get_tables(self, database_id: int) -> List[TableMetadata]:
        with self.session_factory() as session:
            return list(session.scalars(
                select(TableMetadata)
                .where(TableMetadata.database_id == database_id)
                .order_by(TableMetadata.table_id)
            ))

    def get_columns(self, table_id: int) -> List[ColumnMetadata]:
        with self.session_factory() as session:
            return list(session.scalars(
                select(ColumnMetadata)
                .where(ColumnMetadata.table_id == table_id)
                .order_by(ColumnMetadata.column_id)
            ))

    def get_relationships(self, table_id: int) -> List[RelationshipMetadata]:
        """Relationships whose source side is the given table."""
        with self.session_factory() as session:
            return list(session.scalars(
                select(RelationshipMetadata)
                .where(RelationshipMetadata.table_id == table_id)
                .order_by(RelationshipMetadata.relationship_id)
            ))

    def get_schema_snapshot(self, database_id: int) -> SchemaSnapshot:
        target = self.get_database_target(database_id)
        snapshot = SchemaSnapshot(target=target)
        snapshot.tables = self.get_tables(database_id)
        for table in snapshot.tables:
            snapshot.columns.extend(self.get_columns(table.table_id))
            snapshot.relationships.extend(self.get_relationships(table.table_id))
        return snapshot

    def add_table(self, database_id: int, db_table_name: str, **fields) -> TableMetadata:
        with self.session_factory.begin() as session:
            table = TableMetadata(database_id=database_id, db_table_name=db_table_name, **fields)
            session.add(table)
            session.flush()
            return table

    def add_column(self, table_id: int, db_column_name: str, **fields) -> ColumnMetadata:
        with self.session_factory.begin() as session:
            column = ColumnMetadata(table_id=table_id, db_column_name=db_column_name, **fields)
            session.add(column)
            session.flush()
            return column

    def add_relationship(self, **fields) -> RelationshipMetadata:
        with self.session_factory.begin() as session:
            relationship = RelationshipMetadata(**fields)
            session.add(relationship)
            session.flush()
            return relationship

    def delete_table(self, table_id: int) -> None:
        with self.session_factory.begin() as session:
            delete_table_cascade(session, table_id)

    def add_relationship_by_names(
        self,
        database_id: int,
        source_table: str,
        source_column: str,
        target_table: str,
        target_column: str,
        relationship_type: str = "one-to-many",
        description: Optional[str] = None,
        is_enforced: bool = False,
    ) -> RelationshipMetadata:
        """Add an advisory relationship identified by physical names."""
        with self.session_factory.begin() as session:
            source = _find_column(session, database_id, source_table, source_column)
            target = _find_column(session, database_id, target_table, target_column)
            relationship = RelationshipMetadata(
                table_id=source.table_id,
                column_id=source.column_id,
                related_table_id=target.table_id,
                related_column_id=target.column_id,
                relationship_type=relationship_type,
                description=description,
                is_enforced=is_enforced,
            )
            session.add(relationship)
            session.flush()
            logger.info(
                f"Added relationship {source_table}.{source_column} -> "
                f"{target_table}.{target_column} for database {database_id}"
            )
            return relationship


def _find_column(session: Session, database_id: int, table_name: str, column_name: str) -> ColumnMetadata:
    column = session.scalar(
        select(ColumnMetadata)
        .join(TableMetadata, TableMetadata.table_id == ColumnMetadata.table_id)
        .where(
            TableMetadata.database_id == database_id,
            func.lower(TableMetadata.db_table_name) == table_name.lower(),
            func.lower(ColumnMetadata.db_column_name) == column_name.lower(),
        )
    )
    if column is None:
        raise InvalidArgumentError(f"Column {table_name}.{column_name} not found in database {database_id}")
    return column


def delete_relationships_touching(session: Session, table_id: int = None, column_id: int = None) -> int:
    """Delete every relationship with either endpoint on the table/column. Returns the count."""
    conditions = []
    if table_id is not None:
        conditions += [RelationshipMetadata.table_id == table_id, RelationshipMetadata.related_table_id == table_id]
    if column_id is not None:
        conditions += [RelationshipMetadata.column_id == column_id, RelationshipMetadata.related_column_id == column_id]
    relationships = list(session.scalars(select(RelationshipMetadata).where(or_(*conditions))))
    for relationship in relationships:
        session.delete(relationship)
    return len(relationships)


def delete_table_cascade(session: Session, table_id: int) -> tuple:
    """Delete a table with its columns and relationships. Returns (columns, relationships) deleted."""
    relationships_deleted = delete_relationships_touching(session, table_id=table_id)
    columns = list(session.scalars(select(ColumnMetadata).where(ColumnMetadata.table_id == table_id)))
    for column in columns:
        session.delete(column)
    table = session.get(TableMetadata, table_id)
    if table is not None:
        session.delete(table)
    return len(columns), relationships_deleted


__all__ = [
    'Base',
    'DatabaseType',
    'DatabaseTarget',
    'TableMetadata',
    'ColumnMetadata',
    'RelationshipMetadata',
    'SchemaSnapshot',
    'TypeNameCache',
    'MetadataStore',
    'delete_relationships_touching',
    'delete_table_cascade',
]
