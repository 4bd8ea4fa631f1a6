from typing import Optional
import logging

from sqlalchemy import create_engine, event, Engine
from sqlalchemy.orm import sessionmaker

from .config import get_settings

# Configure logging
logger = logging.getLogger(__name__)

# Initialize engine and session factory as None
_engine: Optional[Engine] = None
_Session = None


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite needs foreign keys switched on per connection for cascades to work."""
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app_engine(db_url: str) -> Engine:
    """Create an engine for the application (metadata) database."""
    engine = create_engine(db_url, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)
    return engine


def get_db_engine(db_url: str = None) -> Engine:
    """Get or create the application database engine."""
    global _engine, _Session
    url = db_url or get_settings().app_database_url
    if _engine is None or (db_url and str(_engine.url) != url):
        logger.info("Creating application database engine")
        _engine = create_app_engine(url)
        _Session = None
    return _engine


def get_session_factory() -> sessionmaker:
    """Get the session factory bound to the application database."""
    global _Session
    if _Session is None:
        _Session = sessionmaker(bind=get_db_engine(), expire_on_commit=False)
    return _Session


__all__ = ['create_app_engine', 'get_db_engine', 'get_session_factory']
