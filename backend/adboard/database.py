"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides
small helpers used by the application, scripts and tests.
"""

from sqlalchemy import event
from sqlmodel import SQLModel, create_engine, Session

from .config import settings


def make_engine(url: str, **kwargs):
    """Create an engine for `url`, enforcing foreign keys on SQLite."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    eng = create_engine(url, echo=False, **kwargs)
    if url.startswith("sqlite"):
        @event.listens_for(eng, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return eng


engine = make_engine(settings.DATABASE_URL)


def create_db_and_tables(bind=None):
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; there is no migration
    tooling in this project.
    """
    # models must be imported so their tables are registered on the metadata
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
