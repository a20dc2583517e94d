import logging
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base class for declarative ORM models.
Base = declarative_base()


def build_engine(database_url: str, **kwargs) -> Engine:
    """Creates the SQLAlchemy engine; SQLite gets foreign keys switched on."""
    engine = create_engine(database_url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_session_factory(engine: Engine, statement_timeout_ms: int = 0) -> sessionmaker:
    # Create a configured "Session" class for database interactions.
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
        info={"statement_timeout_ms": statement_timeout_ms},
    )


def get_db(request: Request):
    """FastAPI dependency to get a DB session for a single request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        # Ensure the session is always closed after the request is finished.
        db.close()


@contextmanager
def transaction(db: Session, timeout_ms: int = 0):
    """Runs the enclosed statements as one unit of work.

    Commits when the block exits cleanly and rolls back on any exception,
    which is re-raised. On PostgreSQL the whole unit shares one statement
    timeout: `timeout_ms`, or the one the session factory was built with.
    """
    timeout_ms = timeout_ms or db.info.get("statement_timeout_ms", 0)
    try:
        if timeout_ms and db.get_bind().dialect.name == "postgresql":
            db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
        yield db
        db.commit()
    except Exception:
        logger.debug("rolling back unit of work")
        db.rollback()
        raise
