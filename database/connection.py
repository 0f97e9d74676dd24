"""
Database connection and session management.

Every target keeps its baseline record in its own SQLite file inside the
target's storage namespace, so engines are created per database path
rather than once per process.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine for one baseline database file."""
    return create_engine(
        f"sqlite:///{Path(db_path).as_posix()}",
        connect_args={"check_same_thread": False},
        echo=settings.DEBUG
    )


def init_db(engine: Engine):
    """Initialize database tables."""
    from database.models import BaselineRecord, FileFingerprint, MetadataEntry
    Base.metadata.create_all(bind=engine)
    logger.debug(f"Baseline database initialized: {engine.url}")


@contextmanager
def open_session(db_path: Path, create: bool = False) -> Iterator[Session]:
    """
    Open a session on a baseline database and dispose the engine afterwards.

    The engine is always disposed so no file handle outlives the session;
    the store renames and deletes these files.
    """
    engine = create_db_engine(db_path)
    try:
        if create:
            init_db(engine)
        session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        db = session_factory()
        try:
            yield db
        finally:
            db.close()
    finally:
        engine.dispose()
