# Tidemark v1.0.0
"""
Database package for the Tidemark baseline engine.

Each target baseline is stored in its own SQLite database.
"""
from database.connection import (
    Base, create_db_engine, init_db, open_session
)
from database.models import (
    BaselineRecord,
    FileFingerprint,
    MetadataEntry
)

__all__ = [
    "Base", "create_db_engine", "init_db", "open_session",
    "BaselineRecord",
    "FileFingerprint",
    "MetadataEntry"
]
