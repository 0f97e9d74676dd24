"""
Tidemark baseline database models.

One database per target baseline: the baseline record itself, the
fingerprint set of the raw tree copy and the free-form metadata map.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, LargeBinary, String, Text, DateTime

from database.connection import Base


class BaselineRecord(Base):
    """The single baseline row describing this snapshot."""
    __tablename__ = "baseline"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    hash_algorithm = Column(String(20), nullable=False)
    file_count = Column(Integer, default=0)
    tool_version = Column(String(20), nullable=True)


class FileFingerprint(Base):
    """Content digest of one regular file in the raw tree copy."""
    __tablename__ = "file_fingerprints"

    # Forward-slash path relative to tree root, UTF-8 with surrogateescape so
    # undecodable file names round-trip
    path = Column(LargeBinary, primary_key=True)
    digest = Column(String(128), nullable=False)


class MetadataEntry(Base):
    """Environment fact captured with the baseline (device, OS, app version...)."""
    __tablename__ = "baseline_metadata"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
