"""
Pydantic schemas for the Tidemark API.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


# ============================================================
# BASELINE SCHEMAS
# ============================================================

class BaselineSummaryResponse(BaseModel):
    target: str
    created_at: Optional[datetime] = None
    metadata: dict[str, str] = {}


class BaselineDetailResponse(BaselineSummaryResponse):
    """Stored baseline, optionally with its full fingerprint set."""
    hash_algorithm: str
    file_count: int
    files: Optional[dict[str, str]] = None


# ============================================================
# REPORT SCHEMAS
# ============================================================

class ChangeRecordSchema(BaseModel):
    path: str
    change_type: str
    old_hash: Optional[str] = None
    new_hash: Optional[str] = None


class PreferenceChangeSchema(BaseModel):
    path: str
    is_new: bool = False
    diff: Optional[str] = None


class DatabaseChangeSchema(BaseModel):
    path: str
    kind: str
    old_hash: Optional[str] = None
    new_hash: Optional[str] = None


class ReportSummarySchema(BaseModel):
    added: int = 0
    removed: int = 0
    modified: int = 0
    preference_changes: int = 0
    database_changes: int = 0


class ReportListEntry(BaseModel):
    name: str
    target: str


class ComparisonReportResponse(BaseModel):
    """One persisted comparison run."""
    name: str
    target: str
    created_at: datetime
    baseline_created_at: Optional[datetime] = None
    total_files: int = 0
    is_clean: bool
    summary: ReportSummarySchema
    changes: list[ChangeRecordSchema] = []
    preference_changes: list[PreferenceChangeSchema] = []
    database_changes: list[DatabaseChangeSchema] = []
