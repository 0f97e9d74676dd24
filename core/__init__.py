# Tidemark v1.0.0
"""
Core package for the Tidemark baseline engine.
Contains tree hashing, reconciliation and structured-format comparison.
"""
from core.errors import (
    TidemarkError,
    TransportError,
    InsufficientPrivilegeError,
    NotFoundError,
    ConflictError,
    StorageError,
    TreeHashError,
    InvalidTargetError,
    RunCancelledError
)
from core.hasher import (
    hash_tree,
    hash_file,
    hash_bytes,
    FingerprintSet,
    HASH_ALGORITHM
)
from core.differ import (
    diff_fingerprints,
    ChangeRecord,
    ChangeType
)
from core.structured import (
    compare_preferences,
    compare_databases,
    compare_structured,
    StructuralLocations,
    StructuredChanges,
    PreferenceChange,
    DatabaseChange,
    DatabaseChangeKind
)
from core.report import (
    ComparisonReport,
    render_text_report,
    ascii_safe
)

__all__ = [
    "TidemarkError",
    "TransportError",
    "InsufficientPrivilegeError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
    "TreeHashError",
    "InvalidTargetError",
    "RunCancelledError",
    "hash_tree",
    "hash_file",
    "hash_bytes",
    "FingerprintSet",
    "HASH_ALGORITHM",
    "diff_fingerprints",
    "ChangeRecord",
    "ChangeType",
    "compare_preferences",
    "compare_databases",
    "compare_structured",
    "StructuralLocations",
    "StructuredChanges",
    "PreferenceChange",
    "DatabaseChange",
    "DatabaseChangeKind",
    "ComparisonReport",
    "render_text_report",
    "ascii_safe"
]
