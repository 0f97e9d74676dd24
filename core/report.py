"""
Comparison report model and text rendering.

A ComparisonReport is the immutable outcome of one comparison run. The text
rendering prints a fixed sequence of sections, each showing ``(none)`` when
empty, and is escaped to plain ASCII so it can be archived anywhere.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.differ import ChangeRecord, ChangeType
from core.structured import DatabaseChange, DatabaseChangeKind, PreferenceChange

SECTION_ADDED = "ADDED FILES"
SECTION_REMOVED = "REMOVED FILES"
SECTION_MODIFIED = "MODIFIED FILES"
SECTION_PREFERENCES = "PREFERENCE CHANGES"
SECTION_DATABASES = "DATABASE CHANGES"

SECTION_ORDER = (
    SECTION_ADDED,
    SECTION_REMOVED,
    SECTION_MODIFIED,
    SECTION_PREFERENCES,
    SECTION_DATABASES,
)

EMPTY_MARKER = "(none)"


@dataclass(frozen=True)
class ComparisonReport:
    """Result of comparing a target's current tree against its baseline."""
    target: str
    created_at: datetime
    baseline_created_at: Optional[datetime] = None
    changes: tuple[ChangeRecord, ...] = ()
    preference_changes: tuple[PreferenceChange, ...] = ()
    database_changes: tuple[DatabaseChange, ...] = ()
    total_files: int = 0

    def _of_type(self, change_type: ChangeType) -> list[ChangeRecord]:
        return [c for c in self.changes if c.change_type == change_type]

    @property
    def added(self) -> list[ChangeRecord]:
        return self._of_type(ChangeType.ADDED)

    @property
    def removed(self) -> list[ChangeRecord]:
        return self._of_type(ChangeType.REMOVED)

    @property
    def modified(self) -> list[ChangeRecord]:
        return self._of_type(ChangeType.MODIFIED)

    @property
    def is_clean(self) -> bool:
        return not (self.changes or self.preference_changes or self.database_changes)

    def summary(self) -> dict:
        return {
            "added": len(self.added),
            "removed": len(self.removed),
            "modified": len(self.modified),
            "preference_changes": len(self.preference_changes),
            "database_changes": len(self.database_changes),
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "target": self.target,
            "created_at": self.created_at.isoformat(),
            "baseline_created_at": self.baseline_created_at.isoformat() if self.baseline_created_at else None,
            "total_files": self.total_files,
            "is_clean": self.is_clean,
            "summary": self.summary(),
            "changes": [c.to_dict() for c in self.changes],
            "preference_changes": [p.to_dict() for p in self.preference_changes],
            "database_changes": [d.to_dict() for d in self.database_changes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ComparisonReport":
        baseline_created_at = data.get("baseline_created_at")
        return cls(
            target=data["target"],
            created_at=datetime.fromisoformat(data["created_at"]),
            baseline_created_at=datetime.fromisoformat(baseline_created_at) if baseline_created_at else None,
            changes=tuple(ChangeRecord.from_dict(c) for c in data.get("changes", [])),
            preference_changes=tuple(PreferenceChange.from_dict(p) for p in data.get("preference_changes", [])),
            database_changes=tuple(DatabaseChange.from_dict(d) for d in data.get("database_changes", [])),
            total_files=data.get("total_files", 0)
        )


def ascii_safe(text: str) -> str:
    """Escape anything outside 7-bit ASCII as backslash sequences."""
    return text.encode("ascii", "backslashreplace").decode("ascii")


def _section(title: str, body: list[str]) -> list[str]:
    return [f"=== {title} ===", *(body or [EMPTY_MARKER]), ""]


def render_text_report(report: ComparisonReport) -> str:
    """Generate the human-readable text artifact for a comparison run."""
    lines = [
        "=" * 70,
        f"Comparison Report: {report.target}",
        f"Timestamp:         {report.created_at.isoformat()}",
    ]
    if report.baseline_created_at:
        lines.append(f"Baseline Created:  {report.baseline_created_at.isoformat()}")
    lines.extend([
        f"Files Scanned:     {report.total_files}",
        "=" * 70,
        "",
    ])

    lines.extend(_section(SECTION_ADDED, [c.path for c in report.added]))
    lines.extend(_section(SECTION_REMOVED, [c.path for c in report.removed]))

    modified = []
    for change in report.modified:
        modified.extend([
            f"MODIFIED: {change.path}",
            f"  Baseline: {change.old_hash}",
            f"  Current:  {change.new_hash}",
        ])
    lines.extend(_section(SECTION_MODIFIED, modified))

    preferences = []
    for pref in report.preference_changes:
        if pref.is_new:
            preferences.append(f"NEW PREF: {pref.path}")
        else:
            preferences.append(f"--- {pref.path} ---")
            # Carriage returns shown escaped so CRLF-only changes stay visible
            preferences.extend(
                line.replace("\r", "\\r") for line in pref.diff.rstrip("\n").split("\n")
            )
    lines.extend(_section(SECTION_PREFERENCES, preferences))

    databases = []
    for db in report.database_changes:
        label = "NEW DB" if db.kind == DatabaseChangeKind.NEW else "MODIFIED"
        databases.append(f"{label}: {db.path}")
    lines.extend(_section(SECTION_DATABASES, databases))

    lines.extend([
        "=" * 70,
        "END OF REPORT",
        "=" * 70,
    ])
    return ascii_safe("\n".join(lines) + "\n")
