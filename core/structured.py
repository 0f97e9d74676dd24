"""
Format-aware comparators for the Tidemark baseline engine.

Two structured formats get finer-grained treatment than plain hash
comparison:

- Preference stores (XML files under ``shared_prefs``): a line-level
  unified diff of the two versions is recorded.
- Embedded databases (``.db``/``.sqlite``/``.sqlite3`` under ``databases``):
  content-hash detection only, no row or schema introspection.

Both comparators are pure: they never write to either tree, and a file
that cannot be read is logged and treated as absent.
"""
import difflib
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

from core.hasher import FingerprintSet

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCE_DIRS = ("shared_prefs",)
DEFAULT_PREFERENCE_EXTENSIONS = (".xml",)
DEFAULT_DATABASE_DIRS = ("databases",)
DEFAULT_DATABASE_EXTENSIONS = (".db", ".sqlite", ".sqlite3")


@dataclass(frozen=True)
class StructuralLocations:
    """Directory names and extensions that mark the structured formats."""
    preference_dirs: tuple[str, ...] = DEFAULT_PREFERENCE_DIRS
    preference_extensions: tuple[str, ...] = DEFAULT_PREFERENCE_EXTENSIONS
    database_dirs: tuple[str, ...] = DEFAULT_DATABASE_DIRS
    database_extensions: tuple[str, ...] = DEFAULT_DATABASE_EXTENSIONS

    def is_preference_file(self, relative_path: str) -> bool:
        return _matches(relative_path, self.preference_dirs, self.preference_extensions)

    def is_database_file(self, relative_path: str) -> bool:
        return _matches(relative_path, self.database_dirs, self.database_extensions)


def _matches(relative_path: str, dir_names: tuple[str, ...], extensions: tuple[str, ...]) -> bool:
    """True when the file sits directly inside a recognized directory."""
    path = PurePosixPath(relative_path)
    if path.parent.name not in dir_names:
        return False
    suffixes = {ext.lower() for ext in extensions}
    return path.suffix.lower() in suffixes


@dataclass(frozen=True)
class PreferenceChange:
    """A preference store that differs from the baseline, or is new."""
    path: str
    diff: Optional[str] = None
    is_new: bool = False

    def to_dict(self) -> dict:
        return {"path": self.path, "is_new": self.is_new, "diff": self.diff}

    @classmethod
    def from_dict(cls, data: dict) -> "PreferenceChange":
        return cls(path=data["path"], diff=data.get("diff"), is_new=data.get("is_new", False))


class DatabaseChangeKind(str, Enum):
    MODIFIED = "modified"
    NEW = "new"


@dataclass(frozen=True)
class DatabaseChange:
    """An embedded database whose content hash changed, or that is new."""
    path: str
    kind: DatabaseChangeKind
    old_hash: Optional[str] = None
    new_hash: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "kind": self.kind.value,
            "old_hash": self.old_hash,
            "new_hash": self.new_hash
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DatabaseChange":
        return cls(
            path=data["path"],
            kind=DatabaseChangeKind(data["kind"]),
            old_hash=data.get("old_hash"),
            new_hash=data.get("new_hash")
        )


@dataclass
class StructuredChanges:
    """Both comparator outputs for one run."""
    preferences: list[PreferenceChange] = field(default_factory=list)
    databases: list[DatabaseChange] = field(default_factory=list)


def _read_lines(path: Path) -> Optional[list[str]]:
    # Line endings kept as-is and undecodable bytes escaped, so differing
    # bytes never read back as identical text
    try:
        with open(path, "r", encoding="utf-8", errors="backslashreplace", newline="") as f:
            return f.readlines()
    except OSError as e:
        logger.warning(f"Could not read {path}, treating as absent: {e}")
        return None


def diff_text(old_lines: list[str], new_lines: list[str], path: str, context_lines: int = 3) -> str:
    """Unified line diff of two file versions; empty string when identical."""
    diff = difflib.unified_diff(
        old_lines,
        new_lines,
        fromfile=f"baseline/{path}",
        tofile=f"current/{path}",
        n=context_lines
    )
    lines = []
    for line in diff:
        lines.append(line if line.endswith("\n") else line + "\n")
    return "".join(lines)


def compare_preferences(
    baseline_root: Path,
    current_root: Path,
    baseline_fps: FingerprintSet,
    current_fps: FingerprintSet,
    locations: StructuralLocations,
    context_lines: int = 3
) -> list[PreferenceChange]:
    """
    Compare preference stores that live in paired directories.

    A preference directory in the current tree is only considered when the
    baseline tree has a directory at the same relative path; otherwise the
    tree differ already reports its files as added.

    Returns:
        PreferenceChange entries sorted by path
    """
    baseline_root = Path(baseline_root)
    current_root = Path(current_root)
    changes = []
    paired_dirs = {}

    for path in sorted(current_fps):
        if not locations.is_preference_file(path):
            continue

        parent = PurePosixPath(path).parent.as_posix()
        if parent not in paired_dirs:
            paired_dirs[parent] = (baseline_root / parent).is_dir()
        if not paired_dirs[parent]:
            continue

        old_hash = baseline_fps.get(path)
        if old_hash is not None and old_hash == current_fps[path]:
            continue

        new_lines = _read_lines(current_root / path)
        if new_lines is None:
            continue

        old_lines = _read_lines(baseline_root / path) if old_hash is not None else None
        if old_lines is None:
            changes.append(PreferenceChange(path=path, is_new=True))
            continue

        diff = diff_text(old_lines, new_lines, path, context_lines)
        if not diff:
            diff = f"Files baseline/{path} and current/{path} differ\n"
        changes.append(PreferenceChange(path=path, diff=diff))

    return changes


def compare_databases(
    baseline_fps: FingerprintSet,
    current_fps: FingerprintSet,
    locations: StructuralLocations
) -> list[DatabaseChange]:
    """
    Hash-level detection of changed or new embedded database files.

    Returns:
        DatabaseChange entries sorted by path
    """
    changes = []
    for path in sorted(current_fps):
        if not locations.is_database_file(path):
            continue

        new_hash = current_fps[path]
        old_hash = baseline_fps.get(path)
        if old_hash is None:
            changes.append(DatabaseChange(path=path, kind=DatabaseChangeKind.NEW, new_hash=new_hash))
        elif old_hash != new_hash:
            changes.append(DatabaseChange(
                path=path,
                kind=DatabaseChangeKind.MODIFIED,
                old_hash=old_hash,
                new_hash=new_hash
            ))
    return changes


def compare_structured(
    baseline_root: Path,
    current_root: Path,
    baseline_fps: FingerprintSet,
    current_fps: FingerprintSet,
    locations: Optional[StructuralLocations] = None,
    context_lines: int = 3
) -> StructuredChanges:
    """Run both structured comparators over the two trees."""
    locations = locations or StructuralLocations()
    return StructuredChanges(
        preferences=compare_preferences(
            baseline_root, current_root, baseline_fps, current_fps, locations, context_lines
        ),
        databases=compare_databases(baseline_fps, current_fps, locations)
    )
