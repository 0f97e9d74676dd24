"""
Tree reconciliation for the Tidemark baseline engine.

Classifies every path of two fingerprint sets as added, removed or
modified. Unchanged paths are omitted from the result.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.hasher import FingerprintSet


class ChangeType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


# Report order of the change groups
CHANGE_ORDER = (ChangeType.ADDED, ChangeType.REMOVED, ChangeType.MODIFIED)


@dataclass(frozen=True)
class ChangeRecord:
    """A single file-level difference between baseline and current tree."""
    path: str
    change_type: ChangeType
    old_hash: Optional[str] = None
    new_hash: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "path": self.path,
            "change_type": self.change_type.value,
        }
        if self.old_hash is not None:
            result["old_hash"] = self.old_hash
        if self.new_hash is not None:
            result["new_hash"] = self.new_hash
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeRecord":
        return cls(
            path=data["path"],
            change_type=ChangeType(data["change_type"]),
            old_hash=data.get("old_hash"),
            new_hash=data.get("new_hash")
        )


def diff_fingerprints(baseline: FingerprintSet, current: FingerprintSet) -> list[ChangeRecord]:
    """
    Reconcile two fingerprint sets.

    - path only in current            -> ADDED
    - path only in baseline           -> REMOVED
    - path in both, digests differ    -> MODIFIED

    Records are grouped ADDED, REMOVED, MODIFIED and sorted by path within
    each group. Renames show up as one REMOVED plus one ADDED.
    """
    groups = {change_type: [] for change_type in CHANGE_ORDER}

    for path in baseline.keys() | current.keys():
        old_hash = baseline.get(path)
        new_hash = current.get(path)

        if old_hash is None:
            groups[ChangeType.ADDED].append(
                ChangeRecord(path=path, change_type=ChangeType.ADDED, new_hash=new_hash)
            )
        elif new_hash is None:
            groups[ChangeType.REMOVED].append(
                ChangeRecord(path=path, change_type=ChangeType.REMOVED, old_hash=old_hash)
            )
        elif old_hash != new_hash:
            groups[ChangeType.MODIFIED].append(
                ChangeRecord(
                    path=path,
                    change_type=ChangeType.MODIFIED,
                    old_hash=old_hash,
                    new_hash=new_hash
                )
            )

    changes = []
    for change_type in CHANGE_ORDER:
        changes.extend(sorted(groups[change_type], key=lambda c: c.path))
    return changes
