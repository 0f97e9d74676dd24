"""
Baseline store for the Tidemark baseline engine.

Every target gets an isolated namespace under the output directory:

    <output>/<target>_assessment/
        baseline/
            app_data/      raw copy of the tree (owned by the store)
            baseline.db    baseline record, fingerprints and metadata
        reports/           comparison reports (.txt artifact + .json)
        current/           scratch space for the current snapshot

A baseline is built in a staging directory and swapped into place only
once it is complete, so a failed save never leaves a partial baseline.
"""
import json
import logging
import re
import shutil
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from config import settings
from core.errors import ConflictError, InvalidTargetError, NotFoundError, StorageError
from core.hasher import HASH_ALGORITHM, FingerprintSet, ignore_special_files
from core.report import ComparisonReport, render_text_report
from database import BaselineRecord, FileFingerprint, MetadataEntry, open_session

logger = logging.getLogger(__name__)

NAMESPACE_SUFFIX = "_assessment"
BASELINE_DIR = "baseline"
TREE_DIR = "app_data"
DB_FILE = "baseline.db"
REPORTS_DIR = "reports"
CURRENT_DIR = "current"
REPORT_PREFIX = "comparison_report_"

TARGET_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
REPORT_NAME_PATTERN = re.compile(r"^comparison_report_[0-9_]+$")

# Namespace path -> lock; shared by every store instance in the process
_TARGET_LOCKS: dict[str, threading.RLock] = {}
_TARGET_LOCKS_GUARD = threading.Lock()


def validate_target(target: str) -> str:
    """Reject names that cannot safely become a directory name."""
    if not target or not TARGET_PATTERN.match(target) or target in (".", ".."):
        raise InvalidTargetError(
            f"Invalid target name: {target!r}",
            hint="Use an application identifier such as com.example.app."
        )
    return target


def _encode_path(path: str) -> bytes:
    # os.walk hands back undecodable file name bytes as lone surrogates
    return path.encode("utf-8", "surrogateescape")


def _decode_path(value: bytes) -> str:
    return value.decode("utf-8", "surrogateescape")


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands datetimes back naive; they were written as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Baseline:
    """A persisted reference snapshot of a target's tree."""
    target: str
    created_at: datetime
    fingerprints: FingerprintSet
    metadata: dict[str, str]
    tree_path: Path
    hash_algorithm: str = HASH_ALGORITHM

    @property
    def file_count(self) -> int:
        return len(self.fingerprints)


@dataclass(frozen=True)
class BaselineSummary:
    """Listing entry for one stored baseline."""
    target: str
    created_at: Optional[datetime] = None
    metadata: dict[str, str] = field(default_factory=dict)


class BaselineStore:
    """Persists baselines and comparison reports per target."""

    def __init__(self, root: Path):
        self.root = Path(root)

    # ------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------

    def namespace(self, target: str) -> Path:
        return self.root / f"{validate_target(target)}{NAMESPACE_SUFFIX}"

    def baseline_dir(self, target: str) -> Path:
        return self.namespace(target) / BASELINE_DIR

    def reports_dir(self, target: str) -> Path:
        return self.namespace(target) / REPORTS_DIR

    def exists(self, target: str) -> bool:
        return (self.baseline_dir(target) / DB_FILE).is_file()

    @contextmanager
    def target_lock(self, target: str):
        """
        Hold the per-target lock for the duration of a run.

        Raises:
            ConflictError: another run against the target is in flight
        """
        key = str(self.namespace(target).resolve())
        with _TARGET_LOCKS_GUARD:
            lock = _TARGET_LOCKS.setdefault(key, threading.RLock())
        if not lock.acquire(blocking=False):
            raise ConflictError(f"A run against '{target}' is already in progress.")
        try:
            yield
        finally:
            lock.release()

    # ------------------------------------------------------------
    # Baselines
    # ------------------------------------------------------------

    def save(
        self,
        target: str,
        fingerprints: FingerprintSet,
        tree_dir: Path,
        metadata: Optional[dict[str, str]] = None,
        overwrite: bool = False
    ) -> Baseline:
        """
        Persist a baseline for target.

        Args:
            target: Target name
            fingerprints: Fingerprint set of tree_dir
            tree_dir: Directory to copy as the raw baseline tree
            metadata: Environment facts to record verbatim
            overwrite: Caller confirmed replacing an existing baseline

        Raises:
            ConflictError: a baseline exists and overwrite is False
            StorageError: the baseline could not be written; nothing was persisted
        """
        with self.target_lock(target):
            if self.exists(target) and not overwrite:
                raise ConflictError(
                    f"A baseline already exists for '{target}'.",
                    hint="Confirm the overwrite to replace it."
                )

            namespace = self.namespace(target)
            staging = namespace / f".staging-{uuid.uuid4().hex}"
            created_at = datetime.now(timezone.utc)

            record_metadata = dict(metadata or {})
            record_metadata["Created"] = created_at.strftime("%Y-%m-%dT%H:%M:%SZ")
            record_metadata["Total Files"] = str(len(fingerprints))

            try:
                staging.mkdir(parents=True)
                shutil.copytree(tree_dir, staging / TREE_DIR, symlinks=True, ignore=ignore_special_files)

                with open_session(staging / DB_FILE, create=True) as db:
                    db.add(BaselineRecord(
                        target=target,
                        created_at=created_at,
                        hash_algorithm=HASH_ALGORITHM,
                        file_count=len(fingerprints),
                        tool_version=settings.APP_VERSION
                    ))
                    db.add_all(
                        FileFingerprint(path=_encode_path(path), digest=digest)
                        for path, digest in fingerprints.items()
                    )
                    db.add_all(
                        MetadataEntry(key=key, value=str(value))
                        for key, value in record_metadata.items()
                    )
                    db.commit()

                self._swap_in(staging, self.baseline_dir(target))
            except Exception as e:
                # Nothing from a failed save may survive, whatever the cause
                shutil.rmtree(staging, ignore_errors=True)
                raise StorageError(f"Failed to save baseline for '{target}': {e}") from e

            logger.info(f"Baseline saved for {target} ({len(fingerprints)} files)")
            return Baseline(
                target=target,
                created_at=created_at,
                fingerprints=dict(fingerprints),
                metadata=record_metadata,
                tree_path=self.baseline_dir(target) / TREE_DIR
            )

    def _swap_in(self, staging: Path, baseline_dir: Path):
        """Replace baseline_dir with staging, keeping the old one until the swap succeeds."""
        if not baseline_dir.exists():
            staging.rename(baseline_dir)
            return

        trash = baseline_dir.parent / f".trash-{uuid.uuid4().hex}"
        baseline_dir.rename(trash)
        try:
            staging.rename(baseline_dir)
        except OSError:
            trash.rename(baseline_dir)
            raise
        shutil.rmtree(trash, ignore_errors=True)

    def load(self, target: str) -> Baseline:
        """
        Load the stored baseline for target.

        Raises:
            NotFoundError: no baseline exists
            StorageError: the baseline database could not be read
        """
        if not self.exists(target):
            raise NotFoundError(
                f"No baseline found for '{target}'.",
                hint=f"Run 'tidemark baseline {target}' to create a baseline first."
            )

        baseline_dir = self.baseline_dir(target)
        try:
            with open_session(baseline_dir / DB_FILE) as db:
                record = db.query(BaselineRecord).first()
                if record is None:
                    raise StorageError(f"Baseline database for '{target}' has no baseline record")
                created_at = _utc(record.created_at)
                hash_algorithm = record.hash_algorithm
                fingerprints = dict(sorted(
                    (_decode_path(f.path), f.digest)
                    for f in db.query(FileFingerprint)
                ))
                metadata = {
                    m.key: m.value
                    for m in db.query(MetadataEntry).order_by(MetadataEntry.key)
                }
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read baseline for '{target}': {e}") from e

        return Baseline(
            target=target,
            created_at=created_at,
            fingerprints=fingerprints,
            metadata=metadata,
            tree_path=baseline_dir / TREE_DIR,
            hash_algorithm=hash_algorithm
        )

    def list_baselines(self) -> Iterator[BaselineSummary]:
        """
        Lazily yield a summary for every stored baseline, ordered by target.

        Yields nothing when the output directory holds no baselines.
        """
        if not self.root.is_dir():
            return

        for namespace in sorted(self.root.glob(f"*{NAMESPACE_SUFFIX}")):
            target = namespace.name[:-len(NAMESPACE_SUFFIX)]
            if target in (".", "..") or not TARGET_PATTERN.match(target):
                continue
            if not namespace.is_dir() or not self.exists(target):
                continue
            try:
                with open_session(self.baseline_dir(target) / DB_FILE) as db:
                    record = db.query(BaselineRecord).first()
                    created_at = _utc(record.created_at) if record else None
                    metadata = {m.key: m.value for m in db.query(MetadataEntry).order_by(MetadataEntry.key)}
            except SQLAlchemyError as e:
                logger.warning(f"Could not read baseline metadata for {target}: {e}")
                yield BaselineSummary(target=target)
                continue
            yield BaselineSummary(target=target, created_at=created_at, metadata=metadata)

    def remove(self, target: str, include_reports: bool = False):
        """Delete the baseline for target. Succeeds when nothing is stored."""
        with self.target_lock(target):
            path = self.namespace(target) if include_reports else self.baseline_dir(target)
            if not path.exists():
                return
            try:
                shutil.rmtree(path)
            except OSError as e:
                raise StorageError(f"Failed to remove {path}: {e}") from e
            logger.info(f"Removed {path}")

    # ------------------------------------------------------------
    # Current-state scratch space
    # ------------------------------------------------------------

    def snapshot_dir(self, target: str) -> Path:
        """Fresh, empty scratch directory for acquiring the current tree."""
        path = self.namespace(target) / CURRENT_DIR
        try:
            if path.exists():
                shutil.rmtree(path)
            path.mkdir(parents=True)
        except OSError as e:
            raise StorageError(f"Failed to prepare snapshot directory {path}: {e}") from e
        return path

    def discard_snapshot(self, path: Path):
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove snapshot directory {path}: {e}")

    # ------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------

    def save_report(self, report: ComparisonReport) -> Path:
        """
        Write a comparison report as a text artifact plus a JSON record.

        Existing reports are never overwritten.

        Returns:
            Path of the text artifact
        """
        reports_dir = self.reports_dir(report.target)
        stamp = report.created_at.strftime("%Y%m%d_%H%M%S")
        name = f"{REPORT_PREFIX}{stamp}"
        suffix = 1
        try:
            reports_dir.mkdir(parents=True, exist_ok=True)
            while (reports_dir / f"{name}.txt").exists() or (reports_dir / f"{name}.json").exists():
                name = f"{REPORT_PREFIX}{stamp}_{suffix}"
                suffix += 1

            text_path = reports_dir / f"{name}.txt"
            with open(reports_dir / f"{name}.json", "x", encoding="utf-8") as f:
                json.dump(report.to_dict(), f, indent=2)
            with open(text_path, "x", encoding="ascii") as f:
                f.write(render_text_report(report))
        except OSError as e:
            raise StorageError(f"Failed to write report for '{report.target}': {e}") from e

        logger.info(f"Report saved: {text_path}")
        return text_path

    def list_reports(self, target: str) -> list[str]:
        """Names of stored reports for target, oldest first."""
        reports_dir = self.reports_dir(target)
        if not reports_dir.is_dir():
            return []
        return sorted(p.stem for p in reports_dir.glob(f"{REPORT_PREFIX}*.txt"))

    def _report_path(self, target: str, name: str, extension: str) -> Path:
        path = self.reports_dir(target) / f"{name}{extension}"
        if not REPORT_NAME_PATTERN.match(name) or not path.is_file():
            raise NotFoundError(f"Report '{name}' not found for '{target}'.")
        return path

    def load_report(self, target: str, name: str) -> ComparisonReport:
        path = self._report_path(target, name, ".json")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return ComparisonReport.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            raise StorageError(f"Failed to read report {path}: {e}") from e

    def report_text(self, target: str, name: str) -> str:
        path = self._report_path(target, name, ".txt")
        try:
            return path.read_text(encoding="ascii")
        except OSError as e:
            raise StorageError(f"Failed to read report {path}: {e}") from e


def get_store() -> BaselineStore:
    """Store rooted at the configured output directory."""
    return BaselineStore(settings.OUTPUT_DIR)
