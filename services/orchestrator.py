"""
Comparison orchestration for the Tidemark baseline engine.

Drives the two run types as explicit state machines:

    compare:          INIT -> ACQUIRE_CURRENT -> LOAD_BASELINE -> RECONCILE
                      -> STRUCTURED_COMPARE -> REPORT -> DONE
    create baseline:  INIT -> ACQUIRE_CURRENT -> SAVE -> DONE

FAILED is reachable from every state. This is the only layer that decides
whether an error ends the run; lower layers just raise typed errors.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from core.differ import diff_fingerprints
from core.errors import (
    NotFoundError, ConflictError, RunCancelledError, TidemarkError, TransportError
)
from core.hasher import DEFAULT_CHUNK_SIZE, hash_tree
from core.report import ComparisonReport
from core.structured import StructuralLocations, compare_structured
from services.store import Baseline, BaselineStore, validate_target
from services.transport import MetadataProvider, StaticMetadataProvider, TreeFetcher

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_TEMPLATE = "/data/data/{target}"


class RunState(str, Enum):
    """States of a comparison or baseline-creation run."""
    INIT = "init"
    ACQUIRE_CURRENT = "acquire_current"
    LOAD_BASELINE = "load_baseline"
    RECONCILE = "reconcile"
    STRUCTURED_COMPARE = "structured_compare"
    REPORT = "report"
    SAVE = "save"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ComparisonOutcome:
    """A finished comparison run and where its report was written."""
    report: ComparisonReport
    report_path: Path


class ComparisonOrchestrator:
    """
    Runs baseline creation and comparison for one target at a time.

    Args:
        store: Baseline store / report sink
        fetcher: Tree acquisition collaborator
        metadata_provider: Environment facts attached to new baselines
        locations: Recognized preference/database locations
        source_template: Source path on the device, formatted with {target}
        hash_workers: Thread pool size for hashing
        hash_chunk_size: Read size while hashing
        context_lines: Context lines for preference diffs
        retain_snapshot: Keep the current-state snapshot after a compare
        cancel_event: Set to stop the run at the next state transition
    """

    def __init__(
        self,
        store: BaselineStore,
        fetcher: TreeFetcher,
        metadata_provider: Optional[MetadataProvider] = None,
        locations: Optional[StructuralLocations] = None,
        source_template: str = DEFAULT_SOURCE_TEMPLATE,
        hash_workers: Optional[int] = None,
        hash_chunk_size: int = DEFAULT_CHUNK_SIZE,
        context_lines: int = 3,
        retain_snapshot: bool = False,
        cancel_event: Optional[threading.Event] = None
    ):
        self.store = store
        self.fetcher = fetcher
        self.metadata_provider = metadata_provider or StaticMetadataProvider()
        self.locations = locations or StructuralLocations()
        self.source_template = source_template
        self.hash_workers = hash_workers
        self.hash_chunk_size = hash_chunk_size
        self.context_lines = context_lines
        self.retain_snapshot = retain_snapshot
        self.cancel_event = cancel_event or threading.Event()

        self.state = RunState.INIT
        self.history: list[RunState] = []

    # ------------------------------------------------------------
    # State machine plumbing
    # ------------------------------------------------------------

    def _reset(self):
        self.state = RunState.INIT
        self.history = [RunState.INIT]

    def _transition(self, state: RunState):
        if self.cancel_event.is_set():
            raise RunCancelledError(f"Run cancelled before {state.value}")
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _fail(self, error: Exception):
        logger.error(f"Run failed in {self.state.value}: {error}")
        self.state = RunState.FAILED
        self.history.append(RunState.FAILED)

    def _acquire(self, target: str, destination: Path):
        """Fetch the target's tree into destination and fingerprint it."""
        self.fetcher.check_target(target)
        source_path = self.source_template.format(target=target)
        try:
            tree_root = self.fetcher.fetch_tree(source_path, destination)
        except TidemarkError:
            raise
        except OSError as e:
            raise TransportError(f"Failed to acquire {source_path}: {e}") from e

        # The fetch is the only slow step; honour a cancel that arrived meanwhile
        if self.cancel_event.is_set():
            raise RunCancelledError("Run cancelled after acquisition")

        fingerprints = hash_tree(tree_root, workers=self.hash_workers, chunk_size=self.hash_chunk_size)
        return tree_root, fingerprints

    # ------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------

    def create_baseline(self, target: str, overwrite: bool = False) -> Baseline:
        """
        Acquire the target's tree and save it as the baseline.

        Raises:
            ConflictError: a baseline exists and overwrite is False
            TransportError, InsufficientPrivilegeError: acquisition failed
            StorageError: hashing or persistence failed
        """
        self._reset()
        try:
            validate_target(target)
            with self.store.target_lock(target):
                if self.store.exists(target) and not overwrite:
                    raise ConflictError(
                        f"A baseline already exists for '{target}'.",
                        hint="Confirm the overwrite to replace it."
                    )

                self._transition(RunState.ACQUIRE_CURRENT)
                scratch = self.store.snapshot_dir(target)
                try:
                    tree_root, fingerprints = self._acquire(target, scratch)
                    metadata = self.metadata_provider.collect(target)

                    self._transition(RunState.SAVE)
                    baseline = self.store.save(
                        target, fingerprints, tree_root, metadata, overwrite=overwrite
                    )
                finally:
                    self.store.discard_snapshot(scratch)

                self._transition(RunState.DONE)
                return baseline
        except TidemarkError as e:
            self._fail(e)
            raise

    def compare(self, target: str) -> ComparisonOutcome:
        """
        Compare the target's current tree against its baseline.

        Raises:
            NotFoundError: no baseline exists for target
            TransportError, InsufficientPrivilegeError: acquisition failed
            StorageError: hashing, loading or report persistence failed
        """
        self._reset()
        try:
            validate_target(target)
            with self.store.target_lock(target):
                # Fail before any device I/O when there is nothing to compare against
                if not self.store.exists(target):
                    raise NotFoundError(
                        f"No baseline found for '{target}'.",
                        hint=f"Run 'tidemark baseline {target}' to create a baseline first."
                    )

                self._transition(RunState.ACQUIRE_CURRENT)
                scratch = self.store.snapshot_dir(target)
                try:
                    current_root, current_fps = self._acquire(target, scratch)

                    self._transition(RunState.LOAD_BASELINE)
                    baseline = self.store.load(target)

                    self._transition(RunState.RECONCILE)
                    changes = diff_fingerprints(baseline.fingerprints, current_fps)

                    self._transition(RunState.STRUCTURED_COMPARE)
                    structured = compare_structured(
                        baseline.tree_path,
                        current_root,
                        baseline.fingerprints,
                        current_fps,
                        self.locations,
                        self.context_lines
                    )

                    self._transition(RunState.REPORT)
                    report = ComparisonReport(
                        target=target,
                        created_at=datetime.now(timezone.utc),
                        baseline_created_at=baseline.created_at,
                        changes=tuple(changes),
                        preference_changes=tuple(structured.preferences),
                        database_changes=tuple(structured.databases),
                        total_files=len(current_fps)
                    )
                    report_path = self.store.save_report(report)
                finally:
                    if self.retain_snapshot:
                        logger.info(f"Current snapshot retained at {scratch}")
                    else:
                        self.store.discard_snapshot(scratch)

                self._transition(RunState.DONE)
                logger.info(f"Comparison complete for {target}: {report.summary()}")
                return ComparisonOutcome(report=report, report_path=report_path)
        except TidemarkError as e:
            self._fail(e)
            raise
