# Tidemark v1.0.0
"""
Services package for the Tidemark baseline engine.
Contains the baseline store, the run orchestrator and device collaborators.
"""
from services.store import BaselineStore, Baseline, BaselineSummary, get_store, validate_target
from services.transport import (
    TreeFetcher,
    MetadataProvider,
    LocalTreeFetcher,
    StaticMetadataProvider,
    AdbClient,
    AdbTreeFetcher,
    AdbMetadataProvider
)
from services.orchestrator import ComparisonOrchestrator, ComparisonOutcome, RunState

__all__ = [
    "BaselineStore",
    "Baseline",
    "BaselineSummary",
    "get_store",
    "validate_target",
    "TreeFetcher",
    "MetadataProvider",
    "LocalTreeFetcher",
    "StaticMetadataProvider",
    "AdbClient",
    "AdbTreeFetcher",
    "AdbMetadataProvider",
    "ComparisonOrchestrator",
    "ComparisonOutcome",
    "RunState"
]
