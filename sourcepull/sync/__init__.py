"""Synchronization components for pulling remote source into the workspace."""

from sourcepull.sync.conflict_checker import ConflictChecker
from sourcepull.sync.errors import (
    PullError,
    PullErrorKind,
    RetrieveFailedError,
    SourceConflictError,
    UnsupportedEnvironmentError,
)
from sourcepull.sync.manifest_builder import ManifestBuilder, read_manifest
from sourcepull.sync.metadata_registry import MetadataRegistry
from sourcepull.sync.pull_orchestrator import PullOptions, PullOrchestrator, PullState
from sourcepull.sync.revision_store import RevisionStore
from sourcepull.sync.sync_applier import SyncApplier

__all__ = [
    "ConflictChecker",
    "ManifestBuilder",
    "MetadataRegistry",
    "PullError",
    "PullErrorKind",
    "PullOptions",
    "PullOrchestrator",
    "PullState",
    "RetrieveFailedError",
    "RevisionStore",
    "SourceConflictError",
    "SyncApplier",
    "UnsupportedEnvironmentError",
    "read_manifest",
]
