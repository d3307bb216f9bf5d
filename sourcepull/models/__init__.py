"""Data models for the source pull engine."""

from sourcepull.models.config import (
    AppConfig,
    EnvironmentConfig,
    LoggingConfig,
    MetadataConfig,
    PullSettings,
    WorkspaceConfig,
)
from sourcepull.models.members import (
    ConflictEntry,
    MemberStatus,
    ObsoleteName,
    Package,
    RevisionCheckpoint,
    RevisionDiff,
    TrackedMember,
    member_key,
)
from sourcepull.models.results import (
    AggregateSourceElements,
    ElementState,
    FileProperty,
    OutcomeStatus,
    PackageContext,
    PackageOutcome,
    PullResult,
    RetrievalManifest,
    RetrievalResult,
    RetrieveStatus,
    WorkspaceElement,
)

__all__ = [
    "AppConfig",
    "EnvironmentConfig",
    "LoggingConfig",
    "MetadataConfig",
    "PullSettings",
    "WorkspaceConfig",
    "ConflictEntry",
    "MemberStatus",
    "ObsoleteName",
    "Package",
    "RevisionCheckpoint",
    "RevisionDiff",
    "TrackedMember",
    "member_key",
    "AggregateSourceElements",
    "ElementState",
    "FileProperty",
    "OutcomeStatus",
    "PackageContext",
    "PackageOutcome",
    "PullResult",
    "RetrievalManifest",
    "RetrievalResult",
    "RetrieveStatus",
    "WorkspaceElement",
]
