"""Interfaces of the collaborators the pull engine depends on.

The remote environment, the status service and the workspace backing store
are provided by the caller. ``sourcepull.storage`` ships file-based
implementations of the checkpoint persistence and the workspace store.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable

from sourcepull.models.members import MemberStatus, RevisionCheckpoint, TrackedMember
from sourcepull.models.results import (
    AggregateSourceElements,
    FileProperty,
    RetrievalManifest,
    RetrievalResult,
)


class RetrievalGatewayError(Exception):
    """Raised by a gateway when a retrieve call fails.

    ``result`` mirrors the failed retrieval result when the gateway has one.
    """

    def __init__(self, message: str, result: RetrievalResult | None = None):
        super().__init__(message)
        self.result = result


class RetrievalTimeoutError(RetrievalGatewayError):
    """Raised when a retrieve call exceeds the wait timeout."""


class StatusQueryError(Exception):
    """Raised by a status service when the status query fails."""

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


@runtime_checkable
class RetrievalGateway(Protocol):
    def retrieve(
        self, manifest: RetrievalManifest, target_dir: Path, wait_minutes: int
    ) -> RetrievalResult: ...


@runtime_checkable
class RemoteRevisionSource(Protocol):
    def query_revisions(self) -> list[TrackedMember]: ...


@runtime_checkable
class StatusService(Protocol):
    def compute_status(self, local: bool, remote: bool) -> list[MemberStatus]: ...


@runtime_checkable
class RevisionPersistence(Protocol):
    def load(self, environment: str) -> RevisionCheckpoint | None: ...

    def save(self, checkpoint: RevisionCheckpoint) -> None: ...


@runtime_checkable
class WorkspaceStore(Protocol):
    def process_entry(
        self,
        aggregate: AggregateSourceElements,
        target_dir: Path,
        file_property: FileProperty,
        composite_map: dict[str, FileProperty],
    ) -> None: ...

    def remove_obsolete(
        self, aggregate: AggregateSourceElements, full_name: str, member_type: str
    ) -> None: ...

    def commit(
        self,
        aggregate: AggregateSourceElements,
        manifest_ref: Path | None,
        skip_duplicate_check: bool,
        unsupported_mime_types: list[str],
        force_overwrite: bool,
    ) -> AggregateSourceElements: ...
