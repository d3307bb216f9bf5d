"""Conflict detection between local and remote edits."""

import structlog

from sourcepull.models.members import ConflictEntry, MemberStatus, RevisionCheckpoint
from sourcepull.sync.errors import UnsupportedEnvironmentError
from sourcepull.sync.interfaces import StatusQueryError, StatusService
from sourcepull.sync.revision_store import RevisionStore

log = structlog.stdlib.get_logger()

# Status error code returned by environments without source tracking
UNSUPPORTED_TYPE_ERROR_CODE = "INVALID_TYPE"


class ConflictChecker:
    """Detects members changed on both sides since the last checkpoint."""

    def __init__(self, status_service: StatusService, revision_store: RevisionStore):
        self._status_service: StatusService = status_service
        self._revision_store: RevisionStore = revision_store

    def check_conflicts(self, force_overwrite: bool = False) -> list[ConflictEntry]:
        """
        Compute three-way conflicts between local, remote and checkpoint.

        Args:
            force_overwrite: Skip the check entirely (no status query is made)

        Returns:
            List of conflicts, empty if none

        Raises:
            UnsupportedEnvironmentError: If the environment does not support tracking
        """
        if force_overwrite:
            log.info("conflict_check_skipped", reason="force_overwrite")
            return []

        try:
            candidates = self._status_service.compute_status(local=True, remote=True)
        except StatusQueryError as e:
            if e.error_code == UNSUPPORTED_TYPE_ERROR_CODE:
                log.error(
                    "conflict_check_unsupported_environment",
                    environment=self._revision_store.environment,
                    error=str(e),
                )
                raise UnsupportedEnvironmentError(
                    "This command is only supported on environments that have source "
                    f"tracking enabled ({self._revision_store.environment})"
                ) from e
            log.error("conflict_check_failed", error=str(e), error_code=e.error_code)
            raise

        checkpoint = self._revision_store.checkpoint
        conflicts = [
            self._to_conflict(candidate, checkpoint)
            for candidate in candidates
            if candidate.local_changed and self._is_remote_changed(candidate, checkpoint)
        ]

        log.info(
            "conflict_check_completed",
            candidates=len(candidates),
            conflicts=len(conflicts),
        )
        return conflicts

    @staticmethod
    def _is_remote_changed(candidate: MemberStatus, checkpoint: RevisionCheckpoint) -> bool:
        applied = checkpoint.applied_revision(candidate.key)
        if candidate.remote_deleted:
            return applied is not None
        if candidate.remote_revision is None:
            return False
        # Never retrieved: any remote copy is a change
        return applied is None or candidate.remote_revision > applied

    @staticmethod
    def _to_conflict(candidate: MemberStatus, checkpoint: RevisionCheckpoint) -> ConflictEntry:
        return ConflictEntry(
            member=f"{candidate.type}:{candidate.full_name}",
            type=candidate.type,
            full_name=candidate.full_name,
            local_revision=checkpoint.applied_revision(candidate.key),
            remote_revision=None if candidate.remote_deleted else candidate.remote_revision,
        )
