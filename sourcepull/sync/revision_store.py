"""Revision tracking for maintaining the pull checkpoint.

Known limitation: the remote environment can change between the revision
query, the retrieval and the checkpoint rebuild. Changes that land in that
window are not folded into the current pull. ``set_checkpoint_from_full_query``
records them only as last-known remote revisions, never as applied ones, so
the next pull sees them as pending and retrieves them.
"""

from typing import Iterable

import structlog

from sourcepull.models.members import (
    ObsoleteName,
    RevisionCheckpoint,
    RevisionDiff,
    TrackedMember,
)
from sourcepull.sync.interfaces import RemoteRevisionSource, RevisionPersistence
from sourcepull.utils.retry import exponential_backoff_retry

log = structlog.stdlib.get_logger()


class RevisionStore:
    """Persists per-member revisions for one environment and diffs them."""

    def __init__(
        self,
        environment: str,
        persistence: RevisionPersistence,
        remote_source: RemoteRevisionSource,
    ):
        """
        Initialize revision store.

        Args:
            environment: Environment identity the checkpoint is keyed by
            persistence: Durable storage for the checkpoint
            remote_source: Source of authoritative remote revisions
        """
        self._environment: str = environment
        self._persistence: RevisionPersistence = persistence
        self._remote_source: RemoteRevisionSource = remote_source
        self._checkpoint: RevisionCheckpoint | None = None
        log.info("revision_store_initialized", environment=environment)

    @property
    def environment(self) -> str:
        return self._environment

    @property
    def checkpoint(self) -> RevisionCheckpoint:
        if self._checkpoint is None:
            self._checkpoint = self.load_checkpoint()
        return self._checkpoint

    def load_checkpoint(self) -> RevisionCheckpoint:
        """
        Load the checkpoint from persistence.

        Returns:
            The stored checkpoint, or an empty one for a new environment
        """
        checkpoint = self._persistence.load(self._environment)
        if checkpoint is None:
            log.info("no_checkpoint_found", environment=self._environment)
            checkpoint = RevisionCheckpoint(environment=self._environment)
        else:
            log.info(
                "checkpoint_loaded",
                environment=self._environment,
                member_count=len(checkpoint.members),
                max_revision=checkpoint.max_revision,
            )
        self._checkpoint = checkpoint
        return checkpoint

    @exponential_backoff_retry(max_retries=2, base_delay=1.0, max_delay=10.0)
    def query_remote(self) -> list[TrackedMember]:
        """Query the remote environment for the current revision of every member."""
        members = list(self._remote_source.query_revisions())
        log.info("remote_revisions_queried", environment=self._environment, member_count=len(members))
        return members

    def diff(self, remote_members: Iterable[TrackedMember]) -> RevisionDiff:
        """
        Compare remote revisions against the checkpoint.

        Args:
            remote_members: Members as just queried from the remote environment

        Returns:
            RevisionDiff with members to retrieve and obsolete names
        """
        checkpoint = self.checkpoint
        to_retrieve: list[TrackedMember] = []
        obsolete: list[ObsoleteName] = []
        seen: set[str] = set()

        for remote in remote_members:
            seen.add(remote.key)
            stored = checkpoint.get(remote.key)

            if remote.deleted:
                if stored is not None:
                    obsolete.append(_obsolete_name(remote, stored))
                continue

            applied = stored.local_revision if stored is not None else None
            if applied is None or remote.remote_revision > applied:
                to_retrieve.append(
                    remote.model_copy(update={"local_revision": applied, "deleted": False})
                )

        for key, stored in checkpoint.members.items():
            if key not in seen:
                obsolete.append(_obsolete_name(stored, stored))

        diff = RevisionDiff(to_retrieve=to_retrieve, obsolete=obsolete)
        log.info(
            "revision_diff_computed",
            environment=self._environment,
            to_retrieve=len(to_retrieve),
            obsolete=len(obsolete),
        )
        return diff

    def update_checkpoint(
        self,
        applied_members: Iterable[TrackedMember],
        removed: Iterable[ObsoleteName] = (),
    ) -> None:
        """
        Advance stored revisions for members confirmed written locally.

        Args:
            applied_members: Members (with the retrieved remote revision) whose
                             content was durably written
            removed: Obsolete names whose local elements were deleted
        """
        checkpoint = self.checkpoint
        advanced = 0
        dropped = 0

        for member in applied_members:
            stored = checkpoint.get(member.key)
            revision = member.remote_revision
            if stored is not None and stored.local_revision is not None:
                revision = max(revision, stored.local_revision)
            checkpoint.members[member.key] = TrackedMember(
                type=member.type,
                full_name=member.full_name,
                local_revision=revision,
                remote_revision=max(revision, stored.remote_revision if stored else 0),
                package=member.package,
            )
            advanced += 1

        for name in removed:
            if checkpoint.members.pop(name.key, None) is not None:
                dropped += 1

        self._persistence.save(checkpoint)
        log.info(
            "checkpoint_updated",
            environment=self._environment,
            members_advanced=advanced,
            members_removed=dropped,
        )

    def set_checkpoint_from_full_query(self) -> RevisionCheckpoint:
        """
        Rebuild last-known remote revisions from an authoritative query.

        Applied revisions are left untouched; members deleted remotely keep
        their entry until their local deletion is applied.

        Returns:
            The persisted checkpoint
        """
        remote_members = self.query_remote()
        checkpoint = self.checkpoint
        max_revision = checkpoint.max_revision

        for remote in remote_members:
            max_revision = max(max_revision, remote.remote_revision)
            if remote.deleted:
                continue
            stored = checkpoint.get(remote.key)
            if stored is None:
                checkpoint.members[remote.key] = TrackedMember(
                    type=remote.type,
                    full_name=remote.full_name,
                    local_revision=None,
                    remote_revision=remote.remote_revision,
                    package=remote.package,
                )
            else:
                stored.remote_revision = remote.remote_revision
                if remote.package is not None:
                    stored.package = remote.package

        checkpoint.max_revision = max_revision
        self._persistence.save(checkpoint)

        log.info(
            "checkpoint_rebuilt_from_query",
            environment=self._environment,
            member_count=len(checkpoint.members),
            max_revision=max_revision,
        )
        return checkpoint


def _obsolete_name(member: TrackedMember, stored: TrackedMember) -> ObsoleteName:
    return ObsoleteName(
        full_name=member.full_name,
        type=member.type,
        package=member.package or stored.package,
    )
