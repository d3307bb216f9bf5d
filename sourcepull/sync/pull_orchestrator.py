"""Pull orchestration: conflict check, per-package retrieval, apply and checkpoint.

Packages are processed one at a time. A failed package does not roll back
packages applied before it; the first failure is raised after every package
has been attempted, carrying the partial result.

Known limitation: the remote can change between the revision query, the
retrieval and the checkpoint rebuild. Such changes are not applied by this
pull; they stay pending in the checkpoint and are retrieved by the next one.
"""

from enum import Enum
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

from sourcepull.models.config import AppConfig
from sourcepull.models.members import ObsoleteName, Package, RevisionDiff
from sourcepull.models.results import (
    AggregateSourceElements,
    ElementState,
    OutcomeStatus,
    PackageContext,
    PackageOutcome,
    PullResult,
    RetrievalManifest,
    RetrievalResult,
)
from sourcepull.providers import get_revision_persistence, get_workspace_store
from sourcepull.sync.conflict_checker import ConflictChecker
from sourcepull.sync.errors import PullError, RetrieveFailedError, SourceConflictError
from sourcepull.sync.interfaces import (
    RemoteRevisionSource,
    RetrievalGateway,
    RetrievalGatewayError,
    RetrievalTimeoutError,
    RevisionPersistence,
    StatusService,
    WorkspaceStore,
)
from sourcepull.sync.manifest_builder import ManifestBuilder
from sourcepull.sync.metadata_registry import MetadataRegistry
from sourcepull.sync.revision_store import RevisionStore
from sourcepull.sync.sync_applier import SyncApplier, replace_forward_slashes
from sourcepull.sync.workdir import scoped_output_dir

log = structlog.stdlib.get_logger()


class PullState(str, Enum):
    """States of a pull."""

    IDLE = "idle"
    CONFLICT_CHECK = "conflict_check"
    PARTITIONING = "partitioning"
    PER_PACKAGE = "per_package"
    CHECKPOINT = "checkpoint"
    DONE = "done"
    ERROR = "error"


class PullOptions(BaseModel):
    """Caller options for one pull."""

    force_overwrite: bool = Field(default=False, description="Skip the conflict check")
    wait_minutes: int | None = Field(
        default=None, ge=1, description="Retrieve wait timeout (config default if None)"
    )
    api_version: str | None = Field(default=None, description="Manifest API version override")
    manifest_override: Path | None = Field(
        default=None, description="Pre-built manifest used verbatim for every package"
    )
    obsolete_names: list[ObsoleteName] = Field(
        default_factory=list, description="Externally flagged obsolete members"
    )
    unsupported_mime_types: list[str] | None = Field(
        default=None, description="Mime types not written (config default if None)"
    )


class PullOrchestrator:
    """Drives a pull from the remote environment into the local workspace."""

    def __init__(
        self,
        config: AppConfig,
        gateway: RetrievalGateway,
        status_service: StatusService,
        remote_source: RemoteRevisionSource,
        workspace_store: WorkspaceStore | None = None,
        persistence: RevisionPersistence | None = None,
        metadata_registry: MetadataRegistry | None = None,
    ):
        """
        Initialize pull orchestrator.

        Args:
            config: Application configuration
            gateway: Retrieval gateway for the remote environment
            status_service: Status service used for conflict detection
            remote_source: Source of remote revisions
            workspace_store: Optional workspace store (built from config if None)
            persistence: Optional checkpoint persistence (built from config if None)
            metadata_registry: Optional registry (built from config if None)
        """
        self._config: AppConfig = config
        self._gateway: RetrievalGateway = gateway

        self._revision_store: RevisionStore = RevisionStore(
            environment=config.environment.name,
            persistence=persistence if persistence is not None else get_revision_persistence(config),
            remote_source=remote_source,
        )
        self._conflict_checker: ConflictChecker = ConflictChecker(
            status_service, self._revision_store
        )
        self._manifest_builder: ManifestBuilder = ManifestBuilder(config.retrieval_api_version)
        self._applier: SyncApplier = SyncApplier(
            workspace_store if workspace_store is not None else get_workspace_store(config),
            (
                metadata_registry
                if metadata_registry is not None
                else MetadataRegistry.from_config(config.metadata)
            ),
        )
        self.state: PullState = PullState.IDLE

        log.info("pull_orchestrator_initialized", environment=config.environment.name)

    @property
    def revision_store(self) -> RevisionStore:
        return self._revision_store

    def pull(self, options: PullOptions | None = None) -> PullResult:
        """
        Pull remote changes into the workspace.

        Args:
            options: Caller options (defaults if None)

        Returns:
            PullResult with per-package outcomes and inbound files

        Raises:
            SourceConflictError: If members changed on both sides (nothing applied)
            UnsupportedEnvironmentError: If the environment has no source tracking
            RetrieveFailedError: First failed package; ``pull_result`` holds the
                                 outcome of every package
        """
        options = options or PullOptions()
        environment = self._config.environment.name
        log.info("pull_started", environment=environment, force_overwrite=options.force_overwrite)

        try:
            self._transition(PullState.CONFLICT_CHECK)
            conflicts = self._conflict_checker.check_conflicts(options.force_overwrite)
            if conflicts:
                log.error(
                    "pull_aborted_on_conflicts",
                    environment=environment,
                    conflicts=[conflict.member for conflict in conflicts],
                )
                raise SourceConflictError(conflicts)

            self._transition(PullState.PARTITIONING)
            diff = self._revision_store.diff(self._revision_store.query_remote())
            if not diff.has_changes and not options.obsolete_names:
                log.info("no_remote_changes", environment=environment)
            packages = self._partition(diff, options.obsolete_names)

            self._transition(PullState.PER_PACKAGE)
            outcomes: list[PackageOutcome] = []
            for package in packages:
                outcome = self._pull_package(package, options)
                outcomes.append(outcome)
                if outcome.failed and self._config.pull.stop_on_first_failure:
                    log.warning("pull_stopped_after_failure", package=package.name)
                    break

            self._transition(PullState.CHECKPOINT)
            self._revision_store.set_checkpoint_from_full_query()
        except Exception:
            self._transition(PullState.ERROR)
            raise

        result = PullResult(packages=outcomes)
        failures = result.failures

        log.info(
            "pull_completed",
            environment=environment,
            packages=len(outcomes),
            failed_packages=[outcome.package_name for outcome in failures],
            inbound_files=len(result.inbound_files),
        )

        if failures:
            self._transition(PullState.ERROR)
            error = failures[0].error
            if isinstance(error, PullError):
                error.pull_result = result
            raise error

        self._transition(PullState.DONE)
        return result

    def _partition(
        self, diff: RevisionDiff, flagged_obsolete: list[ObsoleteName]
    ) -> list[Package]:
        """Group members to retrieve and obsolete names into packages."""
        default_name = self._config.pull.default_package
        packages: dict[str, Package] = {default_name: Package(name=default_name)}

        for member in diff.to_retrieve:
            name = member.package or default_name
            packages.setdefault(name, Package(name=name)).members.append(member)

        seen: set[str] = set()
        for obsolete in [*diff.obsolete, *flagged_obsolete]:
            if obsolete.key in seen:
                continue
            seen.add(obsolete.key)
            name = obsolete.package or default_name
            packages.setdefault(name, Package(name=name)).obsolete_names.append(obsolete)

        ordered = [packages[name] for name in sorted(packages)]
        log.info(
            "packages_partitioned",
            packages={package.name: len(package.members) for package in ordered},
            obsolete=len(seen),
        )
        return ordered

    def _pull_package(self, package: Package, options: PullOptions) -> PackageOutcome:
        """Retrieve and apply one package inside its own scoped directory."""
        log.debug("retrieving_package", package=package.name)
        error: PullError | None = None
        status = OutcomeStatus.FAILED
        inbound_files: list[dict] = []

        try:
            with scoped_output_dir("pull", self._config.pull.temp_dir) as target_dir:
                status, inbound_files = self._retrieve_and_apply(package, target_dir, options)
        except RetrieveFailedError as e:
            log.error(
                "package_pull_failed",
                package=package.name,
                stage=e.stage,
                status=e.status,
                error=e.message,
            )
            error = e

        return PackageOutcome(
            package_name=package.name,
            status=OutcomeStatus.FAILED if error else status,
            inbound_files=inbound_files,
            error=error,
        )

    def _retrieve_and_apply(
        self, package: Package, target_dir: Path, options: PullOptions
    ) -> tuple[OutcomeStatus, list[dict]]:
        try:
            manifest = self._manifest_builder.build(
                package,
                target_dir,
                api_version=options.api_version,
                manifest_override=options.manifest_override,
            )
        except Exception as e:
            raise RetrieveFailedError(
                f"Failed to build manifest for package {package.name}: {e}",
                package_name=package.name,
                stage="manifest",
            ) from e

        if manifest.is_empty:
            if not package.obsolete_names:
                log.info("package_has_no_changes", package=package.name)
                return OutcomeStatus.NO_CHANGES, []
            result: RetrievalResult | None = RetrievalResult.synthesized_empty()
        else:
            result = self._retrieve(package, manifest, target_dir, options)

        if result is None or not result.succeeded:
            raise RetrieveFailedError.from_result(package.name, result)

        context = PackageContext(
            package_name=package.name,
            target_dir=target_dir,
            manifest=manifest,
            force_overwrite=options.force_overwrite,
            unsupported_mime_types=(
                options.unsupported_mime_types
                if options.unsupported_mime_types is not None
                else self._config.pull.unsupported_mime_types
            ),
        )

        try:
            aggregate = self._applier.apply(result, context, package.obsolete_names)
        except Exception as e:
            raise RetrieveFailedError(
                f"Failed to apply retrieved source for package {package.name}: {e}",
                package_name=package.name,
                stage="apply",
            ) from e

        try:
            self._update_checkpoint(package, aggregate)
        except Exception as e:
            raise RetrieveFailedError(
                f"Failed to update checkpoint for package {package.name}: {e}",
                package_name=package.name,
                stage="checkpoint",
            ) from e

        # Unchanged elements count too: tracking must advance even when content matched
        inbound_files = [
            element.to_summary() for element in aggregate.get_all_workspace_elements()
        ]
        return OutcomeStatus.APPLIED, inbound_files

    def _retrieve(
        self,
        package: Package,
        manifest: RetrievalManifest,
        target_dir: Path,
        options: PullOptions,
    ) -> RetrievalResult | None:
        wait_minutes = options.wait_minutes or self._config.pull.default_wait_minutes
        log.info(
            "retrieve_started",
            package=package.name,
            member_count=len(manifest.members),
            wait_minutes=wait_minutes,
        )
        try:
            result = self._gateway.retrieve(manifest, target_dir, wait_minutes)
        except RetrievalTimeoutError as e:
            log.error("retrieve_timed_out", package=package.name, wait_minutes=wait_minutes)
            if e.result is None:
                raise RetrieveFailedError(
                    f"Retrieve for package {package.name} timed out after {wait_minutes} minutes",
                    package_name=package.name,
                    status="Timeout",
                ) from e
            return e.result
        except RetrievalGatewayError as e:
            log.error("retrieve_rejected", package=package.name, error=str(e))
            if e.result is None:
                raise RetrieveFailedError.from_result(package.name, None, cause=e) from e
            return e.result
        except TimeoutError as e:
            log.error("retrieve_timed_out", package=package.name, wait_minutes=wait_minutes)
            raise RetrieveFailedError(
                f"Retrieve for package {package.name} timed out: {e}",
                package_name=package.name,
                status="Timeout",
            ) from e
        except Exception as e:
            log.error("retrieve_errored", package=package.name, error=str(e))
            raise RetrieveFailedError.from_result(package.name, None, cause=e) from e

        log.debug("retrieve_result", package=package.name, status=str(result.status))
        return result

    def _update_checkpoint(self, package: Package, aggregate: AggregateSourceElements) -> None:
        """Advance the checkpoint for members present in the applied aggregate."""
        written = aggregate.keys_in_state(
            ElementState.NEW, ElementState.CHANGED, ElementState.UNCHANGED
        )
        applied = [
            member
            for member in package.members
            if (member.type, replace_forward_slashes(member.full_name)) in written
        ]
        self._revision_store.update_checkpoint(applied, removed=package.obsolete_names)

    def _transition(self, state: PullState) -> None:
        log.debug("pull_state_changed", previous=self.state.value, state=state.value)
        self.state = state
