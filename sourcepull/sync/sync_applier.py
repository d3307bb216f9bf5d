"""Application of retrieval results onto the local workspace."""

import os
from typing import Iterable

import structlog

from sourcepull.models.members import ObsoleteName
from sourcepull.models.results import (
    AggregateSourceElements,
    FileProperty,
    PackageContext,
    RetrievalResult,
)
from sourcepull.sync.interfaces import WorkspaceStore
from sourcepull.sync.metadata_registry import MetadataRegistry

log = structlog.stdlib.get_logger()


def replace_forward_slashes(value: str) -> str:
    """Switch a retrieved path or name to the host path separator."""
    return value.replace("/", os.sep) if os.sep != "/" else value


class SyncApplier:
    """Writes retrieved files and obsolete deletions into the workspace."""

    def __init__(self, workspace_store: WorkspaceStore, metadata_registry: MetadataRegistry):
        self._workspace_store: WorkspaceStore = workspace_store
        self._registry: MetadataRegistry = metadata_registry

    def apply(
        self,
        result: RetrievalResult,
        context: PackageContext,
        obsolete_names: Iterable[ObsoleteName] = (),
    ) -> AggregateSourceElements:
        """
        Apply a succeeded retrieval result to the workspace.

        Args:
            result: Succeeded retrieval result
            context: Per-package context (target dir, manifest, flags)
            obsolete_names: Members deleted remotely to remove locally

        Returns:
            AggregateSourceElements holding every workspace element touched

        Raises:
            Exception: Any workspace store failure propagates to the caller
        """
        aggregate = AggregateSourceElements(context.package_name)

        file_properties = [
            self._normalize(prop)
            for prop in result.file_properties or []
            if not self._registry.is_manifest_wrapper(prop.type)
        ]

        composite_map = self._registry.get_definition_properties(file_properties)

        for prop in file_properties:
            self._workspace_store.process_entry(
                aggregate, context.target_dir, prop, composite_map
            )

        obsolete = list(obsolete_names)
        for name in obsolete:
            self._workspace_store.remove_obsolete(aggregate, name.full_name, name.type)

        log.info(
            "applying_retrieved_source",
            package=context.package_name,
            file_count=len(file_properties),
            obsolete_count=len(obsolete),
        )

        committed = self._workspace_store.commit(
            aggregate,
            context.manifest.file,
            True,  # duplicates cannot occur within one retrieval
            context.unsupported_mime_types,
            context.force_overwrite,
        )

        log.info(
            "retrieved_source_applied",
            package=context.package_name,
            owners=len(committed),
            elements=len(committed.get_all_workspace_elements()),
        )
        return committed

    @staticmethod
    def _normalize(prop: FileProperty) -> FileProperty:
        return prop.model_copy(
            update={
                "full_name": replace_forward_slashes(prop.full_name),
                "file_name": replace_forward_slashes(prop.file_name),
            }
        )
