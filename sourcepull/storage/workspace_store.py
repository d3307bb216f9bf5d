"""Filesystem-backed workspace store.

Retrieved files are copied from the retrieval directory into the package's
source directory. A JSON index records which files belong to which member so
obsolete members can be removed later.
"""

import hashlib
import json
import mimetypes
import shutil
from pathlib import Path
from typing import Any

import structlog

from sourcepull.models.members import member_key
from sourcepull.models.results import (
    AggregateSourceElements,
    ElementState,
    FileProperty,
    WorkspaceElement,
)
from sourcepull.storage.checkpoint_store import atomic_write_text

log = structlog.stdlib.get_logger()

INDEX_FILENAME = "workspace-index.json"

# Retrieval directories may nest files under an "unpackaged" root
RETRIEVE_ROOTS = ("", "unpackaged")


class WorkspaceWriteError(Exception):
    """Raised when retrieved source cannot be written to the workspace."""

    pass


def file_digest(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(65536), b""):
            digest.update(block)
    return digest.hexdigest()


class FileSystemWorkspaceStore:
    """Writes retrieved files into package directories under a workspace root."""

    def __init__(
        self,
        root: str | Path,
        package_directories: dict[str, str] | None = None,
        index_dir: str = ".sourcepull",
    ):
        """
        Initialize workspace store.

        Args:
            root: Workspace root directory
            package_directories: Package name to root-relative source directory
            index_dir: Root-relative directory holding the member index
        """
        self._root: Path = Path(root)
        self._package_directories: dict[str, str] = dict(package_directories or {})
        self._index_path: Path = self._root / index_dir / INDEX_FILENAME
        log.info("workspace_store_initialized", root=str(self._root))

    @property
    def root(self) -> Path:
        return self._root

    def package_dir(self, package_name: str) -> str:
        return self._package_directories.get(package_name, package_name)

    def files_for(self, member_type: str, full_name: str) -> list[str]:
        """Root-relative files recorded for a member."""
        entry = self._load_index().get(member_key(member_type, full_name))
        return sorted(entry["files"]) if entry else []

    def process_entry(
        self,
        aggregate: AggregateSourceElements,
        target_dir: Path,
        file_property: FileProperty,
        composite_map: dict[str, FileProperty],
    ) -> None:
        """
        Stage one retrieved file as a workspace element.

        Args:
            aggregate: Aggregate the element is added to
            target_dir: Retrieval directory holding the retrieved file
            file_property: Descriptor of the retrieved file
            composite_map: Sibling file_name to owning definition properties

        Raises:
            WorkspaceWriteError: If the retrieved file is missing or would be
                                 written outside the workspace root
        """
        relative = Path(self.package_dir(aggregate.package_name)) / file_property.file_name
        destination = self._root / relative
        if not destination.resolve().is_relative_to(self._root.resolve()):
            raise WorkspaceWriteError(
                f"Refusing to write {file_property.type}:{file_property.full_name} "
                f"outside the workspace: {file_property.file_name}"
            )

        source = self._find_retrieved_file(Path(target_dir), file_property.file_name)
        if source is None:
            raise WorkspaceWriteError(
                f"Retrieved file not found for {file_property.type}:{file_property.full_name}: "
                f"{file_property.file_name}"
            )

        owner = composite_map.get(file_property.file_name, file_property)

        if not destination.exists():
            state = ElementState.NEW
        elif file_digest(destination) == file_digest(source):
            state = ElementState.UNCHANGED
        else:
            state = ElementState.CHANGED

        aggregate.add(
            WorkspaceElement(
                type=owner.type,
                full_name=owner.full_name,
                file_path=relative.as_posix(),
                state=state,
                package=aggregate.package_name,
                source_path=str(source),
            )
        )

    def remove_obsolete(
        self, aggregate: AggregateSourceElements, full_name: str, member_type: str
    ) -> None:
        """
        Stage deletion of every local file of an obsolete member.

        Args:
            aggregate: Aggregate the deletions are added to
            full_name: Full name of the obsolete member
            member_type: Metadata type of the obsolete member
        """
        files = self.files_for(member_type, full_name)
        if not files:
            log.debug("obsolete_source_not_found", type=member_type, full_name=full_name)
            return

        for file_path in files:
            aggregate.add(
                WorkspaceElement(
                    type=member_type,
                    full_name=full_name,
                    file_path=file_path,
                    state=ElementState.DELETED,
                    package=aggregate.package_name,
                )
            )

    def commit(
        self,
        aggregate: AggregateSourceElements,
        manifest_ref: Path | None,
        skip_duplicate_check: bool,
        unsupported_mime_types: list[str],
        force_overwrite: bool,
    ) -> AggregateSourceElements:
        """
        Write staged elements to disk and update the member index.

        Args:
            aggregate: Staged elements
            manifest_ref: Manifest used for the retrieval (for logging)
            skip_duplicate_check: Skip checking for two owners of one file
            unsupported_mime_types: Mime types that are not written
            force_overwrite: Delete obsolete files even if modified locally

        Returns:
            Aggregate of the elements actually written or deleted

        Raises:
            WorkspaceWriteError: On duplicates or file system failures
        """
        elements = aggregate.get_all_workspace_elements()
        if not skip_duplicate_check:
            self._check_duplicates(elements)

        index = self._load_index()
        committed = AggregateSourceElements(aggregate.package_name)
        unsupported = set(unsupported_mime_types)

        try:
            for element in elements:
                if element.state == ElementState.DELETED:
                    if self._delete(element, index, force_overwrite):
                        committed.add(element)
                    continue

                mime_type, _ = mimetypes.guess_type(element.file_path)
                if mime_type is not None and mime_type in unsupported:
                    log.warning(
                        "unsupported_mime_type_skipped",
                        file_path=element.file_path,
                        mime_type=mime_type,
                    )
                    continue

                self._write(element, index)
                committed.add(element)

            atomic_write_text(self._index_path, json.dumps(index, indent=2, sort_keys=True))
        except OSError as e:
            log.error("workspace_commit_failed", package=aggregate.package_name, error=str(e))
            raise WorkspaceWriteError(f"Failed to update workspace: {e}") from e

        log.info(
            "workspace_committed",
            package=aggregate.package_name,
            manifest=str(manifest_ref) if manifest_ref else None,
            written=len(committed.get_all_workspace_elements()),
            staged=len(elements),
        )
        return committed

    def _write(self, element: WorkspaceElement, index: dict[str, Any]) -> None:
        destination = self._root / element.file_path
        if element.state != ElementState.UNCHANGED:
            if element.source_path is None:
                raise WorkspaceWriteError(f"No retrieved file staged for {element.file_path}")
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(element.source_path, destination)

        entry = index.setdefault(
            member_key(element.type, element.full_name),
            {"type": element.type, "full_name": element.full_name, "files": {}},
        )
        entry["package"] = element.package
        entry["files"][element.file_path] = file_digest(destination)

    def _delete(self, element: WorkspaceElement, index: dict[str, Any], force_overwrite: bool) -> bool:
        key = member_key(element.type, element.full_name)
        entry = index.get(key, {"files": {}})
        path = self._root / element.file_path

        if path.exists():
            recorded = entry["files"].get(element.file_path)
            if not force_overwrite and recorded is not None and file_digest(path) != recorded:
                log.warning(
                    "obsolete_source_modified_locally",
                    file_path=element.file_path,
                    type=element.type,
                    full_name=element.full_name,
                )
                return False
            path.unlink()

        entry["files"].pop(element.file_path, None)
        if key in index and not entry["files"]:
            del index[key]
        return True

    def _find_retrieved_file(self, target_dir: Path, file_name: str) -> Path | None:
        for retrieve_root in RETRIEVE_ROOTS:
            candidate = target_dir / retrieve_root / file_name
            if candidate.is_file():
                return candidate
        return None

    @staticmethod
    def _check_duplicates(elements: list[WorkspaceElement]) -> None:
        owners: dict[str, tuple[str, str]] = {}
        for element in elements:
            previous = owners.setdefault(element.file_path, element.key)
            if previous != element.key:
                raise WorkspaceWriteError(
                    f"Duplicate workspace file {element.file_path} for "
                    f"{previous[0]}:{previous[1]} and {element.type}:{element.full_name}"
                )

    def _load_index(self) -> dict[str, Any]:
        if not self._index_path.exists():
            return {}
        try:
            return json.loads(self._index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise WorkspaceWriteError(f"Failed to read workspace index {self._index_path}: {e}") from e
