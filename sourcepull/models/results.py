"""Models for retrieval results, workspace elements and pull outcomes."""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RetrieveStatus(str, Enum):
    """Status reported by the retrieval gateway."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    SUCCEEDED_PARTIAL = "SucceededPartial"
    FAILED = "Failed"
    CANCELING = "Canceling"
    CANCELED = "Canceled"


class FileProperty(BaseModel):
    """Descriptor of one retrieved artifact."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = Field(default=..., description="Metadata type name")
    full_name: str = Field(default=..., alias="fullName", description="Full name of the member")
    file_name: str = Field(
        default=..., alias="fileName", description="Path of the file relative to the target dir"
    )


class RetrievalResult(BaseModel):
    """Structured result of a retrieve call."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    success: bool = Field(default=False, description="Gateway success flag")
    status: RetrieveStatus | str = Field(default=RetrieveStatus.FAILED, description="Retrieve status")
    file_properties: list[FileProperty] | None = Field(
        default=None, alias="fileProperties", description="Retrieved artifact descriptors"
    )
    messages: list[dict[str, Any]] | None = Field(
        default=None, description="Problems reported by the gateway"
    )

    @property
    def succeeded(self) -> bool:
        return (
            self.success
            and self.status == RetrieveStatus.SUCCEEDED
            and not self.messages
            and isinstance(self.file_properties, list)
        )

    @classmethod
    def synthesized_empty(cls) -> "RetrievalResult":
        """Succeeded result with no artifacts, used when only deletions are applied."""
        return cls(success=True, status=RetrieveStatus.SUCCEEDED, file_properties=[])


class RetrievalManifest(BaseModel):
    """Declarative list of members to retrieve, or the empty sentinel."""

    file: Path | None = Field(default=None, description="Manifest file on disk")
    version: str | None = Field(default=None, description="API version of the manifest")
    members: list[tuple[str, str]] = Field(
        default_factory=list, description="(type, full_name) pairs in the manifest"
    )

    @property
    def is_empty(self) -> bool:
        return self.file is None

    @classmethod
    def empty(cls) -> "RetrievalManifest":
        return cls()


class ElementState(str, Enum):
    """State of a workspace element after a pull."""

    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    DELETED = "deleted"


class WorkspaceElement(BaseModel):
    """A local file corresponding to a tracked member."""

    type: str = Field(default=..., description="Metadata type of the owning member")
    full_name: str = Field(default=..., description="Full name of the owning member")
    file_path: str = Field(default=..., description="Workspace-relative file path")
    state: ElementState = Field(default=..., description="What the pull did to the file")
    package: str = Field(default=..., description="Package the element belongs to")
    source_path: str | None = Field(
        default=None, exclude=True, description="Retrieved file the element is written from"
    )

    @property
    def key(self) -> tuple[str, str]:
        return (self.type, self.full_name)

    def to_summary(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "full_name": self.full_name,
            "type": self.type,
            "file_path": self.file_path,
            "package": self.package,
        }


class AggregateSourceElements:
    """Workspace elements touched while applying one package, keyed by owner."""

    def __init__(self, package_name: str):
        self.package_name = package_name
        self._elements: dict[tuple[str, str], list[WorkspaceElement]] = {}

    def add(self, element: WorkspaceElement) -> None:
        bucket = self._elements.setdefault(element.key, [])
        # Replace an earlier entry for the same file
        bucket[:] = [e for e in bucket if e.file_path != element.file_path]
        bucket.append(element)

    def get(self, member_type: str, full_name: str) -> list[WorkspaceElement]:
        return list(self._elements.get((member_type, full_name), []))

    def get_all_workspace_elements(self) -> list[WorkspaceElement]:
        return [element for bucket in self._elements.values() for element in bucket]

    def keys(self) -> list[tuple[str, str]]:
        return list(self._elements.keys())

    def keys_in_state(self, *states: ElementState) -> set[tuple[str, str]]:
        return {
            key
            for key, bucket in self._elements.items()
            if any(element.state in states for element in bucket)
        }

    def __contains__(self, key: object) -> bool:
        return key in self._elements

    def __len__(self) -> int:
        return len(self._elements)

    def __repr__(self) -> str:
        return f"AggregateSourceElements(package={self.package_name!r}, owners={len(self)})"


class PackageContext(BaseModel):
    """Per-package values threaded through manifest build and apply."""

    package_name: str = Field(default=..., description="Package being processed")
    target_dir: Path = Field(default=..., description="Scoped retrieval directory")
    manifest: RetrievalManifest = Field(
        default_factory=RetrievalManifest.empty, description="Manifest used for retrieval"
    )
    force_overwrite: bool = Field(default=False, description="Overwrite local changes")
    unsupported_mime_types: list[str] = Field(
        default_factory=list, description="Mime types not written to the workspace"
    )


class OutcomeStatus(str, Enum):
    """What happened to a package during a pull."""

    NO_CHANGES = "no_changes"
    APPLIED = "applied"
    FAILED = "failed"


class PackageOutcome(BaseModel):
    """Outcome of processing one package."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    package_name: str = Field(default=..., description="Package name")
    status: OutcomeStatus = Field(default=..., description="Package outcome")
    inbound_files: list[dict[str, Any]] = Field(
        default_factory=list, description="Summaries of workspace elements touched"
    )
    error: Exception | None = Field(default=None, exclude=True, description="Failure, if any")

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED


class PullResult(BaseModel):
    """Aggregated result of a pull across all packages."""

    packages: list[PackageOutcome] = Field(default_factory=list, description="Per-package outcomes")

    @property
    def inbound_files(self) -> list[dict[str, Any]]:
        return [summary for outcome in self.packages for summary in outcome.inbound_files]

    @property
    def failures(self) -> list[PackageOutcome]:
        return [outcome for outcome in self.packages if outcome.failed]

    @property
    def success(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {"inbound_files": self.inbound_files}
