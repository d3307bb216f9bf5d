"""Pydantic models for tracked members, checkpoints and packages."""

from pydantic import BaseModel, ConfigDict, Field


def member_key(member_type: str, full_name: str) -> str:
    """Build the checkpoint key for a member (format: {type}__{full_name})."""
    return f"{member_type}__{full_name}"


class TrackedMember(BaseModel):
    """A remotely addressable metadata unit the workspace tracks.

    Inside a checkpoint, ``local_revision`` is the remote revision whose content
    was durably written to the workspace and ``remote_revision`` is the last
    revision seen remotely. In a remote query ``remote_revision`` is the
    current counter and ``deleted`` marks a member removed remotely.
    """

    type: str = Field(default=..., min_length=1, description="Metadata type name")
    full_name: str = Field(default=..., min_length=1, description="Full name of the member")
    local_revision: int | None = Field(
        default=None, ge=0, description="Revision last written to the local workspace"
    )
    remote_revision: int = Field(default=0, ge=0, description="Last known remote revision")
    package: str | None = Field(default=None, description="Package the member belongs to")
    deleted: bool = Field(default=False, description="True if the member was deleted remotely")

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "ApexClass",
                "full_name": "Foo",
                "local_revision": 3,
                "remote_revision": 5,
                "package": "default",
                "deleted": False,
            }
        }
    }

    @property
    def key(self) -> str:
        return member_key(self.type, self.full_name)


class ObsoleteName(BaseModel):
    """A member known to have been deleted remotely."""

    full_name: str = Field(default=..., min_length=1, description="Full name of the member")
    type: str = Field(default=..., min_length=1, description="Metadata type name")
    package: str | None = Field(default=None, description="Package the member belonged to")

    @property
    def key(self) -> str:
        return member_key(self.type, self.full_name)


class ConflictEntry(BaseModel):
    """A member changed both locally and remotely since the last checkpoint."""

    member: str = Field(default=..., description="Member display name ({type}:{full_name})")
    type: str = Field(default=..., description="Metadata type name")
    full_name: str = Field(default=..., description="Full name of the member")
    local_revision: int | None = Field(
        default=None, description="Revision recorded in the checkpoint for the local copy"
    )
    remote_revision: int | None = Field(
        default=None, description="Current remote revision (None if deleted remotely)"
    )


class MemberStatus(BaseModel):
    """One status candidate returned by the status service."""

    type: str = Field(default=..., min_length=1, description="Metadata type name")
    full_name: str = Field(default=..., min_length=1, description="Full name of the member")
    local_changed: bool = Field(
        default=False, description="True if local content differs from the checkpoint"
    )
    remote_revision: int | None = Field(
        default=None, ge=0, description="Current remote revision, if the member exists remotely"
    )
    remote_deleted: bool = Field(default=False, description="True if deleted remotely")

    @property
    def key(self) -> str:
        return member_key(self.type, self.full_name)


class RevisionCheckpoint(BaseModel):
    """Remote state as of the last successful pull, keyed by environment."""

    environment: str = Field(default=..., min_length=1, description="Environment identity")
    max_revision: int = Field(default=0, ge=0, description="Highest remote revision observed")
    members: dict[str, TrackedMember] = Field(
        default_factory=dict, description="Tracked members keyed by member key"
    )

    def get(self, key: str) -> TrackedMember | None:
        return self.members.get(key)

    def applied_revision(self, key: str) -> int | None:
        """Revision durably applied locally for ``key``, if any."""
        member = self.members.get(key)
        return member.local_revision if member is not None else None


class RevisionDiff(BaseModel):
    """Result of comparing remote revisions against the checkpoint."""

    to_retrieve: list[TrackedMember] = Field(
        default_factory=list, description="Members new or changed remotely"
    )
    obsolete: list[ObsoleteName] = Field(
        default_factory=list, description="Members deleted remotely"
    )

    @property
    def has_changes(self) -> bool:
        return bool(self.to_retrieve or self.obsolete)


class Package(BaseModel):
    """A named group of members retrieved in one retrieval call."""

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(default=..., min_length=1, description="Package name")
    members: list[TrackedMember] = Field(
        default_factory=list, description="Members slated for retrieval"
    )
    obsolete_names: list[ObsoleteName] = Field(
        default_factory=list, description="Obsolete names attributed to this package"
    )
    version: str | None = Field(default=None, description="API version for the manifest")

    @property
    def has_retrievable_members(self) -> bool:
        return bool(self.members)

    @property
    def is_empty(self) -> bool:
        """True iff nothing is retrieved and nothing is deleted."""
        return not self.members and not self.obsolete_names
