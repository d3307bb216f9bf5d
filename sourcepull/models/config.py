"""Configuration models for the source pull engine."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentConfig(BaseModel):
    """Configuration for the remote metadata environment."""

    name: str = Field(default=..., min_length=1, description="Environment identity (username or alias)")
    api_version: str = Field(default="58.0", description="Default API version of the environment")
    source_api_version: str | None = Field(
        default=None, description="Optional API version override used for retrieval manifests"
    )


class PullSettings(BaseModel):
    """Configuration for pull behaviour."""

    default_wait_minutes: int = Field(
        default=33, ge=1, description="Minutes to wait for a retrieval when the caller gives none"
    )
    stop_on_first_failure: bool = Field(
        default=False, description="Stop processing packages after the first failed package"
    )
    temp_dir: str | None = Field(
        default=None, description="Base directory for per-package retrieval directories"
    )
    unsupported_mime_types: list[str] = Field(
        default_factory=list, description="Mime types that are not written to the workspace"
    )
    default_package: str = Field(
        default="default", min_length=1, description="Package used for members without one"
    )


class WorkspaceConfig(BaseModel):
    """Configuration for the local workspace."""

    root: str | None = Field(default=None, description="Workspace root directory")
    checkpoint_dir: str = Field(
        default=".sourcepull", description="Directory (relative to root) holding checkpoints"
    )
    package_directories: dict[str, str] = Field(
        default_factory=lambda: {"default": "force-app"},
        description="Package name to workspace-relative source directory",
    )


class MetadataConfig(BaseModel):
    """Configuration for metadata type handling."""

    manifest_type: str = Field(
        default="Package", description="Type name of the manifest wrapper artifact"
    )
    composite_types: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "AuraDefinitionBundle": [".app", ".cmp", ".design", ".evt", ".intf", ".tokens"],
            "LightningComponentBundle": [".js-meta.xml"],
        },
        description="Composite type name to the suffixes of its definition file",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    This class uses pydantic-settings to load configuration from environment
    variables with the SOURCEPULL_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOURCEPULL_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    environment: EnvironmentConfig
    pull: PullSettings = Field(default_factory=PullSettings)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def retrieval_api_version(self) -> str:
        """API version for retrieval manifests (source override wins)."""
        return self.environment.source_api_version or self.environment.api_version
