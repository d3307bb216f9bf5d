"""File-based persistence for checkpoints and workspace source."""

from sourcepull.storage.checkpoint_store import CheckpointStoreError, JsonCheckpointStore
from sourcepull.storage.workspace_store import FileSystemWorkspaceStore, WorkspaceWriteError

__all__ = [
    "CheckpointStoreError",
    "FileSystemWorkspaceStore",
    "JsonCheckpointStore",
    "WorkspaceWriteError",
]
