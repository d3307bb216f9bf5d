"""Centralized provider module for checkpoint and workspace storage implementations.

This module provides factory functions for the storage collaborators of the
pull engine. Developers can modify these functions to swap implementations
without changing other code.

Default implementations:
- Checkpoint persistence: JsonCheckpointStore (one JSON file per environment)
- Workspace store: FileSystemWorkspaceStore (package directories under the workspace root)
"""

from pathlib import Path

import structlog

from sourcepull.models.config import AppConfig
from sourcepull.storage.checkpoint_store import JsonCheckpointStore
from sourcepull.storage.workspace_store import FileSystemWorkspaceStore

log = structlog.stdlib.get_logger()


def _workspace_root(config: AppConfig) -> Path:
    if not config.workspace.root:
        error_msg = "workspace.root must be configured to use the default storage providers"
        log.error("workspace_root_missing", error=error_msg)
        raise ValueError(error_msg)
    return Path(config.workspace.root)


def get_revision_persistence(config: AppConfig) -> JsonCheckpointStore:
    """Get the configured checkpoint persistence.

    Developers: Modify this function to keep checkpoints elsewhere (e.g. a
    shared database keyed by environment).

    Args:
        config: Application configuration

    Returns:
        Checkpoint persistence rooted at {workspace.root}/{workspace.checkpoint_dir}

    Raises:
        ValueError: If the workspace root is not configured
    """
    base_dir = _workspace_root(config) / config.workspace.checkpoint_dir
    log.info("initializing_revision_persistence", base_dir=str(base_dir), provider="json")
    return JsonCheckpointStore(base_dir)


def get_workspace_store(config: AppConfig) -> FileSystemWorkspaceStore:
    """Get the configured workspace store.

    Args:
        config: Application configuration

    Returns:
        Filesystem workspace store for the configured root and package directories

    Raises:
        ValueError: If the workspace root is not configured
    """
    root = _workspace_root(config)
    log.info("initializing_workspace_store", root=str(root), provider="filesystem")
    return FileSystemWorkspaceStore(
        root=root,
        package_directories=config.workspace.package_directories,
        index_dir=config.workspace.checkpoint_dir,
    )
