"""Shared utilities for configuration, logging, and retries"""

from sourcepull.utils.project_dir import InvalidProjectWorkspaceError, find_project_dir
from sourcepull.utils.retry import exponential_backoff_retry

__all__ = ["InvalidProjectWorkspaceError", "exponential_backoff_retry", "find_project_dir"]
