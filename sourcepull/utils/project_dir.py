"""Project directory discovery."""

from pathlib import Path

PROJECT_CONFIG_FILENAME = "sourcepull-project.yaml"
LEGACY_PROJECT_CONFIG_FILENAME = "sourcepull-workspace.json"


class InvalidProjectWorkspaceError(Exception):
    """Raised when no project directory contains the project config file."""

    def __init__(self, message: str, legacy_path: Path | None = None):
        super().__init__(message)
        self.legacy_path = legacy_path


def _traverse_for_file(start: Path, filename: str) -> Path | None:
    for directory in [start, *start.parents]:
        if (directory / filename).exists():
            return directory
    return None


def find_project_dir(start: str | Path | None = None) -> Path:
    """
    Find the project directory by walking up from ``start``.

    Args:
        start: Directory to start from (defaults to the current directory)

    Returns:
        The nearest directory containing the project config file

    Raises:
        InvalidProjectWorkspaceError: If no project config file is found
    """
    start_path = Path(start or Path.cwd()).resolve()

    found = _traverse_for_file(start_path, PROJECT_CONFIG_FILENAME)
    if found is not None:
        return found

    legacy = _traverse_for_file(start_path, LEGACY_PROJECT_CONFIG_FILENAME)
    if legacy is not None:
        raise InvalidProjectWorkspaceError(
            f"Found a legacy {LEGACY_PROJECT_CONFIG_FILENAME} in {legacy}. "
            f"Replace it with {PROJECT_CONFIG_FILENAME} to use this directory as a project.",
            legacy_path=legacy,
        )

    raise InvalidProjectWorkspaceError(
        f"This directory does not contain a valid project: no {PROJECT_CONFIG_FILENAME} "
        f"found in {start_path} or any parent directory."
    )
