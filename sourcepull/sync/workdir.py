"""Scoped output directories for per-package retrievals."""

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import structlog

from sourcepull.sync.errors import PullErrorKind

log = structlog.stdlib.get_logger()


def create_output_dir(prefix: str, base_dir: str | None = None) -> Path:
    """Create a fresh temporary directory for one retrieval."""
    if base_dir is not None:
        Path(base_dir).mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=f"{prefix}_", dir=base_dir))
    log.debug("output_dir_created", path=str(path))
    return path


def cleanup_output_dir(path: Path) -> None:
    """
    Remove a retrieval directory.

    Errors are logged, never raised.

    Args:
        path: Directory to remove
    """
    try:
        shutil.rmtree(path)
        log.debug("output_dir_removed", path=str(path))
    except OSError as e:
        log.warning(
            "output_dir_cleanup_failed",
            kind=PullErrorKind.CLEANUP_FAILED.value,
            path=str(path),
            error=str(e),
        )


@contextmanager
def scoped_output_dir(prefix: str, base_dir: str | None = None) -> Iterator[Path]:
    """Yield a temporary directory that is removed on every exit path."""
    path = create_output_dir(prefix, base_dir)
    try:
        yield path
    finally:
        cleanup_output_dir(path)
