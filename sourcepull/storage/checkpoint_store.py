"""Durable JSON storage for revision checkpoints."""

import os
import re
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from sourcepull.models.members import RevisionCheckpoint

log = structlog.stdlib.get_logger()

CHECKPOINT_FILENAME = "maxRevision.json"


class CheckpointStoreError(Exception):
    """Raised when a checkpoint cannot be read or written."""

    pass


class JsonCheckpointStore:
    """Stores one checkpoint file per environment under a base directory."""

    def __init__(self, base_dir: str | Path):
        """
        Initialize checkpoint store.

        Args:
            base_dir: Directory holding one sub-directory per environment
        """
        self._base_dir: Path = Path(base_dir)
        log.info("checkpoint_store_initialized", base_dir=str(self._base_dir))

    def path_for(self, environment: str) -> Path:
        safe_name = re.sub(r"[^A-Za-z0-9._@-]", "_", environment)
        return self._base_dir / "orgs" / safe_name / CHECKPOINT_FILENAME

    def load(self, environment: str) -> RevisionCheckpoint | None:
        """
        Load the checkpoint of an environment.

        Args:
            environment: Environment identity

        Returns:
            RevisionCheckpoint if stored, None otherwise

        Raises:
            CheckpointStoreError: If the file exists but cannot be read
        """
        path = self.path_for(environment)
        if not path.exists():
            return None

        try:
            checkpoint = RevisionCheckpoint.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            log.error("failed_to_load_checkpoint", environment=environment, path=str(path), error=str(e))
            raise CheckpointStoreError(f"Failed to load checkpoint {path}: {e}") from e

        log.debug("checkpoint_file_loaded", environment=environment, path=str(path))
        return checkpoint

    def save(self, checkpoint: RevisionCheckpoint) -> None:
        """
        Persist a checkpoint atomically (write to a temp file, then replace).

        Args:
            checkpoint: Checkpoint to persist

        Raises:
            CheckpointStoreError: If the file cannot be written
        """
        path = self.path_for(checkpoint.environment)
        try:
            atomic_write_text(path, checkpoint.model_dump_json(indent=2))
        except OSError as e:
            log.error(
                "failed_to_save_checkpoint",
                environment=checkpoint.environment,
                path=str(path),
                error=str(e),
            )
            raise CheckpointStoreError(f"Failed to save checkpoint {path}: {e}") from e

        log.debug(
            "checkpoint_file_saved",
            environment=checkpoint.environment,
            member_count=len(checkpoint.members),
        )


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temp file and an atomic replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
