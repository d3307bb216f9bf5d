"""Property-based tests for provider module.

Feature: source-pull
"""

import tempfile
from pathlib import Path

import pytest
import structlog
from hypothesis import given, settings
from hypothesis import strategies as st

from sourcepull.models import AppConfig, EnvironmentConfig, RevisionCheckpoint, WorkspaceConfig
from sourcepull.providers import get_revision_persistence, get_workspace_store
from sourcepull.sync.interfaces import RevisionPersistence, WorkspaceStore

log = structlog.stdlib.get_logger()


@settings(deadline=None, max_examples=20)
@given(checkpoint_dir=st.sampled_from([".sourcepull", ".sfdx", "state/checkpoints"]))
def test_providers_return_interface_implementations(checkpoint_dir: str):
    """Both providers satisfy the interfaces the orchestrator depends on."""
    log.info("test_providers_return_interface_implementations", checkpoint_dir=checkpoint_dir)

    with tempfile.TemporaryDirectory() as tmp_dir:
        config = AppConfig(
            environment=EnvironmentConfig(name="dev"),
            workspace=WorkspaceConfig(root=tmp_dir, checkpoint_dir=checkpoint_dir),
        )

        persistence = get_revision_persistence(config)
        workspace = get_workspace_store(config)

        assert isinstance(persistence, RevisionPersistence)
        assert isinstance(workspace, WorkspaceStore)

        persistence.save(RevisionCheckpoint(environment="dev", max_revision=4))
        assert persistence.path_for("dev").is_relative_to(Path(tmp_dir) / checkpoint_dir)
        assert persistence.load("dev").max_revision == 4


def test_workspace_store_uses_configured_package_directories(tmp_path: Path):
    config = AppConfig(
        environment=EnvironmentConfig(name="dev"),
        workspace=WorkspaceConfig(root=str(tmp_path), package_directories={"utils": "utils-app"}),
    )

    workspace = get_workspace_store(config)

    assert workspace.package_dir("utils") == "utils-app"
    assert workspace.package_dir("default") == "default"


def test_providers_require_workspace_root():
    config = AppConfig(environment=EnvironmentConfig(name="dev"), workspace=WorkspaceConfig(root=None))

    with pytest.raises(ValueError, match="workspace.root"):
        get_revision_persistence(config)
    with pytest.raises(ValueError, match="workspace.root"):
        get_workspace_store(config)
