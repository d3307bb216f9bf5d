"""Property-based tests for configuration models and loading.

Feature: source-pull
"""

from pathlib import Path

import pytest
import structlog
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from sourcepull.models import AppConfig, EnvironmentConfig, PullSettings
from sourcepull.utils.config_loader import ConfigLoader, ConfigurationError
from sourcepull.utils.project_dir import (
    LEGACY_PROJECT_CONFIG_FILENAME,
    PROJECT_CONFIG_FILENAME,
    InvalidProjectWorkspaceError,
    find_project_dir,
)

log = structlog.stdlib.get_logger()

PROJECT_YAML = """
environment:
  name: ${SOURCEPULL_TEST_USER}
  api_version: "59.0"

pull:
  default_wait_minutes: 10
  stop_on_first_failure: true
  unsupported_mime_types:
    - image/png

workspace:
  package_directories:
    default: force-app
    utils: utils-app
"""


@given(st.integers(min_value=1, max_value=10_000))
def test_wait_minutes_accepts_positive_values(wait_minutes: int):
    assert PullSettings(default_wait_minutes=wait_minutes).default_wait_minutes == wait_minutes


@given(st.integers(max_value=0))
def test_wait_minutes_rejects_non_positive_values(wait_minutes: int):
    with pytest.raises(ValidationError, match="default_wait_minutes"):
        PullSettings(default_wait_minutes=wait_minutes)


def test_default_wait_is_thirty_three_minutes():
    assert PullSettings().default_wait_minutes == 33


@given(
    api_version=st.sampled_from(["55.0", "58.0", "60.0"]),
    source_api_version=st.one_of(st.none(), st.sampled_from(["56.0", "61.0"])),
)
def test_source_api_version_wins_for_retrieval(api_version: str, source_api_version: str | None):
    config = AppConfig(
        environment=EnvironmentConfig(
            name="dev", api_version=api_version, source_api_version=source_api_version
        )
    )

    assert config.retrieval_api_version == (source_api_version or api_version)


def test_environment_variable_loading(monkeypatch):
    """Nested settings are read from SOURCEPULL_ prefixed variables."""
    monkeypatch.setenv("SOURCEPULL_ENVIRONMENT__NAME", "ci@example.com")
    monkeypatch.setenv("SOURCEPULL_ENVIRONMENT__API_VERSION", "60.0")
    monkeypatch.setenv("SOURCEPULL_PULL__DEFAULT_WAIT_MINUTES", "5")
    monkeypatch.setenv("SOURCEPULL_PULL__STOP_ON_FIRST_FAILURE", "true")
    monkeypatch.setenv("SOURCEPULL_WORKSPACE__ROOT", "/work/project")

    config = AppConfig()

    assert config.environment.name == "ci@example.com"
    assert config.environment.api_version == "60.0"
    assert config.pull.default_wait_minutes == 5
    assert config.pull.stop_on_first_failure is True
    assert config.workspace.root == "/work/project"
    assert config.workspace.checkpoint_dir == ".sourcepull"


def test_configuration_file_parsing(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("SOURCEPULL_TEST_USER", "dev@example.com")
    config_path = tmp_path / PROJECT_CONFIG_FILENAME
    config_path.write_text(PROJECT_YAML, encoding="utf-8")

    config = ConfigLoader().load_config(str(config_path))

    assert config.environment.name == "dev@example.com"
    assert config.retrieval_api_version == "59.0"
    assert config.pull.default_wait_minutes == 10
    assert config.pull.stop_on_first_failure is True
    assert config.pull.unsupported_mime_types == ["image/png"]
    assert config.workspace.package_directories["utils"] == "utils-app"
    # The project directory is the workspace root when none is configured
    assert Path(config.workspace.root) == tmp_path.resolve()


def test_missing_environment_variable_is_named(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("SOURCEPULL_TEST_USER", raising=False)
    config_path = tmp_path / PROJECT_CONFIG_FILENAME
    config_path.write_text(PROJECT_YAML, encoding="utf-8")

    with pytest.raises(ConfigurationError, match="SOURCEPULL_TEST_USER"):
        ConfigLoader().load_config(str(config_path))


@pytest.mark.parametrize(
    "content, message",
    [
        ("", "empty"),
        ("- just\n- a list\n", "mapping"),
        ("environment: [unclosed", "parse"),
        ("environment:\n  name: dev\npull:\n  default_wait_minutes: 0\n", "validation"),
    ],
)
def test_invalid_configuration_files_are_rejected(tmp_path: Path, content: str, message: str):
    config_path = tmp_path / PROJECT_CONFIG_FILENAME
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError, match=message):
        ConfigLoader().load_config(str(config_path))


def test_missing_configuration_file(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="not found"):
        ConfigLoader().load_config(str(tmp_path / "absent.yaml"))


def test_default_config_path_found_from_subdirectory(tmp_path: Path, monkeypatch):
    (tmp_path / PROJECT_CONFIG_FILENAME).write_text(
        "environment:\n  name: dev\n", encoding="utf-8"
    )
    nested = tmp_path / "force-app" / "classes"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    config = ConfigLoader().load_config()

    assert config.environment.name == "dev"
    assert Path(config.workspace.root) == tmp_path.resolve()


def test_validate_config_warns_on_unmapped_default_package():
    config = AppConfig(
        environment=EnvironmentConfig(name="dev"),
        pull=PullSettings(default_package="main"),
    )

    warnings = ConfigLoader().validate_config(config)

    assert any("main" in warning for warning in warnings)


def test_validate_config_accepts_defaults():
    assert ConfigLoader().validate_config(AppConfig(environment=EnvironmentConfig(name="dev"))) == []


class TestFindProjectDir:
    def test_nearest_project_directory_wins(self, tmp_path: Path):
        (tmp_path / PROJECT_CONFIG_FILENAME).touch()
        inner = tmp_path / "nested"
        inner.mkdir()
        (inner / PROJECT_CONFIG_FILENAME).touch()
        deeper = inner / "a" / "b"
        deeper.mkdir(parents=True)

        assert find_project_dir(deeper) == inner.resolve()

    def test_legacy_file_is_reported(self, tmp_path: Path):
        (tmp_path / LEGACY_PROJECT_CONFIG_FILENAME).touch()
        start = tmp_path / "src"
        start.mkdir()

        with pytest.raises(InvalidProjectWorkspaceError) as exc_info:
            find_project_dir(start)

        assert exc_info.value.legacy_path == tmp_path.resolve()
        assert PROJECT_CONFIG_FILENAME in str(exc_info.value)

    def test_no_project_raises(self, tmp_path: Path):
        with pytest.raises(InvalidProjectWorkspaceError, match="does not contain a valid project"):
            find_project_dir(tmp_path)
