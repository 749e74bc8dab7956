"""Pytest configuration and shared fixtures for remotedeploy tests."""

import logging
import os
import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from remotedeploy.deploy.scripts import reset_control_scripts
from remotedeploy.lib.logging_config import ROOT_LOGGER_NAME
from remotedeploy.models.deployment import RemoteDeploymentParameters, ServerType


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test file operations.

    Yields:
        Path to temporary directory

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def isolated_env() -> Generator[dict[str, str], None, None]:
    """Provide isolated environment variables for testing.

    Saves current environment and restores after test.

    Yields:
        Dictionary of original environment variables
    """
    original_env = os.environ.copy()
    yield original_env
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def published_dir(tmp_path: Path) -> Path:
    """Create a small published application tree.

    Layout::

        published/app.exe
        published/appsettings.json
        published/wwwroot/index.html
    """
    root = tmp_path / "published"
    (root / "wwwroot").mkdir(parents=True)
    (root / "app.exe").write_bytes(b"MZ\x90\x00binary")
    (root / "appsettings.json").write_text('{"Logging": {}}', encoding="utf-8")
    (root / "wwwroot" / "index.html").write_text("<html></html>", encoding="utf-8")
    return root


@pytest.fixture
def file_share(tmp_path: Path) -> Path:
    """Create a directory standing in for the remote file share."""
    share = tmp_path / "share"
    share.mkdir()
    return share


@pytest.fixture
def make_parameters() -> Callable[..., RemoteDeploymentParameters]:
    """Return a factory for valid deployment parameters.

    Keyword arguments override individual fields.
    """

    def _make(**overrides: Any) -> RemoteDeploymentParameters:
        values: dict[str, Any] = {
            "server_type": ServerType.KESTREL,
            "server_name": "test-server-01",
            "server_account_name": "deployer",
            "server_account_password": "s3cret",
            "remote_server_file_share": "/mnt/share",
            "remote_server_relative_executable_path": "app.exe",
            "application_base_uri_hint": "http://test-server-01:5000",
            "environment_variables": {"ASPNETCORE_ENVIRONMENT": "Testing"},
        }
        values.update(overrides)
        return RemoteDeploymentParameters(**values)

    return _make


@pytest.fixture(autouse=True)
def _reset_package_state() -> Generator[None, None, None]:
    """Reset process-wide state between tests.

    Clears the control script installation cache and any handler installed
    by ``setup_logging``.
    """
    reset_control_scripts()
    yield
    reset_control_scripts()

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True


# Configure pytest
def pytest_configure(config: Any) -> None:
    """Configure pytest with marker options."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests",
    )
