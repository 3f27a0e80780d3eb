"""Pytest configuration and fixtures for azvmnew tests.

Protects the real configuration from test modifications.
"""

import shutil
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def protect_production_config():
    """Protect ~/.azvmnew/config.toml from being modified by tests.

    Backs up the real config.toml before any tests run and restores it
    after all tests complete.
    """
    config_path = Path.home() / ".azvmnew" / "config.toml"
    backup_path = Path.home() / ".azvmnew" / ".config.toml.pytest-backup"

    config_existed = config_path.exists()
    if config_existed:
        shutil.copy2(config_path, backup_path)

    yield

    if config_existed and backup_path.exists():
        shutil.copy2(backup_path, config_path)
        backup_path.unlink()
    elif backup_path.exists():
        backup_path.unlink()


@pytest.fixture
def isolated_config(tmp_path):
    """Provide an isolated config file path for tests.

    Use this fixture instead of touching ~/.azvmnew/config.toml.

    Example:
        def test_something(isolated_config):
            ConfigManager.save_config(AzvmConfig(), str(isolated_config))
    """
    return tmp_path / "config.toml"
