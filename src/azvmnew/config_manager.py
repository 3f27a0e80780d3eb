"""Configuration management module.

This module handles persistent configuration storage using TOML format.
Stores user defaults for VM creation: resource group, region, subscription
and whether the BGInfo extension is installed.

Security:
- Config file permissions: 0600 (owner read/write only)
- Path validation
"""

import logging
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import tomli
import tomlkit

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(Exception):
    """Raised when configuration operations fail."""

    pass


@dataclass
class AzvmConfig:
    """azvmnew configuration data."""

    default_resource_group: str | None = None
    default_region: str | None = None
    subscription_id: str | None = None
    disable_bginfo_extension: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        data = asdict(self)
        # TOML has no null
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AzvmConfig":
        """Create from dictionary."""
        return cls(
            default_resource_group=data.get("default_resource_group"),
            default_region=data.get("default_region"),
            subscription_id=data.get("subscription_id"),
            disable_bginfo_extension=bool(data.get("disable_bginfo_extension", False)),
        )

    @classmethod
    def keys(cls) -> list[str]:
        return [f.name for f in fields(cls)]


class ConfigManager:
    """Manage azvmnew configuration file.

    Configuration is stored at ~/.azvmnew/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".azvmnew"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def _validate_config_path(cls, path: Path) -> Path:
        """Validate configuration file path.

        The path must resolve inside ~/.azvmnew/, the current working
        directory or the system temporary directory.

        Raises:
            ConfigError: If path is outside allowed directories
        """
        resolved_path = path.resolve()

        allowed_dirs = [
            cls.DEFAULT_CONFIG_DIR.resolve(),
            Path.cwd().resolve(),
            Path(tempfile.gettempdir()).resolve(),
        ]

        for allowed_dir in allowed_dirs:
            try:
                resolved_path.relative_to(allowed_dir)
                return resolved_path
            except ValueError:
                continue

        raise ConfigError(
            f"Config path outside allowed directories: {resolved_path}\n"
            f"Allowed directories:\n"
            f"  - {cls.DEFAULT_CONFIG_DIR}\n"
            f"  - {Path.cwd()}"
        )

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file

        Raises:
            ConfigError: If path is outside allowed directories
        """
        if custom_path:
            return cls._validate_config_path(Path(custom_path).expanduser())
        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def ensure_config_dir(cls) -> Path:
        """Ensure config directory exists with secure permissions.

        Raises:
            ConfigError: If directory creation fails
        """
        try:
            cls.DEFAULT_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
            os.chmod(cls.DEFAULT_CONFIG_DIR, 0o700)
            logger.debug(f"Config directory ready: {cls.DEFAULT_CONFIG_DIR}")
            return cls.DEFAULT_CONFIG_DIR
        except OSError as e:
            raise ConfigError(f"Failed to create config directory: {e}") from e

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> AzvmConfig:
        """Load configuration from file.

        A missing file yields the defaults.

        Raises:
            ConfigError: If loading fails
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            return AzvmConfig()

        try:
            mode = config_path.stat().st_mode & 0o777
            if mode & 0o077:
                logger.warning(
                    f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                )
                os.chmod(config_path, 0o600)

            with open(config_path, "rb") as f:
                data = tomli.load(f)

            logger.debug(f"Loaded config from: {config_path}")
            return AzvmConfig.from_dict(data)

        except (OSError, tomli.TOMLDecodeError) as e:
            raise ConfigError(f"Failed to load config: {e}") from e

    @classmethod
    def save_config(cls, config: AzvmConfig, custom_path: str | None = None) -> None:
        """Save configuration to file.

        Existing comments and formatting are preserved. The file is written
        to a temporary path and renamed into place.

        Raises:
            ConfigError: If saving fails
        """
        temp_path: Path | None = None
        try:
            if custom_path:
                config_path = cls.get_config_path(custom_path)
                config_path.parent.mkdir(parents=True, exist_ok=True)
            else:
                cls.ensure_config_dir()
                config_path = cls.DEFAULT_CONFIG_FILE

            temp_path = config_path.with_suffix(".tmp")

            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()

            values = config.to_dict()
            for key in AzvmConfig.keys():
                if key in values:
                    doc[key] = values[key]
                elif key in doc:
                    del doc[key]

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)

            os.chmod(temp_path, 0o600)
            temp_path.replace(config_path)

            logger.debug(f"Saved config to: {config_path}")

        except (OSError, ConfigError) as e:
            if temp_path and temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e

    @classmethod
    def set_value(cls, key: str, value: str, custom_path: str | None = None) -> AzvmConfig:
        """Set a single configuration value from its string form.

        Args:
            key: Configuration key
            value: Value as typed on the command line ("" clears the key)
            custom_path: Custom config file path (optional)

        Returns:
            Updated AzvmConfig

        Raises:
            ConfigError: If the key is unknown or the value invalid
        """
        if key not in AzvmConfig.keys():
            raise ConfigError(f"Unknown config key: {key}. Valid keys: {', '.join(AzvmConfig.keys())}")

        config = cls.load_config(custom_path)

        if key == "disable_bginfo_extension":
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                parsed: Any = True
            elif lowered in _FALSE_VALUES:
                parsed = False
            else:
                raise ConfigError(f"Invalid boolean for {key}: {value}")
        else:
            parsed = value or None

        setattr(config, key, parsed)
        cls.save_config(config, custom_path)
        return config


__all__ = ["AzvmConfig", "ConfigError", "ConfigManager"]
