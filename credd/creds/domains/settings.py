"""Tool settings for credd.

Settings are optional. They are read from a YAML file whose location is, in
priority order:

1. ``CREDD_CONFIG`` environment variable
2. ``~/.config/credd/config.yml``

A missing file means defaults. ``CREDD_BUILD_DIR`` and ``CREDD_MARKER``
override the matching keys of the file.
"""
import os
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import SettingsError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAMES = ("config.py", "config.yml", "config.yaml", "config.json")
DEFAULT_EXCLUDE_DIRS = (".git", "__pycache__", "node_modules", ".venv", "venv")


@dataclass(frozen=True)
class Settings:
    build_dir_name: str = "build"
    marker: str = "index.py"
    config_names: Tuple[str, ...] = DEFAULT_CONFIG_NAMES
    exclude_dirs: Tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    github_api_url: str = "https://api.github.com"
    gitlab_server: str = "gitlab.com"
    timeout: float = 30.0
    source: Optional[str] = field(default=None, compare=False)

    def discovery_excludes(self) -> Tuple[str, ...]:
        """Directory names deep discovery skips at any depth."""
        return tuple(self.exclude_dirs)


def _get_settings_path() -> Optional[Path]:
    """
    Get settings file path.

    Returns:
        Path to an existing settings file, or None when defaults apply
    """
    env_path = os.getenv("CREDD_CONFIG")
    if env_path:
        path = Path(env_path).expanduser()
        if path.exists():
            logger.debug(f"Using settings from CREDD_CONFIG: {path}")
            return path
        logger.warning(f"CREDD_CONFIG points to a missing file: {path}")

    default_path = Path.home() / ".config" / "credd" / "config.yml"
    if default_path.exists():
        logger.debug(f"Using default settings location: {default_path}")
        return default_path

    return None


def _coerce(name: str, expected: type, value: Any, path: Path) -> Any:
    if expected is tuple:
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise SettingsError(f"'{name}' in {path} must be a list of names")
        if not all(isinstance(item, str) for item in value):
            raise SettingsError(f"'{name}' in {path} must contain only strings")
        return tuple(value)
    if expected is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SettingsError(f"'{name}' in {path} must be a number")
        return float(value)
    if not isinstance(value, str) or not value:
        raise SettingsError(f"'{name}' in {path} must be a non-empty string")
    return value


_FIELD_TYPES: Dict[str, type] = {
    "build_dir_name": str,
    "marker": str,
    "config_names": tuple,
    "exclude_dirs": tuple,
    "github_api_url": str,
    "gitlab_server": str,
    "timeout": float,
}


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load and validate tool settings.

    Args:
        path: Explicit settings file; looked up from the environment when omitted

    Returns:
        Settings with file values and environment overrides applied

    Raises:
        SettingsError: If the file is unreadable, not a mapping, or has bad keys
    """
    settings = Settings()
    settings_path = Path(path) if path else _get_settings_path()

    if settings_path is not None:
        try:
            with open(settings_path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SettingsError(f"Failed to parse YAML settings at {settings_path}: {e}")
        except OSError as e:
            raise SettingsError(f"Failed to read settings file at {settings_path}: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SettingsError(f"Settings file at {settings_path} must contain a mapping")

        unknown = sorted(set(data) - set(_FIELD_TYPES))
        if unknown:
            raise SettingsError(
                f"Unknown settings in {settings_path}: {', '.join(unknown)}\n"
                f"Known settings: {', '.join(sorted(_FIELD_TYPES))}"
            )

        values = {
            name: _coerce(name, _FIELD_TYPES[name], value, settings_path)
            for name, value in data.items()
        }
        settings = replace(settings, source=str(settings_path), **values)
        logger.info(f"Settings loaded from {settings_path}")

    overrides = {}
    if os.getenv("CREDD_BUILD_DIR"):
        overrides["build_dir_name"] = os.environ["CREDD_BUILD_DIR"]
    if os.getenv("CREDD_MARKER"):
        overrides["marker"] = os.environ["CREDD_MARKER"]
    if overrides:
        logger.debug(f"Settings overridden from environment: {sorted(overrides)}")
        settings = replace(settings, **overrides)

    return settings

