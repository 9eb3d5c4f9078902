# config.py
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "termflex.yaml"

DEFAULTS: Dict[str, Any] = {
    "log_level": "warn",
    "log_file": None,
    "frame_interval": 0.05,
    "resize_poll_interval": 0.25,
    "expression_cache": {
        "ttl": 300,
        "max_size": 1024,
    },
    "default_width": 80,
    "default_height": 24,
    "defaults": {},
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Settings:
    """
    Runtime settings loaded from an optional YAML file over built-in defaults.

    Usage:
        settings = Settings("termflex.yaml")
        interval = settings.get("frame_interval")
        ttl = settings.get_nested("expression_cache.ttl", 300)
        settings.reload()

    Unlike the application file this is an ordinary object: every
    ``Application`` gets its own, so tests never share settings.

    Parameters:
      settings_file: YAML path. A missing default file is not an error; a
                     missing explicitly named file is.
      overrides: Values applied over the file, e.g. from the command line.
    """

    def __init__(
        self,
        settings_file: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        self.settings_file_arg = settings_file
        self.overrides = dict(overrides or {})
        self._settings: Dict[str, Any] = copy.deepcopy(DEFAULTS)
        self._source: Optional[str] = None
        self._resolved_path: Optional[Path] = self._resolve_path(settings_file)
        self.reload()

    # ----- public API -----
    def reload(self) -> None:
        """Re-read the settings file and re-apply overrides."""
        settings = copy.deepcopy(DEFAULTS)
        self._source = None
        if self._resolved_path is not None:
            settings = _deep_merge(settings, self._load_file(self._resolved_path))
            self._source = "file"
        self._settings = _deep_merge(settings, self.overrides)

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._settings)

    def get(self, key: str, default: Any = None) -> Any:
        """Shallow lookup in the top-level settings."""
        return self._settings.get(key, default)

    def get_nested(self, path: str, default: Any = None, sep: str = ".") -> Any:
        """
        Lookup nested keys using dot-path (e.g. "expression_cache.ttl").
        Returns default if any step is missing.
        """
        cur: Any = self._settings
        if not path:
            return default
        for part in path.split(sep):
            if not isinstance(cur, dict) or part not in cur:
                return default
            cur = cur[part]
        return cur

    @property
    def source(self) -> Optional[str]:
        """'file' when a settings file was loaded, otherwise None."""
        return self._source

    @property
    def resolved_path(self) -> Optional[Path]:
        return self._resolved_path

    # ----- internal helpers -----
    def _resolve_path(self, settings_file: Optional[Union[str, Path]]) -> Optional[Path]:
        """
        An explicit path must exist. Without one, ``termflex.yaml`` in the
        working directory is used when present.
        """
        if settings_file:
            candidate = Path(settings_file).expanduser()
            if not candidate.exists():
                raise ConfigError("settings file not found", str(candidate))
            return candidate.resolve()
        candidate = Path.cwd() / DEFAULT_SETTINGS_FILE
        if candidate.exists():
            return candidate.resolve()
        return None

    def _load_file(self, path: Path) -> Dict[str, Any]:
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot load settings: {e}", str(path)) from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("settings file must contain a map", str(path))
        logger.debug("Loaded settings from %s: %s", path, sorted(data))
        return data

    def __repr__(self):
        return f"Settings(source={self._source!r}, path={self._resolved_path})"


__all__ = ["Settings", "DEFAULTS", "DEFAULT_SETTINGS_FILE"]
