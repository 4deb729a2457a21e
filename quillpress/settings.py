"""Configuration and site settings for Quillpress.

Two layers of configuration exist:

- Project configuration (``quillpress.yaml`` at the project root) tells the
  tools where the data, themes and uploads live. It is loaded once with
  PyYAML over DEFAULT_CONFIG.
- Site settings (``settings.json`` in the data directory) are edited at run
  time: site title, active theme, posts per page, feed and static output
  options. SettingsService owns that file and keeps an in-memory copy.

Key functions:
- load_config: Loads project configuration from quillpress.yaml.

Key classes:
- SettingsService: Cached access to settings.json with merge-on-update.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

from .errors import CmsError, ErrorCode
from .hooks import HookSystem
from .utils import read_json, write_json

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "quillpress.yaml"

DEFAULT_CONFIG = {
    "data_dir": "content/data",
    "themes_dir": "content/themes",
    "uploads_dir": "content/uploads",
    "output_dir": "_site",
    "port": 8080,
    "log_level": "INFO",
}

DEFAULT_SETTINGS = {
    "siteTitle": "My Quillpress Site",
    "siteDescription": "A site built with Quillpress",
    "postsPerPage": 10,
    "activeTheme": "default",
    "footerCode": "",
}


def load_config(project_root: Path) -> dict[str, Any]:
    """Load project configuration from quillpress.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    return config


class SettingsService:
    """Cached access to the site settings file.

    Attributes:
        path: Location of settings.json.
        hooks: Hook system used for the settings filters and actions.
    """

    def __init__(self, path: Path, hooks: HookSystem | None = None):
        self.path = Path(path)
        self.hooks = hooks or HookSystem()
        self._settings: dict[str, Any] | None = None

    def initialize(self) -> dict[str, Any]:
        """Load settings from disk, creating the file with defaults if missing."""
        if not self.path.exists():
            write_json(self.path, DEFAULT_SETTINGS)
            logger.info("Created default settings at %s", self.path)
        return self.refresh()

    def refresh(self) -> dict[str, Any]:
        """Reload settings from disk, replacing the in-memory copy."""
        stored = read_json(self.path, default={})
        if not isinstance(stored, dict):
            raise CmsError(ErrorCode.INVALID_JSON, f"{self.path.name} must hold an object")
        merged = copy.deepcopy(DEFAULT_SETTINGS)
        merged.update(stored)
        self._settings = merged
        return copy.deepcopy(merged)

    def get_settings(self, force_reload: bool = False) -> dict[str, Any]:
        """Return a copy of the current settings.

        Args:
            force_reload: Re-read settings.json even when cached.
        """
        if force_reload or self._settings is None:
            return self.refresh()
        return copy.deepcopy(self._settings)

    def get(self, key: str, default: Any = None) -> Any:
        return self.get_settings().get(key, default)

    def update_settings(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Merge ``patch`` into the settings and persist them.

        The ``api_update_settings`` filter sees the patch before it is merged;
        ``settings_updated`` fires with the new and the previous settings.

        Returns:
            The merged settings.
        """
        if not isinstance(patch, dict):
            raise CmsError(ErrorCode.INVALID_INPUT, "Settings update must be an object")
        patch = self.hooks.apply_filters("api_update_settings", dict(patch))
        previous = self.get_settings(force_reload=True)
        updated = {**previous, **patch}
        write_json(self.path, updated)
        self._settings = copy.deepcopy(updated)
        self.hooks.do_action("settings_updated", copy.deepcopy(updated), previous)
        return copy.deepcopy(updated)

    @property
    def posts_per_page(self) -> int:
        """Return the positive page size for post listings."""
        try:
            size = int(self.get("postsPerPage", DEFAULT_SETTINGS["postsPerPage"]))
        except (TypeError, ValueError):
            return DEFAULT_SETTINGS["postsPerPage"]
        return size if size > 0 else DEFAULT_SETTINGS["postsPerPage"]
