"""Theme discovery and selection for Quillpress.

A theme is a directory under the themes directory holding a ``theme.json``
metadata file, a ``templates/`` tree, an optional ``custom/`` tree of
slug-named templates, and an ``assets/`` tree. A copy of the ``default`` theme
ships inside the package and is used when the themes directory holds no
usable theme.

Key classes:
- Theme: A discovered theme and its directories.
- ThemeManager: Discovers themes, tracks the active one, and exposes
  template paths and the site menu.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import CmsError, ErrorCode, not_found
from .menu import MenuManager
from .settings import SettingsService

logger = logging.getLogger(__name__)

BUNDLED_THEMES_DIR = Path(__file__).parent / "themes"
DEFAULT_THEME = "default"


@dataclass
class Theme:
    """A discovered theme.

    Attributes:
        name: Directory name, used as the theme identifier.
        path: Theme directory.
        info: Parsed theme.json (title, version, author, description, ...).
    """

    name: str
    path: Path
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def templates_dir(self) -> Path:
        return self.path / "templates"

    @property
    def custom_dir(self) -> Path:
        return self.path / "custom"

    @property
    def assets_dir(self) -> Path:
        return self.path / "assets"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path.as_posix(),
            "info": dict(self.info),
            "templatesDir": self.templates_dir.as_posix(),
            "customDir": self.custom_dir.as_posix(),
            "assetsDir": self.assets_dir.as_posix(),
        }


def discover_themes(themes_dir: Path) -> dict[str, Theme]:
    """Scan a directory for themes.

    Directories starting with ``_temp`` are ignored. A directory without a
    readable ``theme.json`` is skipped with a warning.

    Returns:
        Themes keyed by name, in directory-name order.
    """
    themes: dict[str, Theme] = {}
    if not themes_dir.is_dir():
        return themes
    for path in sorted(themes_dir.iterdir()):
        if not path.is_dir() or path.name.startswith("_temp"):
            continue
        try:
            info = json.loads((path / "theme.json").read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Error loading theme %r: %s", path.name, exc)
            continue
        if not isinstance(info, dict):
            info = {}
        themes[path.name] = Theme(name=path.name, path=path, info=info)
    return themes


class ThemeManager:
    """Keeps track of installed themes and the active one.

    Attributes:
        themes_dir: Directory holding installed themes.
        settings: Settings service; ``activeTheme`` is read from and written to it.
        menu: Global menu manager.
    """

    def __init__(
        self,
        themes_dir: Path,
        settings: SettingsService,
        menu: MenuManager,
        bundled_dir: Path = BUNDLED_THEMES_DIR,
    ):
        self.themes_dir = Path(themes_dir)
        self.settings = settings
        self.menu = menu
        self.bundled_dir = bundled_dir
        self.themes: dict[str, Theme] = {}
        self.active_theme: Theme | None = None

    def initialize(self) -> Theme:
        """Discover themes and select the active theme from settings.

        When the configured theme is missing, ``default`` or else the first
        discovered theme is used and written back to settings.

        Raises:
            CmsError: NOT_FOUND when no theme is available at all.
        """
        self.refresh_themes()
        wanted = self.settings.get("activeTheme") or DEFAULT_THEME
        if wanted in self.themes:
            self.active_theme = self.themes[wanted]
        else:
            self.active_theme = self._fallback_theme()
            if self.active_theme is None:
                raise CmsError(ErrorCode.NOT_FOUND, "No themes available")
            logger.warning(
                "Theme %r not found, using %r", wanted, self.active_theme.name
            )
            if self.active_theme.path.parent == self.themes_dir:
                self.settings.update_settings({"activeTheme": self.active_theme.name})
        return self.active_theme

    def refresh(self) -> Theme:
        return self.initialize()

    def refresh_themes(self) -> dict[str, Theme]:
        self.themes = discover_themes(self.themes_dir)
        return self.themes

    def _fallback_theme(self) -> Theme | None:
        if DEFAULT_THEME in self.themes:
            return self.themes[DEFAULT_THEME]
        if self.themes:
            return next(iter(self.themes.values()))
        return discover_themes(self.bundled_dir).get(DEFAULT_THEME)

    def get_available_themes(self) -> list[Theme]:
        return list(self.themes.values())

    def get_active_theme(self) -> Theme:
        if self.active_theme is None:
            return self.initialize()
        return self.active_theme

    def switch_theme(self, name: str) -> Theme:
        """Make ``name`` the active theme and persist the choice.

        Raises:
            CmsError: NOT_FOUND for unknown themes.
        """
        if name not in self.themes:
            self.refresh_themes()
        if name not in self.themes:
            raise not_found("Theme", name)
        self.active_theme = self.themes[name]
        self.settings.update_settings({"activeTheme": name})
        logger.info("Switched theme to %s", name)
        return self.active_theme

    def delete_theme(self, name: str) -> None:
        """Remove an installed theme directory.

        Raises:
            CmsError: NOT_FOUND for unknown themes, FORBIDDEN_OPERATION for
                the active theme.
        """
        theme = self.themes.get(name)
        if theme is None:
            raise not_found("Theme", name)
        if self.active_theme is not None and self.active_theme.name == name:
            raise CmsError(ErrorCode.FORBIDDEN_OPERATION, "Cannot delete the active theme")
        try:
            shutil.rmtree(theme.path)
        except OSError as exc:
            raise CmsError(ErrorCode.IO_ERROR, str(exc)) from exc
        del self.themes[name]

    def get_template_path(self, name: str) -> Path:
        """Return ``<active theme>/templates/<name>``; the file may not exist."""
        return self.get_active_theme().templates_dir / name

    def get_custom_template_path(self, directory: str, name: str) -> Path:
        """Return ``<active theme>/<directory>/<name>``; the file may not exist."""
        return self.get_active_theme().path / directory / name

    def add_menu_to_template_data(self, data: dict[str, Any]) -> dict[str, Any]:
        return self.menu.add_menu_to_template_data(data)
