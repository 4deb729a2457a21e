"""Process-wide managers for a Quillpress project.

create_systems reads the project configuration and wires the store, query
engine, content manager, settings, menu, users, themes, hooks, template
engine, site renderer and JSON API together. Commands and the development
server each build one Systems and share it for their whole run.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .api import ContentApi
from .content import ContentManager
from .hooks import HookSystem
from .menu import MenuManager
from .query import ContentQueryEngine
from .settings import SettingsService, load_config
from .site import SiteRenderer
from .store import MarkdownStore
from .templates import TemplateEngine
from .themes import ThemeManager
from .users import UserRegistry


@dataclass
class Systems:
    """The managers of one project."""

    project_root: Path
    config: dict[str, Any]
    hooks: HookSystem
    store: MarkdownStore
    query: ContentQueryEngine
    content: ContentManager
    settings: SettingsService
    menu: MenuManager
    users: UserRegistry
    themes: ThemeManager
    engine: TemplateEngine
    site: SiteRenderer
    api: ContentApi

    def path(self, key: str) -> Path:
        """Resolve a configured directory against the project root."""
        return self.project_root / self.config[key]

    @property
    def uploads_dir(self) -> Path:
        return self.path("uploads_dir")

    def refresh(self) -> None:
        """Reload settings, menu and themes from disk."""
        self.settings.refresh()
        self.menu.refresh()
        self.themes.refresh()


def create_systems(project_root: Path, debug: bool = False) -> Systems:
    """Load configuration and initialize every manager of a project.

    Missing data directories, settings and menu files are created with
    defaults.

    Args:
        project_root: Directory holding quillpress.yaml.
        debug: Enable the hook system's filter purity checks.

    Raises:
        CmsError: When settings are corrupt or no theme is available.
    """
    project_root = Path(project_root).resolve()
    config = load_config(project_root)
    data_dir = project_root / config["data_dir"]

    hooks = HookSystem(debug=debug)
    store = MarkdownStore(data_dir)
    query = ContentQueryEngine(store)
    content = ContentManager(store, query, hooks)
    settings = SettingsService(data_dir / "settings.json", hooks)
    menu = MenuManager(data_dir / "menu.json")
    users = UserRegistry(data_dir / "users.json")
    themes = ThemeManager(project_root / config["themes_dir"], settings, menu)

    content.initialize()
    settings.initialize()
    menu.initialize()
    themes.initialize()

    engine = TemplateEngine(themes)
    site = SiteRenderer(query, settings, themes, hooks, engine)
    api = ContentApi(content, query, settings, hooks, themes)
    return Systems(
        project_root=project_root,
        config=config,
        hooks=hooks,
        store=store,
        query=query,
        content=content,
        settings=settings,
        menu=menu,
        users=users,
        themes=themes,
        engine=engine,
        site=site,
        api=api,
    )
