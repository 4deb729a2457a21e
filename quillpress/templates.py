"""Template rendering engine for Quillpress.

This module uses Jinja2 to render theme templates. Templates are addressed by
the absolute paths the resolver returns and rendered by their path relative
to the theme directory, so a template can extend ``templates/layout.html`` or
include files from ``partials/``.

Key class:
- TemplateEngine: Renders resolved templates of the active theme.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup

from .html_utils import join_root_url
from .renderers import pygments_css
from .themes import Theme, ThemeManager
from .utils import slugify

logger = logging.getLogger(__name__)

__all__ = ["TemplateEngine", "TemplateNotFound"]

# Template data keys holding trusted HTML
HTML_KEYS = ("content", "html_menu")


class TemplateEngine:
    """Template rendering engine using Jinja2.

    One Jinja environment is kept per theme directory. The loader searches the
    theme root first and then its ``templates/`` directory, so both
    ``custom/about.html`` and ``layout.html`` resolve.

    Attributes:
        themes: Theme manager providing the active theme.
        root_url: Base URL prefixed to links built with ``url_for``.
    """

    def __init__(self, themes: ThemeManager, root_url: str = ""):
        self.themes = themes
        self.root_url = root_url
        self._environments: dict[Path, Environment] = {}

    def environment(self, theme: Theme) -> Environment:
        """Return (and cache) the Jinja environment of a theme."""
        env = self._environments.get(theme.path)
        if env is None:
            env = Environment(
                loader=FileSystemLoader([theme.path, theme.templates_dir]),
                autoescape=select_autoescape(["html", "xml"]),
                enable_async=False,
            )
            self._environments[theme.path] = env
        self._install_globals(env, theme)
        return env

    def _install_globals(self, env: Environment, theme: Theme) -> None:
        env.globals["url_for"] = self._url_for
        env.globals["asset_url"] = lambda name: self._url_for(
            f"/content/themes/{theme.name}/assets/{name.lstrip('/')}"
        )
        env.globals["pygments_css"] = pygments_css
        env.globals["slugify"] = slugify

    def _url_for(self, path: str) -> str:
        """Generate a URL for a site path, applying root_url if configured.

        Args:
            path: Path to generate URL for.

        Returns:
            Full URL with root_url prefix if configured.
        """
        if path.startswith(("http://", "https://", "//")):
            return path
        path = path if path.startswith("/") else f"/{path}"
        if self.root_url and self.root_url != "/":
            return join_root_url(self.root_url, path)
        return path

    def template_name(self, template_path: Path, theme: Theme) -> str:
        """Return the loader name of a template path inside ``theme``."""
        try:
            return Path(template_path).relative_to(theme.path).as_posix()
        except ValueError:
            raise TemplateNotFound(str(template_path)) from None

    def render(self, template_path: Path, data: dict[str, Any]) -> str:
        """Render a resolved template of the active theme.

        Args:
            template_path: Absolute template path from the resolver.
            data: Template data; ``content`` and ``html_menu`` are trusted HTML.

        Returns:
            Rendered string.

        Raises:
            TemplateNotFound: When the template does not exist.
        """
        theme = self.themes.get_active_theme()
        env = self.environment(theme)
        template = env.get_template(self.template_name(template_path, theme))
        context = dict(data)
        for key in HTML_KEYS:
            value = context.get(key)
            if isinstance(value, str) and not isinstance(value, Markup):
                context[key] = Markup(value)
        return template.render(**context)

    def render_to_file(self, template_path: Path, data: dict[str, Any], output_path: Path) -> None:
        """Render a template and write it, creating parent directories."""
        rendered = self.render(template_path, data)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(rendered, encoding="utf-8")
        logger.debug("Rendered %s -> %s", template_path.name, output_path)
