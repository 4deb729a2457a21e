"""Template data assembly for Quillpress.

Every render, whether it answers a request or writes a static file, builds
its template data here. The base mapping carries the site settings, the active
theme, the menu and the viewer; route handlers add their own fields on top;
``finalize`` passes the result through the ``template_data`` filter.

Key classes:
- RenderContext: How and for whom a page is rendered.
- TemplateDataAssembler: Builds and finalizes template data.

Key functions:
- template_items: Turn documents into ``{metadata, content}`` records.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .hooks import HookSystem
from .query import ContentQueryEngine
from .renderers import markdown_to_html
from .resolver import check_custom_template
from .settings import SettingsService
from .store import Document
from .themes import ThemeManager
from .users import can_edit, public_user

logger = logging.getLogger(__name__)

NOT_FOUND_TITLE = "404 - The Page You're Looking For Doesn't Exist"
NOT_FOUND_DESCRIPTION = (
    "The page you were looking for could not be found. It may have been moved or "
    "deleted. Please check the URL or return to the homepage."
)
SERVER_ERROR_TITLE = "500 - Internal Server Error"
SERVER_ERROR_DESCRIPTION = (
    "Something went wrong on our end. We're working to fix the issue as quickly as "
    "possible. Please try again later or return to the homepage."
)

TAXONOMY_LABELS = {
    "category": {
        "title": "Category: {term}",
        "subtitle": "{count} posts in {term}",
        "description": "Discover the latest articles in the {term} category",
    },
    "tag": {
        "title": "Tagged: {term}",
        "subtitle": "{count} posts tagged {term}",
        "description": "Read posts tagged {term}",
    },
}


@dataclass
class RenderContext:
    """How and for whom a page is rendered.

    Attributes:
        is_static: Rendering for the static site generator.
        clean_urls: Directory URLs in static output.
        current_user: Logged-in user record, if any.
        query: Query-string parameters of the request.
        base_url: Absolute site URL used by SEO artifacts.
    """

    is_static: bool = False
    clean_urls: bool = True
    current_user: dict[str, Any] | None = None
    query: Mapping[str, str] = field(default_factory=dict)
    base_url: str = "/"

    @property
    def editable(self) -> bool:
        return not self.is_static and can_edit(self.current_user)

    @property
    def page(self) -> Any:
        return self.query.get("page", 1)

    def page_size(self, default: int) -> int:
        try:
            size = int(self.query.get("pageSize", default))
        except (TypeError, ValueError):
            return default
        return size if size > 0 else default


def template_items(documents: Iterable[Document]) -> list[dict[str, Any]]:
    """Return ``{metadata, content}`` records for templates."""
    return [{"metadata": doc.frontmatter, "content": doc.content} for doc in documents]


def taxonomy_metadata(
    taxonomy_type: str, term: str, item_count: int | None = None, page: int = 1
) -> dict[str, str]:
    """Return the title, subtitle and description of a taxonomy listing."""
    labels = TAXONOMY_LABELS[taxonomy_type]
    title = labels["title"].format(term=term)
    metadata = {
        "title": title if page <= 1 else f"{title} - Page {page}",
        "description": labels["description"].format(term=term),
    }
    if item_count is not None:
        metadata["subtitle"] = labels["subtitle"].format(count=item_count, term=term)
    return metadata


class TemplateDataAssembler:
    """Builds the data mapping every template receives.

    Attributes:
        settings: Site settings service.
        themes: Theme manager providing the active theme.
        query: Query engine used to load custom cover pages.
        hooks: Hook system running the ``template_data`` filter.
    """

    def __init__(
        self,
        settings: SettingsService,
        themes: ThemeManager,
        query: ContentQueryEngine,
        hooks: HookSystem,
    ):
        self.settings = settings
        self.themes = themes
        self.query = query
        self.hooks = hooks

    def base_data(self, context: RenderContext, **additional: Any) -> dict[str, Any]:
        """Return the shared fields plus ``additional``, with the menu attached."""
        user = context.current_user
        data: dict[str, Any] = {
            "site": self.settings.get_settings(),
            "theme": self.themes.get_active_theme().to_dict(),
            "editable": context.editable,
            "currentUser": public_user(user) if user else None,
            "year": datetime.now().year,
            "isGenerateStatic": context.is_static,
            **additional,
        }
        data = self.themes.add_menu_to_template_data(data)
        data["menu"] = self.themes.menu.build_hierarchy(data["menuItems"])
        return data

    def apply_template_metadata(
        self,
        template_path: Path,
        data: dict[str, Any],
        taxonomy_type: str | None = None,
        taxonomy_term: str | None = None,
        item_count: int | None = None,
        page: int = 1,
    ) -> dict[str, Any]:
        """Blend a custom cover page and taxonomy labels into ``data``.

        When ``template_path`` is ``custom/<name>.html`` and a page with slug
        ``<name>`` exists, its frontmatter becomes ``metadata`` and its body
        becomes ``content``. Taxonomy listings then get their title, subtitle
        and description overridden.

        Args:
            template_path: Resolved template.
            data: Template data built so far; not modified.
            taxonomy_type: "category" or "tag" for taxonomy listings.
            taxonomy_term: Display form of the term.
            item_count: Number of posts in the whole listing.
            page: Current page number.

        Returns:
            A new mapping.
        """
        enhanced = dict(data)
        info = check_custom_template(template_path)
        labels = (
            taxonomy_metadata(taxonomy_type, taxonomy_term, item_count, page)
            if taxonomy_type in TAXONOMY_LABELS and taxonomy_term
            else None
        )
        if info.is_custom_template:
            cover = self.query.get_content_by_property("page", "slug", info.template_slug)
            if cover is None or not cover.is_published:
                if labels:
                    enhanced["metadata"] = labels
                return enhanced
            metadata = copy.deepcopy(cover.frontmatter)
            if labels and info.template_slug == taxonomy_type:
                metadata.update(labels)
            enhanced["metadata"] = metadata
            if cover.content:
                enhanced["content"] = markdown_to_html(cover.content)
        elif labels:
            enhanced["metadata"] = labels
        return enhanced

    def finalize(self, data: dict[str, Any], template_name: str) -> dict[str, Any]:
        """Run the ``template_data`` filter over the assembled data."""
        return self.hooks.apply_filters("template_data", data, template_name)

    def not_found_data(self, context: RenderContext) -> dict[str, Any]:
        return self.base_data(
            context,
            notFoundRoute=True,
            metadata={"title": NOT_FOUND_TITLE, "description": NOT_FOUND_DESCRIPTION},
        )

    def server_error_data(self, context: RenderContext) -> dict[str, Any]:
        return self.base_data(
            context,
            serverErrorRoute=True,
            metadata={"title": SERVER_ERROR_TITLE, "description": SERVER_ERROR_DESCRIPTION},
        )
