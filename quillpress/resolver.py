"""Template resolution for Quillpress.

Given what is being rendered, pick one template file from the active theme by
walking a fixed fallback chain:

1. Home: ``custom/homepage.html``.
2. Custom page: ``custom/<slug>.html``, then the slug with its last
   hyphen segment dropped, then (for three or more segments) the first
   segment alone.
3. Taxonomy: ``custom/<type>-<term>.html``, ``custom/<type>.html``,
   ``templates/taxonomy.html``.
4. ``templates/<contentType>.html``.
5. ``templates/content.html``.
6. ``templates/layout.html``, returned even when it does not exist.

Key functions:
- template_candidates: The ordered chain for a request.
- resolve_template_path: The first existing candidate.
- check_custom_template: Tell whether a resolved path is a custom template.
- resolve_custom_page_template: The template a custom page renders with.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePath

from .pagination import custom_page_chain
from .store import Document
from .themes import ThemeManager

LAYOUT_TEMPLATE = "layout.html"


@dataclass(frozen=True)
class CustomTemplateInfo:
    """Result of check_custom_template.

    Attributes:
        is_custom_template: True for ``.../themes/<theme>/custom/<name>``.
        template_slug: ``<name>`` without ``.html``, or None.
    """

    is_custom_template: bool = False
    template_slug: str | None = None


def template_candidates(
    themes: ThemeManager,
    content_type: str,
    slug: str | None = None,
    is_custom_page: bool = False,
    is_taxonomy: bool = False,
) -> list[Path]:
    """Return the ordered template paths tried for a request.

    Args:
        themes: Theme manager providing the active theme.
        content_type: "home", "post", "page", "category", "tag", "custom", ...
        slug: Document slug, taxonomy term slug, or custom chain pattern.
        is_custom_page: Whether the request is for a custom page.
        is_taxonomy: Whether the request is a taxonomy listing.

    Returns:
        Candidate paths, most specific first, ending with layout.html.
    """
    candidates: list[Path] = []

    def custom(name: str) -> None:
        candidates.append(themes.get_custom_template_path("custom", f"{name}.html"))

    if content_type == "home":
        custom("homepage")

    if is_custom_page and slug:
        custom(slug)
        if "-" in slug:
            parts = slug.split("-")
            custom("-".join(parts[:-1]))
            if len(parts) > 2:
                custom(parts[0])

    if is_taxonomy:
        if slug:
            custom(f"{content_type}-{slug}")
            custom(content_type)
        candidates.append(themes.get_template_path("taxonomy.html"))

    candidates.append(themes.get_template_path(f"{content_type}.html"))
    candidates.append(themes.get_template_path("content.html"))
    candidates.append(themes.get_template_path(LAYOUT_TEMPLATE))

    unique: list[Path] = []
    for path in candidates:
        if path not in unique:
            unique.append(path)
    return unique


def resolve_template_path(
    themes: ThemeManager,
    content_type: str,
    slug: str | None = None,
    is_custom_page: bool = False,
    is_taxonomy: bool = False,
) -> Path:
    """Return the first existing template for a request.

    Falls back to ``templates/layout.html`` of the active theme whether or
    not it exists; callers rendering it handle a missing file.
    """
    candidates = template_candidates(themes, content_type, slug, is_custom_page, is_taxonomy)
    for path in candidates:
        if path.is_file():
            return path
    return candidates[-1]


def is_layout_template(themes: ThemeManager, path: Path) -> bool:
    """Return True when ``path`` is the active theme's universal fallback."""
    return path == themes.get_template_path(LAYOUT_TEMPLATE)


def check_custom_template(template_path: Path | str) -> CustomTemplateInfo:
    """Inspect a resolved path for the ``themes/<theme>/custom/<name>`` shape.

    Examples:
        >>> check_custom_template("content/themes/pure/custom/category.html")
        CustomTemplateInfo(is_custom_template=True, template_slug='category')

        >>> check_custom_template("content/themes/pure/templates/post.html")
        CustomTemplateInfo(is_custom_template=False, template_slug=None)
    """
    parts = PurePath(template_path).parts
    for index, part in enumerate(parts):
        if part != "themes":
            continue
        if index + 3 < len(parts) and parts[index + 2] == "custom":
            filename = parts[index + 3]
            slug = filename[: -len(".html")] if filename.endswith(".html") else None
            return CustomTemplateInfo(True, slug)
    return CustomTemplateInfo()


# Custom pages that serve as cover pages and are never rendered at their own URL
EXCLUDED_CUSTOM_SLUGS = ("homepage", "category", "tag")


def is_standalone_custom_slug(slug: str) -> bool:
    """Return False for cover-page slugs that have no URL of their own."""
    return not (
        slug in EXCLUDED_CUSTOM_SLUGS or slug.startswith(("category-", "tag-"))
    )


def resolve_custom_page_template(
    themes: ThemeManager, page: Document, by_slug: Mapping[str, Document]
) -> Path | None:
    """Pick the template a custom page renders with, or None.

    The page's chain pattern (``docs-intro-install``) is resolved first. If
    that only reaches ``layout.html``, each ancestor's pattern is tried from
    the nearest up, so a nested page inherits its parent's template. Pages
    with no template anywhere in their chain have no URL.
    """
    chain = custom_page_chain(page, by_slug)
    for depth in range(len(chain), 0, -1):
        pattern = "-".join(p.slug for p in chain[:depth])
        path = resolve_template_path(themes, "custom", pattern, is_custom_page=True)
        if not is_layout_template(themes, path):
            return path
    return None
