"""Pagination and hierarchical navigation for Quillpress.

Page windows and their URLs are computed the same way for request-time
rendering (``?page=n`` links) and for static output, where page URLs are
either clean directories (``/tag/python/page/2``) or ``.html`` files
(``/tag/python/page-2.html``).

Custom pages form trees through ``parentPage``. This module turns those trees
into URL paths, breadcrumbs and sibling navigation.

Key functions:
- paginate: Build the pagination record for one page of a listing.
- pagination_urls: first/prev/current/next/last links for a listing.
- page_output_path: Output file for page ``n`` of a static listing.
- custom_page_chain: The root-first ancestor chain of a custom page.
- routable_chain: The chain of a custom page that has a URL.
- build_sibling_navigation: Sibling navigation for every custom page.
- build_breadcrumbs: Breadcrumbs for one custom page.
"""

from __future__ import annotations

import locale
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .store import Document
from .utils import timestamp_or_epoch

# Custom page chains deeper than this have no URL
MAX_CUSTOM_DEPTH = 3


def total_pages(total_items: int, page_size: int) -> int:
    """Return ``ceil(total_items / page_size)``; zero items give zero pages."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return math.ceil(total_items / page_size) if total_items > 0 else 0


def clamp_page(page: Any, pages: int) -> int:
    """Coerce a requested page number into ``[1, max(pages, 1)]``."""
    try:
        number = int(page)
    except (TypeError, ValueError):
        number = 1
    return min(max(number, 1), max(pages, 1))


def page_slice(items: Sequence[Any], page: int, page_size: int) -> list[Any]:
    start = (page - 1) * page_size
    return list(items[start : start + page_size])


def _listing_base(content_type: str, slug: str | None, clean_urls: bool) -> tuple[str, str]:
    """Return (first page URL, prefix for later pages)."""
    if content_type == "home":
        return ("/", "") if clean_urls else ("/index.html", "")
    directory = f"/{slug}" if content_type == "custom" else f"/{content_type}/{slug}"
    if clean_urls:
        return directory, directory
    return f"{directory}.html", directory


def page_url(
    page: int,
    content_type: str,
    slug: str | None = None,
    is_static: bool = False,
    clean_urls: bool = True,
) -> str:
    """Return the URL of page ``page`` of a listing."""
    if not is_static:
        return f"?page={page}"
    first, prefix = _listing_base(content_type, slug, clean_urls)
    if page <= 1:
        return first
    return f"{prefix}/page/{page}" if clean_urls else f"{prefix}/page-{page}.html"


def pagination_urls(
    pagination: Mapping[str, Any],
    content_type: str,
    slug: str | None = None,
    is_static: bool = False,
    clean_urls: bool = True,
) -> dict[str, str | None]:
    """Build the first/prev/current/next/last links of a pagination record.

    Args:
        pagination: Record with currentPage, totalPages, prevPage, nextPage.
        content_type: "home", "category", "tag" or "custom".
        slug: Taxonomy term slug or custom page path.
        is_static: Static output instead of ``?page=n`` links.
        clean_urls: Directory URLs instead of ``.html`` files.
    """

    def url(page: int) -> str:
        return page_url(page, content_type, slug, is_static, clean_urls)

    prev_page = pagination.get("prevPage")
    next_page = pagination.get("nextPage")
    last = pagination.get("totalPages") or 1
    return {
        "first": url(1),
        "prev": url(prev_page) if prev_page else None,
        "current": url(pagination["currentPage"]),
        "next": url(next_page) if next_page else None,
        "last": url(last) if is_static else f"?page={pagination.get('totalPages')}",
    }


def paginate(
    total_items: int,
    page: Any,
    page_size: int,
    content_type: str | None = None,
    slug: str | None = None,
    is_static: bool = False,
    clean_urls: bool = True,
) -> dict[str, Any]:
    """Build the pagination record for one page of a listing.

    Args:
        total_items: Number of items in the whole listing.
        page: Requested page; clamped into range.
        page_size: Items per page.
        content_type: When given, ``urls`` are attached.
        slug: Listing slug for the URLs.
        is_static: Static URLs instead of query strings.
        clean_urls: Directory URLs instead of ``.html`` files.

    Returns:
        ``{currentPage, totalItems, pageSize, totalPages, prevPage, nextPage[, urls]}``.
    """
    pages = total_pages(total_items, page_size)
    current = clamp_page(page, pages)
    record: dict[str, Any] = {
        "currentPage": current,
        "totalItems": total_items,
        "pageSize": page_size,
        "totalPages": pages,
        "prevPage": current - 1 if current > 1 else None,
        "nextPage": current + 1 if current < pages else None,
    }
    if content_type is not None:
        record["urls"] = pagination_urls(record, content_type, slug, is_static, clean_urls)
    return record


def page_output_path(
    page: int, content_type: str, slug: str | None = None, clean_urls: bool = True
) -> str:
    """Return the output file, relative to the output directory, for a listing page."""
    if content_type == "home":
        if page <= 1:
            return "index.html"
        return f"page/{page}/index.html" if clean_urls else f"page-{page}.html"
    directory = slug if content_type == "custom" else f"{content_type}/{slug}"
    if page <= 1:
        return f"{directory}/index.html" if clean_urls else f"{directory}.html"
    return f"{directory}/page/{page}/index.html" if clean_urls else f"{directory}/page-{page}.html"


def index_by_slug(pages: Iterable[Document]) -> dict[str, Document]:
    return {page.slug: page for page in pages if page.slug}


def custom_page_chain(page: Document, by_slug: Mapping[str, Document]) -> list[Document]:
    """Return the chain from the root ancestor down to ``page``.

    Walking stops at a missing parent or at a repeated slug, so a broken or
    cyclic chain still yields a finite list.
    """
    chain = [page]
    seen = {page.slug}
    current = page
    while current.parent_page:
        parent = by_slug.get(current.parent_page)
        if parent is None or parent.slug in seen:
            break
        chain.insert(0, parent)
        seen.add(parent.slug)
        current = parent
    return chain


def routable_chain(
    page: Document, by_slug: Mapping[str, Document], max_depth: int = MAX_CUSTOM_DEPTH
) -> list[Document] | None:
    """Return the chain of a custom page that has a URL, or None.

    A chain has a URL when it reaches a root page (no ``parentPage``) and is
    at most ``max_depth`` levels deep.
    """
    chain = custom_page_chain(page, by_slug)
    if chain[0].parent_page or len(chain) > max_depth:
        return None
    return chain


def custom_page_path(page: Document, by_slug: Mapping[str, Document]) -> str:
    """Return the nested URL path of a custom page, e.g. ``docs/intro/install``."""
    return "/".join(p.slug for p in custom_page_chain(page, by_slug))


def _title_key(title: str) -> str:
    try:
        return locale.strxfrm(title)
    except (TypeError, ValueError):
        return title


def _sibling_entry(page: Document, order: int, by_slug: Mapping[str, Document]) -> dict[str, Any]:
    return {
        "title": page.title,
        "slug": page.slug,
        "url": "/" + custom_page_path(page, by_slug),
        "order": order,
    }


def build_sibling_navigation(custom_pages: Iterable[Document]) -> dict[str, dict[str, Any]]:
    """Build sibling navigation for every custom page in one pass.

    Pages are grouped by ``parentPage``. Root pages and groups with a single
    member get no navigation. Siblings are ordered by ``publishDate``
    ascending (missing dates first), then by title.

    Returns:
        Slug to ``{siblings, prev, next, parentTitle}``.
    """
    pages = list(custom_pages)
    by_slug = index_by_slug(pages)
    groups: dict[str, list[Document]] = {}
    for page in pages:
        if page.slug and page.parent_page:
            groups.setdefault(page.parent_page, []).append(page)

    navigation: dict[str, dict[str, Any]] = {}
    for parent_slug, siblings in groups.items():
        if len(siblings) <= 1:
            continue
        siblings.sort(
            key=lambda p: (timestamp_or_epoch(p.get("publishDate")), _title_key(p.title))
        )
        parent = by_slug.get(parent_slug)
        for index, page in enumerate(siblings):
            navigation[page.slug] = {
                "siblings": [
                    {**_sibling_entry(s, order, by_slug), "active": s.slug == page.slug}
                    for order, s in enumerate(siblings)
                ],
                "prev": (
                    _sibling_entry(siblings[index - 1], index - 1, by_slug)
                    if index > 0
                    else None
                ),
                "next": (
                    _sibling_entry(siblings[index + 1], index + 1, by_slug)
                    if index < len(siblings) - 1
                    else None
                ),
                "parentTitle": parent.title if parent is not None else None,
            }
    return navigation


def build_breadcrumbs(page: Document, by_slug: Mapping[str, Document]) -> list[dict[str, Any]]:
    """Return root-first breadcrumbs ending with the active current page.

    Each entry is ``{title, slug, order}`` where ``slug`` is the URL path of
    that level; the last entry also carries ``active: True``.
    """
    chain = custom_page_chain(page, by_slug)
    crumbs = []
    for order, ancestor in enumerate(chain[:-1]):
        path = "/".join(p.slug for p in chain[: order + 1])
        crumbs.append({"title": ancestor.title, "slug": f"/{path}", "order": order})
    crumbs.append(
        {
            "title": page.title,
            "slug": "/" + "/".join(p.slug for p in chain),
            "active": True,
            "order": len(chain) - 1,
        }
    )
    return crumbs
