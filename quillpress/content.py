"""Content writes for Quillpress.

ContentManager is the write side of the content core. It validates incoming
metadata, assigns identifiers and timestamps, and writes documents through
the store. Every rule that keeps the content set consistent lives here:

- ``slug`` is required, well-formed, and unique among posts or among pages.
- A custom page's ``parentPage`` must name an existing custom page, must not
  be the page itself, and must not make the page its own ancestor.

Key classes:
- ContentManager: Create, update and delete posts and pages.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from .errors import CmsError, ErrorCode, not_found
from .hooks import HookSystem
from .query import ContentQueryEngine
from .store import Document, MarkdownStore
from .utils import is_valid_slug, now_iso, slugify

logger = logging.getLogger(__name__)

# Keys computed at read time that must never be written back
DERIVED_KEYS = ("relatedPostsData", "prevPost", "nextPost")

HOOK_NOUNS = {"post": "post", "page": "page"}


def target_store_kind(kind: str, frontmatter: dict[str, Any]) -> str:
    """Return the store directory a document of ``kind`` belongs in."""
    if kind == "post":
        return "posts"
    return "custom" if frontmatter.get("pageType") == "custom" else "pages"


class ContentManager:
    """Validating writer for posts and pages.

    Attributes:
        store: Underlying Markdown store.
        query: Query engine used for lookups during validation.
        hooks: Hook system receiving the content actions.
    """

    def __init__(
        self,
        store: MarkdownStore,
        query: ContentQueryEngine | None = None,
        hooks: HookSystem | None = None,
    ):
        self.store = store
        self.query = query or ContentQueryEngine(store)
        self.hooks = hooks or HookSystem()
        self._last_id = 0

    def initialize(self) -> None:
        """Create the content directories."""
        for kind in ("posts", "pages", "custom"):
            self.store.directory(kind).mkdir(parents=True, exist_ok=True)

    def _new_id(self) -> str:
        # Millisecond clock, bumped so ids issued by this process never repeat
        candidate = max(time.time_ns() // 1_000_000, self._last_id + 1)
        while self.query.get_content(str(candidate), "post") or self.query.get_content(
            str(candidate), "page"
        ):
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    def _check_slug(self, kind: str, slug: str, doc_id: str | None = None) -> None:
        if not is_valid_slug(slug):
            raise CmsError(
                ErrorCode.INVALID_INPUT,
                "Slug may only contain lowercase letters, digits and single hyphens",
                slug=slug,
            )
        existing = self.query.get_content_by_property(
            kind, "slug", slug, resolve_related_posts=False
        )
        if existing is not None and existing.id != doc_id:
            noun = HOOK_NOUNS[kind]
            raise CmsError(
                ErrorCode.DUPLICATE_SLUG, f"A {noun} with this slug already exists", slug=slug
            )

    def _check_parent(self, slug: str, parent_slug: str, previous_slug: str | None = None) -> None:
        """Validate a custom page's parent and reject cycles."""
        if parent_slug in (slug, previous_slug):
            raise CmsError(ErrorCode.INVALID_INPUT, "A page cannot be its own parent")
        parent = self.query.get_content_by_property("page", "slug", parent_slug)
        if parent is None or parent.get("pageType") != "custom":
            raise CmsError(
                ErrorCode.INVALID_INPUT,
                "Parent page must be a valid custom page",
                parentPage=parent_slug,
            )
        seen = {parent.slug}
        current = parent
        while current.parent_page:
            if current.parent_page in (slug, previous_slug):
                raise CmsError(
                    ErrorCode.INVALID_INPUT, "This would create a circular parent relationship"
                )
            if current.parent_page in seen:
                break
            seen.add(current.parent_page)
            ancestor = self.query.get_content_by_property("page", "slug", current.parent_page)
            if ancestor is None:
                break
            current = ancestor

    def _validate(
        self,
        kind: str,
        frontmatter: dict[str, Any],
        doc_id: str | None = None,
        previous_slug: str | None = None,
    ) -> None:
        if not str(frontmatter.get("title") or "").strip():
            raise CmsError(ErrorCode.INVALID_INPUT, "Title is required")
        self._check_slug(kind, frontmatter["slug"], doc_id)
        if frontmatter.get("status") not in ("draft", "published"):
            raise CmsError(
                ErrorCode.INVALID_INPUT,
                "Status must be 'draft' or 'published'",
                status=frontmatter.get("status"),
            )
        if kind == "page":
            if frontmatter.get("pageType") not in ("normal", "custom"):
                raise CmsError(ErrorCode.INVALID_INPUT, "pageType must be 'normal' or 'custom'")
            parent = frontmatter.get("parentPage")
            if parent:
                if frontmatter["pageType"] != "custom":
                    raise CmsError(
                        ErrorCode.INVALID_INPUT, "Only custom pages can have a parent page"
                    )
                self._check_parent(frontmatter["slug"], str(parent), previous_slug)

    def create(self, kind: str, metadata: dict[str, Any], content: str = "") -> Document:
        """Create a post or page.

        Args:
            kind: "post" or "page".
            metadata: Frontmatter values supplied by the editor.
            content: Markdown body.

        Returns:
            The written document.

        Raises:
            CmsError: INVALID_INPUT, DUPLICATE_SLUG or IO_ERROR.
        """
        metadata = {k: v for k, v in metadata.items() if k not in DERIVED_KEYS}
        title = str(metadata.get("title") or "").strip()
        slug = metadata.get("slug") or slugify(title)
        created = now_iso()
        frontmatter = {
            **metadata,
            "title": title,
            "slug": slug,
            "status": metadata.get("status") or "draft",
            "author": metadata.get("author") or "admin",
            "createdAt": created,
            "updatedAt": created,
        }
        if kind == "page":
            frontmatter["pageType"] = metadata.get("pageType") or "normal"
            if not frontmatter.get("parentPage"):
                frontmatter.pop("parentPage", None)
        self._validate(kind, frontmatter)
        frontmatter["id"] = self._new_id()

        store_kind = target_store_kind(kind, frontmatter)
        document = self.store.create(
            store_kind, Document(kind=store_kind, frontmatter=frontmatter, content=content or "")
        )
        logger.info("Created %s %s (%s)", HOOK_NOUNS[kind], document.id, document.slug)
        self.hooks.do_action(f"{HOOK_NOUNS[kind]}_created", document.copy())
        return document

    def update(
        self, kind: str, doc_id: Any, metadata: dict[str, Any], content: str | None = None
    ) -> Document:
        """Update a post or page.

        Metadata is merged over the stored frontmatter. ``id`` and
        ``createdAt`` never change and ``updatedAt`` is refreshed. When the
        title changes and no slug is given, the slug is regenerated. The file
        moves when the slug or the page type changes.

        Raises:
            CmsError: NOT_FOUND, INVALID_INPUT, DUPLICATE_SLUG or IO_ERROR.
        """
        existing = self.query.get_content(doc_id, kind)
        if existing is None:
            raise not_found(HOOK_NOUNS[kind].capitalize(), doc_id)
        metadata = {k: v for k, v in metadata.items() if k not in DERIVED_KEYS}
        frontmatter = {k: v for k, v in existing.frontmatter.items() if k not in DERIVED_KEYS}
        frontmatter.update(metadata)
        frontmatter["id"] = existing.id
        frontmatter["createdAt"] = existing.get("createdAt")
        frontmatter["updatedAt"] = now_iso()
        frontmatter.setdefault("status", "draft")

        title = metadata.get("title")
        if title and not metadata.get("slug") and title != existing.title:
            frontmatter["slug"] = slugify(title)
        if kind == "page":
            frontmatter["pageType"] = frontmatter.get("pageType") or existing.page_type
            if frontmatter["pageType"] != "custom" or not frontmatter.get("parentPage"):
                frontmatter.pop("parentPage", None)

        self._validate(kind, frontmatter, doc_id=existing.id, previous_slug=existing.slug)

        store_kind = target_store_kind(kind, frontmatter)
        document = self.store.update(
            existing.kind,
            existing.id,
            Document(
                kind=store_kind,
                frontmatter=frontmatter,
                content=existing.content if content is None else content,
            ),
        )
        logger.info("Updated %s %s (%s)", HOOK_NOUNS[kind], document.id, document.slug)
        self.hooks.do_action(f"{HOOK_NOUNS[kind]}_updated", document.copy())
        return document

    def set_status(self, kind: str, doc_id: Any, status: str) -> Document:
        return self.update(kind, doc_id, {"status": status})

    def delete(self, kind: str, doc_id: Any) -> Document:
        """Delete a post or page.

        Raises:
            CmsError: NOT_FOUND or IO_ERROR.
        """
        existing = self.query.get_content(doc_id, kind)
        if existing is None:
            raise not_found(HOOK_NOUNS[kind].capitalize(), doc_id)
        noun = HOOK_NOUNS[kind]
        self.hooks.do_action(f"pre_{noun}_delete", existing.id)
        removed = self.store.delete(existing.kind, existing.id)
        logger.info("Deleted %s %s (%s)", noun, removed.id, removed.slug)
        self.hooks.do_action(f"{noun}_deleted", existing.id)
        return removed
