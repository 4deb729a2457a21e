"""Content queries for Quillpress.

The query engine is the read side of the content store. It enumerates
documents, filters and orders them, paginates, resolves relations between
documents, and projects them into lighter views. List operations are
best-effort: a file that cannot be parsed is logged and skipped.

Two query kinds exist: ``post`` (the posts directory) and ``page`` (normal
and custom pages together).

Key classes:
- ContentQueryEngine: All read operations over the store.

Key functions:
- sort_by_created: Newest first, ties broken by id.
- apply_pagination: Offset/limit slicing.
- add_post_references: Attach prevPost/nextPost to an ordered post list.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from .errors import CmsError, ErrorCode
from .store import Document, MarkdownStore
from .utils import markdown_preview, normalize_tags, timestamp_or_epoch, truncate_excerpt

logger = logging.getLogger(__name__)

STORE_KINDS = {
    "post": ("posts",),
    "page": ("pages", "custom"),
}

RELATED_POST_FIELDS = ("id", "title", "subtitle", "slug", "featuredImage")


def store_kinds(kind: str) -> tuple[str, ...]:
    """Map a query kind ("post" or "page") to store directories."""
    try:
        return STORE_KINDS[kind]
    except KeyError:
        raise CmsError(ErrorCode.INVALID_INPUT, f"Unknown content type {kind!r}") from None


def sort_by_created(documents: Iterable[Document]) -> list[Document]:
    """Sort documents newest first by ``createdAt``; ties go to the smaller id."""
    by_id = sorted(documents, key=lambda doc: doc.id)
    return sorted(by_id, key=lambda doc: timestamp_or_epoch(doc.get("createdAt")), reverse=True)


def apply_pagination(
    items: Sequence[Any], limit: int | None = None, offset: int | None = 0
) -> list[Any]:
    """Return ``items[offset:offset + limit]``; no limit means to the end."""
    start = max(offset or 0, 0)
    if not limit:
        return list(items[start:])
    return list(items[start : start + limit])


def add_post_references(posts: list[Document]) -> list[Document]:
    """Attach ``prevPost`` and ``nextPost`` to each post of a newest-first list.

    ``prevPost`` is the older neighbour, ``nextPost`` the newer one; both are
    ``{title, slug}`` or None at the ends of the list.
    """
    for index, post in enumerate(posts):
        older = posts[index + 1] if index + 1 < len(posts) else None
        newer = posts[index - 1] if index > 0 else None
        post.frontmatter["prevPost"] = {"title": older.title, "slug": older.slug} if older else None
        post.frontmatter["nextPost"] = {"title": newer.title, "slug": newer.slug} if newer else None
    return posts


def field_values(frontmatter: dict[str, Any], field: str) -> list[str]:
    """Return the values of a possibly plural field as a normalized list.

    ``field`` is tried first, then ``field + "s"``. Lists and comma-joined
    strings are split; other scalars become a one-item list.
    """
    plural = field if field.endswith("s") else f"{field}s"
    raw = frontmatter.get(field) or frontmatter.get(plural)
    if raw is None or raw == "":
        return []
    if isinstance(raw, (list, tuple, str)):
        return normalize_tags(raw)
    return [str(raw)]


def transform_documents(
    documents: Iterable[Document],
    summary_view: bool = False,
    preview_length: int | None = None,
    frontmatter_only: bool = False,
) -> list[Document]:
    """Project documents into summary or frontmatter-only views."""
    results = []
    for document in documents:
        if summary_view:
            document.content = markdown_preview(document.content, preview_length or 300)
        elif frontmatter_only:
            document.content = None
        results.append(document)
    return results


class ContentQueryEngine:
    """Read operations over a MarkdownStore.

    Every call reads through the store, so results reflect all writes made
    through the same store instance.
    """

    def __init__(self, store: MarkdownStore):
        self.store = store

    def _load(self, kind: str) -> list[Document]:
        documents = []
        for store_kind in store_kinds(kind):
            for document in self.store.iter_valid(store_kind):
                if kind == "page":
                    document.frontmatter.setdefault("pageType", document.page_type)
                documents.append(document)
        return documents

    def get_posts(
        self,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        summary_view: bool = False,
        preview_length: int | None = None,
        frontmatter_only: bool = False,
    ) -> list[Document]:
        """List posts newest first.

        Args:
            status: Keep only posts with this status.
            limit: Maximum number of posts.
            offset: Number of posts to skip.
            summary_view: Replace bodies with plain-text previews.
            preview_length: Preview length for the summary view (default 300).
            frontmatter_only: Drop bodies entirely.
        """
        posts = self._load("post")
        if status:
            posts = [post for post in posts if post.get("status") == status]
        posts = apply_pagination(sort_by_created(posts), limit, offset)
        return transform_documents(posts, summary_view, preview_length, frontmatter_only)

    def get_pages(
        self,
        status: str | None = None,
        page_type: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        frontmatter_only: bool = False,
    ) -> list[Document]:
        """List normal and custom pages, in directory order (unsorted)."""
        pages = self._load("page")
        if status:
            pages = [page for page in pages if page.get("status") == status]
        if page_type:
            pages = [page for page in pages if page.get("pageType") == page_type]
        pages = transform_documents(pages, frontmatter_only=frontmatter_only)
        return apply_pagination(pages, limit, offset)

    def get_content(self, doc_id: Any, kind: str = "post") -> Document | None:
        """Return the document with ``doc_id`` or None."""
        for store_kind in store_kinds(kind):
            document = self.store.find_by_frontmatter_property(store_kind, "id", doc_id)
            if document is not None:
                if kind == "page":
                    document.frontmatter.setdefault("pageType", document.page_type)
                return document
        return None

    def get_post(
        self, doc_id: Any, resolve_related_posts: bool = True, add_navigation: bool = False
    ) -> Document | None:
        """Return a post with ``relatedPostsData`` and optional prev/next references."""
        post = self.get_content(doc_id, "post")
        if post is None:
            return None
        return self._decorate_post(post, resolve_related_posts, add_navigation)

    def get_page(self, doc_id: Any) -> Document | None:
        return self.get_content(doc_id, "page")

    def get_content_by_property(
        self,
        kind: str,
        prop: str,
        value: Any,
        parent_page: str | None = None,
        add_navigation: bool = False,
        resolve_related_posts: bool = True,
        published_only: bool = False,
    ) -> Document | None:
        """Return the first document whose frontmatter ``prop`` equals ``value``.

        Args:
            kind: "post" or "page".
            prop: Frontmatter key, e.g. "slug".
            value: Value to match.
            parent_page: Only consider documents with exactly this parentPage.
            add_navigation: For posts, attach prevPost/nextPost.
            resolve_related_posts: For posts, attach relatedPostsData.
            published_only: Leave unpublished posts out of relatedPostsData.
        """
        for store_kind in store_kinds(kind):
            document = self.store.find_by_frontmatter_property(
                store_kind, prop, value, parent_page=parent_page
            )
            if document is None:
                continue
            if kind == "page":
                document.frontmatter.setdefault("pageType", document.page_type)
                return document
            return self._decorate_post(
                document, resolve_related_posts, add_navigation, published_only
            )
        return None

    def _decorate_post(
        self,
        post: Document,
        resolve_related_posts: bool,
        add_navigation: bool,
        published_only: bool = False,
    ) -> Document:
        related = post.get("relatedPosts")
        if resolve_related_posts and isinstance(related, list):
            post.frontmatter["relatedPostsData"] = self.resolve_related_posts(
                related, published_only=published_only
            )
        if add_navigation:
            published = add_post_references(
                self.get_posts(status="published", frontmatter_only=True)
            )
            for candidate in published:
                if candidate.id == post.id:
                    post.frontmatter["prevPost"] = candidate.get("prevPost")
                    post.frontmatter["nextPost"] = candidate.get("nextPost")
                    break
        return post

    def resolve_related_posts(
        self, ids: Iterable[Any], published_only: bool = False
    ) -> list[dict[str, Any]]:
        """Return minimal records for the given post ids, dropping missing ones.

        With ``published_only``, unpublished posts are dropped like missing ones.
        """
        records = []
        for related_id in ids:
            if not related_id:
                continue
            related = self.store.find_by_frontmatter_property("posts", "id", related_id)
            if related is None or (published_only and not related.is_published):
                logger.debug("Related post %s not found", related_id)
                continue
            record = {key: related.get(key) for key in RELATED_POST_FIELDS}
            excerpt = related.get("excerpt")
            record["excerpt"] = truncate_excerpt(str(excerpt), 120) if excerpt else None
            records.append(record)
        return records

    def get_content_by_field_value(
        self,
        kind: str,
        field: str,
        value: str,
        limit: int | None = None,
        offset: int = 0,
        summary_view: bool = False,
        preview_length: int | None = None,
        frontmatter_only: bool = False,
    ) -> list[Document]:
        """List published documents whose ``field`` (or ``field + "s"``) contains ``value``."""
        matches = [
            document
            for document in self._load(kind)
            if document.is_published and value in field_values(document.frontmatter, field)
        ]
        matches = apply_pagination(sort_by_created(matches), limit, offset)
        return transform_documents(matches, summary_view, preview_length, frontmatter_only)

    def get_posts_by_category(self, category: str, **options: Any) -> list[Document]:
        return self.get_content_by_field_value("post", "category", category, **options)

    def get_posts_by_tag(self, tag: str, **options: Any) -> list[Document]:
        return self.get_content_by_field_value("post", "tag", tag, **options)

    def find_content(
        self,
        predicate: Callable[[Document], bool],
        content_types: Sequence[str] = ("post", "page"),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Document]:
        """Scan documents of the given kinds, keep those matching ``predicate``."""
        results = []
        for kind in content_types:
            if kind not in STORE_KINDS:
                continue
            results.extend(document for document in self._load(kind) if predicate(document))
        return apply_pagination(sort_by_created(results), limit, offset)

    def taxonomy_terms(self, taxonomy: str) -> dict[str, int]:
        """Count published posts per category or tag term.

        Args:
            taxonomy: "category" or "tag".

        Returns:
            Term to post count, sorted by term.
        """
        counts: dict[str, int] = {}
        for post in self.get_posts(status="published", frontmatter_only=True):
            for term in set(field_values(post.frontmatter, taxonomy)):
                counts[term] = counts.get(term, 0) + 1
        return dict(sorted(counts.items(), key=lambda item: item[0].lower()))
