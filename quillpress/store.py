"""Markdown document store for Quillpress.

Documents are Markdown files with a YAML frontmatter header, kept in one
directory per kind under the data directory:

    <data_dir>/posts/<slug>.md
    <data_dir>/pages/<slug>.md
    <data_dir>/custom/<slug>.md

The store is the only component that touches these directories. Reads go
through a small cache keyed by path and file stat; every write or delete made
through the store drops the affected entries so readers in the same process
never see stale data.

Key classes:
- Document: A parsed document (frontmatter mapping plus raw Markdown body).
- MarkdownStore: list/get/create/update/delete over the kind directories.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import CmsError, ErrorCode, not_found
from .utils import atomic_write_text, format_iso, parse_timestamp

logger = logging.getLogger(__name__)

KINDS = ("posts", "pages", "custom")

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)


@dataclass
class Document:
    """A Markdown document with its frontmatter.

    Attributes:
        kind: Directory kind the document lives in ("posts", "pages", "custom").
        frontmatter: Metadata mapping parsed from the YAML header.
        content: Raw Markdown body. None when projected as frontmatter only.
        path: Source file, None for documents not yet written.
    """

    kind: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    content: str | None = ""
    path: Path | None = None

    @property
    def id(self) -> str:
        value = self.frontmatter.get("id")
        return "" if value is None else str(value)

    @property
    def slug(self) -> str:
        return str(self.frontmatter.get("slug") or "")

    @property
    def title(self) -> str:
        return str(self.frontmatter.get("title") or "")

    @property
    def status(self) -> str:
        return str(self.frontmatter.get("status") or "draft")

    @property
    def is_published(self) -> bool:
        return self.status == "published"

    @property
    def page_type(self) -> str | None:
        """Return "normal" or "custom" for pages, None for posts."""
        if self.kind == "posts":
            return None
        declared = self.frontmatter.get("pageType")
        if declared in ("normal", "custom"):
            return declared
        return "custom" if self.kind == "custom" else "normal"

    @property
    def is_custom(self) -> bool:
        return self.page_type == "custom"

    @property
    def parent_page(self) -> str | None:
        parent = self.frontmatter.get("parentPage")
        return str(parent) if parent else None

    def get(self, key: str, default: Any = None) -> Any:
        """Return a frontmatter value."""
        return self.frontmatter.get(key, default)

    def copy(self) -> Document:
        """Return a deep copy that can be mutated freely."""
        return Document(
            kind=self.kind,
            frontmatter=copy.deepcopy(self.frontmatter),
            content=self.content,
            path=self.path,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly record of the document."""
        return {
            "id": self.id,
            "kind": self.kind,
            "frontmatter": copy.deepcopy(self.frontmatter),
            "content": self.content,
        }


def _plain_value(value: Any) -> Any:
    """Turn YAML timestamps back into the ISO strings the rest of the core expects."""
    if isinstance(value, datetime):
        return format_iso(parse_timestamp(value))
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _plain_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain_value(item) for item in value]
    return value


def parse_document(text: str, kind: str, path: Path | None = None) -> Document:
    """Parse file text into a Document.

    Args:
        text: Full file content.
        kind: Kind the document belongs to.
        path: Source path, used in error details.

    Returns:
        Parsed document.

    Raises:
        CmsError: INVALID_FRONTMATTER when the header is missing, is not a
            YAML mapping, or carries no ``id``.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        raise CmsError(
            ErrorCode.INVALID_FRONTMATTER, "Missing frontmatter header", path=str(path)
        )
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise CmsError(
            ErrorCode.INVALID_FRONTMATTER, f"Unparsable frontmatter: {exc}", path=str(path)
        ) from exc
    if not isinstance(data, dict):
        raise CmsError(
            ErrorCode.INVALID_FRONTMATTER, "Frontmatter is not a mapping", path=str(path)
        )
    if data.get("id") in (None, ""):
        raise CmsError(ErrorCode.INVALID_FRONTMATTER, "Frontmatter has no id", path=str(path))
    body = text[match.end() :]
    if body.endswith("\n"):
        body = body[:-1]
    return Document(kind=kind, frontmatter=_plain_value(data), content=body, path=path)


def serialize_document(frontmatter: dict[str, Any], content: str | None) -> str:
    """Serialize frontmatter and body into the on-disk format.

    Keys are written in lexicographic order so the same record always
    produces the same bytes.
    The body is followed by one newline, which parse_document strips again.
    """
    header = yaml.safe_dump(
        frontmatter, sort_keys=True, allow_unicode=True, default_flow_style=False
    )
    return f"---\n{header}---\n{content or ''}\n"


class MarkdownStore:
    """Filesystem repository of Markdown documents.

    Attributes:
        root: Data directory holding the kind directories.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self._cache: dict[Path, tuple[tuple[int, int], Document]] = {}

    def directory(self, kind: str) -> Path:
        """Return the directory for a kind.

        Raises:
            CmsError: INVALID_INPUT for unknown kinds.
        """
        if kind not in KINDS:
            raise CmsError(ErrorCode.INVALID_INPUT, f"Unknown content kind {kind!r}")
        return self.root / kind

    def paths(self, kind: str) -> list[Path]:
        """Return the Markdown files of a kind, sorted by name."""
        directory = self.directory(kind)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.glob("*.md") if p.is_file())

    def read(self, path: Path, kind: str) -> Document:
        """Read and parse one document file, using the stat-keyed cache.

        Returns:
            A copy of the cached document.

        Raises:
            CmsError: INVALID_FRONTMATTER or IO_ERROR.
        """
        try:
            stat = path.stat()
            key = (stat.st_mtime_ns, stat.st_size)
            cached = self._cache.get(path)
            if cached and cached[0] == key:
                return cached[1].copy()
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            self._cache.pop(path, None)
            raise not_found("Document", str(path)) from exc
        except OSError as exc:
            raise CmsError(ErrorCode.IO_ERROR, str(exc), path=str(path)) from exc
        document = parse_document(text, kind, path)
        self._cache[path] = (key, document)
        return document.copy()

    def list(self, kind: str) -> list[Document]:
        """Return every document of a kind.

        Raises:
            CmsError: On the first unreadable or unparsable file.
        """
        return [self.read(path, kind) for path in self.paths(kind)]

    def iter_valid(self, kind: str) -> Iterator[Document]:
        """Yield readable documents of a kind, logging and skipping broken files."""
        for path in self.paths(kind):
            try:
                yield self.read(path, kind)
            except CmsError as exc:
                logger.warning("Skipping %s: %s", path, exc.message)

    def get(self, kind: str, doc_id: Any) -> Document:
        """Return the document with the given id.

        Raises:
            CmsError: NOT_FOUND when no document of the kind has that id.
        """
        wanted = str(doc_id)
        for document in self.iter_valid(kind):
            if document.id == wanted:
                return document
        raise not_found(kind.rstrip("s").capitalize(), doc_id)

    def find_by_frontmatter_property(
        self, kind: str, key: str, value: Any, parent_page: str | None = None
    ) -> Document | None:
        """Return the first document whose frontmatter ``key`` equals ``value``.

        Args:
            kind: Kind to search.
            key: Frontmatter key.
            value: Expected value; compared as strings when types differ.
            parent_page: When given, only documents with exactly this
                ``parentPage`` are considered.

        Returns:
            The matching document or None.
        """
        for document in self.iter_valid(kind):
            if parent_page is not None and document.parent_page != parent_page:
                continue
            candidate = document.frontmatter.get(key)
            if candidate == value or (
                candidate is not None and str(candidate) == str(value)
            ):
                return document
        return None

    def path_for(self, kind: str, slug: str) -> Path:
        return self.directory(kind) / f"{slug}.md"

    def create(self, kind: str, document: Document) -> Document:
        """Write a new document named after its slug.

        Raises:
            CmsError: DUPLICATE_SLUG when the target file already exists,
                IO_ERROR on filesystem failures.
        """
        path = self.path_for(kind, document.slug)
        if path.exists():
            raise CmsError(
                ErrorCode.DUPLICATE_SLUG,
                f"A document with slug {document.slug!r} already exists",
                slug=document.slug,
            )
        return self._write(kind, document, path)

    def update(self, kind: str, doc_id: Any, document: Document) -> Document:
        """Replace an existing document, moving it when its slug or kind changed.

        Args:
            kind: Kind the document currently lives in.
            doc_id: Id of the document to replace.
            document: New content; ``document.kind`` may differ from ``kind``.

        Raises:
            CmsError: NOT_FOUND, DUPLICATE_SLUG or IO_ERROR.
        """
        existing = self.get(kind, doc_id)
        target_kind = document.kind or kind
        path = self.path_for(target_kind, document.slug)
        if path != existing.path and path.exists():
            raise CmsError(
                ErrorCode.DUPLICATE_SLUG,
                f"A document with slug {document.slug!r} already exists",
                slug=document.slug,
            )
        written = self._write(target_kind, document, path)
        if existing.path is not None and existing.path != path:
            self._remove(existing.path)
        return written

    def delete(self, kind: str, doc_id: Any) -> Document:
        """Delete a document and return what was removed.

        Raises:
            CmsError: NOT_FOUND or IO_ERROR.
        """
        existing = self.get(kind, doc_id)
        if existing.path is not None:
            self._remove(existing.path)
        return existing

    def _write(self, kind: str, document: Document, path: Path) -> Document:
        text = serialize_document(document.frontmatter, document.content)
        try:
            atomic_write_text(path, text)
        except OSError as exc:
            raise CmsError(ErrorCode.IO_ERROR, str(exc), path=str(path)) from exc
        finally:
            self._cache.pop(path, None)
        logger.debug("Wrote %s", path)
        written = document.copy()
        written.kind = kind
        written.path = path
        return written

    def _remove(self, path: Path) -> None:
        self._cache.pop(path, None)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Already removed: %s", path)
        except OSError as exc:
            raise CmsError(ErrorCode.IO_ERROR, str(exc), path=str(path)) from exc
