"""Utility functions for Quillpress.

This module contains helpers shared by the store, the query engine, the SEO
generators and the static site generator: slug handling, tag normalization,
excerpt and preview truncation, timestamp parsing, and filesystem helpers.

Key functions:
    slugify: Convert arbitrary text to a URL slug.
    is_valid_slug: Check the lowercase-letters-digits-hyphens slug shape.
    normalize_tags: Normalize a list or comma-joined string of tags.
    truncate_excerpt: Shorten an excerpt at a word boundary.
    markdown_preview: Plain-text preview of a Markdown body.
    parse_timestamp: Parse frontmatter timestamps into aware datetimes.
    ensure_clean_dir: Ensure a directory exists and is empty.
    copy_tree: Copy a directory tree, skipping sidecar metadata files.
    atomic_write_text: Write a file through a temporary file and rename.
    read_json / write_json: JSON persistence with stable key order.
"""

from __future__ import annotations

import json
import os
import re
import shutil
import tempfile
from collections.abc import Iterable
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from .errors import CmsError, ErrorCode

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Markdown syntax removed when building plain-text previews, applied in order
_PREVIEW_PATTERNS = [
    (re.compile(r"`{3}.*?`{3}", re.DOTALL), ""),
    (re.compile(r"`[^`]*`"), ""),
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"^#+\s+", re.MULTILINE), ""),
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"~~([^~]+)~~"), r"\1"),
    (re.compile(r"\b_([^_]+)_\b"), r"\1"),
    (re.compile(r"^>\s+", re.MULTILINE), ""),
    (re.compile(r"^\|.*\|\s*$", re.MULTILINE), ""),
    (re.compile(r"<[^>]+>"), ""),
]


def slugify(text: Any) -> str:
    """Convert text to a URL-friendly slug.

    Lowercases, turns ``&`` into ``-and-``, replaces runs of anything other
    than ASCII letters and digits with a single hyphen, and trims hyphens.

    Args:
        text: Text to convert. Non-strings are converted with ``str``.

    Returns:
        Slug made of lowercase letters, digits and single hyphens.

    Examples:
        >>> slugify("Hello World")
        'hello-world'

        >>> slugify("Rock & Roll")
        'rock-and-roll'
    """
    cleaned = str(text).strip().lower().replace("&", "-and-")
    cleaned = re.sub(r"[^a-z0-9]+", "-", cleaned)
    return cleaned.strip("-")


def is_valid_slug(slug: Any) -> bool:
    """Check that a slug is lowercase ASCII letters, digits and single hyphens."""
    return isinstance(slug, str) and bool(SLUG_RE.match(slug))


def normalize_tags(value: Any) -> list[str]:
    """Normalize a tags value into a trimmed list without empty entries.

    Accepts a list of strings or a single comma-separated string. Any other
    value yields an empty list. Normalizing an already normalized list returns
    an equal list.

    Args:
        value: Raw ``tags`` frontmatter value.

    Returns:
        List of tag strings in their original order.

    Examples:
        >>> normalize_tags("python, web ,, cms")
        ['python', 'web', 'cms']

        >>> normalize_tags(["python", " web "])
        ['python', 'web']
    """
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return []
    tags = []
    for item in items:
        if item is None:
            continue
        tag = str(item).strip()
        if tag:
            tags.append(tag)
    return tags


def unique(values: Iterable[str]) -> list[str]:
    """Return values with duplicates removed, keeping first occurrences."""
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def truncate_excerpt(excerpt: str | None, max_length: int = 120) -> str | None:
    """Shorten an excerpt, preferring a word boundary near the limit.

    Breaks at the last space only when that keeps more than 80% of the
    allowed length; otherwise cuts hard. An ellipsis is appended when the
    text was shortened.

    Args:
        excerpt: Excerpt text, may be None.
        max_length: Maximum number of characters kept before the ellipsis.

    Returns:
        The excerpt, shortened when longer than ``max_length``.
    """
    if not excerpt or len(excerpt) <= max_length:
        return excerpt
    truncated = excerpt[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        return truncated[:last_space] + "..."
    return truncated + "..."


def markdown_preview(body: str | None, length: int = 300) -> str:
    """Build a plain-text preview of a Markdown body.

    Markdown syntax is stripped, whitespace collapsed, and the result cut at a
    word boundary so that the preview including its ellipsis never exceeds
    ``length`` characters.

    Args:
        body: Markdown source.
        length: Maximum preview length in characters.

    Returns:
        Plain-text preview, possibly ending with ``...``.
    """
    if not body:
        return ""
    text = body
    for pattern, replacement in _PREVIEW_PATTERNS:
        text = pattern.sub(replacement, text)
    text = " ".join(text.split())
    if len(text) <= length:
        return text
    cut = text[: max(length - 3, 0)]
    last_space = cut.rfind(" ")
    if last_space > 0:
        cut = cut[:last_space]
    return cut.rstrip() + "..."


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a frontmatter timestamp into a timezone-aware datetime.

    YAML may already have turned unquoted timestamps into ``date`` or
    ``datetime`` objects; strings are parsed as ISO-8601 with a trailing ``Z``
    accepted. Naive values are taken as UTC.

    Args:
        value: Raw frontmatter value.

    Returns:
        Aware datetime, or None when the value is missing or unparsable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def timestamp_or_epoch(value: Any) -> datetime:
    """Parse a timestamp, falling back to the Unix epoch for sorting."""
    return parse_timestamp(value) or _EPOCH


def format_iso(moment: datetime) -> str:
    """Format an aware datetime as UTC ISO-8601 with milliseconds and ``Z``."""
    stamp = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string with milliseconds."""
    return format_iso(datetime.now(timezone.utc))


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def copy_tree(
    source: Path,
    destination: Path,
    exclude_suffixes: tuple[str, ...] = (".metadata.json",),
) -> int:
    """Recursively copy a directory, skipping files with excluded suffixes.

    Args:
        source: Directory to copy from. A missing source copies nothing.
        destination: Directory to copy into; created as needed.
        exclude_suffixes: Filename endings that are never copied.

    Returns:
        Number of files copied.
    """
    if not source.is_dir():
        return 0
    copied = 0
    for path in sorted(source.rglob("*")):
        if path.is_dir() or path.name.endswith(exclude_suffixes):
            continue
        target = destination / path.relative_to(source)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)
        copied += 1
    return copied


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to a file atomically.

    The content goes to a temporary file in the same directory, is flushed
    to disk, and is then renamed over the target.

    Args:
        path: Destination file.
        text: Content to write (UTF-8).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def read_json(path: Path, default: Any = None) -> Any:
    """Read a JSON document.

    Args:
        path: File to read.
        default: Value returned when the file does not exist.

    Raises:
        CmsError: INVALID_JSON when the file is not valid JSON, IO_ERROR when
            it cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return default
    except OSError as exc:
        raise CmsError(ErrorCode.IO_ERROR, str(exc), path=str(path)) from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise CmsError(ErrorCode.INVALID_JSON, f"Invalid JSON in {path.name}: {exc}") from exc


def write_json(path: Path, data: Any) -> None:
    """Write JSON with sorted keys and 2-space indentation, atomically.

    Raises:
        CmsError: IO_ERROR on filesystem failures.
    """
    text = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    try:
        atomic_write_text(path, text)
    except OSError as exc:
        raise CmsError(ErrorCode.IO_ERROR, str(exc), path=str(path)) from exc
