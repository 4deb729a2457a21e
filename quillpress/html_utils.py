"""HTML and XML string helpers for Quillpress.

This module focuses exclusively on markup string manipulation: escaping values
for HTML and XML output, stripping tags from rendered content, and joining a
site base URL with a path.

Functions:
    escape_html: Escape special HTML characters in a string.
    escape_xml: Escape a string for XML text and attribute values.
    strip_html: Remove tags from an HTML fragment.
    join_root_url: Join a base URL with a path.
"""

from __future__ import annotations

import re

_TAG_RE = re.compile(r"<[^>]*>")


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Converts the following characters to their HTML entity equivalents:
    - & becomes &amp;
    - < becomes &lt;
    - > becomes &gt;
    - " becomes &quot;

    Args:
        text: The string to escape.

    Returns:
        The escaped string, safe for inclusion in HTML.

    Examples:
        >>> escape_html('<script>alert("XSS")</script>')
        '&lt;script&gt;alert(&quot;XSS&quot;)&lt;/script&gt;'

        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return (
        str(text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def escape_xml(text: str) -> str:
    """Escape a string for XML, including apostrophes.

    Args:
        text: The string to escape.

    Returns:
        The escaped string, safe for XML text nodes and attributes.

    Examples:
        >>> escape_xml("Rock 'n' Roll & <more>")
        'Rock &apos;n&apos; Roll &amp; &lt;more&gt;'
    """
    return escape_html(text).replace("'", "&apos;")


def strip_html(html: str) -> str:
    """Remove every tag from an HTML fragment.

    Args:
        html: HTML content.

    Returns:
        The text with tags removed. Whitespace is left untouched.
    """
    return _TAG_RE.sub("", html or "")


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about')
        'https://example.com/about'

        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"
