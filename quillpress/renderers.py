"""Markdown rendering for Quillpress.

Document bodies are stored as raw Markdown and only turned into HTML at render
time. This module wraps mistune with a renderer that adds heading anchors and
Pygments highlighting for fenced code blocks.

Key functions:
- markdown_to_html: Convert a Markdown source string to HTML.
"""

from __future__ import annotations

import re

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text (may contain inline HTML).

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _ContentRenderer(mistune.HTMLRenderer):
    """HTML renderer with heading anchors and syntax highlighting."""

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with a unique auto-generated ID.

        Args:
            text: Heading text content.
            level: Heading level (1-6).
            **attrs: Additional attributes.

        Returns:
            HTML heading tag with id attribute.
        """
        base_id = _generate_heading_id(text) or "section"
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'javascript').

        Returns:
            HTML string with highlighted code, or an escaped ``<pre>`` block
            when the language is missing or unknown to Pygments.
        """
        language = info.split()[0] if info and info.strip() else None
        if language:
            try:
                lexer = get_lexer_by_name(language, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(language)}"' if language else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


def markdown_to_html(source: str | None) -> str:
    """Convert Markdown to HTML.

    A fresh renderer is created per call so heading IDs are unique within
    one document only.

    Args:
        source: Markdown text. None renders as an empty string.

    Returns:
        Rendered HTML.
    """
    if not source:
        return ""
    markdown = mistune.create_markdown(renderer=_ContentRenderer(), plugins=MARKDOWN_PLUGINS)
    return markdown(source)


def pygments_css() -> str:
    """Return Pygments CSS rules for the ``.highlight`` class."""
    return HtmlFormatter().get_style_defs(".highlight")
