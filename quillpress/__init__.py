"""Quillpress content management and publishing core.

This package turns a directory of Markdown documents with YAML frontmatter into
rendered HTML using Jinja2 themes. The same rendering pipeline serves pages on
request through the development server and emits the whole site as a static tree.

The main entry point is the CLI module, which provides commands for building the
static site, serving it locally, and managing themes.

Architecture:
- store: Markdown document store on the filesystem.
- query: Filtering, sorting, pagination and relation lookups over the store.
- themes / resolver: Theme discovery and template fallback resolution.
- hooks / assembler: Filter and action hooks around template data.
- feeds / build: SEO artifacts and the static site generator.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
