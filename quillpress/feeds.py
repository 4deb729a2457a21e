"""SEO artifact generation for Quillpress.

This module produces the files search engines and feed readers consume:
``rss.xml``, ``sitemap.xml``, an HTML sitemap and ``robots.txt``. The same
generators answer requests on the development server and write files during
a static build.

Every generator works from a SeoContext snapshot of the published content
and the SiteStructure derived from it in a single pass. URLs are only listed
when the static site generator would also write them, so a generated sitemap
never points at a missing file.

Classes:
    SeoContext: Published content plus output settings.
    CustomPageInfo: URL path and template of one custom page.
    SiteStructure: What the site contains, computed once per generation.
    SeoGenerator: Base class for SEO artifacts.
    RssGenerator, SitemapXmlGenerator, SitemapHtmlGenerator, RobotsGenerator.
    SeoRegistry: Runs every registered generator.

Functions:
    analyze_site_structure: Build the SiteStructure of a context.
    create_default_seo_registry: Registry with the four standard generators.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, select_autoescape

from .html_utils import escape_xml, strip_html
from .pagination import index_by_slug, routable_chain
from .query import field_values, sort_by_created
from .renderers import markdown_to_html
from .resolver import (
    LAYOUT_TEMPLATE,
    is_standalone_custom_slug,
    resolve_custom_page_template,
    resolve_template_path,
)
from .store import Document
from .themes import ThemeManager
from .utils import format_iso, parse_timestamp, slugify, timestamp_or_epoch

logger = logging.getLogger(__name__)

BLOG_INDEX_SLUGS = ("blog", "archive", "articles", "news")

MIME_TYPES = {
    "avif": "image/avif",
    "gif": "image/gif",
    "ico": "image/x-icon",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "svg": "image/svg+xml",
    "webp": "image/webp",
}

RSS_DESCRIPTION_LENGTH = 160


def mime_type_for(url: str) -> str:
    """Return the image MIME type for a URL's extension."""
    extension = url.rsplit(".", 1)[-1].lower() if "." in url else ""
    return MIME_TYPES.get(extension, "application/octet-stream")


def _modified(document: Document) -> datetime:
    return timestamp_or_epoch(document.get("updatedAt") or document.get("createdAt"))


def _latest(documents: list[Document]) -> datetime:
    return max((_modified(doc) for doc in documents), default=timestamp_or_epoch(None))


@dataclass
class SeoContext:
    """Published content and output settings for SEO generation.

    Attributes:
        posts: Published posts, newest first.
        pages: Published pages, normal and custom.
        settings: Site settings.
        themes: Theme manager, used for template checks and the RSS stylesheet.
        base_url: Site URL; a trailing slash is ignored.
        is_static: Generating files for a static build.
        clean_urls: Static pages are written as ``<path>/index.html``; otherwise
            their URLs end in ``.html``.
    """

    posts: list[Document]
    pages: list[Document]
    settings: dict[str, Any]
    themes: ThemeManager
    base_url: str = "/"
    is_static: bool = False
    clean_urls: bool = True

    @property
    def base(self) -> str:
        return self.base_url.rstrip("/")

    def url(self, path: str) -> str:
        return f"{self.base}{path}"

    def page_url(self, path: str) -> str:
        """Return the URL of a rendered page as the build writes it."""
        if self.is_static and not self.clean_urls:
            path = f"{path}.html"
        return self.url(path)


@dataclass
class CustomPageInfo:
    """URL path and template of one published custom page.

    Attributes:
        page: The custom page.
        full_path: URL path without a leading slash, e.g. ``docs/intro``.
        path_parts: Slugs from the root ancestor down to the page.
        template: Template the page renders with, or None when it has no URL.
    """

    page: Document
    full_path: str
    path_parts: list[str]
    template: Path | None = None

    @property
    def is_nested(self) -> bool:
        return bool(self.page.parent_page)

    @property
    def parent_slug(self) -> str | None:
        return self.page.parent_page


@dataclass
class SiteStructure:
    """Summary of a site's content used by every SEO generator."""

    has_posts: bool = False
    has_pages: bool = False
    has_categories: bool = False
    has_tags: bool = False
    blog_index_page: dict[str, str] | None = None
    categories_index_page: dict[str, str] | None = None
    tags_index_page: dict[str, str] | None = None
    has_categories_template: bool = False
    has_tags_template: bool = False
    categories: dict[str, list[Document]] = field(default_factory=dict)
    tags: dict[str, list[Document]] = field(default_factory=dict)
    custom_pages_without_templates: list[CustomPageInfo] = field(default_factory=list)
    nested_custom_pages: dict[str, CustomPageInfo] = field(default_factory=dict)

    @property
    def index_slugs(self) -> set[str]:
        """Slugs of custom pages that act as section index pages."""
        pages = (self.blog_index_page, self.categories_index_page, self.tags_index_page)
        return {page["slug"] for page in pages if page}


def _index_page(pages: list[Document], slug: str, default_title: str) -> dict[str, str] | None:
    for page in pages:
        if page.slug == slug:
            return {"slug": slug, "title": page.title or default_title}
    return None


def _has_custom_template(themes: ThemeManager, slug: str) -> bool:
    path = resolve_template_path(themes, "custom", slug, is_custom_page=True)
    return path != themes.get_template_path(LAYOUT_TEMPLATE)


def _group_terms(posts: list[Document], taxonomy: str) -> dict[str, list[Document]]:
    groups: dict[str, list[Document]] = {}
    for post in posts:
        for term in dict.fromkeys(field_values(post.frontmatter, taxonomy)):
            if slugify(term):
                groups.setdefault(term, []).append(post)
    return dict(sorted(groups.items(), key=lambda item: item[0].lower()))


def analyze_site_structure(site: SeoContext) -> SiteStructure:
    """Summarize posts, taxonomies and custom pages in one pass.

    Custom pages whose template cannot be resolved through their own chain or
    any ancestor are collected in ``custom_pages_without_templates``; the
    generators leave them out.
    """
    posts = [post for post in site.posts if post.is_published]
    pages = [page for page in site.pages if page.is_published]
    custom_pages = [page for page in pages if page.is_custom]

    structure = SiteStructure(has_posts=bool(posts), has_pages=bool(pages))
    structure.categories = _group_terms(posts, "category")
    structure.tags = _group_terms(posts, "tag")
    structure.has_categories = bool(structure.categories)
    structure.has_tags = bool(structure.tags)

    for slug in BLOG_INDEX_SLUGS:
        structure.blog_index_page = _index_page(custom_pages, slug, slug.capitalize())
        if structure.blog_index_page:
            break
    structure.categories_index_page = _index_page(custom_pages, "categories", "Categories")
    structure.tags_index_page = _index_page(custom_pages, "tags", "Tags")
    structure.has_categories_template = _has_custom_template(site.themes, "categories")
    structure.has_tags_template = _has_custom_template(site.themes, "tags")

    by_slug = index_by_slug(custom_pages)
    for page in custom_pages:
        if not page.slug or not is_standalone_custom_slug(page.slug):
            continue
        chain = routable_chain(page, by_slug)
        if chain is None:
            logger.warning("Custom page %s is not reachable from a root page, skipping", page.slug)
            continue
        parts = [p.slug for p in chain]
        info = CustomPageInfo(
            page=page,
            full_path="/".join(parts),
            path_parts=parts,
            template=resolve_custom_page_template(site.themes, page, by_slug),
        )
        if info.template is None:
            structure.custom_pages_without_templates.append(info)
        structure.nested_custom_pages[page.slug] = info
    return structure


def routable_custom_pages(structure: SiteStructure) -> list[CustomPageInfo]:
    """Return the custom pages that have a URL, warning about the others."""
    routable = []
    for slug, info in structure.nested_custom_pages.items():
        if info.template is None:
            if info.is_nested:
                logger.warning(
                    "Custom page %s and its parents have no templates, skipping", slug
                )
            else:
                logger.warning("Custom page %s has no template, skipping", slug)
            continue
        routable.append(info)
    return routable


class SeoGenerator(ABC):
    """Abstract base class for SEO artifact generators.

    Subclasses produce one file each. ``generate`` returns None when the
    artifact does not apply to the site (an RSS feed without posts).
    """

    content_type = "application/xml; charset=utf-8"

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename, e.g. 'sitemap.xml'."""
        ...

    def output_path(self, site: SeoContext, clean_urls: bool = True) -> str:
        """Return the file written during a static build, relative to the output directory."""
        return self.filename

    @abstractmethod
    def generate(self, site: SeoContext, structure: SiteStructure | None = None) -> str | None:
        """Generate the artifact.

        Args:
            site: Content snapshot and output settings.
            structure: Precomputed structure; analyzed from ``site`` when None.

        Returns:
            File content, or None when the artifact is skipped.
        """
        ...

    def write(
        self,
        output_dir: Path,
        site: SeoContext,
        structure: SiteStructure | None = None,
        clean_urls: bool = True,
    ) -> bool:
        """Generate and write the artifact.

        Returns:
            True if the file was written, False if skipped.
        """
        content = self.generate(site, structure)
        if content is None:
            return False
        output_path = output_dir / self.output_path(site, clean_urls)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
        return True


class RssGenerator(SeoGenerator):
    """RSS 2.0 feed of published posts with ``dc`` and ``content`` namespaces."""

    content_type = "application/rss+xml; charset=utf-8"

    @property
    def filename(self) -> str:
        return "rss.xml"

    def stylesheet_path(self, site: SeoContext) -> str:
        if site.is_static:
            theme = site.themes.get_active_theme()
            return f"/content/themes/{theme.name}/assets/css/rss-stylesheet.xsl"
        return "/assets/css/rss-stylesheet.xsl"

    def _description(self, post: Document) -> str:
        description = str(post.get("excerpt") or "")
        if not description and post.content:
            text = strip_html(markdown_to_html(post.content))
            description = text[:RSS_DESCRIPTION_LENGTH].strip() + "..."
        return escape_xml(description)

    def _item(self, site: SeoContext, post: Document) -> str:
        link = site.page_url(f"/post/{post.slug}")
        published = parse_timestamp(post.get("createdAt")) or timestamp_or_epoch(None)
        lines = [
            "    <item>",
            f"        <title>{escape_xml(post.title)}</title>",
            f"        <link>{link}</link>",
            f'        <guid isPermaLink="true">{link}</guid>',
            f"        <pubDate>{format_datetime(published, usegmt=True)}</pubDate>",
            f"        <dc:creator>{escape_xml(post.get('author') or 'Admin')}</dc:creator>",
            f"        <description><![CDATA[{self._description(post)}]]></description>",
        ]
        for term in field_values(post.frontmatter, "category"):
            domain = site.page_url(f"/category/{slugify(term)}")
            lines.append(f'        <category domain="{domain}">{escape_xml(term)}</category>')
        for term in field_values(post.frontmatter, "tag"):
            domain = site.page_url(f"/tag/{slugify(term)}")
            lines.append(f'        <category domain="{domain}">{escape_xml(term)}</category>')
        image = post.get("featuredImage")
        if isinstance(image, dict) and image.get("url"):
            url = site.url(f"/content/uploads{image['url']}")
            lines.append(f'        <enclosure url="{url}" type="{mime_type_for(image["url"])}" />')
        lines.append("    </item>")
        return "\n".join(lines)

    def generate(self, site: SeoContext, structure: SiteStructure | None = None) -> str | None:
        posts = sort_by_created(post for post in site.posts if post.is_published)
        if not posts:
            return None
        now = datetime.now(timezone.utc)
        settings = site.settings
        newest = parse_timestamp(posts[0].get("createdAt")) or now
        title = settings.get("siteTitle") or "Blog"
        description = settings.get("siteDescription") or "Blog Description"
        language = settings.get("rssSiteLanguage") or "en-us"
        copyright_text = settings.get("rssCopyright") or f"© {now.year} All rights reserved"
        channel = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<?xml-stylesheet type="text/xsl" href="{self.stylesheet_path(site)}"?>',
            '<rss version="2.0"',
            '    xmlns:atom="http://www.w3.org/2005/Atom"',
            '    xmlns:dc="http://purl.org/dc/elements/1.1/"',
            '    xmlns:content="http://purl.org/rss/1.0/modules/content/">',
            "    <channel>",
            f"        <title>{escape_xml(title)}</title>",
            f"        <link>{site.base or '/'}</link>",
            f"        <description>{escape_xml(description)}</description>",
            f"        <language>{escape_xml(language)}</language>",
            f"        <copyright>{escape_xml(copyright_text)}</copyright>",
            f"        <pubDate>{format_datetime(newest, usegmt=True)}</pubDate>",
            f"        <lastBuildDate>{format_datetime(now, usegmt=True)}</lastBuildDate>",
            f'        <atom:link href="{site.url("/rss.xml")}" rel="self"'
            ' type="application/rss+xml" />',
            "        <docs>https://www.rssboard.org/rss-specification</docs>",
        ]
        channel.extend(self._item(site, post) for post in posts)
        channel.extend(["    </channel>", "</rss>", ""])
        return "\n".join(channel)


class SitemapXmlGenerator(SeoGenerator):
    """``urlset`` sitemap following the sitemaps.org 0.9 schema.

    ``lastmod`` values come from content timestamps, so rebuilding unchanged
    content yields an identical file.
    """

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def entries(self, site: SeoContext, structure: SiteStructure) -> list[dict[str, str]]:
        """Return ``{loc, lastmod, priority, changefreq}`` for every listed URL."""
        posts = [post for post in site.posts if post.is_published]
        pages = [page for page in site.pages if page.is_published]

        def entry(loc: str, modified: datetime, priority: str, changefreq: str) -> dict[str, str]:
            return {
                "loc": loc or "/",
                "lastmod": format_iso(modified),
                "priority": priority,
                "changefreq": changefreq,
            }

        urls = [entry(site.base, _latest(posts + pages), "1.0", "daily")]
        urls.extend(
            entry(site.page_url(f"/post/{post.slug}"), _modified(post), "0.8", "weekly")
            for post in posts
            if post.slug
        )
        for info in routable_custom_pages(structure):
            urls.append(
                entry(site.page_url(f"/{info.full_path}"), _modified(info.page), "0.6", "monthly")
            )
        urls.extend(
            entry(site.page_url(f"/page/{page.slug}"), _modified(page), "0.7", "monthly")
            for page in pages
            if page.slug and not page.is_custom
        )
        seen: set[str] = set()
        for taxonomy, terms, priority in (
            ("category", structure.categories, "0.6"),
            ("tag", structure.tags, "0.5"),
        ):
            for term, term_posts in terms.items():
                loc = site.page_url(f"/{taxonomy}/{slugify(term)}")
                if loc not in seen:
                    seen.add(loc)
                    urls.append(entry(loc, _latest(term_posts), priority, "weekly"))
        if structure.has_posts:
            urls.append(entry(site.url("/rss.xml"), _latest(posts), "0.4", "daily"))
        return urls

    def generate(self, site: SeoContext, structure: SiteStructure | None = None) -> str | None:
        structure = structure or analyze_site_structure(site)
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for url in self.entries(site, structure):
            lines.extend(
                [
                    "  <url>",
                    f"    <loc>{escape_xml(url['loc'])}</loc>",
                    f"    <lastmod>{url['lastmod']}</lastmod>",
                    f"    <priority>{url['priority']}</priority>",
                    f"    <changefreq>{url['changefreq']}</changefreq>",
                    "  </url>",
                ]
            )
        lines.extend(["</urlset>", ""])
        return "\n".join(lines)


SITEMAP_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Sitemap - {{ site_title }}</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; line-height: 1.6; color: #333; background: #f5f5f5; margin: 0; padding-bottom: 50px; }
        a { color: #1976d2; text-decoration: none; }
        a:hover { text-decoration: underline; }
        .container { max-width: 1200px; margin: 0 auto; padding: 0 20px; }
        header { background: #1976d2; color: white; padding: 40px 0; margin-bottom: 40px; }
        .sitemap-section { background: white; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); margin-bottom: 30px; overflow: hidden; }
        .section-header { background: #1976d2; color: white; padding: 15px 20px; }
        .item-list { list-style: none; margin: 0; padding: 0; }
        .list-item { border-bottom: 1px solid #e0e0e0; padding: 15px 20px; display: flex; justify-content: space-between; }
        .list-item:last-child { border-bottom: none; }
        .item-date { color: #757575; font-size: 0.9rem; white-space: nowrap; }
        footer { margin-top: 40px; text-align: center; color: #757575; }
    </style>
</head>
<body>
    <header>
        <div class="container">
            <h1>Sitemap</h1>
            <p>A complete guide to all pages on {{ site_title }}</p>
        </div>
    </header>
    <div class="container">
{%- for section in sections %}
        <div class="sitemap-section">
            <div class="section-header"><h2>{{ section.title }}</h2></div>
            <ul class="item-list">
{%- if section.url %}
                <li class="list-item"><div class="item-link"><a href="{{ section.url }}">{{ section.title }} Index</a></div><div class="item-date">Updated regularly</div></li>
{%- endif %}
{%- for item in section["items"] %}
                <li class="list-item"><div class="item-link"><a href="{{ item.url }}">{{ item.title }}</a></div><div class="item-date">{{ item.date }}</div></li>
{%- endfor %}
            </ul>
        </div>
{%- endfor %}
        <footer>
            <p>Last updated: {{ updated }}</p>
            <a href="{{ home_url }}" class="home-link">Return to Homepage</a>
        </footer>
    </div>
</body>
</html>
"""

_sitemap_environment = Environment(autoescape=select_autoescape(default_for_string=True))


class SitemapHtmlGenerator(SeoGenerator):
    """Readable sitemap grouped into Home, Blog Posts, Pages, Categories, Tags and Other."""

    content_type = "text/html; charset=utf-8"

    @property
    def filename(self) -> str:
        return "sitemap.html"

    def output_path(self, site: SeoContext, clean_urls: bool = True) -> str:
        return "sitemap/index.html" if clean_urls else self.filename

    def sections(self, site: SeoContext, structure: SiteStructure) -> list[dict[str, Any]]:
        """Return the non-empty sections in display order."""
        posts = [post for post in site.posts if post.is_published]
        pages = [page for page in site.pages if page.is_published]

        def item(title: str, url: str, date: str) -> dict[str, str]:
            return {"title": title, "url": url, "date": date}

        sections = [{"title": "Home", "url": site.base or "/", "items": []}]
        if structure.has_posts:
            blog = structure.blog_index_page
            blog_info = structure.nested_custom_pages.get(blog["slug"]) if blog else None
            sections.append(
                {
                    "title": "Blog Posts",
                    "url": (
                        site.page_url(f"/{blog_info.full_path}")
                        if blog_info is not None and blog_info.template is not None
                        else None
                    ),
                    "items": [
                        item(
                            post.title,
                            site.page_url(f"/post/{post.slug}"),
                            f"{_modified(post):%Y-%m-%d}",
                        )
                        for post in posts
                        if post.slug
                    ],
                }
            )
        page_items = [
            item(
                info.page.title,
                site.page_url(f"/{info.full_path}"),
                f"{_modified(info.page):%Y-%m-%d}",
            )
            for info in routable_custom_pages(structure)
            if info.page.slug not in structure.index_slugs
        ]
        page_items.extend(
            item(page.title, site.page_url(f"/page/{page.slug}"), f"{_modified(page):%Y-%m-%d}")
            for page in pages
            if page.slug and not page.is_custom
        )
        if page_items:
            sections.append({"title": "Pages", "url": None, "items": page_items})

        taxonomy_sections = (
            ("Categories", "category", structure.categories, structure.categories_index_page,
             structure.has_categories_template),
            ("Tags", "tag", structure.tags, structure.tags_index_page, structure.has_tags_template),
        )
        for title, taxonomy, terms, index_page, has_template in taxonomy_sections:
            if not terms:
                continue
            sections.append(
                {
                    "title": title,
                    "url": (
                        site.page_url(f"/{index_page['slug']}")
                        if index_page and has_template
                        else None
                    ),
                    "items": [
                        item(term, site.page_url(f"/{taxonomy}/{slugify(term)}"), "Updated regularly")
                        for term in terms
                    ],
                }
            )

        other = []
        if structure.has_posts:
            other.append(item("RSS Feed", site.url("/rss.xml"), "Updated daily"))
        other.append(item("XML Sitemap", site.url("/sitemap.xml"), "Updated daily"))
        sections.append({"title": "Other", "url": None, "items": other})
        return sections

    def generate(self, site: SeoContext, structure: SiteStructure | None = None) -> str | None:
        structure = structure or analyze_site_structure(site)
        template = _sitemap_environment.from_string(SITEMAP_HTML_TEMPLATE)
        return template.render(
            site_title=site.settings.get("siteTitle") or "Website",
            sections=self.sections(site, structure),
            updated=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            home_url=site.base or "/",
        )


class RobotsGenerator(SeoGenerator):
    """``robots.txt`` allowing everything and pointing at the sitemap and feed."""

    content_type = "text/plain; charset=utf-8"

    @property
    def filename(self) -> str:
        return "robots.txt"

    def generate(self, site: SeoContext, structure: SiteStructure | None = None) -> str | None:
        lines = ["User-agent: *", "Allow: /", f"Sitemap: {site.url('/sitemap.xml')}"]
        if any(post.is_published for post in site.posts):
            lines.append(f"Sitemap: {site.url('/rss.xml')}")
        return "\n".join(lines) + "\n"


class SeoRegistry:
    """Registry running every SEO generator against one site snapshot.

    Attributes:
        _generators: Registered generators, in registration order.
    """

    def __init__(self) -> None:
        self._generators: list[SeoGenerator] = []

    def register(self, generator: SeoGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, site: SeoContext, clean_urls: bool = True
    ) -> list[str]:
        """Write every applicable artifact.

        Returns:
            Output paths, relative to ``output_dir``, of the files written.
        """
        structure = analyze_site_structure(site)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, site, structure, clean_urls):
                generated.append(generator.output_path(site, clean_urls))
        return generated


def create_default_seo_registry() -> SeoRegistry:
    """Create a registry with the RSS, sitemap and robots generators."""
    registry = SeoRegistry()
    registry.register(RssGenerator())
    registry.register(SitemapXmlGenerator())
    registry.register(SitemapHtmlGenerator())
    registry.register(RobotsGenerator())
    return registry
