"""Front-end rendering for Quillpress.

SiteRenderer turns a URL path into a Response. Each route is backed by a view
method that returns a RenderedPage (template plus finalized template data) or
None when the route does not exist. The static site generator calls the same
views with a static RenderContext, so a page looks the same whether it is
served or built.

Routes:
    /                           home, with ``?page=n``
    /post/<slug>                published post
    /page/<slug>                normal page; custom pages redirect to their path
    /category/<slug>, /tag/<slug>   taxonomy listings, with ``?page=n``
    /<a>[/<b>[/<c>]]            custom page chain
    /rss, /rss.xml, /sitemap, /sitemap.html, /sitemap.xml, /robots.txt

Key classes:
- Response: Status, body and headers of a rendered route.
- RenderedPage: Template and data produced by a view.
- SiteRenderer: Views, routing and error pages.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .assembler import RenderContext, TemplateDataAssembler, template_items
from .feeds import (
    RobotsGenerator,
    RssGenerator,
    SeoContext,
    SeoGenerator,
    SitemapHtmlGenerator,
    SitemapXmlGenerator,
)
from .hooks import HookSystem
from .pagination import (
    MAX_CUSTOM_DEPTH,
    build_breadcrumbs,
    build_sibling_navigation,
    index_by_slug,
    page_slice,
    paginate,
    routable_chain,
)
from .query import ContentQueryEngine, field_values
from .renderers import markdown_to_html
from .resolver import (
    LAYOUT_TEMPLATE,
    is_standalone_custom_slug,
    resolve_custom_page_template,
    resolve_template_path,
)
from .settings import SettingsService
from .store import Document
from .templates import TemplateEngine
from .themes import ThemeManager
from .utils import slugify

logger = logging.getLogger(__name__)

HTML = "text/html; charset=utf-8"

# First path segments never treated as custom pages
RESERVED_SEGMENTS = frozenset(
    {"api", "admin", "post", "page", "rss", "rss.xml", "sitemap", "sitemap.html", "sitemap.xml"}
)

PAGINATED_TEMPLATES = frozenset({"blog", "archive", "articles", "news", "search"})
TAXONOMY_INDEX_TEMPLATES = {"categories": "category", "tags": "tag"}

RECENT_POSTS_LIMIT = 5
HOME_PREVIEW_LENGTH = 300
TAXONOMY_PREVIEW_LENGTH = 200

FALLBACK_404 = "<h1>404 - The Page You're Looking For Doesn't Exist</h1>"
FALLBACK_500 = "<h1>500 - Internal Server Error</h1>"

SEO_ROUTES: dict[str, type[SeoGenerator]] = {
    "rss": RssGenerator,
    "rss.xml": RssGenerator,
    "sitemap": SitemapHtmlGenerator,
    "sitemap.html": SitemapHtmlGenerator,
    "sitemap.xml": SitemapXmlGenerator,
    "robots.txt": RobotsGenerator,
}


@dataclass
class Response:
    """Result of handling a front-end route.

    Attributes:
        status: HTTP status code.
        body: Response body.
        content_type: Value of the Content-Type header.
        headers: Extra headers, e.g. Location for redirects.
    """

    status: int = 200
    body: str = ""
    content_type: str = HTML
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class RenderedPage:
    """Template and finalized data for one page.

    Attributes:
        template: Absolute template path in the active theme.
        data: Template data after the ``template_data`` filter.
    """

    template: Path
    data: dict[str, Any]


class SiteRenderer:
    """Renders the public site from content, settings and the active theme."""

    def __init__(
        self,
        query: ContentQueryEngine,
        settings: SettingsService,
        themes: ThemeManager,
        hooks: HookSystem,
        engine: TemplateEngine,
    ):
        self.query = query
        self.settings = settings
        self.themes = themes
        self.hooks = hooks
        self.engine = engine
        self.assembler = TemplateDataAssembler(settings, themes, query, hooks)

    # Content helpers

    def published_custom_pages(self) -> list[Document]:
        return self.query.get_pages(status="published", page_type="custom")

    def seo_context(self, context: RenderContext) -> SeoContext:
        return SeoContext(
            posts=self.query.get_posts(status="published"),
            pages=self.query.get_pages(status="published"),
            settings=self.settings.get_settings(),
            themes=self.themes,
            base_url=context.base_url,
            is_static=context.is_static,
            clean_urls=context.clean_urls,
        )

    def find_taxonomy_term(self, taxonomy: str, slug: str) -> str | None:
        """Return the term whose slug is ``slug``, in its original spelling."""
        for term in self.query.taxonomy_terms(taxonomy):
            if slugify(term) == slug:
                return term
        return None

    def resolve_custom_chain(
        self, segments: list[str], custom_pages: list[Document] | None = None
    ) -> list[Document] | None:
        """Resolve URL segments to a chain of published custom pages.

        Each segment must name a published custom page whose ``parentPage``
        is the previous segment; the first must have no parent. Cover pages
        such as ``category`` are never addressable.
        """
        if not 0 < len(segments) <= MAX_CUSTOM_DEPTH:
            return None
        if custom_pages is None:
            custom_pages = self.published_custom_pages()
        by_slug = index_by_slug(custom_pages)
        chain: list[Document] = []
        parent: str | None = None
        for segment in segments:
            page = by_slug.get(segment)
            if page is None or page.parent_page != parent:
                return None
            if not is_standalone_custom_slug(segment):
                return None
            chain.append(page)
            parent = page.slug
        return chain

    # Views

    def home_view(self, context: RenderContext, page: Any = None) -> RenderedPage:
        """Render the home page with a paginated list of published posts."""
        posts = self.query.get_posts(
            status="published", summary_view=True, preview_length=HOME_PREVIEW_LENGTH
        )
        size = context.page_size(self.settings.posts_per_page)
        pagination = paginate(
            len(posts),
            context.page if page is None else page,
            size,
            "home",
            is_static=context.is_static,
            clean_urls=context.clean_urls,
        )
        template = resolve_template_path(self.themes, "home", "homepage", is_custom_page=True)
        data = self.assembler.base_data(
            context,
            posts=template_items(page_slice(posts, pagination["currentPage"], size)),
            homeRoute=True,
            pagination=pagination,
        )
        data = self.assembler.apply_template_metadata(template, data)
        return RenderedPage(template, self.assembler.finalize(data, "home.html"))

    def post_view(self, context: RenderContext, slug: str) -> RenderedPage | None:
        """Render a published post with related posts and prev/next links."""
        post = self.query.get_content_by_property(
            "post",
            "slug",
            slug,
            add_navigation=True,
            resolve_related_posts=True,
            published_only=True,
        )
        if post is None or not post.is_published:
            return None
        data = self.assembler.base_data(
            context,
            content=markdown_to_html(post.content),
            metadata=post.frontmatter,
            fileType="post",
            contentRoute=True,
            contentId=post.id,
            prevPost=post.get("prevPost"),
            nextPost=post.get("nextPost"),
        )
        template = resolve_template_path(self.themes, "post")
        return RenderedPage(template, self.assembler.finalize(data, "post.html"))

    def page_view(self, context: RenderContext, slug: str) -> RenderedPage | None:
        """Render a published normal page; custom pages are not served here."""
        page = self.query.get_content_by_property("page", "slug", slug)
        if page is None or not page.is_published or page.is_custom:
            return None
        data = self.assembler.base_data(
            context,
            content=markdown_to_html(page.content),
            metadata=page.frontmatter,
            fileType="page",
            contentRoute=True,
            contentId=page.id,
            isCustomPage=False,
        )
        template = resolve_template_path(self.themes, "page", slug)
        return RenderedPage(template, self.assembler.finalize(data, "page.html"))

    def taxonomy_view(
        self, context: RenderContext, taxonomy: str, slug: str, page: Any = None
    ) -> RenderedPage | None:
        """Render one page of the posts in a category or tag.

        Args:
            context: Render context.
            taxonomy: "category" or "tag".
            slug: Term slug from the URL.
            page: Page number; defaults to the ``page`` query parameter.

        Returns:
            None when no published post carries the term.
        """
        term = self.find_taxonomy_term(taxonomy, slug)
        if term is None:
            return None
        posts = self.query.get_content_by_field_value(
            "post", taxonomy, term, summary_view=True, preview_length=TAXONOMY_PREVIEW_LENGTH
        )
        if not posts:
            return None
        size = context.page_size(self.settings.posts_per_page)
        pagination = paginate(
            len(posts),
            context.page if page is None else page,
            size,
            taxonomy,
            slug,
            is_static=context.is_static,
            clean_urls=context.clean_urls,
        )
        template = resolve_template_path(self.themes, taxonomy, slug, is_taxonomy=True)
        data = self.assembler.base_data(
            context,
            posts=template_items(page_slice(posts, pagination["currentPage"], size)),
            fileType=taxonomy,
            taxonomyType=taxonomy,
            taxonomyTerm=term,
            pagination=pagination,
            taxonomyRoute=True,
            **{f"{taxonomy}Name": term},
        )
        data = self.assembler.apply_template_metadata(
            template,
            data,
            taxonomy_type=taxonomy,
            taxonomy_term=term,
            item_count=len(posts),
            page=pagination["currentPage"],
        )
        return RenderedPage(template, self.assembler.finalize(data, f"{taxonomy}.html"))

    def custom_view(
        self,
        context: RenderContext,
        segments: list[str],
        page: Any = None,
        custom_pages: list[Document] | None = None,
        sibling_navigation: Mapping[str, dict[str, Any]] | None = None,
    ) -> RenderedPage | None:
        """Render a custom page addressed by its slug chain.

        Args:
            context: Render context.
            segments: URL path segments, root first.
            page: Listing page for paginated templates.
            custom_pages: Published custom pages, when already loaded.
            sibling_navigation: Precomputed navigation for every custom page.

        Returns:
            None when the chain does not resolve or no template applies.
        """
        if custom_pages is None:
            custom_pages = self.published_custom_pages()
        chain = self.resolve_custom_chain(segments, custom_pages)
        if chain is None:
            return None
        current = chain[-1]
        by_slug = index_by_slug(custom_pages)
        template = resolve_custom_page_template(self.themes, current, by_slug)
        if template is None:
            return None
        if sibling_navigation is None:
            sibling_navigation = build_sibling_navigation(
                p for p in custom_pages if is_standalone_custom_slug(p.slug)
            )

        full_path = "/".join(segments)
        pattern = "-".join(segments)
        parent = chain[-2] if len(chain) > 1 else None
        data = self.assembler.base_data(
            context,
            customPath=full_path,
            isCustomTemplate=True,
            content=markdown_to_html(current.content),
            metadata=current.frontmatter,
            fileType="page",
            contentRoute=True,
            contentId=current.id,
            isCustomPage=True,
            parentPage={"title": parent.title, "slug": parent.slug} if parent else None,
            siblingNavigation=sibling_navigation.get(current.slug),
        )

        paginated = segments[0] in PAGINATED_TEMPLATES or pattern in PAGINATED_TEMPLATES
        if paginated:
            posts = self.query.get_posts(
                status="published", summary_view=True, preview_length=HOME_PREVIEW_LENGTH
            )
            size = context.page_size(self.settings.posts_per_page)
            pagination = paginate(
                len(posts),
                context.page if page is None else page,
                size,
                "custom",
                full_path,
                is_static=context.is_static,
                clean_urls=context.clean_urls,
            )
            data["posts"] = template_items(page_slice(posts, pagination["currentPage"], size))
            data["pagination"] = pagination
        else:
            data["recentPosts"] = template_items(
                self.query.get_posts(
                    status="published", limit=RECENT_POSTS_LIMIT, frontmatter_only=True
                )
            )

        index_key = pattern if pattern in TAXONOMY_INDEX_TEMPLATES else segments[0]
        if index_key in TAXONOMY_INDEX_TEMPLATES:
            data.update(self.taxonomy_index(index_key))

        if len(chain) > 1:
            data["breadcrumbs"] = build_breadcrumbs(current, by_slug)
        return RenderedPage(template, self.assembler.finalize(data, f"{pattern}.html"))

    def taxonomy_index(self, index: str) -> dict[str, Any]:
        """Return term listings for a ``categories`` or ``tags`` index page."""
        taxonomy = TAXONOMY_INDEX_TEMPLATES[index]
        posts = self.query.get_posts(status="published", frontmatter_only=True)
        groups: dict[str, list[Document]] = {}
        for post in posts:
            for term in dict.fromkeys(field_values(post.frontmatter, taxonomy)):
                groups.setdefault(term, []).append(post)
        terms = []
        for name, members in groups.items():
            entry: dict[str, Any] = {"name": name, "slug": slugify(name), "count": len(members)}
            if taxonomy == "category":
                entry["posts"] = [
                    {key: post.get(key) for key in ("title", "slug", "id", "category")}
                    for post in members
                ]
            terms.append(entry)
        return {
            index: terms,
            "taxonomies": terms,
            "taxonomiesType": index,
            "taxonomyType": taxonomy,
            "hasTaxonomyData": True,
        }

    # Rendering

    def render(self, page: RenderedPage) -> str:
        return self.engine.render(page.template, page.data)

    def render_error(self, context: RenderContext, status: int) -> str:
        """Render the theme's layout as a 404 or 500 page.

        Falls back to a minimal HTML body when the theme cannot render.
        """
        if status == 404:
            data = self.assembler.not_found_data(context)
            name, fallback = "404.html", FALLBACK_404
        else:
            data = self.assembler.server_error_data(context)
            name, fallback = "500.html", FALLBACK_500
        try:
            template = self.themes.get_template_path(LAYOUT_TEMPLATE)
            return self.engine.render(template, self.assembler.finalize(data, name))
        except Exception:
            logger.exception("Failed to render the %s page", status)
            return fallback

    def _page_response(self, context: RenderContext, page: RenderedPage | None) -> Response:
        if page is None:
            return Response(404, self.render_error(context, 404))
        return Response(200, self.render(page))

    def _seo_response(self, context: RenderContext, route: str) -> Response:
        generator = SEO_ROUTES[route]()
        body = generator.generate(self.seo_context(context))
        if body is None:
            return Response(404, self.render_error(context, 404))
        return Response(200, body, generator.content_type)

    def handle(
        self,
        path: str,
        query: Mapping[str, str] | None = None,
        context: RenderContext | None = None,
    ) -> Response:
        """Route a front-end request.

        Args:
            path: URL path, e.g. ``/docs/intro``.
            query: Query-string parameters.
            context: Render context; a dynamic one is built when omitted.

        Returns:
            The response. Unexpected failures produce the themed 500 page.
        """
        if context is None:
            context = RenderContext(
                query=dict(query or {}), base_url=self.settings.get("siteUrl") or "/"
            )
        elif query is not None:
            context.query = dict(query)
        segments = [segment for segment in path.split("?", 1)[0].split("/") if segment]
        try:
            return self._dispatch(context, segments)
        except Exception:
            logger.exception("Error rendering %s", path)
            return Response(500, self.render_error(context, 500))

    def _dispatch(self, context: RenderContext, segments: list[str]) -> Response:
        if not segments:
            return self._page_response(context, self.home_view(context))
        first = segments[0]
        if len(segments) == 1 and first in SEO_ROUTES:
            return self._seo_response(context, first)
        if len(segments) == 2 and first == "post":
            return self._page_response(context, self.post_view(context, segments[1]))
        if len(segments) == 2 and first == "page":
            return self._normal_page_response(context, segments[1])
        if len(segments) == 2 and first in ("category", "tag"):
            return self._page_response(context, self.taxonomy_view(context, first, segments[1]))
        if first in RESERVED_SEGMENTS:
            return Response(404, self.render_error(context, 404))
        return self._page_response(context, self.custom_view(context, segments))

    def _normal_page_response(self, context: RenderContext, slug: str) -> Response:
        page = self.query.get_content_by_property("page", "slug", slug)
        if page is not None and page.is_published and page.is_custom:
            by_slug = index_by_slug(self.published_custom_pages())
            chain = routable_chain(by_slug[page.slug], by_slug) if page.slug in by_slug else None
            if (
                chain is not None
                and is_standalone_custom_slug(page.slug)
                and resolve_custom_page_template(self.themes, chain[-1], by_slug) is not None
            ):
                location = "/" + "/".join(p.slug for p in chain)
                return Response(301, "", headers={"Location": location})
        return self._page_response(context, self.page_view(context, slug))
