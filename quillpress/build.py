"""Static site generation for Quillpress.

This module renders every public route of a project into an output directory
using the same views that serve requests, then writes the SEO artifacts and
copies the theme assets and uploads.

Output layout with clean URLs (``.html`` files otherwise):

    index.html, page/<n>/index.html         home and its later pages
    post/<slug>/index.html                  posts
    page/<slug>/index.html                  normal pages
    category/<slug>/index.html              taxonomy listings, plus page/<n>/
    tag/<slug>/index.html
    <parent>/<child>/index.html             custom pages
    rss.xml, sitemap.xml, sitemap/index.html, robots.txt, 404.html
    content/themes/<theme>/assets/**, content/uploads/**

Every page is rendered independently: a failure is logged with its traceback
and recorded, and generation continues with the next page.

Key classes:
- BuildOptions: Output directory, base URL and URL style.
- StaticSiteGenerator: Runs the generation steps in order.
- BuildResult: Files written and per-page errors.

Key functions:
- resolve_build_options: Merge explicit options over the site settings.
- build_site: Generate a project's static site.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .assembler import RenderContext
from .errors import CmsError
from .feeds import create_default_seo_registry
from .pagination import (
    build_sibling_navigation,
    index_by_slug,
    page_output_path,
    routable_chain,
    total_pages,
)
from .resolver import is_standalone_custom_slug, resolve_custom_page_template
from .site import PAGINATED_TEMPLATES, RenderedPage
from .systems import Systems, create_systems
from .utils import copy_tree, ensure_clean_dir, slugify

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "_site"


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file (or output file) involved.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


@dataclass
class BuildOptions:
    """Options of one static build.

    Attributes:
        output_dir: Directory receiving the site.
        base_url: Site URL without a trailing slash, or "/".
        clean_urls: Write ``<path>/index.html`` instead of ``<path>.html``.
    """

    output_dir: Path
    base_url: str = "/"
    clean_urls: bool = True

    def banner(self) -> list[str]:
        """Return the lines announcing the build configuration."""
        return [
            "Starting static site generation with:",
            f"Base URL: {self.base_url}",
            f"Output Directory: {self.output_dir}",
            f"Clean URLs: {'enabled' if self.clean_urls else 'disabled'}",
        ]


@dataclass
class BuildResult:
    """Result of a static build.

    Attributes:
        output_dir: Directory where the site was built.
        options: Options the build ran with.
        files: Output paths written, relative to ``output_dir``.
        errors: Pages that failed to render.
        assets: Number of theme asset files copied.
        uploads: Number of upload files copied.
    """

    output_dir: Path
    options: BuildOptions
    files: list[str] = field(default_factory=list)
    errors: list[BuildError] = field(default_factory=list)
    assets: int = 0
    uploads: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    if error_type == "TemplateSyntaxError":
        return f"Template syntax error on line {getattr(exc, 'lineno', '?')}: {exc}"
    if isinstance(exc, CmsError):
        return f"{exc.code}: {exc.message}"
    return f"{error_type}: {exc}"


def resolve_build_options(
    settings: dict[str, Any],
    project_root: Path,
    output_dir: str | Path | None = None,
    base_url: str | None = None,
    clean_urls: bool | None = None,
    default_output_dir: str = DEFAULT_OUTPUT_DIR,
) -> BuildOptions:
    """Merge explicit build options over the site settings.

    Args:
        settings: Site settings (``staticOutputDir``, ``siteUrl``,
            ``staticCleanUrls``).
        project_root: Base for relative output directories.
        output_dir: Explicit output directory.
        base_url: Explicit base URL.
        clean_urls: Explicit URL style.
        default_output_dir: Used when neither the argument nor the settings
            name an output directory.

    Returns:
        Options with the base URL's trailing slash removed (except for "/").
    """
    directory = Path(output_dir or settings.get("staticOutputDir") or default_output_dir)
    if not directory.is_absolute():
        directory = project_root / directory
    url = base_url or settings.get("siteUrl") or "/"
    if url != "/" and url.endswith("/"):
        url = url.rstrip("/") or "/"
    if clean_urls is None:
        clean_urls = settings.get("staticCleanUrls") != "off"
    return BuildOptions(output_dir=directory, base_url=url, clean_urls=clean_urls)


class StaticSiteGenerator:
    """Writes every public route of a project to disk.

    Attributes:
        systems: Project managers.
        options: Output options.
    """

    def __init__(self, systems: Systems, options: BuildOptions):
        self.systems = systems
        self.options = options
        self.site = systems.site
        self.query = systems.query
        self.context = RenderContext(
            is_static=True, clean_urls=options.clean_urls, base_url=options.base_url
        )
        self._result = BuildResult(output_dir=options.output_dir, options=options)

    @property
    def page_size(self) -> int:
        return self.systems.settings.posts_per_page

    def _path(self, clean: str, plain: str) -> str:
        return clean if self.options.clean_urls else plain

    def _write(
        self, relative: str, emit: Callable[[Path], bool], source: Path | None = None
    ) -> bool:
        """Produce one output file; failures are logged and recorded.

        ``emit`` writes the file at the given target and returns False when
        there is nothing to write.
        """
        target = self.options.output_dir / relative
        try:
            if not emit(target):
                return False
        except Exception as exc:
            logger.exception("Failed to generate %s", relative)
            self._result.errors.append(
                BuildError(source or target, _format_error_message(exc), exc)
            )
            return False
        self._result.files.append(relative)
        logger.debug("Wrote %s", relative)
        return True

    def _render_view(
        self, view: Callable[[], RenderedPage | None], relative: str
    ) -> Callable[[Path], bool]:
        def emit(target: Path) -> bool:
            page = view()
            if page is None:
                logger.warning("Nothing to render for %s, skipping", relative)
                return False
            self.site.engine.render_to_file(page.template, page.data, target)
            return True

        return emit

    @staticmethod
    def _text(render: Callable[[], str]) -> Callable[[Path], bool]:
        def emit(target: Path) -> bool:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(render(), encoding="utf-8")
            return True

        return emit

    def generate(self, clean_output: bool = True) -> BuildResult:
        """Run every generation step in order.

        Args:
            clean_output: Wipe the output directory first.
        """
        if clean_output:
            ensure_clean_dir(self.options.output_dir)
        else:
            self.options.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Starting static site generation to %s", self.options.output_dir)

        self.generate_home()
        self.generate_posts()
        self.generate_pages()
        self.generate_taxonomies()
        self.generate_custom_pages()
        self.generate_seo()
        self.generate_404()
        self.copy_theme_assets()
        self.copy_uploads()

        logger.info(
            "Generated %d files with %d errors", len(self._result.files), len(self._result.errors)
        )
        return self._result

    def _generate_paginated(
        self,
        content_type: str,
        slug: str | None,
        item_count: int,
        view: Callable[[int], RenderedPage | None],
    ) -> None:
        """Write page 1 at the listing's own path and later pages below it."""
        pages = max(total_pages(item_count, self.page_size), 1)
        for number in range(1, pages + 1):
            relative = page_output_path(number, content_type, slug, self.options.clean_urls)
            self._write(relative, self._render_view(lambda n=number: view(n), relative))

    def generate_home(self) -> None:
        logger.info("Generating homepage...")
        posts = self.query.get_posts(status="published", frontmatter_only=True)
        self._generate_paginated(
            "home", None, len(posts), lambda n: self.site.home_view(self.context, page=n)
        )

    def generate_posts(self) -> None:
        posts = self.query.get_posts(status="published", frontmatter_only=True)
        logger.info("Generating %d posts...", len(posts))
        for post in posts:
            if not post.slug:
                continue
            relative = self._path(f"post/{post.slug}/index.html", f"post/{post.slug}.html")
            self._write(
                relative,
                self._render_view(
                    lambda slug=post.slug: self.site.post_view(self.context, slug), relative
                ),
                post.path,
            )

    def generate_pages(self) -> None:
        pages = [
            page
            for page in self.query.get_pages(status="published", frontmatter_only=True)
            if not page.is_custom
        ]
        logger.info("Generating %d pages...", len(pages))
        for page in pages:
            if not page.slug:
                continue
            relative = self._path(f"page/{page.slug}/index.html", f"page/{page.slug}.html")
            self._write(
                relative,
                self._render_view(
                    lambda slug=page.slug: self.site.page_view(self.context, slug), relative
                ),
                page.path,
            )

    def generate_taxonomies(self) -> None:
        for taxonomy in ("category", "tag"):
            terms = self.query.taxonomy_terms(taxonomy)
            logger.info("Generating %d %s pages...", len(terms), taxonomy)
            written: set[str] = set()
            for term, count in terms.items():
                slug = slugify(term)
                if not slug or slug in written:
                    continue
                written.add(slug)
                self._generate_paginated(
                    taxonomy,
                    slug,
                    count,
                    lambda n, t=taxonomy, s=slug: self.site.taxonomy_view(
                        self.context, t, s, page=n
                    ),
                )

    def generate_custom_pages(self) -> None:
        """Render every standalone custom page at its nested path.

        Sibling navigation is computed once for the whole set and shared by
        every page.
        """
        custom_pages = self.site.published_custom_pages()
        pages = [
            page for page in custom_pages if page.slug and is_standalone_custom_slug(page.slug)
        ]
        logger.info("Generating %d custom pages...", len(pages))
        navigation = build_sibling_navigation(pages)
        logger.debug("Built sibling navigation for %d pages", len(navigation))
        by_slug = index_by_slug(custom_pages)
        post_count = len(self.query.get_posts(status="published", frontmatter_only=True))

        for page in pages:
            chain = routable_chain(page, by_slug)
            if chain is None:
                logger.warning(
                    "Custom page %s is not reachable from a root page, skipping", page.slug
                )
                continue
            segments = [p.slug for p in chain]
            full_path = "/".join(segments)

            if resolve_custom_page_template(self.systems.themes, page, by_slug) is None:
                logger.warning("Custom page %s has no template, skipping", full_path)
                continue

            def view(number: int, segments: list[str] = segments) -> RenderedPage | None:
                return self.site.custom_view(
                    self.context,
                    segments,
                    page=number,
                    custom_pages=custom_pages,
                    sibling_navigation=navigation,
                )

            paginated = PAGINATED_TEMPLATES.intersection((segments[0], "-".join(segments)))
            self._generate_paginated("custom", full_path, post_count if paginated else 0, view)

    def generate_seo(self) -> None:
        logger.info("Generating SEO files (RSS and sitemaps)...")
        registry = create_default_seo_registry()
        try:
            written = registry.generate_all(
                self.options.output_dir,
                self.site.seo_context(self.context),
                clean_urls=self.options.clean_urls,
            )
        except Exception as exc:
            logger.exception("Failed to generate SEO files")
            self._result.errors.append(
                BuildError(self.options.output_dir, _format_error_message(exc), exc)
            )
            return
        if "rss.xml" not in written:
            logger.info("No published posts found - skipping RSS generation")
        self._result.files.extend(written)

    def generate_404(self) -> None:
        logger.info("Generating 404.html...")
        self._write("404.html", self._text(lambda: self.site.render_error(self.context, 404)))

    def copy_theme_assets(self) -> None:
        theme = self.systems.themes.get_active_theme()
        destination = self.options.output_dir / "content" / "themes" / theme.name / "assets"
        self._result.assets = copy_tree(theme.assets_dir, destination)
        logger.info("Copied %d theme assets", self._result.assets)

    def copy_uploads(self) -> None:
        destination = self.options.output_dir / "content" / "uploads"
        self._result.uploads = copy_tree(self.systems.uploads_dir, destination)
        logger.info("Copied %d uploads", self._result.uploads)


def build_site(
    project_root: Path,
    output_dir: str | Path | None = None,
    base_url: str | None = None,
    clean_urls: bool | None = None,
    clean_output: bool = True,
    systems: Systems | None = None,
) -> BuildResult:
    """Build the static site of a project.

    Args:
        project_root: Directory holding quillpress.yaml and the content.
        output_dir: Overrides ``staticOutputDir``.
        base_url: Overrides ``siteUrl``.
        clean_urls: Overrides ``staticCleanUrls``.
        clean_output: Wipe the output directory before building.
        systems: Already initialized managers to reuse.

    Returns:
        BuildResult with the files written and any per-page errors.

    Raises:
        BuildError: When the project cannot be loaded (corrupt settings, no
            theme available).
    """
    project_root = Path(project_root)
    if systems is None:
        try:
            systems = create_systems(project_root)
        except CmsError as exc:
            raise BuildError(project_root, _format_error_message(exc), exc) from exc
    options = resolve_build_options(
        systems.settings.get_settings(),
        systems.project_root,
        output_dir,
        base_url,
        clean_urls,
        default_output_dir=systems.config.get("output_dir", DEFAULT_OUTPUT_DIR),
    )
    for line in options.banner():
        logger.info(line)
    return StaticSiteGenerator(systems, options).generate(clean_output=clean_output)
