import pytest

from quillpress.pagination import (
    build_breadcrumbs,
    build_sibling_navigation,
    clamp_page,
    custom_page_chain,
    custom_page_path,
    index_by_slug,
    page_output_path,
    page_slice,
    paginate,
    routable_chain,
    total_pages,
)
from quillpress.store import Document


def custom_page(slug, parent=None, **fields):
    frontmatter = {"id": slug, "slug": slug, "title": fields.pop("title", slug.title())}
    if parent:
        frontmatter["parentPage"] = parent
    frontmatter.update(fields)
    return Document(kind="custom", frontmatter=frontmatter)


def test_page_counts_and_slices():
    assert total_pages(0, 10) == 0
    assert total_pages(21, 10) == 3
    assert clamp_page("7", 3) == 3
    assert clamp_page("x", 3) == 1
    assert clamp_page(-2, 0) == 1
    items = list(range(25))
    pages = [page_slice(items, n, 10) for n in range(1, total_pages(len(items), 10) + 1)]
    assert sum(pages, []) == items
    with pytest.raises(ValueError):
        total_pages(3, 0)


def test_paginate_request_urls():
    record = paginate(25, 2, 10, "category", "tech")
    assert record["currentPage"] == 2
    assert record["totalPages"] == 3
    assert (record["prevPage"], record["nextPage"]) == (1, 3)
    assert record["urls"] == {
        "first": "?page=1",
        "prev": "?page=1",
        "current": "?page=2",
        "next": "?page=3",
        "last": "?page=3",
    }
    assert "urls" not in paginate(25, 1, 10)


def test_paginate_static_urls():
    clean = paginate(25, 2, 10, "tag", "python", is_static=True)
    assert clean["urls"]["first"] == "/tag/python"
    assert clean["urls"]["next"] == "/tag/python/page/3"
    assert clean["urls"]["last"] == "/tag/python/page/3"

    files = paginate(25, 3, 10, "home", is_static=True, clean_urls=False)
    assert files["urls"]["prev"] == "/page-2.html"
    assert files["urls"]["first"] == "/index.html"
    assert files["urls"]["next"] is None

    custom = paginate(25, 1, 10, "custom", "docs/guides", is_static=True, clean_urls=False)
    assert custom["urls"]["next"] == "/docs/guides/page-2.html"


def test_page_output_paths():
    assert page_output_path(1, "home") == "index.html"
    assert page_output_path(2, "home") == "page/2/index.html"
    assert page_output_path(2, "home", clean_urls=False) == "page-2.html"
    assert page_output_path(1, "category", "tech") == "category/tech/index.html"
    assert page_output_path(1, "category", "tech", clean_urls=False) == "category/tech.html"
    assert page_output_path(3, "tag", "python") == "tag/python/page/3/index.html"
    assert page_output_path(2, "tag", "python", clean_urls=False) == "tag/python/page-2.html"


def test_chains_and_paths():
    pages = [
        custom_page("docs"),
        custom_page("intro", "docs"),
        custom_page("install", "intro"),
        custom_page("deep", "install"),
        custom_page("orphan", "missing"),
    ]
    by_slug = index_by_slug(pages)
    install = by_slug["install"]

    assert [p.slug for p in custom_page_chain(install, by_slug)] == ["docs", "intro", "install"]
    assert custom_page_path(install, by_slug) == "docs/intro/install"
    assert routable_chain(install, by_slug) is not None
    assert routable_chain(by_slug["deep"], by_slug) is None
    assert routable_chain(by_slug["orphan"], by_slug) is None
    assert [p.slug for p in routable_chain(by_slug["docs"], by_slug)] == ["docs"]


def test_cyclic_chain_terminates():
    pages = [custom_page("a", "b"), custom_page("b", "a")]
    by_slug = index_by_slug(pages)
    assert [p.slug for p in custom_page_chain(pages[0], by_slug)] == ["b", "a"]
    assert routable_chain(pages[0], by_slug) is None


def test_breadcrumbs():
    pages = [custom_page("docs"), custom_page("intro", "docs"), custom_page("install", "intro")]
    crumbs = build_breadcrumbs(pages[2], index_by_slug(pages))
    assert crumbs == [
        {"title": "Docs", "slug": "/docs", "order": 0},
        {"title": "Intro", "slug": "/docs/intro", "order": 1},
        {"title": "Install", "slug": "/docs/intro/install", "active": True, "order": 2},
    ]
    assert build_breadcrumbs(pages[0], index_by_slug(pages)) == [
        {"title": "Docs", "slug": "/docs", "active": True, "order": 0}
    ]


def test_sibling_navigation_order():
    pages = [
        custom_page("docs"),
        custom_page("zeta", "docs", title="Zeta"),
        custom_page("alpha", "docs", title="Alpha"),
        custom_page("dated", "docs", title="Dated", publishDate="2024-05-01T00:00:00.000Z"),
        custom_page("lonely", "zeta"),
    ]
    navigation = build_sibling_navigation(pages)

    assert set(navigation) == {"zeta", "alpha", "dated"}
    alpha = navigation["alpha"]
    assert [s["slug"] for s in alpha["siblings"]] == ["alpha", "zeta", "dated"]
    assert [s["order"] for s in alpha["siblings"]] == [0, 1, 2]
    assert [s["active"] for s in alpha["siblings"]] == [True, False, False]
    assert alpha["prev"] is None
    assert alpha["next"] == {"title": "Zeta", "slug": "zeta", "url": "/docs/zeta", "order": 1}
    assert alpha["parentTitle"] == "Docs"
    assert navigation["dated"]["next"] is None
    assert navigation["dated"]["prev"]["slug"] == "zeta"
