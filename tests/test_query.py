from quillpress.query import (
    ContentQueryEngine,
    add_post_references,
    apply_pagination,
    field_values,
)
from quillpress.store import Document, MarkdownStore


def add(store: MarkdownStore, kind: str, slug: str, body: str = "", **fields) -> None:
    frontmatter = {"id": fields.pop("id", slug), "slug": slug, "title": slug.upper()}
    frontmatter.setdefault("status", "published")
    frontmatter.update(fields)
    store.create(kind, Document(kind=kind, frontmatter=frontmatter, content=body))


def create_engine(tmp_path) -> ContentQueryEngine:
    store = MarkdownStore(tmp_path)
    add(store, "posts", "p1", "First **post** body", createdAt="2024-01-02T00:00:00.000Z",
        category="Tech", tags=["python", "web"], relatedPosts=["p2", "gone"])
    add(store, "posts", "p2", "Second body", createdAt="2024-01-01T00:00:00.000Z",
        categories=["Tech", "Life"], tags="python, cms", excerpt="x" * 200)
    add(store, "posts", "p3", "Draft body", createdAt="2024-01-03T00:00:00.000Z",
        status="draft", category="Tech")
    add(store, "pages", "about", pageType="normal")
    add(store, "custom", "docs")
    add(store, "custom", "docs-intro", parentPage="docs")
    return ContentQueryEngine(store)


def slugs(documents):
    return [document.slug for document in documents]


def test_published_posts_newest_first(tmp_path):
    engine = create_engine(tmp_path)
    assert slugs(engine.get_posts(status="published")) == ["p1", "p2"]
    assert slugs(engine.get_posts()) == ["p3", "p1", "p2"]
    assert slugs(engine.get_posts(limit=1, offset=1)) == ["p1"]


def test_ties_on_created_are_broken_by_id(tmp_path):
    store = MarkdownStore(tmp_path)
    for slug in ("b", "a", "c"):
        add(store, "posts", slug, createdAt="2024-01-01T00:00:00.000Z")
    assert slugs(ContentQueryEngine(store).get_posts()) == ["a", "b", "c"]


def test_projections(tmp_path):
    engine = create_engine(tmp_path)
    summary = engine.get_posts(status="published", summary_view=True, preview_length=10)
    assert summary[0].content == "First..."
    assert engine.get_posts(frontmatter_only=True)[0].content is None
    assert engine.get_post("p1").content == "First **post** body"


def test_pages_by_type(tmp_path):
    engine = create_engine(tmp_path)
    assert sorted(slugs(engine.get_pages())) == ["about", "docs", "docs-intro"]
    assert sorted(slugs(engine.get_pages(page_type="custom"))) == ["docs", "docs-intro"]
    assert slugs(engine.get_pages(page_type="normal")) == ["about"]
    assert engine.get_page("docs").get("pageType") == "custom"
    assert len(engine.get_pages(offset=1)) == 2
    assert engine.get_pages(offset=3) == []


def test_lookup_by_property_and_parent(tmp_path):
    engine = create_engine(tmp_path)
    assert engine.get_content_by_property("page", "slug", "docs-intro").slug == "docs-intro"
    assert engine.get_content_by_property("page", "slug", "docs-intro", parent_page="docs")
    assert engine.get_content_by_property("page", "slug", "docs-intro", parent_page="x") is None
    assert engine.get_content_by_property("post", "slug", "missing") is None


def test_related_posts_are_resolved(tmp_path):
    engine = create_engine(tmp_path)
    related = engine.get_post("p1").get("relatedPostsData")
    assert len(related) == 1
    assert related[0]["slug"] == "p2"
    assert related[0]["excerpt"] == "x" * 120 + "..."
    assert set(related[0]) == {"id", "title", "subtitle", "slug", "featuredImage", "excerpt"}

    bare = engine.get_post("p1", resolve_related_posts=False)
    assert "relatedPostsData" not in bare.frontmatter


def test_draft_related_posts_are_dropped_for_public_views(tmp_path):
    engine = create_engine(tmp_path)
    add(engine.store, "posts", "p4", createdAt="2023-12-01T00:00:00.000Z",
        relatedPosts=["p3", "p2"])

    assert [r["slug"] for r in engine.get_post("p4").get("relatedPostsData")] == ["p3", "p2"]
    public = engine.get_content_by_property("post", "slug", "p4", published_only=True)
    assert [r["slug"] for r in public.get("relatedPostsData")] == ["p2"]


def test_navigation_between_published_posts(tmp_path):
    engine = create_engine(tmp_path)
    newest = engine.get_content_by_property("post", "slug", "p1", add_navigation=True)
    assert newest.get("prevPost") == {"title": "P2", "slug": "p2"}
    assert newest.get("nextPost") is None

    oldest = engine.get_post("p2", add_navigation=True)
    assert oldest.get("prevPost") is None
    assert oldest.get("nextPost") == {"title": "P1", "slug": "p1"}


def test_taxonomy_queries(tmp_path):
    engine = create_engine(tmp_path)
    assert slugs(engine.get_posts_by_category("Tech")) == ["p1", "p2"]
    assert slugs(engine.get_posts_by_category("Life")) == ["p2"]
    assert slugs(engine.get_posts_by_tag("cms")) == ["p2"]
    assert slugs(engine.get_posts_by_tag("python", limit=1)) == ["p1"]
    assert engine.taxonomy_terms("category") == {"Life": 1, "Tech": 2}
    assert engine.taxonomy_terms("tag") == {"cms": 1, "python": 2, "web": 1}


def test_find_content(tmp_path):
    engine = create_engine(tmp_path)
    found = engine.find_content(lambda doc: doc.slug.startswith("docs"), ["page", "bogus"])
    assert sorted(slugs(found)) == ["docs", "docs-intro"]


def test_helpers():
    assert apply_pagination([1, 2, 3, 4], 2, 1) == [2, 3]
    assert apply_pagination([1, 2, 3], None, 1) == [2, 3]
    assert field_values({"tags": "a, b"}, "tag") == ["a", "b"]
    assert field_values({"category": 5}, "category") == ["5"]
    assert field_values({}, "category") == []

    posts = [Document(kind="posts", frontmatter={"title": t, "slug": t}) for t in "abc"]
    add_post_references(posts)
    assert posts[1].get("prevPost") == {"title": "c", "slug": "c"}
    assert posts[1].get("nextPost") == {"title": "a", "slug": "a"}
