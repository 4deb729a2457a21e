import pytest

from quillpress.content import ContentManager
from quillpress.errors import CmsError, ErrorCode
from quillpress.hooks import HookSystem
from quillpress.query import ContentQueryEngine
from quillpress.store import MarkdownStore


def create_manager(tmp_path):
    store = MarkdownStore(tmp_path / "data")
    hooks = HookSystem()
    manager = ContentManager(store, ContentQueryEngine(store), hooks)
    manager.initialize()
    return manager


def test_create_post_applies_defaults(tmp_path):
    manager = create_manager(tmp_path)
    events = []
    manager.hooks.add_action("post_created", lambda doc: events.append(doc.slug))

    post = manager.create("post", {"title": "Hello World"}, "Body")

    assert post.slug == "hello-world"
    assert post.get("status") == "draft"
    assert post.get("author") == "admin"
    assert post.get("createdAt") == post.get("updatedAt")
    assert post.id.isdigit()
    assert post.path == tmp_path / "data" / "posts" / "hello-world.md"
    assert events == ["hello-world"]


def test_ids_are_unique(tmp_path):
    manager = create_manager(tmp_path)
    first = manager.create("post", {"title": "One"})
    second = manager.create("post", {"title": "Two"})
    assert first.id != second.id


def test_create_requires_title_and_valid_fields(tmp_path):
    manager = create_manager(tmp_path)
    for metadata in (
        {"title": "  "},
        {"title": "Ok", "slug": "Not Valid"},
        {"title": "Ok", "status": "scheduled"},
    ):
        with pytest.raises(CmsError) as excinfo:
            manager.create("post", metadata)
        assert excinfo.value.code == ErrorCode.INVALID_INPUT

    with pytest.raises(CmsError) as excinfo:
        manager.create("page", {"title": "Ok", "pageType": "landing"})
    assert excinfo.value.code == ErrorCode.INVALID_INPUT


def test_duplicate_slug_is_rejected_per_kind(tmp_path):
    manager = create_manager(tmp_path)
    manager.create("post", {"title": "About"})
    with pytest.raises(CmsError) as excinfo:
        manager.create("post", {"title": "About"})
    assert excinfo.value.code == ErrorCode.DUPLICATE_SLUG
    assert excinfo.value.details == {"slug": "about"}

    # Posts and pages have separate slug spaces
    page = manager.create("page", {"title": "About"})
    assert page.page_type == "normal"
    assert page.path.parent.name == "pages"


def test_custom_page_parent_rules(tmp_path):
    manager = create_manager(tmp_path)
    manager.create("page", {"title": "Docs", "pageType": "custom", "status": "published"})
    manager.create("page", {"title": "Plain"})

    intro = manager.create(
        "page", {"title": "Intro", "pageType": "custom", "parentPage": "docs"}
    )
    assert intro.path.parent.name == "custom"
    assert intro.parent_page == "docs"

    cases = [
        ({"title": "Orphan", "pageType": "custom", "parentPage": "missing"}, "valid custom page"),
        ({"title": "Child", "pageType": "custom", "parentPage": "plain"}, "valid custom page"),
        ({"title": "Normal", "parentPage": "docs"}, "Only custom pages"),
        ({"title": "Self", "pageType": "custom", "parentPage": "self"}, "own parent"),
    ]
    for metadata, message in cases:
        with pytest.raises(CmsError) as excinfo:
            manager.create("page", metadata)
        assert excinfo.value.code == ErrorCode.INVALID_INPUT
        assert message in excinfo.value.message


def test_parent_cycle_is_rejected(tmp_path):
    manager = create_manager(tmp_path)
    docs = manager.create("page", {"title": "Docs", "pageType": "custom"})
    manager.create("page", {"title": "Intro", "pageType": "custom", "parentPage": "docs"})
    manager.create("page", {"title": "Install", "pageType": "custom", "parentPage": "intro"})

    with pytest.raises(CmsError) as excinfo:
        manager.update("page", docs.id, {"parentPage": "install"})
    assert "circular" in excinfo.value.message


def test_update_regenerates_slug_and_keeps_created(tmp_path):
    manager = create_manager(tmp_path)
    events = []
    manager.hooks.add_action("post_updated", lambda doc: events.append(doc.slug))
    post = manager.create("post", {"title": "First Title"}, "Body")

    updated = manager.update("post", post.id, {"title": "Second Title"})

    assert updated.id == post.id
    assert updated.slug == "second-title"
    assert updated.get("createdAt") == post.get("createdAt")
    assert updated.content == "Body"
    assert not post.path.exists()
    assert updated.path.exists()
    assert events == ["second-title"]

    kept = manager.update("post", post.id, {"title": "Third", "slug": "pinned"})
    assert kept.slug == "pinned"


def test_update_moves_page_to_custom_directory(tmp_path):
    manager = create_manager(tmp_path)
    page = manager.create("page", {"title": "Landing"})
    moved = manager.update("page", page.id, {"pageType": "custom"}, "New body")
    assert moved.path.parent.name == "custom"
    assert moved.content == "New body"
    assert manager.query.get_page(page.id).is_custom


def test_update_and_delete_missing(tmp_path):
    manager = create_manager(tmp_path)
    for call in (
        lambda: manager.update("post", "404", {"title": "x"}),
        lambda: manager.delete("page", "404"),
    ):
        with pytest.raises(CmsError) as excinfo:
            call()
        assert excinfo.value.code == ErrorCode.NOT_FOUND


def test_delete_fires_hooks_in_order(tmp_path):
    manager = create_manager(tmp_path)
    post = manager.create("post", {"title": "Doomed"})
    calls = []
    manager.hooks.add_action(
        "pre_post_delete", lambda doc_id: calls.append(("pre", post.path.exists()))
    )
    manager.hooks.add_action(
        "post_deleted", lambda doc_id: calls.append(("post", post.path.exists()))
    )

    manager.delete("post", post.id)

    assert calls == [("pre", True), ("post", False)]
    assert manager.query.get_post(post.id) is None


def test_set_status(tmp_path):
    manager = create_manager(tmp_path)
    post = manager.create("post", {"title": "Draft"})
    assert manager.set_status("post", post.id, "published").is_published
