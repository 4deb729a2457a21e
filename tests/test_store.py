import json
import logging

import pytest

from quillpress.errors import CmsError, ErrorCode
from quillpress.store import Document, MarkdownStore, parse_document, serialize_document


def make_doc(kind: str, doc_id: str, slug: str, **fields) -> Document:
    return Document(
        kind=kind,
        frontmatter={"id": doc_id, "slug": slug, "title": slug.title(), **fields},
        content=f"Body of {slug}",
    )


def test_parse_and_serialize_document():
    text = serialize_document({"title": "Hello", "id": "1", "tags": ["a", "b"]}, "Body\n")
    assert text.startswith("---\nid: '1'\n")
    assert text.index("tags:") < text.index("title:")

    document = parse_document(text, "posts")
    assert document.frontmatter == {"id": "1", "title": "Hello", "tags": ["a", "b"]}
    assert document.content == "Body\n"
    assert document.page_type is None
    assert parse_document(serialize_document({"id": "1"}, "Body"), "posts").content == "Body"
    assert parse_document(serialize_document({"id": "1"}, None), "posts").content == ""


def test_unquoted_timestamps_are_read_as_iso_strings(tmp_path):
    text = (
        "---\nid: 1\ncreatedAt: 2024-01-02T00:00:00Z\npublishDate: 2024-01-05\n"
        "history:\n- 2024-01-03 10:30:00\n---\nBody\n"
    )
    document = parse_document(text, "posts")
    assert document.get("createdAt") == "2024-01-02T00:00:00.000Z"
    assert document.get("publishDate") == "2024-01-05"
    assert document.get("history") == ["2024-01-03T10:30:00.000Z"]

    store = MarkdownStore(tmp_path)
    (tmp_path / "posts").mkdir()
    (tmp_path / "posts" / "hand.md").write_text(text, encoding="utf-8")
    assert json.dumps(store.get("posts", 1).frontmatter)


def test_parse_document_rejects_bad_headers():
    for text in ("no header", "---\n- a list\n---\nbody", "---\ntitle: x\n---\nbody"):
        with pytest.raises(CmsError) as excinfo:
            parse_document(text, "posts")
        assert excinfo.value.code == ErrorCode.INVALID_FRONTMATTER


def test_page_type_defaults_from_directory():
    assert Document(kind="custom", frontmatter={"id": "1"}).is_custom
    assert Document(kind="pages", frontmatter={"id": "1"}).page_type == "normal"
    assert Document(kind="pages", frontmatter={"id": "1", "pageType": "custom"}).is_custom


def test_store_create_get_update_delete(tmp_path):
    store = MarkdownStore(tmp_path)
    created = store.create("posts", make_doc("posts", "1", "hello"))
    assert created.path == tmp_path / "posts" / "hello.md"
    assert store.get("posts", 1).title == "Hello"

    with pytest.raises(CmsError) as excinfo:
        store.create("posts", make_doc("posts", "2", "hello"))
    assert excinfo.value.code == ErrorCode.DUPLICATE_SLUG
    assert excinfo.value.details["slug"] == "hello"

    renamed = make_doc("posts", "1", "hello-again")
    store.update("posts", "1", renamed)
    assert not (tmp_path / "posts" / "hello.md").exists()
    assert store.get("posts", "1").slug == "hello-again"

    removed = store.delete("posts", "1")
    assert removed.slug == "hello-again"
    with pytest.raises(CmsError) as excinfo:
        store.get("posts", "1")
    assert excinfo.value.code == ErrorCode.NOT_FOUND


def test_update_moves_between_kinds(tmp_path):
    store = MarkdownStore(tmp_path)
    store.create("pages", make_doc("pages", "1", "about"))
    store.update("pages", "1", make_doc("custom", "1", "about", pageType="custom"))
    assert (tmp_path / "custom" / "about.md").exists()
    assert not (tmp_path / "pages" / "about.md").exists()


def test_update_rejects_slug_taken_by_another_file(tmp_path):
    store = MarkdownStore(tmp_path)
    store.create("posts", make_doc("posts", "1", "one"))
    store.create("posts", make_doc("posts", "2", "two"))
    with pytest.raises(CmsError) as excinfo:
        store.update("posts", "2", make_doc("posts", "2", "one"))
    assert excinfo.value.code == ErrorCode.DUPLICATE_SLUG


def test_reads_after_writes_are_fresh(tmp_path):
    store = MarkdownStore(tmp_path)
    store.create("posts", make_doc("posts", "1", "hello"))
    assert store.get("posts", "1").title == "Hello"
    store.update("posts", "1", make_doc("posts", "1", "hello", title="Changed"))
    assert store.get("posts", "1").title == "Changed"


def test_returned_documents_are_copies(tmp_path):
    store = MarkdownStore(tmp_path)
    store.create("posts", make_doc("posts", "1", "hello"))
    first = store.get("posts", "1")
    first.frontmatter["title"] = "Mutated"
    assert store.get("posts", "1").title == "Hello"


def test_broken_files_are_skipped_when_listing(tmp_path, caplog):
    store = MarkdownStore(tmp_path)
    store.create("posts", make_doc("posts", "1", "good"))
    (tmp_path / "posts" / "broken.md").write_text("no frontmatter", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="quillpress.store"):
        documents = list(store.iter_valid("posts"))
    assert [doc.slug for doc in documents] == ["good"]
    assert "broken.md" in caplog.text

    with pytest.raises(CmsError):
        store.list("posts")


def test_find_by_frontmatter_property(tmp_path):
    store = MarkdownStore(tmp_path)
    store.create("custom", make_doc("custom", "10", "intro", parentPage="docs"))
    store.create("custom", make_doc("custom", "11", "setup", parentPage="guide"))

    assert store.find_by_frontmatter_property("custom", "id", 10).slug == "intro"
    assert store.find_by_frontmatter_property("custom", "slug", "intro", parent_page="docs")
    assert store.find_by_frontmatter_property("custom", "slug", "intro", parent_page="x") is None


def test_unknown_kind(tmp_path):
    with pytest.raises(CmsError) as excinfo:
        MarkdownStore(tmp_path).directory("drafts")
    assert excinfo.value.code == ErrorCode.INVALID_INPUT
