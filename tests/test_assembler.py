from quillpress.assembler import RenderContext, taxonomy_metadata, template_items
from quillpress.store import Document

from helpers import create_project, load, write_doc


def test_taxonomy_labels():
    assert taxonomy_metadata("category", "Tech", 2) == {
        "title": "Category: Tech",
        "subtitle": "2 posts in Tech",
        "description": "Discover the latest articles in the Tech category",
    }
    assert taxonomy_metadata("tag", "python", 3, page=2)["title"] == "Tagged: python - Page 2"
    assert "subtitle" not in taxonomy_metadata("tag", "python")


def test_render_context():
    context = RenderContext(query={"page": "3", "pageSize": "0"}, current_user={"role": "editor"})
    assert context.page == "3"
    assert context.page_size(10) == 10
    assert context.editable
    assert not RenderContext(is_static=True, current_user={"role": "admin"}).editable
    assert RenderContext(query={"pageSize": "4"}).page_size(10) == 4


def test_template_items():
    doc = Document(kind="posts", frontmatter={"slug": "a"}, content="x")
    assert template_items([doc]) == [{"metadata": {"slug": "a"}, "content": "x"}]


def test_base_data_has_site_theme_and_menu(tmp_path):
    systems = load(create_project(tmp_path))
    context = RenderContext(current_user={"id": "1", "role": "admin", "passwordHash": "h"})
    data = systems.site.assembler.base_data(context, extra=1)

    assert data["site"]["siteTitle"] == "Test Site"
    assert data["theme"]["name"] == "test"
    assert data["editable"] is True
    assert data["currentUser"] == {"id": "1", "role": "admin"}
    assert data["isGenerateStatic"] is False
    assert data["extra"] == 1
    assert [item["id"] for item in data["menu"]] == ["home", "blog"]
    assert "site-navigation" in data["html_menu"]


def test_custom_cover_page_overrides_metadata(tmp_path):
    project = create_project(tmp_path, templates={"custom/category.html": "{{ metadata.title }}"})
    write_doc(project, "custom", "category", "Cover *body*", heroImage="/hero.png")
    systems = load(project)
    assembler = systems.site.assembler
    template = systems.themes.get_active_theme().path / "custom" / "category.html"

    data = assembler.apply_template_metadata(
        template, {"metadata": {}}, "category", "Tech", item_count=2, page=2
    )
    assert data["metadata"]["title"] == "Category: Tech - Page 2"
    assert data["metadata"]["subtitle"] == "2 posts in Tech"
    assert data["metadata"]["heroImage"] == "/hero.png"
    assert "<em>body</em>" in data["content"]


def test_cover_for_other_taxonomy_keeps_its_own_title(tmp_path):
    project = create_project(tmp_path, templates={"custom/tag-python.html": "x"})
    write_doc(project, "custom", "tag-python", title="Python Things")
    systems = load(project)
    template = systems.themes.get_active_theme().path / "custom" / "tag-python.html"

    data = systems.site.assembler.apply_template_metadata(template, {}, "tag", "python", 1)
    assert data["metadata"]["title"] == "Python Things"


def test_draft_cover_page_is_ignored(tmp_path):
    project = create_project(tmp_path, templates={"custom/category.html": "x"})
    write_doc(project, "custom", "category", "Hidden body", status="draft", hero="secret.png")
    systems = load(project)
    template = systems.themes.get_active_theme().path / "custom" / "category.html"

    data = systems.site.assembler.apply_template_metadata(
        template, {"content": ""}, "category", "Tech", item_count=2
    )
    assert data["metadata"] == taxonomy_metadata("category", "Tech", 2)
    assert data["content"] == ""


def test_labels_without_cover_page(tmp_path):
    systems = load(create_project(tmp_path))
    template = systems.themes.get_template_path("layout.html")
    data = systems.site.assembler.apply_template_metadata(template, {}, "tag", "python", 1)
    assert data["metadata"]["title"] == "Tagged: python"
    assert systems.site.assembler.apply_template_metadata(template, {"a": 1}) == {"a": 1}


def test_finalize_runs_template_data_filter(tmp_path):
    systems = load(create_project(tmp_path))
    seen = []

    def add_flag(data, name):
        seen.append(name)
        return {**data, "flag": True}

    systems.hooks.add_filter("template_data", add_flag)
    assert systems.site.assembler.finalize({"a": 1}, "post.html") == {"a": 1, "flag": True}
    assert seen == ["post.html"]


def test_error_page_data(tmp_path):
    assembler = load(create_project(tmp_path)).site.assembler
    not_found = assembler.not_found_data(RenderContext())
    assert not_found["notFoundRoute"] is True
    assert not_found["metadata"]["title"].startswith("404")
    assert assembler.server_error_data(RenderContext())["serverErrorRoute"] is True
