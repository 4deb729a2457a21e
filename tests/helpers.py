import json
from pathlib import Path

import yaml

from quillpress.systems import create_systems

LAYOUT = """<title>{{ metadata.title if metadata and metadata.title else site.siteTitle }}</title>
{% if notFoundRoute %}<h1>Not Found</h1>{% endif %}
{% if serverErrorRoute %}<h1>Server Error</h1>{% endif %}
<div id="content">{{ content }}</div>
<ul id="posts">{% for post in posts or [] %}<li>{{ post.metadata.slug }}</li>{% endfor %}</ul>
{% for crumb in breadcrumbs or [] %}<span class="crumb{% if crumb.active %} active{% endif %}">{{ crumb.title }}</span>{% endfor %}
"""


def create_project(tmp_path: Path, settings: dict | None = None, templates: dict | None = None) -> Path:
    """Create a project with a ``test`` theme holding only layout.html plus ``templates``."""
    project = tmp_path / "site"
    data_dir = project / "content" / "data"
    for kind in ("posts", "pages", "custom"):
        (data_dir / kind).mkdir(parents=True)
    theme = project / "content" / "themes" / "test"
    (theme / "templates").mkdir(parents=True)
    (theme / "custom").mkdir()
    (theme / "assets" / "css").mkdir(parents=True)
    (theme / "theme.json").write_text(
        json.dumps({"title": "Test Theme", "version": "1.0.0"}), encoding="utf-8"
    )
    (theme / "templates" / "layout.html").write_text(LAYOUT, encoding="utf-8")
    (theme / "assets" / "css" / "style.css").write_text("body {}", encoding="utf-8")
    for name, source in (templates or {}).items():
        target = theme / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(source, encoding="utf-8")

    site_settings = {"siteTitle": "Test Site", "activeTheme": "test", "postsPerPage": 10}
    site_settings.update(settings or {})
    (data_dir / "settings.json").write_text(json.dumps(site_settings), encoding="utf-8")
    return project


def write_doc(project: Path, kind: str, slug: str, body: str = "", **fields) -> Path:
    """Write a document straight to disk, bypassing validation."""
    frontmatter = {
        "id": fields.pop("id", slug),
        "title": fields.pop("title", slug.replace("-", " ").title()),
        "slug": slug,
        "status": fields.pop("status", "published"),
    }
    if kind == "custom":
        frontmatter["pageType"] = "custom"
    elif kind == "pages":
        frontmatter["pageType"] = "normal"
    frontmatter.update(fields)
    path = project / "content" / "data" / kind / f"{slug}.md"
    header = yaml.safe_dump(frontmatter, sort_keys=True, default_flow_style=False)
    path.write_text(f"---\n{header}---\n{body}\n", encoding="utf-8")
    return path


def load(project: Path):
    return create_systems(project)
