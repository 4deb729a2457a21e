import json
import logging

import pytest

from quillpress.errors import CmsError, ErrorCode
from quillpress.menu import MenuManager
from quillpress.settings import SettingsService
from quillpress.themes import BUNDLED_THEMES_DIR, ThemeManager, discover_themes


def make_theme(themes_dir, name, info=None):
    path = themes_dir / name
    (path / "templates").mkdir(parents=True)
    if info is not None:
        (path / "theme.json").write_text(json.dumps(info), encoding="utf-8")
    return path


def create_manager(tmp_path, active="default"):
    settings_path = tmp_path / "data" / "settings.json"
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps({"activeTheme": active}), encoding="utf-8")
    settings = SettingsService(settings_path)
    settings.initialize()
    menu = MenuManager(tmp_path / "data" / "menu.json")
    menu.initialize()
    return ThemeManager(tmp_path / "themes", settings, menu)


def test_discover_skips_temp_and_broken_themes(tmp_path, caplog):
    themes_dir = tmp_path / "themes"
    make_theme(themes_dir, "alpha", {"title": "Alpha"})
    make_theme(themes_dir, "_temp_upload", {"title": "Temp"})
    make_theme(themes_dir, "broken")

    with caplog.at_level(logging.WARNING, logger="quillpress.themes"):
        themes = discover_themes(themes_dir)

    assert list(themes) == ["alpha"]
    assert themes["alpha"].info["title"] == "Alpha"
    assert "broken" in caplog.text
    assert discover_themes(tmp_path / "missing") == {}


def test_initialize_uses_configured_theme(tmp_path):
    make_theme(tmp_path / "themes", "alpha", {"title": "Alpha"})
    make_theme(tmp_path / "themes", "beta", {"title": "Beta"})
    manager = create_manager(tmp_path, active="beta")
    assert manager.initialize().name == "beta"
    assert manager.get_template_path("post.html") == tmp_path / "themes" / "beta" / "templates" / "post.html"
    assert manager.get_custom_template_path("custom", "docs.html").parent.name == "custom"


def test_initialize_falls_back_and_persists(tmp_path):
    make_theme(tmp_path / "themes", "alpha", {"title": "Alpha"})
    manager = create_manager(tmp_path, active="gone")
    assert manager.initialize().name == "alpha"
    assert manager.settings.get_settings(force_reload=True)["activeTheme"] == "alpha"


def test_initialize_falls_back_to_bundled_theme(tmp_path):
    manager = create_manager(tmp_path, active="gone")
    theme = manager.initialize()
    assert theme.name == "default"
    assert theme.path == BUNDLED_THEMES_DIR / "default"
    assert (theme.templates_dir / "layout.html").is_file()
    # the bundled copy is never recorded as installed
    assert manager.settings.get_settings(force_reload=True)["activeTheme"] == "gone"


def test_no_theme_at_all(tmp_path):
    manager = create_manager(tmp_path)
    manager.bundled_dir = tmp_path / "nowhere"
    with pytest.raises(CmsError) as excinfo:
        manager.initialize()
    assert excinfo.value.code == ErrorCode.NOT_FOUND


def test_switch_and_delete(tmp_path):
    make_theme(tmp_path / "themes", "alpha", {"title": "Alpha"})
    manager = create_manager(tmp_path, active="alpha")
    manager.initialize()
    beta = make_theme(tmp_path / "themes", "beta", {"title": "Beta"})

    assert manager.switch_theme("beta").name == "beta"
    assert manager.settings.get_settings(force_reload=True)["activeTheme"] == "beta"
    with pytest.raises(CmsError) as excinfo:
        manager.switch_theme("gamma")
    assert excinfo.value.code == ErrorCode.NOT_FOUND

    with pytest.raises(CmsError) as excinfo:
        manager.delete_theme("beta")
    assert excinfo.value.code == ErrorCode.FORBIDDEN_OPERATION
    assert beta.exists()

    manager.delete_theme("alpha")
    assert [theme.name for theme in manager.get_available_themes()] == ["beta"]
    assert not (tmp_path / "themes" / "alpha").exists()


def test_menu_is_attached_to_template_data(tmp_path):
    make_theme(tmp_path / "themes", "alpha", {"title": "Alpha"})
    manager = create_manager(tmp_path, active="alpha")
    data = manager.add_menu_to_template_data({"title": "x"})
    assert 'class="site-navigation"' in data["html_menu"]
    assert [item["id"] for item in data["menuItems"]] == ["home", "blog"]
