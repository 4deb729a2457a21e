from click.testing import CliRunner

from quillpress import __version__
from quillpress.cli import cli

from helpers import create_project, write_doc


def test_cli_build(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    write_doc(project, "posts", "hello", "Hi", createdAt="2024-01-01T00:00:00.000Z")
    monkeypatch.chdir(project)
    runner = CliRunner()

    result = runner.invoke(cli, ["build", "--output-dir", "out"], catch_exceptions=False)

    assert result.exit_code == 0
    assert "Built" in result.output
    assert (project / "out" / "post" / "hello" / "index.html").is_file()

    result = runner.invoke(cli, ["build", "--no-clean-urls"], catch_exceptions=False)
    assert result.exit_code == 0
    assert (project / "_site" / "post" / "hello.html").is_file()


def test_cli_build_reports_failures(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    (project / "content" / "data" / "settings.json").write_text("{nope", encoding="utf-8")
    monkeypatch.chdir(project)

    result = CliRunner().invoke(cli, ["build"])

    assert result.exit_code == 1
    assert "Build failed" in result.output
    assert "INVALID_JSON" in result.output


def test_cli_build_exits_when_pages_fail(monkeypatch, tmp_path):
    project = create_project(tmp_path, templates={"templates/post.html": "{% if %}"})
    write_doc(project, "posts", "hello")
    monkeypatch.chdir(project)

    result = CliRunner().invoke(cli, ["build"])

    assert result.exit_code == 1
    assert "1 pages failed" in result.output


def test_cli_themes_and_switch(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    other = project / "content" / "themes" / "other"
    (other / "templates").mkdir(parents=True)
    (other / "theme.json").write_text('{"title": "Other"}', encoding="utf-8")
    monkeypatch.chdir(project)
    runner = CliRunner()

    listing = runner.invoke(cli, ["themes"], catch_exceptions=False)
    assert "  other - Other" in listing.output
    assert "* test - Test Theme 1.0.0" in listing.output

    switched = runner.invoke(cli, ["theme-switch", "other"], catch_exceptions=False)
    assert switched.exit_code == 0
    assert "Active theme: other" in switched.output
    assert "* other" in runner.invoke(cli, ["themes"]).output

    missing = runner.invoke(cli, ["theme-switch", "nope"])
    assert missing.exit_code == 1
    assert "not found" in missing.output


def test_cli_serve(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    monkeypatch.chdir(project)
    called = {}

    class DummyServer:
        def __init__(self, systems, port=None):
            called["root"] = systems.project_root
            self.port = port or 8080

        def start(self):
            called["started"] = True

    monkeypatch.setattr("quillpress.server.DevServer", DummyServer)

    result = CliRunner().invoke(cli, ["serve", "--port", "5050"], catch_exceptions=False)

    assert result.exit_code == 0
    assert "http://localhost:5050" in result.output
    assert called == {"root": project.resolve(), "started": True}


def test_cli_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert __version__ in result.output


def test_main_module_exposes_entry_point():
    from quillpress.__main__ import main

    assert callable(main)
