"""Command-line interface for Quillpress.

This module defines the CLI commands using Click framework. Every command runs
against the project in the current working directory.

Commands:
- build: Generate the static site.
- serve: Run the development server.
- themes: List installed themes.
- theme-switch: Activate another theme.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .errors import CmsError


def _configure_logging(verbose: bool, level: str = "INFO") -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _relative(path: Path, root: Path) -> Path:
    try:
        return Path(path).resolve().relative_to(root.resolve())
    except ValueError:
        return Path(path)


def _load_systems(project_root: Path):
    from .systems import create_systems

    try:
        return create_systems(project_root)
    except CmsError as exc:
        raise click.ClickException(exc.message) from exc


@click.group()
@click.version_option(version=__version__, prog_name="quillpress")
def cli():
    """Quillpress publishing core."""


@cli.command()
@click.option("--output-dir", type=click.Path(file_okay=False), help="Output directory")
@click.option("--base-url", help="Absolute site URL used in feeds and sitemaps")
@click.option(
    "--clean-urls/--no-clean-urls",
    default=None,
    help="Write <path>/index.html instead of <path>.html",
)
@click.option("--no-clean", is_flag=True, help="Keep existing files in the output directory")
@click.option("--verbose", "-v", is_flag=True, help="Log every written file")
def build(
    output_dir: str | None,
    base_url: str | None,
    clean_urls: bool | None,
    no_clean: bool,
    verbose: bool,
):
    """Generate the static site."""
    project_root = Path.cwd()
    from .build import BuildError, build_site
    from .settings import load_config

    _configure_logging(verbose, load_config(project_root).get("log_level", "INFO"))
    try:
        result = build_site(
            project_root,
            output_dir=output_dir,
            base_url=base_url,
            clean_urls=clean_urls,
            clean_output=not no_clean,
        )
    except BuildError as exc:
        rel_path = _relative(exc.source_path, project_root)
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    click.echo(
        f"Built {len(result.files)} files into {result.output_dir} "
        f"({result.assets} assets, {result.uploads} uploads)"
    )
    if not result.ok:
        click.echo(
            click.style(f"{len(result.errors)} pages failed:", fg="red", bold=True), err=True
        )
        for error in result.errors:
            rel_path = _relative(error.source_path, project_root)
            click.echo(click.style(f"  {rel_path}: {error.message}", fg="yellow"), err=True)
        raise SystemExit(1)


@cli.command()
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides quillpress.yaml)",
)
def serve(port: int | None):
    """Run the development server."""
    project_root = Path.cwd()
    from .server import DevServer
    from .settings import load_config

    _configure_logging(False, load_config(project_root).get("log_level", "INFO"))
    server = DevServer(_load_systems(project_root), port=port)
    click.echo(f"Serving {project_root} at http://localhost:{server.port}")
    server.start()


@cli.command()
def themes():
    """List installed themes; the active one is marked with '*'."""
    systems = _load_systems(Path.cwd())
    active = systems.themes.get_active_theme().name
    available = systems.themes.get_available_themes()
    if not available:
        click.echo(f"* {active} (bundled)")
        return
    for theme in available:
        marker = "*" if theme.name == active else " "
        title = theme.info.get("title") or theme.name
        version = theme.info.get("version")
        suffix = f" {version}" if version else ""
        click.echo(f"{marker} {theme.name} - {title}{suffix}")


@cli.command("theme-switch")
@click.argument("name")
def theme_switch(name: str):
    """Activate the theme NAME."""
    systems = _load_systems(Path.cwd())
    try:
        theme = systems.themes.switch_theme(name)
    except CmsError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(f"Active theme: {theme.name}")


def main():
    """Entry point for the CLI application."""
    cli()
