"""Development server for Quillpress.

Renders pages on request instead of serving a built tree:
- Theme assets and uploads are streamed from disk; ``/assets/...`` maps to
  the active theme.
- ``/api/posts``, ``/api/pages`` and ``/api/settings`` answer with JSON.
- Every other path goes through the site renderer, which produces the themed
  404 and 500 pages itself.

Key classes:
- DevServer: Binds the HTTP server to a project's managers.
- _SiteHandler: Request handler dispatching to assets, the API or the site.
"""

from __future__ import annotations

import functools
import json
import logging
import mimetypes
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, unquote, urlsplit

from .errors import CmsError, ErrorCode
from .systems import Systems

logger = logging.getLogger(__name__)

THEME_ASSETS_PREFIX = ("content", "themes")
UPLOADS_PREFIX = ("content", "uploads")


def _inside(root: Path, candidate: Path) -> bool:
    try:
        candidate.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


class _SiteHandler(BaseHTTPRequestHandler):
    """Serves one request against the project's managers."""

    def __init__(self, *args: Any, systems: Systems, **kwargs: Any):
        self.systems = systems
        super().__init__(*args, **kwargs)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format: str, *args: Any) -> None:
        logger.info("%s - %s", self.address_string(), format % args)

    def do_GET(self):  # noqa: N802
        self._respond(head_only=False)

    def do_HEAD(self):  # noqa: N802
        self._respond(head_only=True)

    def _respond(self, head_only: bool) -> None:
        url = urlsplit(self.path)
        segments = [unquote(s) for s in url.path.split("/") if s]
        query = dict(parse_qsl(url.query))
        static = self._static_file(segments)
        if static is not None:
            body = static.read_bytes()
            content_type = mimetypes.guess_type(static.name)[0] or "application/octet-stream"
            self._send(200, body, content_type, {}, head_only)
        elif segments[:1] == ["api"]:
            status, payload = self._api(segments[1:], query)
            body = json.dumps(payload).encode("utf-8")
            self._send(status, body, "application/json; charset=utf-8", {}, head_only)
        else:
            response = self.systems.site.handle(url.path, query)
            body = response.body.encode("utf-8")
            self._send(
                response.status, body, response.content_type, response.headers, head_only
            )

    def _send(
        self,
        status: int,
        body: bytes,
        content_type: str,
        headers: dict[str, str],
        head_only: bool,
    ) -> None:
        self.send_response(status)
        self.send_header("Content-type", content_type)
        self.send_header("Content-Length", str(len(body)))
        for name, value in headers.items():
            self.send_header(name, value)
        self.end_headers()
        if not head_only:
            self.wfile.write(body)

    def _static_file(self, segments: list[str]) -> Path | None:
        """Map theme-asset and upload URLs to files on disk."""
        if tuple(segments[:2]) == UPLOADS_PREFIX and len(segments) > 2:
            root = self.systems.uploads_dir
            candidate = root.joinpath(*segments[2:])
        elif (
            tuple(segments[:2]) == THEME_ASSETS_PREFIX
            and len(segments) > 4
            and segments[3] == "assets"
        ):
            theme = self.systems.themes.themes.get(segments[2])
            active = self.systems.themes.get_active_theme()
            if theme is None and active.name == segments[2]:
                theme = active
            if theme is None:
                return None
            root = theme.assets_dir
            candidate = root.joinpath(*segments[4:])
        elif segments[:1] == ["assets"] and len(segments) > 1:
            root = self.systems.themes.get_active_theme().assets_dir
            candidate = root.joinpath(*segments[1:])
        else:
            return None
        if candidate.is_file() and _inside(root, candidate):
            return candidate
        return None

    def _api(self, segments: list[str], query: dict[str, str]) -> tuple[int, dict[str, Any]]:
        api = self.systems.api
        if segments == ["posts"]:
            result = api.list_posts(status=query.get("status"))
        elif len(segments) == 2 and segments[0] == "posts":
            result = api.get_post(segments[1])
        elif segments == ["pages"]:
            result = api.list_pages(
                status=query.get("status"), page_type=query.get("pageType")
            )
        elif len(segments) == 2 and segments[0] == "pages":
            result = api.get_page(segments[1])
        elif segments == ["settings"]:
            result = api.get_settings()
        else:
            error = CmsError(ErrorCode.NOT_FOUND, "Unknown API endpoint")
            return error.status, error.to_dict()
        return result.status, result.body


class DevServer:
    """Serves a project's site straight from its content directory.

    Attributes:
        systems: Managers of the served project.
        port: HTTP port.
    """

    def __init__(self, systems: Systems, port: int | None = None):
        self.systems = systems
        self.port = int(port or systems.config.get("port", 8080))
        self._httpd: ThreadingHTTPServer | None = None

    def make_server(self, host: str = "") -> ThreadingHTTPServer:
        handler = functools.partial(_SiteHandler, systems=self.systems)
        self._httpd = ThreadingHTTPServer((host, self.port), handler)
        return self._httpd

    def start(self) -> None:  # pragma: no cover - integration path
        httpd = self.make_server()
        logger.info("Serving %s at http://localhost:%s", self.systems.project_root, self.port)
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._httpd is not None:
            self._httpd.server_close()
            self._httpd = None
