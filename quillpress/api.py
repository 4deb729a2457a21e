"""JSON content API for Quillpress.

ContentApi is the facade an HTTP layer mounts under ``/api``. Each method
takes plain Python values, runs the matching content operation, passes the
result through the ``api_*`` filters, and returns an ApiResponse whose body
is JSON-serializable. Failures become ``{"success": False, "error", "code"}``
bodies with the status matching the error code.

Key classes:
- ApiResponse: Status code and JSON body.
- ContentApi: Posts, pages, settings and bulk operations.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .content import ContentManager
from .errors import CmsError, ErrorCode
from .hooks import HookSystem
from .query import ContentQueryEngine
from .settings import SettingsService
from .store import Document
from .themes import ThemeManager

logger = logging.getLogger(__name__)

BULK_BATCH_SIZE = 25
BULK_ITEM_DELAY = 0.01
BULK_BATCH_DELAY = 0.1
BULK_ACTIONS = ("publish", "draft", "delete")
BULK_CONTENT_TYPES = {"posts": "post", "pages": "page"}


@dataclass
class ApiResponse:
    """Result of an API call.

    Attributes:
        status: HTTP status code.
        body: JSON-serializable payload.
    """

    status: int = 200
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _error(exc: CmsError) -> ApiResponse:
    return ApiResponse(exc.status, exc.to_dict())


def _split_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
    """Accept ``{"metadata": {...}, "content": "..."}`` or a flat mapping."""
    if not isinstance(payload, dict):
        raise CmsError(ErrorCode.INVALID_INPUT, "Request body must be an object")
    content = payload.get("content")
    if isinstance(payload.get("metadata"), dict):
        return dict(payload["metadata"]), content
    metadata = {k: v for k, v in payload.items() if k != "content"}
    return metadata, content


def _record(document: Document) -> dict[str, Any]:
    """Flatten a document the way the editor consumes it."""
    return {**document.frontmatter, "content": document.content}


class ContentApi:
    """JSON mirror of the content, settings and bulk operations."""

    def __init__(
        self,
        manager: ContentManager,
        query: ContentQueryEngine,
        settings: SettingsService,
        hooks: HookSystem,
        themes: ThemeManager | None = None,
    ):
        self.manager = manager
        self.query = query
        self.settings = settings
        self.hooks = hooks
        self.themes = themes

    def _call(self, operation: Callable[[], ApiResponse]) -> ApiResponse:
        try:
            return operation()
        except CmsError as exc:
            logger.debug("API error %s: %s", exc.code, exc.message)
            return _error(exc)
        except Exception as exc:
            logger.exception("Unexpected API failure")
            return ApiResponse(500, {"success": False, "error": str(exc)})

    # Posts

    def list_posts(
        self, status: str | None = None, limit: int = 10, offset: int = 0, request: Any = None
    ) -> ApiResponse:
        def run() -> ApiResponse:
            posts = self.query.get_posts(status=status, limit=limit, offset=offset)
            data = self.hooks.apply_filters("api_posts", [_record(p) for p in posts], request)
            return ApiResponse(200, {"success": True, "data": data})

        return self._call(run)

    def get_post(
        self, post_id: str, resolve_related: bool = True, request: Any = None
    ) -> ApiResponse:
        def run() -> ApiResponse:
            post = self.query.get_post(post_id, resolve_related_posts=resolve_related)
            if post is None:
                return _error(CmsError(ErrorCode.NOT_FOUND, "Post not found"))
            data = self.hooks.apply_filters("api_post", _record(post), request)
            return ApiResponse(200, {"success": True, "data": data})

        return self._call(run)

    def create_post(self, payload: dict[str, Any]) -> ApiResponse:
        return self._create("post", payload)

    def update_post(self, post_id: str, payload: dict[str, Any]) -> ApiResponse:
        return self._update("post", post_id, payload)

    def delete_post(self, post_id: str) -> ApiResponse:
        return self._delete("post", post_id)

    # Pages

    def list_pages(
        self, status: str | None = None, page_type: str | None = None, request: Any = None
    ) -> ApiResponse:
        def run() -> ApiResponse:
            pages = self.query.get_pages(status=status, page_type=page_type)
            data = self.hooks.apply_filters("api_pages", [_record(p) for p in pages], request)
            return ApiResponse(200, {"success": True, "data": data})

        return self._call(run)

    def get_page(self, page_id: str) -> ApiResponse:
        def run() -> ApiResponse:
            page = self.query.get_page(page_id)
            if page is None:
                return _error(CmsError(ErrorCode.NOT_FOUND, "Page not found"))
            data = self.hooks.apply_filters("api_page", _record(page))
            return ApiResponse(200, {"success": True, "data": data})

        return self._call(run)

    def create_page(self, payload: dict[str, Any]) -> ApiResponse:
        return self._create("page", payload)

    def update_page(self, page_id: str, payload: dict[str, Any]) -> ApiResponse:
        return self._update("page", page_id, payload)

    def delete_page(self, page_id: str) -> ApiResponse:
        return self._delete("page", page_id)

    def _create(self, kind: str, payload: dict[str, Any]) -> ApiResponse:
        def run() -> ApiResponse:
            metadata, content = _split_payload(
                self.hooks.apply_filters(f"api_create_{kind}", payload)
            )
            document = self.manager.create(kind, metadata, content or "")
            return ApiResponse(201, {"success": True, "id": document.id})

        return self._call(run)

    def _update(self, kind: str, doc_id: str, payload: dict[str, Any]) -> ApiResponse:
        def run() -> ApiResponse:
            metadata, content = _split_payload(
                self.hooks.apply_filters(f"api_update_{kind}", payload, doc_id)
            )
            document = self.manager.update(kind, doc_id, metadata, content)
            return ApiResponse(200, {"success": True, "data": _record(document)})

        return self._call(run)

    def _delete(self, kind: str, doc_id: str) -> ApiResponse:
        def run() -> ApiResponse:
            self.manager.delete(kind, doc_id)
            return ApiResponse(200, {"success": True})

        return self._call(run)

    # Settings

    def get_settings(self) -> ApiResponse:
        def run() -> ApiResponse:
            data = self.hooks.apply_filters("api_settings", self.settings.get_settings())
            return ApiResponse(200, {"success": True, "data": data})

        return self._call(run)

    def update_settings(self, patch: dict[str, Any]) -> ApiResponse:
        def run() -> ApiResponse:
            if isinstance(patch, dict) and patch.get("activeTheme") and self.themes is not None:
                self.themes.switch_theme(patch["activeTheme"])
            settings = self.settings.update_settings(patch)
            return ApiResponse(200, {"success": True, "data": settings})

        return self._call(run)

    # Bulk operations

    async def bulk_action(self, content_type: str, action: str, ids: list[Any]) -> ApiResponse:
        """Apply ``publish``, ``draft`` or ``delete`` to many documents.

        Items are processed one at a time in batches of 25, yielding to the
        event loop between items and a little longer between batches. Each
        item succeeds or fails on its own.

        Args:
            content_type: "posts" or "pages".
            action: "publish", "draft" or "delete".
            ids: Document ids.

        Returns:
            ApiResponse with ``results``, ``errors``, ``totalItems``,
            ``successCount`` and ``errorCount``.
        """
        kind = BULK_CONTENT_TYPES.get(content_type)
        if kind is None:
            return _error(
                CmsError(
                    ErrorCode.INVALID_INPUT, "Invalid content type. Must be 'posts' or 'pages'."
                )
            )
        if not isinstance(ids, list) or not ids:
            return _error(
                CmsError(ErrorCode.INVALID_INPUT, "Invalid request. Array of IDs required.")
            )
        if action not in BULK_ACTIONS:
            return _error(
                CmsError(
                    ErrorCode.INVALID_INPUT,
                    f"Invalid action {action!r}. Allowed actions: {', '.join(BULK_ACTIONS)}",
                )
            )

        self.hooks.do_action(
            "pre_bulk_operation", {"contentType": content_type, "action": action, "ids": list(ids)}
        )
        results: list[dict[str, Any]] = []
        for start in range(0, len(ids), BULK_BATCH_SIZE):
            for item_id in ids[start : start + BULK_BATCH_SIZE]:
                results.append(self._bulk_item(kind, content_type, action, item_id))
                await asyncio.sleep(BULK_ITEM_DELAY)
            if start + BULK_BATCH_SIZE < len(ids):
                await asyncio.sleep(BULK_BATCH_DELAY)

        errors = [{"id": r["id"], "error": r.get("error")} for r in results if not r["success"]]
        self.hooks.do_action(
            "post_bulk_operation",
            {"contentType": content_type, "action": action, "results": results},
        )
        success = not errors
        message = (
            f'Successfully applied "{action}" to all selected {content_type}'
            if success
            else f'Applied "{action}" with {len(errors)} errors. See details in results.'
        )
        return ApiResponse(
            200,
            {
                "success": success,
                "results": results,
                "errors": errors or None,
                "message": message,
                "totalItems": len(ids),
                "successCount": len(results) - len(errors),
                "errorCount": len(errors),
            },
        )

    def _bulk_item(self, kind: str, content_type: str, action: str, item_id: Any) -> dict[str, Any]:
        noun = content_type[:-1]
        try:
            if self.query.get_content(item_id, kind) is None:
                error = f"{noun} with ID {item_id} not found"
                return {"id": item_id, "success": False, "error": error}
            if action == "delete":
                self.manager.delete(kind, item_id)
                result: Any = True
            else:
                status = "published" if action == "publish" else "draft"
                result = _record(self.manager.set_status(kind, item_id, status))
        except CmsError as exc:
            logger.warning("Bulk %s failed for %s %s: %s", action, noun, item_id, exc.message)
            return {"id": item_id, "success": False, "error": exc.message}
        except Exception as exc:
            logger.exception("Bulk %s crashed for %s %s", action, noun, item_id)
            return {"id": item_id, "success": False, "error": str(exc)}
        self.hooks.do_action(
            f"bulk_{action}_item", {"contentType": content_type, "id": item_id, "result": result}
        )
        return {"id": item_id, "success": True, "result": result}
