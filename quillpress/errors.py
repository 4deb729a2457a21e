"""Error types for Quillpress.

Every failure the core surfaces to its callers is a CmsError carrying one of a
small set of codes. HTTP and JSON layers map the codes to status codes and
error payloads; library code only raises and propagates them.

Key classes:
- ErrorCode: String constants for the failure taxonomy.
- CmsError: Exception with a code, a message and optional details.
"""

from __future__ import annotations

from typing import Any


class ErrorCode:
    """Failure codes surfaced by the core."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    DUPLICATE_SLUG = "DUPLICATE_SLUG"
    INVALID_FRONTMATTER = "INVALID_FRONTMATTER"
    INVALID_JSON = "INVALID_JSON"
    IO_ERROR = "IO_ERROR"
    FORBIDDEN_OPERATION = "FORBIDDEN_OPERATION"


# HTTP status used by the JSON facade for each code
STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.DUPLICATE_SLUG: 409,
    ErrorCode.INVALID_FRONTMATTER: 500,
    ErrorCode.INVALID_JSON: 500,
    ErrorCode.IO_ERROR: 500,
    ErrorCode.FORBIDDEN_OPERATION: 403,
}


class CmsError(Exception):
    """Error raised by the content core.

    Attributes:
        code: One of the ErrorCode constants.
        message: Human-readable error message.
        details: Extra context such as the offending slug or path.
    """

    def __init__(self, code: str, message: str, **details: Any):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"{code}: {message}")

    @property
    def status(self) -> int:
        """Return the HTTP status matching this error's code."""
        return STATUS_BY_CODE.get(self.code, 500)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON error payload for this error.

        Returns:
            Dictionary shaped as ``{"success": False, "error", "code", ...details}``.
        """
        payload: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        payload.update(self.details)
        return payload


def not_found(what: str, key: Any) -> CmsError:
    """Build a NOT_FOUND error for a missing document, theme or template."""
    return CmsError(ErrorCode.NOT_FOUND, f"{what} {key!r} not found")
