"""User registry for Quillpress.

Authentication lives outside the core; the registry only reads ``users.json``
so that the renderer can tell whether a user may edit, and guards the one
rule the core owns: the last administrator can never be removed.

Key classes:
- UserRegistry: Lists and deletes users stored in users.json.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .errors import CmsError, ErrorCode, not_found
from .utils import read_json, write_json

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = ("passwordHash", "password")
EDITOR_ROLES = ("admin", "editor")


def public_user(user: dict[str, Any]) -> dict[str, Any]:
    """Return a user record without credential fields."""
    return {k: v for k, v in user.items() if k not in SENSITIVE_FIELDS}


def can_edit(user: dict[str, Any] | None) -> bool:
    """Return True if the user may edit content from the front end."""
    return bool(user) and user.get("role") in EDITOR_ROLES


class UserRegistry:
    """Read access and deletion for the users file.

    Attributes:
        path: Location of users.json.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> list[dict[str, Any]]:
        stored = read_json(self.path, default=[])
        if isinstance(stored, dict):
            stored = stored.get("users", [])
        if not isinstance(stored, list):
            raise CmsError(ErrorCode.INVALID_JSON, f"{self.path.name} must hold a user list")
        return [dict(user) for user in stored if isinstance(user, dict)]

    def list_users(self) -> list[dict[str, Any]]:
        return [public_user(user) for user in self._load()]

    def get_user(self, user_id: str) -> dict[str, Any]:
        for user in self._load():
            if str(user.get("id")) == str(user_id):
                return public_user(user)
        raise not_found("User", user_id)

    def delete_user(self, user_id: str) -> None:
        """Delete a user by id.

        Raises:
            CmsError: NOT_FOUND for unknown ids, FORBIDDEN_OPERATION when the
                user is the only remaining admin.
        """
        users = self._load()
        target = next((u for u in users if str(u.get("id")) == str(user_id)), None)
        if target is None:
            raise not_found("User", user_id)
        admins = [u for u in users if u.get("role") == "admin"]
        if target.get("role") == "admin" and len(admins) == 1:
            raise CmsError(
                ErrorCode.FORBIDDEN_OPERATION, "Cannot delete the last admin user"
            )
        write_json(self.path, {"users": [u for u in users if u is not target]})
        logger.info("Deleted user %s", target.get("username", user_id))
