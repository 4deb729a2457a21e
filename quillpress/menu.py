"""Site menu management for Quillpress.

The menu is shared by every theme and stored in ``menu.json`` as a flat list
of items, each pointing at its parent by id:

    {"menu": [{"id": "home", "title": "Home", "url": "/", "order": 1, "parent": null}]}

Key classes:
- MenuManager: Loads, edits and renders the menu.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

from .errors import CmsError, ErrorCode, not_found
from .html_utils import escape_html
from .utils import read_json, write_json

logger = logging.getLogger(__name__)

DEFAULT_MENU = [
    {"id": "home", "title": "Home", "url": "/", "order": 1, "parent": None},
    {"id": "blog", "title": "Blog", "url": "/", "order": 2, "parent": None},
]

EMPTY_MENU_HTML = "<!-- No menu items defined -->"


def _order(item: dict[str, Any]) -> int:
    try:
        return int(item.get("order") or 0)
    except (TypeError, ValueError):
        return 0


class MenuManager:
    """Manager for the flat menu file and its hierarchical views.

    Attributes:
        path: Location of menu.json.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._items: list[dict[str, Any]] | None = None

    def initialize(self) -> list[dict[str, Any]]:
        """Load the menu, writing the default menu when the file is missing."""
        if not self.path.exists():
            self.save_menu(copy.deepcopy(DEFAULT_MENU))
        return self.refresh()

    def refresh(self) -> list[dict[str, Any]]:
        """Reload the menu from disk, sorted by order."""
        stored = read_json(self.path, default={"menu": DEFAULT_MENU})
        items = stored.get("menu") if isinstance(stored, dict) else None
        if not isinstance(items, list):
            logger.warning("%s has no menu list, using the default menu", self.path)
            items = copy.deepcopy(DEFAULT_MENU)
        self._items = sorted((dict(item) for item in items), key=_order)
        return copy.deepcopy(self._items)

    def get_menu_items(self) -> list[dict[str, Any]]:
        if self._items is None:
            return self.refresh()
        return copy.deepcopy(self._items)

    def save_menu(self, items: list[dict[str, Any]]) -> None:
        write_json(self.path, {"menu": items})
        self._items = sorted(copy.deepcopy(items), key=_order)

    @staticmethod
    def build_hierarchy(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Nest flat items under their parents.

        Items whose parent is unknown are promoted to the root. Children are
        sorted by ``order`` at every level.

        Returns:
            Root items, each with a ``children`` list.
        """
        nodes = [dict(copy.deepcopy(item), children=[]) for item in items]
        by_id = {node.get("id"): node for node in nodes}
        roots = []
        for node in nodes:
            parent_id = node.get("parent")
            if parent_id and parent_id in by_id and parent_id != node.get("id"):
                by_id[parent_id]["children"].append(node)
            else:
                if parent_id:
                    logger.warning(
                        "Parent item %r not found for %r", parent_id, node.get("title")
                    )
                roots.append(node)

        def sort_children(level: list[dict[str, Any]]) -> None:
            for node in level:
                if node["children"]:
                    node["children"].sort(key=_order)
                    sort_children(node["children"])

        sort_children(roots)
        return roots

    @staticmethod
    def flatten_hierarchy(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Flatten a hierarchy back to stored items, renumbering ``order`` per level."""
        flat: list[dict[str, Any]] = []

        def add(level: list[dict[str, Any]], parent_id: Any = None) -> None:
            for index, node in enumerate(level, start=1):
                item = {k: v for k, v in node.items() if k != "children"}
                item["order"] = index
                item["parent"] = parent_id
                flat.append(item)
                if node.get("children"):
                    add(node["children"], node.get("id"))

        add(items)
        return flat

    def create_item(self, item: dict[str, Any]) -> dict[str, Any]:
        """Append a new item after the current highest order.

        Raises:
            CmsError: INVALID_INPUT when the id is missing or already used.
        """
        if not item.get("id"):
            raise CmsError(ErrorCode.INVALID_INPUT, "Menu item requires an id")
        items = self.refresh()
        if any(existing.get("id") == item["id"] for existing in items):
            raise CmsError(
                ErrorCode.INVALID_INPUT, f"Menu item with ID {item['id']!r} already exists"
            )
        new_item = {"parent": None, **item, "order": max((_order(i) for i in items), default=0) + 1}
        items.append(new_item)
        self.save_menu(items)
        return new_item

    def update_item(self, item_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        items = self.refresh()
        for index, existing in enumerate(items):
            if existing.get("id") == item_id:
                items[index] = {**existing, **updates, "id": item_id}
                self.save_menu(items)
                return items[index]
        raise not_found("Menu item", item_id)

    def delete_item(self, item_id: str) -> None:
        """Delete an item; its children move to the root level."""
        items = self.refresh()
        remaining = [item for item in items if item.get("id") != item_id]
        if len(remaining) == len(items):
            raise not_found("Menu item", item_id)
        for item in remaining:
            if item.get("parent") == item_id:
                item["parent"] = None
        self.save_menu(remaining)

    def reorder_items(self, ordered_ids: list[str]) -> list[dict[str, Any]]:
        """Renumber items in the given order; unlisted items keep theirs and go last."""
        items = self.refresh()
        by_id = {item.get("id"): item for item in items}
        reordered = []
        for index, item_id in enumerate(ordered_ids, start=1):
            if item_id not in by_id:
                raise not_found("Menu item", item_id)
            reordered.append({**by_id[item_id], "order": index})
        reordered.extend(item for item in items if item.get("id") not in ordered_ids)
        self.save_menu(reordered)
        return copy.deepcopy(reordered)

    def generate_menu_html(self) -> str:
        """Render the menu as nested ``<ul>`` lists inside a ``<nav>``."""
        items = self.get_menu_items()
        if not items:
            return EMPTY_MENU_HTML

        def render_level(nodes: list[dict[str, Any]], level: int = 0) -> str:
            css = "nav-menu" if level == 0 else "sub-menu"
            html = f'<ul class="{css}">\n'
            for node in nodes:
                target = ' target="_blank" rel="noopener"' if node.get("target") == "_blank" else ""
                extra = f" {escape_html(node['class'])}" if node.get("class") else ""
                has_children = bool(node["children"])
                item_class = ("menu-item-has-children" if has_children else "menu-item") + extra
                item_id = escape_html(node.get("id", ""))
                html += f'  <li id="menu-item-{item_id}" class="{item_class}">\n'
                html += (
                    f'    <a href="{escape_html(node.get("url", "#"))}"{target}>'
                    f'{escape_html(node.get("title", ""))}</a>\n'
                )
                if has_children:
                    html += render_level(node["children"], level + 1)
                html += "  </li>\n"
            return html + "</ul>\n"

        tree = render_level(self.build_hierarchy(items))
        return '<nav class="site-navigation">\n' + tree + "</nav>"

    def add_menu_to_template_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``data`` with ``html_menu`` and ``menuItems`` attached."""
        return {
            **data,
            "html_menu": self.generate_menu_html(),
            "menuItems": self.get_menu_items(),
        }
