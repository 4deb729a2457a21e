"""Filter and action hooks for Quillpress.

Hooks let themes and plugins change data flowing through the core without the
core knowing about them. A filter receives a value and returns a (possibly
transformed) value; an action is called for its side effects.

Key classes:
- HookSystem: Registries of named filters and actions.

Example:
    hooks = HookSystem()
    hooks.add_filter("template_data", lambda data, name: {**data, "extra": 1})
    data = hooks.apply_filters("template_data", {}, "layout.html")
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 10


@dataclass
class _Hook:
    callback: Callable[..., Any]
    priority: int
    sequence: int
    checked: bool = False


class HookSystem:
    """Registries of named filters and actions.

    Callbacks run by ascending priority; equal priorities run in the order
    they were added.

    Attributes:
        debug: When True, each filter is run twice on copies of its input the
            first time it is applied and a warning is logged if the two
            results differ.
    """

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._filters: dict[str, list[_Hook]] = {}
        self._actions: dict[str, list[_Hook]] = {}
        self._sequence = 0

    def _add(
        self,
        registry: dict[str, list[_Hook]],
        name: str,
        callback: Callable[..., Any],
        priority: int,
    ) -> None:
        self._sequence += 1
        hooks = registry.setdefault(name, [])
        hooks.append(_Hook(callback, priority, self._sequence))
        hooks.sort(key=lambda hook: (hook.priority, hook.sequence))

    @staticmethod
    def _remove(
        registry: dict[str, list[_Hook]], name: str, callback: Callable[..., Any]
    ) -> bool:
        hooks = registry.get(name, [])
        for index, hook in enumerate(hooks):
            if hook.callback is callback:
                del hooks[index]
                return True
        return False

    def add_filter(
        self, name: str, callback: Callable[..., Any], priority: int = DEFAULT_PRIORITY
    ) -> None:
        """Register a filter callback ``(value, *context) -> value``."""
        self._add(self._filters, name, callback, priority)

    def add_action(
        self, name: str, callback: Callable[..., Any], priority: int = DEFAULT_PRIORITY
    ) -> None:
        """Register an action callback ``(*args) -> None``."""
        self._add(self._actions, name, callback, priority)

    def remove_filter(self, name: str, callback: Callable[..., Any]) -> bool:
        """Unregister a filter. Returns True if it was registered."""
        return self._remove(self._filters, name, callback)

    def remove_action(self, name: str, callback: Callable[..., Any]) -> bool:
        """Unregister an action. Returns True if it was registered."""
        return self._remove(self._actions, name, callback)

    def has_filter(self, name: str) -> bool:
        return bool(self._filters.get(name))

    def has_action(self, name: str) -> bool:
        return bool(self._actions.get(name))

    def apply_filters(self, name: str, value: Any, *context: Any) -> Any:
        """Thread ``value`` through every filter registered under ``name``.

        Exceptions raised by a filter propagate to the caller.

        Args:
            name: Filter name, e.g. "template_data".
            value: Initial value.
            *context: Extra arguments passed to every filter unchanged.

        Returns:
            The value returned by the last filter, or ``value`` when no
            filter is registered.
        """
        for hook in list(self._filters.get(name, [])):
            if self.debug and not hook.checked:
                hook.checked = True
                self._check_purity(name, hook, value, context)
            value = hook.callback(value, *context)
        return value

    def do_action(self, name: str, *args: Any) -> None:
        """Run every action registered under ``name``.

        A failing callback is logged and the remaining callbacks still run.
        """
        for hook in list(self._actions.get(name, [])):
            try:
                hook.callback(*args)
            except Exception:
                logger.exception(
                    "Action %r callback %s failed",
                    name,
                    getattr(hook.callback, "__qualname__", repr(hook.callback)),
                )

    def _check_purity(
        self, name: str, hook: _Hook, value: Any, context: tuple[Any, ...]
    ) -> None:
        try:
            first = hook.callback(copy.deepcopy(value), *context)
            second = hook.callback(copy.deepcopy(value), *context)
        except Exception:
            logger.exception("Filter %r raised during purity check", name)
            return
        if first != second:
            logger.warning(
                "Filter %r callback %s is not pure: two runs on the same input differ",
                name,
                getattr(hook.callback, "__qualname__", repr(hook.callback)),
            )
