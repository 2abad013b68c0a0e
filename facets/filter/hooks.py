"""Synchronous change notification keyed by (category, key)."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from enum import Enum

Hook = Callable[[], None]


class HookCategory(str, Enum):
    """What a hook listens to."""

    STATE = "state"  # keyed by item identity
    NESTS_HIDDEN = "nestsHidden"  # keyed by nest name
    META = "meta"  # keyed by meta field name


class HookRegistry:
    """Ordered listeners per (category, key).

    Listeners run synchronously, in registration order, before the
    mutation that fired them returns.
    """

    def __init__(self) -> None:
        self._hooks: dict[tuple[HookCategory, str], list[Hook]] = defaultdict(list)

    def add(self, category: HookCategory, key: str, hook: Hook) -> Hook:
        """Register ``hook`` and return it so the caller can run it immediately."""
        self._hooks[(category, key)].append(hook)
        return hook

    def remove(self, category: HookCategory, key: str, hook: Hook) -> bool:
        """Unregister ``hook``. Returns False if it was not registered."""
        hooks = self._hooks.get((category, key))
        if not hooks or hook not in hooks:
            return False
        hooks.remove(hook)
        return True

    def fire(self, category: HookCategory, key: str) -> None:
        """Run every hook registered for ``(category, key)``."""
        # copy: a hook may register further hooks
        for hook in list(self._hooks.get((category, key), ())):
            hook()

    def count(self, category: HookCategory, key: str) -> int:
        return len(self._hooks.get((category, key), ()))

    def clear(self) -> None:
        self._hooks.clear()
