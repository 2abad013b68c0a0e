"""Mutable stores whose setters fan out change notifications."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Generic, TypeVar

from facets.filter.hooks import HookCategory, HookRegistry
from facets.filter.models import Mark

V = TypeVar("V")


class ObservableStore(Generic[V]):
    """A mapping whose writes fire ``(category, key)`` hooks.

    A hook fires only when the stored value actually changes, and it has
    run by the time the write returns.
    """

    def __init__(self, category: HookCategory, hooks: HookRegistry) -> None:
        self.category = category
        self._hooks = hooks
        self._data: dict[str, V] = {}

    def _coerce(self, value: V) -> V:
        return value

    def __getitem__(self, key: str) -> V:
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str, default: V | None = None) -> V | None:
        return self._data.get(key, default)

    def keys(self) -> list[str]:
        return list(self._data)

    def values(self) -> list[V]:
        return list(self._data.values())

    def items(self) -> list[tuple[str, V]]:
        return list(self._data.items())

    def to_dict(self) -> dict[str, V]:
        """Shallow copy of the stored data."""
        return dict(self._data)

    def set(self, key: str, value: V) -> None:
        value = self._coerce(value)
        if key in self._data and self._data[key] == value:
            return
        self._data[key] = value
        self._hooks.fire(self.category, key)

    def delete(self, key: str) -> None:
        if key not in self._data:
            return
        del self._data[key]
        self._hooks.fire(self.category, key)

    def assign(self, values: Mapping[str, V], overwrite: bool = False) -> None:
        """Write every entry of ``values``.

        Args:
            values: Entries to write.
            overwrite: Also delete keys that are absent from ``values``.
        """
        # validate everything before the first write
        coerced = {k: self._coerce(v) for k, v in values.items()}
        if overwrite:
            for key in [k for k in self._data if k not in coerced]:
                self.delete(key)
        for key, value in coerced.items():
            self.set(key, value)


class StateStore(ObservableStore[Mark]):
    """Item identity to tri-state mark."""

    def __init__(self, hooks: HookRegistry) -> None:
        super().__init__(HookCategory.STATE, hooks)

    def _coerce(self, value: Mark | int) -> Mark:
        return Mark.coerce(value)

    def is_active(self) -> bool:
        """True if any mark is set."""
        return any(self._data.values())

    def fill(self, mark: Mark | int) -> None:
        """Set every existing entry to ``mark``."""
        self.assign({k: mark for k in self._data})


class NestsHiddenStore(ObservableStore[bool]):
    """Nest name to collapsed flag."""

    def __init__(self, hooks: HookRegistry) -> None:
        super().__init__(HookCategory.NESTS_HIDDEN, hooks)

    def _coerce(self, value: bool) -> bool:
        return bool(value)

    def toggle(self, nest: str) -> bool:
        """Flip the flag of ``nest`` and return the new value."""
        value = not self._data.get(nest, False)
        self.set(nest, value)
        return value
