"""Persistence of filter snapshots.

Provides saving and loading of the state of several facets at once.
"""

from .storage import (
    collect_snapshot,
    load_snapshot,
    restore_snapshot,
    save_snapshot,
)

__all__ = [
    "collect_snapshot",
    "load_snapshot",
    "restore_snapshot",
    "save_snapshot",
]
