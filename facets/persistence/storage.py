"""Storage utilities for filter snapshot files.

A snapshot maps each facet header to its saved state::

    {"Source": {"state": {"PHB": 1}, "nests_hidden": {}, "meta": {...}}}
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from facets.filter.engine import Filter

logger = logging.getLogger(__name__)

Snapshot = dict[str, dict[str, Any]]


def collect_snapshot(filters: Iterable[Filter]) -> Snapshot:
    """Merge the saveable state of every filter into one snapshot."""
    snapshot: Snapshot = {}
    for flt in filters:
        snapshot.update(flt.get_saveable_state())
    return snapshot


def restore_snapshot(
    filters: Iterable[Filter], snapshot: Snapshot, is_user_saved_state: bool = True
) -> None:
    """Merge a snapshot into every filter it mentions."""
    for flt in filters:
        flt.set_state_from_loaded(snapshot, is_user_saved_state=is_user_saved_state)


def save_snapshot(snapshot: Snapshot, path: Path) -> None:
    """Save a snapshot to a JSON file.

    Args:
        snapshot: Snapshot data to save.
        path: Path to save the snapshot file.

    Raises:
        OSError: If file cannot be written.
    """
    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2, ensure_ascii=False)
    logger.debug("Saved snapshot of %d facets to %s", len(snapshot), path)


def load_snapshot(path: Path) -> Snapshot:
    """Load a snapshot from a JSON file.

    Args:
        path: Path to the snapshot file.

    Returns:
        Facet header to saved state.

    Raises:
        FileNotFoundError: If snapshot file does not exist.
        json.JSONDecodeError: If file is not valid JSON.
        ValueError: If the file does not hold a JSON object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Snapshot file must contain an object: {path}")
    return data
