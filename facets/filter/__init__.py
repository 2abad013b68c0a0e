"""Tri-state facet filters: marks, matching, nesting and state encoding."""

from facets.filter.engine import Filter
from facets.filter.hooks import HookCategory, HookRegistry
from facets.filter.matching import to_display
from facets.filter.models import (
    CombineMode,
    FilterItem,
    FilterMeta,
    FilterSnapshot,
    FilterState,
    FilterTotals,
    Mark,
    NestMeta,
    NestStats,
    NestStatus,
)
from facets.filter.store import NestsHiddenStore, StateStore

__all__ = [
    # Engine
    "Filter",
    "to_display",
    # Models
    "CombineMode",
    "FilterItem",
    "FilterMeta",
    "FilterSnapshot",
    "FilterState",
    "FilterTotals",
    "Mark",
    "NestMeta",
    "NestStats",
    "NestStatus",
    # Hooks and stores
    "HookCategory",
    "HookRegistry",
    "NestsHiddenStore",
    "StateStore",
]
