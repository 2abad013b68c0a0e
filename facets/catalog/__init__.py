"""Catalog loading: facets and entries described in YAML."""

from facets.catalog.loader import (
    CatalogLoader,
    build_filter,
    build_filters,
    get_box_state,
    is_entry_visible,
    visible_entries,
)
from facets.catalog.models import (
    Catalog,
    CatalogEntry,
    FacetDefinition,
    ItemDefinition,
    NestDefinition,
)

__all__ = [
    "Catalog",
    "CatalogEntry",
    "CatalogLoader",
    "FacetDefinition",
    "ItemDefinition",
    "NestDefinition",
    "build_filter",
    "build_filters",
    "get_box_state",
    "is_entry_visible",
    "visible_entries",
]
