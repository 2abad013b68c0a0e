"""Catalog loader: YAML catalogs into validated models and filters."""

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from facets.catalog.models import Catalog, CatalogEntry, FacetDefinition
from facets.catalog.parser import YAMLParser
from facets.core.exceptions import ValidationError
from facets.filter.engine import Filter
from facets.filter.models import (
    CombineMode,
    FilterItem,
    FilterMeta,
    FilterState,
    NestMeta,
)

logger = logging.getLogger(__name__)


class CatalogLoader:
    """Load and validate catalogs from YAML files."""

    def __init__(self):
        self.parser = YAMLParser()

    def load_file(self, file_path: str | Path) -> Catalog:
        """Load a catalog from a YAML file.

        Raises:
            ParseError: If YAML parsing fails
            ValidationError: If validation fails
        """
        file_path = Path(file_path)
        data = self.parser.parse_file(file_path)
        return self._process_data(data, str(file_path))

    def load_string(self, content: str) -> Catalog:
        """Load a catalog from a YAML string.

        Raises:
            ParseError: If YAML parsing fails
            ValidationError: If validation fails
        """
        data = self.parser.parse_string(content)
        return self._process_data(data, None)

    def _process_data(self, data: dict[str, Any], file_path: str | None) -> Catalog:
        try:
            catalog = Catalog(**data)
        except PydanticValidationError as e:
            errors = []
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"])
                errors.append(f"{loc}: {error['msg']}")

            error_msg = "Model validation failed:\n  " + "\n  ".join(errors)
            raise ValidationError(error_msg, file_path=file_path) from e

        self._validate_semantics(catalog, file_path)
        logger.debug(
            "Loaded catalog with %d facets and %d entries",
            len(catalog.facets),
            len(catalog.entries),
        )
        return catalog

    def _validate_semantics(self, catalog: Catalog, file_path: str | None) -> None:
        """Check cross-references the schema cannot express.

        Raises:
            ValidationError: If semantic validation fails
        """
        errors = []

        headers: set[str] = set()
        for i, facet in enumerate(catalog.facets):
            if facet.header in headers:
                errors.append(f"Duplicate facet header '{facet.header}' at facets[{i}]")
            headers.add(facet.header)

            for j, item in enumerate(facet.items):
                if not item.nest:
                    continue
                if facet.nests is None:
                    errors.append(
                        f"facets[{i}].items[{j}]: '{item.value}' has nest "
                        f"'{item.nest}' but facet '{facet.header}' is not nested"
                    )
                elif item.nest not in facet.nests:
                    errors.append(
                        f"facets[{i}].items[{j}]: unknown nest '{item.nest}'"
                    )

        if errors:
            error_msg = "Semantic validation failed:\n  " + "\n  ".join(errors)
            raise ValidationError(error_msg, file_path=file_path)


def build_filter(
    facet: FacetDefinition,
    default_combine_blue: CombineMode = CombineMode.OR,
    default_combine_red: CombineMode = CombineMode.OR,
) -> Filter:
    """Build the engine filter described by a facet definition."""
    selected = set(facet.selected)
    deselected = set(facet.deselected)
    display = dict(facet.display)

    def display_fn(value: str, _item: FilterItem) -> str:
        return display.get(value, value)

    nests = None
    if facet.nests is not None:
        nests = {
            name: NestMeta(is_hidden=nest.hidden) for name, nest in facet.nests.items()
        }

    return Filter(
        facet.header,
        items=[
            FilterItem(
                value=it.value,
                nest=it.nest,
                ignore_in_exclusion=it.ignore_in_exclusion,
            )
            for it in facet.items
        ],
        nests=nests,
        sel_fn=selected.__contains__ if selected else None,
        desel_fn=deselected.__contains__ if deselected else None,
        display_fn=display_fn if display else None,
        umbrella_items=facet.umbrella_items or None,
        umbrella_excludes=facet.umbrella_excludes or None,
        is_misc_filter=facet.is_misc,
        default_meta=FilterMeta(
            combine_blue=facet.combine_blue or default_combine_blue,
            combine_red=facet.combine_red or default_combine_red,
        ),
    )


def build_filters(
    catalog: Catalog,
    default_combine_blue: CombineMode = CombineMode.OR,
    default_combine_red: CombineMode = CombineMode.OR,
) -> list[Filter]:
    """Build one filter per facet, in catalog order."""
    return [
        build_filter(facet, default_combine_blue, default_combine_red)
        for facet in catalog.facets
    ]


def get_box_state(filters: Iterable[Filter]) -> dict[str, FilterState]:
    """Snapshot every filter, keyed by header."""
    box_state: dict[str, FilterState] = {}
    for flt in filters:
        box_state.update(flt.get_values())
    return box_state


def is_entry_visible(
    filters: Iterable[Filter],
    box_state: Mapping[str, FilterState],
    entry: CatalogEntry,
) -> bool:
    """An entry is shown only if every facet shows it."""
    return all(
        flt.to_display(box_state, entry.values_for(flt.header)) for flt in filters
    )


def visible_entries(
    filters: Iterable[Filter], entries: Iterable[CatalogEntry]
) -> list[CatalogEntry]:
    """Entries shown under the current state of every filter."""
    filters = list(filters)
    box_state = get_box_state(filters)
    return [entry for entry in entries if is_entry_visible(filters, box_state, entry)]
