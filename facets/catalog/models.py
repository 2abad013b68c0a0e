"""Data models for facet catalogs."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from facets.filter.models import CombineMode


def _stringify(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class NestDefinition(BaseModel):
    """A collapsible group of facet values."""

    hidden: bool = Field(default=False, description="Collapsed by default")


class ItemDefinition(BaseModel):
    """A facet value with nesting metadata."""

    value: str = Field(..., description="Identity of the value", min_length=1)
    nest: str | None = Field(None, description="Nest the value belongs to")
    ignore_in_exclusion: bool = Field(
        default=False, description="Excluded mark never hides entries"
    )

    @field_validator("value", mode="before")
    @classmethod
    def stringify_value(cls, v: Any) -> Any:
        return _stringify(v)


class FacetDefinition(BaseModel):
    """Configuration of one facet."""

    header: str = Field(..., description="Facet name", min_length=1)
    items: list[ItemDefinition] = Field(default_factory=list)
    nests: dict[str, NestDefinition] | None = Field(
        None, description="Nest name to nest definition; omit for a flat facet"
    )
    selected: list[str] = Field(
        default_factory=list, description="Values required by default"
    )
    deselected: list[str] = Field(
        default_factory=list, description="Values excluded by default"
    )
    umbrella_items: list[str] = Field(default_factory=list)
    umbrella_excludes: list[str] = Field(default_factory=list)
    combine_blue: CombineMode | None = None
    combine_red: CombineMode | None = None
    display: dict[str, str] = Field(
        default_factory=dict, description="Value to display text"
    )
    is_misc: bool = False

    @field_validator("items", mode="before")
    @classmethod
    def expand_items(cls, v: Any) -> Any:
        """Allow bare values in place of item mappings."""
        if not isinstance(v, list):
            return v
        return [
            {"value": _stringify(it)} if not isinstance(it, dict) else it for it in v
        ]

    @field_validator(
        "selected", "deselected", "umbrella_items", "umbrella_excludes", mode="before"
    )
    @classmethod
    def stringify_values(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [_stringify(it) for it in v]
        return v


class CatalogEntry(BaseModel):
    """A content entry; every key other than ``name`` is a facet header."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Entry name")

    def values_for(self, header: str) -> list[str]:
        """The entry's values for ``header``; empty if it has none."""
        raw = (self.model_extra or {}).get(header)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raw = [raw]
        return [f"{_stringify(it)}" for it in raw]


class Catalog(BaseModel):
    """Facets plus the entries they filter."""

    name: str | None = Field(None, description="Catalog name")
    facets: list[FacetDefinition] = Field(..., min_length=1)
    entries: list[CatalogEntry] = Field(default_factory=list)

    def get_facet(self, header: str) -> FacetDefinition | None:
        return next((f for f in self.facets if f.header == header), None)
