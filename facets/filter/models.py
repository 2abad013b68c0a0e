"""Data models for facet filters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field

from facets.core.exceptions import FilterConfigError, InvalidMarkError


class Mark(IntEnum):
    """Tri-state mark of a single facet value."""

    IGNORED = 0
    REQUIRED = 1
    EXCLUDED = 2

    def next(self) -> Mark:
        """Primary step: ignored -> required -> excluded -> ignored."""
        return Mark((self.value + 1) % 3)

    def previous(self) -> Mark:
        """Reverse step: ignored -> excluded -> required -> ignored."""
        return Mark((self.value - 1) % 3)

    @classmethod
    def coerce(cls, value: Any) -> Mark:
        """Convert an int-like value to a Mark.

        Raises:
            InvalidMarkError: If the value is not 0, 1 or 2. Fractional
                numbers such as 1.9 are rejected, not truncated.
        """
        try:
            number = int(value)
            if not isinstance(value, str) and number != value:
                raise ValueError(f"not an integral mark: {value!r}")
            return cls(number)
        except (TypeError, ValueError) as e:
            raise InvalidMarkError(f"Invalid mark: {value!r}") from e


class CombineMode(str, Enum):
    """Boolean reduction applied across the marks of one axis."""

    OR = "or"
    AND = "and"
    XOR = "xor"

    def next(self) -> CombineMode:
        """Next mode in the cycle or -> and -> xor -> or."""
        modes = list(CombineMode)
        return modes[(modes.index(self) + 1) % len(modes)]

    @classmethod
    def cycle(cls, mode: CombineMode | str | None) -> CombineMode:
        """Next mode after ``mode``; anything unrecognised cycles to OR."""
        try:
            return cls(mode).next()
        except ValueError:
            return cls.OR


@dataclass
class FilterItem:
    """One facet value plus its nesting metadata.

    ``rendered``, ``rendered_mini`` and ``search_text`` are display caches
    owned by the rendering layer; the engine never reads them.
    """

    value: str
    nest: str | None = None
    ignore_in_exclusion: bool = False
    rendered: Any = field(default=None, repr=False, compare=False)
    rendered_mini: Any = field(default=None, repr=False, compare=False)
    search_text: str | None = field(default=None, repr=False, compare=False)

    @classmethod
    def coerce(cls, item: FilterItem | str | dict[str, Any]) -> FilterItem:
        """Normalize any accepted item shape into a FilterItem.

        Args:
            item: An existing FilterItem, a bare identity, or a mapping with
                ``value`` and optional ``nest`` / ``ignore_in_exclusion``.

        Raises:
            FilterConfigError: If the shape is not recognised.
        """
        if isinstance(item, FilterItem):
            return item
        if isinstance(item, dict):
            if "value" not in item:
                raise FilterConfigError(f"Filter item mapping has no value: {item!r}")
            return cls(
                value=str(item["value"]),
                nest=item.get("nest"),
                ignore_in_exclusion=bool(item.get("ignore_in_exclusion", False)),
            )
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            return cls(value=str(item))
        raise FilterConfigError(f"Unsupported filter item: {item!r}")


class NestMeta(BaseModel):
    """Static metadata of a nest."""

    is_hidden: bool = Field(default=False, description="Collapsed by default")


class FilterMeta(BaseModel):
    """Per-facet metadata. Field order is significant for tag output."""

    is_hidden: bool = Field(default=False, description="Facet controls collapsed")
    combine_blue: CombineMode = Field(
        default=CombineMode.OR, description="Combine mode for required marks"
    )
    combine_red: CombineMode = Field(
        default=CombineMode.OR, description="Combine mode for excluded marks"
    )


# Meta fields which only affect the UI, stripped from tags
UI_META_KEYS = frozenset({"is_hidden"})


class FilterTotals(BaseModel):
    """Counts of marks per kind."""

    yes: int = 0
    no: int = 0
    ignored: int = 0


class FilterState(BaseModel):
    """Read-only snapshot consumed by the matcher and the serializer.

    Combine modes are kept as given so a corrupted mode is only detected,
    and rejected, by the matcher.
    """

    marks: dict[str, int] = Field(default_factory=dict)
    is_active: bool = False
    totals: FilterTotals = Field(default_factory=FilterTotals)
    combine_blue: CombineMode | str = CombineMode.OR
    combine_red: CombineMode | str = CombineMode.OR

    def get(self, value: str) -> int | None:
        """Mark of ``value``, or None if the facet has no such item."""
        return self.marks.get(value)

    @classmethod
    def from_marks(
        cls,
        marks: dict[str, int],
        combine_blue: CombineMode | str = CombineMode.OR,
        combine_red: CombineMode | str = CombineMode.OR,
    ) -> FilterState:
        """Build a snapshot, deriving the aggregates from ``marks``."""
        totals = FilterTotals()
        for mark in marks.values():
            if mark == Mark.REQUIRED:
                totals.yes += 1
            elif mark == Mark.EXCLUDED:
                totals.no += 1
            else:
                totals.ignored += 1
        return cls(
            marks=dict(marks),
            is_active=any(marks.values()),
            totals=totals,
            combine_blue=combine_blue,
            combine_red=combine_red,
        )


class FilterSnapshot(BaseModel):
    """Full state of one facet: persisted, or produced by decoding."""

    state: dict[str, int] = Field(default_factory=dict)
    nests_hidden: dict[str, bool] = Field(default_factory=dict)
    meta: FilterMeta = Field(default_factory=FilterMeta)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "state": dict(self.state),
            "nests_hidden": dict(self.nests_hidden),
            "meta": self.meta.model_dump(mode="json"),
        }


@dataclass(frozen=True)
class NestStats:
    """Marks currently hidden inside collapsed nests."""

    required: int = 0
    excluded: int = 0

    @property
    def total(self) -> int:
        return self.required + self.excluded


class NestStatus(str, Enum):
    """Summary shown on a collapsed nest's toggle."""

    NONE = "none"
    INCLUDE_ALL = "include_all"
    EXCLUDE_ALL = "exclude_all"
    INCLUDE = "include"
    EXCLUDE = "exclude"
    BOTH = "both"
