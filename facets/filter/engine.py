"""The facet filter engine."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from typing import Any

from facets.core.exceptions import FilterConfigError, InvalidMarkError
from facets.filter import matching, serialization
from facets.filter.hooks import HookCategory, HookRegistry
from facets.filter.models import (
    CombineMode,
    FilterItem,
    FilterMeta,
    FilterSnapshot,
    FilterState,
    Mark,
    NestMeta,
    NestStats,
    NestStatus,
)
from facets.filter.nests import (
    is_group_divider_hidden,
    nest_status,
    nest_summary,
    sorted_groups,
)
from facets.filter.store import NestsHiddenStore, StateStore

logger = logging.getLogger(__name__)

ItemInput = FilterItem | str | dict[str, Any]
Predicate = Callable[[str], bool]


def _default_sort_key(item: FilterItem) -> str:
    return item.value


class Filter:
    """A single facet: tri-state marks over its values, and how they combine.

    The filter owns its state store, its items, its optional nest registry
    and its meta. Every mutation notifies hooks synchronously; derived data
    such as the nest summary is up to date when a mutation returns.

    Example:
        >>> flt = Filter("Source", items=["PHB", "DMG", "XGE"])
        >>> flt.cycle_mark("PHB")
        <Mark.REQUIRED: 1>
        >>> flt.to_display(flt.get_values(), ["DMG"])
        False
    """

    def __init__(
        self,
        header: str,
        items: Iterable[ItemInput] | None = None,
        nests: Mapping[str, NestMeta | dict[str, Any]] | None = None,
        sel_fn: Predicate | None = None,
        desel_fn: Predicate | None = None,
        display_fn: Callable[[str, FilterItem], str] | None = None,
        item_sort_key: Callable[[FilterItem], Any] | None = _default_sort_key,
        is_sort_by_display_items: bool = False,
        group_fn: Callable[[FilterItem], Hashable] | None = None,
        group_name_fn: Callable[[Hashable], str | None] | None = None,
        umbrella_items: Iterable[ItemInput] | None = None,
        umbrella_excludes: Iterable[ItemInput] | None = None,
        is_misc_filter: bool = False,
        default_meta: FilterMeta | None = None,
    ) -> None:
        """Initialize the filter.

        Args:
            header: Facet name, e.g. "Source".
            items: Initial values, as FilterItems, identities or mappings.
            nests: Nest name to nest meta. None means the filter is not nested.
            sel_fn: True if a value is required by default.
            desel_fn: True if a value is excluded by default. Wins over sel_fn.
            display_fn: Translates a value to display text.
            item_sort_key: Sort key applied to items on update(); None keeps
                insertion order.
            is_sort_by_display_items: Sort by display text instead of value.
            group_fn: Assigns an item to a divider group.
            group_name_fn: Display name of a group.
            umbrella_items: Values which can stand in for a required match.
            umbrella_excludes: Values whose marks veto the umbrella.
            is_misc_filter: This facet carries the misc tags (SRD, ...).
            default_meta: Meta used as default; combine modes default to OR.

        Raises:
            FilterConfigError: If an item references a nest that does not exist.
        """
        self.header = header
        self.hooks = HookRegistry()

        self._sel_fn = sel_fn
        self._base_sel_fn = sel_fn
        self._desel_fn = desel_fn
        self._display_fn = display_fn
        self._item_sort_key = item_sort_key
        self._is_sort_by_display_items = is_sort_by_display_items
        self._group_fn = group_fn
        self._group_name_fn = group_name_fn

        self._umbrella_items = self._as_values(umbrella_items)
        self._umbrella_excludes = self._as_values(umbrella_excludes)

        self._default_meta = (default_meta or FilterMeta()).model_copy()
        self._meta = self._default_meta.model_copy()

        self._state = StateStore(self.hooks)
        self._nests_hidden = NestsHiddenStore(self.hooks)
        self._nests: dict[str, NestMeta] | None = None
        if nests is not None:
            self._nests = {
                name: meta if isinstance(meta, NestMeta) else NestMeta(**meta)
                for name, meta in nests.items()
            }

        self._items: list[FilterItem] = []
        self._item_values: set[str] = set()
        for item in items or ():
            item = FilterItem.coerce(item)
            if item.value not in self._item_values:
                self._items.append(item)
                self._item_values.add(item.value)
        self._validate_item_nests(self._items)

        # Marks and nest flags restored before their item or nest exists
        self._restored_marks: dict[str, Mark] = {}
        self._restored_nests_hidden: dict[str, bool] = {}
        self._has_user_saved_state = False
        self._is_items_dirty = False
        self._is_nests_dirty = False
        self._nest_summary = NestStats()

        values = {it.value for it in self._items}
        self._is_reprinted_filter = is_misc_filter and "Reprinted" in values
        self._is_srd_filter = is_misc_filter and "SRD" in values
        self._is_basic_rules_filter = is_misc_filter and "Basic Rules" in values

        for item in self._items:
            self._default_item_state(item, force=True)

        for nest_name, nest_meta in (self._nests or {}).items():
            self._nests_hidden.set(nest_name, nest_meta.is_hidden)
            self._bind_nest(nest_name)
        for item in self._items:
            self._bind_nest_summary(item)
        self._update_nest_summary()

    # -------------------------------------------------------------------------
    # Validation and construction helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _as_values(items: Iterable[ItemInput] | None) -> tuple[str, ...]:
        return tuple(FilterItem.coerce(it).value for it in items or ())

    def _validate_item_nest(self, item: FilterItem) -> None:
        if not item.nest:
            return
        if self._nests is None:
            raise FilterConfigError(
                f'Filter "{self.header}" is not nested: "{item.value}" '
                f'references nest "{item.nest}"'
            )
        if item.nest not in self._nests:
            raise FilterConfigError(
                f'Filter does not have matching nest: "{item.value}" '
                f'(nest "{item.nest}"; call add_nest first)'
            )

    def _validate_item_nests(self, items: Iterable[FilterItem]) -> None:
        for item in items:
            self._validate_item_nest(item)

    def _bind_nest(self, nest_name: str) -> None:
        self.hooks.add(HookCategory.NESTS_HIDDEN, nest_name, self._update_nest_summary)

    def _bind_nest_summary(self, item: FilterItem) -> None:
        if item.nest:
            self.hooks.add(HookCategory.STATE, item.value, self._update_nest_summary)

    def _update_nest_summary(self) -> None:
        self._nest_summary = nest_summary(
            self._items, self._state, self._nests_hidden
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def items(self) -> list[FilterItem]:
        return list(self._items)

    @property
    def nests(self) -> dict[str, NestMeta] | None:
        return None if self._nests is None else dict(self._nests)

    @property
    def state(self) -> dict[str, Mark]:
        return self._state.to_dict()

    @property
    def nests_hidden(self) -> dict[str, bool]:
        return self._nests_hidden.to_dict()

    @property
    def meta(self) -> FilterMeta:
        return self._meta.model_copy()

    @property
    def default_meta(self) -> FilterMeta:
        return self._default_meta.model_copy()

    @property
    def umbrella_items(self) -> tuple[str, ...]:
        return self._umbrella_items

    @property
    def umbrella_excludes(self) -> tuple[str, ...]:
        return self._umbrella_excludes

    @property
    def has_user_saved_state(self) -> bool:
        return self._has_user_saved_state

    @property
    def is_items_dirty(self) -> bool:
        return self._is_items_dirty

    @property
    def is_nests_dirty(self) -> bool:
        return self._is_nests_dirty

    @property
    def is_reprinted_filter(self) -> bool:
        return self._is_reprinted_filter

    @property
    def is_srd_filter(self) -> bool:
        return self._is_srd_filter

    @property
    def is_basic_rules_filter(self) -> bool:
        return self._is_basic_rules_filter

    def get_item(self, value: str) -> FilterItem | None:
        return next((it for it in self._items if it.value == value), None)

    def get_mark(self, value: str) -> Mark:
        """Current mark of ``value``.

        Raises:
            FilterConfigError: If the filter has no such item.
        """
        if value not in self._state:
            raise FilterConfigError(f'Filter "{self.header}" has no item "{value}"')
        return self._state[value]

    def get_display_text(self, item: FilterItem) -> str:
        return self._display_fn(item.value, item) if self._display_fn else item.value

    # -------------------------------------------------------------------------
    # Default state
    # -------------------------------------------------------------------------

    def get_default_state(self, value: str) -> Mark:
        """Default mark of ``value``; the deselect predicate wins over select."""
        if self._desel_fn and self._desel_fn(value):
            return Mark.EXCLUDED
        if self._sel_fn and self._sel_fn(value):
            return Mark.REQUIRED
        return Mark.IGNORED

    def get_default_states(self) -> dict[str, Mark]:
        return {it.value: self.get_default_state(it.value) for it in self._items}

    def _default_item_state(self, item: FilterItem, force: bool = False) -> None:
        # A user who cleared every mark should not find a newly added value
        # as their only active mark.
        if not force and self._has_user_saved_state and not self._state.is_active():
            self._state.set(item.value, Mark.IGNORED)
            return
        self._state.set(item.value, self.get_default_state(item.value))

    def set_temp_sel_fn(self, temp_sel_fn: Predicate | None) -> None:
        """Swap the select predicate; None restores the original one."""
        self._sel_fn = temp_sel_fn or self._base_sel_fn

    def is_default_selected(self, value: str) -> bool:
        return bool(self._sel_fn and self._sel_fn(value))

    def is_default_deselected(self, value: str) -> bool:
        return bool(self._desel_fn and self._desel_fn(value))

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def cycle_mark(
        self, value: str, reverse: bool = False, clear_others: bool = False
    ) -> Mark:
        """Step the mark of ``value`` and return the new mark.

        Args:
            value: Item identity.
            reverse: Step ignored -> excluded -> required instead of
                ignored -> required -> excluded.
            clear_others: Reset every mark to ignored first, isolating the item.
        """
        current = self.get_mark(value)
        if clear_others:
            self.clear()
            current = Mark.IGNORED
        nxt = current.previous() if reverse else current.next()
        self._state.set(value, nxt)
        return nxt

    def set_value(self, value: str, mark: Mark | int) -> None:
        self.get_mark(value)
        self._state.set(value, mark)

    def set_all(self) -> None:
        self._state.fill(Mark.REQUIRED)

    def clear(self) -> None:
        self._state.fill(Mark.IGNORED)

    def set_none(self) -> None:
        self._state.fill(Mark.EXCLUDED)

    def invert(self) -> None:
        """Required marks become ignored, everything else becomes required."""
        self._state.assign(
            {
                k: Mark.IGNORED if v == Mark.REQUIRED else Mark.REQUIRED
                for k, v in self._state.items()
            }
        )

    def set_from_values(self, values: Mapping[str, Mapping[str, int]]) -> None:
        """Zero every mark, then apply ``values[header]`` if present.

        Raises:
            InvalidMarkError: If a value is not 0, 1 or 2. No mark is
                changed in that case.
        """
        own = values.get(self.header)
        if own is None:
            return
        known = {k: Mark.coerce(v) for k, v in own.items() if k in self._state}
        self._state.assign(
            {k: known.get(k, Mark.IGNORED) for k in self._state.keys()}
        )

    def reset(self, reset_all: bool = False) -> None:
        """Return marks and combine modes to their defaults.

        Args:
            reset_all: Also reset UI meta and the collapsed state of nests.
        """
        nxt = self.get_next_state_base()
        self.mut_next_state_reset(nxt, reset_all=reset_all)
        self.set_state_from_next_state(nxt)

    def _set_meta(self, field: str, value: Any) -> None:
        if getattr(self._meta, field) == value:
            return
        setattr(self._meta, field, value)
        self.hooks.fire(HookCategory.META, field)

    def cycle_combine_blue(self) -> CombineMode:
        mode = CombineMode.cycle(self._meta.combine_blue)
        self._set_meta("combine_blue", mode)
        return mode

    def cycle_combine_red(self) -> CombineMode:
        mode = CombineMode.cycle(self._meta.combine_red)
        self._set_meta("combine_red", mode)
        return mode

    def set_combine_blue(self, mode: CombineMode | str) -> None:
        self._set_meta("combine_blue", CombineMode(mode))

    def set_combine_red(self, mode: CombineMode | str) -> None:
        self._set_meta("combine_red", CombineMode(mode))

    def toggle_hidden(self) -> bool:
        self._set_meta("is_hidden", not self._meta.is_hidden)
        return self._meta.is_hidden

    # -------------------------------------------------------------------------
    # Items and nests
    # -------------------------------------------------------------------------

    def add_item(self, item: ItemInput | Sequence[ItemInput] | None) -> None:
        """Add one item, or each item of a list. Known identities are skipped.

        Raises:
            FilterConfigError: If the item references an unknown nest.
        """
        if item is None:
            return
        if isinstance(item, (list, tuple)):
            for it in item:
                self.add_item(it)
            return

        item = FilterItem.coerce(item)
        if item.value in self._item_values:
            return
        self._validate_item_nest(item)

        self._is_items_dirty = True
        self._items.append(item)
        self._item_values.add(item.value)
        logger.debug("Added item %r to filter %r", item.value, self.header)

        restored = self._restored_marks.pop(item.value, None)
        if restored is not None:
            self._state.set(item.value, restored)
        else:
            self._default_item_state(item)

        self._bind_nest_summary(item)
        self._update_nest_summary()

    def add_nest(self, nest_name: str, nest_meta: NestMeta | dict[str, Any]) -> None:
        """Register a nest. Known nest names are skipped.

        Raises:
            FilterConfigError: If the filter was built without nests.
        """
        if self._nests is None:
            raise FilterConfigError(f'Filter "{self.header}" was not nested!')
        if nest_name in self._nests:
            return
        if not isinstance(nest_meta, NestMeta):
            nest_meta = NestMeta(**nest_meta)

        self._is_nests_dirty = True
        self._nests[nest_name] = nest_meta
        logger.debug("Added nest %r to filter %r", nest_name, self.header)

        self._bind_nest(nest_name)
        hidden = self._restored_nests_hidden.pop(nest_name, nest_meta.is_hidden)
        self._nests_hidden.set(nest_name, hidden)
        self._update_nest_summary()

    def _require_nest(self, nest_name: str) -> None:
        if self._nests is None or nest_name not in self._nests:
            raise FilterConfigError(
                f'Filter "{self.header}" has no nest "{nest_name}"'
            )

    def is_nest_hidden(self, nest_name: str) -> bool:
        self._require_nest(nest_name)
        return bool(self._nests_hidden.get(nest_name, False))

    def set_nest_hidden(self, nest_name: str, hidden: bool) -> None:
        self._require_nest(nest_name)
        self._nests_hidden.set(nest_name, hidden)

    def toggle_nest_hidden(self, nest_name: str) -> bool:
        self._require_nest(nest_name)
        return self._nests_hidden.toggle(nest_name)

    def get_nest_summary(self) -> NestStats:
        """Required/excluded marks currently hidden in collapsed nests."""
        return self._nest_summary

    def get_nest_status(self, nest_name: str) -> NestStatus:
        self._require_nest(nest_name)
        return nest_status(
            nest_name, self._items, self._state, self._nests_hidden
        )

    def get_groups(self) -> list[Hashable]:
        if not self._group_fn:
            return []
        return sorted_groups(self._group_fn(it) for it in self._items)

    def get_group_name(self, group: Hashable) -> str | None:
        return self._group_name_fn(group) if self._group_name_fn else None

    def is_group_divider_hidden(self, group: Hashable) -> bool:
        if not self._group_fn:
            return True
        return is_group_divider_hidden(
            group,
            self._items,
            self._group_fn,
            None if self._nests is None else self._nests_hidden.to_dict(),
        )

    def update(self) -> tuple[bool, bool]:
        """Apply batched item/nest changes.

        Sorts the items and clears the dirty flags.

        Returns:
            Whether items and nests, respectively, were dirty.
        """
        was_items_dirty, was_nests_dirty = self._is_items_dirty, self._is_nests_dirty
        self._is_items_dirty = False
        self._is_nests_dirty = False

        if self._is_sort_by_display_items and self._display_fn:
            self._items.sort(key=self.get_display_text)
        elif self._item_sort_key is not None:
            self._items.sort(key=self._item_sort_key)

        return was_items_dirty, was_nests_dirty

    # -------------------------------------------------------------------------
    # Snapshots and matching
    # -------------------------------------------------------------------------

    def get_filter_state(self, next_state: FilterSnapshot | None = None) -> FilterState:
        """Snapshot for the matcher, optionally of a candidate next state.

        Identities that are not current items are left out.
        """
        state = next_state.state if next_state is not None else self._state.to_dict()
        meta = next_state.meta if next_state is not None else self._meta
        marks = {k: int(v) for k, v in state.items() if k in self._item_values}
        return FilterState.from_marks(marks, meta.combine_blue, meta.combine_red)

    def get_values(
        self, next_state: FilterSnapshot | None = None
    ) -> dict[str, FilterState]:
        return {self.header: self.get_filter_state(next_state)}

    def to_display(
        self,
        box_state: Mapping[str, FilterState],
        entry_values: matching.EntryValues,
    ) -> bool:
        """Whether an entry tagged with ``entry_values`` is shown by this facet.

        Args:
            box_state: Facet header to snapshot, as returned by get_values().
            entry_values: The entry's values for this facet.
        """
        ignore_red = {it.value for it in self._items if it.ignore_in_exclusion}
        return matching.to_display(
            box_state.get(self.header),
            entry_values,
            umbrella_items=self._umbrella_items,
            umbrella_excludes=self._umbrella_excludes,
            ignore_in_exclusion=ignore_red,
        )

    # -------------------------------------------------------------------------
    # Next state, persistence
    # -------------------------------------------------------------------------

    def get_next_state_base(self) -> FilterSnapshot:
        """A detached copy of the live state to build a next state from."""
        return FilterSnapshot(
            state={k: int(v) for k, v in self._state.items()},
            nests_hidden=self._nests_hidden.to_dict(),
            meta=self._meta.model_copy(),
        )

    def mut_next_state_reset_nests_hidden(self, nxt: FilterSnapshot) -> None:
        if self._nests is None:
            return
        for nest_name, nest_meta in self._nests.items():
            nxt.nests_hidden[nest_name] = nest_meta.is_hidden

    def mut_next_state_reset(
        self, nxt: FilterSnapshot, reset_all: bool = False
    ) -> None:
        """Reset a candidate state's marks and combine modes to defaults."""
        if reset_all:
            nxt.meta = self._default_meta.model_copy()
            self.mut_next_state_reset_nests_hidden(nxt)
        else:
            nxt.meta.combine_blue = self._default_meta.combine_blue
            nxt.meta.combine_red = self._default_meta.combine_red
        nxt.state = {k: int(v) for k, v in self.get_default_states().items()}

    def set_state_from_next_state(self, nxt: FilterSnapshot) -> None:
        """Commit a candidate state produced by decoding or reset.

        Items and nests added after the candidate was built take their
        default, so every current item keeps exactly one mark.
        """
        # validate before the first write
        state = {
            it.value: Mark.coerce(
                nxt.state.get(it.value, self.get_default_state(it.value))
            )
            for it in self._items
        }

        for field in FilterMeta.model_fields:
            self._set_meta(field, getattr(nxt.meta, field))
        self._state.assign(state, overwrite=True)
        if self._nests is not None:
            self._nests_hidden.assign(
                {
                    name: nxt.nests_hidden.get(name, meta.is_hidden)
                    for name, meta in self._nests.items()
                },
                overwrite=True,
            )

    def get_saveable_state(self) -> dict[str, dict[str, Any]]:
        return {self.header: self.get_next_state_base().to_dict()}

    def _loaded_section(self, data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
        section = data.get(key)
        if section is None:
            return {}
        if not isinstance(section, Mapping):
            logger.debug(
                "Dropping malformed %r section for %r: %r", key, self.header, section
            )
            return {}
        return section

    def set_state_from_loaded(
        self, filter_state: Mapping[str, Any] | None, is_user_saved_state: bool = False
    ) -> None:
        """Merge a persisted snapshot into the live state.

        Unknown meta keys, invalid values and sections that are not
        mappings are dropped. Marks and nest flags for values not yet known
        are kept and applied once the item or nest is added.
        """
        if not isinstance(filter_state, Mapping) or self.header not in filter_state:
            return
        to_load = self._loaded_section(filter_state, self.header)
        self._has_user_saved_state = self._has_user_saved_state or is_user_saved_state

        for field, value in self._loaded_section(to_load, "meta").items():
            if field not in FilterMeta.model_fields:
                logger.debug("Dropping unknown meta key %r for %r", field, self.header)
                continue
            try:
                if field == "is_hidden":
                    self._set_meta(field, bool(value))
                else:
                    self._set_meta(field, CombineMode(value))
            except ValueError:
                logger.debug("Dropping invalid meta %s=%r", field, value)

        for value, mark in self._loaded_section(to_load, "state").items():
            try:
                mark = Mark.coerce(mark)
            except InvalidMarkError:
                logger.debug("Dropping invalid mark %r=%r", value, mark)
                continue
            if value in self._item_values:
                self._state.set(value, mark)
            else:
                self._restored_marks[value] = mark

        for nest_name, hidden in self._loaded_section(to_load, "nests_hidden").items():
            if self._nests is not None and nest_name in self._nests:
                self._nests_hidden.set(nest_name, bool(hidden))
            else:
                self._restored_nests_hidden[nest_name] = bool(hidden)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def get_sub_hashes(self) -> dict[str, list[str]] | None:
        return serialization.get_sub_hashes(self)

    def get_next_state_from_sub_hashes(
        self, tokens: Mapping[str, Sequence[str]] | None
    ) -> FilterSnapshot:
        return serialization.get_next_state_from_sub_hashes(self, tokens)

    def get_filter_tag_part(self) -> str | None:
        return serialization.get_filter_tag_part(self)

    def get_display_state_part(
        self, next_state: FilterSnapshot | None = None
    ) -> str | None:
        return serialization.get_display_state_part(self, next_state)
