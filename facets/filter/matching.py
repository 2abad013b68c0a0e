"""Visibility decision for one entry against one facet's state.

Required ("blue") and excluded ("red") marks are evaluated independently:
blue decides inclusion, red decides suppression, and red wins.
"""

from collections.abc import Collection, Iterable

from facets.core.exceptions import CombineModeError
from facets.filter.models import CombineMode, FilterItem, FilterState, Mark

EntryValues = FilterItem | str | Iterable[FilterItem | str] | None


def normalize_entry_values(entry_values: EntryValues) -> list[FilterItem]:
    """Turn a single value, a list of values, or None into FilterItems."""
    if entry_values is None:
        return []
    if isinstance(entry_values, (FilterItem, str)):
        entry_values = [entry_values]
    return [FilterItem.coerce(it) for it in entry_values]


def _combine_mode(mode: CombineMode | str, axis: str) -> CombineMode:
    try:
        return CombineMode(mode)
    except ValueError as e:
        raise CombineModeError(mode, axis) from e


def is_umbrella(
    filter_state: FilterState,
    values: list[FilterItem],
    umbrella_items: Collection[str],
    umbrella_excludes: Collection[str] = (),
) -> bool:
    """Whether an umbrella item on the entry stands in for a required match.

    Holds when the entry carries an umbrella item, no umbrella-exclude item
    has any mark, and at least one umbrella item is ignored or required.
    """
    if not umbrella_items:
        return False
    if any(filter_state.get(it) for it in umbrella_excludes):
        return False

    entry = {fi.value for fi in values}
    if not any(u in entry for u in umbrella_items):
        return False
    return any(
        filter_state.get(u) in (Mark.IGNORED, Mark.REQUIRED) for u in umbrella_items
    )


def matches_required(
    filter_state: FilterState, values: list[FilterItem], umbrella: bool = False
) -> bool:
    """Blue evaluation. Umbrella membership is only honoured by OR and XOR."""
    mode = _combine_mode(filter_state.combine_blue, "blue")
    total_yes = filter_state.totals.yes

    def is_hit(fi: FilterItem) -> bool:
        return filter_state.get(fi.value) == Mark.REQUIRED or umbrella

    if mode is CombineMode.OR:
        return total_yes == 0 or any(is_hit(fi) for fi in values)

    if mode is CombineMode.XOR:
        return total_yes == 0 or sum(1 for fi in values if is_hit(fi)) == 1

    entry_yes = sum(1 for fi in values if filter_state.get(fi.value) == Mark.REQUIRED)
    return total_yes == 0 or total_yes == entry_yes


def matches_excluded(
    filter_state: FilterState,
    values: list[FilterItem],
    ignore_in_exclusion: Collection[str] = (),
) -> bool:
    """Red evaluation. True means the entry is suppressed."""
    mode = _combine_mode(filter_state.combine_red, "red")

    entry_no = sum(
        1
        for fi in values
        if not fi.ignore_in_exclusion
        and fi.value not in ignore_in_exclusion
        and filter_state.get(fi.value) == Mark.EXCLUDED
    )

    if mode is CombineMode.OR:
        return entry_no > 0
    if mode is CombineMode.XOR:
        return entry_no == 1
    total_no = filter_state.totals.no
    return total_no > 0 and total_no == entry_no


def to_display(
    filter_state: FilterState | None,
    entry_values: EntryValues,
    umbrella_items: Collection[str] = (),
    umbrella_excludes: Collection[str] = (),
    ignore_in_exclusion: Collection[str] = (),
) -> bool:
    """Decide whether an entry is shown under one facet.

    Args:
        filter_state: Snapshot of the facet, or None if the facet has no state.
        entry_values: The facet values the entry is tagged with.
        umbrella_items: Identities that can stand in for a required match.
        umbrella_excludes: Identities whose marks veto the umbrella.
        ignore_in_exclusion: Identities whose excluded mark never hides.

    Returns:
        True if the entry should be displayed.

    Raises:
        CombineModeError: If either combine mode is not or/and/xor.
    """
    if filter_state is None:
        return True

    values = normalize_entry_values(entry_values)
    umbrella = is_umbrella(filter_state, values, umbrella_items, umbrella_excludes)

    display = matches_required(filter_state, values, umbrella)
    hide = matches_excluded(filter_state, values, ignore_in_exclusion)
    return display and not hide
