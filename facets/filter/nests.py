"""Accounting for marks hidden inside collapsed nests, and group dividers."""

from collections.abc import Callable, Hashable, Iterable, Mapping

from facets.filter.models import FilterItem, Mark, NestStats, NestStatus


def nest_summary(
    items: Iterable[FilterItem],
    state: Mapping[str, int],
    nests_hidden: Mapping[str, bool],
) -> NestStats:
    """Count required and excluded marks on items inside collapsed nests."""
    required = 0
    excluded = 0
    for item in items:
        if not item.nest or not nests_hidden.get(item.nest):
            continue
        mark = state.get(item.value, Mark.IGNORED)
        if mark == Mark.REQUIRED:
            required += 1
        elif mark == Mark.EXCLUDED:
            excluded += 1
    return NestStats(required=required, excluded=excluded)


def nest_status(
    nest: str,
    items: Iterable[FilterItem],
    state: Mapping[str, int],
    nests_hidden: Mapping[str, bool],
) -> NestStatus:
    """Summarize the marks of a collapsed nest for its toggle.

    An expanded nest, or one without items, is always ``NONE``.
    """
    if not nests_hidden.get(nest):
        return NestStatus.NONE

    high = low = total = 0
    for item in items:
        if item.nest != nest:
            continue
        total += 1
        mark = state.get(item.value, Mark.IGNORED)
        if mark == Mark.REQUIRED:
            high += 1
        elif mark == Mark.EXCLUDED:
            low += 1

    if not total:
        return NestStatus.NONE
    if high == total:
        return NestStatus.INCLUDE_ALL
    if low == total:
        return NestStatus.EXCLUDE_ALL
    if high and low:
        return NestStatus.BOTH
    if high:
        return NestStatus.INCLUDE
    if low:
        return NestStatus.EXCLUDE
    return NestStatus.NONE


def sorted_groups(groups: Iterable[Hashable]) -> list[Hashable]:
    """Groups in case-insensitive order, duplicates removed."""
    return sorted(set(groups), key=lambda g: (f"{g}".lower(), f"{g}"))


def is_group_divider_hidden(
    group: Hashable,
    items: Iterable[FilterItem],
    group_fn: Callable[[FilterItem], Hashable],
    nests_hidden: Mapping[str, bool] | None,
) -> bool:
    """Whether the divider above ``group`` is hidden.

    Without nests only the first group's divider is hidden. With nests a
    divider is hidden when every item of its group sits in a collapsed nest.
    """
    items = list(items)
    if nests_hidden is None:
        groups = sorted_groups(group_fn(it) for it in items)
        return bool(groups) and f"{groups[0]}" == f"{group}"

    group_items = [it for it in items if group_fn(it) == group]
    return all(it.nest and nests_hidden.get(it.nest) for it in group_items)
