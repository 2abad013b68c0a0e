"""Tests for the Filter engine."""

import pytest

from facets.core.exceptions import FilterConfigError, InvalidMarkError
from facets.filter import (
    CombineMode,
    Filter,
    FilterItem,
    FilterMeta,
    HookCategory,
    Mark,
    NestMeta,
)


@pytest.fixture
def defaults_filter() -> Filter:
    """PHB required and XGE excluded by default; deselect wins for XGE."""
    return Filter(
        "Source",
        items=["PHB", "DMG", "XGE"],
        sel_fn=lambda v: v in {"PHB", "XGE"},
        desel_fn=lambda v: v == "XGE",
    )


class TestConstruction:
    """Tests for building filters."""

    def test_default_states(self, defaults_filter: Filter) -> None:
        """Test that deselect wins over select."""
        assert defaults_filter.state == {
            "PHB": Mark.REQUIRED,
            "DMG": Mark.IGNORED,
            "XGE": Mark.EXCLUDED,
        }

    def test_default_state_is_stable(self, defaults_filter: Filter) -> None:
        """Test that default computation is deterministic."""
        assert defaults_filter.get_default_states() == (
            defaults_filter.get_default_states()
        )
        assert defaults_filter.is_default_selected("PHB") is True
        assert defaults_filter.is_default_deselected("XGE") is True
        assert defaults_filter.is_default_deselected("DMG") is False

    def test_duplicate_items_collapse(self) -> None:
        """Test that repeated identities are kept once."""
        flt = Filter("Source", items=["PHB", "PHB", FilterItem("PHB")])
        assert [it.value for it in flt.items] == ["PHB"]
        assert list(flt.state) == ["PHB"]

    def test_item_with_unknown_nest(self) -> None:
        """Test that an item must reference a registered nest."""
        with pytest.raises(FilterConfigError, match="matching nest"):
            Filter("Source", items=[FilterItem("UA1", nest="Playtest")], nests={})

    def test_nested_item_on_flat_filter(self) -> None:
        """Test that a flat filter rejects nested items."""
        with pytest.raises(FilterConfigError, match="not nested"):
            Filter("Source", items=[FilterItem("UA1", nest="Playtest")])

    def test_nests_from_mappings(self) -> None:
        """Test that nest metadata may be given as plain mappings."""
        flt = Filter(
            "Source",
            items=[{"value": "UA1", "nest": "Playtest"}],
            nests={"Playtest": {"is_hidden": True}},
        )
        assert flt.nests == {"Playtest": NestMeta(is_hidden=True)}
        assert flt.nests_hidden == {"Playtest": True}

    def test_default_meta(self) -> None:
        """Test custom default combine modes."""
        flt = Filter(
            "Source",
            items=["PHB"],
            default_meta=FilterMeta(combine_blue=CombineMode.AND),
        )
        assert flt.meta.combine_blue == CombineMode.AND
        assert flt.default_meta.combine_red == CombineMode.OR

    def test_misc_flags(self) -> None:
        """Test detection of the misc tag values."""
        misc = Filter("Miscellaneous", items=["SRD", "Reprinted"], is_misc_filter=True)
        assert misc.is_srd_filter is True
        assert misc.is_reprinted_filter is True
        assert misc.is_basic_rules_filter is False

        plain = Filter("Source", items=["SRD"])
        assert plain.is_srd_filter is False


class TestCycleMark:
    """Tests for cycling marks."""

    def test_primary_cycle(self, source_filter: Filter) -> None:
        """Test ignored -> required -> excluded -> ignored."""
        assert source_filter.cycle_mark("PHB") == Mark.REQUIRED
        assert source_filter.cycle_mark("PHB") == Mark.EXCLUDED
        assert source_filter.cycle_mark("PHB") == Mark.IGNORED

    def test_reverse_cycle(self, source_filter: Filter) -> None:
        """Test ignored -> excluded -> required -> ignored."""
        assert source_filter.cycle_mark("PHB", reverse=True) == Mark.EXCLUDED
        assert source_filter.cycle_mark("PHB", reverse=True) == Mark.REQUIRED
        assert source_filter.cycle_mark("PHB", reverse=True) == Mark.IGNORED

    def test_clear_others(self, source_filter: Filter) -> None:
        """Test that the clear modifier isolates the clicked item."""
        source_filter.set_value("DMG", Mark.REQUIRED)
        source_filter.set_value("XGE", Mark.EXCLUDED)

        assert source_filter.cycle_mark("PHB", clear_others=True) == Mark.REQUIRED
        assert source_filter.state == {
            "PHB": Mark.REQUIRED,
            "DMG": Mark.IGNORED,
            "XGE": Mark.IGNORED,
        }

    def test_unknown_item(self, source_filter: Filter) -> None:
        """Test cycling an identity the filter does not know."""
        with pytest.raises(FilterConfigError, match="no item"):
            source_filter.cycle_mark("Homebrew")

    def test_hook_sees_new_mark(self, source_filter: Filter) -> None:
        """Test that hooks run synchronously after the write."""
        seen: list[Mark] = []

        def on_change() -> None:
            seen.append(source_filter.get_mark("PHB"))

        source_filter.hooks.add(HookCategory.STATE, "PHB", on_change)

        source_filter.cycle_mark("PHB")

        assert seen == [Mark.REQUIRED]


class TestBulkOperations:
    """Tests for operations touching every mark."""

    def test_set_value(self, source_filter: Filter) -> None:
        """Test writing a single mark."""
        source_filter.set_value("DMG", 2)
        assert source_filter.get_mark("DMG") == Mark.EXCLUDED

    def test_set_value_invalid(self, source_filter: Filter) -> None:
        """Test that invalid marks and unknown items are rejected."""
        with pytest.raises(InvalidMarkError):
            source_filter.set_value("DMG", 3)
        with pytest.raises(FilterConfigError):
            source_filter.set_value("Homebrew", 1)
        assert source_filter.get_mark("DMG") == Mark.IGNORED

    def test_set_all_clear_set_none(self, source_filter: Filter) -> None:
        """Test the fill operations."""
        source_filter.set_all()
        assert set(source_filter.state.values()) == {Mark.REQUIRED}
        source_filter.set_none()
        assert set(source_filter.state.values()) == {Mark.EXCLUDED}
        source_filter.clear()
        assert set(source_filter.state.values()) == {Mark.IGNORED}

    def test_invert(self, source_filter: Filter) -> None:
        """Test that required becomes ignored and the rest required."""
        source_filter.set_value("PHB", Mark.REQUIRED)
        source_filter.set_value("DMG", Mark.EXCLUDED)

        source_filter.invert()

        assert source_filter.state == {
            "PHB": Mark.IGNORED,
            "DMG": Mark.REQUIRED,
            "XGE": Mark.REQUIRED,
        }

    def test_set_from_values(self, source_filter: Filter) -> None:
        """Test replacing marks from a values mapping."""
        source_filter.set_value("DMG", Mark.REQUIRED)

        source_filter.set_from_values({"Source": {"PHB": 2, "Homebrew": 1}})

        assert source_filter.state == {
            "PHB": Mark.EXCLUDED,
            "DMG": Mark.IGNORED,
            "XGE": Mark.IGNORED,
        }

    def test_set_from_values_invalid_leaves_state(self, source_filter: Filter) -> None:
        """Test that a rejected values mapping changes no mark."""
        source_filter.set_value("PHB", Mark.REQUIRED)
        source_filter.set_value("DMG", Mark.EXCLUDED)
        fired: list[str] = []
        source_filter.hooks.add(HookCategory.STATE, "PHB", lambda: fired.append("PHB"))

        with pytest.raises(InvalidMarkError):
            source_filter.set_from_values({"Source": {"XGE": 1, "PHB": 7}})

        assert source_filter.state == {
            "PHB": Mark.REQUIRED,
            "DMG": Mark.EXCLUDED,
            "XGE": Mark.IGNORED,
        }
        assert fired == []

    def test_set_from_values_other_header(self, source_filter: Filter) -> None:
        """Test that values for another facet are ignored."""
        source_filter.set_value("DMG", Mark.REQUIRED)
        source_filter.set_from_values({"Type": {"PHB": 2}})
        assert source_filter.get_mark("DMG") == Mark.REQUIRED


class TestReset:
    """Tests for reset."""

    def test_reset_marks_and_combine_modes(self, defaults_filter: Filter) -> None:
        """Test that reset restores defaults but keeps UI meta."""
        defaults_filter.set_value("DMG", Mark.REQUIRED)
        defaults_filter.set_value("PHB", Mark.IGNORED)
        defaults_filter.set_combine_blue(CombineMode.AND)
        defaults_filter.toggle_hidden()

        defaults_filter.reset()

        assert defaults_filter.state == defaults_filter.get_default_states()
        assert defaults_filter.meta.combine_blue == CombineMode.OR
        assert defaults_filter.meta.is_hidden is True

    def test_reset_all(self, nested_filter: Filter) -> None:
        """Test that a full reset also restores UI meta and nests."""
        nested_filter.toggle_hidden()
        nested_filter.toggle_nest_hidden("Playtest")

        nested_filter.reset(reset_all=True)

        assert nested_filter.meta.is_hidden is False
        assert nested_filter.nests_hidden == {"Core": False, "Playtest": True}

    def test_reset_keeps_nests(self, nested_filter: Filter) -> None:
        """Test that a plain reset leaves nests alone."""
        nested_filter.toggle_nest_hidden("Playtest")
        nested_filter.reset()
        assert nested_filter.is_nest_hidden("Playtest") is False


class TestCommitNextState:
    """Tests for committing a decoded state."""

    def test_item_added_before_commit_keeps_a_mark(self) -> None:
        """Test decode, add an item, then commit."""
        flt = Filter("Source", items=["PHB", "DMG"], sel_fn=lambda v: v == "XGE")
        nxt = flt.get_next_state_from_sub_hashes({"state": ["phb=1"]})

        flt.add_item("XGE")
        flt.set_state_from_next_state(nxt)

        assert flt.state == {
            "PHB": Mark.REQUIRED,
            "DMG": Mark.IGNORED,
            "XGE": Mark.REQUIRED,
        }
        assert flt.cycle_mark("XGE") == Mark.EXCLUDED
        assert flt.get_filter_state().get("XGE") == Mark.EXCLUDED

    def test_nest_added_before_commit_keeps_a_flag(
        self, nested_filter: Filter
    ) -> None:
        """Test decode, add a nest, then commit."""
        nxt = nested_filter.get_next_state_from_sub_hashes({"nestsHidden": ["core=1"]})

        nested_filter.add_nest("Homebrew", {"is_hidden": True})
        nested_filter.set_state_from_next_state(nxt)

        assert nested_filter.nests_hidden == {
            "Core": True,
            "Playtest": True,
            "Homebrew": True,
        }
        assert nested_filter.is_nest_hidden("Homebrew") is True

    def test_unknown_keys_not_committed(self, source_filter: Filter) -> None:
        """Test that candidate marks for unknown values are dropped."""
        nxt = source_filter.get_next_state_base()
        nxt.state["Homebrew"] = 1

        source_filter.set_state_from_next_state(nxt)

        assert set(source_filter.state) == {"PHB", "DMG", "XGE"}


class TestMeta:
    """Tests for meta operations."""

    def test_cycle_combine_blue(self, source_filter: Filter) -> None:
        """Test or -> and -> xor -> or."""
        assert source_filter.cycle_combine_blue() == CombineMode.AND
        assert source_filter.cycle_combine_blue() == CombineMode.XOR
        assert source_filter.cycle_combine_blue() == CombineMode.OR

    def test_cycle_combine_red_fires_meta_hook(self, source_filter: Filter) -> None:
        """Test that meta changes notify META hooks."""
        calls: list[str] = []
        source_filter.hooks.add(
            HookCategory.META, "combine_red", lambda: calls.append("red")
        )

        source_filter.cycle_combine_red()

        assert calls == ["red"]
        assert source_filter.meta.combine_red == CombineMode.AND

    def test_set_combine_mode(self, source_filter: Filter) -> None:
        """Test setting a combine mode by name."""
        source_filter.set_combine_red("xor")
        assert source_filter.meta.combine_red == CombineMode.XOR
        with pytest.raises(ValueError):
            source_filter.set_combine_blue("nand")

    def test_toggle_hidden(self, source_filter: Filter) -> None:
        """Test collapsing the facet controls."""
        assert source_filter.toggle_hidden() is True
        assert source_filter.toggle_hidden() is False

    def test_meta_is_a_copy(self, source_filter: Filter) -> None:
        """Test that the meta property cannot mutate the filter."""
        source_filter.meta.combine_blue = CombineMode.XOR
        assert source_filter.meta.combine_blue == CombineMode.OR


class TestAddItem:
    """Tests for adding items after construction."""

    def test_add_item(self, source_filter: Filter) -> None:
        """Test that a new item gets its default mark."""
        source_filter.add_item("MM")
        assert source_filter.get_mark("MM") == Mark.IGNORED
        assert source_filter.is_items_dirty is True

    def test_add_items_list(self, source_filter: Filter) -> None:
        """Test adding several items at once."""
        source_filter.add_item(["VGM", "MTF", None])
        assert "VGM" in source_filter.state
        assert "MTF" in source_filter.state

    def test_add_known_item_is_noop(self, source_filter: Filter) -> None:
        """Test that known identities are skipped."""
        source_filter.set_value("PHB", Mark.REQUIRED)
        source_filter.add_item("PHB")
        source_filter.add_item(None)

        assert source_filter.get_mark("PHB") == Mark.REQUIRED
        assert source_filter.is_items_dirty is False

    def test_add_item_unknown_nest(self, nested_filter: Filter) -> None:
        """Test that an item for an unknown nest is rejected."""
        with pytest.raises(FilterConfigError):
            nested_filter.add_item({"value": "UA9", "nest": "Homebrew"})
        assert nested_filter.get_item("UA9") is None

    def test_new_item_after_user_cleared_everything(self) -> None:
        """Test that a user's empty saved state stays empty."""
        flt = Filter("Source", items=["PHB"], sel_fn=lambda v: True)
        flt.set_state_from_loaded(
            {"Source": {"state": {"PHB": 0}}}, is_user_saved_state=True
        )

        flt.add_item("NEW")

        assert flt.has_user_saved_state is True
        assert flt.get_mark("NEW") == Mark.IGNORED

    def test_new_item_with_active_saved_state(self) -> None:
        """Test that defaults apply when the saved state has marks."""
        flt = Filter("Source", items=["PHB"], sel_fn=lambda v: True)
        flt.set_state_from_loaded(
            {"Source": {"state": {"PHB": 1}}}, is_user_saved_state=True
        )

        flt.add_item("NEW")

        assert flt.get_mark("NEW") == Mark.REQUIRED

    def test_new_item_without_user_saved_state(self) -> None:
        """Test that defaults apply to non-user snapshots."""
        flt = Filter("Source", items=["PHB"], sel_fn=lambda v: True)
        flt.set_state_from_loaded({"Source": {"state": {"PHB": 0}}})

        flt.add_item("NEW")

        assert flt.get_mark("NEW") == Mark.REQUIRED

    def test_restored_mark_applied_on_add(self, source_filter: Filter) -> None:
        """Test that a mark loaded before its item exists is kept."""
        source_filter.set_state_from_loaded({"Source": {"state": {"MM": 2}}})
        assert "MM" not in source_filter.state

        source_filter.add_item("MM")

        assert source_filter.get_mark("MM") == Mark.EXCLUDED


class TestAddNest:
    """Tests for adding nests after construction."""

    def test_add_nest(self, nested_filter: Filter) -> None:
        """Test registering a nest, then one of its items."""
        nested_filter.add_nest("Homebrew", {"is_hidden": True})
        nested_filter.add_item(FilterItem("HB1", nest="Homebrew"))

        assert nested_filter.is_nest_hidden("Homebrew") is True
        assert nested_filter.is_nests_dirty is True

    def test_add_nest_flat_filter(self, source_filter: Filter) -> None:
        """Test that flat filters cannot gain nests."""
        with pytest.raises(FilterConfigError, match="not nested"):
            source_filter.add_nest("Core", NestMeta())

    def test_add_known_nest_is_noop(self, nested_filter: Filter) -> None:
        """Test that known nest names are skipped."""
        nested_filter.add_nest("Playtest", NestMeta(is_hidden=False))
        assert nested_filter.is_nest_hidden("Playtest") is True
        assert nested_filter.is_nests_dirty is False

    def test_restored_nest_flag(self, nested_filter: Filter) -> None:
        """Test that a flag loaded before its nest exists is kept."""
        nested_filter.set_state_from_loaded(
            {"Source": {"nests_hidden": {"Core": True, "Homebrew": True}}}
        )
        assert nested_filter.is_nest_hidden("Core") is True

        nested_filter.add_nest("Homebrew", NestMeta())

        assert nested_filter.is_nest_hidden("Homebrew") is True

    def test_unknown_nest_access(self, nested_filter: Filter) -> None:
        """Test that nest accessors reject unknown names."""
        with pytest.raises(FilterConfigError, match="no nest"):
            nested_filter.is_nest_hidden("Homebrew")
        with pytest.raises(FilterConfigError, match="no nest"):
            nested_filter.get_nest_status("Homebrew")


class TestUpdate:
    """Tests for batched updates and sorting."""

    def test_update_sorts_and_clears_flags(self, source_filter: Filter) -> None:
        """Test sorting by identity and dirty flag reporting."""
        source_filter.add_item("AAA")

        assert source_filter.update() == (True, False)
        assert [it.value for it in source_filter.items] == ["AAA", "DMG", "PHB", "XGE"]
        assert source_filter.update() == (False, False)

    def test_sort_by_display_text(self) -> None:
        """Test sorting by display text."""
        flt = Filter(
            "Source",
            items=["PHB", "DMG", "XGE"],
            display_fn=lambda v, _item: v[::-1],
            is_sort_by_display_items=True,
        )
        flt.update()
        assert [it.value for it in flt.items] == ["PHB", "XGE", "DMG"]

    def test_no_sort_key_keeps_order(self) -> None:
        """Test that sorting can be disabled."""
        flt = Filter("Source", items=["PHB", "DMG", "XGE"], item_sort_key=None)
        flt.update()
        assert [it.value for it in flt.items] == ["PHB", "DMG", "XGE"]

    def test_display_text(self) -> None:
        """Test display translation."""
        flt = Filter(
            "Source",
            items=["PHB"],
            display_fn=lambda v, _item: {"PHB": "Player's Handbook"}.get(v, v),
        )
        assert flt.get_display_text(flt.items[0]) == "Player's Handbook"


class TestDefaultsOverride:
    """Tests for the temporary select predicate."""

    def test_set_temp_sel_fn(self, source_filter: Filter) -> None:
        """Test swapping and restoring the select predicate."""
        source_filter.set_temp_sel_fn(lambda v: v == "DMG")
        assert source_filter.get_default_state("DMG") == Mark.REQUIRED

        source_filter.set_temp_sel_fn(None)
        assert source_filter.get_default_state("DMG") == Mark.IGNORED

    def test_restore_original_predicate(self, defaults_filter: Filter) -> None:
        """Test that restoring brings back the constructor predicate."""
        defaults_filter.set_temp_sel_fn(lambda v: False)
        assert defaults_filter.get_default_state("PHB") == Mark.IGNORED

        defaults_filter.set_temp_sel_fn(None)
        assert defaults_filter.get_default_state("PHB") == Mark.REQUIRED


class TestSnapshots:
    """Tests for matcher snapshots and entry display."""

    def test_get_values(self, source_filter: Filter) -> None:
        """Test the snapshot keyed by header."""
        source_filter.set_value("PHB", Mark.REQUIRED)
        values = source_filter.get_values()

        assert list(values) == ["Source"]
        assert values["Source"].totals.yes == 1
        assert values["Source"].is_active is True

    def test_snapshot_drops_non_items(self, source_filter: Filter) -> None:
        """Test that identities that are not items are left out."""
        nxt = source_filter.get_next_state_base()
        nxt.state["Ghost"] = 1

        state = source_filter.get_filter_state(nxt)

        assert "Ghost" not in state.marks
        assert state.totals.yes == 0

    def test_to_display(self, source_filter: Filter) -> None:
        """Test entry display through the filter."""
        source_filter.set_value("PHB", Mark.REQUIRED)
        values = source_filter.get_values()

        assert source_filter.to_display(values, ["PHB", "DMG"]) is True
        assert source_filter.to_display(values, ["DMG"]) is False
        assert source_filter.to_display({}, ["DMG"]) is True

    def test_to_display_item_ignored_in_exclusion(self) -> None:
        """Test that item flags reach the matcher."""
        flt = Filter(
            "Source", items=[FilterItem("UA", ignore_in_exclusion=True), "PHB"]
        )
        flt.set_value("UA", Mark.EXCLUDED)
        flt.set_value("PHB", Mark.EXCLUDED)
        values = flt.get_values()

        assert flt.to_display(values, ["UA"]) is True
        assert flt.to_display(values, ["PHB"]) is False

    def test_to_display_umbrella(self) -> None:
        """Test that umbrella configuration reaches the matcher."""
        flt = Filter("Source", items=["All", "PHB", "DMG"], umbrella_items=["All"])
        flt.set_value("PHB", Mark.REQUIRED)

        assert flt.to_display(flt.get_values(), ["All"]) is True
        assert flt.umbrella_items == ("All",)


class TestPersistence:
    """Tests for saving and loading filter state."""

    def test_get_saveable_state(self, nested_filter: Filter) -> None:
        """Test the persisted shape."""
        nested_filter.set_value("PHB", Mark.REQUIRED)
        saved = nested_filter.get_saveable_state()

        assert saved == {
            "Source": {
                "state": {"PHB": 1, "DMG": 0, "UA1": 0, "XGE": 0},
                "nests_hidden": {"Core": False, "Playtest": True},
                "meta": {"is_hidden": False, "combine_blue": "or", "combine_red": "or"},
            }
        }

    def test_save_then_load(self, nested_filter: Filter) -> None:
        """Test that a saved state restores into a fresh filter."""
        nested_filter.set_value("XGE", Mark.EXCLUDED)
        nested_filter.toggle_nest_hidden("Core")
        nested_filter.cycle_combine_blue()
        saved = nested_filter.get_saveable_state()

        fresh = Filter(
            "Source",
            items=nested_filter.items,
            nests=nested_filter.nests,
        )
        fresh.set_state_from_loaded(saved)

        assert fresh.state == nested_filter.state
        assert fresh.nests_hidden == nested_filter.nests_hidden
        assert fresh.meta == nested_filter.meta

    def test_load_merges(self, source_filter: Filter) -> None:
        """Test that values absent from the snapshot are kept."""
        source_filter.set_value("DMG", Mark.EXCLUDED)
        source_filter.set_state_from_loaded({"Source": {"state": {"PHB": 1}}})

        assert source_filter.get_mark("PHB") == Mark.REQUIRED
        assert source_filter.get_mark("DMG") == Mark.EXCLUDED

    def test_load_drops_invalid(self, source_filter: Filter) -> None:
        """Test that invalid marks and meta are dropped."""
        source_filter.set_state_from_loaded(
            {
                "Source": {
                    "state": {"PHB": 5, "DMG": 1},
                    "meta": {"combine_blue": "and", "combine_red": "nand", "x": 1},
                }
            }
        )

        assert source_filter.get_mark("PHB") == Mark.IGNORED
        assert source_filter.get_mark("DMG") == Mark.REQUIRED
        assert source_filter.meta.combine_blue == CombineMode.AND
        assert source_filter.meta.combine_red == CombineMode.OR

    @pytest.mark.parametrize(
        "loaded",
        [
            {"Source": [1]},
            {"Source": "PHB=1"},
            {"Source": {"state": ["PHB"], "meta": "and", "nests_hidden": 1}},
            ["Source"],
        ],
    )
    def test_load_drops_malformed_sections(
        self, source_filter: Filter, loaded: object
    ) -> None:
        """Test that sections which are not mappings are skipped."""
        source_filter.set_value("DMG", Mark.EXCLUDED)

        source_filter.set_state_from_loaded(loaded)  # type: ignore[arg-type]

        assert source_filter.get_mark("DMG") == Mark.EXCLUDED
        assert source_filter.get_mark("PHB") == Mark.IGNORED
        assert source_filter.meta == FilterMeta()

    @pytest.mark.parametrize("loaded", [None, {}, {"Type": {"state": {"PHB": 1}}}])
    def test_load_without_own_header(
        self, source_filter: Filter, loaded: dict | None
    ) -> None:
        """Test that snapshots without this facet change nothing."""
        source_filter.set_state_from_loaded(loaded, is_user_saved_state=True)

        assert source_filter.get_mark("PHB") == Mark.IGNORED
        assert source_filter.has_user_saved_state is False
