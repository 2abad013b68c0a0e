"""Shared pytest fixtures for facets tests."""

from pathlib import Path

import pytest

from facets.filter import Filter, FilterItem, NestMeta


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to the fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def catalogs_dir(fixtures_dir: Path) -> Path:
    """Return path to the catalog fixtures directory."""
    return fixtures_dir / "catalogs"


@pytest.fixture
def spells_catalog_path(catalogs_dir: Path) -> Path:
    """Return path to the spells catalog YAML file."""
    return catalogs_dir / "spells.yaml"


@pytest.fixture
def source_filter() -> Filter:
    """A flat Source facet with every value ignored by default."""
    return Filter("Source", items=["PHB", "DMG", "XGE"])


@pytest.fixture
def nested_filter() -> Filter:
    """A Source facet with a shown Core nest and a collapsed Playtest nest."""
    return Filter(
        "Source",
        items=[
            FilterItem("PHB", nest="Core"),
            FilterItem("DMG", nest="Core"),
            FilterItem("UA1", nest="Playtest"),
            "XGE",
        ],
        nests={"Core": NestMeta(), "Playtest": NestMeta(is_hidden=True)},
    )
