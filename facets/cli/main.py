"""Main CLI entry point for facets."""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from facets import __version__
from facets.catalog import CatalogLoader, build_filters, visible_entries
from facets.core.exceptions import CatalogError, FacetsError
from facets.core.logging import configure_logging_from_settings, facet_context
from facets.core.settings import FacetsSettings, get_settings
from facets.filter.engine import Filter
from facets.persistence import (
    collect_snapshot,
    load_snapshot,
    restore_snapshot,
    save_snapshot,
)

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_ERROR = 2  # Error (invalid catalog, unknown facet, bad option, ...)

AXES = ("blue", "red")


class SettingsContext:
    """Context object to hold configuration state."""

    def __init__(self) -> None:
        self.settings: FacetsSettings | None = None
        self.verbose: bool = False

    def load(self, config_file: Path | None = None) -> FacetsSettings:
        if self.settings is None:
            self.settings = get_settings(config_file=config_file)
        return self.settings


pass_settings = click.make_pass_decorator(SettingsContext, ensure=True)


def _split_facet_option(raw: str, option: str) -> tuple[str, str, str]:
    """Split ``Header:key=value``.

    Raises:
        click.BadParameter: If the option is malformed.
    """
    header, sep, rest = raw.partition(":")
    key, eq, value = rest.rpartition("=")
    if not sep or not eq or not header or not key:
        raise click.BadParameter(
            f"expected Header:key=value, got {raw!r}", param_hint=option
        )
    return header, key, value


def _get_filter(filters: dict[str, Filter], header: str) -> Filter:
    flt = filters.get(header) or next(
        (f for h, f in filters.items() if h.lower() == header.lower()), None
    )
    if flt is None:
        raise FacetsError(f"Unknown facet: {header}")
    return flt


def _apply_marks(filters: dict[str, Filter], marks: tuple[str, ...]) -> None:
    for raw in marks:
        header, value, mark = _split_facet_option(raw, "--mark")
        flt = _get_filter(filters, header)
        key = next((k for k in flt.state if k.lower() == value.lower()), value)
        flt.set_value(key, mark)


def _apply_combines(filters: dict[str, Filter], combines: tuple[str, ...]) -> None:
    for raw in combines:
        header, axis, mode = _split_facet_option(raw, "--combine")
        flt = _get_filter(filters, header)
        axis = axis.lower()
        if axis not in AXES:
            raise click.BadParameter(
                f"axis must be one of {', '.join(AXES)}, got {axis!r}",
                param_hint="--combine",
            )
        try:
            if axis == "blue":
                flt.set_combine_blue(mode.lower())
            else:
                flt.set_combine_red(mode.lower())
        except ValueError as e:
            raise click.BadParameter(
                f"unknown combine mode {mode!r}", param_hint="--combine"
            ) from e


def _facet_report(flt: Filter) -> dict[str, Any]:
    with facet_context(flt.header):
        report = {
            "sub_hashes": flt.get_sub_hashes(),
            "tag": flt.get_filter_tag_part(),
            "summary": flt.get_display_state_part(),
        }
        logger.debug("Facet report built")
    return report


def _create_facet_table(header: str, report: dict[str, Any]) -> Table:
    """Create a table describing one facet's non-default state.

    Args:
        header: Facet header, used as the title.
        report: Report built by _facet_report.

    Returns:
        Configured Rich Table instance.
    """
    table = Table(title=header, show_header=False, box=None, title_justify="left")
    table.add_column("Property", style="bold cyan", no_wrap=True)
    table.add_column("Value")

    for prop, tokens in (report["sub_hashes"] or {}).items():
        table.add_row(prop, Text(", ".join(tokens)))
    if report["tag"]:
        table.add_row("tag", Text(report["tag"]))
    if report["summary"]:
        table.add_row("summary", Text(report["summary"]))
    return table


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, path_type=Path),
    help="Path to facets.config.yaml configuration file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__, prog_name="facets")
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """facets - tri-state faceted filtering.

    Examples:

      # Show which entries pass the default state
      facets evaluate catalog.yaml

      # Require a source and exclude a type
      facets evaluate catalog.yaml --mark Source:PHB=1 --mark Type:Trap=2

      # Require every marked source
      facets evaluate catalog.yaml --combine Source:blue=and
    """
    ctx.ensure_object(SettingsContext)
    settings_ctx = ctx.obj
    settings_ctx.verbose = verbose
    settings = settings_ctx.load(config_file)

    configure_logging_from_settings(settings, level="DEBUG" if verbose else None)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(name="version")
def version_cmd() -> None:
    """Show facets version information."""
    click.echo(f"facets v{__version__}")
    click.echo(f"Python: {sys.version.split()[0]}")


@cli.command(name="evaluate")
@click.argument("catalog_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--mark",
    "-m",
    "marks",
    multiple=True,
    help="Set a mark: Header:value=0|1|2 (repeatable)",
)
@click.option(
    "--combine",
    "combines",
    multiple=True,
    help="Set a combine mode: Header:blue|red=or|and|xor (repeatable)",
)
@click.option(
    "--load-snapshot",
    "load_path",
    type=click.Path(path_type=Path),
    help="Restore filter state from a snapshot file before applying marks",
)
@click.option(
    "--save-snapshot",
    "save_path",
    type=click.Path(path_type=Path),
    help="Save the resulting filter state to a snapshot file",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@pass_settings
def evaluate_cmd(
    settings_ctx: SettingsContext,
    catalog_file: Path,
    marks: tuple[str, ...],
    combines: tuple[str, ...],
    load_path: Path | None,
    save_path: Path | None,
    as_json: bool,
) -> None:
    """Evaluate a catalog against a filter state.

    Prints the visible entries, then for every facet whose state differs
    from its defaults the encoded sub-hashes and the tag.

    Exit Codes:

      0 - Success
      2 - Error occurred
    """
    settings = settings_ctx.load()

    try:
        catalog = CatalogLoader().load_file(catalog_file)
    except CatalogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    filters = build_filters(
        catalog,
        settings.engine.default_combine_blue,
        settings.engine.default_combine_red,
    )
    by_header = {flt.header: flt for flt in filters}

    load_path = load_path or settings.engine.snapshot_path
    try:
        if load_path and load_path.exists():
            restore_snapshot(filters, load_snapshot(load_path))
        _apply_marks(by_header, marks)
        _apply_combines(by_header, combines)
    except (FacetsError, ValueError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    shown = visible_entries(filters, catalog.entries)
    reports = {flt.header: _facet_report(flt) for flt in filters}

    if as_json:
        output = {
            "visible": [entry.name for entry in shown],
            "total": len(catalog.entries),
            "facets": reports,
        }
        click.echo(json.dumps(output, indent=2))
    else:
        console = Console()
        console.print(
            f"[bold]Visible entries:[/bold] {len(shown)}/{len(catalog.entries)}"
        )
        for entry in shown:
            console.print(Text(f"  - {entry.name}"))
        for header, report in reports.items():
            if report["sub_hashes"] is None:
                continue
            console.print()
            console.print(_create_facet_table(header, report))

    if save_path:
        save_snapshot(collect_snapshot(filters), save_path)
        if not as_json:
            click.echo(f"Snapshot saved to {save_path}")

    sys.exit(EXIT_SUCCESS)


def main() -> None:
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
