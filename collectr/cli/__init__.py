"""Command-line interface."""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from ..config.settings import CollectrConfig, ConfigError, ConfigManager, load_config
from ..core.analyzer import CollectionAnalyzer
from ..core.exporter import CSVExporter
from ..core.matcher import ContentMatcher
from ..core.models import CollectionReport, CopyMode

CATEGORIES = ["movies", "tv", "games", "webtv", "all"]


def setup_logging(settings: CollectrConfig, verbose: bool) -> None:
    """Configure root logging from settings, --verbose forcing DEBUG."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def load_settings(
    config: Path | None,
    library_path: Path | None = None,
    cache_dir: Path | None = None,
) -> CollectrConfig:
    """Load configuration and apply command-line overrides; exits on error."""
    try:
        settings = load_config(config)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if library_path is not None:
        settings.library_paths = settings.library_paths.rebase(library_path)
    if cache_dir is not None:
        settings.cache.cache_dir = str(cache_dir)
    return settings


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Custom configuration file",
)
library_path_option = click.option(
    "--library-path",
    type=click.Path(file_okay=False, path_type=Path),
    help="Library root; overrides all library paths with its standard subdirectories",
)
cache_dir_option = click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the metadata cache file",
)
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")


@click.group()
def main():
    """Plan a portable media collection against a remote library."""


@main.command()
@config_option
@library_path_option
@cache_dir_option
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("out"),
    show_default=True,
    help="Directory for the CSV report",
)
@click.option("--csv-name", help="CSV report file name (defaults to the configured name)")
@click.option("--seed", type=int, help="Random seed for reproducible WebTV selection")
@verbose_option
def analyze(
    config: Path | None,
    library_path: Path | None,
    cache_dir: Path | None,
    output_dir: Path,
    csv_name: str | None,
    seed: int | None,
    verbose: bool,
):
    """Analyze the catalog against the library and write a CSV report."""
    settings = load_settings(config, library_path, cache_dir)
    setup_logging(settings, verbose)

    if seed is not None and settings.webtv_selection is not None:
        settings.webtv_selection.random_seed = seed

    try:
        analyzer = CollectionAnalyzer(settings)
        analyzer.initialize()
        report = asyncio.run(analyzer.analyze_collection())

        csv_path = output_dir / (csv_name or settings.output.default_csv_name)
        CSVExporter().export(report.analyses, csv_path)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        if verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)

    print_report(report)
    click.echo(f"\nCSV report saved to: {csv_path}")


def print_report(report: CollectionReport) -> None:
    stats = report.stats
    totals = stats.space_allocation.totals

    click.echo(f"\n{'=' * 60}")
    click.echo("COLLECTION ANALYSIS SUMMARY")
    click.echo(f"{'=' * 60}")
    click.echo(f"Total items: {stats.total_items}")
    click.echo(f"Found: {stats.found_items}")
    click.echo(f"Missing: {stats.missing_items}")
    click.echo(f"Empty: {stats.empty_items}")
    click.echo(f"Current size: {stats.total_size_gb:.2f} GB")
    click.echo(f"Total required: {totals.total_size_gb:.2f} GB")
    click.echo(f"Download needed: {totals.required_download_size_gb:.2f} GB")
    if report.drive_size_gb > 0:
        complete_percent = totals.total_size_gb / report.drive_size_gb * 100
    else:
        complete_percent = 0.0
    click.echo(
        f"Drive usage: {stats.drive_usage_percent:.1f}% current, "
        f"{complete_percent:.1f}% when complete ({report.drive_size_gb:.0f}GB drive)"
    )

    selection = report.selection
    if selection is not None:
        click.echo(f"\n{'=' * 60}")
        click.echo("WEBTV SELECTION")
        click.echo(f"{'=' * 60}")
        for channel in selection.selected:
            if channel.copy_mode == CopyMode.PARTIAL:
                detail = (
                    f"{len(channel.selected_items)} videos, {channel.selected_size_gb:.1f}GB "
                    f"of {channel.candidate.size_gb:.1f}GB"
                )
            else:
                detail = f"entire, {channel.selected_size_gb:.1f}GB"
            tier = "required" if channel.is_required else "optional"
            click.echo(f"  [{tier}] {channel.name} ({detail})")
        for candidate in selection.excluded:
            click.echo(f"  [excluded] {candidate.name} ({candidate.size_gb:.1f}GB)")
        click.echo(
            f"Selected {selection.total_size_gb:.1f}GB, "
            f"remaining {selection.remaining_space_gb:.1f}GB"
        )
        for warning in selection.warnings:
            click.echo(f"  WARNING: {warning}")

    click.echo("")
    for recommendation in stats.space_warnings.recommendations:
        click.echo(recommendation)


@main.command()
@click.argument("search_term")
@config_option
@library_path_option
@click.option(
    "--category",
    type=click.Choice(CATEGORIES),
    default="all",
    show_default=True,
    help="Library category to search",
)
@click.option(
    "--threshold",
    type=click.FloatRange(0.0, 1.0),
    default=ContentMatcher.DEFAULT_THRESHOLD,
    show_default=True,
    help="Minimum similarity score",
)
@click.option("--max-results", type=click.IntRange(min=1), default=5, show_default=True)
@verbose_option
def find(
    search_term: str,
    config: Path | None,
    library_path: Path | None,
    category: str,
    threshold: float,
    max_results: int,
    verbose: bool,
):
    """Search library directories for SEARCH_TERM."""
    settings = load_settings(config, library_path)
    setup_logging(settings, verbose)

    available = CollectionAnalyzer(settings).discover_content()
    if category == "all":
        pools = {name: getattr(available, name) for name in CATEGORIES if name != "all"}
    else:
        pools = {category: getattr(available, category)}

    matcher = ContentMatcher()
    results = []
    for pool_name, names in pools.items():
        for match in matcher.find_multiple_matches(search_term, names, max_results, threshold):
            results.append((pool_name, match))
    results.sort(key=lambda r: r[1].score, reverse=True)

    if not results:
        click.echo(f"No matches for '{search_term}'")
        return

    click.echo(f"Matches for '{search_term}':")
    for pool_name, match in results[:max_results]:
        marker = " (exact)" if match.is_exact_match else ""
        click.echo(f"  [{pool_name}] {match.matched_name}  score={match.score:.2f}{marker}")


@main.group()
def cache():
    """Manage the metadata cache."""


@cache.command("clear")
@config_option
@cache_dir_option
@verbose_option
def cache_clear(config: Path | None, cache_dir: Path | None, verbose: bool):
    """Remove all cached directory summaries."""
    settings = load_settings(config, cache_dir=cache_dir)
    setup_logging(settings, verbose)

    analyzer = CollectionAnalyzer(settings)
    if analyzer.cache is None:
        click.echo("Cache is disabled in the configuration")
        return
    analyzer.initialize()
    removed = analyzer.clear_cache()
    click.echo(f"Cache cleared ({removed} entries removed)")


@cache.command("stats")
@config_option
@cache_dir_option
@verbose_option
def cache_stats(config: Path | None, cache_dir: Path | None, verbose: bool):
    """Show cache statistics."""
    settings = load_settings(config, cache_dir=cache_dir)
    setup_logging(settings, verbose)

    analyzer = CollectionAnalyzer(settings)
    if analyzer.cache is None:
        click.echo("Cache is disabled in the configuration")
        return
    analyzer.initialize()
    stats = analyzer.cache_stats()

    click.echo("Cache statistics")
    click.echo(f"Total entries: {stats['total_entries']}")
    if stats["total_entries"] > 0:
        click.echo(f"Oldest entry: {datetime.fromtimestamp(stats['oldest_entry']):%Y-%m-%d %H:%M:%S}")
        click.echo(f"Newest entry: {datetime.fromtimestamp(stats['newest_entry']):%Y-%m-%d %H:%M:%S}")


@main.command()
@config_option
@verbose_option
def archives(config: Path | None, verbose: bool):
    """Check reference archives against their expected sizes."""
    settings = load_settings(config)
    setup_logging(settings, verbose)

    entries = settings.catalog.archive_items()
    if not entries:
        click.echo("No archives configured")
        return

    archive_analyzer = CollectionAnalyzer(settings).archive_analyzer
    for info in archive_analyzer.check_for_updates(entries):
        if not info.exists:
            state = "[NOT DOWNLOADED]"
        elif info.needs_update:
            state = "[UPDATE NEEDED]"
        else:
            state = "[UP TO DATE]"
        click.echo(f"{state} {info.name}")
        click.echo(f"    Size: {info.size_gb:.1f}GB / {info.expected_size_gb:.1f}GB expected")
        click.echo(f"    Path: {info.local_path}")

    stats = archive_analyzer.archive_stats(entries)
    click.echo(
        f"\nUp to date: {stats['downloaded_items']}, need updates: {stats['outdated_items']}, "
        f"not downloaded: {stats['missing_items']}"
    )


@main.command("sample-config")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path(ConfigManager.DEFAULT_CONFIG_NAME),
    show_default=True,
    help="Where to write the sample configuration",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def sample_config(output: Path, force: bool):
    """Write a commented sample configuration file."""
    if output.exists() and not force:
        click.echo(f"Error: {output} already exists (use --force to overwrite)", err=True)
        sys.exit(1)

    path = ConfigManager(output).create_sample_config(output)
    click.echo(f"Sample configuration written to {path}")


if __name__ == "__main__":
    main()
