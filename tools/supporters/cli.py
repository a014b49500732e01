"""CLI entry-point for the supporters sync."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DEFAULT_BLOCKLIST_PATH, AssetConfig, LedgerConfig, SupportersConfig
from .errors import SupportersError
from .models import Supporter
from .pipeline import SupporterPipeline

console = Console()

# Filesystem problems and a malformed blocklist abort a run just like API failures
_RUN_ERRORS = (SupportersError, OSError, ValueError)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )
    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def _print_stats(stats: dict) -> None:
    table = Table(title="Sync Summary", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    for key, val in stats.items():
        table.add_row(key.capitalize(), str(val))
    console.print(table)


def _print_bucket(title: str, supporters: list[Supporter], limit: int) -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Name", max_width=40)
    table.add_column("Slug", style="bold")
    table.add_column("Total", justify="right")
    for rank, s in enumerate(supporters[:limit], start=1):
        table.add_row(str(rank), s.name, s.slug, f"{s.total_donations / 100:,.2f}")
    console.print(table)


@click.group()
@click.option("--endpoint", envvar="OC_API_ENDPOINT", default="https://api.opencollective.com/graphql/v2", help="Open Collective GraphQL endpoint")
@click.option("--blocklist", envvar="SUPPORTERS_BLOCKLIST", default=str(DEFAULT_BLOCKLIST_PATH), type=click.Path(exists=True, dir_okay=False, path_type=Path), help="JSON array of slugs to leave out")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, endpoint: str, blocklist: Path, verbose: bool) -> None:
    """Supporters sync – build the docs' sponsor and backer lists.

    Pulls every order of an Open Collective account, merges repeat donors,
    and caches each supporter's avatar on disk.
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["endpoint"] = endpoint
    ctx.obj["blocklist"] = blocklist


def _make_config(ctx: click.Context, *, slug: str, output_dir: Path | None = None) -> SupportersConfig:
    assets = AssetConfig.from_env()
    return SupportersConfig(
        ledger=LedgerConfig(api_endpoint=ctx.obj["endpoint"], account_slug=slug),
        assets=assets if output_dir is None else AssetConfig(output_dir=output_dir, max_concurrency=assets.max_concurrency),
        blocklist_path=ctx.obj["blocklist"],
    )


# ─── Commands ────────────────────────────────────────────────────


@cli.command()
@click.option("--slug", envvar="OC_ACCOUNT_SLUG", default="mochajs", help="Collective to read orders from")
@click.option("--output-dir", envvar="SUPPORTERS_IMAGE_DIR", default="docs/images/supporters", type=click.Path(file_okay=False, path_type=Path), help="Where avatars are written")
@click.option("--json-out", type=click.Path(dir_okay=False, path_type=Path), help="Also write the dataset to this JSON file")
@click.pass_context
def sync(ctx: click.Context, slug: str, output_dir: Path, json_out: Path | None) -> None:
    """Fetch supporters and download their avatars.

    Example: supporters sync --slug mochajs --json-out supporters.json
    """
    cfg = _make_config(ctx, slug=slug, output_dir=output_dir)
    try:
        with SupporterPipeline(cfg) as p:
            console.print(f"[bold]Syncing supporters of [cyan]{slug}[/cyan]...[/bold]")
            dataset = p.run()
    except _RUN_ERRORS as exc:
        console.print(f"[red]✗[/red] Sync failed: {exc}")
        sys.exit(1)

    if json_out is not None:
        json_out.write_text(json.dumps(dataset.to_dict(), indent=2) + "\n", encoding="utf-8")
        console.print(f"  dataset written to {json_out}")
    console.print(f"[green]✓[/green] {dataset.total} supporters, avatars in {output_dir}")
    _print_stats(p.stats)


@cli.command()
@click.option("--slug", envvar="OC_ACCOUNT_SLUG", default="mochajs", help="Collective to read orders from")
@click.option("--limit", default=10, type=int, help="Rows to show per bucket")
@click.pass_context
def preview(ctx: click.Context, slug: str, limit: int) -> None:
    """Show the top sponsors and backers without downloading avatars.

    Example: supporters preview --limit 5
    """
    cfg = _make_config(ctx, slug=slug)
    try:
        with SupporterPipeline(cfg) as p:
            dataset = p.collect()
    except _RUN_ERRORS as exc:
        console.print(f"[red]✗[/red] Preview failed: {exc}")
        sys.exit(1)

    _print_bucket(f"{slug} sponsors", dataset.sponsors, limit)
    _print_bucket(f"{slug} backers", dataset.backers, limit)
    _print_stats(p.stats)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
