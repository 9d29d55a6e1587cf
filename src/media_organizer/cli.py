"""Command line interface for media organizer."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .core.key_resolver import KeyResolver, default_strategies
from .core.mover import ObjectMover
from .core.operation_history import RelocationJournal
from .core.path_builder import PathBuilder
from .core.reconciler import BatchReconciler, HygieneReport, RelocationReport
from .exceptions import ConfigurationError, MediaOrganizerError
from .infrastructure.object_store import ObjectStore, S3ObjectStore
from .infrastructure.repositories import SQLiteCatalogRepository
from .models.config import Config, StorageConfig, load_config

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose)],
        force=True,
    )
    # boto chatter is only useful when debugging the SDK itself
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


def create_object_store(storage: StorageConfig) -> ObjectStore:
    return S3ObjectStore.from_config(storage)


def create_reconciler(cfg: Config, store: ObjectStore, journal: Optional[RelocationJournal]) -> BatchReconciler:
    catalog = SQLiteCatalogRepository(cfg.database.path)
    resolver = KeyResolver(store, default_strategies(
        store, cfg.storage.public_url_base, cfg.reorganize.max_scan
    ))
    return BatchReconciler(
        catalog=catalog,
        store=store,
        resolver=resolver,
        mover=ObjectMover(store, verify_destination=cfg.reorganize.verify_destination),
        path_builder=PathBuilder(cfg.reorganize.append_hash_suffix),
        config=cfg.reorganize,
        journal=journal,
    )


async def _reorganize(cfg: Config, execute: bool, hygiene_only: bool,
                      detach_missing: bool) -> Tuple[Optional[RelocationReport], HygieneReport]:
    store = create_object_store(cfg.storage)
    try:
        journal = RelocationJournal(cfg.journal_path) if execute else None
        reconciler = create_reconciler(cfg, store, journal)

        relocation = None
        if not hygiene_only:
            relocation = await reconciler.run_relocation_pass(dry_run=not execute)
        hygiene = await reconciler.run_hygiene_pass(dry_run=not execute, detach_missing=detach_missing)
        return relocation, hygiene
    finally:
        store.close()


def _print_relocation(report: RelocationReport) -> None:
    title = "Relocation (dry run)" if report.dry_run else "Relocation"
    table = Table(title=title)
    table.add_column("Counter", style="cyan")
    table.add_column("Count", justify="right")
    for name, count in report.counters().items():
        label = "would be moved" if name == "moved" and report.dry_run else name
        table.add_row(label, str(count))
    console.print(table)

    problems = [item for item in report.items if item.status in ("errored", "unresolvable")]
    if problems:
        console.print("\n[red]Items needing attention:[/red]")
        for item in problems[:10]:
            console.print(f"  • link {item.link_id} (file {item.object_id}): {item.status} - {item.message}")
        if len(problems) > 10:
            console.print(f"  ... and {len(problems) - 10} more")

    if report.session_id:
        console.print(f"\nJournal session: [bold]{report.session_id}[/bold]")


def _print_hygiene(report: HygieneReport) -> None:
    title = "Link hygiene (dry run)" if report.dry_run else "Link hygiene"
    table = Table(title=title)
    table.add_column("Check", style="cyan")
    table.add_column("Count", justify="right")
    for name, count in report.to_dict().items():
        if name != "dry_run":
            table.add_row(name, str(count))
    console.print(table)


@click.group()
@click.version_option(version=__version__)
def cli():
    """Keep stored media files in lineage-derived folders."""
    pass


@cli.command()
@click.option('--execute', is_flag=True, help='Apply changes (default is a dry run)')
@click.option('--hygiene-only', is_flag=True, help='Only clean up link rows, skip relocation')
@click.option('--detach-missing', is_flag=True, help='Also detach links whose file is missing from the bucket')
@click.option('--verify-destination', is_flag=True, help='Compare size and ETag before trusting an existing destination')
@click.option('--concurrency', type=click.IntRange(min=1), default=None, help='Relocations run in parallel')
@click.option('--config', type=click.Path(exists=True, path_type=Path), help='Configuration file path')
@click.option('--verbose', is_flag=True, help='Verbose output')
def reorganize(execute: bool, hygiene_only: bool, detach_missing: bool, verify_destination: bool,
               concurrency: Optional[int], config: Optional[Path], verbose: bool):
    """Move linked files to their canonical keys and clean up stale links."""
    setup_logging(verbose)

    try:
        cfg = load_config(config)
        if verify_destination:
            cfg.reorganize.verify_destination = True
        if concurrency is not None:
            cfg.reorganize.concurrency = concurrency
        cfg.validate()
    except ConfigurationError as e:
        if e.missing:
            console.print("[red]Missing required parameters:[/red]")
            for name in e.missing:
                console.print(f"  • {name}")
        else:
            console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)

    console.print(f"\n[bold cyan]{'Executing' if execute else 'Dry run'}[/bold cyan] against bucket "
                  f"[bold]{cfg.storage.bucket}[/bold], catalog {cfg.database.path}")

    try:
        relocation, hygiene = asyncio.run(_reorganize(cfg, execute, hygiene_only, detach_missing))
    except MediaOrganizerError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        sys.exit(1)

    if relocation is not None:
        _print_relocation(relocation)
    _print_hygiene(hygiene)

    if not execute:
        console.print("\n[yellow]Dry run only. Re-run with --execute to apply changes.[/yellow]")


@cli.command()
@click.option('--session-id', help='Show the records of one session')
@click.option('--limit', type=int, default=20, help='Number of sessions to list')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.option('--config', type=click.Path(exists=True, path_type=Path), help='Configuration file path')
def history(session_id: Optional[str], limit: int, output_format: str, config: Optional[Path]):
    """Show journaled relocation sessions."""
    try:
        cfg = load_config(config)
        journal = RelocationJournal(cfg.journal_path)
    except MediaOrganizerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if session_id:
        session = asyncio.run(journal.get_session(session_id))
        if session is None:
            console.print(f"[red]Session {session_id} not found[/red]")
            sys.exit(1)
        records = asyncio.run(journal.get_session_records(session_id))

        if output_format == 'json':
            click.echo(json.dumps({
                "session": session.to_dict(),
                "records": [record.to_dict() for record in records],
            }, indent=2))
            return

        table = Table(title=f"Session {session_id} ({session.status})")
        table.add_column("File", justify="right")
        table.add_column("Source")
        table.add_column("Destination")
        table.add_column("Outcome", style="cyan")
        table.add_column("Error", style="red")
        for record in records:
            table.add_row(
                str(record.object_id),
                record.source_key or "",
                record.destination_key or "",
                record.outcome.value if record.outcome else record.status.value,
                record.error_message or "",
            )
        console.print(table)
        return

    sessions = asyncio.run(journal.list_sessions(limit))
    if output_format == 'json':
        click.echo(json.dumps([session.to_dict() for session in sessions], indent=2))
        return

    if not sessions:
        console.print("No relocation sessions recorded")
        return

    table = Table(title="Relocation sessions")
    table.add_column("Session", style="cyan")
    table.add_column("Started")
    table.add_column("Bucket")
    table.add_column("Status")
    table.add_column("Moved", justify="right")
    table.add_column("Errored", justify="right")
    for session in sessions:
        table.add_row(
            session.session_id,
            session.start_time.strftime("%Y-%m-%d %H:%M:%S"),
            session.bucket,
            session.status,
            str(session.counters.get("moved", 0)),
            str(session.counters.get("errored", 0)),
        )
    console.print(table)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
