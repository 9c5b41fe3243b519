"""Command-line interface for the s2tldr project."""

from __future__ import annotations

import asyncio
import csv
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

import httpx
import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from s2tldr.logconfig import configure_logging
from s2tldr.models import BatchSummary, FetchPhase, FetchStatus, NotFound, Resolved, Work
from s2tldr.services import (
    BatchEvent,
    BatchOrchestrator,
    LibraryError,
    LibrarySync,
    OutcomeStore,
    SemanticScholarClient,
    TLDRResolver,
    WorkLibrary,
)
from s2tldr.settings import Settings, get_settings
from s2tldr.utils import truncate_title

console = Console()
app = typer.Typer(help="s2tldr - TL;DR summaries from Semantic Scholar")
work_app = typer.Typer(help="Manage works in the local library")
app.add_typer(work_app, name="work")
logger = structlog.get_logger(__name__)

PHASE_LABELS = {FetchPhase.MATCH: "Matching", FetchPhase.SEARCH: "Searching"}


@dataclass(slots=True)
class Runtime:
    library: WorkLibrary
    outcomes: OutcomeStore
    orchestrator: BatchOrchestrator
    sync: LibrarySync


def _load_settings() -> Settings:
    settings = get_settings()
    configure_logging(settings.log_level)
    return settings


def _build_runtime(
    settings: Settings,
    client: httpx.AsyncClient,
    on_event: Callable[[BatchEvent], None] | None = None,
) -> Runtime:
    library = WorkLibrary(settings)
    outcomes = OutcomeStore(library.engine, library)
    resolver = TLDRResolver(
        SemanticScholarClient(client=client, settings=settings),
        outcomes,
        library,
        search_limit=settings.search_limit,
    )
    orchestrator = BatchOrchestrator(resolver, outcomes, pacing_delay=settings.pacing_delay)
    sync = LibrarySync(library, outcomes, orchestrator, settings, on_event=on_event)
    return Runtime(library=library, outcomes=outcomes, orchestrator=orchestrator, sync=sync)


@contextmanager
def _progress() -> Iterator[Callable[[BatchEvent], None]]:
    """Keep one live status line for the work in flight and print a line per finished work."""
    with console.status("Waiting for works...") as status:

        def report(event: BatchEvent) -> None:
            counts = f"[dim](waiting {event.waiting}; succeeded {event.succeeded}; failed {event.failed})[/dim]"
            if event.kind == "started":
                status.update(f"Fetching: {_short(event.work)} {counts}")
            elif event.kind == "phase":
                status.update(f"{PHASE_LABELS[event.phase]}: {_short(event.work)} {counts}")
            elif event.kind == "completed":
                console.print(f"{_result_label(event)}: {_short(event.work)} [dim]({event.progress:.0f}%)[/dim]")

        yield report


def _result_label(event: BatchEvent) -> str:
    if event.result.status is FetchStatus.FOUND:
        return f"[green]Found[/green] ({event.result.phase.value})"
    if event.result.status is FetchStatus.ERROR:
        return "[red]Error[/red]"
    return "[yellow]Not found[/yellow]"


def _short(work: Work | None) -> str:
    return escape(truncate_title(work.title or "Untitled")) if work else ""


def _print_summary(summary: BatchSummary) -> None:
    if summary.total == 0:
        console.print("[yellow]Nothing to fetch.")
        return
    message = f"[green]Succeeded[/green]: {summary.succeeded}; [red]Failed[/red]: {summary.failed}"
    if summary.errors:
        message += f" ({summary.errors} errors, will retry next run)"
    console.print(message)


def _http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.request_timeout)


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Output settings as JSON"),
) -> None:
    """Display the resolved settings."""
    settings = get_settings()
    if json_output:
        typer.echo(settings.model_dump_json(indent=2))
        return
    table = Table(title="s2tldr Settings")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    for key, value in settings.model_dump().items():
        if key == "s2_api_key" and value:
            value = "***"
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def fetch(
    keys: Optional[list[str]] = typer.Argument(None, help="Work keys; every work when omitted"),
    force: bool = typer.Option(False, "--force", help="Re-fetch works that already have an outcome"),
) -> None:
    """Fetch TL;DR summaries for works in the library."""

    async def runner() -> BatchSummary:
        settings = _load_settings()
        async with _http_client(settings) as client:
            with _progress() as report:
                runtime = _build_runtime(settings, client, on_event=report)
                if keys:
                    works = await runtime.library.get_works(keys)
                    return await runtime.sync.update_items(works, force=force)
                return await runtime.sync.fetch_all(force=force)

    try:
        summary = asyncio.run(runner())
    except LibraryError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    _print_summary(summary)


@app.command()
def show(key: str = typer.Argument(..., help="Work key")) -> None:
    """Print the TL;DR note stored for a work."""

    async def runner() -> None:
        settings = _load_settings()
        library = WorkLibrary(settings)
        outcomes = OutcomeStore(library.engine, library)
        work = await library.require_work(key)
        outcome = await outcomes.get(key)
        console.print(f"[bold]{escape(work.title or 'Untitled')}[/bold]")
        if isinstance(outcome, Resolved):
            note = await library.get_note(outcome.note_key)
            if note is None:
                console.print("[yellow]TL;DR note was removed.")
            else:
                console.print(note.body, markup=False)
        elif isinstance(outcome, NotFound):
            console.print("[yellow]No TL;DR available for this work.")
        else:
            console.print("[yellow]Not fetched yet.")

    try:
        asyncio.run(runner())
    except LibraryError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


@work_app.command("add")
def work_add(
    title: str = typer.Option(..., help="Work title"),
    abstract: Optional[str] = typer.Option(None, help="Work abstract"),
    key: Optional[str] = typer.Option(None, help="Explicit 8-character library key"),
    fetch_tldr: bool = typer.Option(True, "--fetch/--no-fetch", help="Look up a TL;DR right away"),
) -> None:
    """Add a work to the library."""

    async def runner() -> None:
        settings = _load_settings()
        async with _http_client(settings) as client:
            with _progress() as report:
                runtime = _build_runtime(settings, client, on_event=report)
                work = await runtime.library.add_work(title=title, abstract=abstract, key=key)
                console.print(f"[green]Stored[/green] {work.key}: {work.title}")
                summary = await runtime.sync.on_items_added([work.key]) if fetch_tldr else None
        if summary is not None:
            _print_summary(summary)

    try:
        asyncio.run(runner())
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@work_app.command("import")
def work_import(
    file: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False, readable=True),
    fetch_tldr: bool = typer.Option(False, "--fetch/--no-fetch", help="Look up TL;DRs after importing"),
) -> None:
    """Import works from a CSV file (title, abstract, [key])."""

    rows = _parse_works_csv(file)
    if not rows:
        console.print("[yellow]No rows detected in the CSV.")
        return

    async def runner() -> None:
        settings = _load_settings()
        async with _http_client(settings) as client:
            with _progress() as report:
                runtime = _build_runtime(settings, client, on_event=report)
                added: list[str] = []
                for row in rows:
                    work = await runtime.library.add_work(**row)
                    added.append(work.key)
                console.print(f"[green]Imported {len(added)} works[/green].")
                summary = await runtime.sync.on_items_added(added) if fetch_tldr else None
        if summary is not None:
            _print_summary(summary)

    try:
        asyncio.run(runner())
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


@work_app.command("list")
def work_list() -> None:
    """List works with their TL;DR status."""

    async def runner() -> None:
        settings = _load_settings()
        library = WorkLibrary(settings)
        outcomes = OutcomeStore(library.engine, library)
        works = await library.list_works()
        known = await outcomes.snapshot()
        if not works:
            console.print("[yellow]The library is empty.")
            return
        table = Table(title=f"Works ({len(works)})")
        table.add_column("Key")
        table.add_column("Title", overflow="fold")
        table.add_column("TL;DR")
        for work in works:
            outcome = known.get(work.key)
            if isinstance(outcome, Resolved):
                status = f"[green]note {outcome.note_key}[/green]"
            elif isinstance(outcome, NotFound):
                status = "[yellow]not found[/yellow]"
            else:
                status = "-"
            table.add_row(work.key, work.title or "Untitled", status)
        console.print(table)

    asyncio.run(runner())


@work_app.command("delete")
def work_delete(keys: list[str] = typer.Argument(..., help="Work keys to delete")) -> None:
    """Delete works, their notes and their TL;DR outcomes."""

    async def runner() -> list[str]:
        settings = _load_settings()
        async with _http_client(settings) as client:
            runtime = _build_runtime(settings, client)
            deleted = await runtime.library.delete_works(keys)
            await runtime.sync.on_items_deleted(deleted)
            return deleted

    deleted = asyncio.run(runner())
    missing = sorted(set(keys) - set(deleted))
    if deleted:
        console.print(f"[green]Deleted[/green] {', '.join(deleted)}")
    if missing:
        console.print(f"[yellow]Unknown keys:[/yellow] {', '.join(missing)}")


def _parse_works_csv(path: Path) -> list[dict[str, Optional[str]]]:
    rows: list[dict[str, Optional[str]]] = []
    with path.open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        for raw in reader:
            title = (raw.get("title") or "").strip()
            if not title:
                logger.warning("cli.import_skipped_row", row=raw)
                continue
            rows.append(
                {
                    "title": title,
                    "abstract": (raw.get("abstract") or "").strip() or None,
                    "key": (raw.get("key") or "").strip() or None,
                }
            )
    return rows


def main() -> None:
    app()


if __name__ == "__main__":
    main()
