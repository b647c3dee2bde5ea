"""CLI commands for the curriculum pipeline.

Ingestion:
- ingest: Import a PDF or scanned image and recover its chapters
- reanalyze: Re-run structural analysis on a stored document
- index / index-status: Deep indexing of the remaining pages

Scheduling:
- schedule: Distribute chapters over the semester's teaching days
- lessons / today / sync / mark: Follow the schedule in class

Data:
- list / delete: Manage documents
- export-ics / backup / restore: Calendar export and JSON snapshots
- serve: Run the web API
"""

import json
from datetime import date
from pathlib import Path

import typer
from rich.console import Console

from curriculum.config.app_config import load_app_config
from curriculum.core.backup import BackupFormatError, export_backup, restore_backup
from curriculum.core.calendar_export import export_calendar
from curriculum.core.deep_indexer import index_progress
from curriculum.core.document_ingestor import (
    DocumentIngestionError,
    ingest_document,
    reanalyze_document,
    resume_indexing,
)
from curriculum.core.lesson_distributor import ScheduleInputError, regenerate_schedule
from curriculum.core.page_extractor import PageExtractionError
from curriculum.core.progress_sync import (
    ProgressSyncError,
    select_active_lesson,
    sync_progress,
)
from curriculum.core.schedule_generator import ScheduleConfig, parse_weekdays
from curriculum.db.database import init_db
from curriculum.db.documents_repository import delete_document, get_document, list_documents
from curriculum.db.lessons_repository import list_lessons, update_lesson_status
from curriculum.llm.client import LLMClient, LLMConfig

app = typer.Typer(
    name="curriculum",
    help="Textbook ingestion and adaptive lesson scheduling.",
    no_args_is_help=True,
)

console = Console()

STATUS_STYLES = {
    "pending": "white",
    "planned": "cyan",
    "completed": "green",
    "skipped": "dim",
}


@app.callback()
def main(
    db: str | None = typer.Option(None, "--db", help="SQLite database file"),
) -> None:
    """Open (and create if needed) the database before any command."""
    config = load_app_config()
    init_db(Path(db) if db else config.db_path)


def _make_client(no_ai: bool, provider: str | None, model: str | None) -> LLMClient | None:
    """Build the content-generation client, or None to start at TOC parsing."""
    if no_ai:
        return None
    return LLMClient(config=LLMConfig.from_app_config(provider=provider), model=model)


def _get_document_or_exit(document_id: int):
    document = get_document(document_id)
    if document is None:
        console.print(f"[red]✗ Document not found: {document_id}[/red]")
        raise typer.Exit(code=1)
    return document


def _parse_date_or_exit(value: str, label: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print(f"[red]✗ Invalid {label} date (expected YYYY-MM-DD): {value}[/red]")
        raise typer.Exit(code=1)


def _print_progress(progress: int) -> None:
    console.print(f"  [dim]indexed:[/dim] {progress}%")


# =============================================================================
# INGESTION
# =============================================================================


@app.command()
def ingest(
    file: str = typer.Argument(..., help="Path to a PDF or image"),
    title: str | None = typer.Option(None, "--title", "-t", help="Document title"),
    subject: str = typer.Option("", "--subject", "-s", help="Subject (e.g. Physics)"),
    grade: str | None = typer.Option(None, "--grade", "-g", help="Grade level"),
    language: str = typer.Option("en", "--language", "-l", help="OCR language: en, ar"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip the content service"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="lmstudio, openai"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model override"),
    wait: bool = typer.Option(
        True, "--wait/--no-wait", help="Index the remaining pages before exiting"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Ingest again if already stored"),
) -> None:
    """Ingest a textbook and recover its chapters."""
    file_path = Path(file).expanduser().resolve()
    client = _make_client(no_ai, provider, model)

    try:
        result = ingest_document(
            file_path=file_path,
            title=title,
            subject=subject,
            grade=grade,
            language=language,
            client=client,
            start_deep_index=False,
            force=force,
        )
    except (DocumentIngestionError, PageExtractionError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Ingested '{result.title}'[/green]")
    console.print(f"  [dim]document_id:[/dim] {result.document_id}")
    console.print(f"  [dim]language:[/dim]    {result.detected_language}")
    console.print(f"  [dim]pages:[/dim]       {result.total_pages} ({result.pages_sampled} sampled)")
    console.print(f"  [dim]method:[/dim]      {result.outline.method}")
    console.print(f"  [dim]chapters:[/dim]    {len(result.outline.chapters)}")
    for chapter in result.outline.chapters:
        console.print(f"    • {chapter.title}")

    if result.outline.is_fallback:
        console.print(
            "[yellow]⚠ No chapters detected - lessons will be numbered generically[/yellow]"
        )

    if result.pages_sampled >= result.total_pages:
        return

    if wait:
        console.print("[blue]Indexing remaining pages...[/blue]")
        try:
            resume_indexing(result.document_id, background=False, on_progress=_print_progress)
        except PageExtractionError as e:
            console.print(f"[red]✗ Indexing failed: {e}[/red]")
            raise typer.Exit(code=1)
        console.print("[green]✓ Indexing complete[/green]")
    else:
        console.print(
            f"  Remaining pages pending: curriculum index {result.document_id}"
        )


@app.command()
def reanalyze(
    document_id: int = typer.Argument(..., help="Document ID"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip the content service"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="lmstudio, openai"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model override"),
) -> None:
    """Re-run chapter detection (existing lessons are kept until rescheduled)."""
    client = _make_client(no_ai, provider, model)

    try:
        outline, report = reanalyze_document(document_id, client=client)
    except (DocumentIngestionError, PageExtractionError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ {len(outline.chapters)} chapters ({outline.method})[/green]")
    for attempt in report.attempts:
        console.print(f"  [dim]{attempt['strategy']}:[/dim] {attempt['result']}")


@app.command()
def index(
    document_id: int = typer.Argument(..., help="Document ID"),
) -> None:
    """Index the pages not yet read (resumes an interrupted run)."""
    _get_document_or_exit(document_id)

    try:
        indexer = resume_indexing(document_id, background=False, on_progress=_print_progress)
    except (DocumentIngestionError, PageExtractionError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if indexer is None:
        console.print("[green]✓ Already fully indexed[/green]")
        return

    report = indexer.report
    console.print(f"[green]✓ Indexing {report.status}[/green]")
    console.print(f"  [dim]pages:[/dim] {report.pages_processed}")
    console.print(f"  [dim]chars:[/dim] {report.chars_appended:,}")


@app.command(name="index-status")
def index_status(
    document_id: int = typer.Argument(..., help="Document ID"),
) -> None:
    """Show deep indexing progress."""
    progress = index_progress(document_id)
    if progress is None:
        console.print(f"[red]✗ Document not found: {document_id}[/red]")
        raise typer.Exit(code=1)

    console.print(f"  [dim]status:[/dim]   {progress['status']}")
    console.print(
        f"  [dim]pages:[/dim]    {progress['indexed_pages']}/{progress['total_pages']}"
        f" ({progress['progress']}%)"
    )


# =============================================================================
# SCHEDULING
# =============================================================================


@app.command()
def schedule(
    document_id: int = typer.Argument(..., help="Document ID"),
    start: str = typer.Option(..., "--start", help="Semester start (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", help="Semester end (YYYY-MM-DD)"),
    days: str = typer.Option(
        ..., "--days", "-d", help="Teaching weekdays, e.g. 'sun,tue' or '0,2'"
    ),
    holiday: list[str] | None = typer.Option(
        None, "--holiday", help="Date to skip (repeatable)"
    ),
) -> None:
    """Generate (or regenerate) the lesson schedule of a document."""
    start_date = _parse_date_or_exit(start, "start")
    end_date = _parse_date_or_exit(end, "end")
    holidays = {_parse_date_or_exit(h, "holiday") for h in holiday or []}

    try:
        weekdays = parse_weekdays(d for d in days.split(",") if d.strip())
        config = ScheduleConfig(
            start_date=start_date,
            end_date=end_date,
            weekly_pattern=weekdays,
            holidays=holidays,
        )
        result = regenerate_schedule(document_id, config)
    except (ValueError, ScheduleInputError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ {result.lessons_created} lessons scheduled[/green]")
    console.print(
        f"  [dim]from:[/dim] {result.teaching_days[0].isoformat()}"
        f"  [dim]to:[/dim] {result.teaching_days[-1].isoformat()}"
    )
    if result.used_fallback_titles:
        console.print("[yellow]⚠ Lessons use generic numbered titles[/yellow]")


@app.command()
def lessons(
    document_id: int = typer.Argument(..., help="Document ID"),
    status: str | None = typer.Option(None, "--status", help="Filter by status"),
) -> None:
    """List a document's lessons in date order."""
    from rich.table import Table

    document = _get_document_or_exit(document_id)
    items = list_lessons(document_id, status=status)

    if not items:
        console.print("[yellow]No lessons. Run: curriculum schedule ...[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", title=document.title)
    table.add_column("#", justify="right", width=4)
    table.add_column("ID", justify="right", width=6)
    table.add_column("Date", width=10)
    table.add_column("Week", justify="right", width=4)
    table.add_column("Title")
    table.add_column("Status", width=10)

    for position, lesson in enumerate(items, start=1):
        marker = "→" if position == document.current_lesson_pointer and status is None else ""
        style = STATUS_STYLES.get(lesson.status, "white")
        table.add_row(
            f"{marker}{position}",
            str(lesson.lesson_id),
            lesson.date.isoformat(),
            str(lesson.week_number),
            lesson.title,
            f"[{style}]{lesson.status}[/{style}]",
        )

    console.print(table)


@app.command()
def today(
    document_id: int = typer.Argument(..., help="Document ID"),
    on: str | None = typer.Option(None, "--on", help="Reference date (YYYY-MM-DD)"),
) -> None:
    """Show today's lesson, or the next one."""
    _get_document_or_exit(document_id)
    reference = _parse_date_or_exit(on, "reference") if on else None

    active = select_active_lesson(document_id, today=reference)
    if active is None:
        console.print("[yellow]No upcoming lessons[/yellow]")
        return

    label = "Today" if active.kind == "today" else "Next"
    lesson = active.lesson
    console.print(f"[bold]{label}:[/bold] {lesson.title}")
    console.print(f"  [dim]date:[/dim]    {lesson.date.isoformat()}")
    console.print(f"  [dim]context:[/dim] {lesson.content_context}")
    console.print(f"  [dim]id:[/dim]      {lesson.lesson_id}")


@app.command()
def sync(
    document_id: int = typer.Argument(..., help="Document ID"),
    lesson_id: int = typer.Argument(..., help="Lesson the class is actually at"),
) -> None:
    """Mark "I am actually here" on a lesson."""
    try:
        result = sync_progress(document_id, lesson_id)
    except ProgressSyncError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"[green]✓ Pointer {result.previous_pointer} → {result.current_pointer}[/green]"
    )
    if result.position < result.previous_pointer:
        console.print(
            f"[yellow]⚠ Lesson is at position {result.position}, behind the pointer; "
            "the pointer was not moved back[/yellow]"
        )


@app.command()
def mark(
    lesson_id: int = typer.Argument(..., help="Lesson ID"),
    status: str = typer.Argument(..., help="pending, planned, completed, skipped"),
) -> None:
    """Set a lesson's status."""
    try:
        updated = update_lesson_status(lesson_id, status)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if not updated:
        console.print(f"[red]✗ Lesson not found: {lesson_id}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Lesson {lesson_id} → {status}[/green]")


# =============================================================================
# DATA
# =============================================================================


@app.command(name="list")
def list_command() -> None:
    """List ingested documents."""
    from rich.table import Table

    documents = list_documents()
    if not documents:
        console.print("[yellow]No documents. Run: curriculum ingest FILE[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right", width=4)
    table.add_column("Title")
    table.add_column("Lang", width=4)
    table.add_column("Chapters", justify="right", width=8)
    table.add_column("Indexed", width=16)
    table.add_column("Pointer", justify="right", width=7)

    for document in documents:
        table.add_row(
            str(document.document_id),
            document.title,
            document.detected_language,
            str(len(document.chapters)),
            f"{document.indexed_pages}/{document.total_pages} {document.indexing_status}",
            str(document.current_lesson_pointer),
        )

    console.print(table)


@app.command()
def delete(
    document_id: int = typer.Argument(..., help="Document ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a document and its lessons."""
    document = _get_document_or_exit(document_id)

    if not yes and not typer.confirm(f"Delete '{document.title}' and its lessons?"):
        raise typer.Exit(code=0)

    delete_document(document_id)
    console.print(f"[green]✓ Deleted {document_id}[/green]")


@app.command(name="export-ics")
def export_ics(
    document_id: int = typer.Argument(..., help="Document ID"),
    output: str | None = typer.Option(None, "--output", "-o", help="Output .ics file"),
) -> None:
    """Export the lesson schedule as an iCalendar file."""
    document = _get_document_or_exit(document_id)
    items = list_lessons(document_id)
    if not items:
        console.print("[red]✗ No lessons to export[/red]")
        raise typer.Exit(code=1)

    output_path = Path(output) if output else Path(f"lessons-{document_id}.ics")
    output_path.write_text(export_calendar(items, calendar_name=document.title), encoding="utf-8")

    console.print(f"[green]✓ {len(items)} events → {output_path}[/green]")


@app.command()
def backup(
    output: str | None = typer.Option(None, "--output", "-o", help="Output .json file"),
) -> None:
    """Write a JSON snapshot of all documents and lessons."""
    data = export_backup()
    output_path = Path(output) if output else Path(f"curriculum-backup-{date.today().isoformat()}.json")
    output_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    console.print(f"[green]✓ Backup written to {output_path}[/green]")
    console.print(f"  [dim]documents:[/dim] {len(data['documents'])}")
    console.print(f"  [dim]lessons:[/dim]   {len(data['lessons'])}")


@app.command()
def restore(
    file: str = typer.Argument(..., help="Backup .json file"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace all data with a JSON snapshot."""
    path = Path(file)
    if not path.exists():
        console.print(f"[red]✗ File not found: {path}[/red]")
        raise typer.Exit(code=1)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Invalid JSON: {e}[/red]")
        raise typer.Exit(code=1)

    if not yes and not typer.confirm("This replaces ALL current data. Continue?"):
        raise typer.Exit(code=0)

    try:
        counts = restore_backup(data)
    except BackupFormatError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"[green]✓ Restored {counts['documents']} documents, {counts['lessons']} lessons[/green]"
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the web API."""
    import uvicorn

    console.print(f"[blue]Serving on http://{host}:{port}[/blue]")
    uvicorn.run("curriculum.web.api:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
