"""Main CLI entry point for the scripture ingestion pipeline."""
import base64
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from utils.logger import setup_logger
from utils.errors import PipelineError
from storage.database import Database
from extraction.llm_client import AnthropicCompletionClient
from monitoring.progress_tracker import ProgressTracker
from monitoring.processing_logger import get_logs_for_document
from monitoring.status import ProcessingStatus, get_processing_status
from pipeline.orchestrator import IngestionPipeline
import config

logger = setup_logger(__name__)
console = Console()

STATUS_STYLES = {
    ProcessingStatus.UPLOADED: "yellow",
    ProcessingStatus.PROCESSING: "cyan",
    ProcessingStatus.COMPLETED: "green",
    ProcessingStatus.FAILED: "red",
}

LEVEL_STYLES = {
    "info": "white",
    "debug": "dim",
    "warn": "yellow",
    "error": "red",
}


def encode_inline_reference(data: bytes, file_type: str) -> str:
    """Build a ``data:`` storage reference holding the file bytes."""
    return f"data:{file_type};base64,{base64.b64encode(data).decode('ascii')}"


@click.group()
def cli():
    """Scripture Ingestion Pipeline - document to Book/Chapter/Verse structure"""
    pass


@cli.command()
@click.option('--file', 'file_path', type=click.Path(exists=True, dir_okay=False), help='Local .txt, .pdf or .json file')
@click.option('--url', help='Remote storage URL of an already uploaded file')
@click.option('--filename', help='File name to record (with --url)')
@click.option('--file-type', type=click.Choice(sorted(set(config.ALLOWED_FILE_TYPES.values()))), help='Media type (with --url)')
@click.option('--size', type=int, default=0, help='Size in bytes (with --url)')
@click.option('--title', help='Optional display title')
def register(file_path, url, filename, file_type, size, title):
    """Register a document for processing."""
    if bool(file_path) == bool(url):
        raise click.UsageError("Provide exactly one of --file or --url")

    db = Database()

    if file_path:
        path = Path(file_path)
        file_type = config.ALLOWED_FILE_TYPES.get(path.suffix.lower())
        if file_type is None:
            console.print("[red]Error: Invalid file type. Please upload PDF, TXT, or JSON files.[/red]")
            raise SystemExit(1)

        data = path.read_bytes()
        if len(data) > config.MAX_UPLOAD_BYTES:
            console.print("[red]Error: File too large. Maximum size is 10MB.[/red]")
            raise SystemExit(1)

        document = db.insert_document(
            filename=path.name,
            file_type=file_type,
            size=len(data),
            raw_text_url=encode_inline_reference(data, file_type),
            title=title
        )
    else:
        if not filename or not file_type:
            raise click.UsageError("--url requires --filename and --file-type")
        document = db.insert_document(
            filename=filename,
            file_type=file_type,
            size=size,
            raw_text_url=url,
            title=title
        )

    console.print(f"\n[green]✓ Document registered[/green]")
    console.print(f"Document ID: [cyan]{document.id}[/cyan]")
    console.print(f"File: {document.filename} ({document.file_type}, {document.size:,} bytes)")


@cli.command()
@click.option('--document-id', required=True, help='Document UUID')
@click.option('--max-chunk-size', type=int, default=config.MAX_CHUNK_SIZE, show_default=True, help='Characters per LLM call')
def process(document_id, max_chunk_size):
    """Parse a registered document into book, chapters and verses."""
    console.print("\n[bold cyan]Document Processing[/bold cyan]\n")

    if not config.ANTHROPIC_API_KEY:
        console.print("[red]Error: ANTHROPIC_API_KEY not set in environment[/red]")
        raise SystemExit(1)

    db = Database()
    llm = AnthropicCompletionClient()
    pipeline = IngestionPipeline(db, llm, max_chunk_size=max_chunk_size)

    with ProgressTracker(console).create_spinner() as progress:
        task = progress.add_task("Parsing document (this may take several minutes)...", total=None)
        try:
            book = pipeline.run(document_id)
            progress.update(task, completed=True)
        except PipelineError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise SystemExit(1)

    console.print(f"\n[green]✓ Processing complete![/green]")
    console.print(f"Book ID: [cyan]{book['id']}[/cyan]")
    console.print(f"Title: [cyan]{book['title']}[/cyan]")
    console.print(f"Chapters: {book['total_chapters']}")
    console.print(f"Verses: {book['total_verses']}")
    console.print(f"Tokens used: {llm.total_tokens_used:,}")


@cli.command()
@click.option('--document-id', required=True, help='Document UUID')
def status(document_id):
    """Show the processing status of a document."""
    db = Database()
    report = get_processing_status(db, document_id)

    style = STATUS_STYLES[report.status]
    console.print(f"\nStatus: [{style}]{report.status.value}[/{style}]")

    if report.error:
        console.print(f"[red]Error: {report.error}[/red]")

    if report.document:
        console.print(f"File: {report.document.filename} ({report.document.file_type})")

    if report.book:
        console.print(f"Book: [cyan]{report.book.title}[/cyan] ({report.book.language})")
        console.print(f"Chapters: {report.book.total_chapters} | Verses: {report.book.total_verses}")
        console.print(f"Analyzed: {report.analyses.completed}/{report.analyses.total}")

    if report.chapters:
        table = Table(title="Chapters")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Verses", justify="right")
        for chapter in report.chapters:
            table.add_row(str(chapter.number), chapter.title or "", str(chapter.verse_count))
        console.print(table)


@cli.command()
@click.option('--document-id', required=True, help='Document UUID')
@click.option('--limit', type=int, default=config.LOG_FETCH_LIMIT, show_default=True)
def logs(document_id, limit):
    """Show the processing log of a document."""
    db = Database()
    entries = get_logs_for_document(db, document_id, limit=limit)

    if not entries:
        console.print("[yellow]No log entries found[/yellow]")
        return

    table = Table(title=f"Processing log for {document_id}")
    table.add_column("Time")
    table.add_column("Level")
    table.add_column("Message")
    for entry in entries:
        style = LEVEL_STYLES.get(entry.level, "white")
        table.add_row(entry.created_at[:19], f"[{style}]{entry.level}[/{style}]", entry.message)
    console.print(table)


@cli.command()
def documents():
    """List registered documents."""
    db = Database()
    rows = db.get_all_documents()

    if not rows:
        console.print("[yellow]No documents registered yet[/yellow]")
        return

    table = Table(title="Documents")
    table.add_column("ID", style="cyan")
    table.add_column("File")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Uploaded")
    for document in rows:
        table.add_row(
            document.id,
            document.filename,
            document.file_type,
            document.status.value,
            document.uploaded_at[:19]
        )
    console.print(table)


if __name__ == '__main__':
    cli()
