"""
TaxRAG - CLI Entry Point
-------------------------
Exposes Typer commands for ingestion and question answering.

Usage:
    python -m taxrag.main ingest                 # Clear the store, ingest pdfs/
    python -m taxrag.main ingest --pdf-dir docs  # Ingest another folder
    python -m taxrag.main ask                    # Interactive Q&A
    python -m taxrag.main ask --query "..."      # Single-shot query
    python -m taxrag.main status                 # Show the last ingestion report
"""
from __future__ import annotations

import json
from typing import Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from taxrag.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from taxrag.errors import ChunkStoreError, ConfigurationError, QueryFailedError
from taxrag.ingestion.pipeline import discover_documents
from taxrag.ingestion.report import load_report, save_report
from taxrag.providers import build_ingestion_pipeline, build_query_pipeline, make_store
from taxrag.schemas import DocumentState, IngestionReport
from taxrag.serving.pipeline import QueryResult
from taxrag.utils.logger import setup_logger

app = typer.Typer(
    name="taxrag",
    help="Nigeria tax-law Q&A - retrieval-augmented generation CLI",
    add_completion=False,
)
console = Console()

_STATE_STYLE = {
    DocumentState.STORED: "green",
    DocumentState.SKIPPED: "yellow",
    DocumentState.FAILED: "red",
}


# --- Helpers ------------------------------------------------------------------

def _bootstrap(config: str) -> Settings:
    load_dotenv()
    try:
        settings = load_settings(config)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    setup_logger(log_level=settings.logging.level, log_file=settings.logging.file)
    return settings


# --- Commands -----------------------------------------------------------------

@app.command()
def ingest(
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"),
    pdf_dir: Optional[str] = typer.Option(
        None, "--pdf-dir", help="Folder of PDFs (default: ingestion.pdf_dir)"
    ),
) -> None:
    """
    Replace the chunk store's contents with the PDFs in the folder.

    \b
    Steps per document:
      1. Extract text (PyMuPDF)
      2. Split into 500-word chunks
      3. Embed each chunk
      4. Store the chunks (only if every chunk embedded)
    """
    settings = _bootstrap(config)
    folder = pdf_dir or settings.ingestion.pdf_dir

    console.print()
    console.print(
        Panel(
            "[bold cyan]TaxRAG[/bold cyan]\n[white]Ingestion - Extract, Chunk, Embed, Store[/white]",
            box=box.DOUBLE_EDGE,
            expand=False,
        )
    )

    paths = discover_documents(folder)
    if not paths:
        console.print(f'[yellow]No PDF files found in "{folder}".[/yellow]')
        raise typer.Exit(0)
    console.print(f"[green][OK] Found {len(paths)} PDF file(s)[/green]")

    try:
        store = make_store(settings)
    except (ChunkStoreError, ConfigurationError) as exc:
        console.print(f"[red]Cannot open chunk store: {exc}[/red]")
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        tasks: dict[str, int] = {}

        def on_progress(source: str, done: int, total: int) -> None:
            if source not in tasks:
                tasks[source] = progress.add_task(f"[cyan]Embedding {source}[/cyan]", total=total)
            progress.update(tasks[source], completed=done)

        try:
            pipeline = build_ingestion_pipeline(settings, store, on_progress=on_progress)
            report = pipeline.run(paths)
        except (ChunkStoreError, ConfigurationError) as exc:
            console.print(f"[red]Ingestion aborted: {exc}[/red]")
            raise typer.Exit(1)
        finally:
            store.close()

    save_report(report, settings.ingestion.report_path)
    _print_report(report)


@app.command()
def ask(
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"),
    query: Optional[str] = typer.Option(
        None, "--query", "-q", help="Single query (omit for interactive loop)"
    ),
    json_out: bool = typer.Option(
        False, "--json", help="Print result as JSON (single-query mode only)"
    ),
) -> None:
    """
    Answer questions from the ingested documents.

    \b
    Steps per query:
      1. Embed the question
      2. Retrieve the top-k chunks (exhaustive or indexed strategy)
      3. Assemble cited context and build the grounded prompt
      4. Generate the answer
    """
    settings = _bootstrap(config)

    try:
        with console.status("[cyan]Connecting to chunk store...[/cyan]"):
            store = make_store(settings)
            pipeline = build_query_pipeline(settings, store)
    except (ChunkStoreError, ConfigurationError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green][OK] Store ready[/green] | {store.count():,} chunks "
        f"| strategy={settings.retrieval.strategy} | top_k={settings.retrieval.top_k}"
    )

    # --- Single-shot mode -----------------------------------------------------
    if query:
        try:
            if json_out:
                code, payload = pipeline.respond(query)
                console.print_json(json.dumps(payload))
            else:
                with console.status("[cyan]Thinking...[/cyan]"):
                    result = pipeline.query(query)
                _print_result(result)
                code = 200
        except (QueryFailedError, ValueError) as exc:
            console.print(f"[red]{exc}[/red]")
            code = 500
        finally:
            store.close()
        raise typer.Exit(0 if code == 200 else 1)

    # --- Interactive loop -----------------------------------------------------
    console.print()
    console.print("[bold]Ask anything about Nigeria's tax laws and reforms.[/bold]")
    console.print("[dim]Type 'exit', 'quit', or press Ctrl+C to quit.[/dim]\n")

    while True:
        try:
            raw = console.input("[bold cyan]You[/bold cyan] > ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Goodbye.[/dim]")
            break

        if not raw:
            continue
        if raw.lower() in {"exit", "quit", "q"}:
            console.print("[dim]Goodbye.[/dim]")
            break

        with console.status("[cyan]Thinking...[/cyan]"):
            try:
                result = pipeline.query(raw)
            except QueryFailedError as exc:
                console.print(f"[red]{exc}[/red]\n")
                continue
        _print_result(result)

    store.close()


@app.command()
def status(
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"),
) -> None:
    """Show the report of the last ingestion run."""
    settings = _bootstrap(config)
    report = load_report(settings.ingestion.report_path)
    if report is None:
        console.print("[yellow]No ingestion report found.  Run: python -m taxrag.main ingest[/yellow]")
        raise typer.Exit(1)
    _print_report(report)


# --- Rendering ----------------------------------------------------------------

def _print_report(report: IngestionReport) -> None:
    table = Table("Document", "State", "Chars", "Chunks", "Stored", "Reason", box=box.SIMPLE)
    for doc in report.documents:
        style = _STATE_STYLE.get(doc.state, "white")
        table.add_row(
            doc.source,
            f"[{style}]{doc.state.value}[/{style}]",
            f"{doc.characters:,}",
            str(doc.chunks_produced),
            str(doc.chunks_stored),
            doc.reason[:60],
        )
    console.print(table)
    console.print(
        Panel(
            f"  Stored   : {report.count(DocumentState.STORED)}\n"
            f"  Skipped  : {report.count(DocumentState.SKIPPED)}\n"
            f"  Failed   : {report.count(DocumentState.FAILED)}\n"
            f"  Chunks   : {report.total_chunks:,}\n"
            f"  Finished : {report.completed_at or '-'}",
            title="[bold]Ingestion[/bold]",
            box=box.DOUBLE_EDGE,
            border_style="green",
            expand=False,
        )
    )


def _print_result(result: QueryResult) -> None:
    """Render a QueryResult to the terminal using Rich."""
    console.print()
    console.print(
        Panel(Markdown(result.answer), title="[bold green]Answer[/bold green]", border_style="green")
    )
    if result.sources:
        table = Table("No.", "Source", "Similarity", box=box.SIMPLE, header_style="bold dim")
        for i, src in enumerate(result.sources, start=1):
            table.add_row(str(i), src.source, src.similarity)
        console.print(table)
    console.print(
        f"[dim]"
        f"embed={result.embedding_ms:.0f}ms  "
        f"retrieve={result.retrieval_ms:.0f}ms  "
        f"generate={result.generation_ms:.0f}ms  "
        f"total={result.total_ms / 1000:.1f}s"
        f"[/dim]\n"
    )
    logger.debug(f"[CLI] Rendered answer with {len(result.sources)} source(s)")


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
