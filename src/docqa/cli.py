"""Command line interface for docqa."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from docqa.config import AppConfig
from docqa.errors import DocQAError, DocumentNotFound, IngestionError
from docqa.index.indexer import IngestStats
from docqa.index.search import NO_ANSWER
from docqa.service import KnowledgeBase
from docqa.utils.files import guess_content_type, iter_text_paths

console = Console()
app = typer.Typer(help="docqa - ask questions over your text documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_config(db: Optional[Path], qdrant_url: Optional[str]) -> AppConfig:
    config = AppConfig.from_env()
    if db is not None:
        config.db_path = db
    if qdrant_url is not None:
        config.qdrant_url = qdrant_url
    return config


def _open(db: Optional[Path], qdrant_url: Optional[str]) -> KnowledgeBase:
    config = _load_config(db, qdrant_url)
    try:
        return KnowledgeBase.from_config(config, Path.cwd())
    except DocQAError as exc:
        console.print(f"[red]Knowledge base unavailable:[/red] {exc}")
        raise typer.Exit(code=1) from exc


DbOption = typer.Option(None, "--db", help="SQLite database path")
QdrantOption = typer.Option(None, "--qdrant-url", help="Qdrant server URL (embedded store if unset)")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command()
def ingest(
    inputs: List[Path] = typer.Argument(
        ..., help="Text files or directories to ingest.", resolve_path=True
    ),
    title: Optional[str] = typer.Option(
        None, "--title", help="Document title (single file only; defaults to the file name)"
    ),
    db: Optional[Path] = DbOption,
    qdrant_url: Optional[str] = QdrantOption,
    verbose: bool = VerboseOption,
) -> None:
    """Ingest one or more text documents."""
    _setup_logging(verbose)
    paths = list(iter_text_paths(inputs))
    if not paths:
        console.print("[yellow]No text files found.[/yellow]")
        return
    if title is not None and len(paths) > 1:
        raise typer.BadParameter("--title can only be used with a single file")

    kb = _open(db, qdrant_url)
    stats = IngestStats()
    try:
        for path in paths:
            try:
                document = kb.ingest(
                    path.read_bytes(), title or path.stem, guess_content_type(path)
                )
            except (IngestionError, OSError) as exc:
                console.print(f"[red]Failed[/red] {path}: {exc}")
                stats.increment("failed", path)
                continue
            chunk_count = len(kb.store.find_chunks_by_document(document.id))
            console.print(f"{path} -> document {document.id} ({chunk_count} chunks)")
            stats.increment("ingested" if chunk_count else "empty", path)
    finally:
        kb.close()

    console.print(
        f"Ingested: {stats.ingested}, empty: {stats.empty}, failed: {stats.failed}"
    )
    if stats.failed:
        raise typer.Exit(code=1)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question text"),
    show_hits: bool = typer.Option(False, "--show-hits", help="Print every resolved passage"),
    db: Optional[Path] = DbOption,
    qdrant_url: Optional[str] = QdrantOption,
    verbose: bool = VerboseOption,
) -> None:
    """Answer a question with the most similar stored passage."""
    _setup_logging(verbose)
    kb = _open(db, qdrant_url)
    try:
        if show_hits:
            passages = kb.retrieve(question)
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Score")
            table.add_column("Document")
            table.add_column("Chunk")
            table.add_column("Passage")
            for passage in passages:
                table.add_row(
                    f"{passage.score:.4f}",
                    str(passage.hit.document_id),
                    str(passage.hit.chunk_index),
                    passage.content.replace("\n", " ")[:180],
                )
            console.print(table)
            answer = passages[0].content if passages else NO_ANSWER
        else:
            answer = kb.answer(question)
        console.print(answer)
    except DocQAError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        kb.close()


@app.command()
def documents(
    db: Optional[Path] = DbOption,
    qdrant_url: Optional[str] = QdrantOption,
) -> None:
    """List stored documents."""
    kb = _open(db, qdrant_url)
    try:
        docs = kb.list_documents()
    except DocQAError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        kb.close()

    if not docs:
        console.print("[yellow]No documents stored.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Type")
    table.add_column("Created")
    for doc in docs:
        table.add_row(str(doc.id), doc.title, doc.content_type, doc.created_at or "")
    console.print(table)


@app.command()
def show(
    document_id: int = typer.Argument(..., help="Document id"),
    db: Optional[Path] = DbOption,
    qdrant_url: Optional[str] = QdrantOption,
) -> None:
    """Print one document and its chunks."""
    kb = _open(db, qdrant_url)
    try:
        document = kb.get_document(document_id)
        chunks = kb.store.find_chunks_by_document(document_id)
    except DocumentNotFound as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        kb.close()

    console.print(f"[bold]{document.title}[/bold] ({document.content_type})")
    for chunk in chunks:
        console.print(f"[{chunk.chunk_index}] {chunk.content}")


@app.command()
def status(
    db: Optional[Path] = DbOption,
    qdrant_url: Optional[str] = QdrantOption,
) -> None:
    """Show document, chunk and vector counts."""
    kb = _open(db, qdrant_url)
    try:
        counts = kb.status()
    except DocQAError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        kb.close()
    console.print(
        f"Documents: {counts.documents}, chunks: {counts.chunks}, vectors: {counts.vectors}"
    )
    if counts.vectors != counts.chunks:
        console.print("[yellow]Vector and chunk counts differ.[/yellow]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    import uvicorn

    console.print(f"Starting docqa API on http://{host}:{port}")
    uvicorn.run("docqa.web.app:app", host=host, port=port, reload=False, log_level="info")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
