"""
CLI Main - Typer command-line interface.
========================================

Commands:
- ask: Ask a question and stream the answer
- similar: Search a collection for similar passages
- ingest: Chunk and store a text file
- info: Show configuration and cache state
- serve: Run the HTTP API with uvicorn
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from su_advisor.shared.logging import LogContext, get_logger, setup_logging_from_settings

logger = get_logger(__name__)

app = typer.Typer(
    name="su-advisor",
    help="""🎓 SU Advisor - RAG assistant for Sabancı University courses

Answers questions about courses, instructors and graduation requirements
from indexed student reviews, exam texts and the course catalog.

━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

COMMANDS OVERVIEW:

  ask      Ask a question and stream the answer
           -t, --context-type   course_qa, graduation_check, instructor_review, path_advisor
           -m, --major          Student major
           -c, --completed      Completed course code (repeatable)

  similar  Plain vector search in a collection
  ingest   Chunk, embed and store a text file (exam_pdf or review)
  info     Show configuration and embedding cache state
  serve    Run the HTTP API (SSE streaming)

━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

QUICK START:

  su-advisor ingest reviews.txt -t review --course CS412
  su-advisor ask "CS412 zor mu?"
""",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    setup_logging_from_settings()


# ─────────────────────────────────────────────────────────────────────────────
# Ask Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question (wrap in quotes)."),
    context_type: str = typer.Option(
        "course_qa",
        "--context-type", "-t",
        help="Prompt template: course_qa, graduation_check, instructor_review, path_advisor.",
    ),
    major: str = typer.Option("", "--major", "-m", help="Student major, e.g. CS."),
    completed: Optional[list[str]] = typer.Option(
        None,
        "--completed", "-c",
        help="Completed course code. Repeat for several courses.",
    ),
    semester: int = typer.Option(0, "--semester", "-s", help="Current semester (0 = unknown)."),
    show_sources: bool = typer.Option(
        True,
        "--sources/--no-sources",
        help="List the passage ids used as context.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log pipeline state transitions."
    ),
):
    """
    💬 Ask a question and stream the answer.

    Examples:
        su-advisor ask "CS412 zor mu?"
        su-advisor ask "Mezun olmak için neler eksik?" -t graduation_check -m CS -c CS201 -c MATH101
    """
    from su_advisor.service import get_rag_service
    from su_advisor.shared.schemas import AskRequest

    request = AskRequest(
        question=question,
        major=major,
        completed_courses=completed or [],
        current_semester=semester,
        context_type=context_type,
    )

    console.print(f"\n[bold]Question:[/bold] {question}\n")

    async def run():
        service = get_rag_service()
        try:
            terminal = None
            async for chunk in service.ask(request):
                if chunk.done:
                    terminal = chunk
                else:
                    console.print(chunk.chunk, end="", markup=False, highlight=False)
            return terminal
        finally:
            await service.aclose()

    if verbose:
        with LogContext("DEBUG", "su_advisor.rag.gateway"):
            terminal = asyncio.run(run())
    else:
        terminal = asyncio.run(run())
    console.print()

    if terminal is None:
        raise typer.Exit(1)

    if terminal.chunk:
        console.print(f"[red]{terminal.chunk}[/red]")
        raise typer.Exit(1)

    if not terminal.model:
        # Answered without a generation call (e.g. empty question)
        console.print(terminal.answer)

    console.print(
        f"\n[dim]model={terminal.model} prompt_tokens={terminal.prompt_tokens} "
        f"completion_tokens={terminal.completion_tokens}[/dim]"
    )
    if show_sources and terminal.source_chunks:
        console.print("\n[bold]📚 Sources:[/bold]")
        for source_id in terminal.source_chunks:
            console.print(f"  • {source_id}")


# ─────────────────────────────────────────────────────────────────────────────
# Similar Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def similar(
    query: str = typer.Argument(..., help="Query text."),
    collection: Optional[str] = typer.Option(
        None, "--collection", help="Collection name (reviews collection by default)."
    ),
    top_k: int = typer.Option(8, "--top-k", "-k", help="Number of passages."),
    course: Optional[str] = typer.Option(
        None, "--course", help="Only passages with this courseCode."
    ),
):
    """
    🔎 Search a collection for passages similar to the query.

    Examples:
        su-advisor similar "proje teslimi" --course CS412
        su-advisor similar "final sınavı" --collection su_exams -k 3
    """
    from su_advisor.service import get_rag_service
    from su_advisor.shared.utils import normalize_code, truncate_text

    filters = {"courseCode": normalize_code(course)} if course else None

    async def run():
        service = get_rag_service()
        try:
            return await service.get_similar_chunks(query, collection, top_k, filters)
        finally:
            await service.aclose()

    passages = asyncio.run(run())
    if not passages:
        console.print("[yellow]No passages found.[/yellow]")
        raise typer.Exit(0)

    table = Table(show_header=True)
    table.add_column("Id", style="cyan")
    table.add_column("Course")
    table.add_column("Score", justify="right")
    table.add_column("Text")

    for passage in passages:
        table.add_row(
            passage.id,
            passage.course_code,
            f"{passage.score:.3f}",
            truncate_text(passage.text.replace("\n", " "), 80),
        )

    console.print(table)


# ─────────────────────────────────────────────────────────────────────────────
# Ingest Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def ingest(
    input_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="UTF-8 text file."),
    document_type: str = typer.Option(
        "exam_pdf", "--type", "-t", help="Document type: exam_pdf or review."
    ),
    course: str = typer.Option("", "--course", help="Course code stored with every chunk."),
    instructor: str = typer.Option("", "--instructor", help="Instructor name stored with every chunk."),
    batch_id: Optional[str] = typer.Option(None, "--batch-id", help="Batch id (random if omitted)."),
):
    """
    📥 Chunk, embed and store a text file.

    Examples:
        su-advisor ingest cs412_final.txt --course CS412
        su-advisor ingest reviews.txt -t review --course CS412 --instructor "Ahmet Yılmaz"
    """
    from su_advisor.service import get_rag_service
    from su_advisor.shared.utils import normalize_code

    metadata = {}
    if course:
        metadata["courseCode"] = normalize_code(course)
    if instructor:
        metadata["instructor"] = instructor

    content = input_file.read_bytes()

    async def run():
        service = get_rag_service()
        try:
            return await service.ingest_documents(document_type, content, metadata, batch_id)
        finally:
            await service.aclose()

    result = asyncio.run(run())

    if not result.success:
        console.print(f"[red]✗ Ingest failed: {result.error}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[bold green]✓ Stored {result.chunks_stored} chunks "
        f"(batch {result.batch_id})[/bold green]"
    )


# ─────────────────────────────────────────────────────────────────────────────
# Info Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def info():
    """
    ℹ️ Show configuration and embedding cache state.
    """
    from su_advisor import __version__
    from su_advisor.service import get_rag_service
    from su_advisor.shared.config import get_settings

    settings = get_settings()
    host, port = settings.get_chroma_address()

    console.print(Panel(
        f"[bold]SU Advisor[/bold]\n"
        f"Version: {__version__}\n"
        f"Config: config/settings.yaml",
        title="ℹ️ Info",
    ))

    async def run():
        service = get_rag_service()
        try:
            return await service.info()
        finally:
            await service.aclose()

    details = asyncio.run(run())

    table = Table(show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Embedding provider", details["embedding_provider"])
    table.add_row("Generation provider", details["generation_provider"])
    table.add_row("Vector store", f"{settings.vector_store.mode} ({host}:{port})")
    table.add_row("Reviews collection", details["collections"]["reviews"])
    table.add_row("Exams collection", details["collections"]["exams"])
    table.add_row("Rate limit interval", f"{details['rate_limit_interval']}s")
    table.add_row("Prompt templates", str(settings.get_prompts_dir()))

    cache = details["embedding_cache"]
    table.add_row("Embedding cache", f"{cache['size']} entries (max {cache['max_entries'] or '∞'})")

    console.print(table)

    catalog_file = settings.resolve_path(settings.local_context.catalog_file)
    exists = "✓" if catalog_file.exists() else "✗"
    console.print(f"\n[bold]Catalog:[/bold] {catalog_file} [{exists}]")


# ─────────────────────────────────────────────────────────────────────────────
# Serve Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port."),
):
    """
    🚀 Run the HTTP API.

    Serves POST /api/v1/rag/ask (SSE), GET /api/v1/rag/similar,
    POST /api/v1/rag/ingest and GET /health.
    """
    import uvicorn

    from su_advisor.api.server import create_app
    from su_advisor.shared.config import get_settings

    settings = get_settings()
    bind_host = host or settings.api.host
    bind_port = port or settings.api.port

    console.print(f"[bold]🚀 Serving on http://{bind_host}:{bind_port}[/bold]")
    uvicorn.run(create_app(), host=bind_host, port=bind_port, log_config=None)


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def cli():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    cli()
