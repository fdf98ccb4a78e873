"""
vidrecall CLI
Search transcript chunks and inspect the chunk store from the terminal
"""

import asyncio
import logging
import os

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table


app = typer.Typer(help="vidrecall transcript search CLI")
console = Console()

DEFAULT_DB = os.path.join("data", "vidrecall.db")


def _format_timestamp(seconds: float | None) -> str:
    if seconds is None:
        return "-"
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _snippet(text: str, max_len: int = 80) -> str:
    text = " ".join(text.split())
    if len(text) <= max_len:
        return text
    return text[: max_len - 1].rstrip() + "…"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Hybrid vector + keyword search over video transcripts"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command("search")
def search(
    query: str = typer.Argument(..., help="Search text"),
    db: str = typer.Option(DEFAULT_DB, help="Path to database file"),
    mode: str = typer.Option(None, help="vector, keyword or hybrid (config default if unset)"),
    limit: int = typer.Option(None, help="Maximum results (config default if unset)"),
    decay: bool = typer.Option(False, "--decay/--no-decay", help="Favor recent videos"),
    half_life: float = typer.Option(None, "--half-life", help="Decay half-life in days"),
    videos: bool = typer.Option(False, "--videos", help="Group results by video"),
    debug: bool = typer.Option(False, "--debug", help="Print per-stage timings"),
):
    """Search transcript chunks"""
    from vidrecall.retrieval.aggregate import aggregate_by_video
    from vidrecall.retrieval.errors import QueryValidationError, RetrievalError
    from vidrecall.retrieval.hybrid_retriever import HybridRetriever

    if not os.path.exists(db):
        console.print(f"\n[red]Database not found: {db}[/red]\n")
        raise typer.Exit(1)

    retriever = HybridRetriever(db)
    if debug:
        retriever.debug_enabled = True
    try:
        response = asyncio.run(
            retriever.retrieve(
                query,
                mode=mode,
                limit=limit,
                temporal_decay=decay,
                half_life_days=half_life,
            ),
        )
    except QueryValidationError as e:
        console.print(f"[red]Invalid query: {e.message}[/red]")
        raise typer.Exit(2)
    except RetrievalError as e:
        console.print(f"[red]Search failed ({e.source}): {e.message}[/red]")
        raise typer.Exit(1)

    if response.degraded:
        console.print(
            f"[yellow]Degraded results: {', '.join(response.failed_sources)} unavailable[/yellow]",
        )

    if not response.results:
        console.print(f"\nNo results for: {query}\n")
        return

    if videos:
        table = Table(title=f"Videos for '{query}' ({response.mode})")
        table.add_column("#", style="dim")
        table.add_column("Score", style="green")
        table.add_column("Title", style="cyan")
        table.add_column("Channel", style="magenta")
        table.add_column("Chunks", style="yellow")
        table.add_column("Age")
        table.add_column("Best match")

        for rank, video in enumerate(aggregate_by_video(response.results), start=1):
            table.add_row(
                str(rank),
                f"{video.score:.4f}",
                video.title,
                video.channel or "-",
                str(video.matched_chunks),
                video.freshness or "-",
                f"[{_format_timestamp(video.best_chunk.start_time)}] "
                f"{_snippet(video.best_chunk.content)}",
            )
    else:
        table = Table(title=f"Chunks for '{query}' ({response.mode})")
        table.add_column("#", style="dim")
        table.add_column("Score", style="green")
        table.add_column("Kind", style="dim")
        table.add_column("Video", style="cyan")
        table.add_column("At", style="yellow")
        table.add_column("Content")

        for rank, result in enumerate(response.results, start=1):
            table.add_row(
                str(rank),
                f"{result.similarity:.4f}",
                result.score_kind,
                result.video_title,
                _format_timestamp(result.start_time),
                _snippet(result.content),
            )

    console.print(table)

    if debug and retriever.last_debug:
        console.print("\n[bold]Timings (ms):[/bold]")
        for stage, ms in retriever.last_debug["timings"].items():
            console.print(f"  {stage}: {ms:.1f}")
        console.print()


@app.command("stats")
def stats(
    db: str = typer.Option(DEFAULT_DB, help="Path to database file"),
):
    """Show chunk counts and retrieval configuration"""
    from vidrecall.retrieval.chunk_store import ChunkStore
    from vidrecall.retrieval.retrieval_config import get_retrieval_config_manager

    console.print("\n[bold]vidrecall Statistics[/bold]")
    console.print(f"Database: {db}\n")

    manager = get_retrieval_config_manager()
    cfg = manager.get_hybrid_config()
    emb = manager.get_embeddings_section()

    config_table = Table(title="Retrieval Configuration")
    config_table.add_column("Setting", style="cyan")
    config_table.add_column("Value", style="green")
    config_table.add_row("default_mode", cfg.default_mode)
    config_table.add_row("default_limit", str(cfg.default_limit))
    config_table.add_row("vector_threshold", str(cfg.vector_threshold))
    config_table.add_row("rrf_k", str(cfg.rrf_k))
    config_table.add_row("half_life_days", str(cfg.half_life_days))
    config_table.add_row("partial_failure", cfg.partial_failure)
    config_table.add_row("embedding provider", str(emb.get("provider", "local-sbert")))
    config_table.add_row("embedding dim", str(cfg.embedding_dim))
    console.print(config_table)

    if not os.path.exists(db):
        console.print(f"\n[yellow]Database not found: {db}[/yellow]\n")
        raise typer.Exit(1)

    total, embedded = asyncio.run(ChunkStore(db).count_chunks())
    console.print(f"\n[bold]Total chunks:[/bold] {total}")
    console.print(f"[bold]With embeddings:[/bold] {embedded}")
    if total and embedded < total:
        console.print(
            f"[yellow]{total - embedded} chunks have no embedding and are keyword-only[/yellow]",
        )
    console.print()


if __name__ == "__main__":
    app()
