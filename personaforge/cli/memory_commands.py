"""Memory CLI commands."""

from __future__ import annotations

import asyncio

import typer

from .core import app, console, make_client

memory_app = typer.Typer(help="Manage conversation memory")
app.add_typer(memory_app, name="memory")


@memory_app.command("prune")
def memory_prune(
    summarize: bool = typer.Option(
        True, "--summarize/--no-summarize", help="Summarize before capping"
    ),
    cap: int | None = typer.Option(None, "--cap", min=1, help="Override memory.retentionCap"),
) -> None:
    """Run one retention pass: summarize old chunks, then cap each conversation."""
    from personaforge.config.loader import load_config
    from personaforge.inference.queue import InferenceQueue
    from personaforge.memory.retention import InferenceSummarizer, RetentionJob
    from personaforge.memory.store import EmbeddingStore

    config = load_config()
    db_file = config.memory.db_file
    if not db_file.exists():
        console.print(f"[yellow]No memory database at {db_file}[/yellow]")
        raise typer.Exit()

    async def _run():
        store = EmbeddingStore(db_file)
        try:
            async with make_client(config) as client:
                summarizer = None
                if summarize:
                    queue = InferenceQueue(
                        client,
                        max_concurrent=config.inference.max_concurrent,
                        default_timeout=config.inference.timeout_seconds,
                    )
                    summarizer = InferenceSummarizer(queue, model=config.inference.chat_model)
                job = RetentionJob(
                    store,
                    summarizer=summarizer,
                    retention_cap=cap or config.memory.retention_cap,
                    summary_threshold=config.memory.summary_threshold,
                )
                return await job.run_once()
        finally:
            store.close()

    report = asyncio.run(_run())
    console.print(f"[green]✓[/green] Checked {report.conversations} conversation(s)")
    console.print(f"  pruned: {report.pruned}")
    console.print(f"  summarized: {len(report.summarized)}")
    if report.failed:
        console.print(f"  [yellow]summary failed: {', '.join(report.failed)}[/yellow]")


@memory_app.command("stats")
def memory_stats() -> None:
    """Show chunk counts per conversation."""
    from rich.table import Table

    from personaforge.config.loader import load_config
    from personaforge.memory.store import EmbeddingStore

    config = load_config()
    db_file = config.memory.db_file
    if not db_file.exists():
        console.print(f"[yellow]No memory database at {db_file}[/yellow]")
        raise typer.Exit()

    store = EmbeddingStore(db_file)
    try:
        table = Table(title="Memory")
        table.add_column("Conversation")
        table.add_column("Chunks", justify="right")
        table.add_column("Unsummarized", justify="right")
        for key in store.conversation_keys():
            table.add_row(key, str(store.count(key)), str(store.count_unsummarized(key)))
    finally:
        store.close()
    console.print(table)
