"""CLI commands for personaforge."""

from __future__ import annotations

import asyncio

import typer
from rich.table import Table

from personaforge import __logo__
from personaforge.core.errors import InferenceError

from . import memory_commands as _memory_commands  # noqa: F401
from .core import app, console, make_client

__all__ = ["app"]


@app.command()
def onboard() -> None:
    """Write a default configuration file."""
    from personaforge.config.loader import get_config_path, save_config
    from personaforge.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    save_config(config)
    console.print(f"[green]✓[/green] Created config at {config_path}")

    console.print(f"\n{__logo__} personaforge is ready!")
    console.print("\nNext steps:")
    console.print("  1. Set your persona in [cyan]~/.personaforge/config.json[/cyan] (persona.systemPrompt)")
    console.print(f"  2. Pull the chat model: [cyan]ollama pull {config.inference.chat_model}[/cyan]")
    console.print("  3. Check the backend: [cyan]personaforge status[/cyan]")


@app.command()
def status() -> None:
    """Show config, backend health and memory stats."""
    from personaforge.config.loader import get_config_path, load_config
    from personaforge.memory.store import EmbeddingStore

    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} personaforge Status\n")
    console.print(
        f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}"
    )
    console.print(f"Identity: {config.persona.display_name or config.identity.bot_name}")
    console.print(f"Chat model: {config.inference.chat_model}")
    console.print(f"Embedding model: {config.inference.embedding_model}")

    async def _check_backend() -> tuple[bool, list[str]]:
        async with make_client(config) as client:
            healthy = await client.health()
            if not healthy:
                return False, []
            try:
                return True, await client.list_models()
            except InferenceError:
                return True, []

    healthy, models = asyncio.run(_check_backend())
    if healthy:
        console.print(f"Backend: [green]✓ {config.inference.base_url}[/green]")
        missing = [
            name
            for name in (config.inference.chat_model, config.inference.embedding_model)
            if name not in models
        ]
        for name in missing:
            console.print(f"  [yellow]model not pulled: {name}[/yellow]")
    else:
        console.print(f"Backend: [red]✗ {config.inference.base_url}[/red]")

    db_file = config.memory.db_file
    if not config.memory.enabled:
        console.print("Memory: [dim]disabled[/dim]")
    elif not db_file.exists():
        console.print(f"Memory: [dim]{db_file} (not created yet)[/dim]")
    else:
        store = EmbeddingStore(db_file)
        try:
            stats = store.stats()
        finally:
            store.close()
        console.print(
            f"Memory: {db_file} chunks={stats['chunks']} "
            f"conversations={stats['conversations']} summaries={stats['summaries']}"
        )


@app.command()
def models() -> None:
    """List models available on the inference backend."""
    from personaforge.config.loader import load_config

    config = load_config()

    async def _list() -> list[str]:
        async with make_client(config) as client:
            return await client.list_models()

    try:
        names = asyncio.run(_list())
    except InferenceError as e:
        console.print(f"[red]Backend unavailable: {e}[/red]")
        raise typer.Exit(1) from e

    if not names:
        console.print("[dim]No models installed.[/dim]")
        return

    table = Table(title=f"Models @ {config.inference.base_url}")
    table.add_column("Model")
    table.add_column("Role")
    roles = {
        config.inference.chat_model: "chat",
        config.inference.embedding_model: "embedding",
        config.inference.vision_model: "vision",
    }
    for name in sorted(names):
        table.add_row(name, roles.get(name, ""))
    console.print(table)
