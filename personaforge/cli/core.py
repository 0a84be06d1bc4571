"""Shared CLI application context and setup helpers."""

from __future__ import annotations

import sys

import typer
from loguru import logger
from rich.console import Console

from personaforge import __logo__, __version__
from personaforge.config.schema import Config
from personaforge.inference.client import OllamaClient

app = typer.Typer(
    name="personaforge",
    help=f"{__logo__} personaforge - persona chat replies on a local model",
    no_args_is_help=True,
)

console = Console()

LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} personaforge v{__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Re-sink loguru to stderr at *level*."""
    normalized = level.strip().upper()
    if normalized not in LOG_LEVELS:
        console.print(f"[red]Invalid --log-level. Use: {'|'.join(sorted(LOG_LEVELS))}[/red]")
        raise typer.Exit(1)
    logger.remove()
    logger.add(sys.stderr, level=normalized)


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
    log_level: str = typer.Option("WARNING", "--log-level", help="loguru level for stderr output"),
) -> None:
    """personaforge - persona chat replies on a local model."""
    configure_logging(log_level)


def make_client(config: Config) -> OllamaClient:
    return OllamaClient(
        config.inference.base_url,
        timeout_seconds=config.inference.request_timeout_seconds,
        connect_timeout_seconds=config.inference.connect_timeout_seconds,
    )
