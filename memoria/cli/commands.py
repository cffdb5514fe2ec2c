"""CLI commands for memoria."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from memoria import __logo__, __version__
from memoria.compaction.errors import MemoryEngineError
from memoria.compaction.service import MemoryService
from memoria.compaction.store import JsonlMemoryStore
from memoria.compaction.types import MemoryConfig
from memoria.config.schema import Config

app = typer.Typer(
    name="memoria",
    help=f"{__logo__} memoria - Conversation memory compaction",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} memoria v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """memoria - Conversation memory compaction."""
    pass


ConfigOption = typer.Option(None, "--config", "-c", help="Path to config.json")


def build_memory_config(config: Config) -> MemoryConfig:
    """Translate settings into the engine's configuration."""
    compaction = config.compaction
    summarizer = config.summarizer
    return MemoryConfig(
        max_context_tokens=compaction.max_context_tokens,
        recent_messages_count=compaction.recent_messages_count,
        compressed_share=compaction.compressed_share,
        max_key_events=compaction.max_key_events,
        estimator=compaction.estimator,
        chars_per_token=compaction.chars_per_token,
        summary_model=summarizer.model,
        summary_temperature=summarizer.temperature,
        summary_max_tokens=summarizer.max_tokens,
        generation_timeout_seconds=summarizer.timeout_seconds,
    )


def _build_service(config_path: Optional[Path]) -> MemoryService:
    from memoria.config.loader import load_config
    from memoria.providers.litellm_provider import LiteLLMProvider
    from memoria.session.manager import SessionManager

    config = load_config(config_path)
    try:
        memory_config = build_memory_config(config)
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        raise typer.Exit(1)

    sessions = SessionManager(config.sessions_path)
    provider = LiteLLMProvider(
        api_key=config.provider.api_key or None,
        api_base=config.provider.api_base,
        default_model=config.summarizer.model,
        request_timeout_seconds=config.summarizer.timeout_seconds,
    )
    return MemoryService(
        messages=sessions,
        participants=sessions,
        store=JsonlMemoryStore(config.memory_path),
        provider=provider,
        bookkeeper=sessions,
        config=memory_config,
    )


@app.command()
def status(
    session_id: str = typer.Argument(..., help="Session id"),
    config_path: Optional[Path] = ConfigOption,
):
    """Show token usage and whether a session is due for compaction."""
    service = _build_service(config_path)
    try:
        stats = service.token_stats(session_id)
        due = service.should_compact(session_id)
        records = service.get_records(session_id)
    except MemoryEngineError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Session {session_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Memory records", str(len(records)))
    table.add_row("Compressed tokens", str(stats.compressed_tokens))
    table.add_row("Uncompacted tokens", str(stats.recent_messages_tokens))
    table.add_row(
        "Total tokens",
        f"{stats.total_tokens} / {service.config.max_context_tokens}",
    )
    table.add_row("Uncompacted messages", str(stats.recent_message_count))
    table.add_row("Compaction due", "[yellow]yes[/yellow]" if due else "no")
    console.print(table)


@app.command()
def records(
    session_id: str = typer.Argument(..., help="Session id"),
    config_path: Optional[Path] = ConfigOption,
):
    """List a session's memory records."""
    service = _build_service(config_path)
    try:
        items = service.get_records(session_id)
    except MemoryEngineError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not items:
        console.print("No memory records.")
        return

    table = Table(title=f"Memory records for {session_id}")
    table.add_column("#", style="cyan")
    table.add_column("Created")
    table.add_column("Messages")
    table.add_column("Key events")
    table.add_column("Summary")
    for index, record in enumerate(items, 1):
        table.add_row(
            str(index),
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            str(record.message_count),
            str(len(record.key_events)),
            record.summary[:80] + ("..." if len(record.summary) > 80 else ""),
        )
    console.print(table)


@app.command()
def compact(
    session_id: str = typer.Argument(..., help="Session id"),
    force: bool = typer.Option(False, "--force", "-f", help="Compact even below the token budget"),
    config_path: Optional[Path] = ConfigOption,
):
    """Compact a session's older messages into a memory record."""
    service = _build_service(config_path)

    try:
        written = False
        if force or service.should_compact(session_id):
            written = asyncio.run(service.compact(session_id))
    except MemoryEngineError as e:
        console.print(f"[red]Compaction failed:[/red] {e}")
        raise typer.Exit(1)

    if written:
        console.print(f"[green]✓[/green] Compacted session {session_id}")
    else:
        console.print("Nothing to compact.")


@app.command()
def context(
    session_id: str = typer.Argument(..., help="Session id"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Recent messages to include"),
    config_path: Optional[Path] = ConfigOption,
):
    """Print the generation context for a session."""
    service = _build_service(config_path)
    console.print(service.build_context(session_id, limit), markup=False, highlight=False)


if __name__ == "__main__":
    app()
