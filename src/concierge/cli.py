"""Typer CLI for the concierge: questions, DataVault upkeep and the HTTP server."""

from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path

import typer

from concierge.agent.pipeline import handle_chat
from concierge.config import get_settings
from concierge.context import build_context
from concierge.maintenance import load_records, prune_expired_events
from concierge.obs.logging import configure_logging

app = typer.Typer(help="CLI for the Sovereign concierge")


@app.command()
def ask(question: str) -> None:
    """Run one question through the pipeline."""

    settings = get_settings()
    configure_logging(settings)
    result = asyncio.run(handle_chat(build_context(settings), question))
    typer.echo(result.answer)
    for source in result.sources:
        typer.echo(f"- {source.title} ({source.source_path})")


@app.command("prune-events")
def prune_events(
    today: str | None = typer.Option(None, help="Reference date (YYYY-MM-DD); defaults to today."),
) -> None:
    """Delete Event records that ended before the reference date."""

    settings = get_settings()
    configure_logging(settings)
    reference = today or settings.temporal.today()
    try:
        date.fromisoformat(reference)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date: {reference}") from exc

    context = build_context(settings)
    deleted = asyncio.run(prune_expired_events(context.vector_store, reference))
    typer.echo(f"Pruned {deleted} expired events")


@app.command("load-records")
def load_records_command(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON Lines file of records."),
) -> None:
    """Embed and upsert DataVault records from a JSON Lines file.

    Each line holds one object with `id`, `text` and any metadata fields.
    """

    records = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise typer.BadParameter(f"Line {line_number} is not valid JSON") from exc

    settings = get_settings()
    configure_logging(settings)
    context = build_context(settings)
    try:
        written = asyncio.run(load_records(context.vector_store, context.embedder, records))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Loaded {written} records into the {context.vector_store.name} store")


@app.command()
def serve(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Serve the HTTP API with uvicorn."""

    import uvicorn

    uvicorn.run("concierge.api.main:create_app", host=host, port=port, factory=True)


if __name__ == "__main__":
    app()
