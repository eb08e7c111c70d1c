"""Glance CLI — analyze a video, optionally chat about it.

Usage:
    glance "https://www.bilibili.com/video/BV1J4411C76B"
    glance dQw4w9WgXcQ --raw
    glance "https://youtu.be/dQw4w9WgXcQ" --chat
"""

from __future__ import annotations

import logging
import sys

import typer

from .errors import InvalidReference, UpstreamRejected

app = typer.Typer(add_completion=False, pretty_exceptions_enable=False)


@app.command()
def main(
    url: str = typer.Argument(..., help="Video URL or bare ID (Bilibili BV..., YouTube)"),
    raw: bool = typer.Option(False, "--raw", help="Output the VideoRecord as JSON"),
    chat: bool = typer.Option(False, "--chat", help="Chat about the video after analysis"),
    transcript_lines: int = typer.Option(40, "--lines", min=0, help="Transcript lines to print"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress"),
) -> None:
    """Transcript and highlights for a video."""
    sys.stdout.reconfigure(encoding="utf-8")
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from .service import acquire

    def notify(message: str) -> None:
        typer.echo(message, err=True)

    typer.echo("Connecting to analysis service...", err=True)
    try:
        record = acquire(url, on_slow=notify)
    except (InvalidReference, UpstreamRejected) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    if raw:
        typer.echo(record.model_dump_json(indent=2))
    else:
        from .renderer import render_record

        typer.echo(render_record(record, transcript_limit=transcript_lines))

    if not chat:
        return

    from .assistant import AssistantSession

    session = AssistantSession()
    session.initialize(record.transcript)
    typer.echo("\nAsk about the video (/quit to exit).")
    while True:
        try:
            message = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            typer.echo()
            break
        if not message:
            continue
        if message in ("/quit", "/exit"):
            break
        typer.echo(session.send(message))


if __name__ == "__main__":
    app()
