"""MIA CLI: serve the backend, chat from the terminal, inspect or reset the session."""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mia.config import get_settings

console = Console()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """MIA: empathetic voice companion backend."""
    level = logging.DEBUG if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


# ======================================================================
# SERVE
# ======================================================================
@main.command()
@click.option("--host", default=None, help="Override host")
@click.option("--port", "-p", default=None, type=int, help="Override port")
def serve(host: str | None, port: int | None) -> None:
    """Start the HTTP backend."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "mia.interface.server:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=False,
    )


# ======================================================================
# CHAT
# ======================================================================
@main.command()
@click.argument("message", required=False)
def chat(message: str | None) -> None:
    """Send a typed message through the full reply pipeline.

    Without MESSAGE, starts an interactive loop (empty line or 'exit' quits).
    """
    from mia.pipeline.reply import ReplyPipeline
    from mia.session.state import Session

    settings = get_settings()
    session = Session.from_settings(settings)
    pipeline = ReplyPipeline.from_settings(session, settings)

    if message:
        _show_result(pipeline.submit(message))
        return

    console.print(Panel(
        "[bold]MIA[/] is listening. Empty line or [cyan]exit[/] to quit.",
        border_style="magenta",
    ))
    while True:
        text = console.input("[bold cyan]You>[/] ").strip()
        if not text or text.lower() in ("exit", "quit"):
            break
        _show_result(pipeline.submit(text))


def _show_result(result) -> None:
    from mia.models import ErrorResult, SessionExpiredResult

    if isinstance(result, ErrorResult):
        console.print(f"[red]Error at {result.stage}:[/] {result.error}")
        return
    if isinstance(result, SessionExpiredResult):
        console.print(f"[yellow]{result.message}[/]")
        return
    for msg in result.messages:
        subtitle = f"{result.sentiment} / {result.reply_emotion} · {msg.facial_expression}, {msg.animation}"
        console.print(Panel(
            msg.text,
            title="[bold magenta]MIA[/]" + (" [yellow](degraded)[/]" if result.degraded else ""),
            subtitle=subtitle,
            border_style="magenta",
        ))


# ======================================================================
# HISTORY / RESET
# ======================================================================
@main.command()
def history() -> None:
    """Show stored turns and the rolling summary."""
    from mia.session.state import Session

    session = Session.from_settings(get_settings())
    turns = session.turns.load_all()
    if not turns:
        console.print("[yellow]No conversation history.[/]")
    else:
        table = Table(title=f"Conversation ({len(turns)} turns)")
        table.add_column("#", justify="right", style="cyan")
        table.add_column("User")
        table.add_column("MIA")
        table.add_column("Sentiment", style="dim")
        table.add_column("Emotion", style="dim")
        for t in turns:
            table.add_row(str(t.index), t.user_utterance, t.reply_text, t.sentiment, t.reply_emotion)
        console.print(table)

    record = session.summary.load()
    if record:
        console.print(Panel(
            record.abstract or "(empty)",
            title=f"Summary ({record.covered_turn_count} turns, {record.updated_at:%Y-%m-%d %H:%M})",
        ))


@main.command()
@click.option("--reason", default="manual", help="Reason recorded in the log")
def reset(reason: str) -> None:
    """Wipe turns, summary and audio artifacts."""
    from mia.session.state import Session

    Session.from_settings(get_settings()).reset(reason)
    console.print("[bold green]Session cleared.[/]")


if __name__ == "__main__":
    main()
