"""Main CLI application."""

import asyncio
import signal
import sys

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from persona_chat import __version__
from persona_chat.config import Settings, get_settings
from persona_chat.core.conversation.client import Notification, SessionClient
from persona_chat.core.conversation.generator import ResponseGenerator
from persona_chat.infrastructure.assistants import create_backend
from persona_chat.infrastructure.cache.redis_client import close_redis_client
from persona_chat.infrastructure.observability.logging import setup_logging
from persona_chat.infrastructure.storage import create_session_store

app = typer.Typer(
    name="persona-chat",
    help="Persona-constrained assistant chat",
    add_completion=False,
)
console = Console()

EXIT_COMMANDS = {"/quit", "/exit"}
NEW_COMMAND = "/new"


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
) -> None:
    """Persona-constrained assistant chat."""
    if version:
        console.print(f"persona-chat version {__version__}")
        raise typer.Exit()


def _show_notification(notification: Notification) -> None:
    style = "red" if notification.variant == "destructive" else "yellow"
    console.print(f"[{style}]{notification.title}[/{style}]", highlight=False)


async def _build_client(settings: Settings) -> SessionClient:
    try:
        backend = create_backend(settings.assistant)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    generator = ResponseGenerator(backend, settings.assistant)
    store = await create_session_store(settings)
    client = SessionClient(generator, store, settings.session, notify=_show_notification)
    await client.load()
    return client


async def _submit(client: SessionClient, text: str) -> None:
    """Submit one turn; Ctrl-C stops the in-flight request instead of exiting."""
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, client.stop)
    try:
        with console.status("Thinking..."):
            reply = await client.submit(text)
    finally:
        loop.remove_signal_handler(signal.SIGINT)

    if reply is not None:
        console.print(Markdown(reply.content))


@app.command()
def chat() -> None:
    """Start an interactive conversation. /new starts over, /quit exits."""
    settings = get_settings()
    setup_logging(settings.telemetry, stream=sys.stderr)

    with asyncio.Runner() as runner:
        try:
            client = runner.run(_build_client(settings))
            console.print("[green]Connected.[/green] Type /new to start over, /quit to exit.")
            _chat_loop(runner, client)
        finally:
            runner.run(close_redis_client())


def _chat_loop(runner: asyncio.Runner, client: SessionClient) -> None:
    while True:
        try:
            text = console.input("[bold cyan]You[/bold cyan]: ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            return

        command = text.strip().lower()
        if command in EXIT_COMMANDS:
            return
        if command == NEW_COMMAND:
            runner.run(client.reset())
            console.print("[green]Started a new conversation.[/green]")
            continue

        runner.run(_submit(client, text))


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to send"),
    resume: bool = typer.Option(
        False,
        "--continue",
        "-c",
        help="Continue the stored remote session instead of starting a new one",
    ),
) -> None:
    """Send a single question and print the reply."""
    settings = get_settings()
    setup_logging(settings.telemetry, stream=sys.stderr)
    if resume:
        settings = settings.model_copy(
            update={"session": settings.session.model_copy(update={"resume_on_empty_transcript": True})}
        )

    async def run_once() -> bool:
        try:
            client = await _build_client(settings)
            await _submit(client, question)
            return client.last_error is None
        finally:
            await close_redis_client()

    if not asyncio.run(run_once()):
        raise typer.Exit(code=1)


@app.command()
def reset() -> None:
    """Forget the stored session id."""
    settings = get_settings()

    async def clear() -> None:
        try:
            store = await create_session_store(settings)
            await store.delete(settings.session.storage_key)
        finally:
            await close_redis_client()

    asyncio.run(clear())
    console.print("[green]Stored session cleared.[/green]")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.telemetry)
    host = host or settings.api.host
    port = port or settings.api.port

    console.print(f"[green]Starting API server on {host}:{port}[/green]")

    uvicorn.run(
        "persona_chat.api.app:get_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()
    assistant = settings.assistant

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Environment", settings.environment)
    table.add_row("Assistant ID", assistant.assistant_id or "(not set)")
    table.add_row("API Key", "set" if assistant.api_key else "(not set)")
    table.add_row("Model Override", assistant.model or "(assistant default)")
    table.add_row("Persona Mode", assistant.persona.mode)
    table.add_row("Poll Interval", f"{assistant.poll_interval_seconds}s")
    table.add_row("Poll Limit", f"{assistant.max_poll_attempts} checks / {assistant.poll_timeout_seconds}s")
    table.add_row("Session Store", settings.session.store)
    table.add_row("Resume On Empty Transcript", str(settings.session.resume_on_empty_transcript))
    table.add_row("Cancel Remote On Stop", str(settings.session.cancel_remote_on_stop))
    table.add_row("Auth Gate", str(settings.auth.enabled))
    table.add_row("Avatar Token Proxy", "set" if settings.avatar.api_key else "(not set)")

    console.print(table)


if __name__ == "__main__":
    app()
