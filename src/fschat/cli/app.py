"""fschat command line interface."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from fschat.client import ChatClient
from fschat.commands import CommandExtractor
from fschat.config import get_settings
from fschat.errors import FsChatError
from fschat.launcher import start_chat
from fschat.logging_utils import configure_logging
from fschat.recent import RecentChats

from .live import run_chat
from .render import Renderer

app = typer.Typer(name="fschat", help="Chat with a filesystem session.", add_completion=False)
recent_app = typer.Typer(help="Recently opened chats.")
app.add_typer(recent_app, name="recent")


@app.callback()
def main_callback(
    log_level: Annotated[Optional[str], typer.Option(help="Override FSCHAT_LOG_LEVEL.")] = None,
) -> None:
    settings = get_settings()
    configure_logging(profile=settings.log_profile, level=log_level or settings.log_level)


@app.command()
def chat(
    url: Annotated[Optional[str], typer.Option(help="Websocket URL or path relative to --base-url.")] = None,
    base_url: Annotated[Optional[str], typer.Option(help="HTTP origin of the chat server.")] = None,
) -> None:
    """Open an interactive chat session."""
    overrides = {"websocket_url": url, "base_url": base_url}
    settings = get_settings(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(profile="chat", level=settings.log_level)
    renderer = Renderer(temp_prefix=settings.temp_id_prefix)

    async def _main() -> None:
        client = ChatClient(settings, on_render=renderer)
        await run_chat(client, renderer)

    asyncio.run(_main())


@app.command()
def extract(
    file: Annotated[Optional[Path], typer.Argument(help="Read text from FILE instead of stdin.")] = None,
) -> None:
    """Print the command blocks embedded in a message as JSON."""
    text = file.read_text(encoding="utf-8") if file is not None else sys.stdin.read()
    result = CommandExtractor().extract(text)
    for diagnostic in result.diagnostics:
        typer.echo(f"skipped block at offset {diagnostic.offset}: {diagnostic.reason}", err=True)
    typer.echo(json.dumps([command.model_dump(exclude_none=True) for command in result.commands], indent=2))


@app.command()
def start(
    fs_path: Annotated[str, typer.Argument(help="Filesystem path the chat may access.")],
    permission: Annotated[list[str], typer.Option("--permission", "-p", help="read, write, delete, ...")] = [],  # noqa: B006
    base_url: Annotated[Optional[str], typer.Option(help="HTTP origin of the chat server.")] = None,
) -> None:
    """Start a chat session on the server and remember it."""
    settings = get_settings(**({"base_url": base_url} if base_url else {}))
    if not permission:
        typer.echo("Error: select at least one permission.", err=True)
        raise typer.Exit(1)
    try:
        url = asyncio.run(start_chat(settings.base_url, fs_path, permission))
    except FsChatError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    RecentChats(settings.recent_chats_path, settings.max_recent_chats).add(fs_path, url, permission)
    typer.echo(url)


@recent_app.command("list")
def recent_list() -> None:
    """Show recently opened chats, newest first."""
    settings = get_settings()
    chats = RecentChats(settings.recent_chats_path, settings.max_recent_chats).entries()
    if not chats:
        typer.echo("No recent chats")
        return
    for chat in chats:
        typer.echo(f"{chat.fs_path}\t{chat.url}\t{', '.join(chat.permissions)}")


@recent_app.command("clear")
def recent_clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
) -> None:
    """Forget all recent chats."""
    if not yes and not typer.confirm("Are you sure you want to clear your recent chats history?"):
        raise typer.Exit(0)
    settings = get_settings()
    RecentChats(settings.recent_chats_path, settings.max_recent_chats).clear()
    typer.echo("Recent chats cleared")
