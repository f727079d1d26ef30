"""Interactive chat loop."""

from __future__ import annotations

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout

from fschat.client import ChatClient
from fschat.view import head_label

from .render import Renderer

HELP_TEXT = (
    "Commands:\n"
    "/select ID - reply to message ID (again to clear)\n"
    "/retry ID - retry a failed message\n"
    "/reconnect - reconnect now\n"
    "/head - show the latest message id\n"
    "/quit - leave the chat"
)


def handle_line(client: ChatClient, renderer: Renderer, line: str) -> bool:
    """Act on one line of input. Returns False when the user asked to quit."""
    stripped = line.strip()
    if not stripped:
        return True
    if not stripped.startswith("/"):
        client.send_message(stripped)
        return True

    command, _, arg = stripped.partition(" ")
    arg = arg.strip()
    if command in ("/quit", "/exit"):
        return False
    if command == "/help":
        renderer.info(HELP_TEXT)
    elif command == "/select":
        selected = client.select(arg or None)
        renderer.info(f"Replying to {selected}" if selected else "Selection cleared")
    elif command == "/retry":
        if not arg:
            renderer.error("usage: /retry ID")
        elif not client.retry(arg):
            renderer.error(f"retry is not available for {arg}")
    elif command == "/reconnect":
        if not client.resume():
            renderer.info("Already connected")
    elif command == "/head":
        renderer.info(head_label(client.store.order()))
    else:
        client.send_message(stripped)
    return True


async def run_chat(client: ChatClient, renderer: Renderer) -> None:
    session: PromptSession[str] = PromptSession()
    renderer.info(HELP_TEXT)
    client.start()
    try:
        with patch_stdout(raw=True):
            while True:
                try:
                    line = await session.prompt_async("> ")
                except (EOFError, KeyboardInterrupt):
                    break
                if not handle_line(client, renderer, line):
                    break
    finally:
        await client.close()
        renderer.info("Goodbye!")
