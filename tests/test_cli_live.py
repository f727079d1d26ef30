import io

import pytest
from rich.console import Console

from fschat.cli.live import handle_line
from fschat.cli.render import Renderer
from fschat.client import ChatClient
from fschat.config import Settings


def _setup(source, scheduler) -> tuple[ChatClient, Renderer, io.StringIO]:
    buffer = io.StringIO()
    renderer = Renderer(Console(file=buffer, width=120, color_system=None))
    client = ChatClient(Settings(_env_file=None), source=source, scheduler=scheduler, on_render=renderer)
    return client, renderer, buffer


@pytest.mark.asyncio
async def test_plain_text_is_sent(source, scheduler) -> None:
    client, renderer, _ = _setup(source, scheduler)

    assert handle_line(client, renderer, "hello there")

    assert list(client.connection.state.outbound) == [{"type": "send_message", "content": "hello there"}]


@pytest.mark.asyncio
async def test_quit_and_unknown_retry(source, scheduler) -> None:
    client, renderer, buffer = _setup(source, scheduler)

    assert handle_line(client, renderer, "/retry nope")
    assert "retry is not available for nope" in buffer.getvalue()
    assert not handle_line(client, renderer, "/quit")


@pytest.mark.asyncio
async def test_renderer_prints_each_state_once(source, scheduler) -> None:
    client, _, buffer = _setup(source, scheduler)
    frame = {
        "type": "message_state_update",
        "message_state": {
            "message": {"id": "m1", "role": "user", "content": "run it", "retries": 0},
            "status": "Failed",
            "last_error": "disk full",
        },
    }

    client.dispatch(frame)
    client.dispatch(frame)

    output = buffer.getvalue()
    assert output.count("run it") == 1
    assert "disk full" in output
    assert "/retry m1" in output


@pytest.mark.asyncio
async def test_renderer_lists_commands_with_results(source, scheduler) -> None:
    client, _, buffer = _setup(source, scheduler)

    client.dispatch(
        {
            "type": "message_update",
            "message": {
                "id": "m1",
                "role": "user",
                "content": "save it",
                "fs_commands": [{"operation": "write", "path": "/notes.txt", "content": "hi"}],
                "fs_results": [{"operation": "write", "path": "/notes.txt", "success": True}],
            },
        }
    )

    output = buffer.getvalue()
    assert "$ write /notes.txt (with content)" in output
    assert "✓ write /notes.txt" in output
