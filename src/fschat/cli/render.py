"""Terminal renderer for chat snapshots."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from fschat.client import Snapshot
from fschat.models import ConnectionPhase, Role
from fschat.view import MessageView

_ROLE_STYLES = {Role.USER: "bold cyan", Role.ASSISTANT: "bold yellow", Role.SYSTEM: "bold magenta"}
_PHASE_STYLES = {
    ConnectionPhase.CONNECTED: "green",
    ConnectionPhase.CONNECTING: "yellow",
    ConnectionPhase.DISCONNECTED: "red",
}


class Renderer:
    """Print each message once, and again whenever its visible state changes."""

    def __init__(self, console: Console | None = None, *, temp_prefix: str = "temp-") -> None:
        self.console = console or Console()
        self.temp_prefix = temp_prefix
        self._shown: dict[str, tuple[object, ...]] = {}
        self._phase: ConnectionPhase | None = None

    def __call__(self, snapshot: Snapshot) -> None:
        if snapshot.phase is not self._phase:
            self._phase = snapshot.phase
            self.status(snapshot)
        for view in snapshot.views:
            if view.message.id.startswith(self.temp_prefix):
                continue
            key = _fingerprint(view)
            if self._shown.get(view.id) == key:
                continue
            self._shown[view.id] = key
            self.message(view, selected=view.id == snapshot.selected_id)

    def status(self, snapshot: Snapshot) -> None:
        style = _PHASE_STYLES[snapshot.phase]
        text = snapshot.phase.value.capitalize()
        if snapshot.exhausted:
            text += " (type /reconnect to try again)"
        self.console.print(f"[{style}]● {text}[/{style}]")

    def message(self, view: MessageView, *, selected: bool = False) -> None:
        msg = view.message
        style = _ROLE_STYLES.get(msg.role, "bold")
        marker = "▸ " if selected else ""
        self.console.print(f"{marker}[{style}]{msg.role.value}[/{style}] [dim]{msg.id[:8]}[/dim]")
        if msg.content:
            self.console.print(escape(msg.content))
        for command in msg.fs_commands or ():
            self.console.print(f"  [dim]$ {escape(command.summary())}[/dim]")
        for result in msg.fs_results or ():
            mark = "[green]✓[/green]" if result.success else "[red]✗[/red]"
            self.console.print(f"  {mark} {escape(result.operation)} {escape(result.path)}")
            if result.data:
                self.console.print(f"    [dim]{escape(result.data)}[/dim]")
            if result.error:
                self.console.print(f"    [red]{escape(result.error)}[/red]")
        if view.is_processing:
            self.console.print("[dim]  … processing[/dim]")
        if view.retry_in:
            self.console.print(f"[yellow]  retrying in {view.retry_in}[/yellow]")
        if view.has_failed:
            hint = f" (/retry {msg.id})" if view.can_retry else ""
            self.console.print(f"[bold red]  {escape(view.error or '')}[/bold red]{hint}")

    def info(self, message: str) -> None:
        self.console.print(message)

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {message}")


def _fingerprint(view: MessageView) -> tuple[object, ...]:
    msg = view.message
    return (
        msg.content,
        len(msg.fs_commands or ()),
        len(msg.fs_results or ()),
        view.is_processing,
        view.has_failed,
        view.can_retry,
        view.retry_in is not None,
    )
