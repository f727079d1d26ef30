import importlib
from pathlib import Path

from typer.testing import CliRunner

cli_app_module = importlib.import_module("fschat.cli.app")
runner = CliRunner()


def test_extract_prints_commands_and_diagnostics() -> None:
    text = (
        "<fs-command><operation>read</operation><path>/a</path></fs-command>"
        "<fs-command><operation>read</operation></fs-command>"
    )
    result = runner.invoke(cli_app_module.app, ["extract"], input=text)

    assert result.exit_code == 0
    assert '"path": "/a"' in result.output
    assert "missing <path>" in result.output


def test_recent_list_and_clear(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FSCHAT_RECENT_CHATS_PATH", str(tmp_path / "recent.json"))

    empty = runner.invoke(cli_app_module.app, ["recent", "list"])
    assert "No recent chats" in empty.output

    async def _fake_start_chat(base_url: str, fs_path: str, permissions: list[str]) -> str:
        return f"{base_url}/chat/1"

    monkeypatch.setattr(cli_app_module, "start_chat", _fake_start_chat)
    started = runner.invoke(cli_app_module.app, ["start", "/srv/data", "-p", "read", "--base-url", "http://h"])
    assert started.exit_code == 0
    assert "http://h/chat/1" in started.output

    listed = runner.invoke(cli_app_module.app, ["recent", "list"])
    assert "/srv/data" in listed.output
    assert "read" in listed.output

    cleared = runner.invoke(cli_app_module.app, ["recent", "clear", "--yes"])
    assert cleared.exit_code == 0
    assert not (tmp_path / "recent.json").exists()


def test_start_requires_a_permission(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FSCHAT_RECENT_CHATS_PATH", str(tmp_path / "recent.json"))

    result = runner.invoke(cli_app_module.app, ["start", "/srv/data"])

    assert result.exit_code == 1


def test_log_profile_setting_selects_sink(monkeypatch) -> None:
    configured: list[tuple[str, str | None]] = []
    monkeypatch.setattr(
        cli_app_module,
        "configure_logging",
        lambda *, profile, level: configured.append((profile, level)),
    )
    monkeypatch.setenv("FSCHAT_LOG_PROFILE", "chat")
    monkeypatch.setenv("FSCHAT_LOG_LEVEL", "debug")

    result = runner.invoke(cli_app_module.app, ["extract"], input="")

    assert result.exit_code == 0
    assert configured == [("chat", "debug")]
