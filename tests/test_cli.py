import importlib
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from parley.activity import Activity, ActivityTypes
from parley.cards import oauth_card

cli_module = importlib.import_module("parley.cli")


@pytest.fixture
def quiet_cli(monkeypatch) -> None:
    monkeypatch.syspath_prepend(str(Path(__file__).parent))
    monkeypatch.setattr(cli_module, "configure_logging", lambda **_: None)


def test_chat_runs_dialog_until_quit(quiet_cli) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli_module.app,
        ["chat", "--dialog", "dialog_fakes:echo_dialog"],
        input="hello\nbye\n/quit\n",
    )

    assert result.exit_code == 0, result.output
    assert "echo: hello" in result.output
    assert "bye" in result.output
    assert "(dialog complete)" in result.output


def test_chat_prints_traces_when_asked(quiet_cli) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli_module.app,
        ["chat", "--dialog", "dialog_fakes:echo_dialog", "--trace"],
        input="hello\n/exit\n",
    )

    assert result.exit_code == 0, result.output
    assert "[trace BotState]" in result.output


def test_chat_rejects_unknown_dialog(quiet_cli) -> None:
    runner = CliRunner()
    result = runner.invoke(cli_module.app, ["chat", "--dialog", "dialog_fakes:nope"])

    assert result.exit_code != 0
    assert "cannot load" in result.output


def test_load_dialog_accepts_instances_and_factories(quiet_cli) -> None:
    assert cli_module.load_dialog("dialog_fakes:echo_dialog").id == "echo"

    with pytest.raises(typer.BadParameter, match="module:attribute"):
        cli_module.load_dialog("dialog_fakes")
    with pytest.raises(typer.BadParameter, match="not a dialog"):
        cli_module.load_dialog("dialog_fakes:CHANNEL")


def test_render_activity_shows_card_links() -> None:
    card = oauth_card("Contoso", "Sign in", link="https://login.example.com")
    rendered = cli_module.render_activity(Activity(text="Please sign in", attachments=[card]))

    assert rendered == "Please sign in\n[Sign in] https://login.example.com"
    assert "sign in through the channel" in cli_module.render_activity(
        Activity(attachments=[oauth_card("Contoso", "Sign in")])
    )
    assert cli_module.render_activity(
        Activity(type=ActivityTypes.TRACE, name="BotState", value={"a": 1})
    ) == '[trace BotState] {"a": 1}'


def test_hooks_command_without_plugins(monkeypatch) -> None:
    monkeypatch.setattr(cli_module.ParleyFramework, "load_entrypoint_plugins", lambda self: 0)
    runner = CliRunner()
    result = runner.invoke(cli_module.app, ["hooks"])

    assert result.exit_code == 0
    assert "(no hook implementations)" in result.output
