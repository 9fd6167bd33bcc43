"""Parley command line."""

from __future__ import annotations

import asyncio
import importlib
import json
from typing import Any

import typer

from parley.activity import Activity, ActivityTypes
from parley.adapter import BusAdapter
from parley.bus import MessageBus
from parley.config import load_settings
from parley.dialogs.dialog import Dialog
from parley.framework import ParleyFramework
from parley.logging_utils import configure_logging
from parley.types import DialogTurnStatus

app = typer.Typer(name="parley", help="Stack-based multi-turn dialogs", add_completion=False)

QUIT_COMMANDS = frozenset({"/quit", "/exit"})


@app.command("chat")
def chat(
    dialog: str = typer.Option(..., "--dialog", "-d", help="Root dialog as module:attribute"),
    channel: str | None = typer.Option(None, "--channel", help="Channel id"),
    conversation_id: str = typer.Option("local", "--conversation-id", help="Conversation id"),
    sender_id: str = typer.Option("human", "--sender-id", help="Sender id"),
    trace: bool = typer.Option(False, "--trace", help="Print BotState trace activities"),
) -> None:
    """Talk to a root dialog from the console."""

    settings = load_settings(default_channel=channel)
    configure_logging(profile="chat", level=settings.log_level)
    framework = ParleyFramework(load_dialog(dialog), settings=settings)
    framework.load_entrypoint_plugins()
    inbound = {
        "type": ActivityTypes.MESSAGE,
        "channel_id": settings.default_channel,
        "conversation_id": conversation_id,
        "sender_id": sender_id,
    }
    asyncio.run(_chat_loop(framework, inbound, trace=trace))


@app.command("hooks")
def list_hooks() -> None:
    """Show hook implementation mapping for installed plugins."""

    framework = ParleyFramework()
    framework.load_entrypoint_plugins()
    report = framework.hook_report()
    if not report:
        typer.echo("(no hook implementations)")
        return
    for hook_name, plugins in report.items():
        typer.echo(f"{hook_name}: {', '.join(plugins)}")


def load_dialog(target: str) -> Dialog:
    """Resolve ``module:attribute`` to a dialog instance or dialog factory."""

    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"expected module:attribute, got {target!r}")
    try:
        candidate = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as exc:
        raise typer.BadParameter(f"cannot load {target!r}: {exc}") from exc
    if not isinstance(candidate, Dialog) and callable(candidate):
        candidate = candidate()
    if not isinstance(candidate, Dialog):
        raise typer.BadParameter(f"{target!r} is not a dialog")
    return candidate


def render_activity(activity: Activity) -> str:
    if activity.type == ActivityTypes.TRACE:
        return f"[trace {activity.name}] {json.dumps(activity.value, ensure_ascii=False, default=str)}"
    lines = [activity.text] if activity.text else []
    for attachment in activity.attachments:
        content = attachment.content if isinstance(attachment.content, dict) else {}
        for button in content.get("buttons", []):
            link = button.get("value") or "(sign in through the channel)"
            lines.append(f"[{button.get('title')}] {link}")
    return "\n".join(lines)


async def _chat_loop(framework: ParleyFramework, inbound: dict[str, Any], *, trace: bool) -> None:
    bus = MessageBus()
    adapter = BusAdapter(bus, forward_traces=trace)
    while True:
        try:
            text = await asyncio.to_thread(typer.prompt, "you", default="", show_default=False, prompt_suffix=" > ")
        except typer.Abort:
            break
        if text.strip() in QUIT_COMMANDS:
            break
        outcome = await framework.process_inbound({**inbound, "text": text}, adapter)
        for activity in bus.drain_outbound():
            rendered = render_activity(activity)
            if rendered:
                typer.echo(rendered)
        if outcome.turn_result.status == DialogTurnStatus.COMPLETE:
            typer.echo("(dialog complete)")
