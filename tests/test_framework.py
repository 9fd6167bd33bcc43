from __future__ import annotations

from typing import Any

import pytest
from dialog_fakes import CapturingAdapter, EchoDialog

from parley.activity import Activity, ActivityTypes
from parley.bus import MessageBus
from parley.config import load_settings
from parley.context import TurnContext
from parley.errors import RootDialogNotConfiguredError
from parley.framework import ParleyFramework
from parley.hookspecs import hookimpl
from parley.storage import MemoryStorage
from parley.types import DialogTurnResult, DialogTurnStatus


class RecordingPlugin:
    def __init__(self) -> None:
        self.started: list[str | None] = []
        self.ended: list[tuple[DialogTurnStatus, list[str]]] = []
        self.errors: list[tuple[str, str]] = []

    @hookimpl
    def on_turn_start(self, context: TurnContext) -> None:
        self.started.append(context.activity.text)

    @hookimpl
    def on_turn_end(self, context: TurnContext, result: DialogTurnResult, snapshot: dict[str, Any]) -> None:
        self.ended.append((result.status, snapshot["stack"]))

    @hookimpl
    def on_error(self, stage: str, error: Exception, activity: Activity | None) -> None:
        self.errors.append((stage, str(error)))


class ShoutingPlugin:
    @hookimpl
    async def normalize_inbound(self, activity: Activity) -> Activity | None:
        if not activity.text:
            return None
        return activity.model_copy(update={"text": activity.text.upper()})


class BrokenStartPlugin:
    @hookimpl
    def on_turn_start(self, context: TurnContext) -> None:
        raise RuntimeError("start hook exploded")


class StoragePlugin:
    def __init__(self, storage: MemoryStorage) -> None:
        self.storage = storage

    @hookimpl
    def provide_storage(self) -> MemoryStorage:
        return self.storage


def _framework(**kwargs: Any) -> ParleyFramework:
    return ParleyFramework(EchoDialog("echo"), settings=load_settings(trace_enabled=False), **kwargs)


def _inbound(text: str, **fields: Any) -> dict[str, Any]:
    return {"content": text, "channel": "console", "chat_id": "room", **fields}


@pytest.mark.asyncio
async def test_process_inbound_runs_turn_and_collects_outbounds() -> None:
    framework = _framework()

    outcome = await framework.process_inbound(_inbound("hello"), CapturingAdapter())

    assert outcome.turn_result.status == DialogTurnStatus.WAITING
    assert outcome.activity.conversation_id == "room"
    assert [a.text for a in outcome.outbounds] == ["echo: hello"]
    assert outcome.invoke_response is None


@pytest.mark.asyncio
async def test_turn_hooks_observe_each_turn() -> None:
    framework = _framework()
    plugin = RecordingPlugin()
    framework.register(plugin, name="recorder")

    await framework.process_inbound(_inbound("hello"), CapturingAdapter())
    await framework.process_inbound(_inbound("bye"), CapturingAdapter())

    assert plugin.started == ["hello", "bye"]
    assert plugin.ended == [(DialogTurnStatus.WAITING, ["echo"]), (DialogTurnStatus.COMPLETE, [])]
    assert plugin.errors == []


@pytest.mark.asyncio
async def test_normalize_inbound_rewrites_activity() -> None:
    framework = _framework()
    framework.register(ShoutingPlugin(), name="shout")

    outcome = await framework.process_inbound(_inbound("hello"), CapturingAdapter())

    assert outcome.activity.text == "HELLO"
    assert outcome.outbounds[0].text == "echo: HELLO"


@pytest.mark.asyncio
async def test_failing_hook_is_isolated_and_reported() -> None:
    framework = _framework()
    recorder = RecordingPlugin()
    framework.register(recorder, name="recorder")
    framework.register(BrokenStartPlugin(), name="broken")

    outcome = await framework.process_inbound(_inbound("hello"), CapturingAdapter())

    assert outcome.turn_result.status == DialogTurnStatus.WAITING
    assert recorder.started == ["hello"]
    assert recorder.errors == [("on_turn_start:broken", "start hook exploded")]


@pytest.mark.asyncio
async def test_turn_failure_notifies_and_propagates() -> None:
    framework = ParleyFramework(settings=load_settings(trace_enabled=False))
    recorder = RecordingPlugin()
    framework.register(recorder, name="recorder")

    with pytest.raises(RootDialogNotConfiguredError):
        await framework.process_inbound(_inbound("hello"), CapturingAdapter())

    assert [stage for stage, _ in recorder.errors] == ["turn"]


def test_storage_comes_from_hook_when_provided() -> None:
    storage = MemoryStorage()
    framework = _framework()
    framework.register(StoragePlugin(storage), name="storage")

    assert framework.create_storage() is storage
    assert framework.manager.conversation_state.storage is storage


def test_storage_defaults_to_memory() -> None:
    assert isinstance(_framework().create_storage(), MemoryStorage)


@pytest.mark.asyncio
async def test_state_survives_between_inbound_turns() -> None:
    storage = MemoryStorage()
    framework = _framework(storage=storage)

    await framework.process_inbound(_inbound("one"), CapturingAdapter())
    outcome = await framework.process_inbound(_inbound("bye"), CapturingAdapter())

    assert outcome.turn_result == DialogTurnResult(DialogTurnStatus.COMPLETE, 1)
    assert "console/conversations/room" in storage.keys()


@pytest.mark.asyncio
async def test_handle_bus_once_publishes_replies() -> None:
    bus = MessageBus()
    framework = _framework()
    await bus.publish_inbound(_inbound("hello"))

    outcome = await framework.handle_bus_once(bus, timeout_seconds=1)
    reply = await bus.next_outbound(timeout_seconds=1)

    assert outcome is not None
    assert reply.type == ActivityTypes.MESSAGE
    assert reply.text == "echo: hello"
    assert reply.conversation_id == "room"
    assert await framework.handle_bus_once(bus, timeout_seconds=0.01) is None


def test_hook_report_lists_plugins() -> None:
    framework = _framework()
    framework.register(RecordingPlugin(), name="recorder")
    framework.register(ShoutingPlugin(), name="shout")

    report = framework.hook_report()

    assert report["on_turn_start"] == ["recorder"]
    assert report["normalize_inbound"] == ["shout"]
    assert "provide_storage" not in report


class AsyncStoragePlugin:
    def __init__(self) -> None:
        self.calls = 0

    @hookimpl
    async def provide_storage(self) -> MemoryStorage:
        self.calls += 1
        return MemoryStorage()


class BrokenErrorObserver:
    @hookimpl
    def on_error(self, stage: str, error: Exception, activity: Activity | None) -> None:
        raise RuntimeError("observer exploded")


class CountingNormalizer:
    def __init__(self) -> None:
        self.calls = 0

    @hookimpl
    def normalize_inbound(self, activity: Activity) -> Activity | None:
        self.calls += 1
        return activity.model_copy(update={"text": "counted"})


def test_coroutine_storage_hook_falls_through_to_sync_plugin() -> None:
    storage = MemoryStorage()
    framework = _framework()
    framework.register(StoragePlugin(storage), name="sync-storage")
    async_plugin = AsyncStoragePlugin()
    framework.register(async_plugin, name="async-storage")

    assert framework.create_storage() is storage
    assert async_plugin.calls == 0


@pytest.mark.asyncio
async def test_failing_error_observer_does_not_stop_other_observers() -> None:
    framework = _framework()
    recorder = RecordingPlugin()
    framework.register(recorder, name="recorder")
    framework.register(BrokenErrorObserver(), name="observer")
    framework.register(BrokenStartPlugin(), name="broken")

    outcome = await framework.process_inbound(_inbound("hello"), CapturingAdapter())

    assert outcome.turn_result.status == DialogTurnStatus.WAITING
    assert recorder.errors == [("on_turn_start:broken", "start hook exploded")]


@pytest.mark.asyncio
async def test_first_answer_wins_for_normalize_inbound() -> None:
    framework = _framework()
    older = CountingNormalizer()
    framework.register(older, name="older")
    framework.register(ShoutingPlugin(), name="newer")

    outcome = await framework.process_inbound(_inbound("hello"), CapturingAdapter())

    assert outcome.activity.text == "HELLO"
    assert older.calls == 0
