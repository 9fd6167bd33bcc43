from __future__ import annotations

from typing import Any

import pytest
from dialog_fakes import CapturingAdapter, event, message

from parley.context import TurnContext
from parley.dialogs import Dialog, DialogContext, DialogSet, WaterfallDialog, WaterfallStepContext
from parley.errors import DialogNotFoundError, DuplicateDialogError
from parley.types import (
    END_OF_TURN,
    DialogEvent,
    DialogInstance,
    DialogReason,
    DialogState,
    DialogTurnResult,
    DialogTurnStatus,
)


class RecordingDialog(Dialog):
    """Waits on begin, ends on continue and records every lifecycle call."""

    def __init__(self, dialog_id: str, log: list[tuple[str, ...]], consumes: set[str] | None = None) -> None:
        super().__init__(dialog_id)
        self.log = log
        self.consumes = consumes or set()

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        dc.active_dialog.state["options"] = options
        self.log.append(("begin", self.id))
        return END_OF_TURN

    async def continue_dialog(self, dc: DialogContext) -> DialogTurnResult:
        self.log.append(("continue", self.id))
        return await dc.end_dialog(f"{self.id}-done")

    async def resume_dialog(self, dc: DialogContext, reason: DialogReason, result: Any = None) -> DialogTurnResult:
        self.log.append(("resume", self.id, str(result)))
        return END_OF_TURN

    async def end_dialog(self, context: TurnContext, instance: DialogInstance, reason: DialogReason) -> None:
        self.log.append(("end", self.id, str(reason)))

    async def on_dialog_event(self, dc: DialogContext, instance: DialogInstance, event: DialogEvent) -> bool:
        self.log.append(("event", self.id, event.name))
        return event.name in self.consumes


def _dc(*dialogs: Dialog, activity=None, state: DialogState | None = None) -> DialogContext:
    context = TurnContext(CapturingAdapter(), activity or message("hi"))
    return DialogContext(DialogSet(list(dialogs)), context, state or DialogState())


@pytest.mark.asyncio
async def test_stack_is_last_in_first_out() -> None:
    log: list[tuple[str, ...]] = []
    dc = _dc(RecordingDialog("a", log), RecordingDialog("b", log))

    await dc.begin_dialog("a", {"n": 1})
    await dc.begin_dialog("b")
    assert [instance.dialog_id for instance in dc.stack] == ["a", "b"]
    assert dc.active_dialog.dialog_id == "b"

    result = await dc.continue_dialog()

    assert result == END_OF_TURN
    assert [instance.dialog_id for instance in dc.stack] == ["a"]
    assert dc.stack[0].state == {"options": {"n": 1}}
    assert log[-3:] == [("continue", "b"), ("end", "b", "endCalled"), ("resume", "a", "b-done")]


@pytest.mark.asyncio
async def test_ending_root_completes_with_result() -> None:
    log: list[tuple[str, ...]] = []
    dc = _dc(RecordingDialog("a", log))

    await dc.begin_dialog("a")
    result = await dc.continue_dialog()

    assert result == DialogTurnResult(DialogTurnStatus.COMPLETE, "a-done")
    assert dc.stack == []


@pytest.mark.asyncio
async def test_begin_unknown_dialog_leaves_stack_unchanged() -> None:
    dc = _dc()

    with pytest.raises(DialogNotFoundError) as exc_info:
        await dc.begin_dialog("missing")

    assert exc_info.value.dialog_id == "missing"
    assert dc.stack == []


@pytest.mark.asyncio
async def test_continue_on_empty_stack_is_empty() -> None:
    result = await _dc().continue_dialog()
    assert result.status == DialogTurnStatus.EMPTY


@pytest.mark.asyncio
async def test_cancel_all_pops_every_frame() -> None:
    log: list[tuple[str, ...]] = []
    dc = _dc(RecordingDialog("a", log), RecordingDialog("b", log))
    await dc.begin_dialog("a")
    await dc.begin_dialog("b")

    result = await dc.cancel_all_dialogs()

    assert result.status == DialogTurnStatus.COMPLETE
    assert dc.stack == []
    assert [entry for entry in log if entry[0] == "end"] == [
        ("end", "b", "cancelCalled"),
        ("end", "a", "cancelCalled"),
    ]
    assert (await dc.cancel_all_dialogs()).status == DialogTurnStatus.EMPTY


@pytest.mark.asyncio
async def test_events_bubble_from_top_to_first_consumer() -> None:
    log: list[tuple[str, ...]] = []
    dc = _dc(
        RecordingDialog("root", log, consumes={"error"}),
        RecordingDialog("middle", log),
        RecordingDialog("leaf", log),
    )
    for dialog_id in ("root", "middle", "leaf"):
        await dc.begin_dialog(dialog_id)

    handled = await dc.emit_event("error", RuntimeError("boom"))

    assert handled is True
    assert [entry for entry in log if entry[0] == "event"] == [
        ("event", "leaf", "error"),
        ("event", "middle", "error"),
        ("event", "root", "error"),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("from_leaf", [True, False])
async def test_event_traversal_starts_at_top_either_way(from_leaf: bool) -> None:
    log: list[tuple[str, ...]] = []
    dc = _dc(RecordingDialog("root", log, consumes={"error"}), RecordingDialog("leaf", log))
    await dc.begin_dialog("root")
    await dc.begin_dialog("leaf")

    handled = await dc.emit_event("error", from_leaf=from_leaf)

    assert handled is True
    assert [entry for entry in log if entry[0] == "event"] == [("event", "leaf", "error"), ("event", "root", "error")]


@pytest.mark.asyncio
async def test_non_bubbling_event_only_reaches_top() -> None:
    log: list[tuple[str, ...]] = []
    dc = _dc(RecordingDialog("root", log, consumes={"ping"}), RecordingDialog("leaf", log))
    await dc.begin_dialog("root")
    await dc.begin_dialog("leaf")

    handled = await dc.emit_event("ping", bubble=False)

    assert handled is False
    assert [entry for entry in log if entry[0] == "event"] == [("event", "leaf", "ping")]


@pytest.mark.asyncio
async def test_unconsumed_event_returns_false_on_empty_stack() -> None:
    assert await _dc().emit_event("error") is False


def test_dialog_set_rejects_duplicate_ids() -> None:
    log: list[tuple[str, ...]] = []
    first = RecordingDialog("a", log)
    dialogs = DialogSet([first])

    dialogs.add(first)
    with pytest.raises(DuplicateDialogError):
        dialogs.add(RecordingDialog("a", log))

    assert len(dialogs) == 1
    assert "a" in dialogs
    assert dialogs.ids() == ["a"]


def test_dialog_state_round_trips_plain_data() -> None:
    payload = {"stack": [{"dialog_id": "a", "state": {"x": 1}}, {"dialog_id": "b", "state": None}]}

    state = DialogState.from_dict(payload)

    assert [instance.dialog_id for instance in state.stack] == ["a", "b"]
    assert state.to_dict() == {"stack": [{"dialog_id": "a", "state": {"x": 1}}, {"dialog_id": "b", "state": {}}]}
    assert DialogState.from_dict({"stack": "bogus"}).stack == []
    assert DialogState.from_dict(None).stack == []


@pytest.mark.asyncio
async def test_waterfall_runs_one_step_per_message() -> None:
    async def ask_name(step: WaterfallStepContext) -> DialogTurnResult:
        await step.context.send_activity("name?")
        return END_OF_TURN

    async def ask_age(step: WaterfallStepContext) -> DialogTurnResult:
        step.values["name"] = step.result
        await step.context.send_activity("age?")
        return END_OF_TURN

    async def finish(step: WaterfallStepContext) -> DialogTurnResult:
        return await step.end_dialog({"name": step.values["name"], "age": step.result})

    waterfall = WaterfallDialog("profile", [ask_name, ask_age, finish])
    state = DialogState()

    dc = _dc(waterfall, state=state)
    assert await dc.begin_dialog("profile") == END_OF_TURN
    assert await _dc(waterfall, activity=message("Ada"), state=state).continue_dialog() == END_OF_TURN
    assert await _dc(waterfall, activity=event("ping"), state=state).continue_dialog() == END_OF_TURN
    assert state.stack[0].state["step_index"] == 1

    result = await _dc(waterfall, activity=message("36"), state=state).continue_dialog()

    assert result == DialogTurnResult(DialogTurnStatus.COMPLETE, {"name": "Ada", "age": "36"})


@pytest.mark.asyncio
async def test_waterfall_next_skips_ahead_once() -> None:
    async def skip(step: WaterfallStepContext) -> DialogTurnResult:
        result = await step.next("skipped")
        with pytest.raises(RuntimeError):
            await step.next()
        return result

    async def last(step: WaterfallStepContext) -> DialogTurnResult:
        return await step.end_dialog(step.result)

    dc = _dc(WaterfallDialog("flow").add_step(skip).add_step(last))

    result = await dc.begin_dialog("flow")

    assert result == DialogTurnResult(DialogTurnStatus.COMPLETE, "skipped")


@pytest.mark.asyncio
async def test_waterfall_resumes_with_child_result() -> None:
    log: list[tuple[str, ...]] = []

    async def start_child(step: WaterfallStepContext) -> DialogTurnResult:
        return await step.begin_dialog("child")

    async def collect(step: WaterfallStepContext) -> DialogTurnResult:
        return await step.end_dialog(step.result)

    waterfall = WaterfallDialog("parent", [start_child, collect])
    state = DialogState()
    await _dc(waterfall, RecordingDialog("child", log), state=state).begin_dialog("parent")

    result = await _dc(waterfall, RecordingDialog("child", log), state=state).continue_dialog()

    assert result == DialogTurnResult(DialogTurnStatus.COMPLETE, "child-done")
