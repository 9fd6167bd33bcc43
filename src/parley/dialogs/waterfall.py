"""Sequential composite dialog."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from parley.dialogs.dialog import Dialog
from parley.dialogs.dialog_context import DialogContext
from parley.types import END_OF_TURN, DialogReason, DialogTurnResult

STEP_INDEX = "step_index"
VALUES = "values"
OPTIONS = "options"


class WaterfallStepContext:
    """View of the dialog context handed to one waterfall step."""

    def __init__(
        self,
        dc: DialogContext,
        *,
        index: int,
        options: Any,
        values: dict[str, Any],
        reason: DialogReason,
        result: Any,
        next_step: Callable[[Any], Awaitable[DialogTurnResult]],
    ) -> None:
        self.dc = dc
        self.index = index
        self.options = options
        self.values = values
        self.reason = reason
        self.result = result
        self._next_step = next_step
        self._next_called = False

    @property
    def context(self):
        return self.dc.context

    async def begin_dialog(self, dialog_id: str, options: Any = None) -> DialogTurnResult:
        return await self.dc.begin_dialog(dialog_id, options)

    async def end_dialog(self, result: Any = None) -> DialogTurnResult:
        return await self.dc.end_dialog(result)

    async def next(self, result: Any = None) -> DialogTurnResult:
        """Skip to the following step with the given result."""
        if self._next_called:
            raise RuntimeError(f"waterfall step {self.index} already called next()")
        self._next_called = True
        return await self._next_step(result)


type WaterfallStep = Callable[[WaterfallStepContext], Awaitable[DialogTurnResult]]


class WaterfallDialog(Dialog):
    """Run a fixed sequence of steps, one per resumption."""

    def __init__(self, dialog_id: str, steps: list[WaterfallStep] | None = None) -> None:
        super().__init__(dialog_id)
        self.steps: list[WaterfallStep] = list(steps or [])

    def add_step(self, step: WaterfallStep) -> WaterfallDialog:
        self.steps.append(step)
        return self

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        state = dc.active_dialog.state
        state[OPTIONS] = options
        state[VALUES] = {}
        return await self._run_step(dc, 0, DialogReason.BEGIN_CALLED, None)

    async def continue_dialog(self, dc: DialogContext) -> DialogTurnResult:
        # Only messages advance a waterfall; events and invokes belong to child prompts.
        if not dc.context.activity.is_message:
            return END_OF_TURN
        return await self.resume_dialog(dc, DialogReason.CONTINUE_CALLED, dc.context.activity.text)

    async def resume_dialog(self, dc: DialogContext, reason: DialogReason, result: Any = None) -> DialogTurnResult:
        state = dc.active_dialog.state
        return await self._run_step(dc, int(state.get(STEP_INDEX, -1)) + 1, reason, result)

    async def _run_step(self, dc: DialogContext, index: int, reason: DialogReason, result: Any) -> DialogTurnResult:
        if index >= len(self.steps):
            return await dc.end_dialog(result)

        state = dc.active_dialog.state
        state[STEP_INDEX] = index

        async def next_step(step_result: Any) -> DialogTurnResult:
            return await self._run_step(dc, index + 1, DialogReason.CONTINUE_CALLED, step_result)

        step_context = WaterfallStepContext(
            dc,
            index=index,
            options=state.get(OPTIONS),
            values=state.setdefault(VALUES, {}),
            reason=reason,
            result=result,
            next_step=next_step,
        )
        logger.debug("waterfall.step id={} index={} reason={}", self.id, index, reason)
        return await self.steps[index](step_context)
