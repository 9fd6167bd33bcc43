"""Dialog stack operations for one turn."""

from __future__ import annotations

from typing import Any

from loguru import logger

from parley.context import TurnContext
from parley.dialogs.dialog import Dialog
from parley.dialogs.dialog_set import DialogSet
from parley.errors import DialogNotFoundError
from parley.types import (
    DialogEvent,
    DialogInstance,
    DialogReason,
    DialogState,
    DialogTurnResult,
    DialogTurnStatus,
)


class DialogContext:
    """Drive the dialog stack for the current turn.

    The stack is an ordered list of `DialogInstance` records whose dialog ids
    resolve through a flat `DialogSet`. Only `begin_dialog` pushes and only
    `end_dialog`/`cancel_all_dialogs` pop.
    """

    def __init__(self, dialogs: DialogSet, context: TurnContext, state: DialogState) -> None:
        self.dialogs = dialogs
        self.context = context
        self._state = state

    @property
    def stack(self) -> list[DialogInstance]:
        return self._state.stack

    @property
    def active_dialog(self) -> DialogInstance | None:
        return self._state.stack[-1] if self._state.stack else None

    def find_dialog(self, dialog_id: str) -> Dialog | None:
        return self.dialogs.find(dialog_id)

    async def begin_dialog(self, dialog_id: str, options: Any = None) -> DialogTurnResult:
        dialog = self.find_dialog(dialog_id)
        if dialog is None:
            raise DialogNotFoundError(dialog_id)
        self._state.stack.append(DialogInstance(dialog_id=dialog_id))
        logger.debug("dialog.begin id={} depth={}", dialog_id, len(self._state.stack))
        return await dialog.begin_dialog(self, options)

    async def continue_dialog(self) -> DialogTurnResult:
        instance = self.active_dialog
        if instance is None:
            return DialogTurnResult(DialogTurnStatus.EMPTY)
        dialog = self.find_dialog(instance.dialog_id)
        if dialog is None:
            raise DialogNotFoundError(instance.dialog_id)
        return await dialog.continue_dialog(self)

    async def end_dialog(self, result: Any = None) -> DialogTurnResult:
        await self._pop(DialogReason.END_CALLED)
        parent = self.active_dialog
        if parent is None:
            return DialogTurnResult(DialogTurnStatus.COMPLETE, result)
        dialog = self.find_dialog(parent.dialog_id)
        if dialog is None:
            raise DialogNotFoundError(parent.dialog_id)
        logger.debug("dialog.resume id={} depth={}", parent.dialog_id, len(self._state.stack))
        return await dialog.resume_dialog(self, DialogReason.END_CALLED, result)

    async def cancel_all_dialogs(self) -> DialogTurnResult:
        if not self._state.stack:
            return DialogTurnResult(DialogTurnStatus.EMPTY)
        while self._state.stack:
            await self._pop(DialogReason.CANCEL_CALLED)
        return DialogTurnResult(DialogTurnStatus.COMPLETE)

    async def emit_event(self, name: str, value: Any = None, bubble: bool = True, from_leaf: bool = False) -> bool:
        """Offer an event to the stack from the top toward the root.

        The stack is flat, so the leaf and the dialog raising the event are the
        same frame and `from_leaf` does not change where traversal starts.
        """
        event = DialogEvent(name=name, value=value, bubble=bubble)
        for index in range(len(self._state.stack) - 1, -1, -1):
            if index >= len(self._state.stack):
                continue
            instance = self._state.stack[index]
            dialog = self.find_dialog(instance.dialog_id)
            if dialog is not None and await dialog.on_dialog_event(self, instance, event):
                logger.debug("dialog.event_handled name={} id={}", name, instance.dialog_id)
                return True
            if not event.bubble:
                break
        return False

    async def _pop(self, reason: DialogReason) -> None:
        instance = self._state.stack.pop()
        dialog = self.find_dialog(instance.dialog_id)
        if dialog is not None:
            await dialog.end_dialog(self.context, instance, reason)
        logger.debug("dialog.end id={} reason={} depth={}", instance.dialog_id, reason, len(self._state.stack))
