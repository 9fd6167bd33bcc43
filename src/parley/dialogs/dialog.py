"""Dialog base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from parley.types import DialogEvent, DialogInstance, DialogReason, DialogTurnResult

if TYPE_CHECKING:
    from parley.context import TurnContext
    from parley.dialogs.dialog_context import DialogContext


class DialogEvents(StrEnum):
    BEGIN_DIALOG = "beginDialog"
    CANCEL_DIALOG = "cancelDialog"
    ERROR = "error"


class Dialog(ABC):
    """A resumable unit of conversational logic living on the dialog stack.

    Subclasses keep everything they need between turns in the state of the
    `DialogInstance` they were activated with (`dc.active_dialog.state`).
    That state must stay plain data because it is persisted with the stack.
    """

    def __init__(self, dialog_id: str) -> None:
        if not dialog_id:
            raise ValueError("dialog id must not be empty")
        self._id = dialog_id

    @property
    def id(self) -> str:
        return self._id

    @abstractmethod
    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        """Called once, right after the dialog was pushed onto the stack."""

    async def continue_dialog(self, dc: DialogContext) -> DialogTurnResult:
        """Called for each new turn while this dialog is on top of the stack."""
        return await dc.end_dialog()

    async def resume_dialog(self, dc: DialogContext, reason: DialogReason, result: Any = None) -> DialogTurnResult:
        """Called when a child dialog ended and this dialog is on top again."""
        _ = reason
        return await dc.end_dialog(result)

    async def end_dialog(self, context: TurnContext, instance: DialogInstance, reason: DialogReason) -> None:
        """Called when the instance is popped off the stack."""
        _ = context, instance, reason

    async def on_dialog_event(self, dc: DialogContext, instance: DialogInstance, event: DialogEvent) -> bool:
        """Return True to consume an event travelling up the stack."""
        _ = dc, instance, event
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r})"
