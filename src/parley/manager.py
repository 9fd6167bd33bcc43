"""Turn driver that runs the dialog stack for one inbound activity."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from loguru import logger

from parley.activity import trace_activity
from parley.context import TurnContext
from parley.dialogs.dialog import Dialog, DialogEvents
from parley.dialogs.dialog_context import DialogContext
from parley.dialogs.dialog_set import DialogSet
from parley.dialogs.memory import (
    TURN_MEMORY_KEY,
    MemoryScope,
    load_all_scopes,
    memory_snapshot,
    save_all_changes,
    standard_scopes,
)
from parley.errors import ConversationStateNotConfiguredError, RootDialogNotConfiguredError
from parley.hook_runtime import HookRuntime
from parley.state import ConversationState, UserState
from parley.types import DialogManagerResult, DialogState, DialogTurnResult, DialogTurnStatus

LAST_ACCESS = "_last_access"
DIALOGS = "_dialogs"
DIALOG_MANAGER_KEY = "parley.dialog_manager"

BOT_STATE_TRACE_NAME = "BotState"
BOT_STATE_TRACE_LABEL = "Bot State"
BOT_STATE_VALUE_TYPE = "https://www.botframework.com/schemas/botState"


class DialogManager:
    """Load state, drive the dialog stack, save state, emit a state trace."""

    def __init__(
        self,
        root_dialog: Dialog | None = None,
        *,
        conversation_state: ConversationState | None = None,
        user_state: UserState | None = None,
        expire_after: int | None = None,
        scopes: list[MemoryScope] | None = None,
        hooks: HookRuntime | None = None,
        trace_enabled: bool = True,
    ) -> None:
        self.dialogs = DialogSet()
        self._root_dialog_id: str | None = None
        self.conversation_state = conversation_state
        self.user_state = user_state
        self.expire_after = expire_after
        self.scopes = scopes
        self.trace_enabled = trace_enabled
        self._hooks = hooks
        self.initial_turn_state: dict[str, Any] = {DIALOG_MANAGER_KEY: self}
        if root_dialog is not None:
            self.root_dialog = root_dialog

    @property
    def root_dialog(self) -> Dialog | None:
        return self.dialogs.find(self._root_dialog_id) if self._root_dialog_id else None

    @root_dialog.setter
    def root_dialog(self, dialog: Dialog) -> None:
        self.dialogs.add(dialog)
        self._root_dialog_id = dialog.id

    def add(self, dialog: Dialog) -> DialogManager:
        """Register a dialog the root dialog may begin."""
        self.dialogs.add(dialog)
        return self

    async def on_turn(self, context: TurnContext) -> DialogManagerResult:
        if self._root_dialog_id is None:
            raise RootDialogNotConfiguredError("DialogManager.on_turn: the root dialog has not been configured")
        if self.conversation_state is None:
            raise ConversationStateNotConfiguredError(
                "DialogManager.on_turn: the conversation state has not been configured"
            )

        context.turn_state.update(self.initial_turn_state)
        if self._hooks is not None:
            await self._hooks.call_many("on_turn_start", context=context)

        conversation = await self._load_conversation(context)
        dialog_state = DialogState.from_dict(conversation.get(DIALOGS))
        dc = DialogContext(self.dialogs, context, dialog_state)

        scopes = self.scopes or standard_scopes(self.conversation_state, self.user_state)
        context.turn_state.setdefault(TURN_MEMORY_KEY, {})["activity"] = context.activity
        await load_all_scopes(dc, scopes)

        turn_result = await self._run_stack(dc)

        conversation[DIALOGS] = dialog_state.to_dict()
        await save_all_changes(dc, scopes)

        snapshot = memory_snapshot(dc, scopes)
        if self.trace_enabled:
            await context.send_activity(
                trace_activity(
                    BOT_STATE_TRACE_NAME,
                    snapshot,
                    value_type=BOT_STATE_VALUE_TYPE,
                    label=BOT_STATE_TRACE_LABEL,
                )
            )
        if self._hooks is not None:
            await self._hooks.call_many("on_turn_end", context=context, result=turn_result, snapshot=snapshot)

        logger.info("turn.done status={} depth={}", turn_result.status, len(dialog_state.stack))
        return DialogManagerResult(turn_result=turn_result)

    async def _load_conversation(self, context: TurnContext) -> dict[str, Any]:
        conversation = await self.conversation_state.load(context)
        now = datetime.now(UTC)
        last_access = _parse_timestamp(conversation.get(LAST_ACCESS)) or now
        idle_ms = (now - last_access).total_seconds() * 1000
        if self.expire_after is not None and idle_ms >= self.expire_after:
            logger.info("conversation.expired idle_ms={} expire_after={}", int(idle_ms), self.expire_after)
            await self.conversation_state.clear(context)
            conversation = self.conversation_state.get(context)
        conversation[LAST_ACCESS] = now.isoformat()
        return conversation

    async def _run_stack(self, dc: DialogContext) -> DialogTurnResult:
        root_id = self._root_dialog_id
        try:
            if dc.active_dialog is not None:
                result = await dc.continue_dialog()
                if result.status == DialogTurnStatus.EMPTY:
                    result = await dc.begin_dialog(root_id)
                return result
            return await dc.begin_dialog(root_id)
        except Exception as exc:
            handled = await dc.emit_event(DialogEvents.ERROR, exc, bubble=True, from_leaf=True)
            if not handled:
                raise
            logger.warning("turn.error_handled error={!r} depth={}", exc, len(dc.stack))
            status = DialogTurnStatus.WAITING if dc.active_dialog is not None else DialogTurnStatus.EMPTY
            return DialogTurnResult(status)


def _parse_timestamp(raw: Any) -> datetime | None:
    if not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
