"""Per-turn context shared by every dialog touched during one turn."""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from parley.activity import Activity, ActivityTypes, message_activity

if TYPE_CHECKING:
    from parley.adapter import BotAdapter

_conversation_context: ContextVar[str] = ContextVar("conversation")


def current_conversation() -> str:
    """Get the conversation id of the turn running in this context."""
    return _conversation_context.get("-")


class TurnContext:
    """Inbound activity plus the means to reply to it."""

    def __init__(self, adapter: BotAdapter, activity: Activity) -> None:
        self.adapter = adapter
        self.activity = activity
        self.turn_state: dict[str, Any] = {}
        self.sent: list[Activity] = []
        self._responded = False

    @property
    def responded(self) -> bool:
        """True once a non-trace activity has been sent this turn."""
        return self._responded

    @contextlib.contextmanager
    def bind(self) -> Generator[TurnContext, None, None]:
        reset_token = _conversation_context.set(f"{self.activity.channel_id}:{self.activity.conversation_id}")
        try:
            yield self
        finally:
            _conversation_context.reset(reset_token)

    async def send_activity(self, activity: Activity | str, input_hint: str | None = None) -> Activity:
        if isinstance(activity, str):
            activity = message_activity(activity, input_hint)
        sent = await self.send_activities([activity])
        return sent[0]

    async def send_activities(self, activities: list[Activity]) -> list[Activity]:
        outgoing = [self._apply_reference(activity) for activity in activities]
        await self.adapter.send_activities(self, outgoing)
        self.sent.extend(outgoing)
        if any(activity.type != ActivityTypes.TRACE for activity in outgoing):
            self._responded = True
        return outgoing

    def _apply_reference(self, activity: Activity) -> Activity:
        inbound = self.activity
        return activity.model_copy(
            update={
                "channel_id": inbound.channel_id,
                "conversation_id": inbound.conversation_id,
                "service_url": inbound.service_url,
                "reply_to_id": inbound.id,
            }
        )
