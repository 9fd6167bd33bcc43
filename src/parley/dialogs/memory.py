"""Memory scopes visible to dialogs and the per-turn state snapshot."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic_core import to_jsonable_python

from parley.dialogs.dialog_context import DialogContext
from parley.state import BotState, ConversationState, UserState

TURN_MEMORY_KEY = "parley.turn_memory"


class MemoryScope(ABC):
    """One named slice of memory with its own lifetime."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def get_memory(self, dc: DialogContext) -> Any:
        """Return the live memory object for this scope."""

    async def load(self, dc: DialogContext, force: bool = False) -> None:
        _ = dc, force

    async def save_changes(self, dc: DialogContext, force: bool = False) -> None:
        _ = dc, force


class TurnMemoryScope(MemoryScope):
    """Values that live for the current turn only."""

    def __init__(self) -> None:
        super().__init__("turn")

    def get_memory(self, dc: DialogContext) -> dict[str, Any]:
        return dc.context.turn_state.setdefault(TURN_MEMORY_KEY, {})


class BotStateMemoryScope(MemoryScope):
    def __init__(self, name: str, bot_state: BotState) -> None:
        super().__init__(name)
        self.bot_state = bot_state

    def get_memory(self, dc: DialogContext) -> dict[str, Any]:
        return self.bot_state.get(dc.context)

    async def load(self, dc: DialogContext, force: bool = False) -> None:
        await self.bot_state.load(dc.context, force)

    async def save_changes(self, dc: DialogContext, force: bool = False) -> None:
        await self.bot_state.save_changes(dc.context, force)


class DialogMemoryScope(MemoryScope):
    """State of the active dialog instance."""

    def __init__(self) -> None:
        super().__init__("dialog")

    def get_memory(self, dc: DialogContext) -> dict[str, Any]:
        instance = dc.active_dialog
        return instance.state if instance is not None else {}


def standard_scopes(conversation_state: ConversationState, user_state: UserState | None = None) -> list[MemoryScope]:
    scopes: list[MemoryScope] = [
        TurnMemoryScope(),
        BotStateMemoryScope("conversation", conversation_state),
    ]
    if user_state is not None:
        scopes.append(BotStateMemoryScope("user", user_state))
    scopes.append(DialogMemoryScope())
    return scopes


async def load_all_scopes(dc: DialogContext, scopes: list[MemoryScope]) -> None:
    for scope in scopes:
        await scope.load(dc)


async def save_all_changes(dc: DialogContext, scopes: list[MemoryScope]) -> None:
    for scope in scopes:
        await scope.save_changes(dc)


def memory_snapshot(dc: DialogContext, scopes: list[MemoryScope]) -> dict[str, Any]:
    """Render every scope as JSON-compatible data."""

    snapshot: dict[str, Any] = {}
    for scope in scopes:
        snapshot[scope.name] = to_jsonable_python(scope.get_memory(dc), fallback=repr)
    snapshot["stack"] = [instance.dialog_id for instance in dc.stack]
    return snapshot
