"""Scoped bot state loaded and saved once per turn."""

from __future__ import annotations

import copy
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from hashlib import md5
from typing import Any

from loguru import logger

from parley.context import TurnContext
from parley.storage import Storage
from parley.types import State


def _state_hash(state: State) -> str:
    encoded = json.dumps(state, sort_keys=True, default=str).encode("utf-8")
    return md5(encoded).hexdigest()  # noqa: S324


@dataclass
class CachedState:
    """State loaded for one turn plus the hash it was loaded with."""

    state: State = field(default_factory=dict)
    hash: str = ""

    @property
    def is_changed(self) -> bool:
        return _state_hash(self.state) != self.hash


class BotState(ABC):
    """Base class for one storage-backed state scope."""

    def __init__(self, storage: Storage, name: str) -> None:
        self.storage = storage
        self.name = name
        self._cache_key = f"parley.state.{name}"

    @abstractmethod
    def get_storage_key(self, context: TurnContext) -> str:
        """Compute the storage key for the given turn."""

    async def load(self, context: TurnContext, force: bool = False) -> State:
        cached: CachedState | None = context.turn_state.get(self._cache_key)
        if cached is not None and not force:
            return cached.state
        key = self.get_storage_key(context)
        items = await self.storage.read([key])
        state = items.get(key)
        if not isinstance(state, dict):
            state = {}
        context.turn_state[self._cache_key] = CachedState(state=state, hash=_state_hash(state))
        logger.debug("state.loaded scope={} key={}", self.name, key)
        return state

    async def save_changes(self, context: TurnContext, force: bool = False) -> None:
        cached: CachedState | None = context.turn_state.get(self._cache_key)
        if cached is None or not (force or cached.is_changed):
            return
        key = self.get_storage_key(context)
        await self.storage.write({key: cached.state})
        cached.hash = _state_hash(cached.state)
        logger.debug("state.saved scope={} key={}", self.name, key)

    async def clear(self, context: TurnContext) -> None:
        """Empty the cached state; the next save writes the empty state."""
        context.turn_state[self._cache_key] = CachedState(state={}, hash="")

    async def delete(self, context: TurnContext) -> None:
        context.turn_state.pop(self._cache_key, None)
        await self.storage.delete([self.get_storage_key(context)])

    def get(self, context: TurnContext) -> State:
        """Return the loaded state; raises when the scope was not loaded this turn."""
        cached: CachedState | None = context.turn_state.get(self._cache_key)
        if cached is None:
            raise RuntimeError(f"{self.name} state has not been loaded for this turn")
        return cached.state

    def snapshot(self, context: TurnContext) -> State:
        cached: CachedState | None = context.turn_state.get(self._cache_key)
        return copy.deepcopy(cached.state) if cached is not None else {}

    def create_property(self, name: str) -> StatePropertyAccessor:
        return StatePropertyAccessor(self, name)


class StatePropertyAccessor:
    """Read/write one named property of a state scope."""

    def __init__(self, state: BotState, name: str) -> None:
        self.state = state
        self.name = name

    async def get(self, context: TurnContext, default: Any = None) -> Any:
        values = await self.state.load(context)
        if self.name not in values and default is not None:
            values[self.name] = default
        return values.get(self.name)

    async def set(self, context: TurnContext, value: Any) -> None:
        values = await self.state.load(context)
        values[self.name] = value

    async def delete(self, context: TurnContext) -> None:
        values = await self.state.load(context)
        values.pop(self.name, None)


class ConversationState(BotState):
    """State shared by everyone in one conversation."""

    def __init__(self, storage: Storage) -> None:
        super().__init__(storage, "conversation")

    def get_storage_key(self, context: TurnContext) -> str:
        activity = context.activity
        return f"{activity.channel_id}/conversations/{activity.conversation_id}"


class UserState(BotState):
    """State that follows one user across conversations on a channel."""

    def __init__(self, storage: Storage) -> None:
        super().__init__(storage, "user")

    def get_storage_key(self, context: TurnContext) -> str:
        activity = context.activity
        return f"{activity.channel_id}/users/{activity.sender_id}"
