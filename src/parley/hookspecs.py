"""Pluggy hook namespace and framework hook specifications."""

from __future__ import annotations

from typing import Any

import pluggy

from parley.activity import Activity
from parley.context import TurnContext
from parley.storage import Storage
from parley.types import DialogTurnResult

PARLEY_HOOK_NAMESPACE = "parley"
hookspec = pluggy.HookspecMarker(PARLEY_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(PARLEY_HOOK_NAMESPACE)


class ParleyHookSpecs:
    """Hook contract for Parley extensions."""

    @hookspec(firstresult=True)
    def provide_storage(self) -> Storage | None:
        """Provide the storage backing conversation and user state."""

    @hookspec(firstresult=True)
    def normalize_inbound(self, activity: Activity) -> Activity | None:
        """Normalize or rewrite one inbound activity."""

    @hookspec
    def on_turn_start(self, context: TurnContext) -> None:
        """Observe a turn before state is loaded."""

    @hookspec
    def on_turn_end(self, context: TurnContext, result: DialogTurnResult, snapshot: dict[str, Any]) -> None:
        """Observe a completed turn and its memory snapshot."""

    @hookspec
    def on_error(self, stage: str, error: Exception, activity: Activity | None) -> None:
        """Observe framework errors from any stage."""
