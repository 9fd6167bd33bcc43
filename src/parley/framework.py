"""Hook-first Parley runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, cast

import pluggy
from loguru import logger

from parley.activity import Activity
from parley.adapter import INVOKE_RESPONSE_KEY, BotAdapter, BusAdapter
from parley.bus import BusProtocol
from parley.config import Settings, load_settings
from parley.context import TurnContext
from parley.dialogs.dialog import Dialog
from parley.envelope import to_activity
from parley.hook_runtime import HookRuntime
from parley.hookspecs import PARLEY_HOOK_NAMESPACE, ParleyHookSpecs
from parley.manager import DialogManager
from parley.state import ConversationState, UserState
from parley.storage import MemoryStorage, Storage
from parley.types import DialogTurnResult


@dataclass(frozen=True)
class TurnOutcome:
    """Result of one complete inbound turn."""

    activity: Activity
    turn_result: DialogTurnResult
    outbounds: list[Activity] = field(default_factory=list)
    invoke_response: Activity | None = None


class ParleyFramework:
    """Wire storage, hooks and the dialog manager around one root dialog."""

    def __init__(
        self,
        root_dialog: Dialog | None = None,
        *,
        dialogs: list[Dialog] | None = None,
        settings: Settings | None = None,
        storage: Storage | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self._plugin_manager = pluggy.PluginManager(PARLEY_HOOK_NAMESPACE)
        self._plugin_manager.add_hookspecs(ParleyHookSpecs)
        self._hook_runtime = HookRuntime(self._plugin_manager)
        self._root_dialog = root_dialog
        self._dialogs = list(dialogs or [])
        self._storage = storage
        self._manager: DialogManager | None = None

    @property
    def manager(self) -> DialogManager:
        if self._manager is None:
            storage = self.create_storage()
            manager = DialogManager(
                self._root_dialog,
                conversation_state=ConversationState(storage),
                user_state=UserState(storage),
                expire_after=self.settings.expire_after_ms,
                hooks=self._hook_runtime,
                trace_enabled=self.settings.trace_enabled,
            )
            for dialog in self._dialogs:
                manager.add(dialog)
            self._manager = manager
        return self._manager

    def register(self, plugin: object, name: str | None = None) -> None:
        """Register one hook plugin object or module."""

        self._plugin_manager.register(plugin, name=name)
        logger.debug("plugin.registered name={}", name or self._plugin_manager.get_name(plugin))

    def load_entrypoint_plugins(self) -> int:
        """Register plugins advertised under the ``parley`` entry point group."""

        return self._plugin_manager.load_setuptools_entrypoints(PARLEY_HOOK_NAMESPACE)

    def create_storage(self) -> Storage:
        """Storage from hooks; fallback to in-memory storage."""

        if self._storage is not None:
            return self._storage
        provided = self._hook_runtime.call_first_sync("provide_storage")
        if self._is_storage_like(provided):
            self._storage = cast(Storage, provided)
        else:
            self._storage = MemoryStorage()
        return self._storage

    async def process_inbound(self, inbound: Any, adapter: BotAdapter) -> TurnOutcome:
        """Run one inbound activity through the dialog manager."""

        activity: Activity | None = None
        try:
            activity = to_activity(inbound)
            normalized = await self._hook_runtime.call_first("normalize_inbound", activity=activity)
            if isinstance(normalized, Activity):
                activity = normalized

            results: list[DialogTurnResult] = []

            async def logic(context: TurnContext) -> None:
                outcome = await self.manager.on_turn(context)
                results.append(outcome.turn_result)

            context = await adapter.process_activity(activity, logic)
            return TurnOutcome(
                activity=activity,
                turn_result=results[0],
                outbounds=list(context.sent),
                invoke_response=context.turn_state.get(INVOKE_RESPONSE_KEY),
            )
        except Exception as exc:
            await self._hook_runtime.notify_error(stage="turn", error=exc, activity=activity)
            raise

    async def handle_bus_once(self, bus: BusProtocol, *, timeout_seconds: float | None = None) -> TurnOutcome | None:
        """Consume one inbound activity from the bus; replies are published by the adapter."""

        inbound = await bus.next_inbound(timeout_seconds=timeout_seconds)
        if inbound is None:
            return None
        return await self.process_inbound(inbound, BusAdapter(bus))

    def hook_report(self) -> dict[str, list[str]]:
        """Return hook implementation summary for diagnostics."""

        return self._hook_runtime.hook_report()

    @staticmethod
    def _is_storage_like(candidate: Any) -> bool:
        if candidate is None:
            return False
        required = ("read", "write", "delete")
        return all(callable(getattr(candidate, name, None)) for name in required)
