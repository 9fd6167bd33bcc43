"""Run pluggy hooks so that one failing plugin never breaks a turn."""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Iterator
from contextlib import aclosing
from typing import Any

import pluggy
from loguru import logger

from parley.activity import Activity


def _plugin_name(impl: Any) -> str:
    return impl.plugin_name or "<unknown>"


def _bind(impl: Any, kwargs: dict[str, Any]) -> dict[str, Any]:
    # an implementation may declare only some of the hook arguments
    return {name: kwargs[name] for name in impl.argnames if name in kwargs}


def _turn_activity(kwargs: dict[str, Any]) -> Activity | None:
    activity = kwargs.get("activity")
    if isinstance(activity, Activity):
        return activity
    return getattr(kwargs.get("context"), "activity", None)


class HookRuntime:
    """Dispatch parley hooks newest plugin first, reporting failures to `on_error`."""

    def __init__(self, plugin_manager: pluggy.PluginManager) -> None:
        self._plugin_manager = plugin_manager

    def _impls(self, hook_name: str) -> Iterator[Any]:
        caller = getattr(self._plugin_manager.hook, hook_name, None)
        if caller is None or not hasattr(caller, "get_hookimpls"):
            return iter(())
        # get_hookimpls lists the oldest registration first
        return reversed(caller.get_hookimpls())

    async def _run(self, hook_name: str, kwargs: dict[str, Any]) -> AsyncIterator[Any]:
        for impl in self._impls(hook_name):
            try:
                value = impl.function(**_bind(impl, kwargs))
                if inspect.isawaitable(value):
                    value = await value
            except Exception as error:
                stage = f"{hook_name}:{_plugin_name(impl)}"
                await self.notify_error(stage=stage, error=error, activity=_turn_activity(kwargs))
                continue
            yield value

    def _run_sync(self, hook_name: str, kwargs: dict[str, Any]) -> Iterator[Any]:
        for impl in self._impls(hook_name):
            try:
                value = impl.function(**_bind(impl, kwargs))
            except Exception as error:
                stage = f"{hook_name}:{_plugin_name(impl)}"
                self._notify_error_sync(stage=stage, error=error, activity=_turn_activity(kwargs))
                continue
            if inspect.isawaitable(value):
                self._drop_awaitable(value, hook_name, impl)
                continue
            yield value

    async def call_first(self, hook_name: str, **kwargs: Any) -> Any:
        """Return the first non-None value, skipping plugins that raise."""

        # later plugins are not invoked once one answers
        async with aclosing(self._run(hook_name, kwargs)) as values:
            async for value in values:
                if value is not None:
                    return value
        return None

    async def call_many(self, hook_name: str, **kwargs: Any) -> list[Any]:
        """Run every plugin and collect the values of those that succeeded."""

        return [value async for value in self._run(hook_name, kwargs)]

    def call_first_sync(self, hook_name: str, **kwargs: Any) -> Any:
        """Bootstrap variant of `call_first`; coroutine implementations are skipped."""

        return next((value for value in self._run_sync(hook_name, kwargs) if value is not None), None)

    async def notify_error(self, *, stage: str, error: Exception, activity: Activity | None) -> None:
        """Tell every `on_error` observer about a failure. Observers that fail are only logged."""

        payload = {"stage": stage, "error": error, "activity": activity}
        for impl in self._impls("on_error"):
            try:
                value = impl.function(**_bind(impl, payload))
                if inspect.isawaitable(value):
                    await value
            except Exception:
                logger.opt(exception=True).warning("hook.on_error_failed stage={} plugin={}", stage, _plugin_name(impl))

    def _notify_error_sync(self, *, stage: str, error: Exception, activity: Activity | None) -> None:
        payload = {"stage": stage, "error": error, "activity": activity}
        for impl in self._impls("on_error"):
            try:
                value = impl.function(**_bind(impl, payload))
            except Exception:
                logger.opt(exception=True).warning("hook.on_error_failed stage={} plugin={}", stage, _plugin_name(impl))
                continue
            if inspect.isawaitable(value):
                self._drop_awaitable(value, "on_error", impl)

    @staticmethod
    def _drop_awaitable(value: Any, hook_name: str, impl: Any) -> None:
        close = getattr(value, "close", None)
        if callable(close):
            close()
        logger.warning("hook.async_not_supported hook={} plugin={}", hook_name, _plugin_name(impl))

    def hook_report(self) -> dict[str, list[str]]:
        """Map each implemented hook to its plugin names, in registration order."""

        report: dict[str, list[str]] = {}
        for hook_name, caller in sorted(vars(self._plugin_manager.hook).items()):
            if hook_name.startswith("_") or not hasattr(caller, "get_hookimpls"):
                continue
            if names := [_plugin_name(impl) for impl in caller.get_hookimpls()]:
                report[hook_name] = names
        return report
