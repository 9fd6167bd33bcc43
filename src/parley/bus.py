"""Minimal async message bus for inbound and outbound activities."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol


class BusProtocol(Protocol):
    """Minimal async contract for bus providers."""

    async def publish_inbound(self, message: Any) -> None: ...

    async def publish_outbound(self, message: Any) -> None: ...

    async def next_inbound(self, timeout_seconds: float | None = None) -> Any | None: ...

    async def next_outbound(self, timeout_seconds: float | None = None) -> Any | None: ...


class MessageBus:
    """In-memory async bus for inbound/outbound activities."""

    def __init__(self) -> None:
        self._inbound: asyncio.Queue[Any] = asyncio.Queue()
        self._outbound: asyncio.Queue[Any] = asyncio.Queue()

    async def publish_inbound(self, message: Any) -> None:
        await self._inbound.put(message)

    async def publish_outbound(self, message: Any) -> None:
        await self._outbound.put(message)

    async def next_inbound(self, timeout_seconds: float | None = None) -> Any | None:
        return await self._next(self._inbound, timeout_seconds)

    async def next_outbound(self, timeout_seconds: float | None = None) -> Any | None:
        return await self._next(self._outbound, timeout_seconds)

    def drain_outbound(self) -> list[Any]:
        """Take every outbound message queued so far without waiting."""
        drained: list[Any] = []
        while not self._outbound.empty():
            drained.append(self._outbound.get_nowait())
        return drained

    @staticmethod
    async def _next(queue: asyncio.Queue[Any], timeout_seconds: float | None) -> Any | None:
        if timeout_seconds is None:
            return await queue.get()
        try:
            return await asyncio.wait_for(queue.get(), timeout=timeout_seconds)
        except TimeoutError:
            return None
