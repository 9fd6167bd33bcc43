"""Key/value storage used by scoped bot state."""

from __future__ import annotations

import copy
import threading
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Storage(Protocol):
    """Minimal async contract for state storage providers."""

    async def read(self, keys: list[str]) -> dict[str, Any]: ...

    async def write(self, changes: dict[str, Any]) -> None: ...

    async def delete(self, keys: list[str]) -> None: ...


class MemoryStorage:
    """Process-local storage; values are deep-copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._items: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    async def read(self, keys: list[str]) -> dict[str, Any]:
        with self._lock:
            return {key: copy.deepcopy(self._items[key]) for key in keys if key in self._items}

    async def write(self, changes: dict[str, Any]) -> None:
        with self._lock:
            for key, value in changes.items():
                self._items[key] = copy.deepcopy(value)

    async def delete(self, keys: list[str]) -> None:
        with self._lock:
            for key in keys:
                self._items.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._items)
