"""Utilities for reading and normalizing user-defined inbound envelopes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from parley.activity import Activity

# Short bus-style keys accepted on inbound envelopes.
_FIELD_ALIASES = {
    "content": "text",
    "channel": "channel_id",
    "chat_id": "conversation_id",
}


def field_of(message: Any, key: str, default: Any = None) -> Any:
    """Read a field from mapping-like or attribute-based messages."""

    if isinstance(message, Mapping):
        return message.get(key, default)
    return getattr(message, key, default)


def normalize_envelope(message: Any) -> dict[str, Any]:
    """Convert arbitrary message objects to a mutable envelope mapping."""

    if isinstance(message, Activity):
        return message.model_dump()
    if isinstance(message, Mapping):
        return dict(message)
    if hasattr(message, "__dict__"):
        return dict(vars(message))
    return {"text": str(message)}


def to_activity(message: Any) -> Activity:
    """Coerce an inbound envelope to an `Activity`."""

    if isinstance(message, Activity):
        return message
    envelope = normalize_envelope(message)
    for alias, name in _FIELD_ALIASES.items():
        if alias in envelope and name not in envelope:
            envelope[name] = envelope.pop(alias)
    for key in ("channel_id", "conversation_id", "sender_id"):
        if key in envelope and envelope[key] is not None:
            envelope[key] = str(envelope[key])
    return Activity.model_validate(envelope)
