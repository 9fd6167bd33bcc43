"""Activity models exchanged with a channel."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

TOKEN_RESPONSE_EVENT_NAME = "tokens/response"
VERIFY_STATE_OPERATION_NAME = "signin/verifyState"
TOKEN_EXCHANGE_OPERATION_NAME = "signin/tokenExchange"


class ActivityTypes(StrEnum):
    MESSAGE = "message"
    EVENT = "event"
    INVOKE = "invoke"
    INVOKE_RESPONSE = "invokeResponse"
    TRACE = "trace"


class InputHints(StrEnum):
    ACCEPTING_INPUT = "acceptingInput"
    IGNORING_INPUT = "ignoringInput"
    EXPECTING_INPUT = "expectingInput"


class Channels(StrEnum):
    CONSOLE = "console"
    CORTANA = "cortana"
    EMULATOR = "emulator"
    MSTEAMS = "msteams"
    SKYPE = "skype"
    SKYPE_FOR_BUSINESS = "skypeforbusiness"


class Attachment(BaseModel):
    """Rich content attached to an activity."""

    content_type: str
    content: Any = None


class Activity(BaseModel):
    """One inbound or outbound unit of conversation traffic."""

    model_config = ConfigDict(extra="allow")

    type: str = ActivityTypes.MESSAGE
    id: str | None = None
    reply_to_id: str | None = None
    name: str | None = None
    text: str | None = None
    value: Any = None
    value_type: str | None = None
    label: str | None = None
    channel_id: str = Channels.CONSOLE
    conversation_id: str = "default"
    sender_id: str = "user"
    service_url: str | None = None
    input_hint: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)

    @property
    def is_message(self) -> bool:
        return self.type == ActivityTypes.MESSAGE


def message_activity(text: str | None, input_hint: str | None = None) -> Activity:
    """Build a plain text message."""

    return Activity(type=ActivityTypes.MESSAGE, text=text, input_hint=input_hint)


def invoke_response(status: int, body: Any = None) -> Activity:
    """Build the synchronous reply to an invoke activity."""

    value: dict[str, Any] = {"status": int(status)}
    if body is not None:
        value["body"] = body
    return Activity(type=ActivityTypes.INVOKE_RESPONSE, value=value)


def trace_activity(name: str, value: Any, *, value_type: str | None = None, label: str | None = None) -> Activity:
    """Build a diagnostic trace activity."""

    return Activity(type=ActivityTypes.TRACE, name=name, value=value, value_type=value_type, label=label)
