"""Framework-neutral data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from parley.envelope import field_of

type State = dict[str, Any]


class DialogTurnStatus(StrEnum):
    """Outcome of one dialog call within a turn."""

    EMPTY = "empty"
    WAITING = "waiting"
    COMPLETE = "complete"


class DialogReason(StrEnum):
    """Why a dialog is being resumed or ended."""

    BEGIN_CALLED = "beginCalled"
    CONTINUE_CALLED = "continueCalled"
    END_CALLED = "endCalled"
    CANCEL_CALLED = "cancelCalled"


@dataclass(frozen=True)
class DialogTurnResult:
    """Result of driving the dialog stack."""

    status: DialogTurnStatus
    result: Any = None


END_OF_TURN = DialogTurnResult(DialogTurnStatus.WAITING)


@dataclass
class DialogInstance:
    """One activation of a dialog on the stack."""

    dialog_id: str
    state: State = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"dialog_id": self.dialog_id, "state": self.state}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> DialogInstance:
        state = payload.get("state")
        return cls(dialog_id=str(payload["dialog_id"]), state=state if isinstance(state, dict) else {})


@dataclass
class DialogState:
    """Persisted dialog stack; the last instance is the active one."""

    stack: list[DialogInstance] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"stack": [instance.to_dict() for instance in self.stack]}

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> DialogState:
        if not isinstance(payload, dict):
            return cls()
        raw_stack = payload.get("stack")
        if not isinstance(raw_stack, list):
            return cls()
        return cls(stack=[DialogInstance.from_dict(item) for item in raw_stack if isinstance(item, dict)])


@dataclass(frozen=True)
class DialogEvent:
    """Named event travelling up the dialog stack."""

    name: str
    value: Any = None
    bubble: bool = True


@dataclass(frozen=True)
class TokenResponse:
    """Token issued by the authentication provider."""

    connection_name: str
    token: str
    channel_id: str | None = None
    expiration: str | None = None

    @classmethod
    def from_value(cls, value: Any) -> TokenResponse | None:
        """Read a token response from a mapping or attribute-style value, in either naming style."""

        if isinstance(value, TokenResponse):
            return value
        if value is None or isinstance(value, str):
            return None
        token = field_of(value, "token")
        if not token:
            return None
        return cls(
            connection_name=str(field_of(value, "connection_name", field_of(value, "connectionName", ""))),
            token=str(token),
            channel_id=field_of(value, "channel_id", field_of(value, "channelId")),
            expiration=field_of(value, "expiration"),
        )


@dataclass(frozen=True)
class SignInResource:
    """Sign-in descriptor handed out by the authentication provider."""

    sign_in_link: str | None = None
    token_exchange_resource: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DialogManagerResult:
    """Result of one complete turn through the dialog manager."""

    turn_result: DialogTurnResult
