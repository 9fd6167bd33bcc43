"""Transport adapters and the token provider capability."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from parley.activity import Activity, ActivityTypes
from parley.bus import BusProtocol
from parley.context import TurnContext
from parley.types import SignInResource, TokenResponse

INVOKE_RESPONSE_KEY = "parley.invoke_response"
BOT_IDENTITY_KEY = "parley.bot_identity"

TurnHandler = Callable[[TurnContext], Awaitable[None]]


@runtime_checkable
class UserTokenProvider(Protocol):
    """Token operations an adapter may offer to authentication dialogs."""

    async def get_user_token(
        self,
        context: TurnContext,
        connection_name: str,
        magic_code: str | None = None,
        credentials: Any = None,
    ) -> TokenResponse | None: ...

    async def get_sign_in_resource(
        self,
        context: TurnContext,
        connection_name: str,
        user_id: str,
        final_redirect: str | None = None,
        credentials: Any = None,
    ) -> SignInResource: ...

    async def exchange_token(
        self,
        context: TurnContext,
        connection_name: str,
        user_id: str,
        request: dict[str, Any],
    ) -> TokenResponse | None: ...

    async def sign_out_user(
        self,
        context: TurnContext,
        connection_name: str,
        user_id: str | None = None,
        credentials: Any = None,
    ) -> None: ...


def supports(adapter: Any, operation: str) -> bool:
    """Check whether an adapter implements one token provider operation."""

    return callable(getattr(adapter, operation, None))


class BotAdapter(ABC):
    """Base class for channel adapters."""

    # Community adapters identify themselves by name; sign-in rendering depends on it.
    name: str | None = None

    async def send_activities(self, context: TurnContext, activities: list[Activity]) -> None:
        outgoing: list[Activity] = []
        for activity in activities:
            if activity.type == ActivityTypes.INVOKE_RESPONSE:
                context.turn_state[INVOKE_RESPONSE_KEY] = activity
                continue
            outgoing.append(activity)
        if outgoing:
            await self.deliver(context, outgoing)

    @abstractmethod
    async def deliver(self, context: TurnContext, activities: list[Activity]) -> None:
        """Hand outbound activities to the channel."""

    async def process_activity(self, activity: Activity, logic: TurnHandler) -> TurnContext:
        """Run one turn for an inbound activity."""

        context = TurnContext(self, activity)
        with context.bind():
            logger.debug("turn.start type={} name={}", activity.type, activity.name)
            await logic(context)
        return context


class BusAdapter(BotAdapter):
    """Adapter that publishes outbound activities to a message bus."""

    def __init__(self, bus: BusProtocol, *, forward_traces: bool = True) -> None:
        self.bus = bus
        self.forward_traces = forward_traces

    async def deliver(self, context: TurnContext, activities: list[Activity]) -> None:
        for activity in activities:
            if activity.type == ActivityTypes.TRACE and not self.forward_traces:
                continue
            await self.bus.publish_outbound(activity)
