"""Parley - stack-based multi-turn dialogs."""

from parley.activity import Activity, ActivityTypes
from parley.adapter import BotAdapter, BusAdapter, UserTokenProvider
from parley.context import TurnContext
from parley.dialogs import Dialog, DialogContext, OAuthPrompt, OAuthPromptSettings, PromptOptions, WaterfallDialog
from parley.framework import ParleyFramework
from parley.manager import DialogManager
from parley.state import ConversationState, UserState
from parley.storage import MemoryStorage
from parley.types import DialogTurnResult, DialogTurnStatus, TokenResponse

__version__ = "0.1.0"

__all__ = [
    "Activity",
    "ActivityTypes",
    "BotAdapter",
    "BusAdapter",
    "ConversationState",
    "Dialog",
    "DialogContext",
    "DialogManager",
    "DialogTurnResult",
    "DialogTurnStatus",
    "MemoryStorage",
    "OAuthPrompt",
    "OAuthPromptSettings",
    "ParleyFramework",
    "PromptOptions",
    "TokenResponse",
    "TurnContext",
    "UserState",
    "UserTokenProvider",
    "WaterfallDialog",
]
