"""Dialogs, the dialog stack and built-in dialog types."""

from parley.dialogs.dialog import Dialog, DialogEvents
from parley.dialogs.dialog_context import DialogContext
from parley.dialogs.dialog_set import DialogSet
from parley.dialogs.prompts import OAuthPrompt, OAuthPromptSettings, PromptOptions
from parley.dialogs.waterfall import WaterfallDialog, WaterfallStepContext

__all__ = [
    "Dialog",
    "DialogContext",
    "DialogEvents",
    "DialogSet",
    "OAuthPrompt",
    "OAuthPromptSettings",
    "PromptOptions",
    "WaterfallDialog",
    "WaterfallStepContext",
]
