"""Prompt dialogs."""

from parley.dialogs.prompts.oauth_prompt import OAuthPrompt, OAuthPromptSettings
from parley.dialogs.prompts.prompt import (
    PromptOptions,
    PromptRecognizerResult,
    PromptValidator,
    PromptValidatorContext,
)

__all__ = [
    "OAuthPrompt",
    "OAuthPromptSettings",
    "PromptOptions",
    "PromptRecognizerResult",
    "PromptValidator",
    "PromptValidatorContext",
]
