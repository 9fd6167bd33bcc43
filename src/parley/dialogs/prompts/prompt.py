"""Shared prompt option and validation types."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from parley.activity import Activity, InputHints, message_activity
from parley.context import TurnContext


class PromptOptions(BaseModel):
    """Caller supplied prompt content, persisted with the prompt's state."""

    prompt: Activity | str | None = None
    retry_prompt: Activity | str | None = None
    validations: Any = None

    def with_input_hints(self) -> PromptOptions:
        """Return a copy whose prompts are activities accepting input."""

        return self.model_copy(
            update={
                "prompt": accepting_input(self.prompt),
                "retry_prompt": accepting_input(self.retry_prompt),
            }
        )


def accepting_input(prompt: Activity | str | None) -> Activity | None:
    # an empty string means no prompt
    if prompt is None or prompt == "":
        return None
    if isinstance(prompt, str):
        return message_activity(prompt, InputHints.ACCEPTING_INPUT)
    if isinstance(prompt.input_hint, str):
        return prompt.model_copy(deep=True)
    return prompt.model_copy(update={"input_hint": InputHints.ACCEPTING_INPUT}, deep=True)


@dataclass(frozen=True)
class PromptRecognizerResult[T]:
    succeeded: bool
    value: T | None = None


@dataclass(frozen=True)
class PromptValidatorContext[T]:
    """Everything a validator may look at for one recognition attempt."""

    context: TurnContext
    recognized: PromptRecognizerResult[T]
    state: dict[str, Any]
    options: PromptOptions
    attempt_count: int


type PromptValidator[T] = Callable[[PromptValidatorContext[T]], Awaitable[bool]]
