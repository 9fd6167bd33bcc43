"""Application-level exception types for Parley."""

from __future__ import annotations


class ParleyError(Exception):
    """Base exception for Parley."""


class ConfigurationError(ParleyError):
    """Base exception for missing or invalid wiring."""


class RootDialogNotConfiguredError(ConfigurationError):
    """Raised when a turn runs without a root dialog."""


class ConversationStateNotConfiguredError(ConfigurationError):
    """Raised when a turn runs without conversation state."""


class DialogNotFoundError(ParleyError):
    """Raised when a dialog id does not resolve in the dialog set."""

    def __init__(self, dialog_id: str) -> None:
        super().__init__(f"dialog '{dialog_id}' not found")
        self.dialog_id = dialog_id


class DuplicateDialogError(ParleyError):
    """Raised when a dialog id is registered twice."""

    def __init__(self, dialog_id: str) -> None:
        super().__init__(f"dialog '{dialog_id}' already added")
        self.dialog_id = dialog_id


class AdapterCapabilityError(ParleyError):
    """Raised when the adapter lacks an operation a dialog requires."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation}(): not supported for the current adapter")
        self.operation = operation
