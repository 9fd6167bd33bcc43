"""Flat dialog registry."""

from __future__ import annotations

from parley.dialogs.dialog import Dialog
from parley.errors import DuplicateDialogError


class DialogSet:
    """Resolve dialog ids to dialog implementations."""

    def __init__(self, dialogs: list[Dialog] | None = None) -> None:
        self._dialogs: dict[str, Dialog] = {}
        for dialog in dialogs or []:
            self.add(dialog)

    def add(self, dialog: Dialog) -> DialogSet:
        existing = self._dialogs.get(dialog.id)
        if existing is dialog:
            return self
        if existing is not None:
            raise DuplicateDialogError(dialog.id)
        self._dialogs[dialog.id] = dialog
        return self

    def find(self, dialog_id: str) -> Dialog | None:
        return self._dialogs.get(dialog_id)

    def ids(self) -> list[str]:
        return sorted(self._dialogs)

    def __contains__(self, dialog_id: object) -> bool:
        return dialog_id in self._dialogs

    def __len__(self) -> int:
        return len(self._dialogs)
