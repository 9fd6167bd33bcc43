from __future__ import annotations

import pytest

from parley.dialogs.prompts import oauth_prompt


class FakeClock:
    def __init__(self, now_ms: int) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock(1_700_000_000_000)
    monkeypatch.setattr(oauth_prompt, "_now_ms", fake)
    return fake
