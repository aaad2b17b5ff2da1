from __future__ import annotations

import pytest

from patchwise_core.providers.base import BaseProvider, Completion


class StubProvider(BaseProvider):
    """Replays canned completions; an Exception in the script is raised instead."""

    MODEL = "stub"
    MAX_RETRIES = 1

    def __init__(self, script=None, default=None):
        super().__init__()
        self.script = list(script or [])
        self.default = default
        self.calls = []

    async def _call_api(self, turns, function):
        self.calls.append((turns, function))
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, Exception):
            raise item
        if isinstance(item, Completion):
            return item
        return Completion(text=item or "")


@pytest.fixture
def stub_provider():
    return StubProvider
