"""Tests for AI provider implementations.

Retry and backoff live in BaseProvider and are tested once through a stub.
Provider-specific tests cover only what differs: how turns and the function
schema are mapped onto each SDK, and how replies are read back.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from patchwise_core.errors import ProviderError
from patchwise_core.models import Turn
from patchwise_core.prompts import INLINE_FIX_FUNCTION
from patchwise_core.providers.anthropic import AnthropicProvider
from patchwise_core.providers.base import BaseProvider, Completion
from patchwise_core.providers.openai import OpenAIProvider

TURNS = [Turn(role="system", content="be strict"), Turn(role="user", content="review this")]


class _FlakyProvider(BaseProvider):
    MODEL = "flaky"

    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def _call_api(self, turns, function):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise RuntimeError("temporary outage")
        return Completion(text="ok")


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------


class TestRetry:
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self, mocker):
        sleep = mocker.patch("patchwise_core.providers.base.asyncio.sleep", new=AsyncMock())
        provider = _FlakyProvider(failures=2)
        completion = await provider.complete(TURNS)
        assert completion.text == "ok"
        assert provider.attempts == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_raises_provider_error_when_retries_exhausted(self, mocker):
        mocker.patch("patchwise_core.providers.base.asyncio.sleep", new=AsyncMock())
        provider = _FlakyProvider(failures=5)
        with pytest.raises(ProviderError, match="temporary outage"):
            await provider.complete(TURNS)
        assert provider.attempts == BaseProvider.MAX_RETRIES

    def test_model_override(self):
        assert AnthropicProvider(api_key="k").model == AnthropicProvider.MODEL
        assert AnthropicProvider(api_key="k", model="claude-custom").model == "claude-custom"


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class TestAnthropicProvider:
    def _provider(self, mocker, content):
        provider = AnthropicProvider(api_key="test-key")
        create = AsyncMock(return_value=SimpleNamespace(content=content))
        mocker.patch.object(provider.client.messages, "create", new=create)
        return provider, create

    @pytest.mark.asyncio
    async def test_system_turns_passed_separately(self, mocker):
        from anthropic.types import TextBlock

        provider, create = self._provider(mocker, [TextBlock(type="text", text=" looks fine ")])
        completion = await provider.complete(TURNS)

        assert completion.text == "looks fine"
        assert completion.function_call is None
        kwargs = create.await_args.kwargs
        assert kwargs["system"] == "be strict"
        assert kwargs["messages"] == [{"role": "user", "content": "review this"}]
        assert "tools" not in kwargs

    @pytest.mark.asyncio
    async def test_function_forced_and_parsed(self, mocker):
        from anthropic.types import ToolUseBlock

        block = ToolUseBlock(type="tool_use", id="t1", name="fix", input={"code": "x", "lineStart": 1})
        provider, create = self._provider(mocker, [block])
        completion = await provider.complete(TURNS, function=INLINE_FIX_FUNCTION)

        assert completion.function_call.name == "fix"
        assert completion.function_call.arguments == {"code": "x", "lineStart": 1}
        kwargs = create.await_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": "fix"}
        assert kwargs["tools"][0]["input_schema"] == INLINE_FIX_FUNCTION["parameters"]


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------


def _openai_response(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_text_reply(self, mocker):
        provider = OpenAIProvider(api_key="test-key")
        create = AsyncMock(return_value=_openai_response(content="  all good "))
        mocker.patch.object(provider.client.chat.completions, "create", new=create)

        completion = await provider.complete(TURNS)

        assert completion.text == "all good"
        kwargs = create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "be strict"}
        assert kwargs["model"] == OpenAIProvider.MODEL

    @pytest.mark.asyncio
    async def test_tool_call_arguments_decoded(self, mocker):
        provider = OpenAIProvider(api_key="test-key")
        call = SimpleNamespace(function=SimpleNamespace(name="fix", arguments=json.dumps({"lineStart": 3})))
        create = AsyncMock(return_value=_openai_response(tool_calls=[call]))
        mocker.patch.object(provider.client.chat.completions, "create", new=create)

        completion = await provider.complete(TURNS, function=INLINE_FIX_FUNCTION)

        assert completion.text == ""
        assert completion.function_call.arguments == {"lineStart": 3}
        assert create.await_args.kwargs["tool_choice"] == {"type": "function", "function": {"name": "fix"}}
