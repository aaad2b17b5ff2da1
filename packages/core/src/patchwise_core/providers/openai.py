from __future__ import annotations

import json

try:
    from openai import AsyncOpenAI as _AsyncOpenAI
except ImportError:
    _AsyncOpenAI = None  # type: ignore[assignment,misc]

from patchwise_core.models import Turn
from patchwise_core.providers.base import BaseProvider, Completion, FunctionCall


class OpenAIProvider(BaseProvider):
    MODEL = "gpt-4o"
    # Lower than Anthropic's 0.3 to lean toward deterministic structured output.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        if _AsyncOpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'patchwise[openai]'"
            )
        super().__init__(model)
        self.client = _AsyncOpenAI(api_key=api_key)

    async def _call_api(self, turns: list[Turn], function: dict | None) -> Completion:
        kwargs = {}
        if function is not None:
            kwargs["tools"] = [{"type": "function", "function": function}]
            kwargs["tool_choice"] = {"type": "function", "function": {"name": function["name"]}}

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": t.role, "content": t.content} for t in turns],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            **kwargs,
        )
        message = response.choices[0].message

        function_call = None
        if message.tool_calls:
            call = message.tool_calls[0].function
            function_call = FunctionCall(name=call.name, arguments=json.loads(call.arguments))
        return Completion(text=(message.content or "").strip(), function_call=function_call)
