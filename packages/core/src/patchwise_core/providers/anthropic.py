from __future__ import annotations

from patchwise_core.models import Turn
from patchwise_core.providers.base import BaseProvider, Completion, FunctionCall


class AnthropicProvider(BaseProvider):
    MODEL = "claude-sonnet-4-20250514"
    # Slightly warmer than OpenAI so review comments read naturally while the
    # XML envelope stays stable.
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, model: str | None = None):
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'patchwise[anthropic]'"
            )
        super().__init__(model)
        self.client = AsyncAnthropic(api_key=api_key)

    async def _call_api(self, turns: list[Turn], function: dict | None) -> Completion:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock, ToolUseBlock

        system = "\n\n".join(t.content for t in turns if t.role == "system")
        messages = [{"role": t.role, "content": t.content} for t in turns if t.role != "system"]
        kwargs = {}
        if system:
            kwargs["system"] = system
        if function is not None:
            kwargs["tools"] = [
                {
                    "name": function["name"],
                    "description": function.get("description", ""),
                    "input_schema": function["parameters"],
                }
            ]
            kwargs["tool_choice"] = {"type": "tool", "name": function["name"]}

        response = await self.client.messages.create(
            model=self.model,
            messages=messages,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            **kwargs,
        )

        text = "".join(block.text for block in response.content if isinstance(block, TextBlock)).strip()
        function_call = None
        for block in response.content:
            if isinstance(block, ToolUseBlock):
                function_call = FunctionCall(name=block.name, arguments=dict(block.input))
                break
        return Completion(text=text, function_call=function_call)
