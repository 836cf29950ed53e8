"""Anthropic Claude member using anthropic SDK with native async."""

import anthropic as anthropic_sdk

from council_gate.adapters.base import AdapterError
from council_gate.adapters.llm import LLMMemberAdapter


class AnthropicAdapter(LLMMemberAdapter):
    """Anthropic Claude member via anthropic SDK."""

    label = "Anthropic"

    def _make_client(self, api_key: str) -> anthropic_sdk.AsyncAnthropic:
        return anthropic_sdk.AsyncAnthropic(api_key=api_key)

    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        response = await self._client.messages.create(
            model=self._config.model,
            max_tokens=self._config.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        if not response.content:
            raise AdapterError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise AdapterError(self._config.name, "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens
        return "\n".join(text_blocks), token_count
