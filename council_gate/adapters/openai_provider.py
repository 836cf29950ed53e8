"""OpenAI member using openai SDK with native async."""

from openai import AsyncOpenAI

from council_gate.adapters.llm import LLMMemberAdapter


class OpenAIAdapter(LLMMemberAdapter):
    """OpenAI member via openai SDK."""

    label = "OpenAI"

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        response = await self._client.chat.completions.create(
            model=self._config.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self._config.max_tokens,
        )
        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice else None

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens
        return content or "", token_count
