"""Gemini member using google-genai SDK with native async."""

from google import genai
from google.genai import types as genai_types

from council_gate.adapters.llm import LLMMemberAdapter


class GeminiAdapter(LLMMemberAdapter):
    """Google Gemini member via google-genai SDK."""

    label = "Gemini"

    def _make_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        response = await self._client.aio.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                max_output_tokens=self._config.max_tokens,
            ),
        )
        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count
        return response.text or "", token_count
