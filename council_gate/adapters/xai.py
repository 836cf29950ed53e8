"""xAI Grok member over the OpenAI-compatible API."""

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from council_gate.adapters.base import AdapterError
from council_gate.adapters.openai_provider import OpenAIAdapter


class XAIAdapter(OpenAIAdapter):
    """xAI Grok member via OpenAI-compatible API."""

    label = "xAI"

    def __init__(self, config: ModelConfig) -> None:
        if not config.base_url:
            raise AdapterError(config.name, "base_url is required for xAI adapter")
        super().__init__(config)

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)
