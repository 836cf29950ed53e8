"""Shared plumbing for SDK-backed council members."""

import asyncio
import logging
import os
import time
from abc import abstractmethod
from typing import Any

from config.config_loader import ModelConfig
from council_gate.adapters.base import AdapterError, MemberAdapter, build_prompt
from council_gate.adapters.replies import parse_reply
from council_gate.models import AdapterAnswer

logger = logging.getLogger(__name__)


class LLMMemberAdapter(MemberAdapter):
    """Resolves the API key, enforces the per-call timeout and parses the reply.

    Subclasses only build their SDK client and make the raw completion call.
    """

    label = "LLM"

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise AdapterError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = self._make_client(api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    @abstractmethod
    def _make_client(self, api_key: str) -> Any:
        ...

    @abstractmethod
    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        """Return (reply text, token count) for a single-turn prompt."""
        ...

    async def ask(self, text: str, context: dict[str, Any] | None = None) -> AdapterAnswer:
        prompt = build_prompt(text, context)
        start = time.monotonic()
        try:
            content, token_count = await asyncio.wait_for(
                self._complete(prompt),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise AdapterError(
                self._config.name, f"Request timed out after {self._config.timeout_sec}s", timed_out=True,
            ) from exc
        except AdapterError:
            raise
        except Exception as exc:
            raise AdapterError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not content or not content.strip():
            raise AdapterError(self._config.name, "Empty response content")

        logger.info(
            "%s %s: %.2fs, %s tokens",
            self.label,
            self._config.name,
            latency,
            token_count,
        )
        return parse_reply(content)
