"""Capability contracts the pipeline depends on.

Members answer questions, source providers look up evidence for a claim,
memory providers flag claims that contradict what a user already knows.
"""

from abc import ABC, abstractmethod
from typing import Any

from council_gate.models import AdapterAnswer, Source

_HISTORY_TURNS = 6


class AdapterError(Exception):
    """Raised when a member call fails."""

    def __init__(self, member: str, message: str, *, timed_out: bool = False) -> None:
        self.member = member
        self.timed_out = timed_out
        super().__init__(f"[{member}] {message}")


class MemberAdapter(ABC):
    """A model sitting in one council seat."""

    @abstractmethod
    def name(self) -> str:
        """Return the configured member name (e.g. 'reasoner')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def ask(self, text: str, context: dict[str, Any] | None = None) -> AdapterAnswer:
        """Answer a prompt.

        Args:
            text: The full prompt text to send.
            context: Per-request context; ``history`` holds prior turns.
                Each member receives its own copy.

        Returns:
            AdapterAnswer with content, a 0-100 confidence and any cited sources.

        Raises:
            AdapterError: On API failure, timeout, or empty reply.
        """
        ...


class SourceProvider(ABC):
    """Looks up evidence for a single claim."""

    @abstractmethod
    async def find_sources(self, claim: str) -> list[Source]:
        """Return sources supporting the claim, empty when none are known."""
        ...


class MemoryProvider(ABC):
    """Checks claims against what the user's memory already holds."""

    @abstractmethod
    async def find_contradiction(self, claim: str, user_id: str | None) -> str | None:
        """Return the id of a stored fact the claim contradicts, or None."""
        ...


def build_prompt(text: str, context: dict[str, Any] | None) -> str:
    """Prefix the prompt with the tail of the conversation, if any."""
    history = (context or {}).get("history") or []
    if not history:
        return text
    lines = []
    for turn in history[-_HISTORY_TURNS:]:
        if isinstance(turn, dict):
            lines.append(f"{turn.get('role', 'user')}: {turn.get('content', '')}")
        else:
            lines.append(str(turn))
    return "Conversation so far:\n" + "\n".join(lines) + "\n\n" + text
