"""Shared pytest fixtures and test doubles."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    CouncilConfig,
    DefaultsConfig,
    ModelConfig,
    PromptsConfig,
    ValidationConfig,
)
from council_gate.adapters.base import MemberAdapter, MemoryProvider, SourceProvider
from council_gate.critique import CritiqueEngine
from council_gate.epistemic import EpistemicBranch
from council_gate.gate import ValidationGate
from council_gate.models import AdapterAnswer, CouncilMember, CouncilResponse, Source, SourceType
from council_gate.orchestrator import CouncilOrchestrator
from council_gate.pipeline import CouncilPipeline
from council_gate.router import DEFAULT_REQUIRED_MEMBERS, Router
from council_gate.trace import TraceRecorder
from council_gate.voting import VotingArbiter


class MockAdapter(MemberAdapter):
    """Test double MemberAdapter."""

    def __init__(self, member_name: str = "mock", content: str = "Mock answer.", confidence: int = 80) -> None:
        self._name = member_name
        self._content = content
        self._confidence = confidence
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because ask is defined in the class body below.
        self.ask = AsyncMock(  # type: ignore[assignment]
            return_value=AdapterAnswer(content=content, confidence=confidence)
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def ask(self, text, context=None) -> AdapterAnswer:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return AdapterAnswer(content=self._content, confidence=self._confidence)


class FakeSources(SourceProvider):
    """Returns the same sources for every claim and remembers what it was asked."""

    def __init__(self, sources: list[Source] | None = None) -> None:
        self._sources = list(sources or [])
        self.claims: list[str] = []

    async def find_sources(self, claim: str) -> list[Source]:
        self.claims.append(claim)
        return list(self._sources)


class FakeMemory(MemoryProvider):
    """Contradicts any claim containing one of the given phrases."""

    def __init__(self, contradictions: dict[str, str] | None = None) -> None:
        self._contradictions = contradictions or {}

    async def find_contradiction(self, claim: str, user_id: str | None) -> str | None:
        for phrase, memory_id in self._contradictions.items():
            if phrase in claim:
                return memory_id
        return None


def make_source(trust: int = 100, identifier: str = "ISBN 978-0-486-63880-5", **kwargs) -> Source:
    branch = kwargs.pop("branch", None)
    if branch is None:
        branch = (
            EpistemicBranch.VERIFIED if trust == 100
            else EpistemicBranch.THEORETICAL if trust >= 50
            else EpistemicBranch.UNVERIFIED
        )
    return Source(
        id=kwargs.pop("id", f"src_{identifier[-4:]}"),
        type=kwargs.pop("type", SourceType.BOOK),
        identifier=identifier,
        url=kwargs.pop("url", ""),
        title=kwargs.pop("title", "Foundations of Analysis"),
        trust_score=trust,
        branch=branch,
        **kwargs,
    )


def make_response(member: CouncilMember, confidence: int, content: str = "The answer is four.") -> CouncilResponse:
    return CouncilResponse(member=member, content=content, confidence=confidence)


def make_pipeline(
    adapters: dict[CouncilMember, MemberAdapter],
    prompts: PromptsConfig,
    sources: SourceProvider | None = None,
    memory: MemoryProvider | None = None,
    required: tuple[CouncilMember, ...] = DEFAULT_REQUIRED_MEMBERS,
    max_deliberation_time_ms: int = 2000,
    require_anchor: bool = True,
    synthesizer: MemberAdapter | None = None,
) -> CouncilPipeline:
    return CouncilPipeline(
        router=Router(required_members=required),
        orchestrator=CouncilOrchestrator(adapters, prompts),
        critique=CritiqueEngine(adapters, prompts),
        arbiter=VotingArbiter(),
        gate=ValidationGate(sources=sources, memory=memory, require_anchor=require_anchor),
        prompts=prompts,
        synthesizer=synthesizer,
        max_deliberation_time_ms=max_deliberation_time_ms,
    )


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="reasoner",
        sdk="anthropic",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        answer="{persona}\nAnswer this question: {query}",
        challenge="{persona}\nQuestion: {query}\nAnswered at {confidence}%:\n{response}\nObject:",
        rebuttal="{persona}\nQuestion: {query}\nYou said:\n{response}\nChallenge ({severity}): {challenge}\nReply:",
        synthesis="Question: {query}\nVerdict {outcome} ({share})\n{responses}\nMerge:",
        personas={"reasoner": "Be a careful reasoner.", "critic": "Be a harsh critic."},
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig) -> AppConfig:
    model_cfg = ModelConfig(
        name="reasoner",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=DefaultsConfig(output_dir=tmp_path / "output"),
        council=CouncilConfig(synthesizer="creative"),
        validation=ValidationConfig(),
        models={"reasoner": model_cfg},
        prompts=sample_prompts_config,
        available_members={"reasoner"},
    )


@pytest.fixture
def trace() -> TraceRecorder:
    return TraceRecorder("req_test")


@pytest.fixture
def verified_source() -> Source:
    return make_source(100)
