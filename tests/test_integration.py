"""Integration tests: real API calls, no mocks. Requires .env with the required members' keys."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

# reasoner and arbiter both sit on Anthropic in the shipped settings
_REQUIRED_KEYS = ["ANTHROPIC_API_KEY"]
_MISSING = [k for k in _REQUIRED_KEYS if not os.environ.get(k, "").strip()]
pytestmark = pytest.mark.integration

if _MISSING:
    pytestmark = pytest.mark.skip(reason=f"Missing API keys: {', '.join(_MISSING)}")


async def test_health_checks_pass_for_available_members():
    from config.config_loader import load_config
    from council_gate.cli import _build_adapters
    from council_gate.healthcheck import run_health_checks

    adapters = _build_adapters(load_config())
    results = await run_health_checks(adapters)

    assert results
    assert any(ok for ok, _ in results.values())


async def test_full_council_pipeline(tmp_path: Path):
    """Run a real deliberation with available members, verify the result is well formed."""
    from config.config_loader import load_config
    from council_gate.adapters.yaml_sources import YamlSourceProvider
    from council_gate.cli import _build_adapters
    from council_gate.output import save_to_file, save_trace_json
    from council_gate.pipeline import build_pipeline

    config = load_config()
    adapters = _build_adapters(config)
    sources = YamlSourceProvider(Path(__file__).parent.parent / "config" / "sources.yaml")
    pipeline = build_pipeline(config, adapters, sources=sources)
    query = "Why did the Western Roman Empire fall and what role did economics play?"

    result = await pipeline.process(query)

    assert result.route.requires_deliberation
    steps = result.validation.trace.steps
    assert [s.step_number for s in steps] == list(range(1, len(steps) + 1))
    assert result.validation.trace.final_decision.value in ("APPROVED", "REJECTED")
    if result.deliberation is not None:
        for resp in result.deliberation.responses:
            assert resp.content, f"Empty content from {resp.member.value}"
            assert 0 <= resp.confidence <= 100
    assert result.answer

    saved = save_to_file(result, query, tmp_path)
    assert saved.exists()
    assert save_trace_json(result.validation.trace, tmp_path).exists()


async def test_simple_query_gets_direct_answer():
    from config.config_loader import load_config
    from council_gate.cli import _build_adapters
    from council_gate.models import CouncilMember
    from council_gate.pipeline import build_pipeline

    config = load_config()
    adapters = _build_adapters(config)
    if CouncilMember.CALCULATOR not in adapters:
        pytest.skip("calculator seat is empty")

    result = await build_pipeline(config, adapters).process("What is 2+2?")

    assert not result.route.requires_deliberation
    assert result.direct_response is not None
