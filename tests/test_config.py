"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import (
    AppConfig,
    CouncilConfig,
    ModelConfig,
    PromptsConfig,
    ValidationConfig,
    load_config,
)


def _settings(**extra) -> dict:
    settings = {
        "defaults": {
            "output_dir": "./output",
            "sources_file": "./config/sources.yaml",
        },
        "models": {
            "reasoner": {
                "sdk": "anthropic",
                "model": "claude-sonnet-4-20250514",
                "api_key_env": "TEST_REASONER_KEY",
                "timeout_sec": 120,
                "max_tokens": 8192,
            },
            "critic": {
                "sdk": "xai",
                "model": "grok-3",
                "api_key_env": "TEST_CRITIC_KEY",
                "timeout_sec": 60,
                "max_tokens": 2048,
                "base_url": "https://api.x.ai/v1",
            },
        },
        "prompts": {
            "answer": "{persona}\nQ: {query}",
            "challenge": "{persona}\nQ: {query}\n{confidence}\n{response}",
            "rebuttal": "{persona}\nQ: {query}\n{response}\n{severity}: {challenge}",
            "synthesis": "Q: {query}\n{outcome} {share}\n{responses}",
        },
        "personas": {
            "reasoner": "You reason step by step.",
            "critic": "You look for holes.",
        },
    }
    settings.update(extra)
    return settings


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(_settings()), encoding="utf-8")
    return path


def test_load_config_returns_app_config(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config, AppConfig)


def test_load_config_defaults(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.defaults.output_dir, Path)
    assert config.defaults.sources_file == Path("./config/sources.yaml")


def test_council_and_validation_sections_are_optional(minimal_settings):
    config = load_config(minimal_settings)
    assert config.council == CouncilConfig()
    assert config.validation == ValidationConfig()
    assert config.council.required_members == ["reasoner", "arbiter"]
    assert config.validation.minimum_confidence == 100


def test_council_section_overrides(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(_settings(
        council={"required_members": ["reasoner"], "voting_threshold": 0.75, "synthesizer": "creative"},
        validation={"require_anchor": False, "unanchored_minimum_confidence": 70},
    )), encoding="utf-8")

    config = load_config(path)

    assert config.council.required_members == ["reasoner"]
    assert config.council.voting_threshold == 0.75
    assert config.council.synthesizer == "creative"
    assert config.council.max_deliberation_time_ms == 60000
    assert config.validation.require_anchor is False
    assert config.validation.unanchored_minimum_confidence == 70


def test_load_config_models(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.models["reasoner"], ModelConfig)
    assert config.models["reasoner"].name == "reasoner"
    assert config.models["reasoner"].base_url is None
    assert config.models["critic"].base_url == "https://api.x.ai/v1"


def test_load_config_prompts_and_personas(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.prompts, PromptsConfig)
    assert "{query}" in config.prompts.answer
    assert "{severity}" in config.prompts.rebuttal
    assert "step by step" in config.prompts.personas["reasoner"]


def test_available_members_follow_api_keys(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_REASONER_KEY", "sk-test-key")
    monkeypatch.delenv("TEST_CRITIC_KEY", raising=False)
    config = load_config(minimal_settings)
    assert config.available_members == {"reasoner"}


def test_blank_api_key_is_not_available(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_REASONER_KEY", "   ")
    config = load_config(minimal_settings)
    assert "reasoner" not in config.available_members


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config(Path("/nonexistent/settings.yaml"))


def test_personas_empty_when_missing(tmp_path: Path):
    settings = _settings()
    del settings["personas"]
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    assert load_config(path).prompts.personas == {}


def test_shipped_settings_load():
    config = load_config()
    assert set(config.models) == {
        "reasoner", "creative", "calculator", "generalist", "vision", "critic", "arbiter",
    }
    config.prompts.answer.format(persona="p", query="q")
    config.prompts.challenge.format(persona="p", query="q", confidence=80, response="r")
    config.prompts.rebuttal.format(persona="p", query="q", response="r", severity="HIGH", challenge="c")
    config.prompts.synthesis.format(query="q", outcome="CONSENSUS", share="100%", responses="r")
