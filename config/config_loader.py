"""Load settings.yaml into typed dataclasses. Checks member API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str              # council member this model sits for, e.g. "reasoner"
    sdk: str               # "anthropic", "openai", "gemini", "xai"
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    answer: str
    challenge: str
    rebuttal: str
    synthesis: str
    personas: dict[str, str] = field(default_factory=dict)


@dataclass
class CouncilConfig:
    required_members: list[str] = field(default_factory=lambda: ["reasoner", "arbiter"])
    critic: str = "critic"
    synthesizer: str | None = None
    voting_threshold: float = 0.66
    noise_floor: float = 0.1
    critique_threshold: int = 70
    critique_required: bool = True
    max_deliberation_time_ms: int = 60000


@dataclass
class ValidationConfig:
    require_anchor: bool = True
    minimum_confidence: int = 100
    unanchored_minimum_confidence: int = 60
    require_consensus: bool = True
    conversational_confidence: int = 80


@dataclass
class DefaultsConfig:
    output_dir: Path
    sources_file: Path | None = None


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    council: CouncilConfig
    validation: ValidationConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    available_members: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Members whose API key is unset are logged and left out of
    available_members; callers decide whether the council can still sit.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    sources_file = defaults_raw.get("sources_file")
    defaults = DefaultsConfig(
        output_dir=Path(defaults_raw["output_dir"]),
        sources_file=Path(sources_file) if sources_file else None,
    )

    council_raw = raw.get("council", {})
    council = CouncilConfig(
        required_members=[str(m) for m in council_raw.get("required_members", ["reasoner", "arbiter"])],
        critic=str(council_raw.get("critic", "critic")),
        synthesizer=council_raw.get("synthesizer"),
        voting_threshold=float(council_raw.get("voting_threshold", 0.66)),
        noise_floor=float(council_raw.get("noise_floor", 0.1)),
        critique_threshold=int(council_raw.get("critique_threshold", 70)),
        critique_required=bool(council_raw.get("critique_required", True)),
        max_deliberation_time_ms=int(council_raw.get("max_deliberation_time_ms", 60000)),
    )

    validation_raw = raw.get("validation", {})
    validation = ValidationConfig(
        require_anchor=bool(validation_raw.get("require_anchor", True)),
        minimum_confidence=int(validation_raw.get("minimum_confidence", 100)),
        unanchored_minimum_confidence=int(validation_raw.get("unanchored_minimum_confidence", 60)),
        require_consensus=bool(validation_raw.get("require_consensus", True)),
        conversational_confidence=int(validation_raw.get("conversational_confidence", 80)),
    )

    prompts_raw = raw["prompts"]
    personas_raw = raw.get("personas", {})
    prompts = PromptsConfig(
        answer=prompts_raw["answer"],
        challenge=prompts_raw["challenge"],
        rebuttal=prompts_raw["rebuttal"],
        synthesis=prompts_raw["synthesis"],
        personas={k: str(v) for k, v in personas_raw.items()},
    )

    models: dict[str, ModelConfig] = {}
    available_members: set[str] = set()

    for member_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=member_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[member_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_members.add(member_name)
            logger.info("Member available: %s", member_name)
        else:
            logger.info(
                "Member seat empty (no API key): %s, set %s in .env",
                member_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        council=council,
        validation=validation,
        models=models,
        prompts=prompts,
        available_members=available_members,
    )
