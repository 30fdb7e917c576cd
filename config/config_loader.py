"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    base_url: str | None = None


@dataclass
class DiscussionConfig:
    """Per-request snapshot of the discussion limits and budgets.

    A value of 0 for ``max_experts`` or ``max_discussion_rounds`` means no limit.
    """

    max_tokens: int = 4096
    temperature: float = 0.7
    max_experts: int = 0
    max_discussion_rounds: int = 0
    default_discussion_rounds: int = 3
    opening_max_tokens: int = 500
    moderator_summary_max_tokens: int = 1000
    summary_max_tokens: int = 1500
    summary_temperature: float = 0.5


@dataclass
class PromptsConfig:
    moderator: str
    secretary: str
    sequential_context: str
    moderated_background: str
    moderator_opening: str
    moderator_summary: str
    before_summary: str
    free_context: str
    free_summary: str
    moderator_name: str = "Moderator"
    moderator_role: str = "Facilitator"
    moderator_summary_role: str = "Summary"
    secretary_name: str = "Secretary"
    secretary_role: str = "Minutes"


@dataclass
class PersonaConfig:
    id: str
    name: str
    role: str
    system_prompt: str


@dataclass
class DefaultsConfig:
    provider: str
    discipline: str = "sequential"
    output_dir: Path = Path("./output")
    default_personas: list[str] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    discussion: DiscussionConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    personas: list[PersonaConfig] = field(default_factory=list)
    available_providers: set[str] = field(default_factory=set)


def _load_discussion(raw: dict) -> DiscussionConfig:
    base = DiscussionConfig()
    return DiscussionConfig(
        max_tokens=int(raw.get("max_tokens", base.max_tokens)),
        temperature=float(raw.get("temperature", base.temperature)),
        max_experts=int(raw.get("max_experts", base.max_experts)),
        max_discussion_rounds=int(raw.get("max_discussion_rounds", base.max_discussion_rounds)),
        default_discussion_rounds=int(raw.get("default_discussion_rounds", base.default_discussion_rounds)),
        opening_max_tokens=int(raw.get("opening_max_tokens", base.opening_max_tokens)),
        moderator_summary_max_tokens=int(
            raw.get("moderator_summary_max_tokens", base.moderator_summary_max_tokens)
        ),
        summary_max_tokens=int(raw.get("summary_max_tokens", base.summary_max_tokens)),
        summary_temperature=float(raw.get("summary_temperature", base.summary_temperature)),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        provider=str(defaults_raw["provider"]),
        discipline=str(defaults_raw.get("discipline", "sequential")),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        default_personas=list(defaults_raw.get("default_personas", [])),
    )

    discussion = _load_discussion(raw.get("discussion") or {})

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(**{k: str(v) for k, v in prompts_raw.items()})

    personas = [
        PersonaConfig(
            id=str(persona_id),
            name=str(p["name"]),
            role=str(p["role"]),
            system_prompt=str(p["system_prompt"]).strip(),
        )
        for persona_id, p in (raw.get("personas") or {}).items()
    ]

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.debug("Provider available: %s", provider_name)
        else:
            logger.debug(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        discussion=discussion,
        models=models,
        prompts=prompts,
        personas=personas,
        available_providers=available_providers,
    )
