"""Load settings.yaml into typed dataclasses. Reports which provider keys are set."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_DEFAULT_SPEAKER_PATTERN = r"Next speaker:\s*\[?([^\]\n]+)\]?"


@dataclass
class ModelConfig:
    name: str              # provider kind: "openai" or "gemini"
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    moderator: str
    agent: str
    speaker_pattern: str = _DEFAULT_SPEAKER_PATTERN


@dataclass
class MessagesConfig:
    opening: str = "Topic: {topic}\n\nThe agents are starting the conversation."
    budget_reset: str = "Turn limits have been reset. Every agent may speak {max_turns} more time(s)."
    auto_pause: str = (
        "Every agent has used all of its turns. "
        "The conversation is paused; resume to reset the turn limits."
    )
    generation_error: str = "An error occurred while {agent} was responding: {error}"


@dataclass
class CommandsConfig:
    prefix: str = "/"
    pause: str = "/pause"
    resume: str = "/resume"


@dataclass
class DefaultsConfig:
    tick_interval_sec: float
    moderator: str
    output_dir: Path
    max_turns_per_agent: int | None = None


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    messages: MessagesConfig = field(default_factory=MessagesConfig)
    commands: CommandsConfig = field(default_factory=CommandsConfig)
    available_providers: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; callers check
    available_providers against the roster they want to run.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    max_turns = defaults_raw.get("max_turns_per_agent")
    defaults = DefaultsConfig(
        tick_interval_sec=float(defaults_raw["tick_interval_sec"]),
        moderator=str(defaults_raw["moderator"]),
        output_dir=Path(defaults_raw["output_dir"]),
        max_turns_per_agent=int(max_turns) if max_turns else None,
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        moderator=prompts_raw["moderator"],
        agent=prompts_raw["agent"],
        speaker_pattern=prompts_raw.get("speaker_pattern", _DEFAULT_SPEAKER_PATTERN),
    )

    # Missing keys in these sections fall back to the dataclass defaults
    messages = MessagesConfig(**raw.get("messages", {}))
    commands = CommandsConfig(**raw.get("commands", {}))

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        messages=messages,
        commands=commands,
        available_providers=available_providers,
    )
