"""Conversation setup: roster files, CLI agent options and config validation."""

import logging
from collections.abc import Iterable
from pathlib import Path

import frontmatter

from src.models import Agent, ConversationConfig, ProviderKind

logger = logging.getLogger(__name__)

MIN_AGENTS = 2
MAX_AGENTS = 10


class ConfigInvalid(ValueError):
    """Raised when a conversation setup cannot be started."""


def _provider_kind(value: str | ProviderKind, agent_name: str) -> ProviderKind:
    try:
        return ProviderKind(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        kinds = ", ".join(k.value for k in ProviderKind)
        raise ConfigInvalid(f"Agent {agent_name!r}: unknown provider {value!r} (expected one of: {kinds})") from None


def parse_agent_option(option: str) -> Agent:
    """Parse a CLI agent option of the form "Name:provider:persona".

    The provider may carry a model override: "Name:openai/gpt-4.1:persona".
    """
    parts = option.split(":", 2)
    if len(parts) != 3:
        raise ConfigInvalid(f"Agent option must look like 'Name:provider:persona', got {option!r}")
    name, provider_raw, persona = (p.strip() for p in parts)
    provider_raw, _, model = provider_raw.partition("/")
    return Agent(
        name=name,
        persona=persona,
        provider=_provider_kind(provider_raw, name),
        model=model.strip() or None,
    )


def validate_config(config: ConversationConfig) -> None:
    """Raise ConfigInvalid describing the first problem found."""
    if not config.topic or not config.topic.strip():
        raise ConfigInvalid("A topic is required")

    count = len(config.agents)
    if count < MIN_AGENTS or count > MAX_AGENTS:
        raise ConfigInvalid(f"Between {MIN_AGENTS} and {MAX_AGENTS} agents are required, got {count}")

    seen: set[str] = set()
    for agent in config.agents:
        if not agent.name or not agent.name.strip():
            raise ConfigInvalid("Every agent needs a name")
        if agent.name in seen:
            raise ConfigInvalid(f"Duplicate agent name: {agent.name!r}")
        seen.add(agent.name)
        if not agent.persona or not agent.persona.strip():
            raise ConfigInvalid(f"Agent {agent.name!r} needs a persona")
        if not isinstance(agent.provider, ProviderKind):
            raise ConfigInvalid(f"Agent {agent.name!r} has an unknown provider {agent.provider!r}")

    budget = config.max_turns_per_agent
    if budget is not None and (isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0):
        raise ConfigInvalid(f"max_turns_per_agent must be a positive integer, got {budget!r}")


def build_config(
    topic: str,
    agents: Iterable[Agent],
    instructions: str | None = None,
    max_turns_per_agent: int | None = None,
) -> ConversationConfig:
    """Normalise setup input into a validated, immutable ConversationConfig."""
    config = ConversationConfig(
        topic=topic.strip() if topic else "",
        agents=tuple(
            Agent(name=a.name.strip(), persona=a.persona.strip(), provider=a.provider, model=a.model)
            for a in agents
        ),
        instructions=instructions.strip() if instructions and instructions.strip() else None,
        max_turns_per_agent=max_turns_per_agent or None,
    )
    validate_config(config)
    return config


def load_conversation_file(file_path: Path) -> ConversationConfig:
    """Read a markdown conversation file with YAML frontmatter.

    Frontmatter keys: topic, max_turns_per_agent, agents (list of mappings
    with name, persona, provider and optional model). The body, if any,
    becomes the shared instruction text.
    """
    post = frontmatter.load(str(file_path))
    meta = dict(post.metadata)

    agents_raw = meta.get("agents") or []
    if not isinstance(agents_raw, list):
        raise ConfigInvalid(f"{file_path.name}: 'agents' must be a list")

    agents: list[Agent] = []
    for i, entry in enumerate(agents_raw, start=1):
        if not isinstance(entry, dict):
            raise ConfigInvalid(f"{file_path.name}: agent #{i} must be a mapping")
        name = str(entry.get("name") or "").strip()
        agents.append(
            Agent(
                name=name,
                persona=str(entry.get("persona") or ""),
                provider=_provider_kind(entry.get("provider", ""), name or f"#{i}"),
                model=entry.get("model") or None,
            )
        )

    max_turns = meta.get("max_turns_per_agent")
    if max_turns is not None and not isinstance(max_turns, int):
        raise ConfigInvalid(f"{file_path.name}: max_turns_per_agent must be an integer")

    config = build_config(
        topic=str(meta.get("topic", "")),
        agents=agents,
        instructions=post.content,
        max_turns_per_agent=max_turns,
    )
    logger.info("Loaded conversation setup from %s (%d agents)", file_path, len(config.agents))
    return config


def save_conversation_file(config: ConversationConfig, file_path: Path) -> Path:
    """Write a ConversationConfig back out in the load_conversation_file format."""
    agents_meta: list[dict[str, str]] = []
    for agent in config.agents:
        entry = {"name": agent.name, "persona": agent.persona, "provider": agent.provider.value}
        if agent.model:
            entry["model"] = agent.model
        agents_meta.append(entry)

    meta: dict[str, object] = {"topic": config.topic, "agents": agents_meta}
    if config.max_turns_per_agent:
        meta["max_turns_per_agent"] = config.max_turns_per_agent

    post = frontmatter.Post(config.instructions or "", **meta)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(frontmatter.dumps(post) + "\n", encoding="utf-8")
    logger.info("Conversation setup saved to: %s", file_path)
    return file_path
