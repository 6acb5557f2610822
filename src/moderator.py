"""Moderator: asks a model which agent should speak next."""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence

from config.config_loader import PromptsConfig
from src.models import Agent, TurnRecord
from src.providers.base import AIProvider, GenerationError
from src.transcript import format_transcript

logger = logging.getLogger(__name__)


class SpeakerSelector(ABC):
    """Chooses the next speaker from the roster."""

    @abstractmethod
    async def select(
        self,
        transcript: Sequence[TurnRecord],
        agents: Sequence[Agent],
        topic: str,
    ) -> Agent | None:
        """Return the agent that should speak next, or None if nobody can be chosen."""
        ...


def _format_roster(agents: Sequence[Agent]) -> str:
    return "\n".join(f"- {a.name} ({a.provider.value}): {a.persona}" for a in agents)


def resolve_speaker(answer: str, agents: Sequence[Agent], pattern: re.Pattern[str]) -> Agent | None:
    """Find the agent named in a moderator answer. None when nothing matches."""
    match = pattern.search(answer)
    if not match:
        return None
    chosen = match.group(1).strip().strip("*\"'").strip()
    for agent in agents:
        if agent.name == chosen:
            return agent
    # Models sometimes change the casing of names
    for agent in agents:
        if agent.name.casefold() == chosen.casefold():
            return agent
    return None


class Moderator(SpeakerSelector):
    """Speaker selection backed by a provider.

    Any failure to get a usable decision (provider error, unparseable answer,
    unknown name) falls back to the first agent in the roster so the
    conversation never stalls on the moderator.
    """

    def __init__(self, provider: AIProvider, prompts: PromptsConfig) -> None:
        self._provider = provider
        self._prompts = prompts
        self._pattern = re.compile(prompts.speaker_pattern)

    async def select(
        self,
        transcript: Sequence[TurnRecord],
        agents: Sequence[Agent],
        topic: str,
    ) -> Agent | None:
        if not agents:
            return None

        prompt = self._prompts.moderator.format(
            topic=topic,
            roster=_format_roster(agents),
            transcript=format_transcript(transcript),
        )

        try:
            response = await self._provider.generate(prompt, turn_number=0)
        except GenerationError as exc:
            logger.warning("Moderator call failed, falling back to %s: %s", agents[0].name, exc)
            return agents[0]
        except Exception as exc:
            logger.warning("Moderator unexpected failure, falling back to %s: %s", agents[0].name, exc)
            return agents[0]

        logger.debug("Moderator answer: %s", response.content)
        agent = resolve_speaker(response.content, agents, self._pattern)
        if agent is None:
            logger.warning(
                "Moderator answer did not name a roster agent, falling back to %s: %r",
                agents[0].name,
                response.content[:200],
            )
            return agents[0]

        logger.info("Moderator chose %s", agent.name)
        return agent
