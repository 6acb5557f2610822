"""Agent replies: build the persona prompt and dispatch to the agent's provider."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from config.config_loader import PromptsConfig
from src.models import Agent, ProviderKind, TurnRecord
from src.providers.base import AIProvider, GenerationError, GenerationFailure
from src.transcript import format_transcript

logger = logging.getLogger(__name__)


class ResponseGenerator(ABC):
    """Produces one agent's contribution to the conversation."""

    @abstractmethod
    async def generate(
        self,
        agent: Agent,
        transcript: Sequence[TurnRecord],
        topic: str,
        instructions: str | None = None,
        turn_number: int = 0,
    ) -> str:
        """Return non-empty reply text.

        Raises:
            GenerationError: When the reply cannot be produced.
        """
        ...


class AgentResponder(ResponseGenerator):
    """Routes each agent to the provider matching its ProviderKind."""

    def __init__(self, providers: Mapping[ProviderKind, AIProvider], prompts: PromptsConfig) -> None:
        self._providers = dict(providers)
        self._prompts = prompts

    def build_prompt(
        self,
        agent: Agent,
        transcript: Sequence[TurnRecord],
        topic: str,
        instructions: str | None = None,
    ) -> str:
        instructions_block = f"\n{instructions.strip()}\n" if instructions and instructions.strip() else ""
        return self._prompts.agent.format(
            name=agent.name,
            persona=agent.persona,
            topic=topic,
            instructions=instructions_block,
            transcript=format_transcript(transcript),
        )

    async def generate(
        self,
        agent: Agent,
        transcript: Sequence[TurnRecord],
        topic: str,
        instructions: str | None = None,
        turn_number: int = 0,
    ) -> str:
        provider = self._providers.get(agent.provider)
        if provider is None:
            raise GenerationError(
                str(getattr(agent.provider, "value", agent.provider)),
                GenerationFailure.UNSUPPORTED_PROVIDER_KIND,
                f"No provider configured for agent {agent.name}",
            )

        prompt = self.build_prompt(agent, transcript, topic, instructions)
        try:
            response = await provider.generate(prompt, turn_number, model=agent.model)
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(provider.name(), GenerationFailure.UNEXPECTED, f"Unexpected error: {exc}") from exc

        if not response.content or not response.content.strip():
            raise GenerationError(provider.name(), GenerationFailure.MALFORMED_RESPONSE, "Empty response content")

        logger.debug("%s replied with %d chars", agent.name, len(response.content))
        return response.content.strip()
