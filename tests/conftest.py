"""Shared pytest fixtures."""

import asyncio
from collections.abc import Sequence
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from src.models import Agent, ConversationConfig, ModelResponse, ProviderKind, TurnRecord
from src.moderator import SpeakerSelector
from src.providers.base import AIProvider
from src.responder import ResponseGenerator


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="openai",
        sdk="openai",
        model="gpt-test",
        api_key_env="TEST_OPENAI_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        moderator="Topic: {topic}\nAgents:\n{roster}\nSo far:\n{transcript}\nNext speaker: [name]",
        agent="You are {name}. {persona}{instructions}\nTopic: {topic}\n{transcript}",
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(
            tick_interval_sec=3.0,
            moderator="openai",
            output_dir=tmp_path / "output",
        ),
        models={
            "openai": ModelConfig(
                name="openai", sdk="openai", model="gpt-5",
                api_key_env="TEST_OPENAI_KEY", timeout_sec=60, max_tokens=4096,
            ),
            "gemini": ModelConfig(
                name="gemini", sdk="google-genai", model="gemini-2.5-pro",
                api_key_env="TEST_GEMINI_KEY", timeout_sec=60, max_tokens=4096,
            ),
        },
        prompts=sample_prompts_config,
    )


@pytest.fixture
def alice() -> Agent:
    return Agent(name="Alice", persona="An optimistic engineer.", provider=ProviderKind.OPENAI)


@pytest.fixture
def bob() -> Agent:
    return Agent(name="Bob", persona="A cautious economist.", provider=ProviderKind.GEMINI)


@pytest.fixture
def sample_conversation(alice: Agent, bob: Agent) -> ConversationConfig:
    return ConversationConfig(topic="Should cities ban cars?", agents=(alice, bob))


@pytest.fixture
def budgeted_conversation(alice: Agent, bob: Agent) -> ConversationConfig:
    return ConversationConfig(topic="Should cities ban cars?", agents=(alice, bob), max_turns_per_agent=1)


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                turn_number=1,
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, prompt: str, turn_number: int, model: str | None = None) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(self._name, model or "mock-model", turn_number, self._response_content, 0.1, 10)


class ScriptedSelector(SpeakerSelector):
    """Picks speakers by name from a script; cycles through the roster once the script runs out."""

    def __init__(self, names: Sequence[str | None] = ()) -> None:
        self._script = list(names)
        self.calls = 0

    async def select(self, transcript, agents, topic):
        self.calls += 1
        if self._script:
            name = self._script.pop(0)
            if name is None:
                return None
            return next(a for a in agents if a.name == name)
        return agents[(self.calls - 1) % len(agents)]


class ScriptedGenerator(ResponseGenerator):
    """Replies "<name> says N". Can be held open with a gate or told to fail."""

    def __init__(self, fail_with: Exception | None = None, gate: asyncio.Event | None = None) -> None:
        self.fail_with = fail_with
        self.gate = gate
        self.calls: list[str] = []
        self.transcript_lengths: list[int] = []
        self.active = 0
        self.max_active = 0

    async def generate(self, agent, transcript, topic, instructions=None, turn_number=0):
        self.calls.append(agent.name)
        self.transcript_lengths.append(len(transcript))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.fail_with is not None:
                raise self.fail_with
            return f"{agent.name} says {len(self.calls)}"
        finally:
            self.active -= 1


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


def records_of(records: Sequence[TurnRecord], kind) -> list[TurnRecord]:
    return [r for r in records if r.kind is kind]
