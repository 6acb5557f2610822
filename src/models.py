"""Dataclasses and enums for the agent round table. No I/O, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ProviderKind(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


class TurnKind(str, Enum):
    SYSTEM = "system"
    USER = "user"
    AGENT = "agent"


class ConversationStatus(str, Enum):
    SETUP = "setup"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Agent:
    name: str              # unique display name within a roster
    persona: str
    provider: ProviderKind
    model: str | None = None   # overrides the provider's default model


@dataclass(frozen=True)
class TurnRecord:
    kind: TurnKind
    content: str
    agent_name: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if (self.kind is TurnKind.AGENT) != (self.agent_name is not None):
            raise ValueError("agent_name is required for agent turns and only for agent turns")


@dataclass(frozen=True)
class ConversationConfig:
    topic: str
    agents: tuple[Agent, ...]
    instructions: str | None = None        # shared text prefixed to every agent prompt
    max_turns_per_agent: int | None = None


@dataclass
class ModelResponse:
    provider: str          # "openai" or "gemini"
    model: str             # actual model string used
    turn_number: int
    content: str
    latency_sec: float
    token_count: int | None
