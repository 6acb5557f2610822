"""Abstract base for the text-generation providers and their shared error type."""

from abc import ABC, abstractmethod
from enum import Enum

from src.models import ModelResponse


class GenerationFailure(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    RATE_LIMITED = "rate-limited"
    MALFORMED_RESPONSE = "malformed-response"
    PROVIDER_UNREACHABLE = "provider-unreachable"
    UNSUPPORTED_PROVIDER_KIND = "unsupported-provider-kind"
    UNEXPECTED = "unexpected"


class GenerationError(Exception):
    """Raised when a provider call fails. Message is meant for humans."""

    def __init__(self, provider_name: str, reason: GenerationFailure, message: str) -> None:
        self.provider_name = provider_name
        self.reason = reason
        super().__init__(f"[{provider_name}] {reason.value}: {message}")


def failure_for_status(status_code: int | None) -> GenerationFailure:
    """Map an HTTP status code from an SDK error to a failure reason."""
    if status_code in (401, 403):
        return GenerationFailure.UNAUTHENTICATED
    if status_code == 429:
        return GenerationFailure.RATE_LIMITED
    return GenerationFailure.PROVIDER_UNREACHABLE


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the provider kind name ('openai' or 'gemini')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the default model identifier string."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, turn_number: int, model: str | None = None) -> ModelResponse:
        """Generate a response for the given prompt.

        Args:
            prompt: The full prompt text to send.
            turn_number: The conversation turn this call belongs to (0 for pings).
            model: Optional model id overriding the configured default.

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            GenerationError: On API failure, timeout, or empty response.
        """
        ...
