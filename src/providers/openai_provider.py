"""OpenAI provider using the openai SDK Responses API with native async."""

import asyncio
import logging
import os
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from src.models import ModelResponse
from src.providers.base import AIProvider, GenerationError, GenerationFailure, failure_for_status

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise GenerationError(
                config.name, GenerationFailure.UNAUTHENTICATED, f"Missing API key: {config.api_key_env}"
            )
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, prompt: str, turn_number: int, model: str | None = None) -> ModelResponse:
        model_id = model or self._config.model
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.responses.create(
                    model=model_id,
                    input=prompt,
                    max_output_tokens=self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise GenerationError(
                self._config.name,
                GenerationFailure.PROVIDER_UNREACHABLE,
                f"Request timed out after {self._config.timeout_sec}s",
            ) from exc
        except openai.APIStatusError as exc:
            raise GenerationError(
                self._config.name, failure_for_status(exc.status_code), f"API call failed: {exc}"
            ) from exc
        except openai.APIConnectionError as exc:
            raise GenerationError(
                self._config.name, GenerationFailure.PROVIDER_UNREACHABLE, f"Connection failed: {exc}"
            ) from exc
        except Exception as exc:
            raise GenerationError(
                self._config.name, GenerationFailure.UNEXPECTED, f"API call failed: {exc}"
            ) from exc

        latency = time.monotonic() - start

        content = response.output_text
        if not content or not content.strip():
            raise GenerationError(self._config.name, GenerationFailure.MALFORMED_RESPONSE, "Empty response text")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info(
            "OpenAI turn %d (%s): %.2fs, %s tokens",
            turn_number,
            model_id,
            latency,
            token_count,
        )

        return ModelResponse(
            provider=self._config.name,
            model=model_id,
            turn_number=turn_number,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
