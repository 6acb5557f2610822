"""Gemini provider using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from src.models import ModelResponse
from src.providers.base import AIProvider, GenerationError, GenerationFailure, failure_for_status

logger = logging.getLogger(__name__)


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise GenerationError(
                config.name, GenerationFailure.UNAUTHENTICATED, f"Missing API key: {config.api_key_env}"
            )
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, prompt: str, turn_number: int, model: str | None = None) -> ModelResponse:
        model_id = model or self._config.model
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=model_id,
                    contents=prompt,
                    config=genai_types.GenerateContentConfig(
                        max_output_tokens=self._config.max_tokens,
                    ),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise GenerationError(
                self._config.name,
                GenerationFailure.PROVIDER_UNREACHABLE,
                f"Request timed out after {self._config.timeout_sec}s",
            ) from exc
        except genai_errors.APIError as exc:
            raise GenerationError(
                self._config.name, failure_for_status(exc.code), f"API call failed: {exc}"
            ) from exc
        except (httpx.TransportError, OSError) as exc:
            raise GenerationError(
                self._config.name, GenerationFailure.PROVIDER_UNREACHABLE, f"Connection failed: {exc}"
            ) from exc
        except Exception as exc:
            raise GenerationError(
                self._config.name, GenerationFailure.UNEXPECTED, f"API call failed: {exc}"
            ) from exc

        latency = time.monotonic() - start

        if not response.text or not response.text.strip():
            raise GenerationError(self._config.name, GenerationFailure.MALFORMED_RESPONSE, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info(
            "Gemini turn %d (%s): %.2fs, %s tokens",
            turn_number,
            model_id,
            latency,
            token_count,
        )

        return ModelResponse(
            provider=self._config.name,
            model=model_id,
            turn_number=turn_number,
            content=response.text,
            latency_sec=latency,
            token_count=token_count,
        )
