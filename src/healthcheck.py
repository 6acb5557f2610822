"""Provider health checks: ping each provider the roster needs before starting."""

import asyncio
import logging
from collections.abc import Mapping

from src.models import ProviderKind
from src.providers.base import AIProvider, GenerationError

logger = logging.getLogger(__name__)

_PING_PROMPT = "Hello"
_TIMEOUT_SEC = 15.0


async def _check_one(kind: ProviderKind, provider: AIProvider) -> tuple[ProviderKind, bool, str]:
    """Ping a single provider. Returns (kind, ok, message)."""
    try:
        await asyncio.wait_for(provider.generate(_PING_PROMPT, turn_number=0), timeout=_TIMEOUT_SEC)
    except TimeoutError:
        return kind, False, f"No answer within {_TIMEOUT_SEC:.0f}s"
    except GenerationError as exc:
        return kind, False, str(exc)
    except Exception as exc:
        return kind, False, f"Unexpected error: {exc}"
    logger.debug("%s answered the ping with %s", kind.value, provider.model_string())
    return kind, True, f"{provider.model_string()} is reachable"


async def run_health_checks(
    providers: Mapping[ProviderKind, AIProvider],
) -> dict[ProviderKind, tuple[bool, str]]:
    """Ping all providers in parallel.

    Returns:
        Dict mapping provider kind -> (ok, message). On failure the message
        carries the GenerationError reason, e.g. "[openai] unauthenticated: ...".
    """
    results = await asyncio.gather(*(_check_one(k, p) for k, p in providers.items()))
    return {kind: (ok, message) for kind, ok, message in results}
