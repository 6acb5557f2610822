"""API key hygiene: clean, format-check and look up provider keys before setup."""

import logging
import os
import re
from collections.abc import Iterable

from config.config_loader import AppConfig
from src.models import ProviderKind

logger = logging.getLogger(__name__)

_MIN_OPENAI_KEY_LEN = 50
_MIN_GEMINI_KEY_LEN = 20


def clean_api_key(raw: str | None) -> str:
    """Strip every whitespace character, including ones pasted mid-key."""
    return re.sub(r"\s", "", raw or "")


def mask_api_key(key: str) -> str:
    return key[:10] + "..." if len(key) > 10 else "***"


def validate_api_key(kind: ProviderKind, key: str | None) -> tuple[bool, str]:
    """Check the key format for a provider kind. Returns (ok, message)."""
    key = clean_api_key(key)
    if not key:
        return False, f"No {kind.value} API key set"

    if kind is ProviderKind.OPENAI:
        if not key.startswith("sk-"):
            return False, "OpenAI API keys start with 'sk-' or 'sk-proj-'"
        if len(key) < _MIN_OPENAI_KEY_LEN:
            return False, "OpenAI API key is too short"
        return True, ""

    if kind is ProviderKind.GEMINI:
        if not key.startswith("AIza"):
            return False, "Gemini API keys start with 'AIza'"
        if len(key) < _MIN_GEMINI_KEY_LEN:
            return False, "Gemini API key is too short"
        return True, ""

    return False, f"Unsupported provider kind: {kind}"


def check_credentials(config: AppConfig, kinds: Iterable[ProviderKind]) -> dict[ProviderKind, str]:
    """Validate the env keys for every provider kind that will be used.

    Returns a dict of kind -> problem for the kinds that fail; empty when
    everything looks usable. Keys themselves are never logged in full.
    """
    failures: dict[ProviderKind, str] = {}
    for kind in sorted(set(kinds), key=lambda k: k.value):
        model_cfg = config.models.get(kind.value)
        if model_cfg is None:
            failures[kind] = f"No model configured for provider {kind.value}"
            continue
        key = clean_api_key(os.environ.get(model_cfg.api_key_env))
        ok, message = validate_api_key(kind, key)
        if ok:
            logger.debug("%s key looks valid: %s", kind.value, mask_api_key(key))
        else:
            failures[kind] = f"{message} (set {model_cfg.api_key_env})"
    return failures
