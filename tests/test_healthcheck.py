"""Unit tests for src/healthcheck.py: no real API calls."""

import asyncio
from unittest.mock import AsyncMock

import src.healthcheck as hc
from src.healthcheck import run_health_checks
from src.models import ProviderKind
from src.providers.base import GenerationError, GenerationFailure

from tests.conftest import MockProvider


async def test_all_providers_pass():
    providers = {
        ProviderKind.OPENAI: MockProvider("openai"),
        ProviderKind.GEMINI: MockProvider("gemini"),
    }

    results = await run_health_checks(providers)

    assert results[ProviderKind.OPENAI] == (True, "mock-model is reachable")
    assert results[ProviderKind.GEMINI][0] is True
    providers[ProviderKind.OPENAI].generate.assert_awaited_once_with("Hello", turn_number=0)


async def test_one_provider_fails():
    providers = {
        ProviderKind.OPENAI: MockProvider("openai"),
        ProviderKind.GEMINI: MockProvider("gemini"),
    }
    providers[ProviderKind.GEMINI].generate = AsyncMock(
        side_effect=GenerationError("gemini", GenerationFailure.UNAUTHENTICATED, "403 Forbidden")
    )

    results = await run_health_checks(providers)

    assert results[ProviderKind.OPENAI][0] is True
    ok, err = results[ProviderKind.GEMINI]
    assert ok is False
    assert "unauthenticated" in err
    assert "403" in err


async def test_unexpected_exception_is_reported():
    providers = {ProviderKind.OPENAI: MockProvider("openai")}
    providers[ProviderKind.OPENAI].generate = AsyncMock(side_effect=Exception("openai down"))

    results = await run_health_checks(providers)

    ok, err = results[ProviderKind.OPENAI]
    assert ok is False
    assert "openai down" in err


async def test_empty_providers():
    results = await run_health_checks({})
    assert results == {}


async def test_timeout_counts_as_failure(monkeypatch):
    providers = {ProviderKind.GEMINI: MockProvider("gemini")}

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    providers[ProviderKind.GEMINI].generate = AsyncMock(side_effect=hang)
    monkeypatch.setattr(hc, "_TIMEOUT_SEC", 0.05)

    results = await run_health_checks(providers)

    ok, err = results[ProviderKind.GEMINI]
    assert ok is False
    assert err.startswith("No answer within")
