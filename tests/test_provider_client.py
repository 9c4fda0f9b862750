"""Tests for key rotation and model fallback in the provider client."""

import asyncio

import pytest

from tutor.app.core.config import settings
from tutor.app.exceptions import ProviderUnavailableError
from tutor.app.providers.base import GenerationOptions, user_turn
from tutor.app.providers.client import ProviderClient, get_provider_client
from tutor.app.providers.credentials import CredentialPool
from tutor.app.providers.errors import ProviderError, ProviderQuotaError
from tutor.app.providers.mock import MockProvider
from tutor.app.providers.retry import RetryPolicy


class TestCredentialPool:
    @pytest.mark.asyncio
    async def test_round_robin_wraps(self):
        pool = CredentialPool(["k1", "k2", "k3"])
        assert [await pool.next() for _ in range(7)] == ["k1", "k2", "k3", "k1", "k2", "k3", "k1"]

    @pytest.mark.asyncio
    async def test_concurrent_next_is_balanced(self):
        pool = CredentialPool(["k1", "k2"])
        keys = await asyncio.gather(*(pool.next() for _ in range(100)))
        assert keys.count("k1") == 50
        assert keys.count("k2") == 50

    @pytest.mark.asyncio
    async def test_empty_pool_raises(self):
        pool = CredentialPool(["", ""])
        assert pool.is_empty
        assert len(pool) == 0
        with pytest.raises(RuntimeError):
            await pool.next()


class TestAcquireModel:
    @pytest.mark.asyncio
    async def test_primary_model_used_when_available(self, provider_factory, client_factory):
        provider = provider_factory()
        client = client_factory(provider, models=["primary", "fallback"])

        handle = await client.acquire_model()

        assert handle.model_name == "primary"
        assert provider.smoke_tests == ["primary"]

    @pytest.mark.asyncio
    async def test_falls_back_in_declared_order(self, provider_factory, client_factory):
        provider = provider_factory(unavailable=["primary", "fallback-1"])
        client = client_factory(provider, models=["primary", "fallback-1", "fallback-2"])

        handle = await client.acquire_model()

        assert handle.model_name == "fallback-2"
        assert provider.smoke_tests == ["primary", "fallback-1", "fallback-2"]

    @pytest.mark.asyncio
    async def test_all_models_failing_is_unavailable(self, provider_factory, client_factory):
        provider = provider_factory(unavailable=["primary", "fallback"])
        client = client_factory(provider, models=["primary", "fallback"])

        with pytest.raises(ProviderUnavailableError):
            await client.acquire_model()

    @pytest.mark.asyncio
    async def test_preferred_model_tried_first(self, provider_factory, client_factory):
        provider = provider_factory()
        client = client_factory(provider, models=["primary", "fallback"])

        handle = await client.acquire_model(preferred_model="fallback")

        assert handle.model_name == "fallback"
        assert provider.smoke_tests == ["fallback"]

    @pytest.mark.asyncio
    async def test_no_keys_is_unavailable(self, provider_factory, client_factory):
        client = client_factory(provider_factory(), keys=[])
        with pytest.raises(ProviderUnavailableError):
            await client.acquire_model()

    @pytest.mark.asyncio
    async def test_keys_rotate_per_acquisition(self, provider_factory):
        built = []

        def build(key):
            built.append(key)
            return provider_factory(api_key=key)

        client = ProviderClient(["k1", "k2"], ["m"], build)
        for _ in range(3):
            await client.acquire_model()

        assert built == ["k1", "k2", "k1"]

    def test_requires_at_least_one_model(self, provider_factory):
        with pytest.raises(ValueError):
            ProviderClient(["k"], [], lambda key: provider_factory())


class TestModelHandle:
    @pytest.mark.asyncio
    async def test_generate_retries_quota_errors(self, provider_factory, client_factory):
        provider = provider_factory(script={"m": [ProviderQuotaError(), "answer"]})
        client = client_factory(provider, models=["m"], max_retries=2)

        handle = await client.acquire_model()
        text = await handle.generate([user_turn("pregunta")], GenerationOptions())

        assert text == "answer"
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_generate_without_retry_surfaces_quota(self, provider_factory, client_factory):
        provider = provider_factory(script={"m": [ProviderQuotaError(), "answer"]})
        client = client_factory(provider, models=["m"], max_retries=2)

        handle = await client.acquire_model()
        with pytest.raises(ProviderQuotaError):
            await handle.generate([user_turn("pregunta")], GenerationOptions(), retry=False)
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_non_quota_errors_not_retried(self, provider_factory, client_factory):
        provider = provider_factory(script={"m": [ProviderError("boom", status=500), "answer"]})
        client = client_factory(provider, models=["m"], max_retries=2)

        handle = await client.acquire_model()
        with pytest.raises(ProviderError, match="boom"):
            await handle.generate([user_turn("pregunta")], GenerationOptions())


class TestGlobalClient:
    def test_mock_mode_without_keys(self, monkeypatch):
        monkeypatch.setattr(settings, "mock_provider", True)
        monkeypatch.setattr(settings, "gemini_api_keys", [])
        monkeypatch.setattr(settings, "gemini_api_key", "")

        client = get_provider_client()

        assert client.credential_count == 1
        assert client is get_provider_client()

    @pytest.mark.asyncio
    async def test_mock_mode_acquires_mock_provider(self, monkeypatch):
        monkeypatch.setattr(settings, "mock_provider", True)
        monkeypatch.setattr(settings, "gemini_primary_model", "gemini-1.5-flash")
        monkeypatch.setattr(settings, "gemini_fallback_models", ["gemini-pro"])

        handle = await get_provider_client().acquire_model()

        assert isinstance(handle.provider, MockProvider)
        assert handle.model_name == "gemini-1.5-flash"

    def test_model_chain_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_keys", ["k1", "k2"])
        monkeypatch.setattr(settings, "gemini_primary_model", "a")
        monkeypatch.setattr(settings, "gemini_fallback_models", ["b", "a", "c"])

        client = get_provider_client()

        assert client.primary_model == "a"
        assert client.fallback_models == ("b", "c")
        assert client.credential_count == 2

    def test_retry_policy_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_keys", ["k1"])
        monkeypatch.setattr(settings, "quota_retry_attempts", 2)
        monkeypatch.setattr(settings, "quota_retry_delay", 2.0)

        policy: RetryPolicy = get_provider_client().retry_policy

        assert policy.max_retries == 2
        assert policy.delay == 2.0
