from __future__ import annotations

import asyncio
from typing import Any

from llmbridge.config.settings import Settings
from llmbridge.core.cache import CachedProvider, ResponseCache
from llmbridge.core.errors import ErrorCode, ProviderError
from llmbridge.core.logging import get_logger
from llmbridge.core.performance import MonitoredProvider, PerformanceMonitor
from llmbridge.providers.aihubmix import AiHubMixProvider
from llmbridge.providers.anthropic import AnthropicProvider
from llmbridge.providers.base import Provider
from llmbridge.providers.catalog import PROVIDER_CONFIGS
from llmbridge.providers.gemini import GeminiProvider
from llmbridge.providers.ollama import OllamaProvider
from llmbridge.providers.openai_compat import OpenAICompatProvider
from llmbridge.providers.siliconflow import SiliconFlowProvider
from llmbridge.providers.types import ProviderConfig, ProviderHealth, ProviderOptions

logger = get_logger(__name__)

PROVIDER_CLASSES: dict[str, type] = {
    "openai": OpenAICompatProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "ollama": OllamaProvider,
    "siliconflow": SiliconFlowProvider,
    "aihubmix": AiHubMixProvider,
}


def _unknown_provider(provider_id: str) -> ProviderError:
    return ProviderError(
        message=f"Unknown provider: {provider_id}",
        code=ErrorCode.BAD_REQUEST,
        provider=provider_id,
    )


def create_provider(
    provider_id: str,
    options: ProviderOptions | None = None,
    config: ProviderConfig | None = None,
    **kwargs: Any,
) -> Provider:
    """Build a ready adapter for a catalog provider id."""
    provider_cls = PROVIDER_CLASSES.get(provider_id)
    config = config or PROVIDER_CONFIGS.get(provider_id)
    if provider_cls is None or config is None:
        raise _unknown_provider(provider_id)
    return provider_cls(config, options or ProviderOptions(), **kwargs)


class ProviderRegistry:
    """Holds the configured providers, optionally wrapped with monitor and cache."""

    def __init__(
        self,
        cache: ResponseCache | None = None,
        monitor: PerformanceMonitor | None = None,
    ):
        self.cache = cache
        self.monitor = monitor
        self._providers: dict[str, Provider] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRegistry":
        """Registry with every configured provider, cache and monitor sized from settings."""
        cache = None
        if settings.cache_enabled:
            cache = ResponseCache(max_size=settings.cache_max_size, default_ttl=settings.cache_ttl_seconds)
        registry = cls(cache=cache, monitor=PerformanceMonitor(capacity=settings.metrics_capacity))
        registry.build_registry(settings)
        return registry

    def register(self, provider: Provider) -> Provider:
        wrapped = provider
        if self.monitor is not None:
            wrapped = MonitoredProvider(wrapped, self.monitor)
        if self.cache is not None:
            wrapped = CachedProvider(wrapped, self.cache)
        self._providers[provider.provider_id] = wrapped
        return wrapped

    def build_registry(self, settings: Settings) -> None:
        for provider_id in settings.configured_providers:
            provider = create_provider(provider_id, settings.provider_options(provider_id))
            self.register(provider)
            logger.info("provider_registered", data={"provider": provider_id})

    def get(self, provider_id: str) -> Provider:
        if provider_id not in self._providers:
            raise _unknown_provider(provider_id)
        return self._providers[provider_id]

    def list_providers(self) -> list[dict[str, Any]]:
        providers = []
        for provider_id, provider in self._providers.items():
            config = provider.config
            providers.append({
                "provider_id": provider_id,
                "name": config.name,
                "sdk_type": config.sdk_type,
                "streaming": config.capabilities.streaming,
                "models": [model.id for model in provider.get_models()],
            })
        return providers

    async def check_connections(self, timeout: float = 30.0) -> dict[str, ProviderHealth]:
        """Test every provider concurrently; failures become unhealthy entries."""
        tasks = [
            (provider_id, asyncio.create_task(provider.test_connection()))
            for provider_id, provider in self._providers.items()
        ]

        results: dict[str, ProviderHealth] = {}
        for provider_id, task in tasks:
            try:
                ok = await asyncio.wait_for(task, timeout=timeout)
                results[provider_id] = ProviderHealth(ok=ok)
            except asyncio.TimeoutError:
                results[provider_id] = ProviderHealth(ok=False, detail="Connection test timed out")
            except ProviderError as exc:
                results[provider_id] = ProviderHealth(ok=False, detail=str(exc))
        return results

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
        self._providers.clear()
