"""
AiHubMix routing provider.

AiHubMix serves several vendor dialects under one host. The model name picks
the dialect: `claude*` goes to the Anthropic route, `gemini*` to the Gemini
route, everything else to the OpenAI route. The route chosen for a call is
held in a context variable, so concurrent calls never observe each other's
selection.
"""

from __future__ import annotations

import asyncio
from contextvars import ContextVar
from dataclasses import replace
from typing import AsyncIterator

import httpx

from llmbridge.core.logging import get_logger
from llmbridge.core.transport import Sleep
from llmbridge.providers.anthropic import AnthropicProvider
from llmbridge.providers.base import BaseProvider, Provider
from llmbridge.providers.gemini import GeminiProvider
from llmbridge.providers.openai_compat import OpenAICompatProvider
from llmbridge.providers.schemas import CompletionRequest, CompletionResponse, StreamChunk
from llmbridge.providers.types import ModelCard, ProviderConfig, ProviderOptions

logger = get_logger(__name__)

AIHUBMIX_HOST = "https://aihubmix.com"
ANTHROPIC_API_VERSION = "2023-06-01"

_current_route: ContextVar[BaseProvider | None] = ContextVar("aihubmix_route", default=None)


class AiHubMixProvider(Provider):
    def __init__(
        self,
        config: ProviderConfig,
        options: ProviderOptions | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self.provider_id = config.id
        self.config = config
        self.options = options or ProviderOptions()
        host = (self.options.base_url or AIHUBMIX_HOST).rstrip("/")

        # One connection pool shared by all three routes
        self._owns_client = self.options.client is None
        self._client = self.options.client or httpx.AsyncClient(
            timeout=self.options.timeout,
            proxy=self.options.proxy,
        )
        route_options = replace(self.options, base_url=None, api_version=None, client=self._client)

        self.openai = OpenAICompatProvider(
            replace(config, id=f"{config.id}-openai", name=f"{config.name} OpenAI",
                    base_url=f"{host}/v1", sdk_type="openai"),
            route_options,
            sleep=sleep,
        )
        self.anthropic = AnthropicProvider(
            replace(config, id=f"{config.id}-anthropic", name=f"{config.name} Claude",
                    base_url=f"{host}/claude/v1", sdk_type="anthropic",
                    api_version=ANTHROPIC_API_VERSION),
            route_options,
            sleep=sleep,
        )
        self.gemini = GeminiProvider(
            replace(config, id=f"{config.id}-gemini", name=f"{config.name} Gemini",
                    base_url=f"{host}/gemini", sdk_type="gemini",
                    api_version=self.options.api_version),
            route_options,
            sleep=sleep,
        )

    @property
    def display_name(self) -> str:
        return self.config.name

    @property
    def current_provider(self) -> BaseProvider | None:
        """Route serving the call in the current context, if any."""
        return _current_route.get()

    def select_provider(self, model: str) -> BaseProvider:
        if model.startswith("claude"):
            return self.anthropic
        if model.startswith("gemini"):
            return self.gemini
        return self.openai

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_models(self) -> list[ModelCard]:
        return list(self.config.models)

    def get_model_by_id(self, model_id: str) -> ModelCard | None:
        return next((m for m in self.config.models if m.id == model_id), None)

    def validate_request(self, request: CompletionRequest) -> bool:
        return self.select_provider(request.model).validate_request(request)

    async def chat(self, request: CompletionRequest) -> CompletionResponse:
        target = self.select_provider(request.model)
        token = _current_route.set(target)
        try:
            return await target.chat(request)
        finally:
            _current_route.reset(token)

    async def chat_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        target = self.select_provider(request.model)
        previous = _current_route.get()
        _current_route.set(target)
        try:
            async for chunk in target.chat_stream(request):
                yield chunk
        finally:
            _current_route.set(previous)

    async def test_connection(self, model: str | None = None) -> bool:
        test_model = model or (self.config.models[0].id if self.config.models else "")
        target = self.select_provider(test_model)
        logger.info(
            "aihubmix_route_selected",
            data={"provider": self.provider_id, "model": test_model, "route": target.provider_id},
        )
        token = _current_route.set(target)
        try:
            return await target.test_connection(model)
        finally:
            _current_route.reset(token)
