from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

import httpx

from llmbridge.core.transport import RetryConfig

AuthType = Literal["key", "token", "none"]
SdkType = Literal["openai", "anthropic", "gemini", "custom"]


@dataclass(frozen=True)
class ModelCapabilities:
    context_window_tokens: int | None = None
    function_call: bool = False
    vision: bool = False
    reasoning: bool = False
    json_mode: bool = False
    image_generation: bool = False


@dataclass(frozen=True)
class ModelCard:
    id: str
    name: str
    capabilities: ModelCapabilities = field(default_factory=ModelCapabilities)
    description: str | None = None
    enabled: bool = True
    max_temperature: float | None = None


@dataclass(frozen=True)
class ProviderCapabilities:
    streaming: bool = True
    batch_requests: bool = False


@dataclass(frozen=True)
class ProviderWebsite:
    official: str | None = None
    api_docs: str | None = None
    pricing: str | None = None
    api_key_url: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class ProviderConfig:
    id: str
    name: str
    base_url: str
    sdk_type: SdkType
    auth_type: AuthType = "key"
    models: tuple[ModelCard, ...] = ()
    api_version: str | None = None
    default_headers: dict[str, str] = field(default_factory=dict)
    capabilities: ProviderCapabilities = field(default_factory=ProviderCapabilities)
    website: ProviderWebsite | None = None
    description: str | None = None


@dataclass
class ProviderOptions:
    api_key: str | None = None
    base_url: str | None = None
    api_version: str | None = None
    proxy: str | None = None
    timeout: float = 30.0
    headers: dict[str, str] = field(default_factory=dict)
    retry: RetryConfig = field(default_factory=RetryConfig)
    # Pre-built client; lets callers inject transports and share pools.
    client: httpx.AsyncClient | None = None


@dataclass
class ProviderHealth:
    ok: bool
    detail: str | None = None
