"""
Runtime settings using Pydantic Settings.

Loads configuration from environment variables and .env file.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from llmbridge.core.transport import RetryConfig
from llmbridge.providers.types import ProviderOptions


class Settings(BaseSettings):
    """Provider layer settings with validation and defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    log_file: str = Field(default="", description="Optional log file path")

    # Transport
    provider_timeout_seconds: float = Field(
        default=30.0, gt=0, le=600, description="Provider request timeout"
    )
    provider_max_retries: int = Field(
        default=3, ge=1, le=10, description="Attempts per provider request"
    )
    provider_retry_delay_seconds: float = Field(
        default=1.0, ge=0, description="Base delay between attempts"
    )
    provider_retry_exponential: bool = Field(
        default=True, description="Double the delay after each failed attempt"
    )
    http_proxy: str = Field(default="", description="Optional outbound proxy URL")

    # Response cache
    cache_enabled: bool = Field(default=False, description="Cache non-streaming chat responses")
    cache_ttl_seconds: float = Field(default=300.0, gt=0, description="Cache entry TTL")
    cache_max_size: int = Field(default=100, ge=1, description="Max cached responses")

    # Performance monitor
    metrics_capacity: int = Field(
        default=1000, ge=1, description="Completed request metrics to retain"
    )

    # Providers - OpenAI
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_base_url: str = Field(default="", description="Override OpenAI base URL")

    # Providers - Anthropic
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    anthropic_base_url: str = Field(default="", description="Override Anthropic base URL")

    # Providers - Gemini
    gemini_api_key: str = Field(default="", description="Google AI Studio API key")
    gemini_base_url: str = Field(default="", description="Override Gemini base URL")

    # Providers - Ollama
    ollama_enabled: bool = Field(default=True, description="Register the local Ollama provider")
    ollama_base_url: str = Field(
        default="http://127.0.0.1:11434/api", description="Ollama API base URL"
    )

    # Providers - SiliconFlow
    siliconflow_api_key: str = Field(default="", description="SiliconFlow API key")
    siliconflow_base_url: str = Field(default="", description="Override SiliconFlow base URL")

    # Providers - AiHubMix
    aihubmix_api_key: str = Field(default="", description="AiHubMix API key")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @property
    def configured_providers(self) -> list[str]:
        """Provider ids that have enough configuration to be built."""
        keyed = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "gemini": self.gemini_api_key,
            "siliconflow": self.siliconflow_api_key,
            "aihubmix": self.aihubmix_api_key,
        }
        parsed = [provider_id for provider_id, key in keyed.items() if key]
        if self.ollama_enabled:
            parsed.append("ollama")
        return parsed

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.provider_max_retries,
            retry_delay=self.provider_retry_delay_seconds,
            exponential_backoff=self.provider_retry_exponential,
        )

    def provider_options(self, provider_id: str) -> ProviderOptions:
        """Build per-provider options from the flat settings fields."""
        api_key = getattr(self, f"{provider_id}_api_key", "") or None
        base_url = getattr(self, f"{provider_id}_base_url", "") or None
        return ProviderOptions(
            api_key=api_key,
            base_url=base_url,
            proxy=self.http_proxy or None,
            timeout=self.provider_timeout_seconds,
            retry=self.retry_config(),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
