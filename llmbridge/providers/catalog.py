"""Static vendor and model descriptors. Read-only configuration data."""
from __future__ import annotations

from llmbridge.providers.types import (
    ModelCapabilities,
    ModelCard,
    ProviderConfig,
    ProviderWebsite,
)

OPENAI_MODELS = (
    ModelCard(
        id="gpt-4.1-nano",
        name="GPT-4.1 nano",
        description="Fastest, most cost-efficient GPT-4.1 model",
        capabilities=ModelCapabilities(context_window_tokens=128000, function_call=True, vision=True, json_mode=True),
        max_temperature=2.0,
    ),
    ModelCard(
        id="gpt-4o",
        name="GPT-4o",
        description="Multimodal flagship model",
        capabilities=ModelCapabilities(context_window_tokens=128000, function_call=True, vision=True, json_mode=True),
        max_temperature=2.0,
    ),
    ModelCard(
        id="gpt-4-turbo",
        name="GPT-4 Turbo",
        capabilities=ModelCapabilities(context_window_tokens=128000, function_call=True, json_mode=True),
        max_temperature=2.0,
    ),
    ModelCard(
        id="gpt-3.5-turbo",
        name="GPT-3.5 Turbo",
        capabilities=ModelCapabilities(context_window_tokens=16385, function_call=True, json_mode=True),
        max_temperature=2.0,
    ),
)

ANTHROPIC_MODELS = (
    ModelCard(
        id="claude-3-5-sonnet-20241022",
        name="Claude 3.5 Sonnet",
        capabilities=ModelCapabilities(context_window_tokens=200000, function_call=True, vision=True),
        max_temperature=1.0,
    ),
    ModelCard(
        id="claude-3-opus-20240229",
        name="Claude 3 Opus",
        capabilities=ModelCapabilities(context_window_tokens=200000, function_call=True, vision=True),
        max_temperature=1.0,
    ),
    ModelCard(
        id="claude-3-haiku-20240307",
        name="Claude 3 Haiku",
        capabilities=ModelCapabilities(context_window_tokens=200000, function_call=True, vision=True),
        max_temperature=1.0,
    ),
)

GEMINI_MODELS = (
    ModelCard(
        id="gemini-1.5-pro",
        name="Gemini 1.5 Pro",
        capabilities=ModelCapabilities(context_window_tokens=1000000, function_call=True, vision=True, json_mode=True),
        max_temperature=2.0,
    ),
    ModelCard(
        id="gemini-1.5-flash",
        name="Gemini 1.5 Flash",
        capabilities=ModelCapabilities(context_window_tokens=1000000, function_call=True, vision=True, json_mode=True),
        max_temperature=2.0,
    ),
)

OLLAMA_MODELS = (
    ModelCard(
        id="llama3",
        name="Llama 3 8B",
        capabilities=ModelCapabilities(context_window_tokens=8192),
        max_temperature=2.0,
    ),
    ModelCard(
        id="qwen2.5",
        name="Qwen 2.5 7B",
        capabilities=ModelCapabilities(context_window_tokens=32768, function_call=True),
        max_temperature=2.0,
    ),
    ModelCard(
        id="llava",
        name="LLaVA",
        capabilities=ModelCapabilities(context_window_tokens=4096, vision=True),
        max_temperature=2.0,
    ),
)

SILICONFLOW_MODELS = (
    ModelCard(
        id="deepseek-ai/DeepSeek-R1-Distill-Qwen-7B",
        name="deepseek-ai/DeepSeek-R1-Distill-Qwen-7B",
        description="DeepSeek R1 distilled into Qwen 7B",
        capabilities=ModelCapabilities(context_window_tokens=16000, function_call=True, json_mode=True, reasoning=True),
        max_temperature=1.0,
    ),
    ModelCard(
        id="deepseek-chat",
        name="Deepseek Chat",
        description="General purpose chat model",
        capabilities=ModelCapabilities(context_window_tokens=16000, json_mode=True, reasoning=True),
        max_temperature=1.0,
    ),
    ModelCard(
        id="Qwen/Qwen3-235B-A22B",
        name="Qwen3 235B A22B",
        capabilities=ModelCapabilities(context_window_tokens=32000, function_call=True, json_mode=True, reasoning=True),
        max_temperature=1.0,
    ),
    ModelCard(
        id="Pro/deepseek-ai/DeepSeek-V3",
        name="Pro/deepseek-ai/DeepSeek-V3",
        capabilities=ModelCapabilities(context_window_tokens=16000, function_call=True, json_mode=True, reasoning=True),
        max_temperature=1.0,
    ),
)

AIHUBMIX_MODELS = (
    ModelCard(
        id="gpt-4.1-nano",
        name="GPT-4.1 nano",
        capabilities=ModelCapabilities(context_window_tokens=128000, function_call=True, vision=True),
        max_temperature=2.0,
    ),
    ModelCard(
        id="gpt-4o",
        name="GPT-4o",
        capabilities=ModelCapabilities(context_window_tokens=128000, function_call=True),
        max_temperature=2.0,
    ),
    ModelCard(
        id="claude-3-opus",
        name="Claude 3 Opus",
        capabilities=ModelCapabilities(context_window_tokens=200000, function_call=True, vision=True),
        max_temperature=1.0,
    ),
    ModelCard(
        id="claude-3-sonnet",
        name="Claude 3 Sonnet",
        capabilities=ModelCapabilities(context_window_tokens=200000, function_call=True, vision=True),
        max_temperature=1.0,
    ),
    ModelCard(
        id="gemini-1.5-pro",
        name="Gemini 1.5 Pro",
        capabilities=ModelCapabilities(context_window_tokens=1000000, function_call=True, vision=True),
        max_temperature=1.0,
    ),
    ModelCard(
        id="llama-3-70b",
        name="Llama 3 70B",
        capabilities=ModelCapabilities(context_window_tokens=8192, function_call=True),
        max_temperature=2.0,
    ),
    ModelCard(
        id="DeepSeek-R1",
        name="DeepSeek R1",
        capabilities=ModelCapabilities(context_window_tokens=4000, function_call=True, reasoning=True),
        max_temperature=1.0,
    ),
)

PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    "openai": ProviderConfig(
        id="openai",
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        sdk_type="openai",
        auth_type="key",
        models=OPENAI_MODELS,
        website=ProviderWebsite(
            official="https://openai.com",
            api_docs="https://platform.openai.com/docs/api-reference",
            pricing="https://openai.com/pricing",
            api_key_url="https://platform.openai.com/api-keys",
            status="https://status.openai.com",
        ),
    ),
    "anthropic": ProviderConfig(
        id="anthropic",
        name="Anthropic",
        base_url="https://api.anthropic.com/v1",
        api_version="2023-06-01",
        sdk_type="anthropic",
        auth_type="key",
        models=ANTHROPIC_MODELS,
        default_headers={"anthropic-version": "2023-06-01"},
        website=ProviderWebsite(
            official="https://anthropic.com",
            api_docs="https://docs.anthropic.com/claude/reference",
            pricing="https://www.anthropic.com/pricing",
            api_key_url="https://console.anthropic.com/settings/keys",
        ),
    ),
    "gemini": ProviderConfig(
        id="gemini",
        name="Google Gemini",
        base_url="https://generativelanguage.googleapis.com",
        api_version="v1beta",
        sdk_type="gemini",
        auth_type="key",
        models=GEMINI_MODELS,
        website=ProviderWebsite(
            official="https://ai.google.dev",
            api_docs="https://ai.google.dev/docs",
            pricing="https://ai.google.dev/pricing",
            api_key_url="https://ai.google.dev/docs/api-key",
        ),
    ),
    "ollama": ProviderConfig(
        id="ollama",
        name="Ollama",
        base_url="http://localhost:11434/api",
        sdk_type="custom",
        auth_type="none",
        models=OLLAMA_MODELS,
        website=ProviderWebsite(
            official="https://ollama.ai",
            api_docs="https://github.com/ollama/ollama/blob/main/docs/api.md",
        ),
    ),
    "siliconflow": ProviderConfig(
        id="siliconflow",
        name="SiliconFlow",
        base_url="https://api.siliconflow.cn/v1",
        sdk_type="custom",
        auth_type="key",
        models=SILICONFLOW_MODELS,
        website=ProviderWebsite(
            official="https://siliconflow.cn",
            api_docs="https://siliconflow.cn/docs/api",
            pricing="https://siliconflow.cn/pricing",
            api_key_url="https://cloud.siliconflow.cn/account/ak",
        ),
    ),
    "aihubmix": ProviderConfig(
        id="aihubmix",
        name="AiHubMix",
        base_url="https://aihubmix.com/v1",
        sdk_type="custom",
        auth_type="key",
        models=AIHUBMIX_MODELS,
        website=ProviderWebsite(
            official="https://aihubmix.com",
            api_docs="https://doc.aihubmix.com",
            pricing="https://aihubmix.com/pricing",
            api_key_url="https://aihubmix.com/token",
        ),
    ),
}
