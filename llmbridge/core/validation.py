"""
Pre-flight request checks against a model's declared capabilities.

`validate_request_params` collects every violation it finds; it only stops
early when the model is unknown, since nothing else can be checked then.
`normalize_request` clamps and trims instead of rejecting.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from llmbridge.providers.schemas import CompletionRequest
from llmbridge.providers.types import ModelCard

_OPENAI_KEY = re.compile(r"^sk-[A-Za-z0-9_-]{32,}$")


def validate_api_key(api_key: str | None, provider_id: str) -> bool:
    """Cheap format heuristics; a passing key can still be rejected by the vendor."""
    if not api_key:
        return provider_id == "ollama"

    if provider_id == "openai":
        return bool(_OPENAI_KEY.match(api_key))
    if provider_id in ("anthropic", "gemini"):
        return len(api_key) > 20
    if provider_id in ("siliconflow", "aihubmix"):
        return len(api_key) > 10
    if provider_id == "ollama":
        return True
    return len(api_key) > 0


def validate_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_request_params(request: CompletionRequest, model: ModelCard | None) -> list[str]:
    errors: list[str] = []

    if not request.messages:
        errors.append("messages must not be empty")

    if not request.model:
        errors.append("model must be specified")

    if model is None:
        errors.append(f"model {request.model!r} does not exist")
        return errors

    if request.temperature is not None:
        if request.temperature < 0:
            errors.append("temperature must not be negative")
        if model.max_temperature is not None and request.temperature > model.max_temperature:
            errors.append(f"temperature must not exceed {model.max_temperature}")

    if request.top_p is not None and not 0 <= request.top_p <= 1:
        errors.append("top_p must be between 0 and 1")

    if request.max_tokens is not None and request.max_tokens <= 0:
        errors.append("max_tokens must be greater than 0")

    if request.tools and not model.capabilities.function_call:
        errors.append(f"model {model.name} does not support tool calls")

    if any(message.has_image() for message in request.messages) and not model.capabilities.vision:
        errors.append(f"model {model.name} does not support image input")

    return errors


def normalize_request(request: CompletionRequest, model: ModelCard | None = None) -> CompletionRequest:
    """Return a sanitized copy: numbers clamped into range, string content stripped."""
    updates: dict = {}

    if request.temperature is not None:
        temperature = max(0.0, request.temperature)
        if model is not None and model.max_temperature is not None:
            temperature = min(temperature, model.max_temperature)
        updates["temperature"] = temperature

    if request.top_p is not None:
        updates["top_p"] = max(0.0, min(1.0, request.top_p))

    if request.max_tokens is not None:
        updates["max_tokens"] = max(1, request.max_tokens)

    updates["messages"] = [
        message.model_copy(update={"content": message.content.strip()})
        if isinstance(message.content, str)
        else message.model_copy()
        for message in request.messages
    ]

    return request.model_copy(update=updates)
