from __future__ import annotations

import json
import time
from typing import Any, AsyncIterator

from llmbridge.core.classifier import gemini_rule
from llmbridge.providers.base import BaseProvider, drop_none
from llmbridge.providers.schemas import (
    ChatMessage,
    Choice,
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
    Usage,
)
from llmbridge.providers.streaming import iter_ndjson

DEFAULT_API_VERSION = "v1"


def to_gemini_contents(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Gemini has no system role and calls the assistant `model`."""
    contents = []
    for message in messages:
        role = message.role
        if role == "system":
            role = "user"
        elif role == "assistant":
            role = "model"
        text = message.content if isinstance(message.content, str) else json.dumps(message.content)
        contents.append({"role": role, "parts": [{"text": text}]})
    return contents


def _candidate_text(data: dict[str, Any]) -> str:
    candidates = data.get("candidates") or [{}]
    parts = (candidates[0].get("content") or {}).get("parts") or [{}]
    return parts[0].get("text") or ""


def _finish_reason(data: dict[str, Any]) -> str | None:
    candidates = data.get("candidates") or [{}]
    reason = candidates[0].get("finishReason")
    return reason.lower() if isinstance(reason, str) else None


def _usage(data: dict[str, Any]) -> Usage | None:
    metadata = data.get("usageMetadata")
    if not metadata:
        return None
    return Usage.of(metadata.get("promptTokenCount"), metadata.get("candidatesTokenCount"))


async def decode_gemini_stream(
    lines: AsyncIterator[str],
    model: str,
    provider_id: str = "gemini",
) -> AsyncIterator[StreamChunk]:
    """Decode newline-delimited GenerateContentResponse objects."""
    async for data in iter_ndjson(lines, provider_id):
        if not isinstance(data, dict):
            continue
        yield StreamChunk.from_text(
            _candidate_text(data),
            model=model,
            id=f"gemini-stream-{int(time.time() * 1000)}",
            finish_reason=_finish_reason(data),
            usage=_usage(data),
        )


class GeminiProvider(BaseProvider):
    """Adapter for the Gemini generateContent API."""

    error_rules = (gemini_rule,)

    def _auth_headers(self) -> dict[str, str]:
        if self.options.api_key:
            return {"x-goog-api-key": self.options.api_key}
        return {}

    def _chat_url(self, request: CompletionRequest, stream: bool) -> str:
        method = "streamGenerateContent" if stream else "generateContent"
        version = self.api_version or DEFAULT_API_VERSION
        return f"{self.base_url}/{version}/models/{request.model}:{method}"

    def _build_payload(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        return {
            "contents": to_gemini_contents(request.messages),
            "generationConfig": drop_none(
                {
                    "temperature": request.temperature,
                    "topP": request.top_p,
                    "maxOutputTokens": request.max_tokens,
                }
            ),
            "safetySettings": [],
        }

    def _parse_response(self, data: Any, request: CompletionRequest) -> CompletionResponse:
        if not data.get("candidates"):
            raise KeyError("candidates")
        return CompletionResponse(
            id=f"gemini-{int(time.time() * 1000)}",
            model=request.model,
            choices=[
                Choice(
                    index=0,
                    message=ChatMessage(role="assistant", content=_candidate_text(data)),
                    finish_reason=_finish_reason(data) or "stop",
                )
            ],
            usage=_usage(data) or Usage(),
        )

    def _decode_stream(self, lines: AsyncIterator[str], request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        return decode_gemini_stream(lines, request.model, self.provider_id)
