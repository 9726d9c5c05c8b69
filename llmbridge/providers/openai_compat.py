from __future__ import annotations

from typing import Any, AsyncIterator

from llmbridge.core.classifier import openai_rule
from llmbridge.providers.base import BaseProvider, drop_none
from llmbridge.providers.schemas import CompletionRequest, CompletionResponse, StreamChunk
from llmbridge.providers.streaming import iter_sse_data, loads_or_warn

DONE_MARKER = "[DONE]"


async def decode_openai_stream(
    lines: AsyncIterator[str],
    model: str,
    provider_id: str = "openai",
) -> AsyncIterator[StreamChunk]:
    """Decode `data: {...}` SSE lines until `data: [DONE]`."""
    async for data in iter_sse_data(lines):
        if data == DONE_MARKER:
            break
        chunk = loads_or_warn(data, provider_id)
        if not isinstance(chunk, dict):
            continue
        chunk.setdefault("model", model)
        if not chunk.get("id"):
            chunk.pop("id", None)
        yield StreamChunk.model_validate(chunk)


class OpenAICompatProvider(BaseProvider):
    """Adapter for OpenAI and any endpoint speaking the chat/completions dialect."""

    error_rules = (openai_rule,)

    def _chat_url(self, request: CompletionRequest, stream: bool) -> str:
        return f"{self.base_url}/chat/completions"

    def _build_payload(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        return drop_none(
            {
                "model": request.model,
                "messages": [m.model_dump(exclude_none=True) for m in request.messages],
                "temperature": request.temperature,
                "top_p": request.top_p,
                "max_tokens": request.max_tokens,
                "stream": stream,
                "tools": request.tools,
                "tool_choice": request.tool_choice,
            }
        )

    def _parse_response(self, data: Any, request: CompletionRequest) -> CompletionResponse:
        data.setdefault("model", request.model)
        return CompletionResponse.model_validate(data)

    def _decode_stream(self, lines: AsyncIterator[str], request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        return decode_openai_stream(lines, request.model, self.provider_id)
