from __future__ import annotations

import time
from typing import Any, AsyncIterator

from llmbridge.providers.openai_compat import OpenAICompatProvider, decode_openai_stream
from llmbridge.providers.schemas import (
    ChatMessage,
    Choice,
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
    Usage,
)

DEFAULT_MAX_TOKENS = 2048


class SiliconFlowProvider(OpenAICompatProvider):
    """OpenAI dialect with SiliconFlow defaults and a reshaped response."""

    def _build_payload(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        payload = super()._build_payload(request, stream)
        payload["messages"] = [{"role": m.role, "content": m.content} for m in request.messages]
        payload["max_tokens"] = request.max_tokens or DEFAULT_MAX_TOKENS
        return payload

    def _parse_response(self, data: Any, request: CompletionRequest) -> CompletionResponse:
        choice = data["choices"][0]
        usage = data.get("usage") or {}
        return CompletionResponse(
            id=data.get("id") or f"sf-{int(time.time() * 1000)}",
            model=data.get("model") or request.model,
            choices=[
                Choice(
                    index=0,
                    message=ChatMessage(role="assistant", content=choice["message"].get("content") or ""),
                    finish_reason=choice.get("finish_reason") or "stop",
                )
            ],
            usage=Usage.model_validate(usage) if usage else Usage(),
        )

    async def _decode_stream(self, lines: AsyncIterator[str], request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        async for chunk in decode_openai_stream(lines, request.model, self.provider_id):
            if not chunk.id:
                chunk.id = f"sf-{int(time.time() * 1000)}"
            yield chunk
