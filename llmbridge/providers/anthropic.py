from __future__ import annotations

import time
from typing import Any, AsyncIterator

from llmbridge.core.classifier import ErrorClassifier, anthropic_rule
from llmbridge.providers.base import BaseProvider, drop_none
from llmbridge.providers.schemas import (
    ChatMessage,
    Choice,
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
    Usage,
)
from llmbridge.providers.streaming import iter_sse_data, loads_or_warn

DEFAULT_MAX_TOKENS = 1024


def _usage(raw: dict[str, Any] | None) -> Usage | None:
    if not raw:
        return None
    return Usage.of(raw.get("input_tokens"), raw.get("output_tokens"))


async def decode_anthropic_stream(
    lines: AsyncIterator[str],
    model: str,
    classifier: ErrorClassifier | None = None,
) -> AsyncIterator[StreamChunk]:
    """
    Decode the Messages API event stream.

    Only `data:` lines are read; the event type is taken from the payload, so
    `event:` lines (including a trailing `event: done`) are ignored.
    """
    classifier = classifier or ErrorClassifier("anthropic", (anthropic_rule,))
    message_id = ""
    input_tokens = 0

    async for data in iter_sse_data(lines):
        event = loads_or_warn(data, classifier.provider_id)
        if not isinstance(event, dict):
            continue

        kind = event.get("type")
        if kind == "message_start":
            message = event.get("message") or {}
            message_id = message.get("id", "")
            input_tokens = (message.get("usage") or {}).get("input_tokens") or 0
        elif kind == "content_block_delta":
            text = (event.get("delta") or {}).get("text")
            if text:
                yield StreamChunk.from_text(text, model=model, id=message_id)
        elif kind == "message_delta":
            delta = event.get("delta") or {}
            output_tokens = (event.get("usage") or {}).get("output_tokens")
            yield StreamChunk.from_text(
                "",
                model=model,
                id=message_id,
                finish_reason=delta.get("stop_reason"),
                usage=Usage.of(input_tokens, output_tokens) if output_tokens is not None else None,
            )
        elif kind == "message_stop":
            break
        elif kind == "error":
            raise classifier.classify(body=event)


class AnthropicProvider(BaseProvider):
    """Adapter for the Anthropic Messages API."""

    error_rules = (anthropic_rule,)

    def _auth_headers(self) -> dict[str, str]:
        if self.options.api_key and self.config.auth_type != "none":
            return {"x-api-key": self.options.api_key}
        return {}

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.api_version and "anthropic-version" not in headers:
            headers["anthropic-version"] = self.api_version
        return headers

    def _chat_url(self, request: CompletionRequest, stream: bool) -> str:
        return f"{self.base_url}/messages"

    def _build_payload(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        # System messages go through in the messages array unchanged.
        return drop_none(
            {
                "model": request.model,
                "messages": [m.model_dump(exclude_none=True) for m in request.messages],
                "temperature": request.temperature,
                "top_p": request.top_p,
                "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
                "stream": stream,
            }
        )

    def _parse_response(self, data: Any, request: CompletionRequest) -> CompletionResponse:
        return CompletionResponse(
            id=data.get("id", ""),
            created=int(time.time()),
            model=data.get("model") or request.model,
            choices=[
                Choice(
                    index=0,
                    message=ChatMessage(role="assistant", content=data["content"][0]["text"]),
                    finish_reason=data.get("stop_reason"),
                )
            ],
            usage=_usage(data.get("usage")),
        )

    def _decode_stream(self, lines: AsyncIterator[str], request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        return decode_anthropic_stream(lines, request.model, self.classifier)
