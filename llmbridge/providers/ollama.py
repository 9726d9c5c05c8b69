from __future__ import annotations

import time
from typing import Any, AsyncIterator

from llmbridge.core.classifier import ollama_rule
from llmbridge.core.errors import ErrorCode, ProviderError
from llmbridge.core.logging import get_logger
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

logger = get_logger(__name__)


def _usage(data: dict[str, Any]) -> Usage:
    return Usage.of(data.get("prompt_eval_count"), data.get("eval_count"))


async def decode_ollama_stream(
    lines: AsyncIterator[str],
    model: str,
    provider_id: str = "ollama",
) -> AsyncIterator[StreamChunk]:
    """Decode NDJSON chat chunks; the chunk with `done: true` is the last one."""
    async for data in iter_ndjson(lines, provider_id):
        if not isinstance(data, dict):
            continue
        done = bool(data.get("done"))
        yield StreamChunk.from_text(
            (data.get("message") or {}).get("content") or "",
            model=model,
            id=f"ollama-stream-{int(time.time() * 1000)}",
            finish_reason="stop" if done else None,
            usage=_usage(data) if done else None,
        )
        if done:
            break


class OllamaProvider(BaseProvider):
    """Adapter for a local Ollama daemon. No authentication."""

    error_rules = (ollama_rule,)

    def _auth_headers(self) -> dict[str, str]:
        return {}

    @property
    def api_root(self) -> str:
        """Daemon root URL; the configured base URL normally ends in /api."""
        if self.base_url.endswith("/api"):
            return self.base_url[: -len("/api")]
        return self.base_url

    def _chat_url(self, request: CompletionRequest, stream: bool) -> str:
        return f"{self.base_url}/chat"

    def _build_payload(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        return {
            "model": request.model,
            "messages": [m.model_dump(exclude_none=True) for m in request.messages],
            "options": drop_none(
                {
                    "temperature": request.temperature,
                    "top_p": request.top_p,
                    "num_predict": request.max_tokens,
                }
            ),
            "stream": stream,
        }

    def _parse_response(self, data: Any, request: CompletionRequest) -> CompletionResponse:
        message = data["message"]
        if not isinstance(message.get("content"), str):
            raise TypeError("message.content is not a string")
        return CompletionResponse(
            id=f"ollama-{int(time.time() * 1000)}",
            model=data.get("model") or request.model,
            choices=[
                Choice(
                    index=0,
                    message=ChatMessage(role="assistant", content=message["content"]),
                    finish_reason="stop",
                )
            ],
            usage=_usage(data),
        )

    def _decode_stream(self, lines: AsyncIterator[str], request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        return decode_ollama_stream(lines, request.model, self.provider_id)

    async def list_installed_models(self) -> list[str]:
        """Names reported by `GET /api/tags`, retried like any other call."""
        response = await self.transport.send("GET", f"{self.api_root}/api/tags", headers=self._headers())
        data = self._json(response)
        return [m.get("name", "") for m in (data.get("models") or []) if isinstance(m, dict)]

    async def test_connection(self, model: str | None = None) -> bool:
        try:
            test_model = self._default_test_model(model)
            try:
                installed = await self.list_installed_models()
            except ProviderError as exc:
                if exc.code in (ErrorCode.NETWORK_ERROR, ErrorCode.TIMEOUT):
                    raise ProviderError(
                        message="Cannot reach the Ollama service; make sure it is running (ollama serve)",
                        code=exc.code,
                        provider=self.provider_id,
                        details=exc.details,
                    ) from exc
                raise

            logger.info(
                "ollama_models_available",
                data={"provider": self.provider_id, "models": installed},
            )
            if test_model not in installed and f"{test_model}:latest" not in installed:
                raise ProviderError(
                    message=f"Model {test_model} is not installed in Ollama; run: ollama pull {test_model}",
                    code=ErrorCode.MODEL_NOT_FOUND,
                    provider=self.provider_id,
                    details={"installed": installed},
                )

            if not await self._probe(test_model):
                raise ProviderError(
                    message="Ollama returned an invalid response format",
                    code=ErrorCode.UNKNOWN,
                    provider=self.provider_id,
                )
        except ProviderError as exc:
            logger.error(
                "provider_connection_test_failed",
                data={"provider": self.provider_id, "code": exc.code.value, "error": exc.message},
            )
            raise
        return True
