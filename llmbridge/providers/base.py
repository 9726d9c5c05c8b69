from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Protocol

import httpx
from pydantic import ValidationError

from llmbridge.core.classifier import FRIENDLY_MESSAGES, ClassifierRule, ErrorClassifier
from llmbridge.core.errors import ErrorCode, ProviderError
from llmbridge.core.logging import get_logger
from llmbridge.core.transport import ResilientTransport, Sleep
from llmbridge.core.validation import validate_request_params
from llmbridge.providers.schemas import ChatMessage, CompletionRequest, CompletionResponse, StreamChunk
from llmbridge.providers.types import ModelCard, ProviderConfig, ProviderOptions

logger = get_logger(__name__)


class Provider(Protocol):
    provider_id: str
    config: ProviderConfig

    async def chat(self, request: CompletionRequest) -> CompletionResponse:
        ...

    def chat_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        ...

    def get_models(self) -> list[ModelCard]:
        ...

    def get_model_by_id(self, model_id: str) -> ModelCard | None:
        ...

    def validate_request(self, request: CompletionRequest) -> bool:
        ...

    async def test_connection(self, model: str | None = None) -> bool:
        ...

    async def aclose(self) -> None:
        ...


def drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


class BaseProvider(Provider):
    """
    Shared behaviour for HTTP adapters.

    Subclasses supply the wire mapping: `_chat_url`, `_build_payload`,
    `_parse_response` and `_decode_stream`. Retry and error classification are
    delegated to the composed `ResilientTransport` and `ErrorClassifier`.
    """

    error_rules: tuple[ClassifierRule, ...] = ()

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
        self.base_url = (self.options.base_url or config.base_url).rstrip("/")
        self.api_version = self.options.api_version or config.api_version

        self._owns_client = self.options.client is None
        self._client = self.options.client or httpx.AsyncClient(
            timeout=self.options.timeout,
            proxy=self.options.proxy,
        )
        self.classifier = ErrorClassifier(self.provider_id, self.error_rules)
        self.transport = ResilientTransport(
            self._client,
            self.provider_id,
            retry=self.options.retry,
            classifier=self.classifier,
            sleep=sleep,
        )

    @property
    def display_name(self) -> str:
        return self.config.name

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Metadata ---

    def get_models(self) -> list[ModelCard]:
        return list(self.config.models)

    def get_model_by_id(self, model_id: str) -> ModelCard | None:
        for model in self.config.models:
            if model.id == model_id:
                return model
        return None

    # --- Validation ---

    def request_errors(self, request: CompletionRequest) -> list[str]:
        return validate_request_params(request, self.get_model_by_id(request.model))

    def validate_request(self, request: CompletionRequest) -> bool:
        errors = self.request_errors(request)
        for error in errors:
            logger.warning(
                "request_invalid",
                data={"provider": self.provider_id, "model": request.model, "error": error},
            )
        return not errors

    def _ensure_valid(self, request: CompletionRequest) -> None:
        errors = self.request_errors(request)
        if errors:
            raise ProviderError(
                message=f"Invalid request for model {request.model!r}: {'; '.join(errors)}",
                code=ErrorCode.BAD_REQUEST,
                provider=self.provider_id,
                details={"errors": errors},
            )

    # --- HTTP plumbing ---

    def _auth_headers(self) -> dict[str, str]:
        if self.options.api_key and self.config.auth_type != "none":
            return {"Authorization": f"Bearer {self.options.api_key}"}
        return {}

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.config.default_headers)
        headers.update(self.options.headers)
        headers.update(self._auth_headers())
        return headers

    def _json(self, response: httpx.Response) -> Any:
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                message="Provider returned an invalid response format (body is not JSON)",
                code=ErrorCode.UNKNOWN,
                status=response.status_code,
                provider=self.provider_id,
                details={"raw": response.text[:500]},
            ) from exc
        if isinstance(data, dict) and data.get("error"):
            raise self.classifier.classify(status=response.status_code, body=data)
        return data

    def _invalid_response(self, exc: Exception) -> ProviderError:
        return ProviderError(
            message=f"Provider returned an invalid response format ({exc})",
            code=ErrorCode.UNKNOWN,
            provider=self.provider_id,
            details={"raw": str(exc)},
        )

    # --- Wire mapping hooks ---

    def _chat_url(self, request: CompletionRequest, stream: bool) -> str:
        raise NotImplementedError

    def _build_payload(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        raise NotImplementedError

    def _parse_response(self, data: Any, request: CompletionRequest) -> CompletionResponse:
        raise NotImplementedError

    def _decode_stream(self, lines: AsyncIterator[str], request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        raise NotImplementedError

    # --- Chat ---

    async def chat(self, request: CompletionRequest) -> CompletionResponse:
        self._ensure_valid(request)
        return await self._complete(request)

    async def _complete(self, request: CompletionRequest) -> CompletionResponse:
        response = await self.transport.send(
            "POST",
            self._chat_url(request, stream=False),
            headers=self._headers(),
            json=self._build_payload(request, stream=False),
        )
        data = self._json(response)
        try:
            return self._parse_response(data, request)
        except (KeyError, IndexError, TypeError, AttributeError, ValidationError) as exc:
            raise self._invalid_response(exc) from exc

    async def chat_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        self._ensure_valid(request)
        async with self.transport.stream(
            "POST",
            self._chat_url(request, stream=True),
            headers=self._headers(),
            json=self._build_payload(request, stream=True),
        ) as response:
            try:
                async for chunk in self._decode_stream(response.aiter_lines(), request):
                    yield chunk
            except httpx.HTTPError as exc:
                raise self.classifier.classify_exception(exc) from exc

    # --- Connection test ---

    def _default_test_model(self, model: str | None) -> str:
        test_model = model or (self.config.models[0].id if self.config.models else None)
        if not test_model:
            raise ProviderError(
                message="No model available to test the connection",
                code=ErrorCode.MODEL_NOT_FOUND,
                provider=self.provider_id,
            )
        return test_model

    def _require_api_key(self) -> None:
        if self.config.auth_type == "key" and not self.options.api_key:
            raise ProviderError(
                message=f"{FRIENDLY_MESSAGES[ErrorCode.API_KEY_MISSING]} for {self.display_name}",
                code=ErrorCode.API_KEY_MISSING,
                provider=self.provider_id,
            )

    async def _probe(self, model: str) -> bool:
        response = await self._complete(
            CompletionRequest(
                messages=[ChatMessage(role="user", content="Hello")],
                model=model,
                max_tokens=1,
                temperature=0,
            )
        )
        return bool(response.choices)

    async def test_connection(self, model: str | None = None) -> bool:
        """Send a 1-token request; raises ProviderError describing any failure."""
        try:
            self._require_api_key()
            test_model = self._default_test_model(model)
            logger.info(
                "provider_connection_test",
                data={"provider": self.provider_id, "model": test_model},
            )
            if not await self._probe(test_model):
                raise ProviderError(
                    message=f"{self.display_name} returned an invalid response format",
                    code=ErrorCode.UNKNOWN,
                    provider=self.provider_id,
                )
        except ProviderError as exc:
            logger.error(
                "provider_connection_test_failed",
                data={"provider": self.provider_id, "code": exc.code.value, "error": exc.message},
            )
            raise
        logger.info("provider_connection_test_ok", data={"provider": self.provider_id, "model": test_model})
        return True
