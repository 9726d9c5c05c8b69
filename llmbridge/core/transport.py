"""
Resilient HTTP transport for provider calls.

One logical request is attempted at most `max_retries` times, sequentially.
Retryable statuses and transport failures back off between attempts; any other
failure is classified and raised right away.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx

from llmbridge.core.classifier import ErrorClassifier
from llmbridge.core.errors import ErrorCode, ProviderError
from llmbridge.core.logging import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class RetryConfig:
    max_retries: int = 3
    retry_delay: float = 1.0
    retry_on: frozenset[int] = field(default_factory=lambda: frozenset({429, 502, 503, 504}))
    exponential_backoff: bool = True

    def backoff(self, attempt: int) -> float:
        """Delay in seconds after a failed zero-based attempt."""
        if self.exponential_backoff:
            return self.retry_delay * (2 ** attempt)
        return self.retry_delay


def parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class ResilientTransport:
    """httpx.AsyncClient wrapper with bounded retry and error classification."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        provider_id: str,
        retry: RetryConfig | None = None,
        classifier: ErrorClassifier | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.provider_id = provider_id
        self.retry = retry or RetryConfig()
        self.classifier = classifier or ErrorClassifier(provider_id)
        self._sleep = sleep

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request and return the fully read successful response."""
        return await self._send_with_retry(method, url, headers, json, stream=False)

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming response; it is closed when the block exits."""
        response = await self._send_with_retry(method, url, headers, json, stream=True)
        try:
            yield response
        finally:
            await response.aclose()

    async def _send_with_retry(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None,
        json: Any,
        stream: bool,
    ) -> httpx.Response:
        attempts = max(1, self.retry.max_retries)

        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            request = self.client.build_request(method, url, headers=headers, json=json)

            try:
                response = await self.client.send(request, stream=stream)
            except httpx.TransportError as exc:
                if last_attempt:
                    logger.error(
                        "provider_request_failed",
                        data={"provider": self.provider_id, "url": url, "attempt": attempt + 1, "error": str(exc)},
                    )
                    raise self.classifier.classify_exception(exc) from exc
                delay = self.retry.backoff(attempt)
                logger.warning(
                    "provider_request_retry",
                    data={
                        "provider": self.provider_id,
                        "url": url,
                        "attempt": attempt + 1,
                        "delay": delay,
                        "error": f"{type(exc).__name__}: {exc}",
                    },
                )
                await self._sleep(delay)
                continue

            if response.is_success:
                return response

            status = response.status_code
            if last_attempt or status not in self.retry.retry_on:
                error = await self._error_from_response(response)
                logger.error(
                    "provider_request_failed",
                    data={
                        "provider": self.provider_id,
                        "url": url,
                        "status": status,
                        "attempt": attempt + 1,
                        "code": error.code.value,
                    },
                )
                raise error

            delay = self._retry_delay(response, attempt)
            await response.aclose()
            logger.warning(
                "provider_request_retry",
                data={
                    "provider": self.provider_id,
                    "url": url,
                    "status": status,
                    "attempt": attempt + 1,
                    "delay": delay,
                },
            )
            await self._sleep(delay)

        # range(attempts) always returns or raises above
        raise ProviderError(
            message="Request was not attempted",
            code=ErrorCode.UNKNOWN,
            provider=self.provider_id,
        )

    def _retry_delay(self, response: httpx.Response, attempt: int) -> float:
        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            if retry_after is not None:
                return retry_after
        return self.retry.backoff(attempt)

    async def _error_from_response(self, response: httpx.Response) -> ProviderError:
        try:
            await response.aread()
            text = response.text
        except httpx.HTTPError:
            text = ""
        finally:
            await response.aclose()

        body: Any = text or None
        if text:
            try:
                body = response.json()
            except ValueError:
                body = text

        message = f"HTTP {response.status_code} {response.reason_phrase}".strip()
        return self.classifier.classify(status=response.status_code, message=message, body=body)
