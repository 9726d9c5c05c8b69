"""
Error classification for provider failures.

Maps HTTP statuses, transport exceptions and vendor error envelopes onto the
closed ErrorCode set. Vendor rules run first, in order; the generic rules are
the fallback. Classification never raises.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable

import httpx

from llmbridge.core.errors import ErrorCode, ProviderError

ClassifierRule = Callable[[int | None, str, Any], ErrorCode | None]

FRIENDLY_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UNAUTHORIZED: "Authentication failed: the API key is invalid or expired",
    ErrorCode.FORBIDDEN: "Access denied: the API key lacks permission or the account is restricted",
    ErrorCode.RATE_LIMIT: "Rate limit exceeded: slow down or upgrade the API plan",
    ErrorCode.TIMEOUT: "Request timed out: check the network connection or configure a proxy",
    ErrorCode.NETWORK_ERROR: "Network error: the provider could not be reached",
    ErrorCode.BAD_REQUEST: "Bad request: check the API configuration and request parameters",
    ErrorCode.SERVICE_UNAVAILABLE: "Service temporarily unavailable: retry later",
    ErrorCode.INTERNAL_ERROR: "Provider internal error: retry later",
    ErrorCode.MODEL_NOT_FOUND: "Model not found or not available for this account",
    ErrorCode.INSUFFICIENT_QUOTA: "Insufficient quota: check the account balance or billing plan",
    ErrorCode.API_KEY_MISSING: "API key is not configured",
    ErrorCode.UNKNOWN: "Provider request failed",
}

STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.BAD_REQUEST,
    408: ErrorCode.TIMEOUT,
    429: ErrorCode.RATE_LIMIT,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.SERVICE_UNAVAILABLE,
    503: ErrorCode.SERVICE_UNAVAILABLE,
    504: ErrorCode.TIMEOUT,
}

_MODEL_NOT_FOUND = re.compile(r"model.*(not found|does not exist)", re.IGNORECASE | re.DOTALL)


def extract_error_message(body: Any) -> str:
    """Pull a human message out of the common vendor error envelopes."""
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict):
            for key in ("message", "msg", "detail"):
                if isinstance(error.get(key), str):
                    return error[key]
        elif isinstance(error, str):
            return error
        if isinstance(body.get("message"), str):
            return body["message"]
    elif isinstance(body, str):
        return body
    return ""


def _error_field(body: Any, field: str) -> str | None:
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        value = body["error"].get(field)
        return str(value) if value is not None else None
    return None


def openai_rule(status: int | None, message: str, body: Any) -> ErrorCode | None:
    """OpenAI-style `error.code` values."""
    codes = {
        "invalid_api_key": ErrorCode.UNAUTHORIZED,
        "billing_not_active": ErrorCode.INSUFFICIENT_QUOTA,
        "billing_hard_limit_reached": ErrorCode.INSUFFICIENT_QUOTA,
        "insufficient_quota": ErrorCode.INSUFFICIENT_QUOTA,
        "model_not_found": ErrorCode.MODEL_NOT_FOUND,
        "rate_limit_exceeded": ErrorCode.RATE_LIMIT,
    }
    for field in ("code", "type"):
        value = _error_field(body, field)
        if value in codes:
            return codes[value]
    return None


def anthropic_rule(status: int | None, message: str, body: Any) -> ErrorCode | None:
    """Anthropic `error.type` values."""
    types = {
        "authentication_error": ErrorCode.UNAUTHORIZED,
        "permission_error": ErrorCode.FORBIDDEN,
        "rate_limit_error": ErrorCode.RATE_LIMIT,
        "invalid_request_error": ErrorCode.BAD_REQUEST,
        "not_found_error": ErrorCode.MODEL_NOT_FOUND,
        "overloaded_error": ErrorCode.SERVICE_UNAVAILABLE,
        "api_error": ErrorCode.INTERNAL_ERROR,
    }
    return types.get(_error_field(body, "type") or "")


def gemini_rule(status: int | None, message: str, body: Any) -> ErrorCode | None:
    """Google API `error.status` values and reason markers in the message."""
    if "API_KEY_INVALID" in message or "API key not valid" in message:
        return ErrorCode.UNAUTHORIZED
    if "QUOTA_EXCEEDED" in message:
        return ErrorCode.INSUFFICIENT_QUOTA
    if "MODEL_NOT_FOUND" in message:
        return ErrorCode.MODEL_NOT_FOUND
    statuses = {
        "UNAUTHENTICATED": ErrorCode.UNAUTHORIZED,
        "PERMISSION_DENIED": ErrorCode.FORBIDDEN,
        "RESOURCE_EXHAUSTED": ErrorCode.RATE_LIMIT,
        "NOT_FOUND": ErrorCode.MODEL_NOT_FOUND,
        "UNAVAILABLE": ErrorCode.SERVICE_UNAVAILABLE,
        "DEADLINE_EXCEEDED": ErrorCode.TIMEOUT,
    }
    return statuses.get(_error_field(body, "status") or "")


def ollama_rule(status: int | None, message: str, body: Any) -> ErrorCode | None:
    """Ollama answers `{"error": "model 'x' not found, try pulling it first"}`."""
    if isinstance(body, dict) and isinstance(body.get("error"), str) and _MODEL_NOT_FOUND.search(body["error"]):
        return ErrorCode.MODEL_NOT_FOUND
    return None


def _classify_message(message: str) -> ErrorCode | None:
    lowered = message.lower()
    if "timeout" in lowered or "timed out" in lowered:
        return ErrorCode.TIMEOUT
    if "ENOTFOUND" in message or "network" in lowered or "DNS" in message or "connect" in lowered:
        return ErrorCode.NETWORK_ERROR
    if _MODEL_NOT_FOUND.search(message):
        return ErrorCode.MODEL_NOT_FOUND
    if "unauthorized" in lowered:
        return ErrorCode.UNAUTHORIZED
    if "forbidden" in lowered:
        return ErrorCode.FORBIDDEN
    if "rate limit" in lowered:
        return ErrorCode.RATE_LIMIT
    return None


class ErrorClassifier:
    """Turns raw failures into ProviderError for one provider."""

    def __init__(self, provider_id: str, rules: Iterable[ClassifierRule] = ()):
        self.provider_id = provider_id
        self.rules = list(rules)

    def classify_code(self, status: int | None, message: str, body: Any = None) -> ErrorCode:
        for rule in self.rules:
            try:
                code = rule(status, message, body)
            except Exception:
                code = None
            if code is not None:
                return code

        if "insufficient_quota" in message:
            return ErrorCode.INSUFFICIENT_QUOTA
        if status is not None and status in STATUS_CODES:
            return STATUS_CODES[status]
        return _classify_message(message) or ErrorCode.UNKNOWN

    def classify(
        self,
        status: int | None = None,
        message: str = "",
        body: Any = None,
    ) -> ProviderError:
        """Build a ProviderError from a status, raw message and parsed body."""
        raw = extract_error_message(body) or message
        code = self.classify_code(status, f"{message} {raw}".strip(), body)

        if status == 404 and code == ErrorCode.BAD_REQUEST:
            friendly = "API endpoint not found: check the base URL"
        else:
            friendly = FRIENDLY_MESSAGES[code]
        text = f"{friendly} ({raw})" if raw and code != ErrorCode.UNKNOWN else (raw or friendly)

        details: dict[str, Any] = {"raw": raw} if raw else {}
        if body is not None and not isinstance(body, str):
            details["body"] = body
        return ProviderError(
            message=text,
            code=code,
            status=status,
            provider=self.provider_id,
            details=details or None,
        )

    def classify_exception(self, exc: BaseException) -> ProviderError:
        """Classify an exception raised before any HTTP response arrived."""
        if isinstance(exc, ProviderError):
            return exc
        if isinstance(exc, httpx.TimeoutException):
            code = ErrorCode.TIMEOUT
        elif isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
            code = ErrorCode.NETWORK_ERROR
        else:
            code = self.classify_code(None, str(exc) or type(exc).__name__)

        raw = str(exc) or type(exc).__name__
        return ProviderError(
            message=f"{FRIENDLY_MESSAGES[code]} ({raw})",
            code=code,
            provider=self.provider_id,
            details={"raw": raw, "exception": type(exc).__name__},
        )
