"""Shared error types."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMIT = "RATE_LIMIT"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    INSUFFICIENT_QUOTA = "INSUFFICIENT_QUOTA"
    API_KEY_MISSING = "API_KEY_MISSING"
    UNKNOWN = "UNKNOWN"


@dataclass(eq=False)
class ProviderError(Exception):
    """The only error type raised across the provider boundary."""

    message: str
    code: ErrorCode = ErrorCode.UNKNOWN
    status: int | None = None
    provider: str | None = None
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "status": self.status,
            "provider": self.provider,
            "details": self.details,
        }
