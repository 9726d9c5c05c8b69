from .errors import ErrorCode, ProviderError
from .logging import get_logger, provider_ctx, request_id_ctx, setup_logging

__all__ = [
    "ErrorCode",
    "ProviderError",
    "get_logger",
    "provider_ctx",
    "request_id_ctx",
    "setup_logging",
]
