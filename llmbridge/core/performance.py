"""
Per-request timing and outcome tracking.

Completed metrics are kept in a bounded ring (oldest dropped first); active
requests are tracked by id until `end_request` is called.
"""

from __future__ import annotations

import asyncio
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable, Literal

from llmbridge.core.errors import ErrorCode, ProviderError
from llmbridge.core.logging import get_logger, provider_ctx, request_id_ctx
from llmbridge.providers.schemas import CompletionRequest, CompletionResponse, StreamChunk, Usage
from llmbridge.providers.types import ModelCard

logger = get_logger(__name__)

MetricStatus = Literal["success", "error", "timeout"]


@dataclass
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0

    @classmethod
    def from_usage(cls, usage: Usage | dict[str, Any] | None) -> "TokenUsage | None":
        if usage is None:
            return None
        if isinstance(usage, Usage):
            usage = usage.model_dump()
        return cls(
            prompt=usage.get("prompt_tokens") or 0,
            completion=usage.get("completion_tokens") or 0,
            total=usage.get("total_tokens") or 0,
        )


@dataclass
class PerformanceMetric:
    request_id: str
    provider: str
    model: str
    start_time: float
    status: MetricStatus
    end_time: float | None = None
    duration: float | None = None  # milliseconds
    tokens_used: TokenUsage | None = None
    error: str | None = None


@dataclass
class PerformanceStats:
    total_requests: int = 0
    success_rate: float = 0.0
    error_rate: float = 0.0
    average_duration: float = 0.0
    total_tokens: int = 0
    average_tokens_per_request: float = 0.0


@dataclass
class TrendPoint:
    timestamp: datetime
    success_rate: float
    average_duration: float


@dataclass
class _ActiveRequest:
    provider: str
    model: str
    start_time: float


class PerformanceMonitor:
    """Collects request metrics. Safe to share across tasks and threads."""

    def __init__(self, capacity: int = 1000, clock: Callable[[], float] = time.time):
        self.capacity = capacity
        self._clock = clock
        self._lock = threading.Lock()
        self._metrics: deque[PerformanceMetric] = deque(maxlen=capacity)
        self._active: dict[str, _ActiveRequest] = {}

    def start_request(self, provider: str, model: str) -> str:
        request_id = f"{int(self._clock() * 1000)}-{uuid.uuid4().hex[:9]}"
        with self._lock:
            self._active[request_id] = _ActiveRequest(provider, model, self._clock())
        return request_id

    def end_request(
        self,
        request_id: str,
        status: MetricStatus,
        tokens_used: Usage | dict[str, Any] | None = None,
        error: str | None = None,
    ) -> PerformanceMetric | None:
        with self._lock:
            active = self._active.pop(request_id, None)
            if active is None:
                logger.warning("performance_request_unknown", data={"request_id": request_id})
                return None

            end_time = self._clock()
            metric = PerformanceMetric(
                request_id=request_id,
                provider=active.provider,
                model=active.model,
                start_time=active.start_time,
                end_time=end_time,
                duration=(end_time - active.start_time) * 1000,
                tokens_used=TokenUsage.from_usage(tokens_used),
                status=status,
                error=error,
            )
            self._metrics.append(metric)
            return metric

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def get_metrics(self, provider: str | None = None, model: str | None = None) -> list[PerformanceMetric]:
        """Completed metrics, newest first."""
        with self._lock:
            metrics = list(self._metrics)
        if provider:
            metrics = [m for m in metrics if m.provider == provider]
        if model:
            metrics = [m for m in metrics if m.model == model]
        return sorted(metrics, key=lambda m: m.start_time, reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._active.clear()

    def get_stats(self, provider: str | None = None, model: str | None = None) -> PerformanceStats:
        metrics = self.get_metrics(provider, model)
        if not metrics:
            return PerformanceStats()

        count = len(metrics)
        successes = sum(1 for m in metrics if m.status == "success")
        errors = sum(1 for m in metrics if m.status == "error")
        total_duration = sum(m.duration or 0 for m in metrics)
        total_tokens = sum(m.tokens_used.total for m in metrics if m.tokens_used)

        return PerformanceStats(
            total_requests=count,
            success_rate=successes / count * 100,
            error_rate=errors / count * 100,
            average_duration=total_duration / count,
            total_tokens=total_tokens,
            average_tokens_per_request=total_tokens / count,
        )

    def get_recent_errors(self, limit: int = 10) -> list[PerformanceMetric]:
        return [m for m in self.get_metrics() if m.status == "error"][:limit]

    def get_trend_data(self, hours: int = 24) -> list[TrendPoint]:
        """Success rate and average duration per UTC hour over the last `hours`."""
        cutoff = self._clock() - hours * 3600
        buckets: dict[datetime, list[PerformanceMetric]] = {}
        for metric in self.get_metrics():
            if metric.start_time < cutoff:
                continue
            started = datetime.fromtimestamp(metric.start_time, tz=timezone.utc)
            hour = started.replace(minute=0, second=0, microsecond=0)
            buckets.setdefault(hour, []).append(metric)

        points = []
        for hour, metrics in buckets.items():
            successes = sum(1 for m in metrics if m.status == "success")
            points.append(
                TrendPoint(
                    timestamp=hour,
                    success_rate=successes / len(metrics) * 100,
                    average_duration=sum(m.duration or 0 for m in metrics) / len(metrics),
                )
            )
        return sorted(points, key=lambda p: p.timestamp)


def _status_for(exc: BaseException) -> MetricStatus:
    if isinstance(exc, ProviderError) and exc.code == ErrorCode.TIMEOUT:
        return "timeout"
    return "error"


class MonitoredProvider:
    """Wraps a provider and records a metric for every chat call."""

    def __init__(self, provider, monitor: PerformanceMonitor):
        self._provider = provider
        self.monitor = monitor

    @property
    def provider_id(self) -> str:
        return self._provider.provider_id

    @property
    def config(self):
        return self._provider.config

    @property
    def wrapped(self):
        return self._provider

    async def chat(self, request: CompletionRequest) -> CompletionResponse:
        request_id = self.monitor.start_request(self.provider_id, request.model)
        id_token = request_id_ctx.set(request_id)
        provider_token = provider_ctx.set(self.provider_id)
        try:
            response = await self._provider.chat(request)
        except asyncio.CancelledError:
            self.monitor.end_request(request_id, "error", error="cancelled")
            raise
        except Exception as exc:
            self.monitor.end_request(request_id, _status_for(exc), error=str(exc))
            raise
        finally:
            request_id_ctx.reset(id_token)
            provider_ctx.reset(provider_token)
        self.monitor.end_request(request_id, "success", response.usage)
        return response

    async def chat_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        request_id = self.monitor.start_request(self.provider_id, request.model)
        stream = self._provider.chat_stream(request)
        usage: Usage | None = None
        # Stays "cancelled" unless the stream runs to completion or fails
        status: MetricStatus = "error"
        error: str | None = "cancelled"
        try:
            while True:
                # Bound per step so the vars never leak into the consumer between chunks
                id_token = request_id_ctx.set(request_id)
                provider_token = provider_ctx.set(self.provider_id)
                try:
                    chunk = await stream.__anext__()
                except StopAsyncIteration:
                    break
                finally:
                    request_id_ctx.reset(id_token)
                    provider_ctx.reset(provider_token)
                if chunk.usage is not None:
                    usage = chunk.usage
                yield chunk
            status, error = "success", None
        except Exception as exc:
            status, error = _status_for(exc), str(exc)
            raise
        finally:
            self.monitor.end_request(request_id, status, usage, error)
            await stream.aclose()

    def get_models(self) -> list[ModelCard]:
        return self._provider.get_models()

    def get_model_by_id(self, model_id: str) -> ModelCard | None:
        return self._provider.get_model_by_id(model_id)

    def validate_request(self, request: CompletionRequest) -> bool:
        return self._provider.validate_request(request)

    async def test_connection(self, model: str | None = None) -> bool:
        return await self._provider.test_connection(model)

    async def aclose(self) -> None:
        await self._provider.aclose()
