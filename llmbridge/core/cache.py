"""
Response cache for non-streaming chat completions.

Entries are keyed by a SHA-256 fingerprint of the cache-relevant request
fields. Eviction at capacity removes the entry inserted first, not the least
recently read one.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from llmbridge.core.logging import get_logger
from llmbridge.providers.schemas import CompletionRequest, CompletionResponse, StreamChunk
from llmbridge.providers.types import ModelCard

logger = get_logger(__name__)

KEY_FIELDS = ("model", "messages", "temperature", "top_p", "max_tokens", "tools", "tool_choice")


def cache_key(request: CompletionRequest) -> str:
    """Stable fingerprint over the fields that change a completion."""
    data = request.model_dump(mode="json", include=set(KEY_FIELDS))
    payload = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    key: str
    value: CompletionResponse
    timestamp: float
    ttl: float
    hits: int = 0

    def expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


@dataclass
class CacheStats:
    size: int
    max_size: int
    total_hits: int
    expired_count: int
    hit_rate: float


class ResponseCache:
    """In-memory TTL cache, safe to share across tasks and threads."""

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            entry.hits += 1
            return entry

    def set(self, key: str, value: CompletionResponse, ttl: float | None = None) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_oldest()
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                timestamp=self._clock(),
                ttl=ttl if ttl is not None else self.default_ttl,
            )

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def cleanup(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            entries = list(self._entries.values())
            total_hits = sum(entry.hits for entry in entries)
            expired = sum(1 for entry in entries if entry.expired(now))
            hit_rate = total_hits / (total_hits + len(entries)) * 100 if total_hits else 0.0
            return CacheStats(
                size=len(entries),
                max_size=self.max_size,
                total_hits=total_hits,
                expired_count=expired,
                hit_rate=hit_rate,
            )

    def _evict_oldest(self) -> None:
        # Caller holds the lock
        if not self._entries:
            return
        oldest = min(self._entries.values(), key=lambda entry: entry.timestamp)
        del self._entries[oldest.key]


class CachedProvider:
    """Wraps a provider and memoizes its non-streaming `chat` results."""

    def __init__(
        self,
        provider,
        cache: ResponseCache | None = None,
        ttl: float | None = None,
        key_generator: Callable[[CompletionRequest], str] = cache_key,
    ):
        self._provider = provider
        self.cache = cache or ResponseCache()
        self.ttl = ttl
        self._key_generator = key_generator

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
        if request.stream:
            return await self._provider.chat(request)

        key = self._key_generator(request)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("cache_hit", data={"key": key, "hits": cached.hits})
            return cached.value.model_copy(deep=True)

        logger.debug("cache_miss", data={"key": key})
        response = await self._provider.chat(request)
        # Callers get their own copy; the stored entry is never handed out
        self.cache.set(key, response.model_copy(deep=True), self.ttl)
        return response

    def chat_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        return self._provider.chat_stream(request)

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

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def cleanup_cache(self) -> int:
        return self.cache.cleanup()
