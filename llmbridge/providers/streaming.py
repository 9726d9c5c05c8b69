"""Line framing helpers shared by the stream decoders."""
from __future__ import annotations

import json
from typing import Any, AsyncIterator

from llmbridge.core.logging import get_logger

logger = get_logger(__name__)


def loads_or_warn(text: str, provider_id: str) -> Any | None:
    """Parse one JSON payload; malformed payloads are logged and dropped."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning(
            "stream_line_unparseable",
            data={"provider": provider_id, "line": text[:200]},
        )
        return None


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield the payload of every `data:` line; other SSE fields are ignored."""
    async for line in lines:
        line = line.strip()
        if not line or not line.startswith("data:"):
            continue
        yield line[5:].lstrip()


async def iter_ndjson(lines: AsyncIterator[str], provider_id: str) -> AsyncIterator[Any]:
    """Yield one parsed object per non-blank line."""
    async for line in lines:
        line = line.strip()
        if not line:
            continue
        data = loads_or_warn(line, provider_id)
        if data is not None:
            yield data
