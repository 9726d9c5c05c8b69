import json

import httpx
import pytest

from conftest import TEST_API_KEY, RecordingHandler
from llmbridge.core.errors import ErrorCode, ProviderError
from llmbridge.core.transport import RetryConfig
from llmbridge.providers.openai_compat import decode_openai_stream
from llmbridge.providers.schemas import ChatMessage, CompletionRequest

OPENAI_REPLY = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "gpt-4o",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Hello there"},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 9, "completion_tokens": 2, "total_tokens": 11},
}


def chat_request(**overrides):
    data = {"model": "gpt-4o", "messages": [ChatMessage(role="user", content="Hi")]}
    data.update(overrides)
    return CompletionRequest(**data)


def sse(*payloads):
    body = "".join(f"data: {p if isinstance(p, str) else json.dumps(p)}\n\n" for p in payloads)
    return body.encode()


class TrackingStream(httpx.AsyncByteStream):
    def __init__(self, *parts: bytes):
        self.parts = parts
        self.closed = False

    async def __aiter__(self):
        for part in self.parts:
            yield part

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_decoder_stops_at_done(lines):
    chunks = [
        chunk
        async for chunk in decode_openai_stream(
            lines('data: {"choices":[{"delta":{"content":"Hi"}}]}', "", "data: [DONE]", ""),
            "gpt-4o",
        )
    ]

    assert len(chunks) == 1
    assert chunks[0].content == "Hi"
    assert chunks[0].model == "gpt-4o"


@pytest.mark.asyncio
async def test_decoder_skips_malformed_and_non_data_lines(lines):
    chunks = [
        chunk
        async for chunk in decode_openai_stream(
            lines(
                ": keep-alive",
                "event: message",
                "data: {not json",
                'data: {"id":"c1","model":"gpt-4o-2024","choices":[{"delta":{"content":"ok"},"finish_reason":"stop"}]}',
                "data: [DONE]",
                'data: {"choices":[{"delta":{"content":"ignored"}}]}',
            ),
            "gpt-4o",
        )
    ]

    assert [c.content for c in chunks] == ["ok"]
    assert chunks[0].id == "c1"
    assert chunks[0].model == "gpt-4o-2024"
    assert chunks[0].choices[0].finish_reason == "stop"


@pytest.mark.asyncio
async def test_chat_request_and_mapping(make_provider):
    handler = RecordingHandler(httpx.Response(200, json=OPENAI_REPLY))
    provider = make_provider("openai", handler)

    response = await provider.chat(chat_request(temperature=0.3))

    [sent] = handler.requests
    assert str(sent.url) == "https://api.openai.com/v1/chat/completions"
    assert sent.headers["Authorization"] == f"Bearer {TEST_API_KEY}"
    body = json.loads(sent.content)
    assert body == {
        "model": "gpt-4o",
        "messages": [{"role": "user", "content": "Hi"}],
        "temperature": 0.3,
        "stream": False,
    }

    assert response.id == "chatcmpl-123"
    assert response.content == "Hello there"
    assert response.usage.total_tokens == 11
    assert response.choices[0].finish_reason == "stop"


@pytest.mark.asyncio
async def test_base_url_and_header_overrides(make_provider):
    handler = RecordingHandler(httpx.Response(200, json=OPENAI_REPLY))
    provider = make_provider(
        "openai",
        handler,
        base_url="https://proxy.example.com/v1/",
        headers={"X-Team": "search"},
    )

    await provider.chat(chat_request())

    [sent] = handler.requests
    assert str(sent.url) == "https://proxy.example.com/v1/chat/completions"
    assert sent.headers["X-Team"] == "search"


@pytest.mark.asyncio
async def test_chat_stream_end_to_end(make_provider):
    handler = RecordingHandler(
        httpx.Response(
            200,
            content=sse(
                {"id": "c1", "choices": [{"delta": {"content": "Hel"}}]},
                {"id": "c1", "choices": [{"delta": {"content": "lo"}, "finish_reason": "stop"}]},
                "[DONE]",
            ),
        )
    )
    provider = make_provider("openai", handler)

    chunks = [chunk async for chunk in provider.chat_stream(chat_request(stream=True))]

    assert "".join(c.content for c in chunks) == "Hello"
    assert json.loads(handler.requests[0].content)["stream"] is True


@pytest.mark.asyncio
async def test_stream_lines_split_across_network_reads(make_provider):
    stream = TrackingStream(
        b'data: {"choices":[{"delta":{"con',
        b'tent":"Hi"}}]}\n\ndata: [DO',
        b"NE]\n\n",
    )
    provider = make_provider("openai", RecordingHandler(httpx.Response(200, stream=stream)))

    chunks = [chunk async for chunk in provider.chat_stream(chat_request())]

    assert [c.content for c in chunks] == ["Hi"]
    assert stream.closed


@pytest.mark.asyncio
async def test_abandoned_stream_releases_response(make_provider):
    stream = TrackingStream(sse(
        {"choices": [{"delta": {"content": "one"}}]},
        {"choices": [{"delta": {"content": "two"}}]},
        "[DONE]",
    ))
    provider = make_provider("openai", RecordingHandler(httpx.Response(200, stream=stream)))

    chunks = provider.chat_stream(chat_request())
    first = await chunks.__anext__()
    await chunks.aclose()

    assert first.content == "one"
    assert stream.closed


@pytest.mark.asyncio
async def test_http_error_is_classified(make_provider):
    body = {"error": {"message": "Incorrect API key provided", "type": "invalid_request_error", "code": "invalid_api_key"}}
    provider = make_provider("openai", RecordingHandler(httpx.Response(401, json=body)))

    with pytest.raises(ProviderError) as exc_info:
        await provider.chat(chat_request())

    assert exc_info.value.code == ErrorCode.UNAUTHORIZED
    assert exc_info.value.provider == "openai"


@pytest.mark.asyncio
async def test_error_envelope_with_200_status(make_provider):
    body = {"error": {"message": "You exceeded your current quota", "code": "insufficient_quota"}}
    provider = make_provider("openai", RecordingHandler(httpx.Response(200, json=body)))

    with pytest.raises(ProviderError) as exc_info:
        await provider.chat(chat_request())

    assert exc_info.value.code == ErrorCode.INSUFFICIENT_QUOTA


@pytest.mark.asyncio
async def test_non_json_body(make_provider):
    provider = make_provider("openai", RecordingHandler(httpx.Response(200, text="<html>gateway</html>")))

    with pytest.raises(ProviderError) as exc_info:
        await provider.chat(chat_request())

    assert exc_info.value.code == ErrorCode.UNKNOWN
    assert "invalid response format" in exc_info.value.message


@pytest.mark.asyncio
async def test_stream_failure_status(make_provider):
    handler = RecordingHandler(lambda request: httpx.Response(503, text="busy"))
    provider = make_provider("openai", handler, retry=RetryConfig(max_retries=2))

    with pytest.raises(ProviderError) as exc_info:
        async for _ in provider.chat_stream(chat_request()):
            pass

    assert exc_info.value.code == ErrorCode.SERVICE_UNAVAILABLE
    assert len(handler.requests) == 2


@pytest.mark.asyncio
async def test_connection_requires_api_key(make_provider):
    handler = RecordingHandler(httpx.Response(200, json=OPENAI_REPLY))
    provider = make_provider("openai", handler, api_key=None)

    with pytest.raises(ProviderError) as exc_info:
        await provider.test_connection()

    assert exc_info.value.code == ErrorCode.API_KEY_MISSING
    assert handler.requests == []


@pytest.mark.asyncio
async def test_connection_sends_one_token_probe(make_provider):
    handler = RecordingHandler(httpx.Response(200, json=OPENAI_REPLY))
    provider = make_provider("openai", handler)

    assert await provider.test_connection() is True

    body = json.loads(handler.requests[0].content)
    assert body["model"] == "gpt-4.1-nano"
    assert body["max_tokens"] == 1
    assert body["temperature"] == 0


@pytest.mark.asyncio
async def test_connection_probe_without_choices(make_provider):
    provider = make_provider("openai", RecordingHandler(httpx.Response(200, json={"id": "x", "choices": []})))

    with pytest.raises(ProviderError) as exc_info:
        await provider.test_connection("gpt-4o")

    assert exc_info.value.code == ErrorCode.UNKNOWN


@pytest.mark.asyncio
async def test_siliconflow_defaults_and_reshaped_response(make_provider):
    reply = {"choices": [{"message": {"role": "assistant", "content": "你好"}}]}
    handler = RecordingHandler(httpx.Response(200, json=reply))
    provider = make_provider("siliconflow", handler)

    response = await provider.chat(
        CompletionRequest(
            model="deepseek-chat",
            messages=[ChatMessage(role="user", content="Hi", name="alice")],
        )
    )

    [sent] = handler.requests
    assert str(sent.url) == "https://api.siliconflow.cn/v1/chat/completions"
    body = json.loads(sent.content)
    assert body["max_tokens"] == 2048
    assert body["messages"] == [{"role": "user", "content": "Hi"}]

    assert response.id.startswith("sf-")
    assert response.model == "deepseek-chat"
    assert response.content == "你好"
    assert response.choices[0].finish_reason == "stop"
    assert response.usage.total_tokens == 0


@pytest.mark.asyncio
async def test_siliconflow_stream_fills_missing_ids(make_provider):
    handler = RecordingHandler(
        httpx.Response(200, content=sse({"choices": [{"delta": {"content": "Hi"}}]}, "[DONE]"))
    )
    provider = make_provider("siliconflow", handler)

    chunks = [c async for c in provider.chat_stream(CompletionRequest(
        model="deepseek-chat",
        messages=[ChatMessage(role="user", content="Hi")],
    ))]

    assert [c.content for c in chunks] == ["Hi"]
    assert chunks[0].id.startswith("sf-")
