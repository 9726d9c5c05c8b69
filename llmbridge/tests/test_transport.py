import httpx
import pytest

from conftest import RecordingHandler
from llmbridge.core.classifier import ErrorClassifier, openai_rule
from llmbridge.core.errors import ErrorCode, ProviderError
from llmbridge.core.transport import ResilientTransport, RetryConfig, parse_retry_after

URL = "https://api.example.com/v1/chat/completions"


def make_transport(handler, sleeps, retry=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ResilientTransport(
        client,
        "openai",
        retry=retry or RetryConfig(),
        classifier=ErrorClassifier("openai", (openai_rule,)),
        sleep=sleeps,
    )


def test_backoff():
    assert [RetryConfig().backoff(n) for n in range(3)] == [1.0, 2.0, 4.0]
    flat = RetryConfig(retry_delay=0.5, exponential_backoff=False)
    assert [flat.backoff(n) for n in range(3)] == [0.5, 0.5, 0.5]


def test_parse_retry_after():
    assert parse_retry_after("2") == 2.0
    assert parse_retry_after(" 1.5 ") == 1.5
    assert parse_retry_after(None) is None
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
    assert parse_retry_after("-1") is None


@pytest.mark.asyncio
async def test_success_first_try(sleeps):
    handler = RecordingHandler(httpx.Response(200, json={"ok": True}))
    transport = make_transport(handler, sleeps)

    response = await transport.send("POST", URL, json={"x": 1})

    assert response.json() == {"ok": True}
    assert len(handler.requests) == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_rate_limit_honours_retry_after(sleeps):
    handler = RecordingHandler(
        httpx.Response(429, headers={"Retry-After": "2"}, json={"error": {"message": "slow down"}}),
        httpx.Response(200, json={"ok": True}),
    )
    transport = make_transport(handler, sleeps)

    response = await transport.send("POST", URL)

    assert response.status_code == 200
    assert len(handler.requests) == 2
    assert sleeps.delays == [2.0]


@pytest.mark.asyncio
async def test_persistent_503_exhausts_attempts(sleeps):
    handler = RecordingHandler(lambda request: httpx.Response(503, text="upstream down"))
    transport = make_transport(handler, sleeps)

    with pytest.raises(ProviderError) as exc_info:
        await transport.send("POST", URL)

    assert exc_info.value.code == ErrorCode.SERVICE_UNAVAILABLE
    assert exc_info.value.status == 503
    assert len(handler.requests) == 3
    assert sleeps.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_flat_backoff(sleeps):
    handler = RecordingHandler(lambda request: httpx.Response(502))
    transport = make_transport(handler, sleeps, RetryConfig(retry_delay=0.5, exponential_backoff=False))

    with pytest.raises(ProviderError):
        await transport.send("POST", URL)

    assert sleeps.delays == [0.5, 0.5]


@pytest.mark.asyncio
async def test_not_found_is_not_retried(sleeps):
    handler = RecordingHandler(lambda request: httpx.Response(404, text="Not Found"))
    transport = make_transport(handler, sleeps)

    with pytest.raises(ProviderError) as exc_info:
        await transport.send("POST", URL)

    assert exc_info.value.code == ErrorCode.BAD_REQUEST
    assert "endpoint not found" in exc_info.value.message
    assert len(handler.requests) == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_unauthorized_body_is_classified(sleeps):
    body = {"error": {"message": "Incorrect API key provided", "code": "invalid_api_key"}}
    handler = RecordingHandler(httpx.Response(401, json=body))
    transport = make_transport(handler, sleeps)

    with pytest.raises(ProviderError) as exc_info:
        await transport.send("POST", URL)

    assert exc_info.value.code == ErrorCode.UNAUTHORIZED
    assert exc_info.value.details["body"] == body
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_network_error_is_retried(sleeps):
    handler = RecordingHandler(
        httpx.ConnectError("connection refused"),
        httpx.Response(200, json={"ok": True}),
    )
    transport = make_transport(handler, sleeps)

    response = await transport.send("POST", URL)

    assert response.status_code == 200
    assert len(handler.requests) == 2
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_network_error_on_every_attempt(sleeps):
    def refuse(request):
        raise httpx.ConnectError("connection refused")

    handler = RecordingHandler(refuse)
    transport = make_transport(handler, sleeps)

    with pytest.raises(ProviderError) as exc_info:
        await transport.send("POST", URL)

    assert exc_info.value.code == ErrorCode.NETWORK_ERROR
    assert len(handler.requests) == 3


@pytest.mark.asyncio
async def test_timeout_on_every_attempt(sleeps):
    def too_slow(request):
        raise httpx.ReadTimeout("read timed out")

    transport = make_transport(RecordingHandler(too_slow), sleeps, RetryConfig(max_retries=2))

    with pytest.raises(ProviderError) as exc_info:
        await transport.send("POST", URL)

    assert exc_info.value.code == ErrorCode.TIMEOUT
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_rate_limit_on_last_attempt(sleeps):
    handler = RecordingHandler(lambda request: httpx.Response(429, json={"error": {"message": "Too many"}}))
    transport = make_transport(handler, sleeps, RetryConfig(max_retries=1))

    with pytest.raises(ProviderError) as exc_info:
        await transport.send("POST", URL)

    assert exc_info.value.code == ErrorCode.RATE_LIMIT
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_stream_closes_response(sleeps):
    handler = RecordingHandler(httpx.Response(200, text="line one\nline two\n"))
    transport = make_transport(handler, sleeps)

    async with transport.stream("POST", URL) as response:
        lines = [line async for line in response.aiter_lines()]

    assert lines == ["line one", "line two"]
    assert response.is_closed
