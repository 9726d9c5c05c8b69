import httpx
import pytest

from llmbridge.core.errors import ErrorCode, ProviderError
from llmbridge.core.transport import RetryConfig
from llmbridge.providers.base import Provider
from llmbridge.providers.registry import create_provider
from llmbridge.providers.schemas import (
    ChatMessage,
    Choice,
    CompletionResponse,
    StreamChunk,
    Usage,
)
from llmbridge.providers.types import ModelCapabilities, ModelCard, ProviderConfig, ProviderOptions

TEST_API_KEY = "sk-test0123456789abcdefghijklmnopqrstuvwxyz"


class SleepRecorder:
    """Stands in for asyncio.sleep and records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingHandler:
    """MockTransport handler that replays queued responses and keeps every request.

    Items may be an httpx.Response, an exception to raise, or a callable taking
    the request. Once the queue is down to one item, that item is reused, so
    repeated responses should be given as callables.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(Provider):
    """In-memory provider for decorator and registry tests."""

    provider_id = "fake"

    def __init__(self, provider_id: str = "fake"):
        self.provider_id = provider_id
        self.config = ProviderConfig(
            id=provider_id,
            name="Fake Provider",
            base_url="http://fake.invalid",
            sdk_type="custom",
            auth_type="none",
            models=(
                ModelCard(
                    id="fake-model",
                    name="Fake Model",
                    capabilities=ModelCapabilities(context_window_tokens=4096),
                ),
            ),
        )
        self.chat_calls = 0
        self.stream_calls = 0
        self.error: Exception | None = None
        self.closed = False

    async def chat(self, request):
        self.chat_calls += 1
        if self.error is not None:
            raise self.error
        return CompletionResponse(
            id=f"fake-{self.chat_calls}",
            model=request.model,
            choices=[Choice(message=ChatMessage(role="assistant", content="Hello world"), finish_reason="stop")],
            usage=Usage.of(10, 5),
        )

    async def chat_stream(self, request):
        self.stream_calls += 1
        yield StreamChunk.from_text("Hello", model=request.model)
        if self.error is not None:
            raise self.error
        yield StreamChunk.from_text(" world", model=request.model, finish_reason="stop", usage=Usage.of(10, 5))

    def get_models(self):
        return list(self.config.models)

    def get_model_by_id(self, model_id):
        return next((m for m in self.config.models if m.id == model_id), None)

    def validate_request(self, request):
        return self.get_model_by_id(request.model) is not None

    async def test_connection(self, model=None):
        if self.error is not None:
            raise self.error
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def make_provider(sleeps):
    """Factory building catalog providers on top of an httpx.MockTransport."""

    def factory(provider_id, handler, api_key=TEST_API_KEY, retry=None, **options):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider_options = ProviderOptions(
            api_key=api_key,
            client=client,
            retry=retry or RetryConfig(),
            **options,
        )
        return create_provider(provider_id, provider_options, sleep=sleeps)

    return factory


@pytest.fixture
def lines():
    """Turn literal lines into the async line iterator the decoders consume."""

    def make(*items):
        async def generate():
            for item in items:
                yield item

        return generate()

    return make


@pytest.fixture
def timeout_error():
    return ProviderError(message="Request timed out", code=ErrorCode.TIMEOUT, provider="fake")
