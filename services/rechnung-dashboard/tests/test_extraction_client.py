"""Tests for extraction client attempts, errors and response shapes."""

import json

import httpx
import pytest

from config import ExtractionServiceConfig
from extraction_client import ExtractionClient, ExtractionServiceError, ExtractionServiceUnavailable

pytestmark = pytest.mark.anyio

DATA_URI = "data:image/jpeg;base64,AAAA"


def make_client(handler, retry_attempts: int = 1) -> ExtractionClient:
    config = ExtractionServiceConfig(
        base_url="http://fake-extract:8093",
        timeout=5,
        connect_timeout=2,
        retry_attempts=retry_attempts,
        retry_delay=0.01,  # Fast retries for tests
        retry_backoff=1.0,
    )
    return ExtractionClient(config, transport=httpx.MockTransport(handler))


class Sequence:
    """Handler that plays back responses (or raises exceptions) in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes[min(len(self.requests), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestExtract:
    async def test_text_response(self):
        handler = Sequence(httpx.Response(200, json={"text": '{"betrag": 12.5}'}))
        client = make_client(handler)

        text = await client.extract(DATA_URI, '{"betrag": "number"}', "read it")

        assert text == '{"betrag": 12.5}'
        body = json.loads(handler.requests[0].content)
        assert body == {"image": DATA_URI, "schema": '{"betrag": "number"}', "prompt": "read it"}
        assert handler.requests[0].url.path == "/extract"

    async def test_object_response_returned_as_text(self):
        handler = Sequence(httpx.Response(200, json={"betrag": 12.5, "lieferant": None}))
        client = make_client(handler)

        text = await client.extract(DATA_URI, "{}")

        assert json.loads(text) == {"betrag": 12.5, "lieferant": None}

    async def test_single_attempt_by_default(self):
        handler = Sequence(httpx.Response(503, json={"detail": "Model loading"}))
        client = make_client(handler)

        with pytest.raises(ExtractionServiceUnavailable, match="Model loading"):
            await client.extract(DATA_URI, "{}")
        assert len(handler.requests) == 1

    async def test_configured_retry_then_succeeds(self):
        handler = Sequence(
            httpx.Response(503, json={"detail": "Model loading"}),
            httpx.Response(200, json={"text": "{}"}),
        )
        client = make_client(handler, retry_attempts=3)

        assert await client.extract(DATA_URI, "{}") == "{}"
        assert len(handler.requests) == 2

    async def test_configured_retry_exhausted(self):
        handler = Sequence(httpx.Response(503, json={"detail": "Model loading"}))
        client = make_client(handler, retry_attempts=3)

        with pytest.raises(ExtractionServiceUnavailable):
            await client.extract(DATA_URI, "{}")
        assert len(handler.requests) == 3

    async def test_500_not_retried(self):
        handler = Sequence(httpx.Response(500, json={"detail": "Internal error"}))
        client = make_client(handler, retry_attempts=3)

        with pytest.raises(ExtractionServiceError, match="Internal error"):
            await client.extract(DATA_URI, "{}")
        assert len(handler.requests) == 1

    async def test_400_plain_text_detail(self):
        handler = Sequence(httpx.Response(400, text="Bad data URI"))
        client = make_client(handler)

        with pytest.raises(ExtractionServiceError, match="Bad data URI"):
            await client.extract(DATA_URI, "{}")

    async def test_connection_error_is_unavailable(self):
        handler = Sequence(httpx.ConnectError("Connection refused"))
        client = make_client(handler)

        with pytest.raises(ExtractionServiceUnavailable):
            await client.extract(DATA_URI, "{}")

    async def test_read_timeout_retried_when_configured(self):
        handler = Sequence(httpx.ReadTimeout("Read timed out"), httpx.Response(200, json={"text": "ok"}))
        client = make_client(handler, retry_attempts=2)

        assert await client.extract(DATA_URI, "{}") == "ok"
        assert len(handler.requests) == 2
