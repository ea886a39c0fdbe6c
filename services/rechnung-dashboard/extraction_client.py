"""Async HTTP client for the AI photo-extraction endpoint.

Sends an image data URI plus a field schema description and returns the raw
model text. Attempts are governed by tenacity; the default of one attempt
means a failed call surfaces immediately for the user to retry.
"""

import logging

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import ExtractionServiceConfig

logger = logging.getLogger(__name__)


class ExtractionFailure(Exception):
    """AI extraction failed or produced nothing usable."""


class ExtractionServiceUnavailable(ExtractionFailure):
    """Extraction service unreachable, timed out or answered 503."""


class ExtractionServiceError(ExtractionFailure):
    """Extraction service returned a non-retryable error."""


class ExtractionParseError(ExtractionFailure):
    """Model output contained no JSON object."""


class ExtractionClient:
    """HTTP client for the extraction endpoint."""

    def __init__(self, config: ExtractionServiceConfig, transport: httpx.AsyncBaseTransport | None = None):
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            transport=transport,
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.timeout,
                write=30.0,
                pool=30.0,
            ),
        )

    async def aclose(self):
        await self._client.aclose()

    async def extract(self, image_data_uri: str, schema_description: str, prompt: str = "") -> str:
        """Ask the service to read the described fields from the image.

        Returns the raw model text (expected to hold a JSON object).
        Raises ExtractionServiceUnavailable or ExtractionServiceError.
        """
        payload = {"image": image_data_uri, "schema": schema_description, "prompt": prompt}

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(ExtractionServiceUnavailable),
            stop=stop_after_attempt(max(1, self._config.retry_attempts)),
            wait=wait_exponential(
                multiplier=self._config.retry_delay,
                exp_base=self._config.retry_backoff,
                max=60,
            ),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Extraction service unavailable, retrying in %.1fs (attempt %d/%d)",
                state.next_action.sleep,  # type: ignore[union-attr]
                state.attempt_number,
                self._config.retry_attempts,
            ),
        ):
            with attempt:
                return await self._send(payload)

        raise ExtractionServiceError("Extraction was not attempted")

    async def _send(self, payload: dict) -> str:
        """Send a single extraction request."""
        try:
            resp = await self._client.post("/extract", json=payload)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.warning("Extraction service connection failed: %s", e)
            raise ExtractionServiceUnavailable(f"Cannot connect to extraction service: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Extraction service HTTP error: %s", e)
            raise ExtractionServiceError(f"Extraction service HTTP error: {e}") from e

        if resp.status_code == 503:
            detail = _detail(resp, "Service unavailable")
            logger.warning("Extraction service returned 503: %s", detail)
            raise ExtractionServiceUnavailable(detail)

        if resp.status_code != 200:
            detail = _detail(resp, f"HTTP {resp.status_code}")
            logger.error("Extraction service error %d: %s", resp.status_code, detail)
            raise ExtractionServiceError(detail)

        try:
            data = resp.json()
        except ValueError:
            return resp.text

        # Either {"text": "<model output>"} or the extracted object itself
        if isinstance(data, dict) and isinstance(data.get("text"), str):
            return data["text"]
        return resp.text


def _detail(resp: httpx.Response, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or default
    if isinstance(body, dict):
        return str(body.get("detail", default))
    return default
