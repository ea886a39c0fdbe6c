"""Async HTTP client for the hosted-records (LivingApps) REST API.

One instance serves one record collection (app). Every call is a single
round trip: no caching, no retry, no batching. Authentication rides on the
session cookie; the client never adds request-level credentials.
"""

import logging
import re
from typing import Any

import httpx

from config import RecordServiceConfig
from models import Rechnung, RechnungFields

logger = logging.getLogger(__name__)

_RECORD_ID_RE = re.compile(r"([a-f0-9]{24})$", re.IGNORECASE)


class RecordClientError(Exception):
    """Base class for records service failures."""


class TransportError(RecordClientError):
    """Records service unreachable (connection error, timeout)."""


class ServiceError(RecordClientError):
    """Records service answered with a non-success status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail or f"HTTP {status_code}")
        self.status_code = status_code
        self.detail = detail


class MissingRecordIdError(RecordClientError):
    """A write succeeded but the response did not identify the record."""


class UploadError(RecordClientError):
    """File upload answered with a non-success status."""

    def __init__(self, status_code: int):
        super().__init__(f"File upload failed: {status_code}")
        self.status_code = status_code


def extract_record_id(url: str | None) -> str | None:
    """Return the trailing 24-hex-char record id of a record URL, or None."""
    if not url:
        return None
    match = _RECORD_ID_RE.search(url)
    return match.group(1) if match else None


def create_record_url(base_url: str, app_id: str, record_id: str) -> str:
    return f"{base_url.rstrip('/')}/apps/{app_id}/records/{record_id}"


class RecordClient:
    """CRUD client for one record collection of the hosted-records service."""

    def __init__(self, config: RecordServiceConfig, transport: httpx.AsyncBaseTransport | None = None):
        self._config = config
        self._base_url = config.base_url.rstrip("/")

        cookies = {}
        if config.session_cookie:
            cookies[config.cookie_name] = config.session_cookie

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            cookies=cookies,
            transport=transport,
            timeout=httpx.Timeout(
                config.timeout,
                connect=config.connect_timeout,
            ),
        )

    @property
    def app_id(self) -> str:
        return self._config.app_id

    async def aclose(self):
        await self._client.aclose()

    def record_url(self, record_id: str) -> str:
        return create_record_url(self._base_url, self._config.app_id, record_id)

    async def list(self) -> list[Rechnung]:
        """Fetch all records, flattened from the service's id -> record mapping.

        Order follows the mapping's enumeration order, not creation order.
        """
        data = await self._call("GET", self._records_path())
        records = [_parse_record(rec, record_id=rid) for rid, rec in (data or {}).items()]
        logger.info("Loaded %d records from app %s", len(records), self._config.app_id)
        return records

    async def get(self, record_id: str) -> Rechnung | None:
        """Fetch one record; None if the service does not know the id."""
        try:
            data = await self._call("GET", f"{self._records_path()}/{record_id}")
        except ServiceError as e:
            if e.status_code == 404:
                return None
            raise
        return _parse_record(data, record_id=record_id)

    async def create(self, fields: RechnungFields) -> Rechnung:
        data = await self._call("POST", self._records_path(), {"fields": fields.to_payload()})
        record = _parse_record(data)
        logger.info("Created record %s", record.record_id)
        return record

    async def update(self, record_id: str, patch: RechnungFields) -> Rechnung:
        """Send only the supplied fields; omitted fields stay unchanged server-side."""
        payload = {"fields": patch.to_payload()}
        data = await self._call("PATCH", f"{self._records_path()}/{record_id}", payload)
        logger.info("Updated record %s (%s)", record_id, ", ".join(sorted(payload["fields"])))
        return _parse_record(data, record_id=record_id)

    async def delete(self, record_id: str) -> bool:
        await self._call("DELETE", f"{self._records_path()}/{record_id}")
        logger.info("Deleted record %s", record_id)
        return True

    async def upload_file(self, content: bytes, filename: str, content_type: str | None = None) -> str:
        """Upload a file and return its public URL for the rechnungsdatei field."""
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        try:
            resp = await self._client.post("/files", files=files)
        except httpx.HTTPError as e:
            logger.warning("File upload transport failure: %s", e)
            raise TransportError(f"Cannot reach records service: {e}") from e

        if not resp.is_success:
            logger.error("File upload failed with status %d", resp.status_code)
            raise UploadError(resp.status_code)

        # GDPR: log size only, never file content
        logger.info("Uploaded %s (%d bytes)", filename, len(content))
        return resp.json()["url"]

    def _records_path(self) -> str:
        return f"/apps/{self._config.app_id}/records"

    async def _call(self, method: str, path: str, payload: dict | None = None) -> Any:
        """Perform one JSON request and return the decoded body."""
        try:
            resp = await self._client.request(method, path, json=payload)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.warning("Records service unreachable: %s", e)
            raise TransportError(f"Cannot reach records service: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Records service HTTP error: %s", e)
            raise TransportError(f"Records service HTTP error: {e}") from e

        if not resp.is_success:
            logger.error("Records service error %d on %s %s", resp.status_code, method, path)
            raise ServiceError(resp.status_code, resp.text)

        # DELETE usually answers with an empty or trivial body
        if method == "DELETE" or not resp.content:
            return None
        return resp.json()


def _parse_record(data: dict, record_id: str | None = None) -> Rechnung:
    """Build a Rechnung from a service record, resolving its identifier."""
    data = data or {}
    rid = record_id or data.get("id") or extract_record_id(data.get("url"))
    if not rid:
        raise MissingRecordIdError("Record without identifier in service response")
    return Rechnung(
        record_id=rid,
        createdat=data.get("createdat"),
        updatedat=data.get("updatedat"),
        fields=data.get("fields") or {},
    )
