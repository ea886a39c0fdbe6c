"""Shared test fixtures for the Rechnung dashboard tests."""

import json
import sys
from pathlib import Path

import httpx
import numpy as np
import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import RecordServiceConfig  # noqa: E402
from records_client import RecordClient  # noqa: E402

BASE_URL = "http://records.test/rest"
APP_ID = "699ecef9a5f7a7df385d883f"


class FakeRecordsService:
    """In-memory stand-in for the hosted-records REST API, used as an httpx MockTransport handler."""

    def __init__(self, records: dict[str, dict] | None = None):
        self.records: dict[str, dict] = dict(records or {})
        self.requests: list[httpx.Request] = []
        self._next_id = 0xA0
        # when set, POST answers without an id or record url
        self.omit_created_id = False
        # (status, text) answered to every request while set
        self.outage: tuple[int, str] | None = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str, suffix: str = "/records") -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path.endswith(suffix))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.outage is not None:
            return httpx.Response(self.outage[0], text=self.outage[1])
        path = request.url.path
        prefix = f"/rest/apps/{APP_ID}/records"

        if path == "/rest/files":
            return httpx.Response(200, json={"url": "https://files.test/rechnung-0001.pdf"})

        if path == prefix:
            if request.method == "GET":
                return httpx.Response(200, json=self.records)
            if request.method == "POST":
                self._next_id += 1
                rid = f"{self._next_id:024x}"
                body = json.loads(request.content)
                self.records[rid] = {
                    "createdat": "2026-01-01T10:00:00",
                    "updatedat": None,
                    "fields": body["fields"],
                }
                if self.omit_created_id:
                    return httpx.Response(200, json=self.records[rid])
                return httpx.Response(200, json={"id": rid, **self.records[rid]})

        if path.startswith(prefix + "/"):
            rid = path.rsplit("/", 1)[1]
            if rid not in self.records:
                return httpx.Response(404, text="Record not found")
            if request.method == "GET":
                return httpx.Response(200, json={"id": rid, **self.records[rid]})
            if request.method == "PATCH":
                body = json.loads(request.content)
                self.records[rid]["fields"].update(body["fields"])
                self.records[rid]["updatedat"] = "2026-01-02T10:00:00"
                return httpx.Response(200, json={"id": rid, **self.records[rid]})
            if request.method == "DELETE":
                del self.records[rid]
                return httpx.Response(200)

        return httpx.Response(405, text="Method not allowed")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def seed_records() -> dict[str, dict]:
    """Three invoices as returned by the list endpoint (id -> record)."""
    return {
        "5f1a2b3c4d5e6f7a8b9c0d01": {
            "createdat": "2026-01-10T09:00:00",
            "updatedat": None,
            "fields": {
                "rechnungsnummer": "RE-2026-001",
                "rechnungsdatum": "2026-01-10",
                "betrag": 100,
                "lieferant": "Papier Müller GmbH",
                "kategorie": "buero",
                "bezahlt": True,
                "zahlungsdatum": "2026-01-20",
            },
        },
        "5f1a2b3c4d5e6f7a8b9c0d02": {
            "createdat": "2026-01-12T09:00:00",
            "updatedat": None,
            "fields": {
                "rechnungsnummer": "RE-2026-002",
                "betrag": 50,
                "lieferant": "Toner Express",
                "kategorie": {"key": "buero", "label": "Büromaterial"},
                "bezahlt": False,
            },
        },
        "5f1a2b3c4d5e6f7a8b9c0d03": {
            "createdat": "2026-01-15T09:00:00",
            "updatedat": "2026-01-16T09:00:00",
            "fields": {
                "betrag": 25,
                "lieferant": "Deutsche Bahn",
                "kategorie": "reise",
                "notizen": "Fahrt zum Kunden",
            },
        },
    }


@pytest.fixture
def records_service(seed_records) -> FakeRecordsService:
    return FakeRecordsService(seed_records)


@pytest.fixture
def record_config() -> RecordServiceConfig:
    return RecordServiceConfig(base_url=BASE_URL, app_id=APP_ID, session_cookie="abc123")


@pytest.fixture
def record_client(record_config, records_service) -> RecordClient:
    return RecordClient(record_config, transport=records_service.transport())


@pytest.fixture
def sample_image_bytes() -> bytes:
    """A small JPEG with dark bars resembling invoice text lines."""
    import cv2

    img = np.full((300, 200, 3), 240, dtype=np.uint8)
    cv2.rectangle(img, (20, 30), (180, 50), (30, 30, 30), -1)
    cv2.rectangle(img, (20, 70), (160, 90), (30, 30, 30), -1)
    cv2.rectangle(img, (120, 250), (180, 270), (30, 30, 30), -1)

    _, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, 90])
    return buf.tobytes()


@pytest.fixture
def tall_image_bytes() -> bytes:
    """A phone-camera sized portrait photo that needs downscaling."""
    import cv2

    img = np.full((4000, 3000, 3), 200, dtype=np.uint8)
    _, buf = cv2.imencode(".jpg", img)
    return buf.tobytes()


@pytest.fixture
def invalid_bytes() -> bytes:
    return b"this is not an image file at all"


@pytest.fixture
def mock_invoice_response() -> str:
    """Model output for a fully readable invoice."""
    return json.dumps({
        "rechnungsnummer": "2026-0042",
        "rechnungsdatum": "14.02.2026",
        "betrag": "1.234,56 €",
        "lieferant": "Büro Schneider KG",
        "kategorie": "buero",
        "notizen": None,
    })


@pytest.fixture
def mock_markdown_response() -> str:
    return '```json\n{"rechnungsnummer": "A-17", "betrag": 99.9}\n```'


@pytest.fixture
def mock_preamble_response() -> str:
    return 'Here is the extracted data:\n\n{"rechnungsnummer": "A-17", "betrag": 99.9}'
