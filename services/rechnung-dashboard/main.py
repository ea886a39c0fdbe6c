"""FastAPI Rechnung dashboard service.

Serves the dashboard and invoice list views as JSON, routes create/edit/delete
through the hosted-records service, and pre-fills the invoice form from a
photo via the AI extraction service.
GDPR: uploads are processed in-memory only and never logged.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from aggregation import category_totals, dashboard_stats, filter_by_status, search_records
from config import ExtractionServiceConfig, RecordServiceConfig, settings
from dashboard_data import DashboardData
from extraction import extract_invoice
from extraction_client import ExtractionClient, ExtractionFailure
from formatters import to_view
from forms import confirm_delete, form_defaults, submit_form
from models import DashboardResponse, Rechnung, RechnungFields, RechnungPatch, RechnungView
from records_client import (
    MissingRecordIdError,
    RecordClient,
    RecordClientError,
    ServiceError,
    TransportError,
    UploadError,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SCAN_ERROR_MESSAGE = "Foto konnte nicht ausgelesen werden. Bitte erneut versuchen."
CREATED_WITHOUT_ID_MESSAGE = "Rechnung angelegt, Kennung unbekannt. Liste wurde neu geladen."

_records_client: RecordClient | None = None
_extraction_client: ExtractionClient | None = None
_data: DashboardData | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the service clients on startup, close them on shutdown."""
    global _records_client, _extraction_client, _data

    logger.info("Using records app %s at %s", settings.RECORDS_APP_ID, settings.RECORDS_API_URL)
    _records_client = RecordClient(RecordServiceConfig.from_settings(settings))
    _data = DashboardData(_records_client)

    if not settings.EXTRACTION_SERVICE_URL:
        logger.info("Extraction service not configured (EXTRACTION_SERVICE_URL is empty), photo scan disabled")
    else:
        logger.info("Using extraction service at %s", settings.EXTRACTION_SERVICE_URL)
        _extraction_client = ExtractionClient(ExtractionServiceConfig.from_settings(settings))

    yield

    await _records_client.aclose()
    if _extraction_client is not None:
        await _extraction_client.aclose()


app = FastAPI(title="Rechnung Dashboard", version="1.0.0", lifespan=lifespan)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(
        status_code=502,
        content={"detail": exc.detail, "upstream_status": exc.status_code},
    )


@app.exception_handler(TransportError)
async def transport_error_handler(request: Request, exc: TransportError):
    return JSONResponse(status_code=504, content={"detail": str(exc)})


@app.exception_handler(UploadError)
async def upload_error_handler(request: Request, exc: UploadError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(MissingRecordIdError)
async def missing_record_id_handler(request: Request, exc: MissingRecordIdError):
    logger.warning("Record created without identifier in response: %s", exc)
    return JSONResponse(status_code=202, content={"detail": CREATED_WITHOUT_ID_MESSAGE})


@app.exception_handler(ExtractionFailure)
async def extraction_failure_handler(request: Request, exc: ExtractionFailure):
    logger.warning("Photo scan failed: %s", exc)
    return JSONResponse(
        status_code=502,
        content={"detail": SCAN_ERROR_MESSAGE, "reason": str(exc)},
    )


def _load_error_response(error: RecordClientError, cached: dict) -> JSONResponse:
    """Error view: detail plus the last-known data, so the view keeps its context."""
    return JSONResponse(status_code=502, content={"detail": str(error), **cached})


async def _find_record(record_id: str) -> Rechnung | None:
    return _data.find(record_id) or await _records_client.get(record_id)


@app.get("/api/dashboard", response_model=DashboardResponse)
async def dashboard():
    """KPI cards and the category chart."""
    try:
        records = await _data.refresh()
    except RecordClientError as e:
        cached = _data.records
        return _load_error_response(e, {
            "cached_count": len(cached),
            "stats": dashboard_stats(cached).model_dump(mode="json"),
            "categories": [c.model_dump(mode="json") for c in category_totals(cached)],
        })

    return DashboardResponse(
        count=len(records),
        stats=dashboard_stats(records),
        categories=category_totals(records),
    )


@app.get("/api/rechnungen", response_model=list[RechnungView])
async def list_rechnungen(
    status: str = Query("all", pattern="^(all|offen|bezahlt)$"),
    q: str = "",
):
    """Invoice list with status filter tab and free-text search."""
    try:
        records = await _data.refresh()
    except RecordClientError as e:
        cached = search_records(filter_by_status(_data.records, status), q)
        return _load_error_response(e, {
            "cached_count": len(_data.records),
            "records": [to_view(r).model_dump(mode="json") for r in cached],
        })

    return [to_view(r) for r in search_records(filter_by_status(records, status), q)]


@app.get("/api/rechnungen/{record_id}", response_model=RechnungView)
async def get_rechnung(record_id: str):
    """Detail panel for one invoice."""
    record = await _find_record(record_id)
    if record is None:
        return JSONResponse(status_code=404, content={"detail": "Rechnung nicht gefunden"})
    return to_view(record)


@app.post("/api/rechnungen", response_model=Rechnung, status_code=201)
async def create_rechnung(fields: RechnungFields):
    return await submit_form(_data, fields)


@app.patch("/api/rechnungen/{record_id}", response_model=Rechnung)
async def update_rechnung(record_id: str, patch: RechnungPatch):
    """Partial update: only the submitted fields change."""
    editing = await _find_record(record_id)
    if editing is None:
        return JSONResponse(status_code=404, content={"detail": "Rechnung nicht gefunden"})
    return await submit_form(_data, patch, editing=editing)


@app.delete("/api/rechnungen/{record_id}", status_code=204)
async def delete_rechnung(record_id: str, confirm: bool = False):
    """Delete after explicit confirmation (?confirm=true). No undo."""
    if not await confirm_delete(_data, record_id, confirm):
        return JSONResponse(status_code=400, content={"detail": "Löschen nicht bestätigt"})
    return Response(status_code=204)


@app.post("/api/rechnungen/scan")
async def scan_rechnung(file: UploadFile = File(...), attach: bool = False):
    """Read invoice fields from a photo, screenshot or PDF and return form defaults.

    With ``attach=true`` the upload is also stored and linked as rechnungsdatei.
    """
    if _extraction_client is None:
        return JSONResponse(
            status_code=503,
            content={"detail": "AI photo scan is not available - no extraction service configured"},
        )

    content = await file.read()
    if not content:
        return JSONResponse(status_code=400, content={"detail": "Empty file uploaded"})

    # GDPR: log byte count only, never image content
    logger.info("Processing photo scan: size=%d bytes type=%s", len(content), file.content_type)

    result = await extract_invoice(content, file.content_type, _extraction_client)
    prefill = form_defaults(prefill=result.to_prefill())
    if attach:
        prefill.rechnungsdatei = await _records_client.upload_file(
            content, file.filename or "upload", file.content_type,
        )

    return {"result": result.model_dump(mode="json"), "prefill": prefill.model_dump(mode="json")}


@app.post("/api/files")
async def upload_file(file: UploadFile = File(...)):
    """Store an invoice file; the URL goes into the rechnungsdatei field."""
    content = await file.read()
    if not content:
        return JSONResponse(status_code=400, content={"detail": "Empty file uploaded"})

    url = await _records_client.upload_file(content, file.filename or "upload", file.content_type)
    return {"url": url}


@app.get("/health")
async def health():
    """Return service status and which upstreams are configured."""
    return {
        "status": "healthy",
        "records_app_id": _records_client.app_id if _records_client else None,
        "records_state": _data.state.value if _data else None,
        "extraction_available": _extraction_client is not None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
