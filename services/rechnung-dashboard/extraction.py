"""Invoice extraction orchestrator: preprocess, call the AI service, parse JSON.

The result is best-effort: each schema field is reported as present,
absent or failed. Only a transport/service failure or output without any
JSON object fails the whole extraction.
"""

import json
import logging
import re
import time
from datetime import datetime
from typing import Any

from extraction_client import ExtractionClient, ExtractionParseError
from models import ExtractedField, ExtractionResult, FieldStatus
from preprocessing import preprocess, to_data_uri
from prompts import INVOICE_SCHEMA, SCHEMA_DESCRIPTION, build_prompt

logger = logging.getLogger(__name__)

DATE_FIELDS = {"rechnungsdatum", "zahlungsdatum"}
AMOUNT_FIELDS = {"betrag"}

_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%d.%m.%y", "%d/%m/%Y")

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_FLAT_OBJECT_RE = re.compile(r"\{[^{}]*\}")
# 1.234 or 1.234.567: dots as thousands separators, no decimals
_DOT_GROUPED_RE = re.compile(r"-?\d{1,3}(?:\.\d{3})+")


async def extract_invoice(
    image_bytes: bytes,
    content_type: str | None,
    client: ExtractionClient,
) -> ExtractionResult:
    """Run extraction pipeline: preprocess -> AI service -> per-field parse.

    Raises ExtractionFailure (or a subclass) when nothing could be read.
    """
    start = time.monotonic()

    prepared, mime_type = preprocess(image_bytes, content_type)
    logger.info(
        "Prepared upload for extraction: %d bytes -> %d bytes (%s)",
        len(image_bytes), len(prepared), mime_type,
    )

    raw_text = await client.extract(to_data_uri(prepared, mime_type), SCHEMA_DESCRIPTION, build_prompt())

    parsed = try_parse_json(raw_text)
    if parsed is None:
        raise ExtractionParseError("Model response contained no JSON object")

    fields = build_fields(parsed)
    elapsed_ms = int((time.monotonic() - start) * 1000)

    warnings: list[str] = []
    failed = [key for key, f in fields.items() if f.status is FieldStatus.FAILED]
    if failed:
        warnings.append("Could not read: " + ", ".join(failed))
    if not any(f.status is FieldStatus.PRESENT for f in fields.values()):
        warnings.append(
            "Could not extract any fields from the image. "
            "The photo may be unclear or not show an invoice."
        )

    return ExtractionResult(fields=fields, warnings=warnings, processing_time_ms=elapsed_ms)


def build_fields(parsed: dict, schema: dict[str, str] | None = None) -> dict[str, ExtractedField]:
    """Classify every schema field of the model output."""
    fields = {}
    for key in schema or INVOICE_SCHEMA:
        if key not in parsed:
            fields[key] = ExtractedField(key=key, status=FieldStatus.FAILED)
            continue

        value = parsed[key]
        if value is None or (isinstance(value, str) and not value.strip()):
            fields[key] = ExtractedField(key=key, status=FieldStatus.ABSENT)
            continue

        coerced = coerce_value(key, value)
        if coerced is None:
            logger.debug("Unusable value for %s: %r", key, value)
            fields[key] = ExtractedField(key=key, status=FieldStatus.FAILED)
        else:
            fields[key] = ExtractedField(key=key, status=FieldStatus.PRESENT, value=coerced)
    return fields


def coerce_value(key: str, value: Any) -> str | float | None:
    """Convert a raw model value to the field's type; None if not possible."""
    if isinstance(value, (bool, dict, list)):
        return None
    if key in AMOUNT_FIELDS:
        return parse_amount(value)
    if key in DATE_FIELDS:
        return parse_date(value)
    if key == "kategorie":
        return str(value).strip().lower()
    return str(value).strip()


def parse_amount(value: Any) -> float | None:
    """Parse 1234.56, "1.234,56 €", "1234,56" or "1.234" into a float."""
    if isinstance(value, (int, float)):
        return float(value)

    text = re.sub(r"[€$£\s]|EUR", "", str(value))
    if "," in text and ("." not in text or text.rfind(",") > text.rfind(".")):
        # German format: dots group thousands, comma separates decimals
        text = text.replace(".", "").replace(",", ".")
    elif "," not in text and _DOT_GROUPED_RE.fullmatch(text):
        text = text.replace(".", "")
    else:
        text = text.replace(",", "")

    try:
        return float(text)
    except ValueError:
        return None


def parse_date(value: Any) -> str | None:
    """Normalize a date string to YYYY-MM-DD."""
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text[:10], fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return None


def try_parse_json(raw: str) -> dict | None:
    """Return the first JSON object found in the model output, or None.

    Reasoning blocks are dropped first. Candidates are tried in order:
    the whole reply, a fenced code block, then the first flat brace block.
    """
    if not raw:
        return None

    text = _THINK_RE.sub("", raw).strip()
    for candidate in _json_candidates(text):
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj

    logger.warning("Model reply had no JSON object (%d chars)", len(text))
    return None


def _json_candidates(text: str):
    yield text
    for pattern in (_FENCE_RE, _FLAT_OBJECT_RE):
        match = pattern.search(text)
        if match:
            yield match.group(match.lastindex or 0).strip()
