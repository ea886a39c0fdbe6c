"""Schema description and instructions for invoice photo extraction."""

import json

from models import KATEGORIE_LABELS

# Field name -> description sent to the extraction service
INVOICE_SCHEMA: dict[str, str] = {
    "rechnungsnummer": "string — invoice/receipt number",
    "rechnungsdatum": "string — invoice date as YYYY-MM-DD or null",
    "betrag": "number — total amount in EUR (numeric only, no currency symbol)",
    "lieferant": "string — supplier/issuer name",
    "kategorie": "string — one of: " + ", ".join(KATEGORIE_LABELS),
    "notizen": "string — any additional notes or null",
}

SCHEMA_DESCRIPTION = json.dumps(INVOICE_SCHEMA, ensure_ascii=False)

_JSON_SUFFIX = """

CRITICAL OUTPUT RULES:
- Return ONLY a single valid JSON object. No other text before or after.
- Do NOT include any thinking, preamble, explanation, or markdown formatting.
- Do NOT wrap in code fences. Just raw JSON.
- If a field is not readable or not present, set it to null."""

INVOICE_PROMPT = """You are analyzing a photographed or scanned invoice (Rechnung) or receipt.
Extract the fields described by the schema and return them as a JSON object.
Use EXACTLY the schema keys.

Important:
- The invoice is usually in German. Common labels: Rechnungsnummer, Rechnungsdatum,
  Datum, Gesamtbetrag, Summe, Brutto, zu zahlen
- betrag is the gross total (Bruttobetrag) as a plain number, e.g. 1234.56
- German amounts use a decimal comma: "1.234,56 €" becomes 1234.56
- Convert ALL dates from DD.MM.YYYY to YYYY-MM-DD format
- Pick the kategorie that fits the purchased goods or services best""" + _JSON_SUFFIX


def build_prompt(schema: dict[str, str] | None = None) -> str:
    """Instructions plus the schema, as a single prompt text."""
    schema_text = json.dumps(schema or INVOICE_SCHEMA, ensure_ascii=False, indent=2)
    return f"{INVOICE_PROMPT}\n\nSchema:\n{schema_text}"
