"""Pydantic models for Rechnung records, extraction results and dashboard views."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Category keys in display order, with German labels
KATEGORIE_LABELS: dict[str, str] = {
    "buero": "Büromaterial",
    "it_software": "IT & Software",
    "reise": "Reisekosten",
    "marketing": "Marketing",
    "miete": "Miete & Nebenkosten",
    "versicherung": "Versicherungen",
    "sonstiges": "Sonstiges",
}

KATEGORIE_COLORS: dict[str, str] = {
    "buero": "var(--primary)",
    "it_software": "#6366f1",
    "reise": "#8b5cf6",
    "marketing": "#ec4899",
    "miete": "#f59e0b",
    "versicherung": "#10b981",
    "sonstiges": "#6b7280",
}

DEFAULT_KATEGORIE = "sonstiges"


class RechnungFields(BaseModel):
    """Field set of one invoice. Every field is independently optional.

    Which fields were actually supplied is tracked by pydantic
    (``model_fields_set``), so an unset ``betrag`` stays distinguishable
    from ``betrag=0``.
    """

    model_config = ConfigDict(extra="ignore")

    rechnungsnummer: str | None = None
    rechnungsdatum: str | None = None
    betrag: float | None = None
    lieferant: str | None = None
    kategorie: str | None = None
    rechnungsdatei: str | None = None
    bezahlt: bool | None = None
    zahlungsdatum: str | None = None
    notizen: str | None = None

    @field_validator("kategorie", mode="before")
    @classmethod
    def _lookup_to_key(cls, v: Any) -> Any:
        # Lookup fields may arrive as {"key": ..., "label": ...}
        if isinstance(v, dict):
            return v.get("key")
        return v

    def to_payload(self) -> dict[str, Any]:
        """Serialise only the supplied fields, as sent to the records service."""
        return self.model_dump(exclude_unset=True)


class RechnungPatch(RechnungFields):
    """Partial update: only keys that were explicitly supplied are applied.

    A key supplied with ``None`` clears the stored value.
    """


def apply_patch(fields: RechnungFields, patch: RechnungFields) -> RechnungFields:
    """Apply ``patch`` to ``fields`` key by key; keys absent from the patch are untouched."""
    merged = fields.model_dump(exclude_unset=True)
    merged.update(patch.model_dump(exclude_unset=True))
    return RechnungFields(**merged)


class Rechnung(BaseModel):
    record_id: str
    createdat: str | None = None
    updatedat: str | None = None
    fields: RechnungFields = Field(default_factory=RechnungFields)


class FieldStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"  # model explicitly reported no value
    FAILED = "failed"  # key missing or value unusable


class ExtractedField(BaseModel):
    key: str
    status: FieldStatus
    value: str | float | None = None


class ExtractionResult(BaseModel):
    """Best-effort fields read from an invoice photo. Never persisted."""

    fields: dict[str, ExtractedField]
    warnings: list[str] = []
    processing_time_ms: int

    def present(self) -> dict[str, Any]:
        return {
            key: f.value for key, f in self.fields.items()
            if f.status is FieldStatus.PRESENT
        }

    def to_prefill(self) -> RechnungFields:
        """Form defaults built from the extracted values.

        Unknown or missing categories fall back to ``sonstiges``.
        """
        values = self.present()
        if values.get("kategorie") not in KATEGORIE_LABELS:
            values["kategorie"] = DEFAULT_KATEGORIE
        return RechnungFields(**values)


class CategoryTotal(BaseModel):
    key: str
    label: str
    value: float
    color: str


class DashboardStats(BaseModel):
    total: float
    bezahlt_sum: float
    offen_sum: float
    bezahlt_count: int
    offen_count: int
    kategorien_count: int


class RechnungView(BaseModel):
    """One row of the invoice list, with display strings."""

    record_id: str
    title: str
    kategorie: str
    kategorie_label: str
    betrag: str
    rechnungsdatum: str
    status: str
    fields: RechnungFields


class DashboardResponse(BaseModel):
    count: int
    stats: DashboardStats
    categories: list[CategoryTotal]
