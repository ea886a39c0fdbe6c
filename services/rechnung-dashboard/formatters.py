"""Display formatting for the invoice views (German locale)."""

from datetime import datetime

from aggregation import is_paid, kategorie_label, resolve_kategorie
from models import Rechnung, RechnungView

PLACEHOLDER = "—"


def format_eur(value: float | None) -> str:
    """Format an amount as German currency, e.g. 1.234,56 €."""
    if value is None:
        return PLACEHOLDER
    return f"{value:,.2f} €".replace(",", "X").replace(".", ",").replace("X", ".")


def format_date(value: str | None) -> str:
    """Format an ISO date (or timestamp) as DD.MM.YYYY; unparseable input is returned as is."""
    if not value:
        return PLACEHOLDER
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%d.%m.%Y")
    except ValueError:
        return value


def record_title(r: Rechnung) -> str:
    return r.fields.lieferant or r.fields.rechnungsnummer or PLACEHOLDER


def to_view(r: Rechnung) -> RechnungView:
    key = resolve_kategorie(r)
    return RechnungView(
        record_id=r.record_id,
        title=record_title(r),
        kategorie=key,
        kategorie_label=kategorie_label(key),
        betrag=format_eur(r.fields.betrag),
        rechnungsdatum=format_date(r.fields.rechnungsdatum),
        status="Bezahlt" if is_paid(r) else "Offen",
        fields=r.fields,
    )
