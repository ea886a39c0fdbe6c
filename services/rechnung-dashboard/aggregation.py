"""KPI and chart aggregation over a loaded Rechnung collection.

All functions are pure and total: an empty list yields zeros. A record
without ``betrag`` contributes 0 to every sum but still counts; a record
whose ``bezahlt`` is not exactly True counts as open (offen).
"""

from typing import Any, Iterable

from models import (
    DEFAULT_KATEGORIE,
    KATEGORIE_COLORS,
    KATEGORIE_LABELS,
    CategoryTotal,
    DashboardStats,
    Rechnung,
)

STATUS_FILTERS = ("all", "offen", "bezahlt")


def _amount(r: Rechnung) -> float:
    return r.fields.betrag if r.fields.betrag is not None else 0.0


def is_paid(r: Rechnung) -> bool:
    return r.fields.bezahlt is True


def total_amount(records: Iterable[Rechnung]) -> float:
    return sum((_amount(r) for r in records), 0.0)


def paid_sum(records: Iterable[Rechnung]) -> float:
    return sum((_amount(r) for r in records if is_paid(r)), 0.0)


def unpaid_sum(records: Iterable[Rechnung]) -> float:
    return sum((_amount(r) for r in records if not is_paid(r)), 0.0)


def paid_count(records: Iterable[Rechnung]) -> int:
    return sum(1 for r in records if is_paid(r))


def unpaid_count(records: Iterable[Rechnung]) -> int:
    return sum(1 for r in records if not is_paid(r))


def resolve_kategorie(value: Any) -> str:
    """Category key of a raw category value or a Rechnung.

    Missing -> ``sonstiges``; {key, label} lookup -> its key; else the literal.
    """
    if isinstance(value, Rechnung):
        value = value.fields.kategorie
    if isinstance(value, dict):
        value = value.get("key")
    if not value:
        return DEFAULT_KATEGORIE
    return str(value)


def kategorie_label(key: str) -> str:
    return KATEGORIE_LABELS.get(key, key)


def category_totals(records: Iterable[Rechnung]) -> list[CategoryTotal]:
    """Summed betrag per category, largest first.

    sorted() is stable, so equal totals keep first-seen order.
    """
    totals: dict[str, float] = {}
    for r in records:
        key = resolve_kategorie(r)
        totals[key] = totals.get(key, 0.0) + _amount(r)

    rows = [
        CategoryTotal(
            key=key,
            label=kategorie_label(key),
            value=value,
            color=KATEGORIE_COLORS.get(key, "var(--primary)"),
        )
        for key, value in totals.items()
    ]
    return sorted(rows, key=lambda row: row.value, reverse=True)


def dashboard_stats(records: list[Rechnung]) -> DashboardStats:
    return DashboardStats(
        total=total_amount(records),
        bezahlt_sum=paid_sum(records),
        offen_sum=unpaid_sum(records),
        bezahlt_count=paid_count(records),
        offen_count=unpaid_count(records),
        kategorien_count=len({resolve_kategorie(r) for r in records}),
    )


def filter_by_status(records: list[Rechnung], status: str = "all") -> list[Rechnung]:
    """Filter tab of the invoice list: all, offen (open) or bezahlt (paid)."""
    if status == "offen":
        return [r for r in records if not is_paid(r)]
    if status == "bezahlt":
        return [r for r in records if is_paid(r)]
    if status == "all":
        return list(records)
    raise ValueError(f"Unknown status filter: {status}")


def search_records(records: list[Rechnung], query: str) -> list[Rechnung]:
    """Case-insensitive substring search over all field values.

    Categories match on their label as well as their key.
    """
    if not query:
        return list(records)
    needle = query.lower()

    def matches(r: Rechnung) -> bool:
        for key, value in r.fields.model_dump(exclude_none=True).items():
            if key == "kategorie" and needle in kategorie_label(value).lower():
                return True
            if needle in str(value).lower():
                return True
        return False

    return [r for r in records if matches(r)]
