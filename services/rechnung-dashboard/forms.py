"""Form dialog and delete confirmation contracts.

The dialog only produces a field set; whether that becomes a create or an
update is decided here from the record being edited.
"""

from dashboard_data import DashboardData
from models import Rechnung, RechnungFields


def form_defaults(record: Rechnung | None = None, prefill: RechnungFields | None = None) -> RechnungFields:
    """Initial dialog values: the edited record, an AI prefill, or an empty unpaid invoice."""
    if record is not None:
        return record.fields.model_copy()
    if prefill is not None:
        return prefill.model_copy()
    return RechnungFields(bezahlt=False)


async def submit_form(
    data: DashboardData,
    fields: RechnungFields,
    editing: Rechnung | None = None,
) -> Rechnung:
    """Create a new record, or update ``editing`` with the submitted fields."""
    if editing is None:
        return await data.create(fields)
    return await data.update(editing.record_id, fields)


async def confirm_delete(data: DashboardData, record_id: str, confirmed: bool) -> bool:
    """Delete only after an explicit yes. Returns whether a delete happened."""
    if not confirmed:
        return False
    await data.delete(record_id)
    return True
