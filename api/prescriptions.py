"""
api.prescriptions
=================

FastAPI router for prescriptions, renewals and reminder events.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dispensary.dates import utcnow
from dispensary.permissions import Actor
from dispensary.service import LifecycleService
from dispensary.views import categorize_renewals, prescription_rows
from .deps import get_actor, get_service
from .schemas import BulkReminderIn, PrescriptionIn, ReminderIn, StatusChange

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])


@router.get("")
def list_prescriptions(status: str | None = None, svc: LifecycleService = Depends(get_service)):
    """Prescription rows with their derived renewal category and badge."""
    return prescription_rows(svc.list_prescriptions(status), utcnow())


@router.post("", status_code=201)
def create_prescription(
    body: PrescriptionIn,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.create_prescription(actor, **body.model_dump(exclude_none=True))


# ---------- GET /prescriptions/renewals ----------
@router.get("/renewals")
def renewals(svc: LifecycleService = Depends(get_service)):
    """Prescriptions grouped by renewal category (due_soon, overdue, completed, none)."""
    groups = categorize_renewals(svc.list_prescriptions(), utcnow())
    return {category.value: items for category, items in groups.items()}


# ---------- POST /prescriptions/reminders ----------
@router.post("/reminders")
def send_bulk_reminders(
    body: BulkReminderIn,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    """
    Record one reminder per selected prescription.

    Always answers with the per-id outcome; ``failed`` maps each id that
    could not be recorded to the reason.
    """
    result = svc.record_reminders(body.prescription_ids, body.channel, actor)
    return {
        "ok": result.ok,
        "sent": result.sent,
        "failed": {pid: str(err) for pid, err in result.failed.items()},
    }


@router.get("/{prescription_id}")
def get_prescription(prescription_id: str, svc: LifecycleService = Depends(get_service)):
    return svc.get_prescription(prescription_id)


@router.delete("/{prescription_id}", status_code=204)
def delete_prescription(
    prescription_id: str,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    svc.delete_prescription(prescription_id, actor)


@router.post("/{prescription_id}/status")
def change_status(
    prescription_id: str,
    body: StatusChange,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.transition_prescription(prescription_id, body.status, actor)


@router.post("/{prescription_id}/renewed")
def mark_renewed(
    prescription_id: str,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.mark_renewed(prescription_id, actor)


@router.get("/{prescription_id}/reminders")
def reminder_history(prescription_id: str, svc: LifecycleService = Depends(get_service)):
    svc.get_prescription(prescription_id)
    return svc.reminder_history(prescription_id)


@router.post("/{prescription_id}/reminders", status_code=201)
def send_reminder(
    prescription_id: str,
    body: ReminderIn,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.record_reminder(prescription_id, body.channel, actor)
