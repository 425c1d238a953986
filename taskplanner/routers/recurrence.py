"""Recurrence router: explicit reconciliation and series inspection."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from taskplanner.db.config import get_session
from taskplanner.exceptions import RuleParseError
from taskplanner.models.recurrence_rule import RecurrenceRule
from taskplanner.schemas.task import ReconcileResponse, SeriesResponse
from taskplanner.services.instance_store import InstanceStore
from taskplanner.services.recurring_task_service import ensure_recurring_instances

router = APIRouter(prefix="/recurrence", tags=["Recurrence"])


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile(
    horizon_days: Optional[int] = Query(None, ge=0, le=3660, description="Days ahead to materialize"),
    session: Session = Depends(get_session),
):
    """Materialize missing recurring instances. Safe to call repeatedly."""
    result = ensure_recurring_instances(session, horizon_days)
    return {
        "templates_processed": result.templates_processed,
        "templates_skipped": result.templates_skipped,
        "instances_created": result.instances_created,
        "created_ids": result.created_ids,
    }


@router.get("/series/{series_id}", response_model=SeriesResponse)
def get_series(series_id: str, session: Session = Depends(get_session)):
    """Template and all instances of a series, including deleted ones."""
    rows = InstanceStore(session).list_series(series_id)
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Series not found")

    template = next((row for row in rows if row.is_recurring_template), None)
    rule = None
    if template is not None:
        try:
            rule = RecurrenceRule.from_json(template.recurrence_rule_json, template_id=template.id)
        except RuleParseError:
            rule = None

    return {
        "series_id": series_id,
        "template": template,
        "recurrence_rule": rule,
        "instances": [row for row in rows if not row.is_recurring_template],
    }
