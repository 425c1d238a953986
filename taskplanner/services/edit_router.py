"""
Edit routing for recurring tasks.

An edit against an occurrence applies either to that occurrence alone (which
becomes an override) or to the series template, after which the reconciler
runs so new materializations pick up the change. Existing instances are never
rewritten by a series edit.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from taskplanner.exceptions import InvalidRecurrenceRuleError, ScopeRequiredError, TaskNotFoundError
from taskplanner.models.recurrence_rule import RecurrenceRule
from taskplanner.models.task import Task
from taskplanner.services.instance_store import InstanceStore
from taskplanner.services.recurring_task_service import ensure_recurring_instances
from taskplanner.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "due_at",
        "task_type",
        "category_id",
        "status",
        "priority",
        "effort_estimate_minutes",
        "tags",
    }
)


class EditScope(str, Enum):
    INSTANCE = "instance"
    SERIES = "series"


@dataclass
class EditResult:
    task: Task
    applied_to: str  # "task", "template", "instance" or "series"
    created_ids: List[int] = field(default_factory=list)


def _split_changes(changes: Dict[str, Any]):
    rule_data = changes.get("recurrence_rule")
    fields = {k: v for k, v in changes.items() if k != "recurrence_rule"}
    unknown = sorted(set(fields) - EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(unknown)}")
    return fields, rule_data


def _encode_rule(rule_data) -> str:
    if isinstance(rule_data, RecurrenceRule):
        return rule_data.to_json()
    return RecurrenceRule.from_dict(rule_data).to_json()


def edit_occurrence(
    session: Session,
    task_id: int,
    changes: Dict[str, Any],
    scope: Optional[EditScope] = None,
    *,
    now: Optional[datetime] = None,
    horizon_days: Optional[int] = None,
) -> EditResult:
    """
    Route an edit to the right row.

    Args:
        session: Database session
        task_id: Task the user edited
        changes: Field values to apply (``recurrence_rule`` allowed for templates/series)
        scope: Required when the task is an occurrence of a series
        now: Clock override for the follow-up reconciliation
        horizon_days: Horizon for the follow-up reconciliation

    Raises:
        TaskNotFoundError: The task or its template does not exist
        ScopeRequiredError: The task is an occurrence and no scope was chosen
        ValueError: A field cannot be edited through this path
    """
    store = InstanceStore(session)
    task = store.get_task_by_id(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    scope = EditScope(scope) if scope is not None else None
    fields, rule_data = _split_changes(changes)

    if not task.is_instance:
        # Plain task or the template itself: edit in place
        if rule_data is not None:
            if not task.is_recurring_template:
                raise InvalidRecurrenceRuleError("Only recurring templates carry a recurrence rule")
            fields["recurrence_rule_json"] = _encode_rule(rule_data)
        updated = store.update_task(task, fields)
        metrics_collector.edit_applied()
        if updated.is_recurring_template:
            result = ensure_recurring_instances(session, horizon_days, now=now, workspace=updated.workspace)
            return EditResult(task=updated, applied_to="template", created_ids=result.created_ids)
        return EditResult(task=updated, applied_to="task")

    if scope is None:
        raise ScopeRequiredError(task.id, [s.value for s in EditScope])

    if scope == EditScope.INSTANCE:
        if rule_data is not None:
            raise InvalidRecurrenceRuleError("A single occurrence cannot change the series rule")
        fields["is_occurrence_override"] = True
        updated = store.update_task(task, fields)
        metrics_collector.edit_applied()
        logger.info("Occurrence %s of template %s overridden", task.id, task.parent_template_id)
        return EditResult(task=updated, applied_to="instance")

    template = store.get_task_by_id(task.parent_template_id)
    if template is None:
        raise TaskNotFoundError(task.parent_template_id)

    if rule_data is not None:
        fields["recurrence_rule_json"] = _encode_rule(rule_data)
    # due_at on a series edit moves the anchor, which is what it means for the template
    updated = store.update_task(template, fields)
    metrics_collector.edit_applied()
    logger.info("Series template %s edited from occurrence %s", template.id, task.id)

    result = ensure_recurring_instances(session, horizon_days, now=now, workspace=updated.workspace)
    return EditResult(task=updated, applied_to="series", created_ids=result.created_ids)
