"""Deletion of recurring occurrences: this one, or this and every later one."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import Session

from taskplanner.exceptions import ScopeRequiredError, TaskNotFoundError
from taskplanner.services.instance_store import InstanceStore
from taskplanner.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)


class DeleteScope(str, Enum):
    INSTANCE = "instance"
    SERIES_FROM_HERE = "seriesFromHere"


@dataclass
class DeletionResult:
    task_id: int
    deleted_ids: List[int] = field(default_factory=list)


def delete_occurrence(
    session: Session,
    task_id: int,
    scope: Optional[DeleteScope] = None,
    *,
    now: Optional[datetime] = None,
) -> DeletionResult:
    """
    Soft-delete a task, cascading forward through its series when asked to.

    The template and occurrences dated before the target are never touched.

    Raises:
        TaskNotFoundError: The task does not exist or is already deleted
        ScopeRequiredError: The task is an occurrence and no scope was chosen
    """
    store = InstanceStore(session)
    task = store.get_task_by_id(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    scope = DeleteScope(scope) if scope is not None else None
    timestamp = now or datetime.utcnow()

    if not task.is_instance:
        # Plain task, or a template (which stops further generation)
        store.soft_delete(task.id, timestamp)
        return DeletionResult(task_id=task.id, deleted_ids=[task.id])

    if scope is None:
        raise ScopeRequiredError(task.id, [s.value for s in DeleteScope])

    if scope == DeleteScope.INSTANCE:
        deleted = store.soft_delete_many([task.id], timestamp)
    else:
        later = store.find_instances_in_series(task.recurring_series_id, task.occurrence_date)
        # Target first, then the rest of the series from its date on
        ids = [task.id] + [t.id for t in later if t.id != task.id]
        deleted = store.soft_delete_many(ids, timestamp)
        logger.info(
            "Deleted %d occurrences of series %s from %s",
            len(deleted),
            task.recurring_series_id,
            task.occurrence_date,
        )

    metrics_collector.instances_deleted(len(deleted))
    return DeletionResult(task_id=task.id, deleted_ids=deleted)
