"""Persistence operations used by the recurrence engine."""
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from taskplanner.models.task import Task

logger = logging.getLogger(__name__)


class InstanceStore:
    """Template lookup, occurrence existence checks, inserts and soft deletes over the task table."""

    def __init__(self, session: Session):
        self.session = session

    def find_active_templates(self, workspace: Optional[str] = None) -> List[Task]:
        """Non-deleted recurring templates, optionally limited to one workspace."""
        statement = (
            select(Task)
            .where(Task.is_recurring_template == True)  # noqa: E712
            .where(Task.deleted_at.is_(None))
        )
        if workspace:
            statement = statement.where(Task.workspace == workspace)
        return list(self.session.exec(statement.order_by(Task.id)).all())

    def exists_instance(
        self, template_id: int, occurrence_date: date, include_deleted: bool = False
    ) -> bool:
        """Whether an instance row exists for the (template, date) key."""
        statement = (
            select(Task.id)
            .where(Task.parent_template_id == template_id)
            .where(Task.occurrence_date == occurrence_date)
        )
        if not include_deleted:
            statement = statement.where(Task.deleted_at.is_(None))
        return self.session.exec(statement.limit(1)).first() is not None

    def count_instances(self, template_id: int, include_deleted: bool = True) -> int:
        """
        Number of instances ever materialized for a template.

        Soft-deleted instances are counted by default, so a COUNT series is capped
        at the occurrences ever generated and deleting one never brings in a
        replacement past the original end.
        """
        statement = select(func.count()).select_from(Task).where(Task.parent_template_id == template_id)
        if not include_deleted:
            statement = statement.where(Task.deleted_at.is_(None))
        return int(self.session.exec(statement).one())

    def insert_instance(self, fields: Dict[str, Any]) -> Optional[int]:
        """
        Insert an instance row.

        Returns:
            The new task id, or None when the (template, date) slot was already
            taken by a concurrent writer
        """
        task = Task(**fields)
        self.session.add(task)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.info(
                "Instance for template %s on %s already exists, skipping",
                fields.get("parent_template_id"),
                fields.get("occurrence_date"),
            )
            return None
        self.session.refresh(task)
        return task.id

    def get_task_by_id(self, task_id: int, include_deleted: bool = False) -> Optional[Task]:
        statement = select(Task).where(Task.id == task_id)
        if not include_deleted:
            statement = statement.where(Task.deleted_at.is_(None))
        return self.session.exec(statement).first()

    def find_instances_in_series(self, series_id: str, from_date: date) -> List[Task]:
        """Non-deleted instances of a series on or after ``from_date``, in date order."""
        if not series_id or from_date is None:
            return []
        statement = (
            select(Task)
            .where(Task.recurring_series_id == series_id)
            .where(Task.parent_template_id.is_not(None))
            .where(Task.deleted_at.is_(None))
            .where(Task.occurrence_date >= from_date)
            .order_by(Task.occurrence_date)
        )
        return list(self.session.exec(statement).all())

    def list_series(self, series_id: str) -> List[Task]:
        """Template and every instance of a series, deleted rows included."""
        if not series_id:
            return []
        statement = (
            select(Task)
            .where(Task.recurring_series_id == series_id)
            .order_by(Task.is_recurring_template.desc(), Task.occurrence_date)
        )
        return list(self.session.exec(statement).all())

    def soft_delete(self, task_id: int, timestamp: datetime) -> bool:
        """Mark a single row deleted. Returns False if it was missing or already deleted."""
        return bool(self.soft_delete_many([task_id], timestamp))

    def soft_delete_many(self, task_ids: Iterable[int], timestamp: datetime) -> List[int]:
        """Mark rows deleted in one transaction; returns the ids actually changed."""
        ids = list(task_ids)
        if not ids:
            return []
        statement = select(Task).where(Task.id.in_(ids)).where(Task.deleted_at.is_(None))
        tasks = list(self.session.exec(statement).all())
        for task in tasks:
            task.deleted_at = timestamp
            task.updated_at = timestamp
            self.session.add(task)
        self.session.commit()
        return [task.id for task in tasks]

    def update_task(self, task: Task, fields: Dict[str, Any], timestamp: Optional[datetime] = None) -> Task:
        """Apply field values to a row and persist them."""
        for name, value in fields.items():
            setattr(task, name, value)
        task.updated_at = timestamp or datetime.utcnow()
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task
