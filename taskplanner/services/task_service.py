"""Task service for plain tasks and recurring templates."""
import uuid
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from taskplanner.models.task import Task
from taskplanner.schemas.task import TaskCreate


class TaskService:
    """Creation and listing of tasks; recurring instances are left to the reconciler."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, data: TaskCreate) -> Task:
        """Create a plain task, or a series template when a recurrence rule is given."""
        now = datetime.utcnow()
        task = Task(
            title=data.title,
            description=data.description,
            due_at=data.due_at,
            task_type=data.task_type,
            workspace=data.workspace,
            category_id=data.category_id,
            status=data.status,
            priority=data.priority,
            effort_estimate_minutes=data.effort_estimate_minutes,
            tags=data.tags,
            source="manual",
            created_at=now,
            updated_at=now,
        )

        if data.recurrence_rule is not None:
            task.is_recurring_template = True
            task.recurrence_rule_json = data.recurrence_rule.to_json()
            task.recurring_series_id = str(uuid.uuid4())

        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def get_by_id(self, task_id: int) -> Optional[Task]:
        statement = select(Task).where(Task.id == task_id).where(Task.deleted_at.is_(None))
        return self.session.exec(statement).first()

    def list_tasks(
        self,
        workspace: Optional[str] = None,
        status: Optional[str] = None,
        due_from: Optional[datetime] = None,
        due_to: Optional[datetime] = None,
        include_templates: bool = False,
    ) -> List[Task]:
        """Non-deleted tasks ordered by due date; templates are hidden unless asked for."""
        statement = select(Task).where(Task.deleted_at.is_(None))

        if not include_templates:
            statement = statement.where(Task.is_recurring_template == False)  # noqa: E712
        if workspace:
            statement = statement.where(Task.workspace == workspace)
        if status:
            statement = statement.where(Task.status == status)
        if due_from:
            statement = statement.where(Task.due_at >= due_from)
        if due_to:
            statement = statement.where(Task.due_at <= due_to)

        statement = statement.order_by(Task.due_at.asc().nullslast(), Task.created_at.desc())
        return list(self.session.exec(statement).all())
