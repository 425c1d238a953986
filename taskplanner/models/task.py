"""Task model for SQLModel."""
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import JSON, Column, Index, Text
from sqlmodel import Field, SQLModel

TASK_STATUSES = ("todo", "doing", "done")
TASK_PRIORITIES = ("low", "medium", "high")
WORKSPACES = ("school", "life")

DEFAULT_STATUS = "todo"


class Task(SQLModel, table=True):
    """Task row: a plain task, a recurring template, or a materialized occurrence."""

    __table_args__ = (
        # One row per (template, date); soft-deleted rows keep their slot
        Index(
            "uq_task_template_occurrence",
            "parent_template_id",
            "occurrence_date",
            unique=True,
        ),
        Index("idx_task_series_occurrence", "recurring_series_id", "occurrence_date"),
        Index("idx_task_template_lookup", "is_recurring_template", "deleted_at", "workspace"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=200, min_length=1)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    due_at: Optional[datetime] = Field(default=None, index=True)  # local wall-clock time
    task_type: str = Field(default="Other", max_length=30)
    workspace: str = Field(default="life", max_length=20)  # school, life
    category_id: Optional[int] = Field(default=None)
    status: str = Field(default=DEFAULT_STATUS, max_length=20)  # todo, doing, done
    priority: Optional[str] = Field(default=None, max_length=20)  # low, medium, high
    effort_estimate_minutes: Optional[int] = Field(default=None)
    tags: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    source: str = Field(default="manual", max_length=30)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = Field(default=None)

    # Recurrence bookkeeping
    is_recurring_template: bool = Field(default=False)
    recurrence_rule_json: Optional[str] = Field(default=None, sa_column=Column(Text))
    recurring_series_id: Optional[str] = Field(default=None, max_length=36)
    parent_template_id: Optional[int] = Field(default=None, foreign_key="task.id")
    occurrence_date: Optional[date] = Field(default=None)
    is_occurrence_override: bool = Field(default=False)

    @property
    def is_instance(self) -> bool:
        return self.parent_template_id is not None

    @property
    def series_id(self) -> Optional[str]:
        """Series identifier, falling back to the template id for legacy rows."""
        if self.recurring_series_id:
            return self.recurring_series_id
        if self.is_recurring_template and self.id is not None:
            return str(self.id)
        return None
