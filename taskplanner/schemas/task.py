"""Task schemas for the task planner API."""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskplanner.models.recurrence_rule import RecurrenceRule
from taskplanner.models.task import DEFAULT_STATUS, TASK_PRIORITIES, TASK_STATUSES, WORKSPACES

MAX_TAGS = 10
MAX_TAG_LENGTH = 20


def _one_of(values) -> str:
    return r"^(" + "|".join(values) + r")$"


WORKSPACE_PATTERN = _one_of(WORKSPACES)
STATUS_PATTERN = _one_of(TASK_STATUSES)
PRIORITY_PATTERN = _one_of(TASK_PRIORITIES)


def _check_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tag '{tag}' exceeds maximum length of {MAX_TAG_LENGTH} characters")
        if tag not in cleaned:
            cleaned.append(tag)
    return cleaned


class TaskCreate(BaseModel):
    """Schema for creating a task; a recurrence rule turns it into a series template."""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    due_at: Optional[datetime] = None  # local wall-clock time; anchors a series
    task_type: str = Field(default="Other", max_length=30)
    workspace: str = Field(default="life", pattern=WORKSPACE_PATTERN)
    category_id: Optional[int] = None
    status: str = Field(default=DEFAULT_STATUS, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    effort_estimate_minutes: Optional[int] = Field(None, ge=0)
    tags: Optional[List[str]] = Field(None, max_length=MAX_TAGS)
    recurrence_rule: Optional[RecurrenceRule] = None

    @field_validator("tags")
    @classmethod
    def _validate_tags(cls, v):
        return _check_tags(v)


class TaskUpdate(BaseModel):
    """Schema for editing a task or an occurrence of a series."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    due_at: Optional[datetime] = None
    task_type: Optional[str] = Field(None, max_length=30)
    category_id: Optional[int] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    effort_estimate_minutes: Optional[int] = Field(None, ge=0)
    tags: Optional[List[str]] = Field(None, max_length=MAX_TAGS)
    recurrence_rule: Optional[RecurrenceRule] = None

    @field_validator("tags")
    @classmethod
    def _validate_tags(cls, v):
        return _check_tags(v)

    def changes(self) -> Dict[str, Any]:
        """Only the fields the client actually sent."""
        data = self.model_dump(exclude_unset=True, exclude={"recurrence_rule"})
        if "recurrence_rule" in self.model_fields_set and self.recurrence_rule is not None:
            data["recurrence_rule"] = self.recurrence_rule
        return data


class TaskResponse(BaseModel):
    """Schema for task API responses."""
    id: int
    title: str
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    task_type: str
    workspace: str
    category_id: Optional[int] = None
    status: str
    priority: Optional[str] = None
    effort_estimate_minutes: Optional[int] = None
    tags: Optional[List[str]] = []
    source: str
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    is_recurring_template: bool = False
    recurring_series_id: Optional[str] = None
    parent_template_id: Optional[int] = None
    occurrence_date: Optional[date] = None
    is_occurrence_override: bool = False

    model_config = ConfigDict(from_attributes=True)


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]
    count: int


class EditResponse(BaseModel):
    applied_to: str
    task: TaskResponse
    created_ids: List[int] = []


class DeleteResponse(BaseModel):
    task_id: int
    deleted_ids: List[int]


class ReconcileResponse(BaseModel):
    templates_processed: int
    templates_skipped: int
    instances_created: int
    created_ids: List[int]


class SeriesResponse(BaseModel):
    series_id: str
    template: Optional[TaskResponse] = None
    recurrence_rule: Optional[RecurrenceRule] = None
    instances: List[TaskResponse]
