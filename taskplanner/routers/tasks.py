"""Task router: creation, listing, and scoped edit/delete of recurring occurrences."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from taskplanner.config import RECURRENCE_HORIZON_DAYS
from taskplanner.db.config import get_session
from taskplanner.exceptions import InvalidRecurrenceRuleError, ScopeRequiredError, TaskNotFoundError
from taskplanner.schemas.task import (
    DeleteResponse,
    EditResponse,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TaskUpdate,
)
from taskplanner.services.deletion_cascade import DeleteScope, delete_occurrence
from taskplanner.services.edit_router import EditScope, edit_occurrence
from taskplanner.services.recurring_task_service import ensure_recurring_instances, local_now
from taskplanner.services.task_service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tasks"])  # No prefix since main.py adds /api


def get_task_service(session: Session = Depends(get_session)) -> TaskService:
    """Dependency for getting TaskService instance."""
    return TaskService(session)


def scope_required(error: ScopeRequiredError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"message": str(error), "scopes": error.scopes},
    )


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task_data: TaskCreate,
    session: Session = Depends(get_session),
    service: TaskService = Depends(get_task_service),
):
    """Create a task; with a recurrence rule the task becomes a template and its instances are materialized."""
    task = service.create(task_data)
    if task.is_recurring_template:
        ensure_recurring_instances(session, workspace=task.workspace)
        session.refresh(task)
    return task


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    service: TaskService = Depends(get_task_service),
    workspace: Optional[str] = Query(None, description="Filter by workspace: school, life"),
    task_status: Optional[str] = Query(None, alias="status", description="Filter by status: todo, doing, done"),
    due_from: Optional[datetime] = Query(None, description="Due at or after this time (ISO format)"),
    due_to: Optional[datetime] = Query(None, description="Due at or before this time (ISO format)"),
):
    """List schedulable tasks (recurring templates are not listed)."""
    tasks = service.list_tasks(
        workspace=workspace, status=task_status, due_from=due_from, due_to=due_to
    )
    return {"tasks": tasks, "count": len(tasks)}


@router.get("/tasks/upcoming", response_model=TaskListResponse)
def upcoming_tasks(
    session: Session = Depends(get_session),
    service: TaskService = Depends(get_task_service),
    days: int = Query(RECURRENCE_HORIZON_DAYS, ge=1, le=366, description="Days ahead to show"),
    workspace: Optional[str] = Query(None, description="Filter by workspace: school, life"),
):
    """Upcoming view: top up recurring instances, then list what is due in the next ``days`` days."""
    ensure_recurring_instances(session, max(days, RECURRENCE_HORIZON_DAYS))

    start = local_now().replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=days) - timedelta(microseconds=1)
    tasks = service.list_tasks(workspace=workspace, due_from=start, due_to=end)
    return {"tasks": tasks, "count": len(tasks)}


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(task_id: int, service: TaskService = Depends(get_task_service)):
    """Get a specific task by ID."""
    task = service.get_by_id(task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


@router.put("/tasks/{task_id}", response_model=EditResponse)
def update_task(
    task_id: int,
    task_data: TaskUpdate,
    scope: Optional[EditScope] = Query(None, description="For occurrences: instance or series"),
    session: Session = Depends(get_session),
):
    """Edit a task. Occurrences of a series need an explicit scope."""
    try:
        result = edit_occurrence(session, task_id, task_data.changes(), scope)
    except TaskNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    except ScopeRequiredError as e:
        raise scope_required(e)
    except InvalidRecurrenceRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"applied_to": result.applied_to, "task": result.task, "created_ids": result.created_ids}


@router.delete("/tasks/{task_id}", response_model=DeleteResponse)
def delete_task(
    task_id: int,
    scope: Optional[DeleteScope] = Query(None, description="For occurrences: instance or seriesFromHere"),
    session: Session = Depends(get_session),
):
    """Delete a task. Occurrences of a series need an explicit scope."""
    try:
        result = delete_occurrence(session, task_id, scope)
    except TaskNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    except ScopeRequiredError as e:
        raise scope_required(e)

    return {"task_id": result.task_id, "deleted_ids": result.deleted_ids}
