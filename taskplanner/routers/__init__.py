"""Routers package for the task planner API."""

from .recurrence import router as recurrence_router
from .tasks import router as tasks_router

__all__ = ["recurrence_router", "tasks_router"]
