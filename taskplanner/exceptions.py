"""Errors raised by the recurring task engine."""


class RecurrenceError(Exception):
    """Base exception for recurring task errors"""

    default_message = ""

    def __init__(self, message: str | None = None):
        if message is None:
            message = self.default_message
        super().__init__(message)


class RuleParseError(RecurrenceError):
    """A template's stored recurrence rule could not be decoded."""

    default_message = "Stored recurrence rule could not be decoded"

    def __init__(self, message: str | None = None, template_id: int | None = None):
        self.template_id = template_id
        super().__init__(message)


class InvalidRecurrenceRuleError(RecurrenceError, ValueError):
    """A recurrence rule was rejected while it was being authored."""

    default_message = "Invalid recurrence rule"


class ScopeRequiredError(RecurrenceError):
    """An occurrence was edited or deleted without choosing a scope."""

    def __init__(self, task_id: int, scopes: list[str]):
        self.task_id = task_id
        self.scopes = scopes
        super().__init__(
            f"Task {task_id} is an occurrence of a recurring series; choose one of: {', '.join(scopes)}"
        )


class TaskNotFoundError(RecurrenceError):
    default_message = "Task not found"

    def __init__(self, task_id: int | None = None):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found" if task_id is not None else None)
