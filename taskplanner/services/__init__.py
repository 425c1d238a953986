"""Services for tasks and the recurring task engine."""
