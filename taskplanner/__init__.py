"""Personal task planner with recurring task materialization."""

__version__ = "1.0.0"
