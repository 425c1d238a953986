"""
Metrics Collection for the recurrence engine.

Counts materialized instances, skipped templates, edits and deletions.
"""

import functools
import threading
import time
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict


class MetricsCollector:
    """Collects and manages in-process metrics."""

    def __init__(self):
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        # Initialize counters
        self.metrics["recurring_instances_created_total"] = 0
        self.metrics["recurring_templates_processed_total"] = 0
        self.metrics["recurring_rule_parse_errors_total"] = 0
        self.metrics["recurring_duplicate_inserts_total"] = 0
        self.metrics["recurring_instances_deleted_total"] = 0
        self.metrics["recurring_edits_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat(),
            }

    def reset(self):
        with self.lock:
            for name in list(self.metrics):
                self.metrics[name] = 0
            self.timers.clear()

    def instance_created(self, count: int = 1):
        self.increment_counter("recurring_instances_created_total", count)

    def template_processed(self):
        self.increment_counter("recurring_templates_processed_total")

    def rule_parse_error(self):
        self.increment_counter("recurring_rule_parse_errors_total")

    def duplicate_insert(self):
        self.increment_counter("recurring_duplicate_inserts_total")

    def instances_deleted(self, count: int):
        self.increment_counter("recurring_instances_deleted_total", count)

    def edit_applied(self):
        self.increment_counter("recurring_edits_total")

    def time_operation(self, metric_name: str) -> Callable:
        """Decorator accumulating the wall time spent in the wrapped function."""
        def decorator(func):
            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    return func(*args, **kwargs)
                finally:
                    self.record_timer(metric_name, time.perf_counter() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics_collector = MetricsCollector()
