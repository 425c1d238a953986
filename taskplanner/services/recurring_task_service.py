"""
Recurring Task Service

Materializes recurring templates into concrete task instances on a rolling
horizon. Safe to run any number of times: dates that already have an instance
row (deleted or not) are skipped, so repeated runs converge on the same rows.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

import pytz
from sqlmodel import Session

from taskplanner.config import RECURRENCE_HORIZON_DAYS, RECURRING_WORKSPACE, get_timezone
from taskplanner.exceptions import RuleParseError
from taskplanner.models.recurrence_rule import EndType, RecurrenceRule
from taskplanner.models.task import DEFAULT_STATUS, Task
from taskplanner.services.date_expander import expand_rule_to_dates, occurrence_due_at
from taskplanner.services.instance_store import InstanceStore
from taskplanner.utils.logger import recurrence_logger
from taskplanner.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)

# Descriptive fields copied from a template onto each new instance
INSTANCE_FIELDS = (
    "title",
    "description",
    "task_type",
    "workspace",
    "category_id",
    "priority",
    "effort_estimate_minutes",
    "tags",
)

_DEFAULT_WORKSPACE = object()


def local_now(now: Optional[datetime] = None) -> datetime:
    """Current wall-clock time in the configured timezone, as a naive datetime."""
    tz = get_timezone()
    if now is None:
        return datetime.now(tz).replace(tzinfo=None)
    if now.tzinfo is not None:
        return now.astimezone(tz).replace(tzinfo=None)
    return now


@dataclass
class ReconciliationResult:
    templates_processed: int = 0
    templates_skipped: int = 0
    instances_created: int = 0
    created_ids: List[int] = field(default_factory=list)


class RecurringTaskService:
    """Service to materialize recurring templates into task instances."""

    def __init__(self, session: Session, workspace=_DEFAULT_WORKSPACE):
        self.store = InstanceStore(session)
        self.workspace = RECURRING_WORKSPACE if workspace is _DEFAULT_WORKSPACE else workspace

    @staticmethod
    def anchor_for(template: Task) -> datetime:
        """
        The series' original start, in local wall-clock time.

        Templates without a due date start on their local creation day. That
        anchor only fixes the phase; it never supplies a time of day.
        """
        if template.due_at is not None:
            return template.due_at
        created = template.created_at
        if created.tzinfo is None:
            created = pytz.utc.localize(created)
        return local_now(created)

    def build_instance_fields(self, template: Task, rule: RecurrenceRule, occurrence: date) -> dict:
        fields = {name: getattr(template, name) for name in INSTANCE_FIELDS}
        if fields["tags"] is not None:
            fields["tags"] = list(fields["tags"])
        now = datetime.utcnow()
        fields.update(
            due_at=occurrence_due_at(occurrence, rule, template.due_at),
            status=DEFAULT_STATUS,
            source="manual",
            is_recurring_template=False,
            is_occurrence_override=False,
            parent_template_id=template.id,
            recurring_series_id=template.series_id,
            occurrence_date=occurrence,
            created_at=now,
            updated_at=now,
        )
        return fields

    def materialize_template(
        self, template: Task, rule: RecurrenceRule, today: date, horizon_days: int
    ) -> List[int]:
        """
        Create the missing instances of one template.

        Args:
            template: Template row
            rule: Decoded recurrence rule of the template
            today: Local calendar date of the run
            horizon_days: Number of days, starting today, to cover

        Returns:
            Ids of the instances created
        """
        anchor = self.anchor_for(template)
        # Never backfill: start at the later of the anchor day and today
        window_start = max(anchor.date(), today)
        window_end = today + timedelta(days=horizon_days - 1)
        if window_end < window_start:
            return []

        remaining = None
        if rule.end_type == EndType.COUNT:
            # The cap covers the whole series, not just this run
            remaining = rule.count - self.store.count_instances(template.id)
            if remaining <= 0:
                return []

        created: List[int] = []
        for occurrence in expand_rule_to_dates(rule, window_start, window_end, anchor):
            if remaining is not None and remaining <= 0:
                break
            # Deleted rows count as existing so a removed occurrence is never recreated
            if self.store.exists_instance(template.id, occurrence, include_deleted=True):
                continue

            instance_id = self.store.insert_instance(
                self.build_instance_fields(template, rule, occurrence)
            )
            if instance_id is None:
                metrics_collector.duplicate_insert()
                continue

            created.append(instance_id)
            if remaining is not None:
                remaining -= 1

        return created

    @metrics_collector.time_operation("reconcile_seconds")
    def ensure_recurring_instances(
        self, horizon_days: Optional[int] = None, now: Optional[datetime] = None
    ) -> ReconciliationResult:
        """
        Ensure every active template has its instances for the next ``horizon_days`` days.

        Rule decode failures skip the affected template; storage errors propagate
        and the whole pass can simply be retried.
        """
        if horizon_days is None:
            horizon_days = RECURRENCE_HORIZON_DAYS
        if horizon_days < 0:
            raise ValueError("horizon_days must not be negative")

        today = local_now(now).date()
        result = ReconciliationResult()

        for template in self.store.find_active_templates(self.workspace):
            if not template.recurrence_rule_json:
                logger.debug("Template %s has no recurrence rule, skipping", template.id)
                result.templates_skipped += 1
                continue

            try:
                rule = RecurrenceRule.from_json(template.recurrence_rule_json, template_id=template.id)
            except RuleParseError as e:
                recurrence_logger.warning(
                    "Invalid recurrence rule, template skipped",
                    template_id=template.id,
                    error=str(e),
                )
                metrics_collector.rule_parse_error()
                result.templates_skipped += 1
                continue

            created = self.materialize_template(template, rule, today, horizon_days)
            result.templates_processed += 1
            result.instances_created += len(created)
            result.created_ids.extend(created)
            metrics_collector.template_processed()
            if created:
                metrics_collector.instance_created(len(created))
                logger.info("Created %d instances for template %s", len(created), template.id)

        recurrence_logger.info(
            "Reconciliation finished",
            today=today,
            horizon_days=horizon_days,
            templates_processed=result.templates_processed,
            templates_skipped=result.templates_skipped,
            instances_created=result.instances_created,
        )
        return result


def ensure_recurring_instances(
    session: Session,
    horizon_days: Optional[int] = None,
    *,
    now: Optional[datetime] = None,
    workspace=_DEFAULT_WORKSPACE,
) -> ReconciliationResult:
    """Entry point for materialization; safe to call repeatedly and from several places."""
    return RecurringTaskService(session, workspace=workspace).ensure_recurring_instances(
        horizon_days=horizon_days, now=now
    )
