from datetime import date, datetime, timedelta

import pytest
import pytz
from sqlmodel import select

from taskplanner.models.task import Task
from taskplanner.services.instance_store import InstanceStore
from taskplanner.services.recurring_task_service import RecurringTaskService, ensure_recurring_instances
from taskplanner.utils.metrics import metrics_collector

NOW = datetime(2025, 1, 1, 8, 0)


def instances_of(session, template):
    statement = (
        select(Task)
        .where(Task.parent_template_id == template.id)
        .order_by(Task.occurrence_date)
    )
    return list(session.exec(statement).all())


def live(rows):
    return [row for row in rows if row.deleted_at is None]


def test_daily_template_materializes_horizon(session, make_template):
    template = make_template({"frequency": "DAILY"}, due_at=datetime(2025, 1, 1, 9, 30))

    result = ensure_recurring_instances(session, 5, now=NOW)

    rows = instances_of(session, template)
    assert result.instances_created == 5
    assert [row.occurrence_date for row in rows] == [date(2025, 1, d) for d in range(1, 6)]
    assert all(row.due_at.time() == datetime(2025, 1, 1, 9, 30).time() for row in rows)
    assert all(row.status == "todo" for row in rows)
    assert all(row.is_occurrence_override is False for row in rows)
    assert all(row.is_recurring_template is False for row in rows)
    assert {row.recurring_series_id for row in rows} == {template.recurring_series_id}


def test_reconciliation_is_idempotent(session, make_template):
    template = make_template({"frequency": "WEEKLY", "byWeekday": ["MO", "WE"]}, due_at=datetime(2025, 1, 6, 7, 0))

    first = ensure_recurring_instances(session, 14, now=datetime(2025, 1, 6, 6, 0))
    before = [(row.id, row.occurrence_date) for row in instances_of(session, template)]
    second = ensure_recurring_instances(session, 14, now=datetime(2025, 1, 6, 6, 0))

    assert first.instances_created == 4
    assert second.instances_created == 0
    assert [(row.id, row.occurrence_date) for row in instances_of(session, template)] == before


def test_never_backfills_before_today(session, make_template):
    template = make_template({"frequency": "DAILY"}, due_at=datetime(2024, 12, 1, 9, 0))

    ensure_recurring_instances(session, 3, now=datetime(2025, 1, 10, 12, 0))

    dates = [row.occurrence_date for row in instances_of(session, template)]
    assert dates == [date(2025, 1, 10), date(2025, 1, 11), date(2025, 1, 12)]


def test_future_anchor_starts_at_anchor(session, make_template):
    template = make_template({"frequency": "DAILY", "interval": 7}, due_at=datetime(2025, 1, 20, 9, 0))

    ensure_recurring_instances(session, 30, now=datetime(2025, 1, 10, 12, 0))

    dates = [row.occurrence_date for row in instances_of(session, template)]
    assert dates == [date(2025, 1, 20), date(2025, 1, 27), date(2025, 2, 3)]


def test_interval_phase_is_stable_across_days(session, make_template):
    template = make_template({"frequency": "DAILY", "interval": 2}, due_at=datetime(2025, 1, 1, 9, 0))

    ensure_recurring_instances(session, 4, now=datetime(2025, 1, 1, 8, 0))
    ensure_recurring_instances(session, 4, now=datetime(2025, 1, 2, 8, 0))

    dates = [row.occurrence_date for row in instances_of(session, template)]
    assert dates == [date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 5)]


def test_monthly_template_skips_short_months(session, make_template):
    template = make_template({"frequency": "MONTHLY"}, due_at=datetime(2025, 1, 31, 10, 0))

    ensure_recurring_instances(session, 60, now=datetime(2025, 2, 1, 8, 0))

    dates = [row.occurrence_date for row in instances_of(session, template)]
    assert dates == [date(2025, 3, 31)]


def test_deleted_occurrence_is_not_recreated(session, make_template):
    template = make_template({"frequency": "DAILY"})
    ensure_recurring_instances(session, 5, now=NOW)
    target = instances_of(session, template)[1]
    InstanceStore(session).soft_delete(target.id, datetime(2025, 1, 1, 12, 0))

    result = ensure_recurring_instances(session, 5, now=NOW)

    rows = instances_of(session, template)
    assert result.instances_created == 0
    assert len(rows) == 5
    assert [row.occurrence_date for row in rows if row.deleted_at] == [date(2025, 1, 2)]


def test_count_cap_holds_across_runs(session, make_template):
    template = make_template({"frequency": "DAILY", "endType": "COUNT", "count": 3})

    ensure_recurring_instances(session, 2, now=NOW)
    assert len(instances_of(session, template)) == 2

    ensure_recurring_instances(session, 10, now=NOW + timedelta(days=1))
    ensure_recurring_instances(session, 30, now=NOW + timedelta(days=5))
    ensure_recurring_instances(session, 90, now=NOW)

    rows = instances_of(session, template)
    assert [row.occurrence_date for row in rows] == [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]


def test_count_includes_deleted_occurrences(session, make_template):
    template = make_template({"frequency": "DAILY", "endType": "COUNT", "count": 2})
    ensure_recurring_instances(session, 1, now=NOW)
    first = instances_of(session, template)[0]
    InstanceStore(session).soft_delete(first.id, NOW)

    ensure_recurring_instances(session, 10, now=NOW)

    rows = instances_of(session, template)
    assert len(rows) == 2
    assert len(live(rows)) == 1


def test_until_rule_stops_at_until_date(session, make_template):
    template = make_template({"frequency": "DAILY", "endType": "UNTIL", "untilDate": "2025-01-03"})

    ensure_recurring_instances(session, 30, now=NOW)

    assert len(instances_of(session, template)) == 3


def test_time_of_day_overrides_anchor_time(session, make_template):
    template = make_template({"frequency": "DAILY", "timeOfDay": "18:45"}, due_at=datetime(2025, 1, 1, 9, 0))

    ensure_recurring_instances(session, 2, now=NOW)

    assert [row.due_at for row in instances_of(session, template)] == [
        datetime(2025, 1, 1, 18, 45),
        datetime(2025, 1, 2, 18, 45),
    ]


def test_copies_descriptive_fields(session, make_template):
    template = make_template(
        {"frequency": "DAILY"},
        title="Water plants",
        description="Balcony first",
        category_id=7,
        tags=["home", "chores"],
        priority="low",
        status="doing",
    )

    ensure_recurring_instances(session, 1, now=NOW)

    (instance,) = instances_of(session, template)
    assert instance.title == "Water plants"
    assert instance.description == "Balcony first"
    assert instance.category_id == 7
    assert instance.tags == ["home", "chores"]
    assert instance.priority == "low"
    assert instance.workspace == "life"
    assert instance.status == "todo"


def test_malformed_rule_skips_only_that_template(session, make_template):
    broken = make_template("{not json")
    healthy = make_template({"frequency": "DAILY"})

    result = ensure_recurring_instances(session, 3, now=NOW)

    assert instances_of(session, broken) == []
    assert len(instances_of(session, healthy)) == 3
    assert result.templates_skipped == 1
    assert result.templates_processed == 1
    assert metrics_collector.get_metrics()["counters"]["recurring_rule_parse_errors_total"] == 1


def test_deleted_template_is_ignored(session, make_template):
    template = make_template({"frequency": "DAILY"})
    InstanceStore(session).soft_delete(template.id, NOW)

    result = ensure_recurring_instances(session, 3, now=NOW)

    assert result.instances_created == 0
    assert instances_of(session, template) == []


def test_workspace_scoping(session, make_template):
    school = make_template({"frequency": "DAILY"}, workspace="school")

    ensure_recurring_instances(session, 2, now=NOW, workspace="life")
    assert instances_of(session, school) == []

    ensure_recurring_instances(session, 2, now=NOW, workspace=None)
    assert len(instances_of(session, school)) == 2


def test_zero_horizon_creates_nothing(session, make_template):
    make_template({"frequency": "DAILY"})
    assert ensure_recurring_instances(session, 0, now=NOW).instances_created == 0


def test_negative_horizon_is_rejected(session):
    with pytest.raises(ValueError):
        ensure_recurring_instances(session, -1, now=NOW)


def test_unique_index_absorbs_racing_inserts(session, make_template, monkeypatch):
    template = make_template({"frequency": "DAILY"})
    ensure_recurring_instances(session, 3, now=NOW)

    # Simulate a second writer that checked before the first one inserted
    monkeypatch.setattr(InstanceStore, "exists_instance", lambda self, *args, **kwargs: False)
    result = ensure_recurring_instances(session, 3, now=NOW)

    assert result.instances_created == 0
    assert len(instances_of(session, template)) == 3
    assert metrics_collector.get_metrics()["counters"]["recurring_duplicate_inserts_total"] == 3


def test_wrongly_typed_rule_does_not_starve_other_templates(session, make_template):
    broken = make_template('{"frequency": "WEEKLY", "byWeekday": 5}')
    healthy = make_template({"frequency": "DAILY"})

    result = ensure_recurring_instances(session, 3, now=NOW)

    assert instances_of(session, broken) == []
    assert len(instances_of(session, healthy)) == 3
    assert result.templates_skipped == 1


def test_template_without_due_date_materializes_at_midnight(session, make_template):
    template = make_template(
        {"frequency": "DAILY"}, due_at=None, created_at=datetime(2025, 1, 1, 14, 37, 12, 345)
    )

    ensure_recurring_instances(session, 2, now=NOW)

    assert [row.due_at for row in instances_of(session, template)] == [
        datetime(2025, 1, 1, 0, 0),
        datetime(2025, 1, 2, 0, 0),
    ]


def test_template_without_due_date_uses_rule_time(session, make_template):
    template = make_template(
        {"frequency": "DAILY", "timeOfDay": "07:15"}, due_at=None, created_at=datetime(2025, 1, 1, 14, 37)
    )

    ensure_recurring_instances(session, 1, now=NOW)

    assert [row.due_at for row in instances_of(session, template)] == [datetime(2025, 1, 1, 7, 15)]


def test_creation_day_is_taken_in_local_time(session, make_template, monkeypatch):
    monkeypatch.setattr(
        "taskplanner.services.recurring_task_service.get_timezone",
        lambda: pytz.timezone("Europe/Amsterdam"),
    )
    # 23:30 UTC is already the next day in Amsterdam
    template = make_template(
        {"frequency": "DAILY", "interval": 2}, due_at=None, created_at=datetime(2025, 1, 1, 23, 30)
    )

    assert RecurringTaskService.anchor_for(template) == datetime(2025, 1, 2, 0, 30)

    ensure_recurring_instances(session, 5, now=datetime(2025, 1, 2, 8, 0))

    assert [row.occurrence_date for row in instances_of(session, template)] == [
        date(2025, 1, 2),
        date(2025, 1, 4),
        date(2025, 1, 6),
    ]
