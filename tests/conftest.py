"""Shared fixtures: an in-memory database, a session, and an API client bound to it."""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from taskplanner.db.config import build_engine, get_session
from taskplanner.main import app
from taskplanner.models.recurrence_rule import RecurrenceRule
from taskplanner.models.task import Task
from taskplanner.utils.metrics import metrics_collector


@pytest.fixture()
def engine():
    db_engine = build_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture()
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    # Not used as a context manager so the startup hook keeps away from the real database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics_collector.reset()
    yield


@pytest.fixture()
def make_template(session):
    """Factory creating a recurring template row."""

    def _make(rule, due_at=datetime(2025, 1, 1, 9, 30), **fields):
        if isinstance(rule, dict):
            rule = RecurrenceRule.from_dict(rule)
        template = Task(
            title=fields.pop("title", "Gym"),
            due_at=due_at,
            workspace=fields.pop("workspace", "life"),
            is_recurring_template=True,
            recurrence_rule_json=rule.to_json() if isinstance(rule, RecurrenceRule) else rule,
            recurring_series_id=fields.pop("recurring_series_id", None),
            **fields,
        )
        session.add(template)
        session.commit()
        session.refresh(template)
        if template.recurring_series_id is None:
            template.recurring_series_id = f"series-{template.id}"
            session.add(template)
            session.commit()
            session.refresh(template)
        return template

    return _make
