"""Main FastAPI application for the task planner."""
import logging

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from taskplanner import __version__
from taskplanner.config import LOG_LEVEL
from taskplanner.db.config import engine
from taskplanner.db.init import init_db
from taskplanner.middleware.cors import add_cors_middleware
from taskplanner.routers import recurrence_router, tasks_router
from taskplanner.services.recurring_task_service import ensure_recurring_instances
from taskplanner.utils.metrics import metrics_collector

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Task Planner API",
    description="Personal task planner with recurring task materialization",
    version=__version__,
)

add_cors_middleware(app)


@app.on_event("startup")
def startup_event():
    """Create tables and top up recurring instances on app start."""
    try:
        init_db()
    except SQLAlchemyError:
        logger.exception("Database initialization failed; database operations may fail")
        return

    # A failed pass is retried by the next view that triggers reconciliation
    try:
        with Session(engine) as session:
            result = ensure_recurring_instances(session)
        logger.info("Startup reconciliation created %d instances", result.instances_created)
    except SQLAlchemyError:
        logger.exception("Startup reconciliation failed")


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/metrics")
def metrics():
    """Recurrence engine counters and timers."""
    return metrics_collector.get_metrics()


app.include_router(tasks_router, prefix="/api")  # /api/tasks...
app.include_router(recurrence_router, prefix="/api")  # /api/recurrence/...


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("taskplanner.main:app", host="127.0.0.1", port=8000, reload=True)
