"""Initialize database tables."""
import logging

from sqlmodel import SQLModel

from taskplanner.db.config import engine
from taskplanner.models.task import Task  # noqa: F401  registers the table

logger = logging.getLogger(__name__)


def init_db(db_engine=None):
    """Create all tables in the database."""
    target = db_engine or engine
    logger.info("Creating all tables...")
    SQLModel.metadata.create_all(target)
    logger.info("Tables created successfully.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
