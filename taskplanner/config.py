"""Application configuration loaded from the environment."""
import os

import pytz
from dotenv import load_dotenv

# Load environment variables from a local .env when present
load_dotenv()

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:1420")

# SQLite by default: the planner is a single-user local app
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./taskplanner.db")
SQL_ECHO = os.environ.get("SQL_ECHO", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Wall-clock timezone used to decide what "today" is for materialization
APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "UTC")

# How far ahead recurring instances are materialized
RECURRENCE_HORIZON_DAYS = int(os.environ.get("RECURRENCE_HORIZON_DAYS", "90"))

# Workspace whose templates are reconciled; empty means every workspace
RECURRING_WORKSPACE = os.environ.get("RECURRING_WORKSPACE", "life") or None


def get_timezone():
    """Return the configured pytz timezone, falling back to UTC."""
    try:
        return pytz.timezone(APP_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        return pytz.utc
