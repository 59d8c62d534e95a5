# src/skillboard/config.py

"""Runtime settings read from environment variables."""

import os

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./skillboard.db")
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Snapshot job
GLOBAL_SCOPE = "global"

SNAPSHOT_SUBJECTS: list[str] = [
    s.strip().lower()
    for s in os.getenv("SNAPSHOT_SUBJECTS", "math,science,english").split(",")
    if s.strip()
]
SNAPSHOT_TOP_N = int(os.getenv("SNAPSHOT_TOP_N", "100"))

# Retention is kept between 30 and 90 days
SNAPSHOT_RETENTION_DAYS = min(
    max(int(os.getenv("SNAPSHOT_RETENTION_DAYS", "90")), 30), 90
)

SNAPSHOT_RUN_HOUR_UTC = int(os.getenv("SNAPSHOT_RUN_HOUR_UTC", "2"))
SNAPSHOT_RUN_MINUTE_UTC = int(os.getenv("SNAPSHOT_RUN_MINUTE_UTC", "0"))
SNAPSHOT_SCHEDULER_ENABLED = (
    os.getenv("SNAPSHOT_SCHEDULER_ENABLED", "true").lower() == "true"
)


def all_scopes() -> list[str]:
    """Global scope first, then every configured subject."""
    return [GLOBAL_SCOPE, *SNAPSHOT_SUBJECTS]
