"""
Runtime configuration read from environment variables.
"""
import os


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("POINTS_DATABASE_URL", "sqlite:///./scholarship_points.db")

LOG_DIR = os.getenv("POINTS_LOG_DIR")  # None = constants.DEFAULT_LOG_DIRECTORY_PROD
LOG_FILE = os.getenv("POINTS_LOG_FILE", "points.log")
LOG_LEVEL = os.getenv("POINTS_LOG_LEVEL", "INFO")

# Levels at or below this number cannot be deleted
PROTECTED_LEVEL_FLOOR = int(os.getenv("POINTS_PROTECTED_LEVEL_FLOOR", "10"))

# Optimistic-lock retries for a single award
AWARD_MAX_RETRIES = int(os.getenv("POINTS_AWARD_MAX_RETRIES", "3"))

SCHEDULER_ENABLED = _get_bool("POINTS_SCHEDULER_ENABLED", True)
LIMIT_PURGE_TIME = os.getenv("POINTS_LIMIT_PURGE_TIME", "00:05")  # HH:MM, UTC

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "POINTS_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]
