"""
Domain constants for the points engine.
"""

# Activity sources
SOURCE_ATTENDANCE = "attendance"
SOURCE_TASK = "task"
SOURCE_BADGE = "badge"
SOURCE_BEHAVIOR = "behavior"
SOURCE_ADJUSTMENT = "adjustment"  # Reversal entries only

ACTIVITY_SOURCES = (SOURCE_ATTENDANCE, SOURCE_TASK, SOURCE_BADGE, SOURCE_BEHAVIOR)
TRANSACTION_SOURCES = ACTIVITY_SOURCES + (SOURCE_ADJUSTMENT,)

# Behavior polarity (event subtype)
BEHAVIOR_POSITIVE = "positive"
BEHAVIOR_NEGATIVE = "negative"

# Limit scopes
SCOPE_DAILY = "daily"
SCOPE_WEEKLY = "weekly"
SCOPE_MONTHLY = "monthly"
OVERALL_SCOPES = (SCOPE_DAILY, SCOPE_WEEKLY, SCOPE_MONTHLY)
SOURCE_SCOPE_SUFFIX = "_daily"

# Calendar week starts on Sunday (datetime.weekday(): Monday=0 ... Sunday=6)
WEEK_START_WEEKDAY = 6

# Task rules
MIN_DIFFICULTY_MULTIPLIER = 0.1
DEFAULT_DIFFICULTY_MULTIPLIER = 1.0

# Default rule payload
DEFAULT_TASK_CATEGORIES = {
    "homework": 10,
    "quiz": 15,
    "exam": 25,
    "project": 20,
    "reading": 5,
    "practice": 8,
}

DEFAULT_DIFFICULTY_MULTIPLIERS = {
    "easy": 0.75,
    "medium": 1.0,
    "hard": 1.5,
}

DEFAULT_SPECIAL_BADGES = {
    "perfect_month": 50,
    "top_performer": 100,
}

# Level seed: (level, name, threshold)
DEFAULT_LEVELS = (
    (1, "Novice Scholar", 0),
    (2, "Apprentice Scholar", 100),
    (3, "Developing Scholar", 250),
    (4, "Proficient Scholar", 500),
    (5, "Advanced Scholar", 1000),
    (6, "Distinguished Scholar", 1750),
    (7, "Expert Scholar", 2750),
    (8, "Master Scholar", 4000),
    (9, "Grand Scholar", 5500),
    (10, "Premier Scholar", 7500),
)
LEVEL_NAME_TEMPLATE = "Level {level} Scholar"

# Ledger queries
TRANSACTION_SORT_FIELDS = ("timestamp", "amount", "id")
SORT_ORDERS = ("asc", "desc")
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

# Summary trailing buckets (days)
SUMMARY_BUCKETS = {
    "day": 1,
    "week": 7,
    "month": 30,
}

# Analytics
TIME_SERIES_INTERVALS = ("day", "week", "month")
ANALYTICS_TIME_FRAMES = {
    "week": 7,
    "month": 30,
    "year": 365,
}
DEFAULT_ANALYTICS_DAYS = 30

# Logging
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/scholarship-points"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"
