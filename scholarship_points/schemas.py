from pydantic import BaseModel, ConfigDict, Field, conint, confloat, field_validator
from datetime import datetime
from typing import Optional, Dict, List, Literal, Any

from scholarship_points.constants import (
    ACTIVITY_SOURCES,
    DEFAULT_TASK_CATEGORIES,
    DEFAULT_DIFFICULTY_MULTIPLIERS,
    DEFAULT_SPECIAL_BADGES,
    MIN_DIFFICULTY_MULTIPLIER,
)


# Configuration rule schemas
class RuleModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class StreakRule(RuleModel):
    enabled: bool = True
    interval: int = Field(default=5, ge=1)  # Bonus every N consecutive days
    bonus: int = Field(default=5, ge=0)


class PerfectWeekRule(RuleModel):
    enabled: bool = True
    bonus: int = Field(default=10, ge=0)


class AttendanceRules(RuleModel):
    daily_check_in: int = Field(default=5, ge=0)
    streak: StreakRule = Field(default_factory=StreakRule)
    perfect_week: PerfectWeekRule = Field(default_factory=PerfectWeekRule)


class TaskRules(RuleModel):
    categories: Dict[str, conint(ge=0)] = Field(
        default_factory=lambda: dict(DEFAULT_TASK_CATEGORIES)
    )
    difficulty_multipliers: Dict[str, confloat(ge=MIN_DIFFICULTY_MULTIPLIER)] = Field(
        default_factory=lambda: dict(DEFAULT_DIFFICULTY_MULTIPLIERS)
    )

    @field_validator("categories", "difficulty_multipliers")
    @classmethod
    def keys_not_blank(cls, value: dict) -> dict:
        for key in value:
            if not key.strip():
                raise ValueError("keys must be non-empty")
        return value


class BadgeRules(RuleModel):
    default: int = Field(default=10, ge=0)
    special: Dict[str, conint(ge=0)] = Field(
        default_factory=lambda: dict(DEFAULT_SPECIAL_BADGES)
    )


class BehaviorRules(RuleModel):
    positive: int = Field(default=5, ge=0)
    negative: int = Field(default=-5, le=0)


class ActivityPointsRules(RuleModel):
    attendance: AttendanceRules = Field(default_factory=AttendanceRules)
    tasks: TaskRules = Field(default_factory=TaskRules)
    badges: BadgeRules = Field(default_factory=BadgeRules)
    behavior: BehaviorRules = Field(default_factory=BehaviorRules)


class CapRule(RuleModel):
    enabled: bool = True
    max_points: int = Field(default=100, ge=0)


class SourceLimitRule(RuleModel):
    daily: CapRule


class LimitRules(RuleModel):
    daily: CapRule = Field(default_factory=lambda: CapRule(enabled=True, max_points=100))
    weekly: CapRule = Field(default_factory=lambda: CapRule(enabled=True, max_points=500))
    monthly: CapRule = Field(default_factory=lambda: CapRule(enabled=False, max_points=2000))
    sources: Dict[str, SourceLimitRule] = Field(
        default_factory=lambda: {
            "attendance": SourceLimitRule(daily=CapRule(enabled=True, max_points=10)),
            "task": SourceLimitRule(daily=CapRule(enabled=True, max_points=50)),
        }
    )

    @field_validator("sources")
    @classmethod
    def known_sources(cls, value: dict) -> dict:
        for source in value:
            if source not in ACTIVITY_SOURCES:
                raise ValueError(f"unknown source '{source}'")
        return value


class ConfigurationCreate(BaseModel):
    activity_points: ActivityPointsRules = Field(default_factory=ActivityPointsRules)
    limits: LimitRules = Field(default_factory=LimitRules)
    created_by: Optional[str] = Field(None, max_length=200)


class ConfigurationResponse(BaseModel):
    version: int
    is_active: bool
    activity_points: Dict[str, Any]
    limits: Dict[str, Any]
    created_by: Optional[str] = None
    created_at: datetime
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ActivateRequest(BaseModel):
    activated_by: Optional[str] = Field(None, max_length=200)


# Level schemas
class LevelCreate(BaseModel):
    level: int = Field(..., ge=1)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    threshold: int = Field(..., ge=0)


class LevelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    threshold: Optional[int] = Field(None, ge=0)


class LevelResponse(BaseModel):
    level: int
    name: str
    threshold: int

    class Config:
        from_attributes = True


# Activity event schemas
class ActivityEvent(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=100)
    source: Literal["attendance", "task", "badge", "behavior"]
    subtype: Optional[str] = Field(None, max_length=100)  # Task category, badge type, behavior polarity
    difficulty: Optional[str] = Field(None, max_length=50)
    streak_day: Optional[int] = Field(None, ge=0)
    perfect_week: bool = False
    description: Optional[str] = Field(None, max_length=500)


class TransactionResponse(BaseModel):
    id: int
    student_id: str
    source: str
    amount: int
    config_version: Optional[int] = None
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="details")
    reversed_transaction_id: Optional[int] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class AwardResponse(BaseModel):
    awarded: int
    new_total: int
    new_level: int
    level_name: str
    points_to_next: Optional[int] = None
    transaction: TransactionResponse


class ReverseRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    reversed_by: Optional[str] = Field(None, max_length=200)


# Account schemas
class LimitUsage(BaseModel):
    enabled: bool
    cap: int
    used: int
    remaining: Optional[int] = None  # None = unbounded
    window_start: datetime


class AccountResponse(BaseModel):
    student_id: str
    total_points: int
    level: int
    level_name: str
    points_to_next: Optional[int] = None
    progress_percentage: float = 0.0
    is_max_level: bool = False
    limits: Dict[str, LimitUsage] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Envelope
class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class SourceTotal(BaseModel):
    source: str
    total_points: int
    count: int


class TransactionSummary(BaseModel):
    student_id: str
    total_points: int
    transaction_count: int
    by_source: List[SourceTotal]
    buckets: Dict[str, int]  # Trailing day/week/month net totals
