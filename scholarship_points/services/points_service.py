"""
Points engine service.
Turns activity events into clamped awards under the active configuration,
appends them to the ledger and keeps the account total and level in step.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional, Tuple, TypeVar, Union
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from scholarship_points import config
from scholarship_points.constants import (
    SOURCE_ATTENDANCE,
    SOURCE_TASK,
    SOURCE_BADGE,
    SOURCE_BEHAVIOR,
    SOURCE_ADJUSTMENT,
    BEHAVIOR_POSITIVE,
    BEHAVIOR_NEGATIVE,
    DEFAULT_DIFFICULTY_MULTIPLIER,
)
from scholarship_points.exceptions import (
    ValidationError, NotFoundError, ConflictError, NotConfiguredError
)
from scholarship_points.models import PointTransaction
from scholarship_points.repositories.account_repository import AccountRepository
from scholarship_points.repositories.configuration_repository import ConfigurationRepository
from scholarship_points.repositories.transaction_repository import TransactionRepository
from scholarship_points.schemas import ActivityEvent, ActivityPointsRules
from scholarship_points.services.configuration_service import ConfigurationService
from scholarship_points.services.date_service import DateService, utcnow
from scholarship_points.services.ledger_service import LedgerService
from scholarship_points.services.level_service import LevelService
from scholarship_points.services.limit_service import LimitService
from scholarship_points.services.student_locks import student_locks

logger = logging.getLogger("scholarship_points.engine")

T = TypeVar("T")


@dataclass
class AwardResult:
    awarded: int
    new_total: int
    new_level: int
    level_name: str
    points_to_next: Optional[int]
    transaction: PointTransaction


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero (7.5 -> 8)"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PointsService:
    """Service for points calculation and award persistence"""

    def __init__(self, db: Session):
        self.db = db
        self.config_repo = ConfigurationRepository()
        self.account_repo = AccountRepository()
        self.transaction_repo = TransactionRepository()
        self.ledger = LedgerService(db)
        self.limit_service = LimitService(db)
        self.level_service = LevelService(db)

    # ===== BASE AMOUNTS =====

    def calculate_base_amount(self, event: ActivityEvent, rules: ActivityPointsRules) -> Tuple[int, dict]:
        """
        Calculate the uncapped amount for an event.

        Args:
            event: Activity event
            rules: Activity point rules of the configuration in use

        Returns:
            Tuple of (amount, source-specific metadata)

        Raises:
            ValidationError: If the event does not match the rules
        """
        if event.source == SOURCE_ATTENDANCE:
            return self._attendance_points(event, rules)
        if event.source == SOURCE_TASK:
            return self._task_points(event, rules)
        if event.source == SOURCE_BADGE:
            return self._badge_points(event, rules)
        if event.source == SOURCE_BEHAVIOR:
            return self._behavior_points(event, rules)
        raise ValidationError("source", f"unknown source '{event.source}'")

    def _attendance_points(self, event: ActivityEvent, rules: ActivityPointsRules) -> Tuple[int, dict]:
        """
        Daily check-in points plus streak and perfect-week bonuses.

        Streak bonus applies when streak_day is a positive multiple of the
        configured interval.
        """
        attendance = rules.attendance
        amount = attendance.daily_check_in
        metadata = {"check_in_points": amount}

        streak_day = event.streak_day or 0
        if attendance.streak.enabled and streak_day > 0 and streak_day % attendance.streak.interval == 0:
            amount += attendance.streak.bonus
            metadata["streak_bonus"] = attendance.streak.bonus
        if event.streak_day is not None:
            metadata["streak_day"] = event.streak_day

        if event.perfect_week and attendance.perfect_week.enabled:
            amount += attendance.perfect_week.bonus
            metadata["perfect_week_bonus"] = attendance.perfect_week.bonus

        return amount, metadata

    def _task_points(self, event: ActivityEvent, rules: ActivityPointsRules) -> Tuple[int, dict]:
        """Category base points times difficulty multiplier, rounded half up"""
        tasks = rules.tasks
        category = event.subtype
        if not category or category not in tasks.categories:
            raise ValidationError("subtype", f"unknown task category '{category}'")

        multiplier = DEFAULT_DIFFICULTY_MULTIPLIER
        if event.difficulty is not None:
            if event.difficulty not in tasks.difficulty_multipliers:
                raise ValidationError("difficulty", f"unknown difficulty '{event.difficulty}'")
            multiplier = tasks.difficulty_multipliers[event.difficulty]

        base = tasks.categories[category]
        amount = round_half_up(Decimal(str(base)) * Decimal(str(multiplier)))
        return amount, {
            "category": category,
            "difficulty": event.difficulty,
            "base_category_points": base,
            "applied_multiplier": multiplier,
        }

    def _badge_points(self, event: ActivityEvent, rules: ActivityPointsRules) -> Tuple[int, dict]:
        badges = rules.badges
        if event.subtype and event.subtype in badges.special:
            return badges.special[event.subtype], {"badge_type": event.subtype, "special": True}
        return badges.default, {"badge_type": event.subtype, "special": False}

    def _behavior_points(self, event: ActivityEvent, rules: ActivityPointsRules) -> Tuple[int, dict]:
        if event.subtype == BEHAVIOR_POSITIVE:
            return rules.behavior.positive, {"is_positive": True}
        if event.subtype == BEHAVIOR_NEGATIVE:
            return rules.behavior.negative, {"is_positive": False}
        raise ValidationError("subtype", "behavior events must be 'positive' or 'negative'")

    # ===== AWARDS =====

    def compute_award(
        self,
        event: Union[ActivityEvent, dict],
        now: Optional[datetime] = None
    ) -> AwardResult:
        """
        Compute, clamp and persist the award for an activity event.

        Positive amounts are clamped to the smallest remaining allowance of
        every enabled scope that applies (overall daily/weekly/monthly and the
        source's daily cap). A clamped award may be zero and is still recorded.
        Negative behavior amounts skip all caps.

        Args:
            event: Activity event (model or dict)
            now: Award time; defaults to current UTC time

        Returns:
            AwardResult with awarded amount, new total and resolved level

        Raises:
            ValidationError: If the event is malformed
            NotConfiguredError: If no configuration is active
        """
        if not isinstance(event, ActivityEvent):
            try:
                event = ActivityEvent.model_validate(event)
            except SchemaValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(part) for part in first.get("loc", ())) or "event"
                raise ValidationError(field, first.get("msg", "invalid value"))

        now = DateService.to_naive_utc(now) or utcnow()
        return self._serialized(event.student_id, lambda: self._award_once(event, now))

    def _serialized(self, student_id: str, unit: Callable[[], T]) -> T:
        """
        Run a unit of work under the student's lock, retrying stale account writes.

        Every failure rolls the session back so no partial state survives.
        """
        with student_locks.hold(student_id):
            attempt = 1
            while True:
                try:
                    return unit()
                except StaleDataError:
                    self.db.rollback()
                    if attempt >= config.AWARD_MAX_RETRIES:
                        logger.error(f"Giving up on {student_id} after {attempt} stale account writes")
                        raise
                    logger.warning(f"Stale account write for {student_id}, retry {attempt}")
                    attempt += 1
                except Exception:
                    self.db.rollback()
                    raise

    def _award_once(self, event: ActivityEvent, now: datetime) -> AwardResult:
        levels = self.level_service.list_levels()
        active = self.config_repo.get_active(self.db)
        if not active:
            logger.warning(f"Award for {event.student_id} rejected: no active configuration")
            raise NotConfiguredError()

        activity_rules, limit_rules = ConfigurationService.rules(active)
        base, metadata = self.calculate_base_amount(event, activity_rules)
        metadata["requested_amount"] = base

        account = self.account_repo.get_or_create_for_update(self.db, event.student_id)

        awarded = base
        scopes = []
        if base >= 0:
            scopes = self.limit_service.applicable_scopes(event.source, limit_rules)
            binding_scope = None
            for scope in scopes:
                remaining = self.limit_service.remaining(scope, event.student_id, now, limit_rules)
                if remaining is not None and remaining < awarded:
                    awarded = remaining
                    binding_scope = scope
            awarded = max(awarded, 0)
            if binding_scope:
                metadata["limit_applied"] = True
                metadata["limit_type"] = binding_scope

        transaction = self.ledger.append(
            student_id=event.student_id,
            source=event.source,
            amount=awarded,
            config_version=active.version,
            metadata=metadata,
            description=event.description,
            timestamp=now,
        )

        account.total_points += awarded
        if awarded > 0:
            for scope in scopes:
                self.limit_service.record(scope, event.student_id, awarded, now)
        info = self.level_service.resolve(account.total_points, levels)

        self.db.commit()
        self.db.refresh(transaction)

        if awarded < base:
            logger.info(
                f"Awarded {awarded}/{base} {event.source} points to {event.student_id} "
                f"(capped by {metadata.get('limit_type')}, config v{active.version})"
            )
        else:
            logger.info(
                f"Awarded {awarded} {event.source} points to {event.student_id} "
                f"(config v{active.version})"
            )

        return AwardResult(
            awarded=awarded,
            new_total=account.total_points,
            new_level=info.level,
            level_name=info.name,
            points_to_next=info.points_to_next,
            transaction=transaction,
        )

    # ===== CORRECTIONS =====

    def reverse_transaction(
        self,
        transaction_id: int,
        reason: str,
        reversed_by: str = "system",
        now: Optional[datetime] = None
    ) -> AwardResult:
        """
        Offset a transaction with a new adjustment entry.

        Limit windows are not refunded.

        Raises:
            NotFoundError: If the transaction does not exist
            ConflictError: If it is an adjustment or was already reversed
        """
        original = self.ledger.get(transaction_id)
        if original.source == SOURCE_ADJUSTMENT:
            raise ConflictError("Adjustment entries cannot be reversed", "transaction")

        now = DateService.to_naive_utc(now) or utcnow()
        try:
            return self._serialized(
                original.student_id,
                lambda: self._reverse_once(original, reason, reversed_by, now)
            )
        except IntegrityError:
            # Another worker wrote the reversal first
            raise ConflictError(f"Transaction {transaction_id} has already been reversed", "transaction")

    def _reverse_once(
        self,
        original: PointTransaction,
        reason: str,
        reversed_by: str,
        now: datetime
    ) -> AwardResult:
        levels = self.level_service.list_levels()
        if self.transaction_repo.find_reversal_of(self.db, original.id):
            raise ConflictError(f"Transaction {original.id} has already been reversed", "transaction")

        account = self.account_repo.get_for_update(self.db, original.student_id)
        if not account:
            raise NotFoundError("Point account for student", original.student_id)

        amount = -original.amount
        transaction = self.ledger.append(
            student_id=original.student_id,
            source=SOURCE_ADJUSTMENT,
            amount=amount,
            config_version=None,
            metadata={
                "reversal_reason": reason,
                "reversed_by": reversed_by,
                "reversed_transaction_id": original.id,
                "original_source": original.source,
                "original_amount": original.amount,
            },
            description=f"Reversal: {reason}",
            timestamp=now,
            reversed_transaction_id=original.id,
        )
        account.total_points += amount
        info = self.level_service.resolve(account.total_points, levels)

        self.db.commit()
        self.db.refresh(transaction)

        logger.info(
            f"Reversed transaction {original.id} for {original.student_id} "
            f"({amount:+d} points) by {reversed_by}: {reason}"
        )
        return AwardResult(
            awarded=amount,
            new_total=account.total_points,
            new_level=info.level,
            level_name=info.name,
            points_to_next=info.points_to_next,
            transaction=transaction,
        )
