"""
Level table service.
Resolves point totals to levels and guards the ordering of level thresholds.
"""
import bisect
import logging
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy.orm import Session

from scholarship_points import config
from scholarship_points.constants import LEVEL_NAME_TEMPLATE
from scholarship_points.exceptions import ValidationError, NotFoundError, ConflictError
from scholarship_points.models import Level
from scholarship_points.repositories.account_repository import AccountRepository
from scholarship_points.repositories.level_repository import LevelRepository

logger = logging.getLogger("scholarship_points.levels")


@dataclass
class LevelInfo:
    level: int
    name: str
    threshold: int
    points_to_next: Optional[int]  # None at the max level
    progress_percentage: float  # Progress from this level's threshold to the next, 0-100
    is_max_level: bool


class LevelService:
    """Service for level management and resolution"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = LevelRepository()
        self.account_repo = AccountRepository()

    def list_levels(self) -> List[Level]:
        """Get all levels ordered by level number (seeds defaults if empty)"""
        levels = self.repo.get_all(self.db)
        if not levels:
            levels = self.repo.seed_defaults(self.db)
        return levels

    def resolve(self, total_points: int, levels: Optional[List[Level]] = None) -> LevelInfo:
        """
        Resolve a point total to the highest level whose threshold it reaches.

        Totals below level 1's threshold still resolve to the lowest level.

        Args:
            total_points: Cumulative points (may be negative)
            levels: Pre-loaded levels in ascending order (loaded if omitted)

        Returns:
            LevelInfo with points needed for the next level
        """
        if levels is None:
            levels = self.list_levels()

        thresholds = [lvl.threshold for lvl in levels]
        index = max(bisect.bisect_right(thresholds, total_points) - 1, 0)
        current = levels[index]

        points_to_next = None
        progress = 100.0
        if index + 1 < len(levels):
            next_threshold = levels[index + 1].threshold
            points_to_next = next_threshold - total_points
            span = next_threshold - current.threshold
            progress = (total_points - current.threshold) / span * 100
        progress = round(min(100.0, max(0.0, progress)), 1)

        return LevelInfo(
            level=current.level,
            name=current.name,
            threshold=current.threshold,
            points_to_next=points_to_next,
            progress_percentage=progress,
            is_max_level=points_to_next is None,
        )

    def add_level(self, level: int, threshold: int, name: Optional[str] = None) -> Level:
        """
        Add a level directly above the current maximum.

        Raises:
            ValidationError: If level or threshold is out of range
            ConflictError: If level is not max + 1 or threshold does not exceed the max threshold
        """
        if level < 1:
            raise ValidationError("level", "must be a positive integer")
        if threshold < 0:
            raise ValidationError("threshold", "must be non-negative")

        levels = self.list_levels()
        top = levels[-1]
        if level != top.level + 1:
            raise ConflictError(
                f"New level must be {top.level + 1} (current maximum is {top.level})", "level"
            )
        if threshold <= top.threshold:
            raise ConflictError(
                f"Threshold must be greater than {top.threshold} (level {top.level})", "level"
            )

        new_level = Level(
            level=level,
            name=name or LEVEL_NAME_TEMPLATE.format(level=level),
            threshold=threshold,
        )
        self.repo.add(self.db, new_level)
        logger.info(f"Added level {level} '{new_level.name}' at {threshold} points")
        return new_level

    def update_level(
        self,
        level: int,
        name: Optional[str] = None,
        threshold: Optional[int] = None
    ) -> Level:
        """
        Rename a level and/or move its threshold between its neighbors.

        Level 1 may go as low as 0; the max level has no upper bound.

        Raises:
            NotFoundError: If the level does not exist
            ValidationError: If threshold is negative
            ConflictError: If threshold leaves the open interval of its neighbors
        """
        levels = self.list_levels()
        numbers = [lvl.level for lvl in levels]
        if level not in numbers:
            raise NotFoundError("Level", level)

        index = numbers.index(level)
        target = levels[index]

        if threshold is not None and threshold != target.threshold:
            if threshold < 0:
                raise ValidationError("threshold", "must be non-negative")
            if index > 0 and threshold <= levels[index - 1].threshold:
                raise ConflictError(
                    f"Threshold must be greater than {levels[index - 1].threshold} "
                    f"(level {levels[index - 1].level})",
                    "level"
                )
            if index + 1 < len(levels) and threshold >= levels[index + 1].threshold:
                raise ConflictError(
                    f"Threshold must be less than {levels[index + 1].threshold} "
                    f"(level {levels[index + 1].level})",
                    "level"
                )
            target.threshold = threshold

        if name:
            target.name = name

        self.repo.update(self.db, target)
        logger.info(f"Updated level {level}: name='{target.name}', threshold={target.threshold}")
        return target

    def delete_level(self, level: int) -> None:
        """
        Delete a level above the protected floor that no account currently holds.

        Raises:
            NotFoundError: If the level does not exist
            ConflictError: If the level is protected or held by an account
        """
        levels = self.list_levels()
        numbers = [lvl.level for lvl in levels]
        if level not in numbers:
            raise NotFoundError("Level", level)

        if level <= config.PROTECTED_LEVEL_FLOOR:
            raise ConflictError(
                f"Cannot delete core levels (1-{config.PROTECTED_LEVEL_FLOOR})", "level"
            )

        index = numbers.index(level)
        target = levels[index]
        upper = levels[index + 1].threshold if index + 1 < len(levels) else None

        holders = self.account_repo.count_in_range(self.db, target.threshold, upper)
        if index == 0:
            holders += self.account_repo.count_below(self.db, target.threshold)
        if holders:
            logger.warning(f"Refused to delete level {level}: held by {holders} account(s)")
            raise ConflictError(
                f"Level {level} is currently held by {holders} account(s)", "level"
            )

        self.repo.delete(self.db, target)
        logger.info(f"Deleted level {level}")
