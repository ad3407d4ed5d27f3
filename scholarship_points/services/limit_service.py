"""
Limit tracker service.
Tracks per-student rolling sums for each cap scope over UTC calendar windows.
Writes are staged on the caller's session; the award transaction commits them.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from scholarship_points.constants import OVERALL_SCOPES, SOURCE_SCOPE_SUFFIX
from scholarship_points.models import LimitWindow
from scholarship_points.repositories.limit_repository import LimitWindowRepository
from scholarship_points.schemas import CapRule, LimitRules
from scholarship_points.services.date_service import DateService

logger = logging.getLogger("scholarship_points.limits")


class LimitService:
    """Service for point cap tracking"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = LimitWindowRepository()
        self.date_service = DateService()

    @staticmethod
    def source_scope(source: str) -> str:
        return f"{source}{SOURCE_SCOPE_SUFFIX}"

    def applicable_scopes(self, source: str, limits: LimitRules) -> List[str]:
        """Scopes an award from source counts against (enabled or not)"""
        scopes = list(OVERALL_SCOPES)
        if source in limits.sources:
            scopes.append(self.source_scope(source))
        return scopes

    def cap_for(self, scope: str, limits: LimitRules) -> Optional[CapRule]:
        """Cap rule for scope, or None if the configuration has none"""
        if scope in OVERALL_SCOPES:
            return getattr(limits, scope)
        if scope.endswith(SOURCE_SCOPE_SUFFIX):
            source_rule = limits.sources.get(scope[:-len(SOURCE_SCOPE_SUFFIX)])
            return source_rule.daily if source_rule else None
        return None

    def _current_window(self, scope: str, student_id: str, now: datetime) -> Optional[LimitWindow]:
        """
        Get the stored window for (student, scope), rolled forward to now.

        If now has crossed the window boundary, the sum resets to 0 and the
        window start advances before anything reads it.
        """
        window = self.repo.get(self.db, student_id, scope)
        if window is None:
            return None

        start = self.date_service.window_start(scope, now)
        if start > window.window_start:
            logger.debug(
                f"Window rollover for {student_id}/{scope}: "
                f"{window.window_start.isoformat()} -> {start.isoformat()}"
            )
            window.window_start = start
            window.accumulated = 0
        return window

    def remaining(
        self,
        scope: str,
        student_id: str,
        now: datetime,
        limits: LimitRules
    ) -> Optional[int]:
        """
        Get the remaining allowance for a scope.

        Args:
            scope: daily, weekly, monthly or <source>_daily
            student_id: Student to check
            now: Current time (naive UTC)
            limits: Limit rules of the configuration in use

        Returns:
            Remaining points (floored at 0), or None if the scope is unbounded
        """
        cap = self.cap_for(scope, limits)
        if cap is None or not cap.enabled:
            return None

        window = self._current_window(scope, student_id, now)
        used = window.accumulated if window else 0
        return max(cap.max_points - used, 0)

    def record(self, scope: str, student_id: str, amount: int, now: datetime) -> LimitWindow:
        """Add a finalized award to the scope's rolling sum"""
        window = self._current_window(scope, student_id, now)
        if window is None:
            window = self.repo.add(self.db, LimitWindow(
                student_id=student_id,
                scope=scope,
                window_start=self.date_service.window_start(scope, now),
                accumulated=0,
            ))
        window.accumulated += amount
        return window

    def usage(self, student_id: str, now: datetime, limits: LimitRules) -> Dict[str, dict]:
        """
        Report usage for every configured scope without modifying stored windows.

        Returns:
            Mapping of scope to enabled/cap/used/remaining/window_start
        """
        stored = {w.scope: w for w in self.repo.get_for_student(self.db, student_id)}
        scopes = list(OVERALL_SCOPES) + [self.source_scope(s) for s in limits.sources]

        report = {}
        for scope in scopes:
            cap = self.cap_for(scope, limits)
            start = self.date_service.window_start(scope, now)
            window = stored.get(scope)
            used = window.accumulated if window and window.window_start >= start else 0
            report[scope] = {
                "enabled": cap.enabled,
                "cap": cap.max_points,
                "used": used,
                "remaining": max(cap.max_points - used, 0) if cap.enabled else None,
                "window_start": start,
            }
        return report

    def purge_expired(self, now: datetime) -> int:
        """
        Delete windows that closed before now.

        Returns:
            Number of windows deleted
        """
        removed = 0
        today = self.date_service.start_of_day(now)
        try:
            for window in self.repo.get_started_before(self.db, today):
                if self.date_service.window_end(window.scope, window.window_start) <= now:
                    self.repo.delete(self.db, window)
                    removed += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if removed:
            logger.info(f"Purged {removed} expired limit window(s)")
        return removed
