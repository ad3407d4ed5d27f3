"""
Limit repository - Data access layer for LimitWindow.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from scholarship_points.models import LimitWindow


class LimitWindowRepository:
    """Repository for LimitWindow data access"""

    @staticmethod
    def get(db: Session, student_id: str, scope: str) -> Optional[LimitWindow]:
        return db.query(LimitWindow).filter(
            LimitWindow.student_id == student_id,
            LimitWindow.scope == scope
        ).first()

    @staticmethod
    def get_for_student(db: Session, student_id: str) -> List[LimitWindow]:
        return db.query(LimitWindow).filter(LimitWindow.student_id == student_id).all()

    @staticmethod
    def add(db: Session, window: LimitWindow) -> LimitWindow:
        """Stage a new window (caller commits)"""
        db.add(window)
        db.flush()
        return window

    @staticmethod
    def delete(db: Session, window: LimitWindow) -> None:
        """Stage deletion (caller commits)"""
        db.delete(window)

    @staticmethod
    def get_started_before(db: Session, moment: datetime) -> List[LimitWindow]:
        return db.query(LimitWindow).filter(LimitWindow.window_start < moment).all()
