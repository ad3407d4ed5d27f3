"""
Account repository - Data access layer for PointAccount.
"""
from typing import Optional
from sqlalchemy.orm import Session

from scholarship_points.models import PointAccount


class AccountRepository:
    """Repository for PointAccount data access"""

    @staticmethod
    def get(db: Session, student_id: str) -> Optional[PointAccount]:
        return db.query(PointAccount).filter(PointAccount.student_id == student_id).first()

    @staticmethod
    def get_for_update(db: Session, student_id: str) -> Optional[PointAccount]:
        """
        Get account with a row lock held until the surrounding transaction ends.

        NOTE: On SQLite, with_for_update() is a no-op and the database-level
        write lock serializes writers instead.
        """
        return db.query(PointAccount).filter(
            PointAccount.student_id == student_id
        ).with_for_update().first()

    @staticmethod
    def get_or_create_for_update(db: Session, student_id: str) -> PointAccount:
        """Get locked account, staging a zero-balance account if missing (caller commits)"""
        account = AccountRepository.get_for_update(db, student_id)
        if account is None:
            account = PointAccount(student_id=student_id, total_points=0)
            db.add(account)
            db.flush()
        return account

    @staticmethod
    def count_in_range(db: Session, lower: int, upper: Optional[int]) -> int:
        """Count accounts with lower <= total_points < upper (no upper bound if None)"""
        query = db.query(PointAccount).filter(PointAccount.total_points >= lower)
        if upper is not None:
            query = query.filter(PointAccount.total_points < upper)
        return query.count()

    @staticmethod
    def count_below(db: Session, upper: int) -> int:
        return db.query(PointAccount).filter(PointAccount.total_points < upper).count()
