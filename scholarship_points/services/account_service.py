"""
Point account service.
Accounts are a projection of the ledger: total plus the level derived from it.
"""
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session

from scholarship_points.exceptions import NotFoundError
from scholarship_points.models import PointAccount
from scholarship_points.repositories.account_repository import AccountRepository
from scholarship_points.repositories.configuration_repository import ConfigurationRepository
from scholarship_points.repositories.transaction_repository import TransactionRepository
from scholarship_points.services.configuration_service import ConfigurationService
from scholarship_points.services.date_service import DateService, utcnow
from scholarship_points.services.level_service import LevelService
from scholarship_points.services.limit_service import LimitService
from scholarship_points.services.student_locks import student_locks

logger = logging.getLogger("scholarship_points.accounts")


class AccountService:
    """Service for reading and reconciling point accounts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AccountRepository()
        self.config_repo = ConfigurationRepository()
        self.transaction_repo = TransactionRepository()
        self.level_service = LevelService(db)
        self.limit_service = LimitService(db)

    def get(self, student_id: str) -> PointAccount:
        account = self.repo.get(self.db, student_id)
        if not account:
            raise NotFoundError("Point account for student", student_id)
        return account

    def get_account(self, student_id: str, now: Optional[datetime] = None) -> dict:
        """
        Get a student's total, derived level and current limit usage.

        Limit usage is empty when no configuration is active.

        Raises:
            NotFoundError: If the student has no account yet
        """
        account = self.get(student_id)
        now = DateService.to_naive_utc(now) or utcnow()
        info = self.level_service.resolve(account.total_points)

        limits = {}
        active = self.config_repo.get_active(self.db)
        if active:
            _, limit_rules = ConfigurationService.rules(active)
            limits = self.limit_service.usage(student_id, now, limit_rules)

        return {
            "student_id": account.student_id,
            "total_points": account.total_points,
            "level": info.level,
            "level_name": info.name,
            "points_to_next": info.points_to_next,
            "progress_percentage": info.progress_percentage,
            "is_max_level": info.is_max_level,
            "limits": limits,
            "created_at": account.created_at,
            "updated_at": account.updated_at,
        }

    def reconcile(self, student_id: str) -> PointAccount:
        """
        Recompute an account's total from the ledger, fixing any drift.

        Returns:
            The reconciled account
        """
        with student_locks.hold(student_id):
            try:
                account = self.repo.get_for_update(self.db, student_id)
                if not account:
                    raise NotFoundError("Point account for student", student_id)

                ledger_total = self.transaction_repo.sum_amounts(self.db, student_id)
                if account.total_points != ledger_total:
                    logger.warning(
                        f"Account {student_id} drifted: stored {account.total_points}, "
                        f"ledger {ledger_total}"
                    )
                    account.total_points = ledger_total
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(account)
        return account
