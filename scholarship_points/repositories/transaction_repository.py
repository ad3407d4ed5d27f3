"""
Transaction repository - Data access layer for PointTransaction.
The ledger is append-only: this repository has no update or delete helpers.
"""
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import func, asc, desc
from sqlalchemy.orm import Session

from scholarship_points.models import PointTransaction


class TransactionRepository:
    """Repository for PointTransaction data access"""

    @staticmethod
    def append(db: Session, transaction: PointTransaction) -> PointTransaction:
        """Stage a new ledger entry and assign its id (caller commits)"""
        db.add(transaction)
        db.flush()
        return transaction

    @staticmethod
    def get_by_id(db: Session, transaction_id: int) -> Optional[PointTransaction]:
        return db.query(PointTransaction).filter(PointTransaction.id == transaction_id).first()

    @staticmethod
    def _filtered(
        db: Session,
        student_id: str,
        source: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ):
        query = db.query(PointTransaction).filter(PointTransaction.student_id == student_id)
        if source:
            query = query.filter(PointTransaction.source == source)
        if start:
            query = query.filter(PointTransaction.timestamp >= start)
        if end:
            query = query.filter(PointTransaction.timestamp < end)
        return query

    @staticmethod
    def query_page(
        db: Session,
        student_id: str,
        skip: int,
        limit: int,
        sort: str = "timestamp",
        order: str = "desc",
        source: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Tuple[List[PointTransaction], int]:
        """
        Get one page of a student's transactions.

        Returns:
            Tuple of (transactions, total matching count)
        """
        query = TransactionRepository._filtered(db, student_id, source, start, end)
        total = query.count()

        direction = asc if order == "asc" else desc
        column = getattr(PointTransaction, sort)
        ordering = [direction(column)]
        if sort != "id":
            ordering.append(direction(PointTransaction.id))

        items = query.order_by(*ordering).offset(skip).limit(limit).all()
        return items, total

    @staticmethod
    def get_in_range(
        db: Session,
        student_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[PointTransaction]:
        """Get transactions in [start, end) ordered by timestamp"""
        return TransactionRepository._filtered(db, student_id, start=start, end=end).order_by(
            PointTransaction.timestamp, PointTransaction.id
        ).all()

    @staticmethod
    def sum_amounts(db: Session, student_id: str, since: Optional[datetime] = None) -> int:
        query = db.query(func.coalesce(func.sum(PointTransaction.amount), 0)).filter(
            PointTransaction.student_id == student_id
        )
        if since:
            query = query.filter(PointTransaction.timestamp >= since)
        return int(query.scalar())

    @staticmethod
    def totals_by_source(db: Session, student_id: str) -> List[Tuple[str, int, int]]:
        """Get (source, total amount, count) rows for a student"""
        rows = db.query(
            PointTransaction.source,
            func.sum(PointTransaction.amount),
            func.count(PointTransaction.id)
        ).filter(
            PointTransaction.student_id == student_id
        ).group_by(PointTransaction.source).order_by(PointTransaction.source).all()
        return [(source, int(total or 0), int(count)) for source, total, count in rows]

    @staticmethod
    def find_reversal_of(db: Session, transaction_id: int) -> Optional[PointTransaction]:
        """Find the adjustment entry that reverses transaction_id, if any"""
        return db.query(PointTransaction).filter(
            PointTransaction.reversed_transaction_id == transaction_id
        ).first()
