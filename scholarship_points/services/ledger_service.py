"""
Transaction ledger service.
Append-only log of point-affecting events; every aggregate here is computed
from the ledger on demand and never stored.
"""
import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from scholarship_points.constants import (
    SOURCE_TASK,
    SUMMARY_BUCKETS,
    TIME_SERIES_INTERVALS,
    TRANSACTION_SORT_FIELDS,
    SORT_ORDERS,
    TRANSACTION_SOURCES,
)
from scholarship_points.exceptions import ValidationError, NotFoundError
from scholarship_points.models import PointTransaction
from scholarship_points.repositories.transaction_repository import TransactionRepository
from scholarship_points.services.date_service import DateService, utcnow

logger = logging.getLogger("scholarship_points.ledger")


class LedgerService:
    """Service for the point transaction ledger"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TransactionRepository()
        self.date_service = DateService()

    def append(
        self,
        student_id: str,
        source: str,
        amount: int,
        config_version: Optional[int],
        metadata: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        reversed_transaction_id: Optional[int] = None
    ) -> PointTransaction:
        """
        Stage a new ledger entry on the current session (caller commits).

        Returns:
            The transaction with its id assigned
        """
        transaction = PointTransaction(
            student_id=student_id,
            source=source,
            amount=amount,
            config_version=config_version,
            details=metadata or {},
            description=description,
            timestamp=timestamp or utcnow(),
            reversed_transaction_id=reversed_transaction_id,
        )
        return self.repo.append(self.db, transaction)

    def get(self, transaction_id: int) -> PointTransaction:
        transaction = self.repo.get_by_id(self.db, transaction_id)
        if not transaction:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    def query(
        self,
        student_id: str,
        page: int = 1,
        limit: int = 20,
        sort: str = "timestamp",
        order: str = "desc",
        source: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Tuple[List[PointTransaction], int]:
        """
        Get one page of a student's ledger.

        Args:
            student_id: Student whose ledger to read
            page: 1-based page number
            limit: Page size
            sort: timestamp, amount or id (id breaks ties)
            order: asc or desc
            source: Optional source filter
            start: Inclusive lower bound on timestamp
            end: Exclusive upper bound on timestamp

        Returns:
            Tuple of (transactions, total count)
        """
        if sort not in TRANSACTION_SORT_FIELDS:
            raise ValidationError("sort", f"must be one of {', '.join(TRANSACTION_SORT_FIELDS)}")
        if order not in SORT_ORDERS:
            raise ValidationError("order", "must be 'asc' or 'desc'")
        if source is not None and source not in TRANSACTION_SOURCES:
            raise ValidationError("source", f"unknown source '{source}'")
        if page < 1 or limit < 1:
            raise ValidationError("page", "page and limit must be positive")

        return self.repo.query_page(
            self.db,
            student_id,
            skip=(page - 1) * limit,
            limit=limit,
            sort=sort,
            order=order,
            source=source,
            start=self.date_service.to_naive_utc(start),
            end=self.date_service.to_naive_utc(end),
        )

    def total(self, student_id: str) -> int:
        """Sum of every ledger amount for a student"""
        return self.repo.sum_amounts(self.db, student_id)

    def summary(self, student_id: str, now: Optional[datetime] = None) -> dict:
        """
        Aggregate a student's ledger by source and by trailing time buckets.

        Buckets are trailing windows ending at now: day = 24h, week = 7 days,
        month = 30 days.
        """
        now = self.date_service.to_naive_utc(now) or utcnow()
        by_source = [
            {"source": source, "total_points": total, "count": count}
            for source, total, count in self.repo.totals_by_source(self.db, student_id)
        ]
        buckets = {
            name: self.repo.sum_amounts(self.db, student_id, since=now - timedelta(days=days))
            for name, days in SUMMARY_BUCKETS.items()
        }
        return {
            "student_id": student_id,
            "total_points": sum(row["total_points"] for row in by_source),
            "transaction_count": sum(row["count"] for row in by_source),
            "by_source": by_source,
            "buckets": buckets,
        }

    def time_series(
        self,
        student_id: str,
        interval: str = "day",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[dict]:
        """
        Group a student's ledger into UTC calendar buckets for charts.

        Returns:
            Buckets in chronological order with earned/penalties/net/count
        """
        if interval not in TIME_SERIES_INTERVALS:
            raise ValidationError("interval", f"must be one of {', '.join(TIME_SERIES_INTERVALS)}")

        transactions = self.repo.get_in_range(
            self.db,
            student_id,
            start=self.date_service.to_naive_utc(start),
            end=self.date_service.to_naive_utc(end),
        )

        series: "OrderedDict[datetime, dict]" = OrderedDict()
        for tx in transactions:
            key = self.date_service.bucket_start(interval, tx.timestamp)
            bucket = series.setdefault(key, {
                "period_start": key,
                "earned": 0,
                "penalties": 0,
                "net": 0,
                "transactions": 0,
            })
            if tx.amount >= 0:
                bucket["earned"] += tx.amount
            else:
                bucket["penalties"] += -tx.amount
            bucket["net"] += tx.amount
            bucket["transactions"] += 1

        return list(series.values())

    def category_breakdown(self, student_id: str, since: Optional[datetime] = None) -> dict:
        """
        Break positive awards down by source and by task category.

        Args:
            student_id: Student to analyse
            since: Only include transactions at or after this time

        Returns:
            Dictionary with summary, categories and task_categories
        """
        transactions = self.repo.get_in_range(
            self.db, student_id, start=self.date_service.to_naive_utc(since)
        )
        earned = [tx for tx in transactions if tx.amount > 0]

        sources: Dict[str, dict] = {}
        task_categories: Dict[str, dict] = {}
        for tx in earned:
            row = sources.setdefault(tx.source, {
                "category": tx.source,
                "total_points": 0,
                "transaction_count": 0,
                "first_earned": tx.timestamp,
                "last_earned": tx.timestamp,
            })
            row["total_points"] += tx.amount
            row["transaction_count"] += 1
            row["last_earned"] = tx.timestamp

            category = (tx.details or {}).get("category")
            if tx.source == SOURCE_TASK and category:
                task_row = task_categories.setdefault(category, {
                    "category": category,
                    "total_points": 0,
                    "transaction_count": 0,
                })
                task_row["total_points"] += tx.amount
                task_row["transaction_count"] += 1

        total_points = sum(row["total_points"] for row in sources.values())
        total_count = sum(row["transaction_count"] for row in sources.values())

        categories = sorted(sources.values(), key=lambda r: r["total_points"], reverse=True)
        for row in categories:
            row["average_per_transaction"] = round(row["total_points"] / row["transaction_count"], 1)
            row["percentage"] = round(row["total_points"] / total_points * 100, 1) if total_points else 0.0

        tasks = sorted(task_categories.values(), key=lambda r: r["total_points"], reverse=True)
        for row in tasks:
            row["average_per_task"] = round(row["total_points"] / row["transaction_count"], 1)

        return {
            "summary": {
                "total_points": total_points,
                "total_transactions": total_count,
                "average_per_transaction": round(total_points / total_count, 1) if total_count else 0.0,
            },
            "categories": categories,
            "task_categories": tasks,
        }
