from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, UniqueConstraint, Index, text
)

from scholarship_points.database import Base
from scholarship_points.services.date_service import utcnow


class PointConfiguration(Base):
    __tablename__ = "point_configurations"

    id = Column(Integer, primary_key=True, index=True)
    version = Column(Integer, nullable=False, unique=True, index=True)
    is_active = Column(Boolean, default=False, nullable=False, index=True)

    # Rule snapshot (immutable once created)
    activity_points = Column(JSON, nullable=False)
    limits = Column(JSON, nullable=False)

    created_by = Column(String, default="system")
    created_at = Column(DateTime, default=utcnow)
    # Last activation/deactivation
    updated_by = Column(String, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        # At most one active version
        Index(
            "uq_point_configurations_single_active",
            "is_active",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )


class Level(Base):
    __tablename__ = "levels"

    level = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    threshold = Column(Integer, nullable=False)  # Points required to reach this level
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class PointAccount(Base):
    __tablename__ = "point_accounts"

    student_id = Column(String, primary_key=True)
    total_points = Column(Integer, default=0, nullable=False)  # Sum of all ledger amounts
    version = Column(Integer, nullable=False)  # Optimistic lock counter
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}


class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String, ForeignKey("point_accounts.student_id"), nullable=False, index=True)
    source = Column(String, nullable=False)  # attendance, task, badge, behavior, adjustment
    amount = Column(Integer, nullable=False)  # Negative only for penalties and reversals
    config_version = Column(Integer, nullable=True)  # None for reversal adjustments
    description = Column(String, nullable=True)
    details = Column("metadata", JSON, default=dict)  # Source-specific data
    # Set on adjustments only; one reversal per entry
    reversed_transaction_id = Column(
        Integer, ForeignKey("point_transactions.id"), nullable=True, unique=True, index=True
    )
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_point_transactions_student_timestamp", "student_id", "timestamp"),
    )


class LimitWindow(Base):
    __tablename__ = "limit_windows"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String, nullable=False, index=True)
    scope = Column(String, nullable=False)  # daily, weekly, monthly, <source>_daily
    window_start = Column(DateTime, nullable=False)
    accumulated = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("student_id", "scope", name="uq_limit_windows_student_scope"),
    )
