"""
Configuration repository - Data access layer for PointConfiguration.
Rows are append-only: only the activation flag and its audit fields change.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from scholarship_points.models import PointConfiguration


class ConfigurationRepository:
    """Repository for PointConfiguration data access"""

    @staticmethod
    def get_active(db: Session) -> Optional[PointConfiguration]:
        """Get the active configuration (highest version wins if data is inconsistent)"""
        return db.query(PointConfiguration).filter(
            PointConfiguration.is_active == True
        ).order_by(PointConfiguration.version.desc()).first()

    @staticmethod
    def get_by_version(db: Session, version: int) -> Optional[PointConfiguration]:
        return db.query(PointConfiguration).filter(
            PointConfiguration.version == version
        ).first()

    @staticmethod
    def get_max_version(db: Session) -> int:
        """Highest version number, 0 if none exists"""
        return db.query(func.max(PointConfiguration.version)).scalar() or 0

    @staticmethod
    def count(db: Session) -> int:
        return db.query(PointConfiguration).count()

    @staticmethod
    def get_history(db: Session, skip: int, limit: int) -> List[PointConfiguration]:
        """Get configurations ordered by version descending"""
        return db.query(PointConfiguration).order_by(
            PointConfiguration.version.desc()
        ).offset(skip).limit(limit).all()

    @staticmethod
    def add(db: Session, config: PointConfiguration) -> PointConfiguration:
        """Stage a new configuration (caller commits)"""
        db.add(config)
        db.flush()
        return config

    @staticmethod
    def lock_all(db: Session) -> List[PointConfiguration]:
        """
        Lock every configuration row until the transaction ends.

        Serializes activations on databases with row locks; SQLite ignores
        FOR UPDATE and serializes writers on its own database lock.
        """
        return db.query(PointConfiguration).order_by(
            PointConfiguration.version
        ).with_for_update().populate_existing().all()

    @staticmethod
    def deactivate_all_except(db: Session, version: int, updated_by: str, when: datetime) -> int:
        """Deactivate every active configuration other than version (caller commits)"""
        return db.query(PointConfiguration).filter(
            PointConfiguration.is_active == True,
            PointConfiguration.version != version
        ).update(
            {
                PointConfiguration.is_active: False,
                PointConfiguration.updated_by: updated_by,
                PointConfiguration.updated_at: when,
            },
            synchronize_session="fetch"
        )
