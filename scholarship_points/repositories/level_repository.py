"""
Level repository - Data access layer for Level.
"""
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scholarship_points.constants import DEFAULT_LEVELS
from scholarship_points.models import Level


class LevelRepository:
    """Repository for Level data access"""

    @staticmethod
    def get_all(db: Session) -> List[Level]:
        """Get all levels ordered by level number"""
        return db.query(Level).order_by(Level.level).all()

    @staticmethod
    def seed_defaults(db: Session) -> List[Level]:
        """
        Insert the default level table if it is empty.

        A concurrent seeder winning the race is not an error: the losing
        insert is rolled back and the winner's rows are read instead. Must be
        called with nothing else staged on the session.

        Returns:
            Levels in ascending order
        """
        if db.query(Level).count() == 0:
            try:
                for number, name, threshold in DEFAULT_LEVELS:
                    db.add(Level(level=number, name=name, threshold=threshold))
                db.commit()
            except IntegrityError:
                db.rollback()
        return LevelRepository.get_all(db)

    @staticmethod
    def get_by_level(db: Session, level: int) -> Optional[Level]:
        return db.query(Level).filter(Level.level == level).first()

    @staticmethod
    def add(db: Session, level: Level) -> Level:
        db.add(level)
        db.commit()
        db.refresh(level)
        return level

    @staticmethod
    def update(db: Session, level: Level) -> Level:
        db.commit()
        db.refresh(level)
        return level

    @staticmethod
    def delete(db: Session, level: Level) -> None:
        db.delete(level)
        db.commit()
