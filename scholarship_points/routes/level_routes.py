"""
Level table HTTP routes.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from scholarship_points.database import get_db
from scholarship_points.schemas import LevelCreate, LevelUpdate, LevelResponse
from scholarship_points.services.level_service import LevelService
from .responses import envelope

router = APIRouter(prefix="/api/points/levels", tags=["levels"])


@router.get("")
def get_levels(db: Session = Depends(get_db)):
    """Get all levels ordered by level number."""
    return envelope(LevelService(db).list_levels(), LevelResponse)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_level(level: LevelCreate, db: Session = Depends(get_db)):
    """Add a level above the current maximum."""
    created = LevelService(db).add_level(level.level, level.threshold, level.name)
    return envelope(created, LevelResponse)


@router.put("/{level}")
def update_level(level: int, level_update: LevelUpdate, db: Session = Depends(get_db)):
    updated = LevelService(db).update_level(level, level_update.name, level_update.threshold)
    return envelope(updated, LevelResponse)


@router.delete("/{level}")
def delete_level(level: int, db: Session = Depends(get_db)):
    LevelService(db).delete_level(level)
    return envelope({"level": level, "deleted": True})
