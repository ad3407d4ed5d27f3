"""
Point configuration HTTP routes.
"""
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional

from scholarship_points.database import get_db
from scholarship_points.schemas import ConfigurationResponse, ActivateRequest
from scholarship_points.services.configuration_service import ConfigurationService
from .responses import envelope, paginated

router = APIRouter(prefix="/api/points/configuration", tags=["configuration"])


@router.get("")
def get_active_configuration(db: Session = Depends(get_db)):
    """Get the active configuration."""
    return envelope(ConfigurationService(db).get_active(), ConfigurationResponse)


@router.get("/history")
def get_configuration_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Get configuration versions, newest first."""
    items, total = ConfigurationService(db).list_history(page, limit)
    return paginated(items, total, page, limit, ConfigurationResponse)


@router.get("/{version}")
def get_configuration_version(version: int, db: Session = Depends(get_db)):
    return envelope(ConfigurationService(db).get_version(version), ConfigurationResponse)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_configuration(
    payload: Optional[Dict[str, Any]] = Body(None),
    db: Session = Depends(get_db)
):
    """
    Create a new configuration version.

    The body is validated by the service so malformed rules surface as 400.
    """
    return envelope(ConfigurationService(db).create(payload), ConfigurationResponse)


@router.post("/{version}/activate")
def activate_configuration(
    version: int,
    request: Optional[ActivateRequest] = None,
    db: Session = Depends(get_db)
):
    """Activate a version; all other versions are deactivated."""
    activated_by = (request.activated_by if request else None) or "system"
    return envelope(ConfigurationService(db).activate(version, activated_by), ConfigurationResponse)
