"""
Shared fixtures for points engine tests.
"""
import os
import tempfile

# Must be set before scholarship_points.config is imported
os.environ.setdefault("POINTS_DATABASE_URL", "sqlite://")
os.environ.setdefault("POINTS_LOG_DIR", os.path.join(tempfile.gettempdir(), "scholarship-points-tests"))
os.environ.setdefault("POINTS_SCHEDULER_ENABLED", "false")

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from scholarship_points.database import Base, get_db
from scholarship_points import models  # noqa: F401
from scholarship_points.services.configuration_service import ConfigurationService


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    """Wednesday 2024-03-13 10:00 UTC (week started Sunday 2024-03-10)"""
    return datetime(2024, 3, 13, 10, 0, 0)


@pytest.fixture
def default_config(db_session):
    """First configuration with default rules (active)"""
    return ConfigurationService(db_session).create()


@pytest.fixture
def make_config(db_session):
    """Create a configuration from a partial payload and make it active"""
    def _make(activity_points=None, limits=None):
        service = ConfigurationService(db_session)
        config = service.create({
            "activity_points": activity_points or {},
            "limits": limits or {},
        })
        if not config.is_active:
            config = service.activate(config.version, "tests")
        return config
    return _make


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from scholarship_points.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
