from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from pathlib import Path

from scholarship_points import config, __version__
from scholarship_points.constants import DEFAULT_LOG_DIRECTORY_PROD, DEFAULT_LOG_DIRECTORY_DEV
from scholarship_points.database import engine, Base, SessionLocal
from scholarship_points import models  # noqa: F401  Register models with Base
from scholarship_points.exceptions import (
    PointsEngineError, ValidationError, NotFoundError, ConflictError, NotConfiguredError
)
from scholarship_points.repositories.level_repository import LevelRepository
from scholarship_points.routes import configuration_router, level_router, points_router
from scholarship_points.scheduler import start_scheduler, stop_scheduler

LOG_DIR = config.LOG_DIR or DEFAULT_LOG_DIRECTORY_PROD

# Create log directory if it doesn't exist (for development)
try:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / config.LOG_FILE
except PermissionError:
    # Fallback to local directory if no permissions for /var/log
    LOG_DIR = DEFAULT_LOG_DIRECTORY_DEV
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / config.LOG_FILE

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger("scholarship_points")

# Create database tables and seed the level table
Base.metadata.create_all(bind=engine)
_seed_db = SessionLocal()
try:
    LevelRepository.seed_defaults(_seed_db)
finally:
    _seed_db.close()

app = FastAPI(
    title="Scholarship Points API",
    description="Configurable points, caps and levels for student activity",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(configuration_router)
app.include_router(level_router)
app.include_router(points_router)

STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (NotConfiguredError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


@app.exception_handler(PointsEngineError)
async def points_engine_error_handler(request: Request, exc: PointsEngineError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": str(exc),
            "error": type(exc).__name__,
        }
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    logger.info(f"Scholarship Points API started. Logging to: {log_path}")
    if config.SCHEDULER_ENABLED:
        start_scheduler()


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Scholarship Points API")
    stop_scheduler()


# Health check
@app.get("/")
async def root():
    return {"message": "Scholarship Points API", "status": "active", "version": __version__}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
