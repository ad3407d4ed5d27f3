from .configuration_routes import router as configuration_router
from .level_routes import router as level_router
from .points_routes import router as points_router

__all__ = ["configuration_router", "level_router", "points_router"]
