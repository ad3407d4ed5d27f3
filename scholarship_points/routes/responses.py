"""
Response envelope helpers shared by all routers.
"""
import math
from typing import Any, List, Optional, Type
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel


def serialize(items: Any, model: Optional[Type[BaseModel]] = None) -> Any:
    """Dump ORM objects (or lists of them) through a response model"""
    if model is None:
        return items
    if isinstance(items, list):
        return [model.model_validate(item).model_dump() for item in items]
    return model.model_validate(items).model_dump()


def envelope(data: Any, model: Optional[Type[BaseModel]] = None) -> dict:
    return {"success": True, "data": jsonable_encoder(serialize(data, model))}


def paginated(
    items: List[Any],
    total: int,
    page: int,
    limit: int,
    model: Optional[Type[BaseModel]] = None
) -> dict:
    """Envelope with pagination: {page, limit, total, pages}"""
    return {
        "success": True,
        "data": jsonable_encoder(serialize(items, model)),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }
