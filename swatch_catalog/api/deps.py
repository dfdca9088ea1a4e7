# swatch_catalog/api/deps.py
from typing import List, Optional

from fastapi import HTTPException, Query, status

from swatch_catalog.config import settings
from swatch_catalog.core.query import SORT_OPTIONS, QueryState
from swatch_catalog.database import db
from swatch_catalog.storage import storage


def get_db():
    """
    Dependency that returns the file-backed DB object.
    Usage:
        db = Depends(get_db)
    """
    return db


def get_storage():
    """Dependency returning the object storage for product images."""
    return storage


def get_query_state(
    q: str = Query("", description="text matched against name, design no and fabric name"),
    supplier: Optional[str] = Query(None, description="exact fabric supplier"),
    category: Optional[str] = None,
    tags: List[str] = Query([], description="match products having any of these tags"),
    fabric_type: Optional[str] = Query(None, description="substring of fabric name"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort: str = Query("newest", description=" | ".join(SORT_OPTIONS)),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
) -> QueryState:
    """
    Build the catalog QueryState from URL parameters. Parameter names match
    QueryState.to_query_string(), so the canonical query of a response can be
    requested again as-is.
    """
    try:
        return QueryState(
            q=q,
            supplier=supplier,
            category=category,
            tags=frozenset(tags),
            fabric_type=fabric_type,
            min_price=min_price,
            max_price=max_price,
            sort=sort,
            page=page,
            page_size=page_size,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
