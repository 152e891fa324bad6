"""
Dependency Injection
FastAPI dependencies for database, cache, event dispatch and request context.
"""

import logging
from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ..caching import RedisCache, ZoneStatsStore, get_cache
from ..db.session import get_session_factory
from ..events.dispatcher import EventDispatcher, get_dispatcher

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Use as FastAPI dependency:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_redis_cache() -> RedisCache:
    return get_cache()


def get_zone_stats(cache: RedisCache = Depends(get_redis_cache)) -> ZoneStatsStore:
    return ZoneStatsStore(cache=cache)


def get_event_dispatcher() -> EventDispatcher:
    """
    Get the event dispatcher.

    Use as FastAPI dependency:
        @app.post("/endpoint")
        def endpoint(dispatcher: EventDispatcher = Depends(get_event_dispatcher)):
            ...
    """
    return get_dispatcher()


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[int]:
    """
    Get current user ID from header.

    Use as FastAPI dependency:
        @app.get("/endpoint")
        def endpoint(user_id: Optional[int] = Depends(get_current_user_id)):
            ...
    """
    if x_user_id is None:
        return None

    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID format",
        )
