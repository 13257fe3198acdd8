import os
import math
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession
from sqlalchemy.orm import declarative_base

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger("trackle")

Base = declarative_base()

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Identity, timestamps and soft-delete marker shared by all tables."""
    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)

    @classmethod
    def live(cls):
        """Filter clause excluding soft-deleted rows."""
        return cls.deleted_at.is_(None)


def create_engine_and_sessions(database_url: str) -> Tuple[AsyncEngine, async_sessionmaker]:
    engine = create_async_engine(database_url, echo=False, future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    return engine, session_factory


async def create_tables(engine: AsyncEngine):
    """Create every table registered on the declarative base."""
    # Imported for their side effect of registering mappers on Base.metadata
    from trackle import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db_session(request: Request):
    """Dependency for getting a database session."""
    async with request.app.state.session_factory() as session:
        yield session


def parse_pagination(page: Optional[str], limit: Optional[str]) -> Tuple[int, int]:
    """
    Normalize page/limit query values.

    Invalid or out of range values fall back to the defaults rather than
    failing the request.
    """
    try:
        page_num = int(page) if page is not None else DEFAULT_PAGE
    except ValueError:
        page_num = DEFAULT_PAGE
    if page_num < 1:
        page_num = DEFAULT_PAGE

    try:
        limit_num = int(limit) if limit is not None else DEFAULT_LIMIT
    except ValueError:
        limit_num = DEFAULT_LIMIT
    if limit_num < 1 or limit_num > MAX_LIMIT:
        limit_num = DEFAULT_LIMIT

    return page_num, limit_num


class APIResponse(JSONResponse):
    """
    Standard response envelope for all API endpoints.
    """
    def __init__(self, data: Any = None, message: str = "success", status_code: int = 200, **kwargs):
        content = {
            "success": True,
            "message": message,
            "data": jsonable_encoder(data),
        }
        super().__init__(content=content, status_code=status_code, **kwargs)


class PaginatedResponse(JSONResponse):
    """
    Envelope for paginated list endpoints.
    """
    def __init__(self, data: Any, page: int, limit: int, total: int, message: str = "success", **kwargs):
        total_pages = math.ceil(total / limit) if total > 0 else 0
        content = {
            "success": True,
            "message": message,
            "data": jsonable_encoder(data),
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        }
        super().__init__(content=content, status_code=200, **kwargs)


class ErrorResponse(JSONResponse):
    """
    Envelope for failed requests. Only the error kind is exposed, the cause
    is attached when the service runs in debug mode.
    """
    def __init__(self, message: str, error: str, status_code: int, detail: Optional[str] = None, **kwargs):
        content: Dict[str, Any] = {
            "success": False,
            "message": message,
            "error": error,
        }
        if detail is not None:
            content["detail"] = detail
        super().__init__(content=content, status_code=status_code, **kwargs)


class BaseMicroservice:
    """
    Base class for the API services. Provides:
    - Event and error logging
    - Standard response envelopes
    """
    def __init__(self, name: str = "trackle"):
        self.logger = logging.getLogger(name)

    def api_response(self, data: Any = None, message: str = "success", status_code: int = 200):
        return APIResponse(data=data, message=message, status_code=status_code)

    def paginated_response(self, data: Any, page: int, limit: int, total: int, message: str = "success"):
        return PaginatedResponse(data=data, page=page, limit=limit, total=total, message=message)

    def log_event(self, event: str, details: Dict[str, Any] = None):
        self.logger.info(f"EVENT: {event} | Details: {details}")

    def log_error(self, error: BaseException, context: str = ""):
        self.logger.error(f"ERROR: {str(error)} | Context: {context}")
