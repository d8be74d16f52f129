"""
Session endpoints: catalog, professional management and completion.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_notifier, require_admin, require_professional
from app.db.session import get_db
from app.models.user import User
from app.schemas.booking import BookingResponse
from app.schemas.completion import AutoCompletionReport, SessionCompletionResult
from app.schemas.session import (
    SessionCategory,
    SessionCreate,
    SessionListResponse,
    SessionResponse,
    SessionUpdate,
)
from app.services import session_service
from app.services.cache_service import get_cached_sessions, invalidate_session_cache, set_cached_sessions
from app.services.completion_service import CompletionService
from app.services.interfaces.notifier import Notifier
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.get("/", response_model=SessionListResponse)
async def list_sessions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    category: Optional[SessionCategory] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Upcoming scheduled sessions, soonest first.
    Pages are cached in Redis and dropped whenever a session or booking changes.
    """
    cached = await get_cached_sessions(page, page_size, category)
    if cached:
        logger.info("sessions_list_cache_hit", page=page)
        cached["cached"] = True
        return SessionListResponse(**cached)

    sessions, total = await session_service.list_upcoming_sessions(db, page, page_size, category)
    response_data = {
        "sessions": [SessionResponse.model_validate(s).model_dump(mode="json") for s in sessions],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_sessions(page, page_size, category, response_data)
    return SessionListResponse(**response_data)


@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: SessionCreate,
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.create_session(db, user.id, data)
    await invalidate_session_cache()
    return await session_service.describe_session(db, session)


@router.get("/mine", response_model=list[SessionResponse])
async def list_my_sessions(
    status_filter: Optional[str] = Query(None, alias="status"),
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    """All sessions of the calling professional, latest first."""
    return await session_service.list_professional_sessions(db, user.id, status_filter)


@router.post("/auto-complete", response_model=AutoCompletionReport)
async def auto_complete_sessions(
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Run the completion batch now (the same work the scheduled job does)."""
    report = await CompletionService(db, notifier).auto_complete_expired_sessions()
    if report.completed_count:
        await invalidate_session_cache()
    return report


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: int, db: AsyncSession = Depends(get_db)):
    """Single session with its participants. Not cached."""
    session = await session_service.get_session(db, session_id)
    return await session_service.describe_session(db, session)


@router.put("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: int,
    data: SessionUpdate,
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.update_session(db, user.id, session_id, data)
    await invalidate_session_cache()
    return await session_service.describe_session(db, session)


@router.put("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: int,
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    session = await session_service.cancel_session(db, notifier, user.id, session_id)
    await invalidate_session_cache()
    return await session_service.describe_session(db, session)


@router.get("/{session_id}/bookings", response_model=list[BookingResponse])
async def list_session_bookings(
    session_id: int,
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    return await session_service.get_session_bookings(db, user.id, session_id)


@router.post("/{session_id}/complete", response_model=SessionCompletionResult)
async def complete_session(
    session_id: int,
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Mark an ended session completed and ask each confirmed client for a review."""
    result = await CompletionService(db, notifier).complete_session(session_id, user.id)
    await invalidate_session_cache()
    return result
