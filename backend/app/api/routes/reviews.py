"""
Review endpoints: submission, moderation, statistics and reminders.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_notifier, require_professional
from app.db.session import get_db
from app.models.user import User
from app.schemas.completion import ReminderReport, ReviewStats
from app.schemas.review import (
    ContentType,
    RatingSummary,
    ReviewCreate,
    ReviewListResponse,
    ReviewReply,
    ReviewResponse,
    ReviewStatusUpdate,
    ReviewUpdate,
)
from app.services.interfaces.notifier import Notifier
from app.services.rating_service import RatingService
from app.services.review_request_service import ReviewRequestService
from app.services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("/", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Review a product, event, session or professional.
    Session reviews need a confirmed or completed booking; a second review
    of the same content returns 409.
    """
    return await ReviewService(db, notifier).create_review(user.id, data)


@router.get("/stats", response_model=ReviewStats)
async def review_stats(
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    return await ReviewRequestService(db, notifier).get_review_stats(user.id)


@router.post("/reminders", response_model=ReminderReport)
async def send_review_reminders(
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Remind clients of recently completed sessions who have not reviewed yet."""
    return await ReviewRequestService(db, notifier).send_review_reminders(user.id)


@router.get("/rating-summary", response_model=RatingSummary)
async def rating_summary(
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    professional = await ReviewService(db, notifier).professional_for_user(user.id)
    return await RatingService(db).rating_summary(professional.id)


@router.get("/session/{session_id}/mine", response_model=Optional[ReviewResponse])
async def my_session_review(
    session_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """The caller's review of a session, or null."""
    return await ReviewService(db, notifier).my_session_review(user.id, session_id)


@router.get("/{content_type}/{content_id}", response_model=ReviewListResponse)
async def list_reviews(
    content_type: ContentType,
    content_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Approved reviews of one piece of content, newest first."""
    return await ReviewService(db, notifier).list_for_content(content_type, content_id, page, page_size)


@router.put("/{review_id}", response_model=ReviewResponse)
async def edit_review(
    review_id: int,
    data: ReviewUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    return await ReviewService(db, notifier).edit(user.id, review_id, data)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    await ReviewService(db, notifier).delete(user.id, review_id)


@router.put("/{review_id}/status", response_model=ReviewResponse)
async def update_review_status(
    review_id: int,
    data: ReviewStatusUpdate,
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    return await ReviewService(db, notifier).update_status(user.id, review_id, data.status)


@router.put("/{review_id}/response", response_model=ReviewResponse)
async def respond_to_review(
    review_id: int,
    data: ReviewReply,
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    return await ReviewService(db, notifier).respond(user.id, review_id, data.response)
