"""
Booking endpoints: reserve, respond, cancel and list.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_notifier, require_professional
from app.db.session import get_db
from app.models.user import User
from app.schemas.booking import BookingCancel, BookingCreate, BookingRespond, BookingResponse
from app.services.booking_service import cancel_booking, create_booking, get_user_bookings, respond_to_booking
from app.services.cache_service import invalidate_session_cache
from app.services.interfaces.notifier import Notifier

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    data: BookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Book a place in a session.

    Confirmed straight away when the professional accepts bookings
    automatically, otherwise pending until the professional responds.
    """
    booking = await create_booking(db, notifier, user.id, data)
    # Participant list feeds available_spots in the listing
    await invalidate_session_cache()
    return booking


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Bookings of the authenticated client."""
    return await get_user_bookings(db, user.id, status_filter)


@router.put("/{booking_id}/respond", response_model=BookingResponse)
async def respond_to_booking_endpoint(
    booking_id: int,
    data: BookingRespond,
    user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    booking = await respond_to_booking(db, notifier, user.id, booking_id, data.accept, data.reason)
    await invalidate_session_cache()
    return booking


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    data: BookingCancel,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Cancel as the client, the session's professional or an admin."""
    booking = await cancel_booking(db, notifier, user.id, booking_id, data.reason)
    await invalidate_session_cache()
    return booking
