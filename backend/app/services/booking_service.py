"""
Booking service: clients reserve a place in a session, professionals
accept or decline, either side cancels.

CONCURRENCY STRATEGY: Conditional status updates
================================================

Problem:
  A professional accepts a booking while the client cancels it. Both read
  status=pending; without a guard the later write wins and the booking ends
  up confirmed for a client who left.

Solution:
  Every status change is an UPDATE guarded by the states the lifecycle
  table allows the event from:

    UPDATE bookings SET status='confirmed' WHERE id=:id AND status IN ('pending')

  If rows_affected == 0 the booking moved underneath us and the caller gets
  a 409 with the booking's current status.

Booking numbers (BK{YYYYMMDD}{NNNN}) come from a per-day counter row that is
incremented by a single upsert, so concurrent bookings never share a number.
"""

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from app.core.logging import get_logger
from app.core.metrics import record_booking_attempt
from app.db.base import utcnow
from app.domain.lifecycle import (
    BookingEvent,
    BookingStatus,
    SessionStatus,
    booking_sources_for,
    booking_transition,
)
from app.models.booking import Booking
from app.models.professional import Professional
from app.models.session import Session
from app.models.user import User
from app.repositories.booking_repository import BookingRepository
from app.repositories.professional_repository import ProfessionalRepository
from app.repositories.session_repository import SessionRepository
from app.schemas.booking import BookingCreate
from app.services.interfaces.notifier import Notifier
from app.services.session_service import get_professional, get_session

logger = get_logger(__name__)
settings = get_settings()


def _location_fields(session: Session, professional: Professional) -> dict:
    if session.category == "online":
        return {"location_type": "online", "online_link": session.meeting_link}
    address = ", ".join(
        part for part in (session.location, professional.postal_code, professional.city, professional.country) if part
    )
    return {"location_type": "in_person", "location_address": address}


def _session_full(session: Session) -> ConflictException:
    return ConflictException(
        "Session is full",
        code="SESSION_FULL",
        details={"session_id": session.id, "max_participants": session.max_participants},
    )


async def _get_booking(db: AsyncSession, booking_id: int) -> Booking:
    booking = await BookingRepository(db).get(booking_id)
    if booking is None:
        raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
    return booking


async def _transition(
    db: AsyncSession,
    booking: Booking,
    event: BookingEvent,
    **values,
) -> Booking:
    """Apply a lifecycle event through a status-guarded update, then reload the booking."""
    target = booking_transition(booking.status, event)
    moved = await BookingRepository(db).transition_status(
        booking.id, booking_sources_for(event), target, **values
    )
    await db.refresh(booking)
    if not moved:
        raise InvalidTransitionException("booking", booking.status, event.value)
    return booking


async def create_booking(
    db: AsyncSession,
    notifier: Notifier,
    client_id: int,
    data: BookingCreate,
    now: Callable = utcnow,
) -> Booking:
    bookings = BookingRepository(db)
    sessions = SessionRepository(db)

    session = await get_session(db, data.session_id)
    professional = await ProfessionalRepository(db).get(session.professional_id)

    current = now()
    participants = await sessions.participant_count(session.id)
    if (
        session.status != SessionStatus.SCHEDULED.value
        or session.start_time <= current
        or participants >= session.max_participants
    ):
        record_booking_attempt("conflict")
        raise BusinessRuleException(
            "Session is not available for booking",
            code="SESSION_NOT_BOOKABLE",
            details={"session_id": session.id, "status": session.status},
        )

    if await bookings.find_active_for_client(client_id, session.id):
        record_booking_attempt("conflict")
        logger.warning("booking_failed_duplicate", client_id=client_id, session_id=session.id)
        raise ConflictException("You have already booked this session", code="ALREADY_BOOKED")

    auto_confirm = professional.booking_mode == "auto" and data.booking_type == "direct"
    status = BookingStatus.CONFIRMED if auto_confirm else BookingStatus.PENDING
    if auto_confirm and not await sessions.claim_seat(session.id, client_id, current):
        record_booking_attempt("conflict")
        raise _session_full(session)

    booking = Booking(
        booking_number=await bookings.next_booking_number(current.date()),
        client_id=client_id,
        professional_id=professional.id,
        service_name=session.title,
        service_description=session.description,
        service_duration=session.duration,
        service_price=session.price,
        currency=settings.DEFAULT_CURRENCY,
        session_id=session.id,
        appointment_date=session.start_time,
        appointment_start=session.start_time.strftime("%H:%M"),
        appointment_end=session.end_time.strftime("%H:%M"),
        status=status.value,
        payment_status="pending",
        client_notes=data.notes,
        **_location_fields(session, professional),
    )
    booking = await bookings.add(booking)

    await notifier.notify(
        "new_booking" if auto_confirm else "booking_request",
        professional.user_id,
        {
            "title": "New booking" if auto_confirm else "New booking request",
            "message": f'Booking {booking.booking_number} for "{session.title}".',
            "link": f"/sessions/{session.id}/bookings",
            "data": {"booking_id": booking.id, "session_id": session.id, "client_id": client_id},
        },
    )

    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        booking_number=booking.booking_number,
        client_id=client_id,
        session_id=session.id,
        status=booking.status,
    )
    return booking


async def respond_to_booking(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    booking_id: int,
    accept: bool,
    reason: Optional[str] = None,
    now: Callable = utcnow,
) -> Booking:
    """Professional accepts or declines a pending booking."""
    booking = await _get_booking(db, booking_id)
    professional = await get_professional(db, user_id)
    if booking.professional_id != professional.id:
        raise ForbiddenException("You can only respond to your own bookings")

    sessions = SessionRepository(db)
    if accept:
        booking = await _transition(db, booking, BookingEvent.ACCEPT)
        if booking.session_id is not None and not await sessions.claim_seat(
            booking.session_id, booking.client_id, now()
        ):
            raise _session_full(await get_session(db, booking.session_id))
    else:
        booking = await _transition(
            db,
            booking,
            BookingEvent.DECLINE,
            cancellation_reason=reason or "Cancelled by professional",
            cancelled_by=user_id,
            cancelled_at=now(),
        )
        if booking.session_id is not None:
            await sessions.remove_participant(booking.session_id, booking.client_id)

    await notifier.notify(
        "booking_confirmed" if accept else "booking_declined",
        booking.client_id,
        {
            "title": "Booking confirmed" if accept else "Booking declined",
            "message": (
                f"Your booking {booking.booking_number} for \"{booking.service_name}\" "
                + ("has been confirmed." if accept else f"was declined: {booking.cancellation_reason}")
            ),
            "link": f"/bookings/{booking.id}",
            "data": {"booking_id": booking.id, "session_id": booking.session_id},
        },
    )

    logger.info("booking_responded", booking_id=booking.id, accepted=accept, status=booking.status)
    return booking


async def cancel_booking(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    booking_id: int,
    reason: Optional[str] = None,
    now: Callable = utcnow,
) -> Booking:
    """Cancel a booking as its client, its professional or an admin."""
    booking = await _get_booking(db, booking_id)
    user = await db.get(User, user_id)
    professional = await ProfessionalRepository(db).get(booking.professional_id)

    is_client = booking.client_id == user_id
    is_owner = professional is not None and professional.user_id == user_id
    if not (is_client or is_owner or (user is not None and user.role == "admin")):
        raise ForbiddenException("You cannot cancel this booking")

    booking = await _transition(
        db,
        booking,
        BookingEvent.CANCEL,
        cancellation_reason=reason,
        cancelled_by=user_id,
        cancelled_at=now(),
    )
    if booking.session_id is not None:
        await SessionRepository(db).remove_participant(booking.session_id, booking.client_id)

    recipient_id = professional.user_id if is_client else booking.client_id
    await notifier.notify(
        "booking_cancelled",
        recipient_id,
        {
            "title": "Booking cancelled",
            "message": f"Booking {booking.booking_number} for \"{booking.service_name}\" has been cancelled.",
            "link": f"/bookings/{booking.id}",
            "data": {"booking_id": booking.id, "session_id": booking.session_id, "reason": reason},
        },
    )

    logger.info("booking_cancelled", booking_id=booking.id, cancelled_by=user_id)
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int, status: Optional[str] = None) -> list[Booking]:
    """Bookings made by a client, latest appointment first."""
    return await BookingRepository(db).list_for_client(user_id, status)
