"""
Session catalog: professionals publish, edit and cancel sessions; anyone
can browse upcoming ones.
"""

from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from app.core.logging import get_logger
from app.db.base import utcnow
from app.domain.lifecycle import (
    SessionEvent,
    session_is_editable,
    session_sources_for,
    session_transition,
)
from app.models.booking import Booking
from app.models.professional import Professional
from app.models.session import Session
from app.repositories.booking_repository import BookingRepository
from app.repositories.professional_repository import ProfessionalRepository
from app.repositories.session_repository import SessionRepository
from app.schemas.session import SessionCreate, SessionResponse, SessionUpdate, build_session_response
from app.services.interfaces.notifier import Notifier

logger = get_logger(__name__)
settings = get_settings()

# Optional columns an update may set back to null
CLEARABLE_FIELDS = frozenset({"location", "meeting_link", "notes"})


async def get_professional(db: AsyncSession, user_id: int) -> Professional:
    professional = await ProfessionalRepository(db).get_by_user_id(user_id)
    if professional is None:
        raise ForbiddenException("A professional profile is required", code="PROFESSIONAL_REQUIRED")
    return professional


async def get_session(db: AsyncSession, session_id: int) -> Session:
    session = await SessionRepository(db).get(session_id)
    if session is None:
        raise NotFoundException(f"Session {session_id} not found", code="SESSION_NOT_FOUND")
    return session


async def get_owned_session(db: AsyncSession, user_id: int, session_id: int) -> Session:
    """Load a session and check that `user_id` is the owning professional."""
    session = await get_session(db, session_id)
    professional = await ProfessionalRepository(db).get_by_user_id(user_id)
    if professional is None or session.professional_id != professional.id:
        raise ForbiddenException("You can only manage your own sessions")
    return session


async def describe_session(db: AsyncSession, session: Session) -> SessionResponse:
    participant_ids = await SessionRepository(db).participant_ids(session.id)
    return build_session_response(session, participant_ids)


def _check_location(category: str, location: Optional[str], meeting_link: Optional[str]) -> None:
    if category == "online":
        if not meeting_link:
            raise ValidationException(
                "Meeting link is required for online sessions",
                details={"field": "meeting_link"},
            )
    elif not location or not location.strip():
        raise ValidationException(
            "Location is required for non-online sessions",
            details={"field": "location"},
        )


async def create_session(
    db: AsyncSession,
    user_id: int,
    data: SessionCreate,
    now: Callable = utcnow,
) -> Session:
    professional = await get_professional(db, user_id)

    if data.start_time <= now():
        raise ValidationException("Start time must be in the future", details={"field": "start_time"})

    session = Session(
        professional_id=professional.id,
        title=data.title,
        description=data.description,
        max_participants=data.max_participants,
        price=data.price,
        category=data.category,
        location=data.location,
        meeting_link=data.meeting_link,
        notes=data.notes,
        status="scheduled",
    )
    session.schedule(data.start_time, data.duration)
    session = await SessionRepository(db).add(session)

    logger.info(
        "session_created",
        session_id=session.id,
        professional_id=professional.id,
        start_time=session.start_time.isoformat(),
        duration=session.duration,
    )
    return session


async def list_upcoming_sessions(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    category: Optional[str] = None,
    now: Callable = utcnow,
) -> tuple[list[Session], int]:
    """Scheduled sessions that have not started yet, soonest first."""
    return await SessionRepository(db).list_upcoming(now(), page, page_size, category)


async def list_professional_sessions(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
) -> list[Session]:
    professional = await get_professional(db, user_id)
    return await SessionRepository(db).list_by_professional(professional.id, status)


async def update_session(
    db: AsyncSession,
    user_id: int,
    session_id: int,
    data: SessionUpdate,
    now: Callable = utcnow,
) -> Session:
    session = await get_owned_session(db, user_id, session_id)

    if not session_is_editable(session.status):
        raise BusinessRuleException(
            f"A {session.status} session can no longer be edited",
            code="SESSION_LOCKED",
            details={"status": session.status},
        )

    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in CLEARABLE_FIELDS
    }
    start_time = changes.pop("start_time", None) or session.start_time
    duration = changes.pop("duration", None) or session.duration

    if "start_time" in data.model_fields_set:
        earliest = now() - timedelta(minutes=settings.SESSION_EDIT_BUFFER_MINUTES)
        if start_time <= earliest:
            raise ValidationException("Start time must be in the future", details={"field": "start_time"})

    _check_location(
        changes.get("category", session.category),
        changes.get("location", session.location),
        changes.get("meeting_link", session.meeting_link),
    )

    for field, value in changes.items():
        setattr(session, field, value)
    session.schedule(start_time, duration)
    session = await SessionRepository(db).save(session)

    logger.info("session_updated", session_id=session.id, fields=sorted(data.model_fields_set))
    return session


async def cancel_session(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    session_id: int,
) -> Session:
    repo = SessionRepository(db)
    session = await get_owned_session(db, user_id, session_id)

    target = session_transition(session.status, SessionEvent.CANCEL)
    if not await repo.transition_status(session.id, session_sources_for(SessionEvent.CANCEL), target):
        await db.refresh(session)
        raise InvalidTransitionException("session", session.status, SessionEvent.CANCEL.value)
    await db.refresh(session)

    participant_ids = await repo.participant_ids(session.id)
    for participant_id in participant_ids:
        await notifier.notify(
            "session_cancelled",
            participant_id,
            {
                "title": "Session cancelled",
                "message": f'The session "{session.title}" has been cancelled by the professional.',
                "link": f"/sessions/{session.id}",
                "data": {"session_id": session.id, "session_title": session.title},
            },
        )

    logger.info("session_cancelled", session_id=session.id, participants_notified=len(participant_ids))
    return session


async def get_session_bookings(
    db: AsyncSession,
    user_id: int,
    session_id: int,
) -> list[Booking]:
    session = await get_owned_session(db, user_id, session_id)
    return await BookingRepository(db).list_for_session(session.id)
