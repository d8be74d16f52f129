"""
Review solicitation: the review request sent when a booking completes,
reminders for clients who have not reviewed yet, and the professional's
review statistics.
"""

from datetime import timedelta
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.exceptions import BusinessRuleException, CollaboratorFailure, NotFoundException
from app.core.logging import get_logger
from app.core.metrics import record_review_request, review_reminders
from app.db.base import utcnow
from app.domain.lifecycle import BookingStatus, SessionStatus
from app.models.booking import Booking
from app.models.professional import Professional
from app.models.session import Session
from app.repositories.booking_repository import BookingRepository
from app.repositories.professional_repository import ProfessionalRepository
from app.repositories.review_repository import ReviewRepository
from app.repositories.session_repository import SessionRepository
from app.schemas.completion import ReminderReport, ReminderSent, ReviewStats
from app.services.interfaces.notifier import Notifier
from app.services.rating_service import percent

logger = get_logger(__name__)

REVIEW_REQUEST = "session_review_request"
REVIEW_REMINDER = "session_review_reminder"


def _review_link(session_id: int) -> str:
    return f"/sessions/{session_id}/review"


def review_request_payload(booking: Booking, session: Session, professional: Professional) -> dict[str, Any]:
    session_date = session.start_time.strftime("%A %d %B %Y")
    return {
        "title": "Your session is over!",
        "message": (
            f'How did your session "{session.title}" on {session_date} go? '
            "Share your experience with other clients."
        ),
        "link": _review_link(session.id),
        "data": {
            "session_id": session.id,
            "session_title": session.title,
            "session_date": session.start_time.isoformat(),
            "professional_name": professional.business_name or "Professional",
            "professional_id": professional.id,
            "booking_id": booking.id,
            "can_review": True,
        },
    }


def review_reminder_payload(booking: Booking, session_title: str, professional: Professional) -> dict[str, Any]:
    return {
        "title": "Don't forget your review!",
        "message": (
            f'You took part in "{session_title}". '
            "Your review helps other clients discover this experience."
        ),
        "link": _review_link(booking.session_id),
        "data": {
            "session_id": booking.session_id,
            "session_title": session_title,
            "professional_name": professional.business_name or "Professional",
            "professional_id": professional.id,
            "booking_id": booking.id,
            "is_reminder": True,
        },
    }


class ReviewRequestService:
    def __init__(
        self,
        db: AsyncSession,
        notifier: Notifier,
        settings: Optional[Settings] = None,
        now: Callable = utcnow,
    ):
        self.db = db
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.now = now
        self.bookings = BookingRepository(db)
        self.sessions = SessionRepository(db)
        self.reviews = ReviewRepository(db)
        self.professionals = ProfessionalRepository(db)

    async def dispatch(self, booking: Booking, session: Session, professional: Professional) -> None:
        """
        Send the review request for one completed booking.

        Existing reviews are not checked here; the unique review constraint
        rejects a second review if the client already left one.

        Raises:
            BusinessRuleException: booking is not a completed session booking
            CollaboratorFailure: the notifier failed
        """
        if booking.status != BookingStatus.COMPLETED.value or booking.session_id is None:
            raise BusinessRuleException(
                "Review requests are only sent for completed session bookings",
                code="BOOKING_NOT_COMPLETED",
                details={"booking_id": booking.id, "status": booking.status},
            )

        try:
            # A notifier writing to this session fails inside the savepoint only
            async with self.db.begin_nested():
                await self.notifier.notify(
                    REVIEW_REQUEST,
                    booking.client_id,
                    review_request_payload(booking, session, professional),
                )
        except Exception as exc:
            record_review_request(sent=False)
            raise CollaboratorFailure(
                f"Review request delivery failed: {exc}",
                code="NOTIFIER_FAILED",
                details={"booking_id": booking.id},
            ) from exc

        record_review_request(sent=True)
        logger.info(
            "review_request_sent",
            booking_id=booking.id,
            client_id=booking.client_id,
            session_id=session.id,
        )

    async def _professional_for_user(self, user_id: int) -> Professional:
        professional = await self.professionals.get_by_user_id(user_id)
        if professional is None:
            raise NotFoundException("Professional profile not found", code="PROFESSIONAL_NOT_FOUND")
        return professional

    async def send_review_reminders(self, professional_user_id: int) -> ReminderReport:
        professional = await self._professional_for_user(professional_user_id)
        since = self.now() - timedelta(days=self.settings.REVIEW_REMINDER_WINDOW_DAYS)
        unreviewed = await self.bookings.completed_without_review(professional.id, completed_since=since)

        sent = []
        for booking, session_title, client in unreviewed:
            try:
                async with self.db.begin_nested():
                    await self.notifier.notify(
                        REVIEW_REMINDER,
                        booking.client_id,
                        review_reminder_payload(booking, session_title, professional),
                    )
            except Exception as exc:
                logger.warning("review_reminder_failed", booking_id=booking.id, error=str(exc))
                continue

            review_reminders.inc()
            sent.append(
                ReminderSent(
                    booking_id=booking.id,
                    client_id=booking.client_id,
                    client_name=client.full_name,
                    session_id=booking.session_id,
                    session_title=session_title,
                )
            )

        logger.info(
            "review_reminders_sent",
            professional_id=professional.id,
            candidates=len(unreviewed),
            sent=len(sent),
        )
        return ReminderReport(reminders_sent=sent)

    async def get_review_stats(self, professional_user_id: int) -> ReviewStats:
        professional = await self._professional_for_user(professional_user_id)

        completed_sessions = await self.sessions.count_by_professional(professional.id, SessionStatus.COMPLETED)
        reviews_received = await self.reviews.count_for_professional(professional.id, content_type="session")
        pending_reviews = len(await self.bookings.completed_without_review(professional.id))

        return ReviewStats(
            completed_sessions=completed_sessions,
            reviews_received=reviews_received,
            pending_reviews=pending_reviews,
            review_rate=percent(reviews_received, completed_sessions),
        )
