"""
Session completion: moves sessions whose time window has elapsed to
completed, completes their confirmed bookings and solicits a review for
each of them.

COMPLETION STRATEGY: Status-guarded updates
===========================================

Problem:
  Two completion runs (a cron job and a professional clicking "complete")
  can pick up the same session. If both read status=scheduled and both
  write completed, every client gets two review requests.

Solution:
  Each status change is a conditional UPDATE whose WHERE clause carries the
  expected current status:

    UPDATE sessions SET status='completed' WHERE id=:id AND status='scheduled'

  rows_affected == 1 means this caller made the change and owns the
  follow-up work. rows_affected == 0 means someone else got there first; the
  batch reports the session as skipped and moves on. Bookings are completed
  the same way, so a booking is completed (and its client solicited) once.

  The batch commits per session. A failure rolls back only that session,
  which stays scheduled and is picked up again by the next run.
"""

import time
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    BusinessRuleException,
    CollaboratorFailure,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from app.core.logging import get_logger
from app.core.metrics import completion_run_duration, record_session_completed, session_completion_errors
from app.db.base import utcnow
from app.domain.lifecycle import (
    BookingStatus,
    SessionEvent,
    SessionStatus,
    session_sources_for,
    session_transition,
)
from app.models.professional import Professional
from app.models.session import Session
from app.models.user import User
from app.repositories.booking_repository import BookingRepository
from app.repositories.professional_repository import ProfessionalRepository
from app.repositories.session_repository import ExpiredSession, SessionRepository
from app.schemas.completion import (
    AutoCompletionItem,
    AutoCompletionReport,
    ReviewRequestResult,
    SessionCompletionResult,
)
from app.schemas.session import build_session_response
from app.services.interfaces.notifier import Notifier
from app.services.review_request_service import ReviewRequestService

logger = get_logger(__name__)


class CompletionService:
    def __init__(
        self,
        db: AsyncSession,
        notifier: Notifier,
        settings: Optional[Settings] = None,
        now: Callable = utcnow,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.now = now
        self.sessions = SessionRepository(db)
        self.bookings = BookingRepository(db)
        self.professionals = ProfessionalRepository(db)
        self.dispatcher = ReviewRequestService(db, notifier, settings=self.settings, now=now)

    async def auto_complete_expired_sessions(self) -> AutoCompletionReport:
        """
        Complete every scheduled session whose end time plus the grace period
        has passed.

        Per-session failures are recorded in the report. Only a failure of
        the initial selection query propagates.
        """
        started = time.perf_counter()
        cutoff = self.now() - timedelta(minutes=self.settings.COMPLETION_GRACE_MINUTES)
        expired = await self.sessions.find_expired(cutoff)
        logger.info("auto_completion_started", candidates=len(expired), cutoff=cutoff.isoformat())

        results: list[AutoCompletionItem] = []
        for candidate in expired:
            try:
                item = await self._complete_expired(candidate)
                await self.db.commit()
            except Exception as exc:
                await self.db.rollback()
                session_completion_errors.inc()
                logger.error(
                    "session_auto_completion_failed",
                    session_id=candidate.id,
                    error=str(exc),
                    exc_info=True,
                )
                item = AutoCompletionItem(
                    session_id=candidate.id,
                    session_title=candidate.title,
                    status="error",
                    error=str(exc),
                )
            results.append(item)

        completed_count = sum(1 for item in results if item.status == "completed")
        duration = time.perf_counter() - started
        completion_run_duration.observe(duration)
        logger.info(
            "auto_completion_finished",
            completed=completed_count,
            skipped=sum(1 for item in results if item.status == "skipped"),
            failed=sum(1 for item in results if item.status == "error"),
            duration_ms=round(duration * 1000, 2),
        )
        return AutoCompletionReport(completed_count=completed_count, results=results)

    async def _complete_expired(self, candidate: ExpiredSession) -> AutoCompletionItem:
        won = await self.sessions.transition_status(
            candidate.id, [SessionStatus.SCHEDULED], SessionStatus.COMPLETED
        )
        if not won:
            logger.info("session_completion_skipped", session_id=candidate.id, reason="status_changed")
            return AutoCompletionItem(
                session_id=candidate.id,
                session_title=candidate.title,
                status="skipped",
            )

        record_session_completed("auto")
        # A rollback earlier in the batch leaves these partly expired
        session = await self.sessions.get(candidate.id, reload=True)
        professional = await self.professionals.get(candidate.professional_id, reload=True)
        review_requests = await self._complete_bookings(session, professional)

        logger.info(
            "session_completed",
            session_id=candidate.id,
            trigger="auto",
            bookings_completed=len(review_requests),
        )
        return AutoCompletionItem(
            session_id=candidate.id,
            session_title=candidate.title,
            status="completed",
            review_requests_sent=sum(1 for request in review_requests if request.status == "sent"),
        )

    async def complete_session(self, session_id: int, acting_user_id: int) -> SessionCompletionResult:
        """Complete one session on behalf of its owner."""
        session = await self.sessions.get(session_id)
        if session is None:
            raise NotFoundException("Session not found", code="SESSION_NOT_FOUND")

        professional = await self.professionals.get_by_user_id(acting_user_id)
        if professional is None or session.professional_id != professional.id:
            raise ForbiddenException("You can only complete your own sessions")

        target = session_transition(session.status, SessionEvent.COMPLETE)
        if not session.has_ended(self.now()):
            raise BusinessRuleException(
                "A session cannot be completed before its end time",
                code="SESSION_NOT_ENDED",
                details={"end_time": session.end_time.isoformat()},
            )

        won = await self.sessions.transition_status(
            session.id, session_sources_for(SessionEvent.COMPLETE), target
        )
        if not won:
            await self.db.refresh(session)
            raise InvalidTransitionException("session", session.status, SessionEvent.COMPLETE.value)

        record_session_completed("manual")
        review_requests = await self._complete_bookings(session, professional)
        await self.db.refresh(session)
        participants = await self.sessions.participant_ids(session.id)

        logger.info(
            "session_completed",
            session_id=session.id,
            trigger="manual",
            bookings_completed=len(review_requests),
        )
        return SessionCompletionResult(
            session=build_session_response(session, participants),
            review_requests=review_requests,
            total_participants=len(review_requests),
        )

    async def _complete_bookings(self, session: Session, professional: Professional) -> list[ReviewRequestResult]:
        """Complete the session's confirmed bookings and solicit a review for each one moved."""
        confirmed = await self.bookings.list_for_session(session.id, BookingStatus.CONFIRMED)
        completed_at = self.now()

        results = []
        for booking in confirmed:
            moved = await self.bookings.transition_status(
                booking.id,
                [BookingStatus.CONFIRMED],
                BookingStatus.COMPLETED,
                completed_at=completed_at,
            )
            if not moved:
                logger.info("booking_completion_skipped", booking_id=booking.id, session_id=session.id)
                continue

            booking_id, client_id = booking.id, booking.client_id
            client = await self.db.get(User, client_id)
            client_name = client.full_name if client else "Unknown"
            try:
                await self.dispatcher.dispatch(booking, session, professional)
            except CollaboratorFailure as exc:
                logger.warning(
                    "review_request_failed",
                    booking_id=booking_id,
                    client_id=client_id,
                    error=exc.message,
                )
                results.append(
                    ReviewRequestResult(
                        booking_id=booking_id,
                        client_id=client_id,
                        client_name=client_name,
                        status="error",
                        error=exc.message,
                    )
                )
                continue

            results.append(
                ReviewRequestResult(
                    booking_id=booking_id,
                    client_id=client_id,
                    client_name=client_name,
                    status="sent",
                )
            )
        return results
