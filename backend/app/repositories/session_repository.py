"""
Session store.

Status changes go through `transition_status`, a conditional UPDATE whose
WHERE clause carries the expected current states. Two concurrent callers
can both issue it, but only one sees a row change, so the winner alone
runs the follow-up work (booking cascade, review requests).
"""

from datetime import datetime
from typing import Iterable, NamedTuple, Optional

from sqlalchemy import select, update, delete, func, insert, literal

from app.db.base import UTCDateTime
from app.domain.lifecycle import SessionStatus
from app.models.session import Session, SessionParticipant
from app.repositories.base_repository import BaseRepository


class ExpiredSession(NamedTuple):
    id: int
    title: str
    professional_id: int


class SessionRepository(BaseRepository[Session]):
    model = Session

    async def list_upcoming(
        self,
        now: datetime,
        page: int = 1,
        page_size: int = 20,
        category: Optional[str] = None,
    ) -> tuple[list[Session], int]:
        query = select(Session).where(
            Session.status == SessionStatus.SCHEDULED.value,
            Session.start_time >= now,
        )
        if category:
            query = query.where(Session.category == category)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar()

        result = await self.db.execute(
            query
            .order_by(Session.start_time.asc(), Session.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def list_by_professional(self, professional_id: int, status: Optional[str] = None) -> list[Session]:
        query = select(Session).where(Session.professional_id == professional_id)
        if status:
            query = query.where(Session.status == status)
        result = await self.db.execute(query.order_by(Session.start_time.desc()))
        return list(result.scalars().all())

    async def find_expired(self, cutoff: datetime) -> list[ExpiredSession]:
        """Scheduled sessions whose end time is at or before `cutoff`, oldest first."""
        result = await self.db.execute(
            select(Session.id, Session.title, Session.professional_id)
            .where(
                Session.status == SessionStatus.SCHEDULED.value,
                Session.end_time <= cutoff,
            )
            .order_by(Session.end_time.asc(), Session.id.asc())
        )
        return [ExpiredSession(*row) for row in result.all()]

    async def transition_status(
        self,
        session_id: int,
        expected: Iterable[SessionStatus],
        new_status: SessionStatus,
    ) -> bool:
        """Move the session to `new_status` only if it is still in one of `expected`."""
        result = await self.db.execute(
            update(Session)
            .where(
                Session.id == session_id,
                Session.status.in_([state.value for state in expected]),
            )
            .values(status=new_status.value)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def count_by_professional(self, professional_id: int, status: SessionStatus) -> int:
        result = await self.db.execute(
            select(func.count(Session.id)).where(
                Session.professional_id == professional_id,
                Session.status == status.value,
            )
        )
        return result.scalar_one()

    # Participants

    async def participant_ids(self, session_id: int) -> list[int]:
        result = await self.db.execute(
            select(SessionParticipant.user_id)
            .where(SessionParticipant.session_id == session_id)
            .order_by(SessionParticipant.joined_at.asc())
        )
        return list(result.scalars().all())

    async def participant_count(self, session_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(SessionParticipant)
            .where(SessionParticipant.session_id == session_id)
        )
        return result.scalar_one()

    async def claim_seat(self, session_id: int, user_id: int, joined_at: datetime) -> bool:
        """
        Add the user to the session's participants if a seat is free.

        The session row is locked first so concurrent claims on one session
        queue up, then the participant row is inserted only while the count
        is below max_participants:

            INSERT INTO session_participants (session_id, user_id, joined_at)
            SELECT :sid, :uid, :ts FROM sessions
            WHERE id = :sid AND max_participants > (SELECT count(*) ...)

        Returns False when the session is full. A user who already holds a
        seat keeps it.
        """
        await self.db.execute(select(Session.id).where(Session.id == session_id).with_for_update())
        seated = await self.db.scalar(
            select(SessionParticipant.user_id).where(
                SessionParticipant.session_id == session_id,
                SessionParticipant.user_id == user_id,
            )
        )
        if seated is not None:
            return True

        seats_taken = (
            select(func.count())
            .select_from(SessionParticipant)
            .where(SessionParticipant.session_id == session_id)
            .correlate(None)
            .scalar_subquery()
        )
        result = await self.db.execute(
            insert(SessionParticipant.__table__).from_select(
                ["session_id", "user_id", "joined_at"],
                select(
                    literal(session_id),
                    literal(user_id),
                    literal(joined_at, UTCDateTime()),
                ).where(
                    Session.id == session_id,
                    Session.max_participants > seats_taken,
                ),
            )
        )
        return result.rowcount == 1

    async def remove_participant(self, session_id: int, user_id: int) -> bool:
        result = await self.db.execute(
            delete(SessionParticipant).where(
                SessionParticipant.session_id == session_id,
                SessionParticipant.user_id == user_id,
            )
        )
        return result.rowcount == 1
