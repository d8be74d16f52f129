"""
Booking store, including the per-day booking number counter.
"""

from datetime import date, datetime
from typing import Iterable, NamedTuple, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from app.domain.lifecycle import BookingStatus, ACTIVE_BOOKING_STATES
from app.models.booking import Booking, BookingSequence
from app.models.review import Review
from app.models.session import Session
from app.models.user import User
from app.repositories.base_repository import BaseRepository

_UPSERT_BY_DIALECT = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class UnreviewedBooking(NamedTuple):
    booking: Booking
    session_title: str
    client: User


class BookingRepository(BaseRepository[Booking]):
    model = Booking

    async def next_booking_number(self, day: date) -> str:
        """
        Allocate the next BK{YYYYMMDD}{NNNN} number for `day`.

        One INSERT .. ON CONFLICT DO UPDATE .. RETURNING statement: the row
        lock taken by the upsert serialises concurrent callers, so two
        bookings created on the same day can never share a sequence value.
        """
        key = day.strftime("%Y%m%d")
        dialect = self.db.get_bind().dialect.name
        try:
            insert_fn = _UPSERT_BY_DIALECT[dialect]
        except KeyError:
            raise RuntimeError(f"Booking sequence upsert not supported on {dialect}") from None

        stmt = (
            insert_fn(BookingSequence)
            .values(day=key, last_value=1)
            .on_conflict_do_update(
                index_elements=[BookingSequence.day],
                set_={"last_value": BookingSequence.last_value + 1},
            )
            .returning(BookingSequence.last_value)
        )
        sequence = (await self.db.execute(stmt)).scalar_one()
        return f"BK{key}{sequence:04d}"

    async def find_active_for_client(self, client_id: int, session_id: int) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking).where(
                Booking.client_id == client_id,
                Booking.session_id == session_id,
                Booking.status.in_([state.value for state in ACTIVE_BOOKING_STATES]),
            )
        )
        return result.scalars().first()

    async def find_reviewable(self, client_id: int, session_id: int) -> Optional[Booking]:
        """A confirmed or completed booking proving the client attended the session."""
        result = await self.db.execute(
            select(Booking).where(
                Booking.client_id == client_id,
                Booking.session_id == session_id,
                Booking.status.in_([BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value]),
            )
        )
        return result.scalars().first()

    async def list_for_session(self, session_id: int, status: Optional[BookingStatus] = None) -> list[Booking]:
        query = select(Booking).where(Booking.session_id == session_id)
        if status is not None:
            query = query.where(Booking.status == status.value)
        result = await self.db.execute(query.order_by(Booking.id.asc()))
        return list(result.scalars().all())

    async def list_for_client(self, client_id: int, status: Optional[str] = None) -> list[Booking]:
        query = select(Booking).where(Booking.client_id == client_id)
        if status:
            query = query.where(Booking.status == status)
        result = await self.db.execute(query.order_by(Booking.appointment_date.desc(), Booking.id.desc()))
        return list(result.scalars().all())

    async def transition_status(
        self,
        booking_id: int,
        expected: Iterable[BookingStatus],
        new_status: BookingStatus,
        **values,
    ) -> bool:
        """Conditional status update; extra column values are written in the same statement."""
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status.in_([state.value for state in expected]),
            )
            .values(status=new_status.value, **values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def completed_without_review(
        self,
        professional_id: int,
        completed_since: Optional[datetime] = None,
    ) -> list[UnreviewedBooking]:
        """
        Completed session bookings of a professional with no review (any
        status) from the booking's client for that session.
        """
        review_exists = (
            select(Review.id)
            .where(
                Review.client_id == Booking.client_id,
                Review.content_id == Booking.session_id,
                Review.content_type == "session",
            )
            .exists()
        )
        query = (
            select(Booking, Session.title, User)
            .join(Session, Session.id == Booking.session_id)
            .join(User, User.id == Booking.client_id)
            .where(
                Booking.professional_id == professional_id,
                Booking.status == BookingStatus.COMPLETED.value,
                Booking.session_id.is_not(None),
                ~review_exists,
            )
        )
        if completed_since is not None:
            query = query.where(Booking.completed_at >= completed_since)

        result = await self.db.execute(query.order_by(Booking.completed_at.asc(), Booking.id.asc()))
        return [UnreviewedBooking(*row) for row in result.all()]
