"""
Bookable session offered by a professional.

Key design decisions:
- `end_time` is denormalized (start_time + duration) so the completion scan
  is a plain indexed range query on every backend
- Index on (status, end_time) serves that scan directly
- Participants live in an association table with a composite primary key,
  so a client can only be added once
- `average_rating` keeps full precision; rounding happens in response schemas
"""

from datetime import timedelta

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Text,
    ForeignKey,
    Index,
    CheckConstraint,
)

from app.db.base import Base, TimestampMixin, UTCDateTime

SESSION_CATEGORIES = ("individual", "group", "online", "workshop", "retreat")


class Session(Base, TimestampMixin):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(1000), nullable=False)
    start_time = Column(UTCDateTime(), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    end_time = Column(UTCDateTime(), nullable=False)
    max_participants = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String(20), nullable=False, default="individual")
    location = Column(String(255), nullable=True)
    meeting_link = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="scheduled")

    average_rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("duration >= 15 AND duration <= 480", name="check_session_duration"),
        CheckConstraint(
            "max_participants >= 1 AND max_participants <= 100", name="check_session_max_participants"
        ),
        CheckConstraint("price >= 0", name="check_session_price_non_negative"),
        CheckConstraint(
            "category IN ('individual', 'group', 'online', 'workshop', 'retreat')",
            name="check_session_category",
        ),
        CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'completed', 'cancelled')",
            name="check_session_status",
        ),
        CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="check_session_rating_range"),
        CheckConstraint("review_count >= 0", name="check_session_review_count"),
        Index("ix_sessions_start_time", "start_time"),
        Index("ix_sessions_professional_start", "professional_id", "start_time"),
        Index("ix_sessions_status_end_time", "status", "end_time"),
    )

    def schedule(self, start_time, duration: int) -> None:
        """Set the time window, keeping end_time in step."""
        self.start_time = start_time
        self.duration = duration
        self.end_time = start_time + timedelta(minutes=duration)

    def has_ended(self, now) -> bool:
        return self.end_time <= now

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, title={self.title}, status={self.status})>"


class SessionParticipant(Base):
    __tablename__ = "session_participants"

    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    joined_at = Column(UTCDateTime(), nullable=False)
