"""
Booking model representing a client's reservation for a session.

Key design decisions:
- The service fields are a snapshot taken at reservation time; `session_id`
  is the back-reference the completion cascade follows
- Status field allows cancellation without deleting records
- `completed_at` is stamped by the completion cascade and drives the
  review-reminder window
- Booking numbers come from `BookingSequence`, a per-day counter row that is
  incremented in a single upsert statement, never read-then-written
"""

from sqlalchemy import Column, Integer, String, Float, Text, ForeignKey, Index, CheckConstraint

from app.db.base import Base, TimestampMixin, UTCDateTime


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_number = Column(String(20), nullable=False, unique=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)

    # Service snapshot
    service_name = Column(String(255), nullable=False)
    service_description = Column(String(1000), nullable=True)
    service_duration = Column(Integer, nullable=False)
    service_price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="MAD")
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=True, index=True)

    appointment_date = Column(UTCDateTime(), nullable=False)
    appointment_start = Column(String(5), nullable=False)  # HH:MM
    appointment_end = Column(String(5), nullable=False)  # HH:MM

    location_type = Column(String(20), nullable=False, default="in_person")
    location_address = Column(String(255), nullable=True)
    online_link = Column(String(500), nullable=True)

    status = Column(String(20), nullable=False, default="pending")
    payment_status = Column(String(20), nullable=False, default="pending")
    client_notes = Column(String(500), nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        CheckConstraint(
            "location_type IN ('in_person', 'online', 'home_visit')",
            name="check_booking_location_type",
        ),
        Index("ix_bookings_session_status", "session_id", "status"),
        Index("ix_bookings_professional_status", "professional_id", "status"),
        Index("ix_bookings_client_date", "client_id", "appointment_date"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, number={self.booking_number}, status={self.status})>"


class BookingSequence(Base):
    __tablename__ = "booking_sequences"

    day = Column(String(8), primary_key=True)  # YYYYMMDD
    last_value = Column(Integer, nullable=False)
