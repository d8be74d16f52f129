"""
Professional profile: the marketplace identity behind sessions, bookings
and reviews. One per professional user.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, CheckConstraint

from app.db.base import Base, TimestampMixin


class Professional(Base, TimestampMixin):
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True, index=True)
    business_name = Column(String(255), nullable=False)
    # auto: bookings are confirmed on creation; manual: professional accepts each one
    booking_mode = Column(String(10), nullable=False, default="manual")
    city = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True, default="Morocco")

    average_rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("booking_mode IN ('auto', 'manual')", name="check_professional_booking_mode"),
    )

    def __repr__(self) -> str:
        return f"<Professional(id={self.id}, user={self.user_id}, name={self.business_name})>"
