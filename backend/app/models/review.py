"""
Client review of a content entity (product, event, session or professional).

Key design decisions:
- Unique constraint on (client_id, content_id, content_type) is the only
  guard against duplicate reviews; application pre-checks are early exits
- Only `approved` reviews feed the target's rating summary
- `content_title` is a snapshot so listings survive content renames
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Text,
    JSON,
    ForeignKey,
    Index,
    UniqueConstraint,
    CheckConstraint,
)

from app.db.base import Base, TimestampMixin, UTCDateTime

CONTENT_TYPES = ("product", "event", "session", "professional")
REVIEW_STATUSES = ("pending", "approved", "rejected")


class Review(Base, TimestampMixin):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    content_type = Column(String(20), nullable=False)
    content_id = Column(Integer, nullable=False)
    content_title = Column(String(255), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(1000), nullable=False, default="")
    aspects = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)
    would_recommend = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default="pending")
    professional_response = Column(Text, nullable=True)
    responded_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        UniqueConstraint("client_id", "content_id", "content_type", name="uq_review_client_content"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="check_review_rating_range"),
        CheckConstraint(
            "content_type IN ('product', 'event', 'session', 'professional')",
            name="check_review_content_type",
        ),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="check_review_status"),
        Index("ix_reviews_content_status", "content_id", "content_type", "status"),
        Index("ix_reviews_professional_type_status", "professional_id", "content_type", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Review(id={self.id}, client={self.client_id}, "
            f"{self.content_type}={self.content_id}, rating={self.rating})>"
        )
