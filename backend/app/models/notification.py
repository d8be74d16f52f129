"""
In-app notification written by the database notifier.
"""

from sqlalchemy import Column, Integer, String, Boolean, Text, JSON, ForeignKey, Index

from app.db.base import Base, TimestampMixin


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    kind = Column(String(50), nullable=False)  # session_review_request, session_review_reminder, ...
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)
    payload = Column(JSON, nullable=True)
    read = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user={self.user_id}, kind={self.kind})>"
