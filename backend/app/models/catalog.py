"""
Products and events. Only the parts the review subsystem needs: an owner,
a title for the review snapshot, and the rating summary fields.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey

from app.db.base import Base, TimestampMixin


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    average_rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    average_rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
