"""
User account. Role decides which side of the marketplace the user acts on.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from app.db.base import Base, TimestampMixin

USER_ROLES = ("client", "professional", "admin")


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default="client")
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('client', 'professional', 'admin')", name="check_user_role"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.username

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
