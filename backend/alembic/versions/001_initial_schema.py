"""Initial schema: users, professionals, sessions, bookings, reviews, catalog and notifications.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("role", sa.String(20), nullable=False, server_default="client"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('client', 'professional', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Professional profiles
    op.create_table(
        "professionals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("booking_mode", sa.String(10), nullable=False, server_default="manual"),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("average_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("booking_mode IN ('auto', 'manual')", name="check_professional_booking_mode"),
    )
    op.create_index("ix_professionals_id", "professionals", ["id"])
    op.create_index("ix_professionals_user_id", "professionals", ["user_id"], unique=True)

    # Sessions
    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("professional_id", sa.Integer(), sa.ForeignKey("professionals.id"), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default="individual"),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("average_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("duration >= 15 AND duration <= 480", name="check_session_duration"),
        sa.CheckConstraint(
            "max_participants >= 1 AND max_participants <= 100", name="check_session_max_participants"
        ),
        sa.CheckConstraint("price >= 0", name="check_session_price_non_negative"),
        sa.CheckConstraint(
            "category IN ('individual', 'group', 'online', 'workshop', 'retreat')",
            name="check_session_category",
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'completed', 'cancelled')",
            name="check_session_status",
        ),
        sa.CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="check_session_rating_range"),
        sa.CheckConstraint("review_count >= 0", name="check_session_review_count"),
    )
    op.create_index("ix_sessions_id", "sessions", ["id"])
    op.create_index("ix_sessions_professional_id", "sessions", ["professional_id"])
    op.create_index("ix_sessions_start_time", "sessions", ["start_time"])
    op.create_index("ix_sessions_professional_start", "sessions", ["professional_id", "start_time"])
    # Serves the auto-completion scan: status = 'scheduled' AND end_time <= cutoff
    op.create_index("ix_sessions_status_end_time", "sessions", ["status", "end_time"])

    op.create_table(
        "session_participants",
        sa.Column(
            "session_id", sa.Integer(), sa.ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
    )

    # Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_number", sa.String(20), nullable=False, unique=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("professional_id", sa.Integer(), sa.ForeignKey("professionals.id"), nullable=False),
        sa.Column("service_name", sa.String(255), nullable=False),
        sa.Column("service_description", sa.String(1000), nullable=True),
        sa.Column("service_duration", sa.Integer(), nullable=False),
        sa.Column("service_price", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="MAD"),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("sessions.id"), nullable=True),
        sa.Column("appointment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("appointment_start", sa.String(5), nullable=False),
        sa.Column("appointment_end", sa.String(5), nullable=False),
        sa.Column("location_type", sa.String(20), nullable=False, server_default="in_person"),
        sa.Column("location_address", sa.String(255), nullable=True),
        sa.Column("online_link", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("client_notes", sa.String(500), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        sa.CheckConstraint(
            "location_type IN ('in_person', 'online', 'home_visit')",
            name="check_booking_location_type",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    op.create_index("ix_bookings_professional_id", "bookings", ["professional_id"])
    op.create_index("ix_bookings_session_id", "bookings", ["session_id"])
    op.create_index("ix_bookings_session_status", "bookings", ["session_id", "status"])
    op.create_index("ix_bookings_professional_status", "bookings", ["professional_id", "status"])
    op.create_index("ix_bookings_client_date", "bookings", ["client_id", "appointment_date"])

    op.create_table(
        "booking_sequences",
        sa.Column("day", sa.String(8), primary_key=True),
        sa.Column("last_value", sa.Integer(), nullable=False),
    )

    # Review targets
    for table in ("products", "events"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("professional_id", sa.Integer(), sa.ForeignKey("professionals.id"), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("average_rating", sa.Float(), nullable=False, server_default="0"),
            sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
        )
        op.create_index(f"ix_{table}_id", table, ["id"])
        op.create_index(f"ix_{table}_professional_id", table, ["professional_id"])

    # Reviews
    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("professional_id", sa.Integer(), sa.ForeignKey("professionals.id"), nullable=False),
        sa.Column("content_type", sa.String(20), nullable=False),
        sa.Column("content_id", sa.Integer(), nullable=False),
        sa.Column("content_title", sa.String(255), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.String(1000), nullable=False, server_default=""),
        sa.Column("aspects", sa.JSON(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("would_recommend", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("professional_response", sa.Text(), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        # One review per client per piece of content; the only duplicate guard
        sa.UniqueConstraint("client_id", "content_id", "content_type", name="uq_review_client_content"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="check_review_rating_range"),
        sa.CheckConstraint(
            "content_type IN ('product', 'event', 'session', 'professional')",
            name="check_review_content_type",
        ),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="check_review_status"),
    )
    op.create_index("ix_reviews_id", "reviews", ["id"])
    op.create_index("ix_reviews_client_id", "reviews", ["client_id"])
    op.create_index("ix_reviews_professional_id", "reviews", ["professional_id"])
    op.create_index("ix_reviews_content_status", "reviews", ["content_id", "content_type", "status"])
    op.create_index(
        "ix_reviews_professional_type_status", "reviews", ["professional_id", "content_type", "status"]
    )

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("reviews")
    op.drop_table("events")
    op.drop_table("products")
    op.drop_table("booking_sequences")
    op.drop_table("bookings")
    op.drop_table("session_participants")
    op.drop_table("sessions")
    op.drop_table("professionals")
    op.drop_table("users")
