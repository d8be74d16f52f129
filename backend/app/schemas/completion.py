"""
Reports returned by session completion and review solicitation.
"""

from typing import Literal, Optional

from pydantic import BaseModel

from app.schemas.session import SessionResponse


class ReviewRequestResult(BaseModel):
    booking_id: int
    client_id: int
    client_name: str
    status: Literal["sent", "error"]
    error: Optional[str] = None


class SessionCompletionResult(BaseModel):
    session: SessionResponse
    review_requests: list[ReviewRequestResult]
    total_participants: int


class AutoCompletionItem(BaseModel):
    session_id: int
    session_title: str
    # skipped: another run completed the session between selection and update
    status: Literal["completed", "skipped", "error"]
    review_requests_sent: int = 0
    error: Optional[str] = None


class AutoCompletionReport(BaseModel):
    completed_count: int
    results: list[AutoCompletionItem]


class ReviewStats(BaseModel):
    completed_sessions: int
    reviews_received: int
    pending_reviews: int
    review_rate: int


class ReminderSent(BaseModel):
    booking_id: int
    client_id: int
    client_name: str
    session_id: int
    session_title: str


class ReminderReport(BaseModel):
    reminders_sent: list[ReminderSent]
