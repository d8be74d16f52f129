"""
Pydantic schemas for session-related request/response validation.
"""

from datetime import datetime, timezone
from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

SessionCategory = Literal["individual", "group", "online", "workshop", "retreat"]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() == "":
        return None
    parsed = urlparse(value.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Meeting link must be a valid URL")
    return value.strip()


class SessionCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    start_time: datetime
    duration: int = Field(..., ge=15, le=480)
    max_participants: int = Field(..., ge=1, le=100)
    price: float = Field(..., ge=0)
    category: SessionCategory
    location: Optional[str] = Field(None, max_length=255)
    meeting_link: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("start_time")
    @classmethod
    def normalize_start_time(cls, value):
        return _as_utc(value)

    @field_validator("meeting_link")
    @classmethod
    def validate_meeting_link(cls, value):
        return _check_url(value)

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def check_location_for_category(self) -> "SessionCreate":
        if self.category == "online":
            if not self.meeting_link:
                raise ValueError("Meeting link is required for online sessions")
        elif not self.location or not self.location.strip():
            raise ValueError("Location is required for non-online sessions")
        return self


class SessionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    start_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=15, le=480)
    max_participants: Optional[int] = Field(None, ge=1, le=100)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[SessionCategory] = None
    location: Optional[str] = Field(None, max_length=255)
    meeting_link: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("start_time")
    @classmethod
    def normalize_start_time(cls, value):
        return _as_utc(value)

    @field_validator("meeting_link")
    @classmethod
    def validate_meeting_link(cls, value):
        return _check_url(value)


class SessionResponse(BaseModel):
    id: int
    professional_id: int
    title: str
    description: str
    start_time: datetime
    duration: int
    end_time: datetime
    max_participants: int
    price: float
    category: str
    location: Optional[str]
    meeting_link: Optional[str]
    notes: Optional[str]
    status: str
    average_rating: float
    review_count: int
    participants: Optional[list[int]] = None
    available_spots: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("average_rating")
    def display_rating(self, value: float) -> float:
        return round(value, 1)


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


def build_session_response(session, participant_ids: Optional[list[int]] = None) -> SessionResponse:
    response = SessionResponse.model_validate(session)
    if participant_ids is not None:
        response.participants = participant_ids
        response.available_spots = max(session.max_participants - len(participant_ids), 0)
    return response
