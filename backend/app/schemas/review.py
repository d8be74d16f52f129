"""
Pydantic schemas for review submission, moderation and rating summaries.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

ContentType = Literal["product", "event", "session", "professional"]
ReviewStatus = Literal["pending", "approved", "rejected"]


def _check_aspects(value: Optional[dict[str, int]]) -> Optional[dict[str, int]]:
    if value is None:
        return value
    for name, score in value.items():
        if not 1 <= score <= 5:
            raise ValueError(f"Aspect '{name}' must be rated between 1 and 5")
    return value


class ReviewCreate(BaseModel):
    content_type: ContentType
    content_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field("", max_length=1000)
    would_recommend: bool = True
    aspects: Optional[dict[str, int]] = None
    tags: list[str] = Field(default_factory=list, max_length=10)

    @field_validator("aspects")
    @classmethod
    def validate_aspects(cls, value):
        return _check_aspects(value)


class ReviewUpdate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field("", max_length=1000)
    would_recommend: bool = True
    aspects: Optional[dict[str, int]] = None

    @field_validator("aspects")
    @classmethod
    def validate_aspects(cls, value):
        return _check_aspects(value)


class ReviewStatusUpdate(BaseModel):
    status: ReviewStatus


class ReviewReply(BaseModel):
    response: str = Field(..., min_length=1, max_length=1000)

    @field_validator("response")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Response cannot be empty")
        return value.strip()


class ReviewResponse(BaseModel):
    id: int
    client_id: int
    professional_id: int
    content_type: str
    content_id: int
    content_title: str
    rating: int
    comment: str
    would_recommend: bool
    aspects: Optional[dict[str, int]]
    tags: Optional[list[str]]
    status: str
    professional_response: Optional[str]
    responded_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]
    total: int
    page: int
    page_size: int
    average_rating: float
    review_count: int

    @field_serializer("average_rating")
    def display_rating(self, value: float) -> float:
        return round(value, 1)


class ContentBreakdown(BaseModel):
    count: int
    average_rating: float

    @field_serializer("average_rating")
    def display_rating(self, value: float) -> float:
        return round(value, 1)


class RatingSummary(BaseModel):
    total_reviews: int
    average_rating: float
    distribution: dict[int, int]
    by_content_type: dict[str, ContentBreakdown]
    satisfaction_rate: int

    @field_serializer("average_rating")
    def display_rating(self, value: float) -> float:
        return round(value, 1)
