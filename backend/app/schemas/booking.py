"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class BookingCreate(BaseModel):
    session_id: int
    notes: Optional[str] = Field(None, max_length=500)
    # "message" requests always wait for the professional, whatever the booking mode
    booking_type: Literal["direct", "message"] = "direct"


class BookingRespond(BaseModel):
    accept: bool
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def require_reason_on_decline(self) -> "BookingRespond":
        if not self.accept and not (self.reason and self.reason.strip()):
            raise ValueError("A reason is required when declining a booking")
        return self


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(BaseModel):
    id: int
    booking_number: str
    client_id: int
    professional_id: int
    session_id: Optional[int]
    service_name: str
    service_duration: int
    service_price: float
    currency: str
    appointment_date: datetime
    appointment_start: str
    appointment_end: str
    location_type: str
    location_address: Optional[str]
    online_link: Optional[str]
    status: str
    payment_status: str
    client_notes: Optional[str]
    cancellation_reason: Optional[str]
    cancelled_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}
