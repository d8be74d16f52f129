from app.schemas.user import UserCreate, UserResponse, UserLogin, Token
from app.schemas.session import SessionCreate, SessionUpdate, SessionResponse, SessionListResponse
from app.schemas.booking import BookingCreate, BookingRespond, BookingCancel, BookingResponse
from app.schemas.review import (
    ReviewCreate,
    ReviewUpdate,
    ReviewStatusUpdate,
    ReviewReply,
    ReviewResponse,
    ReviewListResponse,
    RatingSummary,
)
from app.schemas.notification import NotificationResponse
from app.schemas.completion import (
    ReviewRequestResult,
    SessionCompletionResult,
    AutoCompletionItem,
    AutoCompletionReport,
    ReviewStats,
    ReminderSent,
    ReminderReport,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "SessionCreate", "SessionUpdate", "SessionResponse", "SessionListResponse",
    "BookingCreate", "BookingRespond", "BookingCancel", "BookingResponse",
    "ReviewCreate", "ReviewUpdate", "ReviewStatusUpdate", "ReviewReply",
    "ReviewResponse", "ReviewListResponse", "RatingSummary",
    "NotificationResponse",
    "ReviewRequestResult", "SessionCompletionResult", "AutoCompletionItem",
    "AutoCompletionReport", "ReviewStats", "ReminderSent", "ReminderReport",
]
