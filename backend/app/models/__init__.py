from app.models.user import User
from app.models.professional import Professional
from app.models.session import Session, SessionParticipant
from app.models.booking import Booking, BookingSequence
from app.models.review import Review
from app.models.catalog import Product, Event
from app.models.notification import Notification

__all__ = [
    "User", "Professional",
    "Session", "SessionParticipant",
    "Booking", "BookingSequence",
    "Review", "Product", "Event",
    "Notification",
]
