r"""
Session and booking lifecycles as explicit state machines.

Every status change in the services goes through `transition()`, so the
set of legal moves lives in the two tables below and nowhere else. The
tables are also used to build the status guards of conditional UPDATEs:
`sources_for()` returns the states from which an event is legal.

Session:

    scheduled --start--> in_progress --complete--> completed
        |                    |
        +------cancel--------+--> cancelled
    scheduled --complete--> completed

Booking:

    pending --accept--> confirmed --start--> in_progress --complete--> completed
       |                   |  \----complete------------------------------^
       |                   +--no_show--> no_show
       +--decline/cancel---+--cancel (also from in_progress)--> cancelled
"""

from enum import Enum

from app.core.exceptions import InvalidTransitionException


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SessionEvent(str, Enum):
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class BookingEvent(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    NO_SHOW = "no_show"


SESSION_TRANSITIONS: dict[tuple[SessionStatus, SessionEvent], SessionStatus] = {
    (SessionStatus.SCHEDULED, SessionEvent.START): SessionStatus.IN_PROGRESS,
    (SessionStatus.SCHEDULED, SessionEvent.COMPLETE): SessionStatus.COMPLETED,
    (SessionStatus.IN_PROGRESS, SessionEvent.COMPLETE): SessionStatus.COMPLETED,
    (SessionStatus.SCHEDULED, SessionEvent.CANCEL): SessionStatus.CANCELLED,
    (SessionStatus.IN_PROGRESS, SessionEvent.CANCEL): SessionStatus.CANCELLED,
}

BOOKING_TRANSITIONS: dict[tuple[BookingStatus, BookingEvent], BookingStatus] = {
    (BookingStatus.PENDING, BookingEvent.ACCEPT): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingEvent.DECLINE): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingEvent.START): BookingStatus.IN_PROGRESS,
    (BookingStatus.CONFIRMED, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.CONFIRMED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingEvent.NO_SHOW): BookingStatus.NO_SHOW,
    (BookingStatus.IN_PROGRESS, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.IN_PROGRESS, BookingEvent.CANCEL): BookingStatus.CANCELLED,
}

# Sessions in these states are frozen for edits
LOCKED_SESSION_STATES = frozenset({SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED})

# Bookings that block the same client from reserving the session again
ACTIVE_BOOKING_STATES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}
)


def _lookup(table: dict, entity: str, current, event):
    try:
        return table[(current, event)]
    except KeyError:
        raise InvalidTransitionException(entity, current.value, event.value) from None


def session_transition(current: SessionStatus | str, event: SessionEvent) -> SessionStatus:
    return _lookup(SESSION_TRANSITIONS, "session", SessionStatus(current), event)


def booking_transition(current: BookingStatus | str, event: BookingEvent) -> BookingStatus:
    return _lookup(BOOKING_TRANSITIONS, "booking", BookingStatus(current), event)


def session_sources_for(event: SessionEvent) -> list[SessionStatus]:
    return [state for (state, ev) in SESSION_TRANSITIONS if ev is event]


def booking_sources_for(event: BookingEvent) -> list[BookingStatus]:
    return [state for (state, ev) in BOOKING_TRANSITIONS if ev is event]


def session_is_editable(current: SessionStatus | str) -> bool:
    status = SessionStatus(current)
    return status not in LOCKED_SESSION_STATES and status is not SessionStatus.CANCELLED
