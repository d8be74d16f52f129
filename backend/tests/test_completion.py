"""
Tests for session completion: the expiry batch, the manual endpoint and
the review requests both of them send.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.core.exceptions import BusinessRuleException
from app.models.booking import Booking
from app.models.notification import Notification
from app.models.session import Session
from app.repositories.session_repository import ExpiredSession
from app.services.completion_service import CompletionService
from app.services.notification_service import DatabaseNotifier
from app.services.review_request_service import REVIEW_REQUEST


def _ended(clock, hours_ago: float = 1, duration: int = 60):
    """Start time of a session that ended `hours_ago` hours before the clock."""
    return clock() - timedelta(hours=hours_ago) - timedelta(minutes=duration)


@pytest.fixture
def completion(db_session, recording_notifier, clock):
    return CompletionService(db_session, recording_notifier, now=clock)


@pytest.mark.asyncio
async def test_only_sessions_past_grace_period_are_completed(completion, make_session, db_session, clock):
    expired = await make_session(start_time=_ended(clock), title="Yesterday Yoga")
    just_ended = await make_session(start_time=clock() - timedelta(minutes=62))
    upcoming = await make_session()
    cancelled = await make_session(start_time=_ended(clock), status="cancelled")

    report = await completion.auto_complete_expired_sessions()

    assert report.completed_count == 1
    assert [(item.session_id, item.status) for item in report.results] == [(expired.id, "completed")]
    assert report.results[0].session_title == "Yesterday Yoga"

    for session in (expired, just_ended, upcoming, cancelled):
        await db_session.refresh(session)
    assert expired.status == "completed"
    assert just_ended.status == "scheduled"
    assert upcoming.status == "scheduled"
    assert cancelled.status == "cancelled"


@pytest.mark.asyncio
async def test_expired_session_completes_confirmed_bookings_only(
    completion, make_session, make_booking, test_user, other_client, db_session, clock
):
    session = await make_session(start_time=_ended(clock))
    confirmed = await make_booking(session, test_user)
    pending = await make_booking(session, other_client, status="pending")

    report = await completion.auto_complete_expired_sessions()
    assert report.results[0].review_requests_sent == 1

    await db_session.refresh(confirmed)
    await db_session.refresh(pending)
    assert confirmed.status == "completed"
    assert confirmed.completed_at == clock()
    assert pending.status == "pending"
    assert pending.completed_at is None


@pytest.mark.asyncio
async def test_review_request_sent_to_each_completed_client(
    completion, recording_notifier, make_session, make_booking, test_user, other_client, professional, clock
):
    session = await make_session(start_time=_ended(clock), title="Breathwork Circle")
    first = await make_booking(session, test_user)
    second = await make_booking(session, other_client)

    await completion.auto_complete_expired_sessions()

    requests = recording_notifier.of_kind(REVIEW_REQUEST)
    assert sorted(recipient for _, recipient, _ in requests) == sorted([test_user.id, other_client.id])

    payload = next(p for _, recipient, p in requests if recipient == test_user.id)
    assert payload["title"] == "Your session is over!"
    assert payload["link"] == f"/sessions/{session.id}/review"
    assert payload["data"]["booking_id"] == first.id
    assert payload["data"]["session_title"] == "Breathwork Circle"
    assert payload["data"]["professional_name"] == "Zen Studio"
    assert payload["data"]["professional_id"] == professional.id
    assert payload["data"]["can_review"] is True
    assert second.id in {p["data"]["booking_id"] for _, _, p in requests}


@pytest.mark.asyncio
async def test_second_run_does_nothing(completion, recording_notifier, make_session, make_booking, test_user, clock):
    session = await make_session(start_time=_ended(clock))
    await make_booking(session, test_user)

    first = await completion.auto_complete_expired_sessions()
    second = await completion.auto_complete_expired_sessions()

    assert first.completed_count == 1
    assert second.completed_count == 0
    assert second.results == []
    assert len(recording_notifier.of_kind(REVIEW_REQUEST)) == 1


@pytest.mark.asyncio
async def test_notifier_failure_is_reported_per_booking(
    db_session, failing_notifier, make_session, make_booking, test_user, other_client, clock
):
    """A failed review request does not undo the completion."""
    notifier = failing_notifier({other_client.id})
    service = CompletionService(db_session, notifier, now=clock)
    session = await make_session(start_time=_ended(clock))
    ok = await make_booking(session, test_user)
    failed = await make_booking(session, other_client)

    report = await service.auto_complete_expired_sessions()

    item = report.results[0]
    assert item.status == "completed"
    assert item.review_requests_sent == 1
    assert [recipient for _, recipient, _ in notifier.sent] == [test_user.id]

    for obj in (session, ok, failed):
        await db_session.refresh(obj)
    assert session.status == "completed"
    assert ok.status == "completed"
    assert failed.status == "completed"


class _UntitledFor(DatabaseNotifier):
    """Writes rows the database rejects for one recipient."""

    def __init__(self, db, recipient_id: int):
        super().__init__(db)
        self.recipient_id = recipient_id

    async def notify(self, kind, recipient_id, payload):
        if recipient_id == self.recipient_id:
            payload = {**payload, "title": None}
        await super().notify(kind, recipient_id, payload)


@pytest.mark.asyncio
async def test_rejected_notification_row_keeps_sibling_requests(
    db_session, make_session, make_booking, test_user, other_client, clock
):
    session = await make_session(start_time=_ended(clock))
    await make_booking(session, test_user)
    await make_booking(session, other_client)
    session_id, rejected_id, delivered_id = session.id, test_user.id, other_client.id
    service = CompletionService(db_session, _UntitledFor(db_session, rejected_id), now=clock)

    report = await service.auto_complete_expired_sessions()

    item = report.results[0]
    assert item.status == "completed"
    assert item.review_requests_sent == 1

    stored = await db_session.scalar(select(Session.status).where(Session.id == session_id))
    assert stored == "completed"
    statuses = await db_session.scalars(select(Booking.status).where(Booking.session_id == session_id))
    assert statuses.all() == ["completed", "completed"]
    recipients = await db_session.scalars(select(Notification.user_id).where(Notification.kind == REVIEW_REQUEST))
    assert recipients.all() == [delivered_id]


@pytest.mark.asyncio
async def test_failing_session_does_not_block_the_batch(
    completion, make_session, make_booking, test_user, other_client, db_session, clock, monkeypatch
):
    broken = await make_session(start_time=_ended(clock, hours_ago=3), title="Broken Session")
    healthy = await make_session(start_time=_ended(clock, hours_ago=1), title="Healthy Session")
    broken_booking = await make_booking(broken, test_user)
    await make_booking(healthy, other_client)
    broken_id, healthy_id, broken_booking_id = broken.id, healthy.id, broken_booking.id

    original = completion.dispatcher.dispatch

    async def dispatch(booking, session, professional):
        if session.id == broken_id:
            raise RuntimeError("database went away")
        await original(booking, session, professional)

    monkeypatch.setattr(completion.dispatcher, "dispatch", dispatch)

    report = await completion.auto_complete_expired_sessions()

    assert report.completed_count == 1
    outcome = {item.session_id: item for item in report.results}
    assert outcome[broken_id].status == "error"
    assert "database went away" in outcome[broken_id].error
    assert outcome[healthy_id].status == "completed"

    stored = await db_session.get(Session, broken_id)
    await db_session.refresh(stored)
    assert stored.status == "scheduled"
    stored_booking = await db_session.get(Booking, broken_booking_id)
    await db_session.refresh(stored_booking)
    assert stored_booking.status == "confirmed"


@pytest.mark.asyncio
async def test_session_completed_elsewhere_is_skipped(
    completion, recording_notifier, make_session, make_booking, test_user, clock, monkeypatch
):
    """The candidate list is stale: another run already completed the session."""
    session = await make_session(start_time=_ended(clock), status="completed")
    await make_booking(session, test_user)
    stale = [ExpiredSession(session.id, session.title, session.professional_id)]

    async def find_expired(cutoff):
        return stale

    monkeypatch.setattr(completion.sessions, "find_expired", find_expired)

    report = await completion.auto_complete_expired_sessions()

    assert report.completed_count == 0
    assert [item.status for item in report.results] == ["skipped"]
    assert recording_notifier.sent == []


@pytest.mark.asyncio
async def test_dispatch_requires_completed_booking(
    completion, make_session, make_booking, test_user, professional
):
    session = await make_session()
    booking = await make_booking(session, test_user)

    with pytest.raises(BusinessRuleException) as exc_info:
        await completion.dispatcher.dispatch(booking, session, professional)
    assert exc_info.value.code == "BOOKING_NOT_COMPLETED"


@pytest.mark.asyncio
async def test_complete_session_endpoint(
    client: AsyncClient, pro_headers, make_session, make_booking, test_user, other_client, db_session, clock
):
    session = await make_session(start_time=_ended(clock, hours_ago=2))
    booking = await make_booking(session, test_user)
    await make_booking(session, other_client, status="cancelled")

    response = await client.post(f"/api/v1/sessions/{session.id}/complete", headers=pro_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["session"]["status"] == "completed"
    assert data["session"]["participants"] == [test_user.id]
    assert data["total_participants"] == 1
    assert data["review_requests"] == [
        {
            "booking_id": booking.id,
            "client_id": test_user.id,
            "client_name": "Amina Benali",
            "status": "sent",
            "error": None,
        }
    ]

    result = await db_session.execute(
        select(Notification.kind).where(Notification.user_id == test_user.id)
    )
    assert result.scalars().all() == [REVIEW_REQUEST]
    result = await db_session.execute(
        select(Notification.kind).where(Notification.user_id == other_client.id)
    )
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_complete_session_twice(client: AsyncClient, pro_headers, make_session, clock):
    session = await make_session(start_time=_ended(clock, hours_ago=2))
    session_id = session.id

    first = await client.post(f"/api/v1/sessions/{session_id}/complete", headers=pro_headers)
    assert first.status_code == 200

    second = await client.post(f"/api/v1/sessions/{session_id}/complete", headers=pro_headers)
    assert second.status_code == 409
    assert second.json()["detail"]["details"]["status"] == "completed"


@pytest.mark.asyncio
async def test_complete_session_before_it_ends(client: AsyncClient, pro_headers, make_session):
    session = await make_session()
    response = await client.post(f"/api/v1/sessions/{session.id}/complete", headers=pro_headers)
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "SESSION_NOT_ENDED"


@pytest.mark.asyncio
async def test_complete_cancelled_session(client: AsyncClient, pro_headers, make_session, clock):
    session = await make_session(start_time=_ended(clock, hours_ago=2), status="cancelled")
    response = await client.post(f"/api/v1/sessions/{session.id}/complete", headers=pro_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_complete_unknown_session(client: AsyncClient, pro_headers):
    response = await client.post("/api/v1/sessions/99999/complete", headers=pro_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_complete_someone_elses_session(client: AsyncClient, make_session, clock):
    session = await make_session(start_time=_ended(clock, hours_ago=2))
    await client.post("/api/v1/auth/register", json={
        "email": "rival@example.com",
        "username": "rival",
        "password": "securepassword123",
        "role": "professional",
        "business_name": "Rival Spa",
    })
    login = await client.post("/api/v1/auth/login", json={
        "email": "rival@example.com",
        "password": "securepassword123",
    })
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    response = await client.post(f"/api/v1/sessions/{session.id}/complete", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_auto_complete_endpoint_admin_only(
    client: AsyncClient, admin_headers, auth_headers, make_session, make_booking, test_user, clock
):
    session = await make_session(start_time=_ended(clock, hours_ago=2))
    await make_booking(session, test_user)
    session_id = session.id

    response = await client.post("/api/v1/sessions/auto-complete", headers=auth_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/sessions/auto-complete", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["completed_count"] == 1
    assert data["results"][0]["session_id"] == session_id
    assert data["results"][0]["review_requests_sent"] == 1


@pytest.mark.asyncio
async def test_hour_session_completes_six_minutes_after_its_end(
    db_session, recording_notifier, make_session, make_booking, test_user, clock
):
    start = clock() - timedelta(minutes=66)
    session = await make_session(start_time=start, duration=60)
    booking = await make_booking(session, test_user)
    service = CompletionService(db_session, recording_notifier, now=clock)

    await service.auto_complete_expired_sessions()

    await db_session.refresh(session)
    await db_session.refresh(booking)
    assert session.status == "completed"
    assert booking.status == "completed"
    assert [(kind, recipient) for kind, recipient, _ in recording_notifier.sent] == [(REVIEW_REQUEST, test_user.id)]


@pytest.mark.asyncio
async def test_hour_session_still_in_grace_period_is_left_alone(
    db_session, recording_notifier, make_session, make_booking, test_user, clock
):
    start = clock() - timedelta(minutes=50)
    session = await make_session(start_time=start, duration=60)
    await make_booking(session, test_user)
    service = CompletionService(db_session, recording_notifier, now=clock)

    report = await service.auto_complete_expired_sessions()

    await db_session.refresh(session)
    assert report.results == []
    assert session.status == "scheduled"
    assert recording_notifier.sent == []
