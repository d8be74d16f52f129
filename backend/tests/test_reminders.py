"""
Tests for review reminders and review statistics.
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient

from app.core.exceptions import NotFoundException
from app.models.review import Review
from app.services.review_request_service import REVIEW_REMINDER, ReviewRequestService


@pytest_asyncio.fixture
async def leave_review(db_session, professional):
    async def _leave(client, session, rating: int = 5, status: str = "approved") -> Review:
        review = Review(
            client_id=client.id,
            professional_id=professional.id,
            content_type="session",
            content_id=session.id,
            content_title=session.title,
            rating=rating,
            status=status,
        )
        db_session.add(review)
        await db_session.commit()
        return review

    return _leave


@pytest.mark.asyncio
async def test_reminders_go_to_recent_unreviewed_clients(
    db_session, recording_notifier, clock, make_session, make_booking, leave_review, test_user, other_client, pro_user
):
    service = ReviewRequestService(db_session, recording_notifier, now=clock)
    recent = await make_session(status="completed", title="Recent Yoga")
    edge = await make_session(status="completed", title="Edge Yoga")
    old = await make_session(status="completed", title="Old Yoga")

    reminded = await make_booking(recent, test_user, status="completed", completed_at=clock() - timedelta(days=2))
    reviewed = await make_booking(recent, other_client, status="completed", completed_at=clock() - timedelta(days=2))
    on_edge = await make_booking(edge, test_user, status="completed", completed_at=clock() - timedelta(days=7))
    await make_booking(old, test_user, status="completed", completed_at=clock() - timedelta(days=8))
    await leave_review(other_client, recent, status="pending")

    report = await service.send_review_reminders(pro_user.id)

    assert {r.booking_id for r in report.reminders_sent} == {reminded.id, on_edge.id}
    assert reviewed.id not in {r.booking_id for r in report.reminders_sent}
    first = next(r for r in report.reminders_sent if r.booking_id == reminded.id)
    assert first.client_name == "Amina Benali"
    assert first.session_title == "Recent Yoga"

    sent = recording_notifier.of_kind(REVIEW_REMINDER)
    assert [recipient for _, recipient, _ in sent] == [test_user.id, test_user.id]
    payload = sent[0][2]
    assert payload["data"]["is_reminder"] is True
    assert payload["link"].endswith("/review")


@pytest.mark.asyncio
async def test_reminder_failure_skips_that_client(
    db_session, failing_notifier, clock, make_session, make_booking, test_user, other_client, pro_user
):
    notifier = failing_notifier({test_user.id})
    service = ReviewRequestService(db_session, notifier, now=clock)
    session = await make_session(status="completed")
    await make_booking(session, test_user, status="completed", completed_at=clock() - timedelta(days=1))
    delivered = await make_booking(session, other_client, status="completed", completed_at=clock() - timedelta(days=1))

    report = await service.send_review_reminders(pro_user.id)

    assert [r.booking_id for r in report.reminders_sent] == [delivered.id]


@pytest.mark.asyncio
async def test_reminders_need_professional_profile(db_session, recording_notifier, test_user):
    service = ReviewRequestService(db_session, recording_notifier)
    with pytest.raises(NotFoundException) as exc_info:
        await service.send_review_reminders(test_user.id)
    assert exc_info.value.code == "PROFESSIONAL_NOT_FOUND"


@pytest.mark.asyncio
async def test_reminders_endpoint(
    client: AsyncClient, pro_headers, auth_headers, make_session, make_booking, test_user, clock
):
    session = await make_session(status="completed")
    await make_booking(session, test_user, status="completed", completed_at=clock() - timedelta(days=1))

    response = await client.post("/api/v1/reviews/reminders", headers=auth_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/reviews/reminders", headers=pro_headers)
    assert response.status_code == 200
    assert [r["client_id"] for r in response.json()["reminders_sent"]] == [test_user.id]


@pytest.mark.asyncio
async def test_review_stats(
    client: AsyncClient, pro_headers, make_session, make_booking, leave_review, test_user, other_client, clock
):
    first = await make_session(status="completed")
    second = await make_session(status="completed")
    await make_session()
    await make_booking(first, test_user, status="completed", completed_at=clock())
    await make_booking(second, other_client, status="completed", completed_at=clock() - timedelta(days=30))
    await leave_review(test_user, first)

    response = await client.get("/api/v1/reviews/stats", headers=pro_headers)
    assert response.status_code == 200
    assert response.json() == {
        "completed_sessions": 2,
        "reviews_received": 1,
        "pending_reviews": 1,
        "review_rate": 50,
    }


@pytest.mark.asyncio
async def test_review_stats_without_sessions(client: AsyncClient, pro_headers):
    response = await client.get("/api/v1/reviews/stats", headers=pro_headers)
    assert response.json()["review_rate"] == 0
