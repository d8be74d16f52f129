"""
Tests for session catalog endpoints.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.notification import Notification
from app.models.session import Session


def _session_payload(clock, **overrides) -> dict:
    payload = {
        "title": "Sunset Meditation",
        "description": "Guided breathing and meditation on the terrace",
        "start_time": (clock() + timedelta(days=3)).isoformat(),
        "duration": 90,
        "max_participants": 8,
        "price": 200,
        "category": "group",
        "location": "Riad Zitoun, Marrakech",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_session(client: AsyncClient, pro_headers, professional, db_session, clock):
    response = await client.post("/api/v1/sessions/", json=_session_payload(clock), headers=pro_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["professional_id"] == professional.id
    assert data["participants"] == []
    assert data["available_spots"] == 8

    session = await db_session.get(Session, data["id"])
    assert session.end_time - session.start_time == timedelta(minutes=90)


@pytest.mark.asyncio
async def test_create_session_requires_professional(client: AsyncClient, auth_headers, clock):
    response = await client.post("/api/v1/sessions/", json=_session_payload(clock), headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_online_session_requires_meeting_link(client: AsyncClient, pro_headers, clock):
    payload = _session_payload(clock, category="online", location=None)
    response = await client.post("/api/v1/sessions/", json=payload, headers=pro_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_meeting_link_must_be_url(client: AsyncClient, pro_headers, clock):
    payload = _session_payload(clock, category="online", meeting_link="not a link")
    response = await client.post("/api/v1/sessions/", json=payload, headers=pro_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("field, value", [("duration", 10), ("duration", 500), ("max_participants", 0), ("price", -5)])
async def test_create_session_field_bounds(client: AsyncClient, pro_headers, clock, field, value):
    response = await client.post("/api/v1/sessions/", json=_session_payload(clock, **{field: value}), headers=pro_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_session_in_the_past(client: AsyncClient, pro_headers, clock):
    payload = _session_payload(clock, start_time=(clock() - timedelta(hours=1)).isoformat())
    response = await client.post("/api/v1/sessions/", json=payload, headers=pro_headers)
    assert response.status_code == 400
    assert response.json()["detail"]["details"]["field"] == "start_time"


@pytest.mark.asyncio
async def test_list_upcoming_sessions(client: AsyncClient, make_session, clock):
    await make_session(start_time=clock() + timedelta(days=5), title="Later Yoga")
    await make_session(start_time=clock() + timedelta(days=1), title="Soon Yoga")
    await make_session(start_time=clock() - timedelta(days=1), title="Past Yoga")
    await make_session(start_time=clock() + timedelta(days=2), title="Cancelled Yoga", status="cancelled")

    response = await client.get("/api/v1/sessions/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [s["title"] for s in data["sessions"]] == ["Soon Yoga", "Later Yoga"]
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_list_sessions_by_category(client: AsyncClient, make_session):
    await make_session(category="workshop", title="Pottery Workshop")
    await make_session(category="group")

    response = await client.get("/api/v1/sessions/", params={"category": "workshop"})
    assert [s["title"] for s in response.json()["sessions"]] == ["Pottery Workshop"]


@pytest.mark.asyncio
async def test_get_session_not_found(client: AsyncClient):
    response = await client.get("/api/v1/sessions/99999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_session_lists_participants(client: AsyncClient, make_session, make_booking, test_user):
    session = await make_session(max_participants=3)
    await make_booking(session, test_user)

    response = await client.get(f"/api/v1/sessions/{session.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["participants"] == [test_user.id]
    assert data["available_spots"] == 2


@pytest.mark.asyncio
async def test_update_session_recomputes_end_time(client: AsyncClient, pro_headers, make_session, db_session, clock):
    session = await make_session()
    new_start = clock() + timedelta(days=4)

    response = await client.put(
        f"/api/v1/sessions/{session.id}",
        json={"start_time": new_start.isoformat(), "duration": 45, "title": "Power Yoga"},
        headers=pro_headers,
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Power Yoga"

    await db_session.refresh(session)
    assert session.start_time == new_start
    assert session.end_time == new_start + timedelta(minutes=45)


@pytest.mark.asyncio
async def test_update_switch_to_online_needs_link(client: AsyncClient, pro_headers, make_session):
    session = await make_session()
    response = await client.put(
        f"/api/v1/sessions/{session.id}",
        json={"category": "online"},
        headers=pro_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["completed", "in_progress", "cancelled"])
async def test_update_locked_session(client: AsyncClient, pro_headers, make_session, status):
    session = await make_session(status=status)
    response = await client.put(
        f"/api/v1/sessions/{session.id}",
        json={"title": "Renamed session"},
        headers=pro_headers,
    )
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "SESSION_LOCKED"


@pytest.mark.asyncio
async def test_update_rejects_start_in_the_past(client: AsyncClient, pro_headers, make_session, clock):
    session = await make_session()
    response = await client.put(
        f"/api/v1/sessions/{session.id}",
        json={"start_time": (clock() - timedelta(hours=2)).isoformat()},
        headers=pro_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_by_another_professional(client: AsyncClient, make_session):
    session = await make_session()
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

    response = await client.put(f"/api/v1/sessions/{session.id}", json={"title": "Hijacked"}, headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_session_notifies_participants(
    client: AsyncClient, pro_headers, make_session, make_booking, test_user, db_session
):
    session = await make_session()
    await make_booking(session, test_user)

    response = await client.put(f"/api/v1/sessions/{session.id}/cancel", headers=pro_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    result = await db_session.execute(select(Notification).where(Notification.user_id == test_user.id))
    notifications = result.scalars().all()
    assert [n.kind for n in notifications] == ["session_cancelled"]


@pytest.mark.asyncio
async def test_cannot_cancel_completed_session(client: AsyncClient, pro_headers, make_session):
    session = await make_session(status="completed")
    response = await client.put(f"/api/v1/sessions/{session.id}/cancel", headers=pro_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_session_bookings_owner_only(
    client: AsyncClient, pro_headers, auth_headers, make_session, make_booking, test_user
):
    session = await make_session()
    booking = await make_booking(session, test_user, status="pending")

    response = await client.get(f"/api/v1/sessions/{session.id}/bookings", headers=pro_headers)
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [booking.id]

    response = await client.get(f"/api/v1/sessions/{session.id}/bookings", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_my_sessions(client: AsyncClient, pro_headers, make_session):
    await make_session(title="Morning Yoga")
    await make_session(title="Old Yoga", status="completed")

    response = await client.get("/api/v1/sessions/mine", headers=pro_headers)
    assert response.status_code == 200
    assert len(response.json()) == 2

    response = await client.get("/api/v1/sessions/mine", params={"status": "completed"}, headers=pro_headers)
    assert [s["title"] for s in response.json()] == ["Old Yoga"]
