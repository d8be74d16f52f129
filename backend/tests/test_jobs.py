"""
Tests for the scheduled auto-completion job.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.jobs import auto_complete
from app.models.notification import Notification
from app.models.session import Session


class _KeepEngine:
    async def dispose(self):
        pass


@pytest.fixture
def job_db(engine, monkeypatch):
    monkeypatch.setattr(
        auto_complete,
        "AsyncSessionLocal",
        async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
    )
    monkeypatch.setattr(auto_complete, "engine", _KeepEngine())


@pytest.mark.asyncio
async def test_job_completes_expired_sessions(job_db, make_session, make_booking, test_user, db_session, clock):
    session = await make_session(start_time=clock() - timedelta(hours=3))
    await make_booking(session, test_user)
    session_id = session.id

    report = await auto_complete.run()

    assert report.completed_count == 1
    stored = await db_session.scalar(select(Session.status).where(Session.id == session_id))
    assert stored == "completed"
    kinds = await db_session.scalars(select(Notification.kind).where(Notification.user_id == test_user.id))
    assert kinds.all() == ["session_review_request"]


def test_main_reports_startup_failure(monkeypatch):
    async def broken_run():
        raise ConnectionError("database unreachable")

    monkeypatch.setattr(auto_complete, "run", broken_run)
    monkeypatch.setattr(auto_complete, "setup_logging", lambda: None)
    assert auto_complete.main() == 1
