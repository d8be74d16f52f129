"""
One-shot session auto-completion run, meant to be called by an external
scheduler (cron, Kubernetes CronJob):

    python -m app.jobs.auto_complete

Exits non-zero only when the run itself could not start (database
unreachable). Sessions that failed individually are in the log and are
retried by the next run.
"""

import asyncio
import sys

from app.core.logging import bind_job_context, clear_job_context, get_logger, setup_logging
from app.db.session import AsyncSessionLocal, engine
from app.schemas.completion import AutoCompletionReport
from app.services.completion_service import CompletionService
from app.services.notification_service import DatabaseNotifier

logger = get_logger(__name__)


async def run() -> AutoCompletionReport:
    job_id = bind_job_context("auto_complete_sessions")
    try:
        async with AsyncSessionLocal() as db:
            report = await CompletionService(db, DatabaseNotifier(db)).auto_complete_expired_sessions()
        logger.info(
            "job_finished",
            job_id=job_id,
            completed=report.completed_count,
            processed=len(report.results),
        )
        return report
    finally:
        clear_job_context()
        await engine.dispose()


def main() -> int:
    setup_logging()
    try:
        asyncio.run(run())
    except Exception as exc:
        logger.error("job_failed", error=str(exc), exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
