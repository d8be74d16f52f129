"""
Review aggregation: keeps the rating summary stored on each review target
in step with its approved reviews.

Averages are written at full precision. Rounding to one decimal happens in
the response schemas, so repeated recomputation never compounds rounding
error.
"""

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.catalog import Product, Event
from app.models.professional import Professional
from app.models.session import Session
from app.repositories.review_repository import ReviewRepository
from app.schemas.review import ContentBreakdown, RatingSummary
from app.core.logging import get_logger

logger = get_logger(__name__)

RATED_MODELS = {
    "product": Product,
    "event": Event,
    "session": Session,
    "professional": Professional,
}


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when `whole` is 0."""
    if whole <= 0:
        return 0
    return int(part * 100 / whole + 0.5)


class RatingService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.reviews = ReviewRepository(db)

    async def recompute(self, content_type: str, content_id: int) -> tuple[float, int]:
        """Recalculate and store the average and count of approved reviews for one target."""
        model = RATED_MODELS[content_type]
        average, count = await self.reviews.approved_stats(content_type, content_id)

        await self.db.execute(
            update(model)
            .where(model.id == content_id)
            .values(average_rating=average, review_count=count)
            .execution_options(synchronize_session="fetch")
        )
        logger.info(
            "rating_recomputed",
            content_type=content_type,
            content_id=content_id,
            average_rating=average,
            review_count=count,
        )
        return average, count

    async def rating_summary(self, professional_id: int) -> RatingSummary:
        rows = await self.reviews.rating_histogram(professional_id)

        distribution = {star: 0 for star in range(1, 6)}
        per_type: dict[str, list[int]] = {}  # content_type -> [count, rating sum]
        for content_type, rating, count in rows:
            distribution[rating] += count
            totals = per_type.setdefault(content_type, [0, 0])
            totals[0] += count
            totals[1] += rating * count

        total = sum(distribution.values())
        rating_sum = sum(star * count for star, count in distribution.items())

        return RatingSummary(
            total_reviews=total,
            average_rating=rating_sum / total if total else 0.0,
            distribution=distribution,
            by_content_type={
                content_type: ContentBreakdown(count=count, average_rating=ratings / count)
                for content_type, (count, ratings) in per_type.items()
            },
            satisfaction_rate=percent(distribution[4] + distribution[5], total),
        )
