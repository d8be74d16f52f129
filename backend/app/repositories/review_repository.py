"""
Review store and the aggregate queries behind rating summaries.
"""

from typing import Optional

from sqlalchemy import select, func

from app.models.review import Review
from app.repositories.base_repository import BaseRepository


class ReviewRepository(BaseRepository[Review]):
    model = Review

    async def find_for_client(self, client_id: int, content_type: str, content_id: int) -> Optional[Review]:
        result = await self.db.execute(
            select(Review).where(
                Review.client_id == client_id,
                Review.content_type == content_type,
                Review.content_id == content_id,
            )
        )
        return result.scalar_one_or_none()

    async def approved_stats(self, content_type: str, content_id: int) -> tuple[float, int]:
        """(mean rating, count) over approved reviews; (0.0, 0) when there are none."""
        result = await self.db.execute(
            select(func.avg(Review.rating), func.count(Review.id)).where(
                Review.content_type == content_type,
                Review.content_id == content_id,
                Review.status == "approved",
            )
        )
        average, count = result.one()
        return float(average or 0), int(count or 0)

    async def list_for_content(
        self,
        content_type: str,
        content_id: int,
        page: int = 1,
        page_size: int = 10,
        status: str = "approved",
    ) -> tuple[list[Review], int]:
        query = select(Review).where(
            Review.content_type == content_type,
            Review.content_id == content_id,
            Review.status == status,
        )
        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar()
        result = await self.db.execute(
            query
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def count_for_professional(self, professional_id: int, content_type: Optional[str] = None) -> int:
        query = select(func.count(Review.id)).where(Review.professional_id == professional_id)
        if content_type:
            query = query.where(Review.content_type == content_type)
        return (await self.db.execute(query)).scalar_one()

    async def rating_histogram(self, professional_id: int) -> list[tuple[str, int, int]]:
        """(content_type, rating, count) rows over the professional's approved reviews."""
        result = await self.db.execute(
            select(Review.content_type, Review.rating, func.count(Review.id))
            .where(
                Review.professional_id == professional_id,
                Review.status == "approved",
            )
            .group_by(Review.content_type, Review.rating)
        )
        return [(content_type, rating, count) for content_type, rating, count in result.all()]
