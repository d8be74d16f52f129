"""
Review submission and moderation.

The unique constraint on (client_id, content_id, content_type) decides
whether a review is a duplicate. The lookup before the insert only saves a
round trip in the common case; two concurrent submissions both pass it, and
the loser's INSERT fails with IntegrityError, which is turned into the same
409 the lookup would have produced.

Every change that can move a target's rating (create, status change, edit,
delete) ends with a recompute of that target.
"""

from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    DuplicateReviewException,
    ForbiddenException,
    NotFoundException,
)
from app.core.logging import get_logger
from app.core.metrics import record_review_submission
from app.db.base import utcnow
from app.models.professional import Professional
from app.models.review import Review
from app.models.user import User
from app.repositories.booking_repository import BookingRepository
from app.repositories.professional_repository import ProfessionalRepository
from app.repositories.review_repository import ReviewRepository
from app.schemas.review import ReviewCreate, ReviewListResponse, ReviewResponse, ReviewUpdate
from app.services.interfaces.notifier import Notifier
from app.services.rating_service import RATED_MODELS, RatingService

logger = get_logger(__name__)


class ReviewService:
    def __init__(self, db: AsyncSession, notifier: Notifier, now: Callable = utcnow):
        self.db = db
        self.notifier = notifier
        self.now = now
        self.reviews = ReviewRepository(db)
        self.bookings = BookingRepository(db)
        self.professionals = ProfessionalRepository(db)
        self.ratings = RatingService(db)

    async def _get_target(self, content_type: str, content_id: int):
        target = await self.db.get(RATED_MODELS[content_type], content_id)
        if target is None:
            raise NotFoundException(
                f"{content_type.capitalize()} not found",
                code="CONTENT_NOT_FOUND",
                details={"content_type": content_type, "content_id": content_id},
            )
        return target

    @staticmethod
    def _owner_and_title(content_type: str, target) -> tuple[int, str]:
        if content_type == "professional":
            return target.id, target.business_name
        if content_type == "session" and not target.title:
            return target.professional_id, f"Session on {target.start_time:%d/%m/%Y}"
        return target.professional_id, target.title

    async def _get_review(self, review_id: int) -> Review:
        review = await self.reviews.get(review_id)
        if review is None:
            raise NotFoundException("Review not found", code="REVIEW_NOT_FOUND")
        return review

    async def _get_owned_review(self, professional_user_id: int, review_id: int) -> Review:
        review = await self._get_review(review_id)
        professional = await self.professionals.get_by_user_id(professional_user_id)
        if professional is None or review.professional_id != professional.id:
            raise ForbiddenException("You can only manage reviews of your own content")
        return review

    async def _get_authored_review(self, client_id: int, review_id: int) -> Review:
        review = await self._get_review(review_id)
        if review.client_id != client_id:
            raise ForbiddenException("You can only change your own reviews")
        return review

    async def create_review(self, client_id: int, data: ReviewCreate) -> Review:
        client = await self.db.get(User, client_id)
        if client is None or client.role != "client":
            raise ForbiddenException("Only clients can leave reviews", code="CLIENTS_ONLY")

        target = await self._get_target(data.content_type, data.content_id)
        professional_id, content_title = self._owner_and_title(data.content_type, target)

        if data.content_type == "session":
            if await self.bookings.find_reviewable(client_id, data.content_id) is None:
                raise ForbiddenException(
                    "You must have participated in this session to leave a review",
                    code="NOT_A_PARTICIPANT",
                )

        if await self.reviews.find_for_client(client_id, data.content_type, data.content_id):
            record_review_submission(created=False)
            raise DuplicateReviewException(data.content_type, data.content_id)

        review = Review(
            client_id=client_id,
            professional_id=professional_id,
            content_type=data.content_type,
            content_id=data.content_id,
            content_title=content_title,
            rating=data.rating,
            comment=data.comment,
            aspects=data.aspects or {},
            tags=data.tags,
            would_recommend=data.would_recommend,
            status="approved",
        )
        try:
            review = await self.reviews.add(review)
        except IntegrityError:
            await self.db.rollback()
            record_review_submission(created=False)
            logger.info(
                "review_duplicate_rejected",
                client_id=client_id,
                content_type=data.content_type,
                content_id=data.content_id,
            )
            raise DuplicateReviewException(data.content_type, data.content_id) from None

        record_review_submission(created=True)
        await self.ratings.recompute(review.content_type, review.content_id)
        await self._notify_new_review(review, client)

        logger.info(
            "review_created",
            review_id=review.id,
            client_id=client_id,
            content_type=review.content_type,
            content_id=review.content_id,
            rating=review.rating,
        )
        return review

    async def _notify_new_review(self, review: Review, client: User) -> None:
        professional = await self.professionals.get(review.professional_id)
        await self.notifier.notify(
            "new_review",
            professional.user_id,
            {
                "title": "New review received!",
                "message": (
                    f"{client.full_name} left a {review.rating}-star review "
                    f'on "{review.content_title}".'
                ),
                "link": "/dashboard/professional/reviews",
                "data": {
                    "review_id": review.id,
                    "content_type": review.content_type,
                    "content_id": review.content_id,
                    "content_title": review.content_title,
                    "client_name": client.full_name,
                    "rating": review.rating,
                    "comment": review.comment[:100],
                },
            },
        )

    async def update_status(self, professional_user_id: int, review_id: int, status: str) -> Review:
        review = await self._get_owned_review(professional_user_id, review_id)
        previous = review.status
        review.status = status
        review = await self.reviews.save(review)
        await self.ratings.recompute(review.content_type, review.content_id)

        logger.info("review_status_changed", review_id=review.id, previous=previous, status=status)
        return review

    async def respond(self, professional_user_id: int, review_id: int, response: str) -> Review:
        review = await self._get_owned_review(professional_user_id, review_id)
        review.professional_response = response
        review.responded_at = self.now()
        review = await self.reviews.save(review)

        logger.info("review_responded", review_id=review.id)
        return review

    async def edit(self, client_id: int, review_id: int, data: ReviewUpdate) -> Review:
        review = await self._get_authored_review(client_id, review_id)
        review.rating = data.rating
        review.comment = data.comment
        review.would_recommend = data.would_recommend
        review.aspects = data.aspects or {}
        review = await self.reviews.save(review)
        await self.ratings.recompute(review.content_type, review.content_id)

        logger.info("review_edited", review_id=review.id, rating=review.rating)
        return review

    async def delete(self, user_id: int, review_id: int) -> None:
        review = await self._get_review(review_id)
        user = await self.db.get(User, user_id)
        if review.client_id != user_id and (user is None or user.role != "admin"):
            raise ForbiddenException("You can only delete your own reviews")

        content_type, content_id = review.content_type, review.content_id
        await self.reviews.delete(review)
        await self.ratings.recompute(content_type, content_id)

        logger.info("review_deleted", review_id=review_id, content_type=content_type, content_id=content_id)

    async def list_for_content(
        self,
        content_type: str,
        content_id: int,
        page: int = 1,
        page_size: int = 10,
    ) -> ReviewListResponse:
        target = await self._get_target(content_type, content_id)
        reviews, total = await self.reviews.list_for_content(content_type, content_id, page, page_size)
        return ReviewListResponse(
            reviews=[ReviewResponse.model_validate(review) for review in reviews],
            total=total,
            page=page,
            page_size=page_size,
            average_rating=target.average_rating,
            review_count=target.review_count,
        )

    async def my_session_review(self, client_id: int, session_id: int) -> Optional[Review]:
        return await self.reviews.find_for_client(client_id, "session", session_id)

    async def professional_for_user(self, user_id: int) -> Professional:
        professional = await self.professionals.get_by_user_id(user_id)
        if professional is None:
            raise NotFoundException("Professional profile not found", code="PROFESSIONAL_NOT_FOUND")
        return professional
