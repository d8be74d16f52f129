"""
Professional Directory: resolves professional profiles, mostly by the
owning user id (the id carried in access tokens).
"""

from typing import Optional

from sqlalchemy import select

from app.models.professional import Professional
from app.repositories.base_repository import BaseRepository


class ProfessionalRepository(BaseRepository[Professional]):
    model = Professional

    async def get_by_user_id(self, user_id: int) -> Optional[Professional]:
        result = await self.db.execute(select(Professional).where(Professional.user_id == user_id))
        return result.scalar_one_or_none()
