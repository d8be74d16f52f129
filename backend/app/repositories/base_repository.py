"""
Base repository: a typed handle over one table, bound to an AsyncSession.

Repositories only read and write. Transactions belong to the caller
(request dependency or batch job), so nothing here commits.
"""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    model: Type[ModelT]

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, entity_id: int, reload: bool = False) -> Optional[ModelT]:
        """Fetch by primary key. `reload` overwrites any identity-map copy with the stored row."""
        return await self.db.get(self.model, entity_id, populate_existing=reload)

    async def add(self, entity: ModelT) -> ModelT:
        self.db.add(entity)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def save(self, entity: ModelT) -> ModelT:
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self.db.delete(entity)
        await self.db.flush()
