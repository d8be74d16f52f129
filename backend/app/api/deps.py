"""
Shared route dependencies: the caller's account, role checks and the
notifier used by the services.
"""

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException
from app.core.security import get_current_user_id
from app.db.session import get_db
from app.models.user import User
from app.services.interfaces.notifier import Notifier
from app.services.notification_service import DatabaseNotifier


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_professional(user: User = Depends(get_current_user)) -> User:
    if user.role != "professional":
        raise ForbiddenException("Professional access required", code="PROFESSIONAL_REQUIRED")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise ForbiddenException("Admin access required", code="ADMIN_REQUIRED")
    return user


def get_notifier(db: AsyncSession = Depends(get_db)) -> Notifier:
    return DatabaseNotifier(db)
