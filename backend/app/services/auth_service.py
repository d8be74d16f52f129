"""
Account registration and login.

Registering as a professional also creates the professional profile that
sessions, bookings and reviews hang off.
"""

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, ForbiddenException
from app.core.logging import get_logger
from app.core.security import create_access_token, hash_password, verify_password
from app.models.professional import Professional
from app.models.user import User
from app.repositories.professional_repository import ProfessionalRepository
from app.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """Create the account (and professional profile); 409 on a taken email or username."""
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="email_exists", email=user_data.email)
        raise ConflictException("Email already registered", code="EMAIL_TAKEN")

    result = await db.execute(select(User).where(User.username == user_data.username))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="username_exists", username=user_data.username)
        raise ConflictException("Username already taken", code="USERNAME_TAKEN")

    user = User(
        email=user_data.email,
        username=user_data.username,
        hashed_password=hash_password(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        role=user_data.role,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    if user.role == "professional":
        professional = await ProfessionalRepository(db).add(
            Professional(
                user_id=user.id,
                business_name=user_data.business_name,
                booking_mode=user_data.booking_mode,
                city=user_data.city,
            )
        )
        logger.info("professional_profile_created", user_id=user.id, professional_id=professional.id)

    logger.info("user_registered", user_id=user.id, email=user.email, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """Check credentials and issue a JWT access token carrying the user id and role."""
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise ForbiddenException("Account is deactivated", code="ACCOUNT_INACTIVE")

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id)
    return token
