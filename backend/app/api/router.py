"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import auth, sessions, bookings, reviews, notifications

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(sessions.router)
api_router.include_router(bookings.router)
api_router.include_router(reviews.router)
api_router.include_router(notifications.router)
