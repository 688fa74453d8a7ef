"""
API Routers
FastAPI route handlers for different endpoints.
"""

from .admin import router as admin_router
from .businesses import router as businesses_router
from .claims import router as claims_router
from .cron import router as cron_router
from .health import router as health_router
from .notifications import router as notifications_router
from .onboarding import router as onboarding_router
from .reviews import router as reviews_router
from .saved import router as saved_router
from .users import router as users_router
from .verification import router as verification_router

__all__ = [
    "health_router",
    "users_router",
    "onboarding_router",
    "businesses_router",
    "saved_router",
    "reviews_router",
    "notifications_router",
    "claims_router",
    "verification_router",
    "admin_router",
    "cron_router",
]
