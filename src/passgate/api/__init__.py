"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Health and the auth router are open. Routes that need a caller
(logout, /me) declare get_current_principal themselves, since the auth
router mixes anonymous and authenticated endpoints.
"""

from fastapi import APIRouter

from passgate.api.auth import router as auth_router
from passgate.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
