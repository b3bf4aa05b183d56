"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

REPORT_RATE_LIMIT = os.getenv("REPORT_RATE_LIMIT", "30/minute")

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from ladder.api.routes.state import router as state_router
from ladder.api.routes.me import router as me_router
from ladder.api.routes.players import router as players_router
from ladder.api.routes.matches import router as matches_router
from ladder.api.routes.pending_matches import router as pending_matches_router
from ladder.api.routes.tournaments import router as tournaments_router
from ladder.api.routes.seasons import router as seasons_router
from ladder.api.routes.challenges import router as challenges_router
from ladder.api.routes.admin import router as admin_router

router = APIRouter()
router.include_router(state_router)
router.include_router(me_router)
router.include_router(players_router)
router.include_router(matches_router)
router.include_router(pending_matches_router)
router.include_router(tournaments_router)
router.include_router(seasons_router)
router.include_router(challenges_router)
router.include_router(admin_router)
