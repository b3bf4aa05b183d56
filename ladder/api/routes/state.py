"""State snapshot and health route handlers."""

import logging

from fastapi import APIRouter, Depends

from ladder.api.auth_dependencies import get_current_identity, get_storage
from ladder.models.records import Identity
from ladder.services import state_service
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/health")
async def health_check():
    return {"status": "healthy"}


@router.get("/api/state")
async def get_state(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    """
    Full current state for the UI.

    Expired unconfirmed reports are promoted before the read; their ids are
    returned in promoted_pending_matches.
    """
    return await state_service.get_state(storage)
