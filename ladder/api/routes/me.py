"""Current-account route handlers: profile setup, claiming and editing."""

import logging

from fastapi import APIRouter, Depends

from ladder.api.auth_dependencies import get_current_identity, get_role_store, get_storage
from ladder.models.records import Identity
from ladder.models.schemas import ClaimPlayerRequest, ProfileSetupRequest, ProfileUpdateRequest
from ladder.services import player_service
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/me")
async def get_me(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """
    Describe the calling account.

    Returns the admin flag, the linked player (if any), needs_setup and,
    when no player is linked yet, the unclaimed players.
    """
    return await player_service.get_me(storage, roles, identity)


@router.post("/api/me/setup")
async def setup_profile(
    payload: ProfileSetupRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    return await player_service.setup_profile(
        storage, roles, identity, name=payload.name, avatar=payload.avatar, bio=payload.bio
    )


@router.post("/api/me/claim")
async def claim_player(
    payload: ClaimPlayerRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """Link an existing unclaimed player to the calling account."""
    return await player_service.claim_player(storage, roles, identity, payload.player_id)


@router.put("/api/me/profile")
async def update_profile(
    payload: ProfileUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    return await player_service.update_profile(
        storage, identity, name=payload.name, avatar=payload.avatar, bio=payload.bio
    )
