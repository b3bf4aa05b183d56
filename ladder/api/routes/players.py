"""Player management route handlers (admin)."""

import logging

from fastapi import APIRouter, Depends

from ladder.api.auth_dependencies import get_current_identity, get_role_store, get_storage
from ladder.models.records import Identity
from ladder.models.schemas import PlayerCreateRequest, PlayerUpdateRequest
from ladder.services import player_service
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/players")
async def create_player(
    payload: PlayerCreateRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """Create an unclaimed player (admin only)."""
    return await player_service.create_player(
        storage, roles, identity, name=payload.name, avatar=payload.avatar, bio=payload.bio
    )


@router.put("/api/players/{player_id}")
async def update_player(
    player_id: str,
    payload: PlayerUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """Update a player's name, avatar or bio (admin only)."""
    return await player_service.update_player(
        storage,
        roles,
        identity,
        player_id,
        name=payload.name,
        avatar=payload.avatar,
        bio=payload.bio,
    )


@router.delete("/api/players/{player_id}")
async def delete_player(
    player_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """
    Detach a player from its account and deactivate it (admin only).

    Matches referencing the player are kept.
    """
    player = await player_service.delete_player(storage, roles, identity, player_id)
    return {"success": True, "player": player}
