"""Season route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ladder.api.auth_dependencies import get_current_identity, get_role_store, get_storage
from ladder.models.records import Identity
from ladder.models.schemas import SeasonStartRequest
from ladder.services import season_service
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/seasons")
async def list_seasons(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    return await season_service.list_seasons(storage)


@router.post("/api/seasons/start")
async def start_season(
    payload: Optional[SeasonStartRequest] = None,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """
    Start the next season (admin only).

    Every player's ratings and counters are reset and the whole match ledger
    and rating history are cleared. Fails with 409 while a season is active.
    """
    name = payload.name if payload else None
    return await season_service.start_season(storage, roles, identity, name=name)


@router.post("/api/seasons/end")
async def end_season(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """End the active season and snapshot its final standings (admin only)."""
    return await season_service.end_season(storage, roles, identity)
