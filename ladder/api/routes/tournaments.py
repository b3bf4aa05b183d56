"""Tournament route handlers."""

import logging

from fastapi import APIRouter, Depends

from ladder.api.auth_dependencies import get_current_identity, get_role_store, get_storage
from ladder.models.records import Identity
from ladder.models.schemas import TournamentCreateRequest, TournamentResultRequest
from ladder.services import tournament_service
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage
from ladder.utils.constants import STATE_TOURNAMENTS_LIMIT

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/tournaments")
async def list_tournaments(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    return await tournament_service.list_tournaments(storage, limit=STATE_TOURNAMENTS_LIMIT)


@router.post("/api/tournaments")
async def create_tournament(
    payload: TournamentCreateRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """
    Create a tournament and generate its schedule (admin only).

    Body: {name, format: "single_elimination" | "round_robin",
    mode: "singles" | "doubles", player_ids}
    Single elimination seeds by current rating in the given mode.
    """
    return await tournament_service.create_tournament(
        storage,
        roles,
        identity,
        name=payload.name,
        format=payload.format,
        mode=payload.mode,
        player_ids=payload.player_ids,
    )


@router.get("/api/tournaments/{tournament_id}")
async def get_tournament(
    tournament_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    return await tournament_service.get_tournament(storage, tournament_id)


@router.put("/api/tournaments/{tournament_id}/result")
async def submit_result(
    tournament_id: str,
    payload: TournamentResultRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    """Record a matchup winner; the bracket advances and completion is recomputed."""
    return await tournament_service.submit_result(
        storage,
        identity,
        tournament_id,
        matchup_id=payload.matchup_id,
        winner_id=payload.winner_id,
        score1=payload.score1,
        score2=payload.score2,
    )


@router.delete("/api/tournaments/{tournament_id}")
async def delete_tournament(
    tournament_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    await tournament_service.delete_tournament(storage, roles, identity, tournament_id)
    return {"success": True}
