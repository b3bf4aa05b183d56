"""Match ledger route handlers."""

import logging

from fastapi import APIRouter, Depends, Request

from ladder.api.auth_dependencies import get_current_identity, get_role_store, get_storage
from ladder.api.routes import REPORT_RATE_LIMIT, limiter
from ladder.models.records import Identity
from ladder.models.schemas import MatchCreateRequest, MatchUpdateRequest
from ladder.services import ledger_service
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/matches")
@limiter.limit(REPORT_RATE_LIMIT)
async def record_match(
    request: Request,
    payload: MatchCreateRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """
    Record a match straight into the ledger and update ratings.

    Body: {mode, winners, losers, score_winner, score_loser, is_friendly?}
    Friendly matches update wins, losses and streaks but have no rating effect.
    """
    return await ledger_service.record_match(
        storage,
        roles,
        identity,
        mode=payload.mode,
        winners=payload.winners,
        losers=payload.losers,
        score_winner=payload.score_winner,
        score_loser=payload.score_loser,
        is_friendly=payload.is_friendly,
    )


@router.put("/api/matches/{match_id}")
async def edit_match(
    match_id: str,
    payload: MatchUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """
    Replace a match's sides and score (admin, or reporter within the edit window).
    """
    return await ledger_service.edit_match(
        storage,
        roles,
        identity,
        match_id,
        winners=payload.winners,
        losers=payload.losers,
        score_winner=payload.score_winner,
        score_loser=payload.score_loser,
    )


@router.delete("/api/matches/{match_id}")
async def delete_match(
    match_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    await ledger_service.delete_match(storage, roles, identity, match_id)
    return {"success": True}
