"""Challenge and wager route handlers."""

import logging

from fastapi import APIRouter, Depends

from ladder.api.auth_dependencies import get_current_identity, get_role_store, get_storage
from ladder.models.records import Identity
from ladder.models.schemas import (
    ChallengeCompleteRequest,
    ChallengeCreateRequest,
    ChallengeRespondRequest,
)
from ladder.services import challenge_service
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage
from ladder.utils.constants import STATE_CHALLENGES_LIMIT

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/challenges")
async def list_challenges(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    return await challenge_service.list_challenges(storage, limit=STATE_CHALLENGES_LIMIT)


@router.post("/api/challenges")
async def create_challenge(
    payload: ChallengeCreateRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    """
    Challenge another player.

    Body: {challenged_id, wager?, message?}
    The wager is clamped to 0..50 and the message truncated to 100 characters.
    """
    return await challenge_service.create_challenge(
        storage,
        identity,
        challenged_id=payload.challenged_id,
        wager=payload.wager,
        message=payload.message,
    )


@router.put("/api/challenges/{challenge_id}/respond")
async def respond_to_challenge(
    challenge_id: str,
    payload: ChallengeRespondRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    return await challenge_service.respond(storage, identity, challenge_id, payload.accept)


@router.put("/api/challenges/{challenge_id}/complete")
async def complete_challenge(
    challenge_id: str,
    payload: ChallengeCompleteRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """Complete an accepted challenge, applying its wager from the given match."""
    return await challenge_service.complete(
        storage, roles, identity, challenge_id, match_id=payload.match_id
    )


@router.delete("/api/challenges/{challenge_id}")
async def cancel_challenge(
    challenge_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    await challenge_service.cancel_challenge(storage, roles, identity, challenge_id)
    return {"success": True}
