"""Pending match (report/confirm) route handlers."""

import logging

from fastapi import APIRouter, Depends, Request

from ladder.api.auth_dependencies import (
    get_current_identity,
    get_role_store,
    get_storage,
    require_admin,
)
from ladder.api.routes import REPORT_RATE_LIMIT, limiter
from ladder.models.records import Identity
from ladder.models.schemas import PendingMatchCreateRequest
from ladder.services import confirmation_service
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/pending-matches")
@limiter.limit(REPORT_RATE_LIMIT)
async def create_pending_match(
    request: Request,
    payload: PendingMatchCreateRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """
    Report a match outcome for confirmation by the other participants.

    The reporter counts as having acknowledged. The report is promoted into
    the ledger once every linked participant acknowledges, or by the expiry
    sweep after 24 hours.
    """
    return await confirmation_service.create_report(
        storage,
        roles,
        identity,
        mode=payload.mode,
        winners=payload.winners,
        losers=payload.losers,
        score_winner=payload.score_winner,
        score_loser=payload.score_loser,
    )


@router.post("/api/pending-matches/sweep")
async def sweep_pending_matches(
    identity: Identity = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    """Promote every expired unconfirmed report now (admin only)."""
    promoted = await confirmation_service.sweep_expired_reports(storage)
    return {"promoted": promoted}


@router.put("/api/pending-matches/{report_id}/confirm")
async def confirm_pending_match(
    report_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    return await confirmation_service.acknowledge(storage, roles, identity, report_id)


@router.put("/api/pending-matches/{report_id}/dispute")
async def dispute_pending_match(
    report_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """Dispute a report; it then waits for an admin to force-confirm or reject it."""
    return await confirmation_service.dispute(storage, roles, identity, report_id)


@router.put("/api/pending-matches/{report_id}/force-confirm")
async def force_confirm_pending_match(
    report_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    return await confirmation_service.force_resolve(storage, roles, identity, report_id)


@router.delete("/api/pending-matches/{report_id}")
async def reject_pending_match(
    report_id: str,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """Discard a report without any rating effect (admin only)."""
    await confirmation_service.reject(storage, roles, identity, report_id)
    return {"success": True}
