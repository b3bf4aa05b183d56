"""Admin route handlers: roles, ledger maintenance and data export/import."""

import logging

from fastapi import APIRouter, Depends

from ladder.api.auth_dependencies import get_current_identity, get_role_store, get_storage
from ladder.models.records import Identity
from ladder.models.schemas import AdminRoleRequest, DataImportRequest, DataResetRequest
from ladder.services import data_service, ledger_service, role_service
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/admin/users")
async def list_users(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """List every account linked to a player with its admin flag."""
    return await role_service.list_admin_users(storage, roles, identity)


@router.post("/api/admin/promote")
async def promote_user(
    payload: AdminRoleRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    return await role_service.promote(
        storage, roles, identity, payload.account_id, email=payload.email
    )


@router.post("/api/admin/demote")
async def demote_user(
    payload: AdminRoleRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """Revoke admin rights. Admins cannot demote themselves."""
    await role_service.demote(storage, roles, identity, payload.account_id)
    return {"success": True}


@router.post("/api/admin/recalculate-stats")
async def recalculate_stats(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """
    Rebuild wins, losses and streaks by replaying the match ledger.

    Ratings are not touched.
    """
    return await ledger_service.recalculate_stats(storage, roles, identity)


@router.get("/api/export")
async def export_data(
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
):
    """Download players, matches and rating history as one JSON document."""
    return await data_service.export_data(storage, identity)


@router.post("/api/admin/import")
async def import_data(
    payload: DataImportRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    """Replace players, matches and rating history with an export document."""
    counts = await data_service.import_data(
        storage, roles, identity, payload.players, payload.matches, payload.history
    )
    return {"success": True, **counts}


@router.post("/api/admin/reset")
async def reset_data(
    payload: DataResetRequest,
    identity: Identity = Depends(get_current_identity),
    storage: Storage = Depends(get_storage),
    roles: RoleStore = Depends(get_role_store),
):
    await data_service.reset_data(storage, roles, identity, payload.mode)
    return {"success": True}
