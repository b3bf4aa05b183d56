"""
Administrative role store.

Membership is checked against storage on every call and never cached
beyond the current request.
"""

import logging
from typing import Dict, List, Optional, Protocol

from ladder.models.records import AdminUser, Identity
from ladder.services.errors import AuthorizationError, ValidationError
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)


class RoleStore(Protocol):
    async def is_admin(self, account_id: Optional[str]) -> bool:
        ...


class StorageRoleStore:
    """Role store backed by the ``admins`` entity of a storage backend."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def is_admin(self, account_id: Optional[str]) -> bool:
        if not account_id:
            return False
        return await self.storage.is_admin(account_id)


async def require_admin(roles: RoleStore, actor: Identity) -> None:
    """Raise AuthorizationError unless the actor is an administrator."""
    if not await roles.is_admin(actor.account_id):
        raise AuthorizationError("Admin access required")


async def list_admin_users(storage: Storage, roles: RoleStore, actor: Identity) -> List[Dict]:
    """
    List every account linked to a player, flagged with its admin status.

    Returns:
        List of dicts with account_id, name, avatar and is_admin
    """
    await require_admin(roles, actor)
    admins = {admin.account_id for admin in await storage.list_admins()}
    return [
        {
            "account_id": player.account_id,
            "player_id": player.id,
            "name": player.name,
            "avatar": player.avatar,
            "is_admin": player.account_id in admins,
        }
        for player in await storage.list_players()
        if player.account_id
    ]


async def promote(
    storage: Storage, roles: RoleStore, actor: Identity, account_id: str, email: str = ""
) -> AdminUser:
    await require_admin(roles, actor)
    if not account_id:
        raise ValidationError("account_id is required")
    admin = await storage.add_admin(AdminUser(account_id=account_id, email=email))
    logger.info(f"Account {account_id} promoted to admin by {actor.account_id}")
    return admin


async def demote(storage: Storage, roles: RoleStore, actor: Identity, account_id: str) -> None:
    await require_admin(roles, actor)
    if not account_id:
        raise ValidationError("account_id is required")
    if account_id == actor.account_id:
        raise ValidationError("Cannot demote yourself")
    await storage.remove_admin(account_id)
    logger.info(f"Account {account_id} demoted by {actor.account_id}")
