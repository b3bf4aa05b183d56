"""
Player profiles and their link to verified identities.
"""

import logging
import os
from typing import Dict, List, Optional

from ladder.models.records import AdminUser, Identity, Player
from ladder.services.errors import NotFoundError, StateConflictError, ValidationError
from ladder.services.role_service import RoleStore, require_admin
from ladder.storage.base import Storage
from ladder.utils.constants import MAX_BIO_LENGTH, MAX_PLAYER_NAME_LENGTH

logger = logging.getLogger(__name__)


def get_admin_emails() -> List[str]:
    """Emails that are promoted to admin on first sight, from ADMIN_EMAILS."""
    raw = os.getenv("ADMIN_EMAILS", "")
    return [email.strip().lower() for email in raw.split(",") if email.strip()]


def should_auto_promote(email: Optional[str]) -> bool:
    return bool(email) and email.strip().lower() in get_admin_emails()


def clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Player name is required")
    if len(name) > MAX_PLAYER_NAME_LENGTH:
        raise ValidationError(f"Player name must be {MAX_PLAYER_NAME_LENGTH} characters or less")
    return name


def clean_bio(bio: Optional[str]) -> str:
    return (bio or "").strip()[:MAX_BIO_LENGTH]


async def _me_response(storage: Storage, roles: RoleStore, actor: Identity, player: Optional[Player]) -> Dict:
    response = {
        "account_id": actor.account_id,
        "email": actor.email,
        "display_name": actor.display_name,
        "picture": actor.picture,
        "is_admin": await roles.is_admin(actor.account_id),
        "player": player,
        "needs_setup": player is None,
    }
    if player is None:
        response["unclaimed_players"] = [
            p for p in await storage.list_players() if not p.account_id
        ]
    return response


async def get_me(storage: Storage, roles: RoleStore, actor: Identity) -> Dict:
    """
    Describe the calling account: admin flag, linked player and, when there
    is none yet, the players it could claim.

    Accounts whose email is listed in ADMIN_EMAILS are promoted on first call.
    """
    if should_auto_promote(actor.email) and not await roles.is_admin(actor.account_id):
        await storage.add_admin(AdminUser(account_id=actor.account_id, email=actor.email))
        logger.info(f"Auto-promoted admin: {actor.email}")

    player = await storage.get_player_by_account(actor.account_id)
    return await _me_response(storage, roles, actor, player)


async def setup_profile(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    name: str,
    avatar: Optional[str] = None,
    bio: Optional[str] = None,
) -> Dict:
    """
    Create a new player linked to the calling account.

    Raises:
        StateConflictError: The account already has a player
        ValidationError: Invalid name
    """
    async with storage.transaction():
        if await storage.get_player_by_account(actor.account_id) is not None:
            raise StateConflictError("Profile already exists")
        player = Player(
            name=clean_name(name),
            avatar=avatar or actor.picture or "",
            bio=clean_bio(bio),
            account_id=actor.account_id,
        )
        await storage.create_player(player)

    logger.info(f"Profile created for {actor.account_id}: {player.name!r}")
    return await _me_response(storage, roles, actor, player)


async def claim_player(storage: Storage, roles: RoleStore, actor: Identity, player_id: str) -> Dict:
    """
    Link an existing unclaimed player to the calling account.

    Raises:
        StateConflictError: The account already has a player, or the player
            is linked to another account
        NotFoundError: Unknown player
    """
    if not player_id:
        raise ValidationError("player_id is required")
    async with storage.transaction():
        if await storage.get_player_by_account(actor.account_id) is not None:
            raise StateConflictError("You already have a player profile")
        player = await storage.get_player(player_id, for_update=True)
        if player is None:
            raise NotFoundError("Player", player_id)
        if player.account_id:
            raise StateConflictError("This player is already linked to an account")
        player.account_id = actor.account_id
        player.is_active = True
        await storage.update_player(player)

    logger.info(f"Player {player.name!r} claimed by {actor.account_id}")
    return await _me_response(storage, roles, actor, player)


def _apply_display_fields(
    player: Player, name: Optional[str], avatar: Optional[str], bio: Optional[str]
) -> Player:
    if name is not None:
        player.name = clean_name(name)
    if avatar is not None:
        player.avatar = avatar
    if bio is not None:
        player.bio = clean_bio(bio)
    return player


async def update_profile(
    storage: Storage,
    actor: Identity,
    name: Optional[str] = None,
    avatar: Optional[str] = None,
    bio: Optional[str] = None,
) -> Player:
    """Update display fields of the caller's own player."""
    async with storage.transaction():
        player = await storage.get_player_by_account(actor.account_id)
        if player is None:
            raise NotFoundError("Player profile", actor.account_id)
        _apply_display_fields(player, name, avatar, bio)
        await storage.update_player(player)
    return player


async def create_player(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    name: str,
    avatar: Optional[str] = None,
    bio: Optional[str] = None,
) -> Player:
    """Admin: create an unclaimed player."""
    await require_admin(roles, actor)
    player = Player(name=clean_name(name), avatar=avatar or "", bio=clean_bio(bio))
    await storage.create_player(player)
    logger.info(f"Player {player.id} ({player.name!r}) created by {actor.account_id}")
    return player


async def update_player(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    player_id: str,
    name: Optional[str] = None,
    avatar: Optional[str] = None,
    bio: Optional[str] = None,
) -> Player:
    """Admin: update a player's display fields. Ratings and counters are engine-owned."""
    await require_admin(roles, actor)
    async with storage.transaction():
        player = await storage.get_player(player_id, for_update=True)
        if player is None:
            raise NotFoundError("Player", player_id)
        _apply_display_fields(player, name, avatar, bio)
        await storage.update_player(player)
    return player


async def delete_player(storage: Storage, roles: RoleStore, actor: Identity, player_id: str) -> Player:
    """
    Admin: detach a player from its account and deactivate it.

    The player row is kept so historical matches keep resolving.
    """
    await require_admin(roles, actor)
    async with storage.transaction():
        player = await storage.get_player(player_id, for_update=True)
        if player is None:
            raise NotFoundError("Player", player_id)
        player.account_id = None
        player.is_active = False
        await storage.update_player(player)

    logger.info(f"Player {player_id} detached by {actor.account_id}")
    return player
