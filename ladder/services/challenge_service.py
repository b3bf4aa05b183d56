"""
Challenge/wager engine.

A challenge moves pending -> accepted | declined, and an accepted challenge
moves to completed exactly once. Completion may apply an extra singles
rating stake on top of the linked match's own delta.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ladder.models.records import Challenge, ChallengeStatus, GameMode, Identity
from ladder.services.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from ladder.services.role_service import RoleStore
from ladder.storage.base import Storage
from ladder.utils.constants import MAX_CHALLENGE_MESSAGE_LENGTH, MAX_WAGER
from ladder.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def clamp_wager(wager) -> int:
    """Clamp a requested wager into [0, MAX_WAGER]; anything non-numeric is 0."""
    try:
        value = int(float(wager))
    except (TypeError, ValueError, OverflowError):
        value = 0
    return max(0, min(MAX_WAGER, value))


def _clean_message(message: Optional[str]) -> Optional[str]:
    text = (message or "").strip()[:MAX_CHALLENGE_MESSAGE_LENGTH]
    return text or None


async def _require_linked_player(storage: Storage, actor: Identity):
    player = await storage.get_player_by_account(actor.account_id)
    if player is None:
        raise ValidationError("You need a player profile first")
    return player


async def _get_challenge(storage: Storage, challenge_id: str, for_update: bool = True) -> Challenge:
    challenge = await storage.get_challenge(challenge_id, for_update=for_update)
    if challenge is None:
        raise NotFoundError("Challenge", challenge_id)
    return challenge


async def list_challenges(storage: Storage, limit: Optional[int] = None) -> List[Challenge]:
    return await storage.list_challenges(limit=limit)


async def create_challenge(
    storage: Storage,
    actor: Identity,
    challenged_id: str,
    wager=0,
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Challenge:
    """
    Challenge another player on behalf of the actor's linked player.

    Raises:
        ValidationError: Actor has no player profile
        NotFoundError: Challenged player does not exist
        AuthorizationError: Self-challenge
    """
    challenger = await _require_linked_player(storage, actor)
    challenged = await storage.get_player(challenged_id) if challenged_id else None
    if challenged is None:
        raise NotFoundError("Player", challenged_id)
    if challenged.id == challenger.id:
        raise AuthorizationError("Cannot challenge yourself")

    challenge = Challenge(
        challenger_id=challenger.id,
        challenged_id=challenged.id,
        wager=clamp_wager(wager),
        message=_clean_message(message),
        created_at=now or utcnow(),
    )
    await storage.create_challenge(challenge)
    logger.info(
        f"Challenge {challenge.id}: {challenger.id} challenged {challenged.id} for {challenge.wager}"
    )
    return challenge


async def respond(storage: Storage, actor: Identity, challenge_id: str, accept: bool) -> Challenge:
    """
    Accept or decline a pending challenge. Only the challenged player may respond.

    Raises:
        NotFoundError: Unknown challenge
        AuthorizationError: Actor is not the challenged player
        StateConflictError: Challenge is no longer pending
    """
    async with storage.transaction():
        challenge = await _get_challenge(storage, challenge_id)
        player = await storage.get_player_by_account(actor.account_id)
        if player is None or player.id != challenge.challenged_id:
            raise AuthorizationError("Only the challenged player can respond")
        if challenge.status != ChallengeStatus.PENDING:
            raise StateConflictError(
                "Challenge is no longer pending", current_state=challenge.status.value
            )

        challenge.status = ChallengeStatus.ACCEPTED if accept else ChallengeStatus.DECLINED
        await storage.update_challenge(challenge)

    logger.info(f"Challenge {challenge_id} {challenge.status.value} by {player.id}")
    return challenge


async def complete(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    challenge_id: str,
    match_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Challenge:
    """
    Settle an accepted challenge against a resolved match.

    When the wager is positive and the match exists, the challenge
    participant among the match winners gains the wager in singles rating
    and the one among the losers loses it, floored at 0. An unknown match,
    or one neither challenge player took part in, completes the challenge
    with no wager and a warning in the log. The status check
    and the adjustment happen in one transaction, so the wager is applied at
    most once.

    Raises:
        NotFoundError: Unknown challenge
        AuthorizationError: Actor is neither a participant nor an admin
        StateConflictError: Challenge is not accepted
    """
    async with storage.transaction():
        challenge = await _get_challenge(storage, challenge_id)
        if not await roles.is_admin(actor.account_id):
            player = await storage.get_player_by_account(actor.account_id)
            if player is None or player.id not in (challenge.challenger_id, challenge.challenged_id):
                raise AuthorizationError("Only the challenge participants can complete it")
        if challenge.status != ChallengeStatus.ACCEPTED:
            raise StateConflictError(
                "Challenge must be accepted first", current_state=challenge.status.value
            )

        if challenge.wager > 0 and match_id:
            match = await storage.get_match(match_id)
            stakeholders = [challenge.challenger_id, challenge.challenged_id]
            if match is None:
                logger.warning(
                    f"Challenge {challenge_id} completed against unknown match {match_id}; no wager applied"
                )
            elif not set(stakeholders) & set(match.participant_ids):
                logger.warning(
                    f"Challenge {challenge_id} completed against match {match_id} without either "
                    f"challenge player; no wager applied"
                )
            else:
                players = await storage.get_players(stakeholders, for_update=True)
                for player in players.values():
                    rating = player.rating(GameMode.SINGLES)
                    if player.id in match.winners:
                        player.set_rating(GameMode.SINGLES, rating + challenge.wager)
                    elif player.id in match.losers:
                        player.set_rating(GameMode.SINGLES, max(0, rating - challenge.wager))
                await storage.update_players(list(players.values()))
                logger.info(f"Challenge {challenge_id} wager {challenge.wager} applied for match {match_id}")

        challenge.match_id = match_id
        challenge.status = ChallengeStatus.COMPLETED
        challenge.completed_at = now or utcnow()
        await storage.update_challenge(challenge)

    return challenge


async def cancel_challenge(storage: Storage, roles: RoleStore, actor: Identity, challenge_id: str) -> None:
    """
    Delete a challenge. Only the challenger or an admin may cancel.

    Raises:
        NotFoundError: Unknown challenge
        AuthorizationError: Actor is neither the challenger nor an admin
    """
    async with storage.transaction():
        challenge = await _get_challenge(storage, challenge_id)
        if not await roles.is_admin(actor.account_id):
            player = await storage.get_player_by_account(actor.account_id)
            if player is None or player.id != challenge.challenger_id:
                raise AuthorizationError("Only the challenger or admin can cancel")
        await storage.delete_challenge(challenge_id)

    logger.info(f"Challenge {challenge_id} cancelled by {actor.account_id}")
