"""
Match ledger - the authoritative record of resolved outcomes.

Recording a match applies its rating delta and counters to every
participant and appends one rating history row per participant. Editing
and deleting first undo the stored effect exactly: the stored delta is
subtracted from the winners and added back to the losers, win/loss counts
are decremented, and the involved players' streaks in that mode are reset
to zero (streaks are not reconstructed; see ``recalculate_stats``).
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from ladder.models.records import GameMode, Identity, Match, Player, RatingHistoryEntry
from ladder.services import rating_service
from ladder.services.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from ladder.services.role_service import RoleStore, require_admin
from ladder.storage.base import Storage
from ladder.utils.constants import EDIT_GRACE_SECONDS
from ladder.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


# ============================================================================
# Validation helpers (shared with the confirmation workflow)
# ============================================================================


def parse_mode(mode) -> GameMode:
    try:
        return GameMode(mode)
    except ValueError:
        raise ValidationError(f"Invalid game type: {mode!r}")


def _is_score(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_outcome(
    mode: GameMode,
    winners: Sequence[str],
    losers: Sequence[str],
    score_winner,
    score_loser,
) -> None:
    """
    Validate the shape of a reported outcome.

    Raises:
        ValidationError: Wrong participant counts, repeated participants or
            invalid scores
    """
    size = mode.team_size
    if len(winners) != size or len(losers) != size:
        raise ValidationError(
            f"{mode.value.capitalize()} match requires exactly {size} winner(s) and {size} loser(s)"
        )
    if len(set(winners) | set(losers)) != 2 * size:
        raise ValidationError("A player cannot appear more than once in a match")
    if not _is_score(score_winner) or not _is_score(score_loser):
        raise ValidationError("Scores must be non-negative integers")
    if score_winner <= score_loser:
        raise ValidationError("Winning score must be greater than losing score")


async def ensure_participant_or_admin(
    storage: Storage, roles: RoleStore, actor: Identity, participant_ids: Iterable[str]
) -> None:
    """Raise AuthorizationError unless the actor is an admin or plays in the match."""
    if await roles.is_admin(actor.account_id):
        return
    player = await storage.get_player_by_account(actor.account_id)
    if player is None:
        raise AuthorizationError("You need a player profile to log matches")
    if player.id not in set(participant_ids):
        raise AuthorizationError("You can only log matches where you are a participant")


async def load_participants(
    storage: Storage, player_ids: Sequence[str], for_update: bool = True
) -> Dict[str, Player]:
    players = await storage.get_players(player_ids, for_update=for_update)
    for player_id in player_ids:
        if player_id not in players:
            raise ValidationError(f'Player with ID "{player_id}" not found')
    return players


# ============================================================================
# Effect application and reversal
# ============================================================================


def _apply_effects(match: Match, players: Dict[str, Player]) -> List[RatingHistoryEntry]:
    """
    Apply a match to in-memory player records and set ``match.elo_change``.

    The delta is computed from the ratings before any participant is updated.
    Friendly matches move counters only and produce no history rows.
    """
    mode = match.mode
    winners = [players[pid] for pid in match.winners]
    losers = [players[pid] for pid in match.losers]

    if match.is_friendly:
        match.elo_change = 0
    else:
        match.elo_change = rating_service.calculate_match_delta(
            rating_service.side_rating(winners, mode),
            rating_service.side_rating(losers, mode),
        )

    entries = []
    for player, sign in [(p, 1) for p in winners] + [(p, -1) for p in losers]:
        if sign > 0:
            player.record_win(mode)
        else:
            player.record_loss(mode)
        if match.is_friendly:
            continue
        player.set_rating(mode, player.rating(mode) + sign * match.elo_change)
        entries.append(
            RatingHistoryEntry(
                player_id=player.id,
                match_id=match.id,
                new_elo=player.rating(mode),
                mode=mode,
                timestamp=match.timestamp,
            )
        )
    return entries


def _undo_effects(match: Match, players: Dict[str, Player]) -> None:
    mode = match.mode
    for player_id in match.winners:
        player = players.get(player_id)
        if player is None:
            continue
        player.set_rating(mode, player.rating(mode) - match.elo_change)
        player.revert_win(mode)
    for player_id in match.losers:
        player = players.get(player_id)
        if player is None:
            continue
        player.set_rating(mode, player.rating(mode) + match.elo_change)
        player.revert_loss(mode)


async def _persist(storage: Storage, players: Dict[str, Player], entries: List[RatingHistoryEntry]) -> None:
    await storage.update_players(list(players.values()))
    if entries:
        await storage.create_history_entries(entries)


# ============================================================================
# Ledger operations
# ============================================================================


async def apply_match(
    storage: Storage,
    mode: GameMode,
    winners: Sequence[str],
    losers: Sequence[str],
    score_winner: int,
    score_loser: int,
    logged_by: Optional[str],
    timestamp: datetime,
    match_id: Optional[str] = None,
    is_friendly: bool = False,
) -> Match:
    """
    Resolve an already-validated outcome into the ledger.

    Reads every participant once, applies rating and counters, appends the
    history rows and persists the match, all inside one storage transaction.

    Args:
        storage: Storage backend
        mode: Game mode
        winners: Winning side player ids
        losers: Losing side player ids
        score_winner: Winning side score
        score_loser: Losing side score
        logged_by: Account id of the original reporter
        timestamp: Resolution timestamp
        match_id: Identity to use for the match (a promoted report keeps its id)
        is_friendly: Skip the rating delta

    Returns:
        The persisted Match

    Raises:
        ValidationError: If a participant no longer exists
    """
    fields = dict(
        mode=mode,
        winners=list(winners),
        losers=list(losers),
        score_winner=score_winner,
        score_loser=score_loser,
        timestamp=timestamp,
        logged_by=logged_by,
        is_friendly=is_friendly,
    )
    match = Match(id=match_id, **fields) if match_id else Match(**fields)

    async with storage.transaction():
        players = await load_participants(storage, match.participant_ids)
        entries = _apply_effects(match, players)
        await _persist(storage, players, entries)
        await storage.create_match(match)

    logger.info(
        f"Match {match.id} recorded ({mode.value}): {match.winners} beat {match.losers} "
        f"{score_winner}-{score_loser}, delta {match.elo_change}"
    )
    return match


async def record_match(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    mode,
    winners: Sequence[str],
    losers: Sequence[str],
    score_winner: int,
    score_loser: int,
    is_friendly: bool = False,
    now: Optional[datetime] = None,
) -> Match:
    """
    Record a match directly into the ledger.

    Raises:
        ValidationError: Malformed outcome or unknown participants
        AuthorizationError: Actor is neither admin nor a participant
    """
    game_mode = parse_mode(mode)
    validate_outcome(game_mode, winners, losers, score_winner, score_loser)
    await ensure_participant_or_admin(storage, roles, actor, [*winners, *losers])

    return await apply_match(
        storage,
        mode=game_mode,
        winners=winners,
        losers=losers,
        score_winner=score_winner,
        score_loser=score_loser,
        logged_by=actor.account_id,
        timestamp=now or utcnow(),
        is_friendly=bool(is_friendly),
    )


async def _authorize_change(
    roles: RoleStore, actor: Identity, match: Match, now: datetime
) -> None:
    if await roles.is_admin(actor.account_id):
        return
    if not match.logged_by or match.logged_by != actor.account_id:
        raise AuthorizationError("Not authorized to change this match")
    age = now - match.timestamp
    if age >= timedelta(seconds=EDIT_GRACE_SECONDS):
        raise StateConflictError(
            "The edit window for this match has closed",
            current_state={
                "match_id": match.id,
                "age_seconds": int(age.total_seconds()),
                "grace_seconds": EDIT_GRACE_SECONDS,
            },
        )


async def edit_match(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    match_id: str,
    winners: Sequence[str],
    losers: Sequence[str],
    score_winner: int,
    score_loser: int,
    now: Optional[datetime] = None,
) -> Match:
    """
    Replace the sides and score of a match, recomputing its rating effect.

    The old effect is undone and the new one applied from a single read of
    the match and all involved players. The match keeps its id, mode,
    friendly flag, reporter and resolution timestamp.

    Raises:
        NotFoundError: Unknown match
        AuthorizationError: Actor is neither admin nor the reporter
        StateConflictError: Reporter is outside the edit window
        ValidationError: Malformed outcome or unknown participants
    """
    now = now or utcnow()
    async with storage.transaction():
        match = await storage.get_match(match_id, for_update=True)
        if match is None:
            raise NotFoundError("Match", match_id)
        await _authorize_change(roles, actor, match, now)
        validate_outcome(match.mode, winners, losers, score_winner, score_loser)

        involved = list(dict.fromkeys([*match.participant_ids, *winners, *losers]))
        players = await load_participants(storage, involved)

        old_delta = match.elo_change
        _undo_effects(match, players)
        await storage.delete_history_for_match(match.id)

        match.winners = list(winners)
        match.losers = list(losers)
        match.score_winner = score_winner
        match.score_loser = score_loser
        entries = _apply_effects(match, players)

        await _persist(storage, players, entries)
        await storage.update_match(match)

    logger.info(
        f"Match {match.id} edited by {actor.account_id}: delta {old_delta} -> {match.elo_change}"
    )
    return match


async def delete_match(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    match_id: str,
    now: Optional[datetime] = None,
) -> None:
    """
    Undo a match's rating effect and remove it from the ledger.

    Raises:
        NotFoundError: Unknown match
        AuthorizationError: Actor is neither admin nor the reporter
        StateConflictError: Reporter is outside the edit window
    """
    now = now or utcnow()
    async with storage.transaction():
        match = await storage.get_match(match_id, for_update=True)
        if match is None:
            raise NotFoundError("Match", match_id)
        await _authorize_change(roles, actor, match, now)

        players = await storage.get_players(match.participant_ids, for_update=True)
        _undo_effects(match, players)
        await _persist(storage, players, [])
        await storage.delete_history_for_match(match.id)
        await storage.delete_match(match.id)

    logger.info(f"Match {match_id} deleted by {actor.account_id}, reverted delta {match.elo_change}")


async def recalculate_stats(storage: Storage, roles: RoleStore, actor: Identity) -> Dict:
    """
    Rebuild every player's wins, losses and streaks by replaying the ledger.

    Matches are replayed in chronological order. Ratings are left untouched.

    Returns:
        Dict with the number of players and matches processed
    """
    await require_admin(roles, actor)
    async with storage.transaction():
        players = {p.id: p for p in await storage.list_players(include_inactive=True)}
        matches = sorted(await storage.list_matches(), key=lambda m: (m.timestamp, m.id))

        for player in players.values():
            for mode in GameMode:
                setattr(player, f"wins_{mode.value}", 0)
                setattr(player, f"losses_{mode.value}", 0)
                setattr(player, f"streak_{mode.value}", 0)

        for match in matches:
            for player_id in match.winners:
                if player_id in players:
                    players[player_id].record_win(match.mode)
            for player_id in match.losers:
                if player_id in players:
                    players[player_id].record_loss(match.mode)

        await storage.update_players(list(players.values()))

    logger.info(f"Recalculated stats for {len(players)} players from {len(matches)} matches")
    return {"players": len(players), "matches": len(matches)}
