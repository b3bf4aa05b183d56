"""
Tournament engine - bracket and round-robin schedules.

Tournament results are independent of the match ledger: submitting one
never creates a Match or touches ratings.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ladder.models.records import (
    GameMode,
    Identity,
    Matchup,
    Player,
    Round,
    Tournament,
    TournamentFormat,
    TournamentStatus,
)
from ladder.services import ledger_service
from ladder.services.errors import NotFoundError, StateConflictError, ValidationError
from ladder.services.role_service import RoleStore, require_admin
from ladder.storage.base import Storage
from ladder.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def _matchup_id(round_number: int, index: int) -> str:
    return f"r{round_number}-m{index}"


# ============================================================================
# Schedule generation
# ============================================================================


def _place_in_next_round(rounds: List[Round], round_index: int, matchup_index: int, player_id: str) -> None:
    """Advance a winner into ``matchup_index // 2`` of the next round, slot by parity."""
    if round_index + 1 >= len(rounds):
        return
    target = rounds[round_index + 1].matchups[matchup_index // 2]
    if matchup_index % 2 == 0:
        target.player1_id = player_id
    else:
        target.player2_id = player_id


def build_single_elimination(seeded_ids: Sequence[str]) -> List[Round]:
    """
    Build a bracket from player ids already in seed order.

    The field is padded with byes to the next power of two; round 1 pairs
    seed ``i`` with seed ``size - 1 - i``. A first-round matchup with a
    single real player is decided immediately and its winner advanced.
    """
    size = 1
    while size < len(seeded_ids):
        size *= 2
    slots: List[Optional[str]] = list(seeded_ids) + [None] * (size - len(seeded_ids))

    first_round = [
        Matchup(id=_matchup_id(1, i), player1_id=slots[i], player2_id=slots[size - 1 - i])
        for i in range(size // 2)
    ]
    rounds = [Round(round_number=1, matchups=first_round)]

    matchups_in_round = len(first_round)
    round_number = 2
    while matchups_in_round > 1:
        matchups_in_round //= 2
        rounds.append(
            Round(
                round_number=round_number,
                matchups=[Matchup(id=_matchup_id(round_number, i)) for i in range(matchups_in_round)],
            )
        )
        round_number += 1

    for index, matchup in enumerate(first_round):
        if matchup.is_playable:
            continue
        # Bye: the only real player advances without a match
        lone = matchup.player1_id or matchup.player2_id
        if lone is None:
            continue
        matchup.winner_id = lone
        _place_in_next_round(rounds, 0, index, lone)

    return rounds


def build_round_robin(player_ids: Sequence[str]) -> List[Round]:
    """
    Every unordered pair plays once, in input order, grouped into rounds of
    ``len(player_ids) // 2`` matchups. Round grouping is display pacing only.
    """
    pairs = [
        (player_ids[i], player_ids[j])
        for i in range(len(player_ids))
        for j in range(i + 1, len(player_ids))
    ]
    per_round = max(1, len(player_ids) // 2)

    rounds = []
    for start in range(0, len(pairs), per_round):
        round_number = len(rounds) + 1
        rounds.append(
            Round(
                round_number=round_number,
                matchups=[
                    Matchup(id=_matchup_id(round_number, i), player1_id=p1, player2_id=p2)
                    for i, (p1, p2) in enumerate(pairs[start:start + per_round])
                ],
            )
        )
    return rounds


def seed_by_rating(player_ids: Sequence[str], players: Dict[str, Player], mode: GameMode) -> List[str]:
    # sorted() is stable, so equal ratings keep input order
    return sorted(player_ids, key=lambda pid: players[pid].rating(mode), reverse=True)


# ============================================================================
# Completion
# ============================================================================


def is_complete(tournament: Tournament) -> bool:
    """Completed iff every matchup with two real players has a winner."""
    return all(
        matchup.winner_id is not None
        for round_ in tournament.rounds
        for matchup in round_.matchups
        if matchup.is_playable
    )


def round_robin_winner(tournament: Tournament) -> Optional[str]:
    """
    Player with the most wins. Ties go to head-to-head wins among the tied
    players, then to seed (input) order.
    """
    decided = [
        m for r in tournament.rounds for m in r.matchups if m.is_playable and m.winner_id
    ]
    if not tournament.player_ids:
        return None

    wins = {pid: 0 for pid in tournament.player_ids}
    for matchup in decided:
        wins[matchup.winner_id] = wins.get(matchup.winner_id, 0) + 1
    best = max(wins.values())
    tied = [pid for pid in tournament.player_ids if wins[pid] == best]

    if len(tied) > 1:
        tied_set = set(tied)
        head_to_head = {pid: 0 for pid in tied}
        for matchup in decided:
            if matchup.player1_id in tied_set and matchup.player2_id in tied_set:
                head_to_head[matchup.winner_id] += 1
        best_h2h = max(head_to_head.values())
        tied = [pid for pid in tied if head_to_head[pid] == best_h2h]

    return tied[0]


def _overall_winner(tournament: Tournament) -> Optional[str]:
    if tournament.format == TournamentFormat.SINGLE_ELIMINATION:
        final_round = tournament.rounds[-1]
        return final_round.matchups[0].winner_id if final_round.matchups else None
    return round_robin_winner(tournament)


# ============================================================================
# Operations
# ============================================================================


async def create_tournament(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    name: str,
    format,
    mode,
    player_ids: Sequence[str],
    now: Optional[datetime] = None,
) -> Tournament:
    """
    Admin: create a tournament and generate its schedule.

    Raises:
        AuthorizationError: Actor is not an admin
        ValidationError: Bad name, format, mode or participant list
    """
    await require_admin(roles, actor)

    name = (name or "").strip()
    if not name:
        raise ValidationError("Tournament name is required")
    try:
        tournament_format = TournamentFormat(format)
    except ValueError:
        raise ValidationError("Format must be single_elimination or round_robin")
    game_mode = ledger_service.parse_mode(mode)
    player_ids = list(player_ids or [])
    if len(player_ids) < 2:
        raise ValidationError("At least 2 players required")
    if len(set(player_ids)) != len(player_ids):
        raise ValidationError("A player cannot be entered twice")
    players = await ledger_service.load_participants(storage, player_ids, for_update=False)

    if tournament_format == TournamentFormat.SINGLE_ELIMINATION:
        rounds = build_single_elimination(seed_by_rating(player_ids, players, game_mode))
    else:
        rounds = build_round_robin(player_ids)

    tournament = Tournament(
        name=name,
        format=tournament_format,
        mode=game_mode,
        player_ids=player_ids,
        rounds=rounds,
        created_by=actor.account_id,
        created_at=now or utcnow(),
    )
    await storage.create_tournament(tournament)
    logger.info(
        f"Tournament {tournament.id} ({tournament_format.value}) created with "
        f"{len(player_ids)} players and {len(rounds)} rounds"
    )
    return tournament


def _check_score(value) -> None:
    if value is None:
        return
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError("Scores must be non-negative integers")


async def submit_result(
    storage: Storage,
    actor: Identity,
    tournament_id: str,
    matchup_id: str,
    winner_id: str,
    score1: Optional[int] = None,
    score2: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tournament:
    """
    Record a matchup result, advance the bracket and recompute completion.

    Raises:
        NotFoundError: Unknown tournament or matchup
        StateConflictError: Tournament not in progress, matchup already decided
            or not yet filled
        ValidationError: Winner is not in the matchup, or invalid scores
    """
    _check_score(score1)
    _check_score(score2)

    async with storage.transaction():
        tournament = await storage.get_tournament(tournament_id, for_update=True)
        if tournament is None:
            raise NotFoundError("Tournament", tournament_id)
        if tournament.status != TournamentStatus.IN_PROGRESS:
            raise StateConflictError(
                "Tournament is not in progress", current_state=tournament.status.value
            )

        location = None
        for round_index, round_ in enumerate(tournament.rounds):
            for matchup_index, matchup in enumerate(round_.matchups):
                if matchup.id == matchup_id:
                    location = (round_index, matchup_index, matchup)
                    break
            if location:
                break
        if location is None:
            raise NotFoundError("Matchup", matchup_id)
        round_index, matchup_index, matchup = location

        if matchup.winner_id is not None:
            raise StateConflictError(
                "Matchup already has a result", current_state=matchup.model_dump()
            )
        if not matchup.is_playable:
            raise StateConflictError(
                "Matchup is waiting for its players", current_state=matchup.model_dump()
            )
        if winner_id not in (matchup.player1_id, matchup.player2_id):
            raise ValidationError("Winner must be one of the matchup's players")

        matchup.winner_id = winner_id
        matchup.score_player1 = score1
        matchup.score_player2 = score2

        if tournament.format == TournamentFormat.SINGLE_ELIMINATION:
            _place_in_next_round(tournament.rounds, round_index, matchup_index, winner_id)

        if is_complete(tournament):
            tournament.status = TournamentStatus.COMPLETED
            tournament.completed_at = now or utcnow()
            tournament.winner_id = _overall_winner(tournament)
            logger.info(f"Tournament {tournament.id} completed, winner {tournament.winner_id}")

        await storage.update_tournament(tournament)

    logger.info(
        f"Tournament {tournament_id} matchup {matchup_id} won by {winner_id} "
        f"(submitted by {actor.account_id})"
    )
    return tournament


async def delete_tournament(storage: Storage, roles: RoleStore, actor: Identity, tournament_id: str) -> None:
    """Admin: delete a tournament."""
    await require_admin(roles, actor)
    if await storage.get_tournament(tournament_id) is None:
        raise NotFoundError("Tournament", tournament_id)
    await storage.delete_tournament(tournament_id)
    logger.info(f"Tournament {tournament_id} deleted by {actor.account_id}")


async def list_tournaments(storage: Storage, limit: Optional[int] = None) -> List[Tournament]:
    return await storage.list_tournaments(limit=limit)


async def get_tournament(storage: Storage, tournament_id: str) -> Tournament:
    tournament = await storage.get_tournament(tournament_id)
    if tournament is None:
        raise NotFoundError("Tournament", tournament_id)
    return tournament
