"""
Season manager.

Starting a season is a full statistical reset: every player's ratings and
counters return to the baseline and the ledger and rating history are
cleared. Ending a season snapshots the final standings; a completed season
never changes again.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ladder.models.records import GameMode, Identity, Season, SeasonStatus, Standing
from ladder.services.errors import StateConflictError
from ladder.services.role_service import RoleStore, require_admin
from ladder.storage.base import Storage
from ladder.utils.constants import INITIAL_ELO
from ladder.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

RESET_FIELDS = {
    "elo_singles": INITIAL_ELO,
    "elo_doubles": INITIAL_ELO,
    "wins_singles": 0,
    "losses_singles": 0,
    "streak_singles": 0,
    "wins_doubles": 0,
    "losses_doubles": 0,
    "streak_doubles": 0,
}


async def list_seasons(storage: Storage) -> List[Season]:
    return await storage.list_seasons()


async def start_season(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Season:
    """
    Admin: reset all statistics and open the next season.

    Raises:
        AuthorizationError: Actor is not an admin
        StateConflictError: A season is already active
    """
    await require_admin(roles, actor)
    async with storage.transaction():
        seasons = await storage.list_seasons()
        active = next((s for s in seasons if s.status == SeasonStatus.ACTIVE), None)
        if active is not None:
            raise StateConflictError(
                "A season is already active. End it first.",
                current_state={"season_id": active.id, "status": active.status.value},
            )

        number = len(seasons) + 1
        await storage.bulk_reset_players(RESET_FIELDS)
        await storage.clear_matches_and_history()

        season = Season(
            name=(name or "").strip() or f"Season {number}",
            number=number,
            started_at=now or utcnow(),
        )
        await storage.create_season(season)

    logger.info(f"Season {season.number} ({season.name}) started by {actor.account_id}")
    return season


async def end_season(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    now: Optional[datetime] = None,
) -> Season:
    """
    Admin: snapshot final standings and close the active season.

    Standings rank active players by singles rating, highest first; wins and
    losses are totals across both modes. The top-ranked player is champion.

    Raises:
        AuthorizationError: Actor is not an admin
        StateConflictError: No season is active
    """
    await require_admin(roles, actor)
    async with storage.transaction():
        season = await storage.get_active_season()
        if season is None:
            raise StateConflictError("No active season to end", current_state=None)

        players = sorted(
            await storage.list_players(),
            key=lambda p: p.rating(GameMode.SINGLES),
            reverse=True,
        )
        standings = [
            Standing(
                player_id=player.id,
                player_name=player.name,
                rank=rank,
                elo_singles=player.elo_singles,
                elo_doubles=player.elo_doubles,
                wins=player.wins_singles + player.wins_doubles,
                losses=player.losses_singles + player.losses_doubles,
            )
            for rank, player in enumerate(players, start=1)
        ]

        season.status = SeasonStatus.COMPLETED
        season.ended_at = now or utcnow()
        season.final_standings = standings
        season.match_count = await storage.count_matches()
        season.champion_id = standings[0].player_id if standings else None
        await storage.update_season(season)

    logger.info(
        f"Season {season.number} ended by {actor.account_id}: "
        f"{len(standings)} players, {season.match_count} matches, champion {season.champion_id}"
    )
    return season
