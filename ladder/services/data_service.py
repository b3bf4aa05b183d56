"""
Whole-ladder data maintenance: export, import and reset.

An import replaces the roster, the match ledger and the rating history in
one transaction. Pending reports and challenges point at players of the old
roster, so they are dropped with it; tournaments and seasons are kept.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import pydantic

from ladder.models.records import Identity, Match, Player, RatingHistoryEntry
from ladder.services.errors import ValidationError
from ladder.services.role_service import RoleStore, require_admin
from ladder.services.season_service import RESET_FIELDS
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)

RESET_MODES = ("season", "fresh")


async def export_data(storage: Storage, actor: Identity) -> Dict[str, List[Any]]:
    """Snapshot of every player (inactive included), match and history row."""
    async with storage.transaction():
        players = await storage.list_players(include_inactive=True)
        matches = await storage.list_matches()
        history = await storage.list_history()

    logger.info(f"Data export by {actor.account_id}: {len(players)} players, {len(matches)} matches")
    return {"players": players, "matches": matches, "history": history}


def _parse(model, items: Sequence[Any], label: str) -> list:
    records = []
    for index, item in enumerate(items):
        try:
            records.append(model.model_validate(item))
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid import data: {label}[{index}] has {e.error_count()} bad field(s)"
            ) from e
    return records


def _check_references(players: List[Player], matches: List[Match], history: List[RatingHistoryEntry]) -> None:
    player_ids = {p.id for p in players}
    if len(player_ids) != len(players):
        raise ValidationError("Invalid import data: duplicate player ids")
    match_ids = {m.id for m in matches}
    if len(match_ids) != len(matches):
        raise ValidationError("Invalid import data: duplicate match ids")

    for match in matches:
        unknown = set(match.participant_ids) - player_ids
        if unknown:
            raise ValidationError(f"Invalid import data: match {match.id} references unknown players")
    for entry in history:
        if entry.player_id not in player_ids or entry.match_id not in match_ids:
            raise ValidationError(
                f"Invalid import data: history row for match {entry.match_id} references unknown records"
            )


async def import_data(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    players: Any,
    matches: Any,
    history: Optional[Any] = None,
) -> Dict[str, int]:
    """
    Admin: replace the roster, ledger and rating history with the given data.

    Items may be records or plain dicts in the export shape. Everything is
    validated before anything is deleted.

    Raises:
        AuthorizationError: Actor is not an admin
        ValidationError: Malformed items or dangling player/match references
    """
    await require_admin(roles, actor)
    if not isinstance(players, list) or not isinstance(matches, list):
        raise ValidationError("Invalid import data: players and matches must be arrays")
    if not isinstance(history, list):
        history = []

    player_records = _parse(Player, players, "players")
    match_records = _parse(Match, matches, "matches")
    history_records = _parse(RatingHistoryEntry, history, "history")
    _check_references(player_records, match_records, history_records)

    async with storage.transaction():
        for report in await storage.list_pending_matches():
            await storage.delete_pending_match(report.id)
        for challenge in await storage.list_challenges():
            await storage.delete_challenge(challenge.id)
        await storage.clear_matches_and_history()
        await storage.clear_players()

        for player in player_records:
            await storage.create_player(player)
        for match in match_records:
            await storage.create_match(match)
        if history_records:
            await storage.create_history_entries(history_records)

    logger.info(
        f"Data import by {actor.account_id}: {len(player_records)} players, "
        f"{len(match_records)} matches, {len(history_records)} history rows"
    )
    return {
        "players": len(player_records),
        "matches": len(match_records),
        "history": len(history_records),
    }


async def reset_data(storage: Storage, roles: RoleStore, actor: Identity, mode: str) -> None:
    """
    Admin: wipe ladder data.

    ``season`` returns every player to the baseline and clears the ledger and
    rating history, like a season start without opening a season. ``fresh``
    deletes everything except the admin list.

    Raises:
        AuthorizationError: Actor is not an admin
        ValidationError: Unknown mode
    """
    await require_admin(roles, actor)
    if mode not in RESET_MODES:
        raise ValidationError(f"Unknown reset mode: {mode}. Use one of: {', '.join(RESET_MODES)}")

    async with storage.transaction():
        if mode == "season":
            await storage.bulk_reset_players(RESET_FIELDS)
            await storage.clear_matches_and_history()
        else:
            await storage.clear_all_data()

    logger.warning(f"Ladder data reset ({mode}) by {actor.account_id}")
