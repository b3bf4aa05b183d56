"""
Mapping between ORM rows and canonical records for the relational store.
"""

from ladder.database import models
from ladder.models.records import (
    AdminUser,
    Challenge,
    Match,
    PendingMatch,
    Player,
    RatingHistoryEntry,
    Round,
    Season,
    Standing,
    Tournament,
)
from ladder.utils.datetime_utils import ensure_utc

PLAYER_FIELDS = (
    "name",
    "avatar",
    "bio",
    "account_id",
    "elo_singles",
    "elo_doubles",
    "wins_singles",
    "losses_singles",
    "streak_singles",
    "wins_doubles",
    "losses_doubles",
    "streak_doubles",
    "is_active",
)


# Players


def player_to_record(row: models.Player) -> Player:
    return Player(
        id=row.id,
        joined_at=ensure_utc(row.joined_at),
        **{field: getattr(row, field) for field in PLAYER_FIELDS},
    )


def apply_player(row: models.Player, player: Player) -> models.Player:
    for field in PLAYER_FIELDS:
        setattr(row, field, getattr(player, field))
    return row


def player_to_row(player: Player) -> models.Player:
    return apply_player(models.Player(id=player.id, joined_at=player.joined_at), player)


# Matches


def match_to_record(row: models.Match) -> Match:
    return Match(
        id=row.id,
        mode=row.mode,
        winners=[p.player_id for p in row.players if p.is_winner],
        losers=[p.player_id for p in row.players if not p.is_winner],
        score_winner=row.score_winner,
        score_loser=row.score_loser,
        elo_change=row.elo_change,
        timestamp=ensure_utc(row.timestamp),
        logged_by=row.logged_by,
        is_friendly=row.is_friendly,
    )


def apply_match(row: models.Match, match: Match) -> models.Match:
    """Copy scalar columns. Side membership is written separately."""
    row.mode = match.mode
    row.score_winner = match.score_winner
    row.score_loser = match.score_loser
    row.elo_change = match.elo_change
    row.timestamp = match.timestamp
    row.logged_by = match.logged_by
    row.is_friendly = match.is_friendly
    return row


def match_player_rows(match: Match):
    return [models.MatchPlayer(player_id=pid, is_winner=True) for pid in match.winners] + [
        models.MatchPlayer(player_id=pid, is_winner=False) for pid in match.losers
    ]


def history_to_record(row: models.EloHistory) -> RatingHistoryEntry:
    return RatingHistoryEntry(
        player_id=row.player_id,
        match_id=row.match_id,
        new_elo=row.new_elo,
        mode=row.mode,
        timestamp=ensure_utc(row.timestamp),
    )


def history_to_row(entry: RatingHistoryEntry) -> models.EloHistory:
    return models.EloHistory(
        player_id=entry.player_id,
        match_id=entry.match_id,
        new_elo=entry.new_elo,
        mode=entry.mode,
        timestamp=entry.timestamp,
    )


# Pending reports


def pending_to_record(row: models.PendingMatch) -> PendingMatch:
    return PendingMatch(
        id=row.id,
        mode=row.mode,
        winners=[p.player_id for p in row.players if p.is_winner],
        losers=[p.player_id for p in row.players if not p.is_winner],
        score_winner=row.score_winner,
        score_loser=row.score_loser,
        logged_by=row.logged_by,
        status=row.status,
        confirmations={c.account_id for c in row.confirmations},
        created_at=ensure_utc(row.created_at),
        expires_at=ensure_utc(row.expires_at),
    )


def apply_pending(row: models.PendingMatch, report: PendingMatch) -> models.PendingMatch:
    """Copy scalar columns and reconcile the acknowledgement set."""
    row.mode = report.mode
    row.score_winner = report.score_winner
    row.score_loser = report.score_loser
    row.logged_by = report.logged_by
    row.status = report.status
    row.created_at = report.created_at
    row.expires_at = report.expires_at

    existing = {c.account_id: c for c in row.confirmations}
    for account_id, confirmation in existing.items():
        if account_id not in report.confirmations:
            row.confirmations.remove(confirmation)
    for account_id in sorted(report.confirmations - set(existing)):
        row.confirmations.append(models.PendingMatchConfirmation(account_id=account_id))
    return row


def pending_player_rows(report: PendingMatch):
    return [models.PendingMatchPlayer(player_id=pid, is_winner=True) for pid in report.winners] + [
        models.PendingMatchPlayer(player_id=pid, is_winner=False) for pid in report.losers
    ]


# Tournaments


def tournament_to_record(row: models.Tournament) -> Tournament:
    return Tournament(
        id=row.id,
        name=row.name,
        format=row.format,
        mode=row.mode,
        status=row.status,
        player_ids=list(row.player_ids or []),
        rounds=[Round.model_validate(r) for r in (row.rounds or [])],
        winner_id=row.winner_id,
        created_by=row.created_by,
        created_at=ensure_utc(row.created_at),
        completed_at=ensure_utc(row.completed_at),
    )


def apply_tournament(row: models.Tournament, tournament: Tournament) -> models.Tournament:
    row.name = tournament.name
    row.format = tournament.format
    row.mode = tournament.mode
    row.status = tournament.status
    # JSON columns are reassigned, never mutated in place, so changes are tracked
    row.player_ids = list(tournament.player_ids)
    row.rounds = [r.model_dump(mode="json") for r in tournament.rounds]
    row.winner_id = tournament.winner_id
    row.created_by = tournament.created_by
    row.created_at = tournament.created_at
    row.completed_at = tournament.completed_at
    return row


# Seasons


def season_to_record(row: models.Season) -> Season:
    return Season(
        id=row.id,
        name=row.name,
        number=row.number,
        status=row.status,
        started_at=ensure_utc(row.started_at),
        ended_at=ensure_utc(row.ended_at),
        final_standings=[Standing.model_validate(s) for s in (row.final_standings or [])],
        match_count=row.match_count,
        champion_id=row.champion_id,
    )


def apply_season(row: models.Season, season: Season) -> models.Season:
    row.name = season.name
    row.number = season.number
    row.status = season.status
    row.started_at = season.started_at
    row.ended_at = season.ended_at
    row.final_standings = [s.model_dump(mode="json") for s in season.final_standings]
    row.match_count = season.match_count
    row.champion_id = season.champion_id
    return row


# Challenges


def challenge_to_record(row: models.Challenge) -> Challenge:
    return Challenge(
        id=row.id,
        challenger_id=row.challenger_id,
        challenged_id=row.challenged_id,
        status=row.status,
        wager=row.wager,
        message=row.message,
        match_id=row.match_id,
        created_at=ensure_utc(row.created_at),
        completed_at=ensure_utc(row.completed_at),
    )


def apply_challenge(row: models.Challenge, challenge: Challenge) -> models.Challenge:
    row.challenger_id = challenge.challenger_id
    row.challenged_id = challenge.challenged_id
    row.status = challenge.status
    row.wager = challenge.wager
    row.message = challenge.message
    row.match_id = challenge.match_id
    row.created_at = challenge.created_at
    row.completed_at = challenge.completed_at
    return row


# Admins


def admin_to_record(row: models.Admin) -> AdminUser:
    return AdminUser(account_id=row.account_id, email=row.email, added_at=ensure_utc(row.added_at))
