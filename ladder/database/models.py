"""
SQLAlchemy ORM models for the ladder relational store.

Winner/loser membership of matches and pending reports lives in junction
tables; tournament schedules and season standings are stored as JSON.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ladder.database.db import Base
from ladder.models.records import (
    ChallengeStatus,
    GameMode,
    PendingMatchStatus,
    SeasonStatus,
    TournamentFormat,
    TournamentStatus,
)
from ladder.utils.constants import INITIAL_ELO


class Player(Base):
    """Player profiles with per-mode rating tracks."""

    __tablename__ = "players"

    id = Column(String(32), primary_key=True)
    name = Column(String(20), nullable=False)
    avatar = Column(String, nullable=False, default="")
    bio = Column(String(150), nullable=False, default="")
    account_id = Column(String, nullable=True, unique=True)
    elo_singles = Column(Integer, nullable=False, default=INITIAL_ELO)
    elo_doubles = Column(Integer, nullable=False, default=INITIAL_ELO)
    wins_singles = Column(Integer, nullable=False, default=0)
    losses_singles = Column(Integer, nullable=False, default=0)
    streak_singles = Column(Integer, nullable=False, default=0)
    wins_doubles = Column(Integer, nullable=False, default=0)
    losses_doubles = Column(Integer, nullable=False, default=0)
    streak_doubles = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    joined_at = Column(DateTime(timezone=True), nullable=False)


class Match(Base):
    """Resolved, authoritative match results."""

    __tablename__ = "matches"

    id = Column(String(32), primary_key=True)
    mode = Column(Enum(GameMode), nullable=False)
    score_winner = Column(Integer, nullable=False)
    score_loser = Column(Integer, nullable=False)
    elo_change = Column(Integer, nullable=False, default=0)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    logged_by = Column(String, nullable=True)  # account id of the reporter
    is_friendly = Column(Boolean, nullable=False, default=False)

    players = relationship(
        "MatchPlayer",
        order_by="MatchPlayer.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (Index("idx_matches_timestamp", "timestamp"),)


class MatchPlayer(Base):
    """Junction table: which players won or lost a match."""

    __tablename__ = "match_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(String(32), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(String(32), ForeignKey("players.id"), nullable=False)
    is_winner = Column(Boolean, nullable=False)

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_players_match_player"),
        Index("idx_match_players_player", "player_id"),
    )


class EloHistory(Base):
    """Rating after each resolved match, one row per participant."""

    __tablename__ = "elo_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(String(32), ForeignKey("players.id"), nullable=False)
    match_id = Column(String(32), nullable=False)
    new_elo = Column(Integer, nullable=False)
    mode = Column(Enum(GameMode), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_elo_history_match", "match_id"),
        Index("idx_elo_history_timestamp", "timestamp"),
    )


class PendingMatch(Base):
    """Reported outcomes waiting for acknowledgement."""

    __tablename__ = "pending_matches"

    id = Column(String(32), primary_key=True)
    mode = Column(Enum(GameMode), nullable=False)
    score_winner = Column(Integer, nullable=False)
    score_loser = Column(Integer, nullable=False)
    logged_by = Column(String, nullable=False)
    status = Column(Enum(PendingMatchStatus), nullable=False, default=PendingMatchStatus.UNCONFIRMED)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    players = relationship(
        "PendingMatchPlayer",
        order_by="PendingMatchPlayer.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    confirmations = relationship(
        "PendingMatchConfirmation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class PendingMatchPlayer(Base):
    """Junction table: sides of a pending report."""

    __tablename__ = "pending_match_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pending_match_id = Column(
        String(32), ForeignKey("pending_matches.id", ondelete="CASCADE"), nullable=False
    )
    player_id = Column(String(32), ForeignKey("players.id"), nullable=False)
    is_winner = Column(Boolean, nullable=False)


class PendingMatchConfirmation(Base):
    """Accounts that acknowledged a pending report."""

    __tablename__ = "pending_match_confirmations"

    pending_match_id = Column(
        String(32), ForeignKey("pending_matches.id", ondelete="CASCADE"), primary_key=True
    )
    account_id = Column(String, primary_key=True)


class Tournament(Base):
    """Bracket and round-robin tournaments."""

    __tablename__ = "tournaments"

    id = Column(String(32), primary_key=True)
    name = Column(String, nullable=False)
    format = Column(Enum(TournamentFormat), nullable=False)
    mode = Column(Enum(GameMode), nullable=False)
    status = Column(Enum(TournamentStatus), nullable=False, default=TournamentStatus.IN_PROGRESS)
    player_ids = Column(JSON, nullable=False)
    rounds = Column(JSON, nullable=False)
    winner_id = Column(String(32), nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class Season(Base):
    """Competitive epochs."""

    __tablename__ = "seasons"

    id = Column(String(32), primary_key=True)
    name = Column(String, nullable=False)
    number = Column(Integer, nullable=False, unique=True)
    status = Column(Enum(SeasonStatus), nullable=False, default=SeasonStatus.ACTIVE)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    final_standings = Column(JSON, nullable=False)
    match_count = Column(Integer, nullable=False, default=0)
    champion_id = Column(String(32), nullable=True)


class Challenge(Base):
    """Wager challenges between two players."""

    __tablename__ = "challenges"

    id = Column(String(32), primary_key=True)
    challenger_id = Column(String(32), ForeignKey("players.id"), nullable=False)
    challenged_id = Column(String(32), ForeignKey("players.id"), nullable=False)
    status = Column(Enum(ChallengeStatus), nullable=False, default=ChallengeStatus.PENDING)
    wager = Column(Integer, nullable=False, default=0)
    message = Column(Text, nullable=True)
    match_id = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class Admin(Base):
    """Accounts with administrative privileges."""

    __tablename__ = "admins"

    account_id = Column(String, primary_key=True)
    email = Column(String, nullable=False, default="")
    added_at = Column(DateTime(timezone=True), nullable=False)
