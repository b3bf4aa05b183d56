"""
Canonical entity records shared by the engine and every storage backend.

Each backend translates to/from these records at exactly one mapping
boundary; business logic never sees backend-specific shapes.
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from ladder.utils.constants import INITIAL_ELO
from ladder.utils.datetime_utils import utcnow


def new_id() -> str:
    """Generate a stable string identity for a new record."""
    return uuid.uuid4().hex


class GameMode(str, enum.Enum):
    """Competition mode. Each mode has its own rating track."""

    SINGLES = "singles"
    DOUBLES = "doubles"

    @property
    def team_size(self) -> int:
        return 1 if self is GameMode.SINGLES else 2


class PendingMatchStatus(str, enum.Enum):
    """Status of a reported outcome that is not yet authoritative."""

    UNCONFIRMED = "unconfirmed"
    DISPUTED = "disputed"


class TournamentFormat(str, enum.Enum):
    """Tournament schedule format."""

    SINGLE_ELIMINATION = "single_elimination"
    ROUND_ROBIN = "round_robin"


class TournamentStatus(str, enum.Enum):
    """Tournament status enum."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SeasonStatus(str, enum.Enum):
    """Season status enum."""

    ACTIVE = "active"
    COMPLETED = "completed"


class ChallengeStatus(str, enum.Enum):
    """Challenge status enum."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


class Identity(BaseModel):
    """Verified identity claims supplied by the upstream identity provider."""

    account_id: str
    display_name: str = ""
    email: str = ""
    picture: str = ""


class Player(BaseModel):
    """Player profile with independent singles and doubles tracks."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    name: str
    avatar: str = ""
    bio: str = ""
    account_id: Optional[str] = None
    elo_singles: int = INITIAL_ELO
    elo_doubles: int = INITIAL_ELO
    wins_singles: int = 0
    losses_singles: int = 0
    streak_singles: int = 0
    wins_doubles: int = 0
    losses_doubles: int = 0
    streak_doubles: int = 0
    is_active: bool = True
    joined_at: datetime = Field(default_factory=utcnow)

    def rating(self, mode: GameMode) -> int:
        return getattr(self, f"elo_{mode.value}")

    def set_rating(self, mode: GameMode, value: int) -> None:
        setattr(self, f"elo_{mode.value}", value)

    def wins(self, mode: GameMode) -> int:
        return getattr(self, f"wins_{mode.value}")

    def losses(self, mode: GameMode) -> int:
        return getattr(self, f"losses_{mode.value}")

    def streak(self, mode: GameMode) -> int:
        return getattr(self, f"streak_{mode.value}")

    def record_win(self, mode: GameMode) -> None:
        """Count a win; a positive streak continues, anything else restarts at +1."""
        setattr(self, f"wins_{mode.value}", self.wins(mode) + 1)
        streak = self.streak(mode)
        setattr(self, f"streak_{mode.value}", streak + 1 if streak >= 0 else 1)

    def record_loss(self, mode: GameMode) -> None:
        """Count a loss; a negative streak continues, anything else restarts at -1."""
        setattr(self, f"losses_{mode.value}", self.losses(mode) + 1)
        streak = self.streak(mode)
        setattr(self, f"streak_{mode.value}", streak - 1 if streak <= 0 else -1)

    def revert_win(self, mode: GameMode) -> None:
        setattr(self, f"wins_{mode.value}", max(0, self.wins(mode) - 1))
        setattr(self, f"streak_{mode.value}", 0)

    def revert_loss(self, mode: GameMode) -> None:
        setattr(self, f"losses_{mode.value}", max(0, self.losses(mode) - 1))
        setattr(self, f"streak_{mode.value}", 0)


class Match(BaseModel):
    """A resolved, authoritative match outcome."""

    id: str = Field(default_factory=new_id)
    mode: GameMode
    winners: List[str]
    losers: List[str]
    score_winner: int
    score_loser: int
    elo_change: int = 0
    timestamp: datetime = Field(default_factory=utcnow)
    logged_by: Optional[str] = None  # account_id of the original reporter
    is_friendly: bool = False

    @property
    def participant_ids(self) -> List[str]:
        return [*self.winners, *self.losers]


class RatingHistoryEntry(BaseModel):
    """Rating after a resolved match, one row per participant."""

    player_id: str
    match_id: str
    new_elo: int
    mode: GameMode
    timestamp: datetime


class PendingMatch(BaseModel):
    """A reported outcome waiting for acknowledgement or its deadline."""

    id: str = Field(default_factory=new_id)
    mode: GameMode
    winners: List[str]
    losers: List[str]
    score_winner: int
    score_loser: int
    logged_by: str
    status: PendingMatchStatus = PendingMatchStatus.UNCONFIRMED
    confirmations: Set[str] = Field(default_factory=set)
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    @property
    def participant_ids(self) -> List[str]:
        return [*self.winners, *self.losers]


class Matchup(BaseModel):
    """One pairing inside a tournament round. A None slot is a bye/unfilled slot."""

    id: str
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    winner_id: Optional[str] = None
    score_player1: Optional[int] = None
    score_player2: Optional[int] = None

    @property
    def is_playable(self) -> bool:
        return self.player1_id is not None and self.player2_id is not None


class Round(BaseModel):
    round_number: int
    matchups: List[Matchup]


class Tournament(BaseModel):
    """Bracket or round-robin competition, independent of the match ledger."""

    id: str = Field(default_factory=new_id)
    name: str
    format: TournamentFormat
    mode: GameMode
    status: TournamentStatus = TournamentStatus.IN_PROGRESS
    player_ids: List[str]
    rounds: List[Round] = Field(default_factory=list)
    winner_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class Standing(BaseModel):
    """One row of a season's immutable final standings."""

    player_id: str
    player_name: str
    rank: int
    elo_singles: int
    elo_doubles: int
    wins: int
    losses: int


class Season(BaseModel):
    """A bounded competitive epoch."""

    id: str = Field(default_factory=new_id)
    name: str
    number: int
    status: SeasonStatus = SeasonStatus.ACTIVE
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    final_standings: List[Standing] = Field(default_factory=list)
    match_count: int = 0
    champion_id: Optional[str] = None


class AdminUser(BaseModel):
    """Account empowered for privileged operations."""

    account_id: str
    email: str = ""
    added_at: datetime = Field(default_factory=utcnow)


class Challenge(BaseModel):
    """A proposed wager between two players."""

    id: str = Field(default_factory=new_id)
    challenger_id: str
    challenged_id: str
    status: ChallengeStatus = ChallengeStatus.PENDING
    wager: int = 0
    message: Optional[str] = None
    match_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
