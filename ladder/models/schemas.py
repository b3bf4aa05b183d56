"""
Pydantic models for API request validation.

Domain rules (participant counts, score ordering, name length) are enforced
by the services so that every caller gets the same error taxonomy; these
models only fix the request shapes.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProfileSetupRequest(BaseModel):
    """Create the caller's own player."""

    name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None


class ClaimPlayerRequest(BaseModel):
    player_id: str


class ProfileUpdateRequest(BaseModel):
    """Partial update of display fields; omitted fields are left unchanged."""

    name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None


class PlayerCreateRequest(BaseModel):
    name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None


class PlayerUpdateRequest(ProfileUpdateRequest):
    pass


class MatchCreateRequest(BaseModel):
    """Record a match straight into the ledger."""

    mode: str
    winners: List[str]
    losers: List[str]
    score_winner: int
    score_loser: int
    is_friendly: bool = False


class MatchUpdateRequest(BaseModel):
    winners: List[str]
    losers: List[str]
    score_winner: int
    score_loser: int


class PendingMatchCreateRequest(BaseModel):
    """Report a match for confirmation."""

    mode: str
    winners: List[str]
    losers: List[str]
    score_winner: int
    score_loser: int


class TournamentCreateRequest(BaseModel):
    name: str
    format: str
    mode: str
    player_ids: List[str] = Field(default_factory=list)


class TournamentResultRequest(BaseModel):
    matchup_id: str
    winner_id: str
    score1: Optional[int] = None
    score2: Optional[int] = None


class SeasonStartRequest(BaseModel):
    name: Optional[str] = None


class ChallengeCreateRequest(BaseModel):
    challenged_id: str
    wager: Any = 0  # clamped by the service; non-numeric values count as 0
    message: Optional[str] = None


class ChallengeRespondRequest(BaseModel):
    accept: bool


class ChallengeCompleteRequest(BaseModel):
    match_id: Optional[str] = None


class AdminRoleRequest(BaseModel):
    account_id: str
    email: str = ""


class DataImportRequest(BaseModel):
    players: List[Dict[str, Any]]
    matches: List[Dict[str, Any]]
    history: List[Dict[str, Any]] = Field(default_factory=list)


class DataResetRequest(BaseModel):
    mode: str  # "season" or "fresh"
