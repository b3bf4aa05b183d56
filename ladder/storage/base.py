"""
Abstract entity storage used by every engine service.

Services only ever see the canonical records from ``ladder.models.records``;
each backend owns the translation to and from its own shapes.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Dict, List, Optional, Sequence

from ladder.models.records import (
    AdminUser,
    Challenge,
    Match,
    PendingMatch,
    Player,
    RatingHistoryEntry,
    Season,
    SeasonStatus,
    Tournament,
)


class Storage(ABC):
    """
    Storage interface: per-entity list/get/create/update/delete plus the bulk
    operations the season reset and the data import and reset rely on.

    Every multi-step mutation runs inside ``transaction()``. Transactions are
    re-entrant within one task: a nested ``transaction()`` joins the outer one.
    Calls made outside a transaction run in their own short transaction.
    Reads with ``for_update=True`` lock the row until the transaction ends
    where the backend supports it.
    """

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        ...

    async def close(self) -> None:
        """Release backend resources."""

    # Players

    @abstractmethod
    async def list_players(self, include_inactive: bool = False) -> List[Player]:
        ...

    @abstractmethod
    async def get_player(self, player_id: str, for_update: bool = False) -> Optional[Player]:
        ...

    @abstractmethod
    async def get_players(self, player_ids: Sequence[str], for_update: bool = False) -> Dict[str, Player]:
        """Fetch several players at once, keyed by id. Unknown ids are absent."""

    @abstractmethod
    async def get_player_by_account(self, account_id: str) -> Optional[Player]:
        ...

    @abstractmethod
    async def create_player(self, player: Player) -> Player:
        ...

    @abstractmethod
    async def update_player(self, player: Player) -> Player:
        ...

    @abstractmethod
    async def update_players(self, players: Sequence[Player]) -> None:
        ...

    @abstractmethod
    async def bulk_reset_players(self, fields: Dict[str, Any]) -> None:
        """Set the given fields to the given values on every player."""

    # Matches and rating history

    @abstractmethod
    async def list_matches(self, limit: Optional[int] = None) -> List[Match]:
        """Matches ordered most recent first."""

    @abstractmethod
    async def get_match(self, match_id: str, for_update: bool = False) -> Optional[Match]:
        ...

    @abstractmethod
    async def create_match(self, match: Match) -> Match:
        ...

    @abstractmethod
    async def update_match(self, match: Match) -> Match:
        ...

    @abstractmethod
    async def delete_match(self, match_id: str) -> None:
        ...

    @abstractmethod
    async def count_matches(self) -> int:
        ...

    @abstractmethod
    async def list_history(self, limit: Optional[int] = None) -> List[RatingHistoryEntry]:
        """History rows ordered most recent first."""

    @abstractmethod
    async def create_history_entries(self, entries: Sequence[RatingHistoryEntry]) -> None:
        ...

    @abstractmethod
    async def delete_history_for_match(self, match_id: str) -> None:
        ...

    @abstractmethod
    async def clear_matches_and_history(self) -> None:
        ...

    @abstractmethod
    async def clear_players(self) -> None:
        """Delete every player. Callers clear whatever references players first."""

    @abstractmethod
    async def clear_all_data(self) -> None:
        """Delete every entity except the admin list."""

    # Pending (unconfirmed) reports

    @abstractmethod
    async def list_pending_matches(self) -> List[PendingMatch]:
        """Pending reports ordered oldest first."""

    @abstractmethod
    async def get_pending_match(self, report_id: str, for_update: bool = False) -> Optional[PendingMatch]:
        ...

    @abstractmethod
    async def create_pending_match(self, report: PendingMatch) -> PendingMatch:
        ...

    @abstractmethod
    async def update_pending_match(self, report: PendingMatch) -> PendingMatch:
        ...

    @abstractmethod
    async def delete_pending_match(self, report_id: str) -> None:
        ...

    # Tournaments

    @abstractmethod
    async def list_tournaments(self, limit: Optional[int] = None) -> List[Tournament]:
        """Tournaments ordered most recent first."""

    @abstractmethod
    async def get_tournament(self, tournament_id: str, for_update: bool = False) -> Optional[Tournament]:
        ...

    @abstractmethod
    async def create_tournament(self, tournament: Tournament) -> Tournament:
        ...

    @abstractmethod
    async def update_tournament(self, tournament: Tournament) -> Tournament:
        ...

    @abstractmethod
    async def delete_tournament(self, tournament_id: str) -> None:
        ...

    # Seasons

    @abstractmethod
    async def list_seasons(self) -> List[Season]:
        """Seasons ordered by number."""

    @abstractmethod
    async def create_season(self, season: Season) -> Season:
        ...

    @abstractmethod
    async def update_season(self, season: Season) -> Season:
        ...

    # Challenges

    @abstractmethod
    async def list_challenges(self, limit: Optional[int] = None) -> List[Challenge]:
        """Challenges ordered most recent first."""

    @abstractmethod
    async def get_challenge(self, challenge_id: str, for_update: bool = False) -> Optional[Challenge]:
        ...

    @abstractmethod
    async def create_challenge(self, challenge: Challenge) -> Challenge:
        ...

    @abstractmethod
    async def update_challenge(self, challenge: Challenge) -> Challenge:
        ...

    @abstractmethod
    async def delete_challenge(self, challenge_id: str) -> None:
        ...

    # Admin role store

    @abstractmethod
    async def list_admins(self) -> List[AdminUser]:
        ...

    @abstractmethod
    async def is_admin(self, account_id: str) -> bool:
        ...

    @abstractmethod
    async def add_admin(self, admin: AdminUser) -> AdminUser:
        ...

    @abstractmethod
    async def remove_admin(self, account_id: str) -> None:
        ...

    async def get_active_season(self) -> Optional[Season]:
        for season in await self.list_seasons():
            if season.status == SeasonStatus.ACTIVE:
                return season
        return None
