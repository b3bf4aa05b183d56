"""
Relational storage backend using SQLAlchemy async sessions.

One storage transaction maps to one database transaction. Row locks
(``SELECT ... FOR UPDATE``) are requested for participant, report,
tournament and challenge reads inside mutations. SQLite drops the clause;
its engines take the database write lock at BEGIN instead
(``database.db.serialize_sqlite_transactions``).
"""

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ladder.database import models
from ladder.models.records import (
    AdminUser,
    Challenge,
    Match,
    PendingMatch,
    Player,
    RatingHistoryEntry,
    Season,
    Tournament,
)
from ladder.storage import sql_mappers as mappers
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)


class SqlStorage(Storage):
    """Storage backed by a relational database through SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker, engine: Optional[AsyncEngine] = None):
        self._session_factory = session_factory
        self._engine = engine
        self._current: ContextVar[Optional[AsyncSession]] = ContextVar(
            f"ladder_sql_session_{id(self)}", default=None
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._current.get() is not None:
            yield
            return

        async with self._session_factory() as session:
            token = self._current.set(session)
            try:
                yield
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                self._current.reset(token)

    async def close(self) -> None:
        """Dispose the engine this storage was built with, if it owns one."""
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self.transaction():
            yield self._current.get()

    # Players

    async def list_players(self, include_inactive: bool = False) -> List[Player]:
        async with self._session() as session:
            stmt = select(models.Player).order_by(models.Player.joined_at, models.Player.id)
            if not include_inactive:
                stmt = stmt.where(models.Player.is_active.is_(True))
            result = await session.execute(stmt)
            return [mappers.player_to_record(row) for row in result.scalars().all()]

    async def _player_row(self, session: AsyncSession, player_id: str, for_update: bool = False):
        stmt = select(models.Player).where(models.Player.id == player_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_player(self, player_id: str, for_update: bool = False) -> Optional[Player]:
        async with self._session() as session:
            row = await self._player_row(session, player_id, for_update)
            return mappers.player_to_record(row) if row else None

    async def get_players(self, player_ids: Sequence[str], for_update: bool = False) -> Dict[str, Player]:
        if not player_ids:
            return {}
        async with self._session() as session:
            # Consistent lock order across concurrent transactions
            stmt = (
                select(models.Player)
                .where(models.Player.id.in_(list(player_ids)))
                .order_by(models.Player.id)
            )
            if for_update:
                stmt = stmt.with_for_update()
            result = await session.execute(stmt)
            return {row.id: mappers.player_to_record(row) for row in result.scalars().all()}

    async def get_player_by_account(self, account_id: str) -> Optional[Player]:
        async with self._session() as session:
            result = await session.execute(
                select(models.Player).where(models.Player.account_id == account_id)
            )
            row = result.scalar_one_or_none()
            return mappers.player_to_record(row) if row else None

    async def create_player(self, player: Player) -> Player:
        async with self._session() as session:
            session.add(mappers.player_to_row(player))
            await session.flush()
            return player

    async def update_player(self, player: Player) -> Player:
        await self.update_players([player])
        return player

    async def update_players(self, players: Sequence[Player]) -> None:
        async with self._session() as session:
            for player in players:
                row = await session.get(models.Player, player.id)
                if row is None:
                    raise LookupError(f"Player {player.id} does not exist")
                mappers.apply_player(row, player)
            await session.flush()

    async def bulk_reset_players(self, fields: Dict[str, Any]) -> None:
        async with self._session() as session:
            await session.execute(update(models.Player).values(**fields))

    # Matches and rating history

    async def list_matches(self, limit: Optional[int] = None) -> List[Match]:
        async with self._session() as session:
            stmt = select(models.Match).order_by(models.Match.timestamp.desc(), models.Match.id.desc())
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [mappers.match_to_record(row) for row in result.scalars().all()]

    async def _match_row(self, session: AsyncSession, match_id: str, for_update: bool = False):
        stmt = select(models.Match).where(models.Match.id == match_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_match(self, match_id: str, for_update: bool = False) -> Optional[Match]:
        async with self._session() as session:
            row = await self._match_row(session, match_id, for_update)
            return mappers.match_to_record(row) if row else None

    async def create_match(self, match: Match) -> Match:
        async with self._session() as session:
            row = mappers.apply_match(models.Match(id=match.id), match)
            row.players = mappers.match_player_rows(match)
            session.add(row)
            await session.flush()
            return match

    async def update_match(self, match: Match) -> Match:
        async with self._session() as session:
            row = await self._match_row(session, match.id)
            if row is None:
                raise LookupError(f"Match {match.id} does not exist")
            mappers.apply_match(row, match)
            # Drop old memberships before inserting the new ones
            row.players.clear()
            await session.flush()
            row.players.extend(mappers.match_player_rows(match))
            await session.flush()
            return match

    async def delete_match(self, match_id: str) -> None:
        async with self._session() as session:
            row = await self._match_row(session, match_id)
            if row is not None:
                await session.delete(row)
                await session.flush()

    async def count_matches(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count()).select_from(models.Match))
            return result.scalar() or 0

    async def list_history(self, limit: Optional[int] = None) -> List[RatingHistoryEntry]:
        async with self._session() as session:
            stmt = select(models.EloHistory).order_by(
                models.EloHistory.timestamp.desc(), models.EloHistory.id.desc()
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [mappers.history_to_record(row) for row in result.scalars().all()]

    async def create_history_entries(self, entries: Sequence[RatingHistoryEntry]) -> None:
        async with self._session() as session:
            session.add_all([mappers.history_to_row(entry) for entry in entries])
            await session.flush()

    async def delete_history_for_match(self, match_id: str) -> None:
        async with self._session() as session:
            await session.execute(
                delete(models.EloHistory).where(models.EloHistory.match_id == match_id)
            )

    async def clear_matches_and_history(self) -> None:
        async with self._session() as session:
            await session.execute(delete(models.EloHistory))
            await session.execute(delete(models.MatchPlayer))
            await session.execute(delete(models.Match))
            # Bulk deletes bypass the identity map
            session.expunge_all()
            logger.info("Cleared all matches and rating history")

    async def clear_players(self) -> None:
        async with self._session() as session:
            await session.execute(delete(models.Player))
            session.expunge_all()

    async def clear_all_data(self) -> None:
        async with self._session() as session:
            # Children before parents
            for model in (
                models.PendingMatchConfirmation,
                models.PendingMatchPlayer,
                models.PendingMatch,
                models.Challenge,
                models.Tournament,
                models.Season,
                models.EloHistory,
                models.MatchPlayer,
                models.Match,
                models.Player,
            ):
                await session.execute(delete(model))
            session.expunge_all()
            logger.info("Cleared all ladder data")

    # Pending reports

    async def list_pending_matches(self) -> List[PendingMatch]:
        async with self._session() as session:
            result = await session.execute(
                select(models.PendingMatch).order_by(
                    models.PendingMatch.created_at, models.PendingMatch.id
                )
            )
            return [mappers.pending_to_record(row) for row in result.scalars().all()]

    async def _pending_row(self, session: AsyncSession, report_id: str, for_update: bool = False):
        stmt = select(models.PendingMatch).where(models.PendingMatch.id == report_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_pending_match(self, report_id: str, for_update: bool = False) -> Optional[PendingMatch]:
        async with self._session() as session:
            row = await self._pending_row(session, report_id, for_update)
            return mappers.pending_to_record(row) if row else None

    async def create_pending_match(self, report: PendingMatch) -> PendingMatch:
        async with self._session() as session:
            row = mappers.apply_pending(models.PendingMatch(id=report.id), report)
            row.players = mappers.pending_player_rows(report)
            session.add(row)
            await session.flush()
            return report

    async def update_pending_match(self, report: PendingMatch) -> PendingMatch:
        async with self._session() as session:
            row = await self._pending_row(session, report.id)
            if row is None:
                raise LookupError(f"Pending match {report.id} does not exist")
            mappers.apply_pending(row, report)
            await session.flush()
            return report

    async def delete_pending_match(self, report_id: str) -> None:
        async with self._session() as session:
            row = await self._pending_row(session, report_id)
            if row is not None:
                await session.delete(row)
                await session.flush()

    # Tournaments

    async def list_tournaments(self, limit: Optional[int] = None) -> List[Tournament]:
        async with self._session() as session:
            stmt = select(models.Tournament).order_by(
                models.Tournament.created_at.desc(), models.Tournament.id.desc()
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [mappers.tournament_to_record(row) for row in result.scalars().all()]

    async def get_tournament(self, tournament_id: str, for_update: bool = False) -> Optional[Tournament]:
        async with self._session() as session:
            stmt = select(models.Tournament).where(models.Tournament.id == tournament_id)
            if for_update:
                stmt = stmt.with_for_update()
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return mappers.tournament_to_record(row) if row else None

    async def create_tournament(self, tournament: Tournament) -> Tournament:
        async with self._session() as session:
            session.add(mappers.apply_tournament(models.Tournament(id=tournament.id), tournament))
            await session.flush()
            return tournament

    async def update_tournament(self, tournament: Tournament) -> Tournament:
        async with self._session() as session:
            row = await session.get(models.Tournament, tournament.id)
            if row is None:
                raise LookupError(f"Tournament {tournament.id} does not exist")
            mappers.apply_tournament(row, tournament)
            await session.flush()
            return tournament

    async def delete_tournament(self, tournament_id: str) -> None:
        async with self._session() as session:
            await session.execute(
                delete(models.Tournament).where(models.Tournament.id == tournament_id)
            )

    # Seasons

    async def list_seasons(self) -> List[Season]:
        async with self._session() as session:
            result = await session.execute(select(models.Season).order_by(models.Season.number))
            return [mappers.season_to_record(row) for row in result.scalars().all()]

    async def create_season(self, season: Season) -> Season:
        async with self._session() as session:
            session.add(mappers.apply_season(models.Season(id=season.id), season))
            await session.flush()
            return season

    async def update_season(self, season: Season) -> Season:
        async with self._session() as session:
            row = await session.get(models.Season, season.id)
            if row is None:
                raise LookupError(f"Season {season.id} does not exist")
            mappers.apply_season(row, season)
            await session.flush()
            return season

    # Challenges

    async def list_challenges(self, limit: Optional[int] = None) -> List[Challenge]:
        async with self._session() as session:
            stmt = select(models.Challenge).order_by(
                models.Challenge.created_at.desc(), models.Challenge.id.desc()
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [mappers.challenge_to_record(row) for row in result.scalars().all()]

    async def get_challenge(self, challenge_id: str, for_update: bool = False) -> Optional[Challenge]:
        async with self._session() as session:
            stmt = select(models.Challenge).where(models.Challenge.id == challenge_id)
            if for_update:
                stmt = stmt.with_for_update()
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return mappers.challenge_to_record(row) if row else None

    async def create_challenge(self, challenge: Challenge) -> Challenge:
        async with self._session() as session:
            session.add(mappers.apply_challenge(models.Challenge(id=challenge.id), challenge))
            await session.flush()
            return challenge

    async def update_challenge(self, challenge: Challenge) -> Challenge:
        async with self._session() as session:
            row = await session.get(models.Challenge, challenge.id)
            if row is None:
                raise LookupError(f"Challenge {challenge.id} does not exist")
            mappers.apply_challenge(row, challenge)
            await session.flush()
            return challenge

    async def delete_challenge(self, challenge_id: str) -> None:
        async with self._session() as session:
            await session.execute(
                delete(models.Challenge).where(models.Challenge.id == challenge_id)
            )

    # Admin role store

    async def list_admins(self) -> List[AdminUser]:
        async with self._session() as session:
            result = await session.execute(select(models.Admin).order_by(models.Admin.added_at))
            return [mappers.admin_to_record(row) for row in result.scalars().all()]

    async def is_admin(self, account_id: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(models.Admin.account_id).where(models.Admin.account_id == account_id)
            )
            return result.scalar_one_or_none() is not None

    async def add_admin(self, admin: AdminUser) -> AdminUser:
        async with self._session() as session:
            existing = await session.get(models.Admin, admin.account_id)
            if existing is None:
                session.add(
                    models.Admin(
                        account_id=admin.account_id, email=admin.email, added_at=admin.added_at
                    )
                )
                await session.flush()
                return admin
            return mappers.admin_to_record(existing)

    async def remove_admin(self, account_id: str) -> None:
        async with self._session() as session:
            await session.execute(delete(models.Admin).where(models.Admin.account_id == account_id))
