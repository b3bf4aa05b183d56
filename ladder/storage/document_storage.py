"""
Flat JSON document storage backend.

The whole state lives in a single document that is read and written as a
unit. Transactions are serialized by a process-wide ``asyncio.Lock``: each
one works on a private copy of the document, which replaces the committed
state and is written to disk once when the transaction succeeds. A failed
transaction leaves both the committed state and the file untouched.
"""

import asyncio
import copy
import json
import logging
import os
from contextlib import asynccontextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

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
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

COLLECTIONS = (
    "players",
    "matches",
    "pending_matches",
    "tournaments",
    "seasons",
    "challenges",
    "admins",
)


def empty_document() -> Dict[str, Any]:
    document: Dict[str, Any] = {name: {} for name in COLLECTIONS}
    document["elo_history"] = []
    return document


def to_document(record: BaseModel) -> Dict[str, Any]:
    data = record.model_dump(mode="json")
    if isinstance(record, PendingMatch):
        data["confirmations"] = sorted(record.confirmations)
    return data


def from_document(model: Type[RecordT], data: Dict[str, Any]) -> RecordT:
    return model.model_validate(data)


class _Transaction:
    def __init__(self, data: Dict[str, Any]):
        self.data = data
        self.dirty = False


class DocumentStorage(Storage):
    """Storage kept in one JSON document on disk."""

    def __init__(self, path: str):
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._committed: Optional[Dict[str, Any]] = None
        self._current: ContextVar[Optional[_Transaction]] = ContextVar(
            f"ladder_document_txn_{id(self)}", default=None
        )

    def _load(self) -> Dict[str, Any]:
        if self._committed is None:
            document = empty_document()
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    document.update(json.load(f))
            self._committed = document
        return self._committed

    def _write(self, document: Dict[str, Any]) -> None:
        if self._path.parent and not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._current.get() is not None:
            yield
            return

        async with self._lock:
            txn = _Transaction(copy.deepcopy(self._load()))
            token = self._current.set(txn)
            try:
                yield
                if txn.dirty:
                    self._write(txn.data)
                    self._committed = txn.data
            finally:
                self._current.reset(token)

    @asynccontextmanager
    async def _reading(self) -> AsyncIterator[Dict[str, Any]]:
        async with self.transaction():
            yield self._current.get().data

    @asynccontextmanager
    async def _writing(self) -> AsyncIterator[Dict[str, Any]]:
        async with self.transaction():
            txn = self._current.get()
            txn.dirty = True
            yield txn.data

    async def _get(self, collection: str, model: Type[RecordT], key: str) -> Optional[RecordT]:
        async with self._reading() as data:
            item = data[collection].get(key)
            return from_document(model, item) if item is not None else None

    async def _put(self, collection: str, key: str, record: RecordT) -> RecordT:
        async with self._writing() as data:
            data[collection][key] = to_document(record)
            return record

    async def _replace(self, collection: str, key: str, record: RecordT) -> RecordT:
        async with self._writing() as data:
            if key not in data[collection]:
                raise LookupError(f"{collection} entry {key} does not exist")
            data[collection][key] = to_document(record)
            return record

    async def _remove(self, collection: str, key: str) -> None:
        async with self._writing() as data:
            data[collection].pop(key, None)

    async def _list(self, collection: str, model: Type[RecordT]) -> List[RecordT]:
        async with self._reading() as data:
            return [from_document(model, item) for item in data[collection].values()]

    # Players

    async def list_players(self, include_inactive: bool = False) -> List[Player]:
        players = await self._list("players", Player)
        if not include_inactive:
            players = [p for p in players if p.is_active]
        return sorted(players, key=lambda p: (p.joined_at, p.id))

    async def get_player(self, player_id: str, for_update: bool = False) -> Optional[Player]:
        return await self._get("players", Player, player_id)

    async def get_players(self, player_ids: Sequence[str], for_update: bool = False) -> Dict[str, Player]:
        async with self._reading() as data:
            return {
                pid: from_document(Player, data["players"][pid])
                for pid in player_ids
                if pid in data["players"]
            }

    async def get_player_by_account(self, account_id: str) -> Optional[Player]:
        async with self._reading() as data:
            for item in data["players"].values():
                if item.get("account_id") == account_id:
                    return from_document(Player, item)
            return None

    async def create_player(self, player: Player) -> Player:
        return await self._put("players", player.id, player)

    async def update_player(self, player: Player) -> Player:
        return await self._replace("players", player.id, player)

    async def update_players(self, players: Sequence[Player]) -> None:
        async with self.transaction():
            for player in players:
                await self._replace("players", player.id, player)

    async def bulk_reset_players(self, fields: Dict[str, Any]) -> None:
        async with self._writing() as data:
            for item in data["players"].values():
                item.update(fields)

    # Matches and rating history

    async def list_matches(self, limit: Optional[int] = None) -> List[Match]:
        matches = sorted(
            await self._list("matches", Match), key=lambda m: (m.timestamp, m.id), reverse=True
        )
        return matches[:limit] if limit is not None else matches

    async def get_match(self, match_id: str, for_update: bool = False) -> Optional[Match]:
        return await self._get("matches", Match, match_id)

    async def create_match(self, match: Match) -> Match:
        return await self._put("matches", match.id, match)

    async def update_match(self, match: Match) -> Match:
        return await self._replace("matches", match.id, match)

    async def delete_match(self, match_id: str) -> None:
        await self._remove("matches", match_id)

    async def count_matches(self) -> int:
        async with self._reading() as data:
            return len(data["matches"])

    async def list_history(self, limit: Optional[int] = None) -> List[RatingHistoryEntry]:
        async with self._reading() as data:
            # Insertion order breaks timestamp ties, newest last
            indexed = [
                (i, from_document(RatingHistoryEntry, item))
                for i, item in enumerate(data["elo_history"])
            ]
        indexed.sort(key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        entries = [entry for _, entry in indexed]
        return entries[:limit] if limit is not None else entries

    async def create_history_entries(self, entries: Sequence[RatingHistoryEntry]) -> None:
        async with self._writing() as data:
            data["elo_history"].extend(to_document(entry) for entry in entries)

    async def delete_history_for_match(self, match_id: str) -> None:
        async with self._writing() as data:
            data["elo_history"] = [
                item for item in data["elo_history"] if item["match_id"] != match_id
            ]

    async def clear_matches_and_history(self) -> None:
        async with self._writing() as data:
            data["matches"] = {}
            data["elo_history"] = []
        logger.info("Cleared all matches and rating history")

    async def clear_players(self) -> None:
        async with self._writing() as data:
            data["players"] = {}

    async def clear_all_data(self) -> None:
        async with self._writing() as data:
            admins = data["admins"]
            data.update(empty_document())
            data["admins"] = admins
        logger.info("Cleared all ladder data")

    # Pending reports

    async def list_pending_matches(self) -> List[PendingMatch]:
        reports = await self._list("pending_matches", PendingMatch)
        return sorted(reports, key=lambda r: (r.created_at, r.id))

    async def get_pending_match(self, report_id: str, for_update: bool = False) -> Optional[PendingMatch]:
        return await self._get("pending_matches", PendingMatch, report_id)

    async def create_pending_match(self, report: PendingMatch) -> PendingMatch:
        return await self._put("pending_matches", report.id, report)

    async def update_pending_match(self, report: PendingMatch) -> PendingMatch:
        return await self._replace("pending_matches", report.id, report)

    async def delete_pending_match(self, report_id: str) -> None:
        await self._remove("pending_matches", report_id)

    # Tournaments

    async def list_tournaments(self, limit: Optional[int] = None) -> List[Tournament]:
        tournaments = sorted(
            await self._list("tournaments", Tournament),
            key=lambda t: (t.created_at, t.id),
            reverse=True,
        )
        return tournaments[:limit] if limit is not None else tournaments

    async def get_tournament(self, tournament_id: str, for_update: bool = False) -> Optional[Tournament]:
        return await self._get("tournaments", Tournament, tournament_id)

    async def create_tournament(self, tournament: Tournament) -> Tournament:
        return await self._put("tournaments", tournament.id, tournament)

    async def update_tournament(self, tournament: Tournament) -> Tournament:
        return await self._replace("tournaments", tournament.id, tournament)

    async def delete_tournament(self, tournament_id: str) -> None:
        await self._remove("tournaments", tournament_id)

    # Seasons

    async def list_seasons(self) -> List[Season]:
        return sorted(await self._list("seasons", Season), key=lambda s: s.number)

    async def create_season(self, season: Season) -> Season:
        return await self._put("seasons", season.id, season)

    async def update_season(self, season: Season) -> Season:
        return await self._replace("seasons", season.id, season)

    # Challenges

    async def list_challenges(self, limit: Optional[int] = None) -> List[Challenge]:
        challenges = sorted(
            await self._list("challenges", Challenge),
            key=lambda c: (c.created_at, c.id),
            reverse=True,
        )
        return challenges[:limit] if limit is not None else challenges

    async def get_challenge(self, challenge_id: str, for_update: bool = False) -> Optional[Challenge]:
        return await self._get("challenges", Challenge, challenge_id)

    async def create_challenge(self, challenge: Challenge) -> Challenge:
        return await self._put("challenges", challenge.id, challenge)

    async def update_challenge(self, challenge: Challenge) -> Challenge:
        return await self._replace("challenges", challenge.id, challenge)

    async def delete_challenge(self, challenge_id: str) -> None:
        await self._remove("challenges", challenge_id)

    # Admin role store

    async def list_admins(self) -> List[AdminUser]:
        return sorted(await self._list("admins", AdminUser), key=lambda a: a.added_at)

    async def is_admin(self, account_id: str) -> bool:
        async with self._reading() as data:
            return account_id in data["admins"]

    async def add_admin(self, admin: AdminUser) -> AdminUser:
        existing = await self._get("admins", AdminUser, admin.account_id)
        if existing is not None:
            return existing
        return await self._put("admins", admin.account_id, admin)

    async def remove_admin(self, account_id: str) -> None:
        await self._remove("admins", account_id)
