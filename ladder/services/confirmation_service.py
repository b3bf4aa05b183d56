"""
Match lifecycle - the confirmation workflow gating when a reported outcome
becomes authoritative.

    unconfirmed --acknowledged by all linked participants--> confirmed
    unconfirmed --deadline passed (sweep)-----------------> confirmed
    unconfirmed --dispute---------------------------------> disputed
    disputed    --admin force resolve---------------------> confirmed
    any         --admin reject----------------------------> rejected

Confirmed and rejected reports are removed from the pending set; a
confirmed report becomes a Match with the same id, resolved at the report's
creation time. Every transition re-reads the report inside its own storage
transaction and re-checks its status, so the first mutation to observe an
``unconfirmed`` report wins and any racing mutation becomes a no-op or a
state conflict.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Mapping, Optional, Sequence

from pydantic import BaseModel

from ladder.models.records import Identity, Match, PendingMatch, PendingMatchStatus, Player
from ladder.services import ledger_service
from ladder.services.errors import (
    AuthorizationError,
    LadderError,
    NotFoundError,
    StateConflictError,
)
from ladder.services.role_service import RoleStore, require_admin
from ladder.storage.base import Storage
from ladder.utils.constants import CONFIRMATION_WINDOW_HOURS
from ladder.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class ReportResolution(BaseModel):
    """Outcome of an acknowledgement or administrative resolution."""

    report: PendingMatch
    promoted: bool = False
    match: Optional[Match] = None


def all_required_have_acknowledged(report: PendingMatch, players: Mapping[str, Player]) -> bool:
    """
    Whether a report has collected every acknowledgement it needs.

    Every participant with a linked account must have acknowledged, unless at
    most one participant is linked at all (solo or self-reported matches).
    """
    linked = [
        players[pid].account_id
        for pid in report.participant_ids
        if pid in players and players[pid].account_id
    ]
    if len(linked) <= 1:
        return True
    return all(account_id in report.confirmations for account_id in linked)


async def create_report(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    mode,
    winners: Sequence[str],
    losers: Sequence[str],
    score_winner: int,
    score_loser: int,
    now: Optional[datetime] = None,
) -> PendingMatch:
    """
    Submit an outcome for confirmation. The reporter counts as acknowledged.

    Raises:
        ValidationError: Malformed outcome or unknown participants
        AuthorizationError: Actor is neither admin nor a participant
    """
    game_mode = ledger_service.parse_mode(mode)
    ledger_service.validate_outcome(game_mode, winners, losers, score_winner, score_loser)
    await ledger_service.ensure_participant_or_admin(storage, roles, actor, [*winners, *losers])
    await ledger_service.load_participants(storage, [*winners, *losers], for_update=False)

    created_at = now or utcnow()
    report = PendingMatch(
        mode=game_mode,
        winners=list(winners),
        losers=list(losers),
        score_winner=score_winner,
        score_loser=score_loser,
        logged_by=actor.account_id,
        confirmations={actor.account_id},
        created_at=created_at,
        expires_at=created_at + timedelta(hours=CONFIRMATION_WINDOW_HOURS),
    )
    await storage.create_pending_match(report)
    logger.info(f"Pending match {report.id} reported by {actor.account_id}, expires {report.expires_at}")
    return report


async def _promote(storage: Storage, report: PendingMatch) -> Match:
    match = await ledger_service.apply_match(
        storage,
        mode=report.mode,
        winners=report.winners,
        losers=report.losers,
        score_winner=report.score_winner,
        score_loser=report.score_loser,
        logged_by=report.logged_by,
        timestamp=report.created_at,
        match_id=report.id,
    )
    await storage.delete_pending_match(report.id)
    logger.info(f"Pending match {report.id} promoted to match")
    return match


async def _load_open_report(storage: Storage, report_id: str) -> PendingMatch:
    report = await storage.get_pending_match(report_id, for_update=True)
    if report is None:
        raise NotFoundError("Pending match", report_id)
    if report.status != PendingMatchStatus.UNCONFIRMED:
        raise StateConflictError("Match is not pending", current_state=report.status.value)
    return report


async def _ensure_linked_participant_or_admin(
    roles: RoleStore, actor: Identity, players: Mapping[str, Player]
) -> None:
    if await roles.is_admin(actor.account_id):
        return
    if actor.account_id not in {p.account_id for p in players.values() if p.account_id}:
        raise AuthorizationError("Only participants can respond to this match")


async def acknowledge(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    report_id: str,
    now: Optional[datetime] = None,
) -> ReportResolution:
    """
    Record the actor's acknowledgement, promoting the report once every
    required participant has acknowledged.

    Raises:
        NotFoundError: Unknown report
        StateConflictError: Report is no longer unconfirmed
        AuthorizationError: Actor is neither admin nor a linked participant
    """
    async with storage.transaction():
        report = await _load_open_report(storage, report_id)
        players = await storage.get_players(report.participant_ids)
        await _ensure_linked_participant_or_admin(roles, actor, players)

        report.confirmations.add(actor.account_id)
        if all_required_have_acknowledged(report, players):
            match = await _promote(storage, report)
            return ReportResolution(report=report, promoted=True, match=match)

        await storage.update_pending_match(report)

    logger.info(f"Pending match {report_id} acknowledged by {actor.account_id}")
    return ReportResolution(report=report)


async def dispute(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    report_id: str,
) -> PendingMatch:
    """
    Move an unconfirmed report to disputed, suspending automatic promotion.

    Raises:
        NotFoundError: Unknown report
        StateConflictError: Report is no longer unconfirmed
        AuthorizationError: Actor is neither admin nor a linked participant
    """
    async with storage.transaction():
        report = await _load_open_report(storage, report_id)
        players = await storage.get_players(report.participant_ids)
        await _ensure_linked_participant_or_admin(roles, actor, players)

        report.status = PendingMatchStatus.DISPUTED
        await storage.update_pending_match(report)

    logger.info(f"Pending match {report_id} disputed by {actor.account_id}")
    return report


async def force_resolve(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    report_id: str,
) -> ReportResolution:
    """Admin: promote a report regardless of acknowledgements or dispute status."""
    await require_admin(roles, actor)
    async with storage.transaction():
        report = await storage.get_pending_match(report_id, for_update=True)
        if report is None:
            raise NotFoundError("Pending match", report_id)
        match = await _promote(storage, report)

    logger.info(f"Pending match {report_id} force-resolved by {actor.account_id}")
    return ReportResolution(report=report, promoted=True, match=match)


async def reject(
    storage: Storage,
    roles: RoleStore,
    actor: Identity,
    report_id: str,
) -> None:
    """Admin: discard a report without computing any rating delta."""
    await require_admin(roles, actor)
    async with storage.transaction():
        report = await storage.get_pending_match(report_id, for_update=True)
        if report is None:
            raise NotFoundError("Pending match", report_id)
        await storage.delete_pending_match(report_id)

    logger.info(f"Pending match {report_id} rejected by {actor.account_id}")


async def sweep_expired_reports(storage: Storage, now: Optional[datetime] = None) -> List[str]:
    """
    Promote every unconfirmed report whose deadline has passed.

    Each promotion runs in its own transaction and re-reads the report
    first; a report that is gone, disputed or not yet expired by then is
    skipped.

    Returns:
        Ids of the promoted reports
    """
    now = now or utcnow()
    candidates = [
        report.id
        for report in await storage.list_pending_matches()
        if report.status == PendingMatchStatus.UNCONFIRMED and report.expires_at <= now
    ]

    promoted = []
    for report_id in candidates:
        try:
            async with storage.transaction():
                report = await storage.get_pending_match(report_id, for_update=True)
                if (
                    report is None
                    or report.status != PendingMatchStatus.UNCONFIRMED
                    or report.expires_at > now
                ):
                    logger.warning(f"Skipping expiry promotion of {report_id}: no longer eligible")
                    continue
                await _promote(storage, report)
        except LadderError as e:
            logger.warning(f"Could not promote expired pending match {report_id}: {e.message}")
            continue
        promoted.append(report_id)

    if promoted:
        logger.info(f"Expiry sweep promoted {len(promoted)} pending match(es)")
    return promoted
