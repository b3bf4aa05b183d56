"""
State snapshot read for UI collaborators.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from ladder.models.records import PendingMatchStatus
from ladder.services.confirmation_service import sweep_expired_reports
from ladder.storage.base import Storage
from ladder.utils.constants import (
    STATE_CHALLENGES_LIMIT,
    STATE_HISTORY_LIMIT,
    STATE_MATCHES_LIMIT,
    STATE_TOURNAMENTS_LIMIT,
)

logger = logging.getLogger(__name__)

OPEN_REPORT_STATUSES = (PendingMatchStatus.UNCONFIRMED, PendingMatchStatus.DISPUTED)


async def get_state(storage: Storage, now: Optional[datetime] = None) -> Dict:
    """
    Sweep expired reports, then read the full current state.

    Returns:
        Dict with players, the most recent matches, history rows, challenges
        and tournaments, open pending matches, seasons, and the ids promoted
        by the sweep
    """
    promoted = await sweep_expired_reports(storage, now=now)

    pending = [
        report
        for report in await storage.list_pending_matches()
        if report.status in OPEN_REPORT_STATUSES
    ]
    return {
        "players": await storage.list_players(),
        "matches": await storage.list_matches(limit=STATE_MATCHES_LIMIT),
        "history": await storage.list_history(limit=STATE_HISTORY_LIMIT),
        "pending_matches": pending,
        "seasons": await storage.list_seasons(),
        "challenges": await storage.list_challenges(limit=STATE_CHALLENGES_LIMIT),
        "tournaments": await storage.list_tournaments(limit=STATE_TOURNAMENTS_LIMIT),
        "promoted_pending_matches": promoted,
    }
