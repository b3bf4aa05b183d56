"""
Tests for the match ledger: recording, editing, deleting and stat replay.

Every test runs against both storage backends.
"""

import asyncio
from datetime import datetime, timedelta

import pytest
import pytz

from ladder.models.records import GameMode
from ladder.services import ledger_service
from ladder.services.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=pytz.UTC)


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_record_singles_match_applies_symmetric_delta(storage, roles, make_player, as_account):
    alice = await make_player("Alice", account_id="acct-alice")
    bob = await make_player("Bob", account_id="acct-bob")

    match = await ledger_service.record_match(
        storage, roles, as_account("acct-alice"), "singles", [alice.id], [bob.id], 21, 15, now=T0
    )

    assert match.elo_change == 16
    assert match.logged_by == "acct-alice"
    assert match.timestamp == T0

    players = await storage.get_players([alice.id, bob.id])
    assert players[alice.id].elo_singles == 1216
    assert players[bob.id].elo_singles == 1184
    assert players[alice.id].wins_singles == 1
    assert players[alice.id].streak_singles == 1
    assert players[bob.id].losses_singles == 1
    assert players[bob.id].streak_singles == -1

    history = await storage.list_history()
    assert {(h.player_id, h.new_elo) for h in history} == {(alice.id, 1216), (bob.id, 1184)}
    assert all(h.match_id == match.id for h in history)


@pytest.mark.asyncio
async def test_modes_never_share_state(storage, roles, admin, make_player):
    a, b, c, d = [await make_player(name) for name in ("A", "B", "C", "D")]

    await ledger_service.record_match(storage, roles, admin, "doubles", [a.id, b.id], [c.id, d.id], 11, 7)

    players = await storage.get_players([a.id, b.id, c.id, d.id])
    for pid in (a.id, b.id):
        assert players[pid].elo_doubles == 1216
        assert players[pid].wins_doubles == 1
    for pid in (c.id, d.id):
        assert players[pid].elo_doubles == 1184
    for player in players.values():
        assert player.elo_singles == 1200
        assert player.wins_singles == 0
        assert player.losses_singles == 0
        assert player.streak_singles == 0


@pytest.mark.asyncio
async def test_doubles_delta_uses_team_average(storage, roles, admin, make_player):
    a = await make_player("A", elo_doubles=1300)
    b = await make_player("B", elo_doubles=1100)
    c = await make_player("C", elo_doubles=1250)
    d = await make_player("D", elo_doubles=1150)

    match = await ledger_service.record_match(
        storage, roles, admin, "doubles", [a.id, b.id], [c.id, d.id], 21, 19
    )

    # Both sides average 1200
    assert match.elo_change == 16
    players = await storage.get_players([a.id, b.id, c.id, d.id])
    assert players[a.id].elo_doubles == 1316
    assert players[b.id].elo_doubles == 1116
    assert players[c.id].elo_doubles == 1234
    assert players[d.id].elo_doubles == 1134


@pytest.mark.asyncio
async def test_friendly_match_moves_counters_only(storage, roles, admin, make_player):
    alice = await make_player("Alice")
    bob = await make_player("Bob")

    match = await ledger_service.record_match(
        storage, roles, admin, "singles", [alice.id], [bob.id], 5, 3, is_friendly=True
    )

    assert match.is_friendly is True
    assert match.elo_change == 0
    players = await storage.get_players([alice.id, bob.id])
    assert players[alice.id].elo_singles == 1200
    assert players[alice.id].wins_singles == 1
    assert players[bob.id].losses_singles == 1
    assert await storage.list_history() == []


@pytest.mark.asyncio
async def test_streaks_continue_and_flip(storage, roles, admin, make_player):
    alice = await make_player("Alice")
    bob = await make_player("Bob")

    for _ in range(3):
        await ledger_service.record_match(storage, roles, admin, "singles", [alice.id], [bob.id], 2, 0)
    assert (await storage.get_player(alice.id)).streak_singles == 3
    assert (await storage.get_player(bob.id)).streak_singles == -3

    await ledger_service.record_match(storage, roles, admin, "singles", [bob.id], [alice.id], 2, 0)
    assert (await storage.get_player(alice.id)).streak_singles == -1
    assert (await storage.get_player(bob.id)).streak_singles == 1


# ---------------------------------------------------------------------------
# Validation and authorization
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "mode,winners,losers,score_winner,score_loser",
    [
        ("squash", ["a"], ["b"], 21, 10),
        ("singles", ["a", "c"], ["b"], 21, 10),
        ("doubles", ["a"], ["b"], 21, 10),
        ("singles", ["a"], ["a"], 21, 10),
        ("doubles", ["a", "b"], ["b", "c"], 21, 10),
        ("singles", ["a"], ["b"], 10, 21),
        ("singles", ["a"], ["b"], 15, 15),
        ("singles", ["a"], ["b"], 21, -1),
        ("singles", ["a"], ["b"], "21", 10),
    ],
)
async def test_malformed_outcomes_rejected(storage, roles, admin, mode, winners, losers, score_winner, score_loser):
    with pytest.raises(ValidationError):
        await ledger_service.record_match(
            storage, roles, admin, mode, winners, losers, score_winner, score_loser
        )
    assert await storage.list_matches() == []


@pytest.mark.asyncio
async def test_unknown_participant_rejected_without_effect(storage, roles, admin, make_player):
    alice = await make_player("Alice")

    with pytest.raises(ValidationError):
        await ledger_service.record_match(storage, roles, admin, "singles", [alice.id], ["ghost"], 21, 10)

    assert (await storage.get_player(alice.id)).elo_singles == 1200
    assert await storage.list_matches() == []


@pytest.mark.asyncio
async def test_non_participant_cannot_record(storage, roles, make_player, as_account):
    alice = await make_player("Alice")
    bob = await make_player("Bob")
    await make_player("Carol", account_id="acct-carol")

    with pytest.raises(AuthorizationError):
        await ledger_service.record_match(
            storage, roles, as_account("acct-carol"), "singles", [alice.id], [bob.id], 21, 10
        )


@pytest.mark.asyncio
async def test_account_without_profile_cannot_record(storage, roles, make_player, as_account):
    alice = await make_player("Alice")
    bob = await make_player("Bob")

    with pytest.raises(AuthorizationError):
        await ledger_service.record_match(
            storage, roles, as_account("nobody"), "singles", [alice.id], [bob.id], 21, 10
        )


# ---------------------------------------------------------------------------
# Editing and deleting
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete_restores_ratings_and_counts(storage, roles, admin, make_player):
    alice = await make_player("Alice")
    bob = await make_player("Bob")
    match = await ledger_service.record_match(storage, roles, admin, "singles", [alice.id], [bob.id], 21, 15)

    await ledger_service.delete_match(storage, roles, admin, match.id)

    players = await storage.get_players([alice.id, bob.id])
    for player in players.values():
        assert player.elo_singles == 1200
        assert player.wins_singles == 0
        assert player.losses_singles == 0
        assert player.streak_singles == 0
    assert await storage.get_match(match.id) is None
    assert await storage.list_history() == []


@pytest.mark.asyncio
async def test_edit_then_delete_round_trip(storage, roles, admin, make_player):
    alice = await make_player("Alice")
    bob = await make_player("Bob")
    carol = await make_player("Carol")
    match = await ledger_service.record_match(
        storage, roles, admin, "singles", [alice.id], [bob.id], 21, 15, now=T0
    )

    edited = await ledger_service.edit_match(
        storage, roles, admin, match.id, [carol.id], [alice.id], 21, 12, now=T0 + timedelta(hours=2)
    )

    assert edited.id == match.id
    assert edited.timestamp == T0
    assert edited.mode == GameMode.SINGLES
    assert edited.winners == [carol.id]
    assert edited.losers == [alice.id]
    players = await storage.get_players([alice.id, bob.id, carol.id])
    assert players[bob.id].elo_singles == 1200
    assert players[bob.id].losses_singles == 0
    assert players[carol.id].elo_singles == 1216
    assert players[alice.id].elo_singles == 1184
    assert players[alice.id].wins_singles == 0
    assert players[alice.id].losses_singles == 1

    stored = await storage.get_match(match.id)
    assert stored.winners == [carol.id]
    assert stored.losers == [alice.id]
    history = await storage.list_history()
    assert {h.player_id for h in history} == {carol.id, alice.id}

    await ledger_service.delete_match(storage, roles, admin, match.id)
    players = await storage.get_players([alice.id, bob.id, carol.id])
    for player in players.values():
        assert player.elo_singles == 1200
        assert player.wins_singles == 0
        assert player.losses_singles == 0
        assert player.streak_singles == 0


@pytest.mark.asyncio
async def test_reporter_can_edit_within_grace_window(storage, roles, make_player, as_account):
    alice = await make_player("Alice", account_id="acct-alice")
    bob = await make_player("Bob")
    actor = as_account("acct-alice")
    match = await ledger_service.record_match(storage, roles, actor, "singles", [alice.id], [bob.id], 21, 15, now=T0)

    edited = await ledger_service.edit_match(
        storage, roles, actor, match.id, [alice.id], [bob.id], 21, 19, now=T0 + timedelta(seconds=30)
    )

    assert edited.score_loser == 19
    assert edited.elo_change == 16


@pytest.mark.asyncio
async def test_reporter_outside_grace_window_gets_conflict(storage, roles, make_player, as_account):
    alice = await make_player("Alice", account_id="acct-alice")
    bob = await make_player("Bob")
    actor = as_account("acct-alice")
    match = await ledger_service.record_match(storage, roles, actor, "singles", [alice.id], [bob.id], 21, 15, now=T0)

    with pytest.raises(StateConflictError) as exc_info:
        await ledger_service.delete_match(storage, roles, actor, match.id, now=T0 + timedelta(seconds=61))

    assert exc_info.value.current_state["grace_seconds"] == 60
    assert exc_info.value.current_state["age_seconds"] == 61
    assert await storage.get_match(match.id) is not None


@pytest.mark.asyncio
async def test_other_account_cannot_edit(storage, roles, make_player, as_account):
    alice = await make_player("Alice", account_id="acct-alice")
    bob = await make_player("Bob", account_id="acct-bob")
    match = await ledger_service.record_match(
        storage, roles, as_account("acct-alice"), "singles", [alice.id], [bob.id], 21, 15, now=T0
    )

    with pytest.raises(AuthorizationError):
        await ledger_service.edit_match(
            storage, roles, as_account("acct-bob"), match.id, [bob.id], [alice.id], 21, 15,
            now=T0 + timedelta(seconds=5),
        )


@pytest.mark.asyncio
async def test_edit_unknown_match(storage, roles, admin):
    with pytest.raises(NotFoundError):
        await ledger_service.edit_match(storage, roles, admin, "missing", ["a"], ["b"], 21, 15)


@pytest.mark.asyncio
async def test_invalid_edit_leaves_match_untouched(storage, roles, admin, make_player):
    alice = await make_player("Alice")
    bob = await make_player("Bob")
    match = await ledger_service.record_match(storage, roles, admin, "singles", [alice.id], [bob.id], 21, 15)

    with pytest.raises(ValidationError):
        await ledger_service.edit_match(storage, roles, admin, match.id, [alice.id], [bob.id], 10, 15)

    assert (await storage.get_player(alice.id)).elo_singles == 1216
    assert (await storage.get_match(match.id)).score_winner == 21


# ---------------------------------------------------------------------------
# Stat replay
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_recalculate_stats_rebuilds_streaks(storage, roles, admin, make_player):
    alice = await make_player("Alice")
    bob = await make_player("Bob")
    first = await ledger_service.record_match(
        storage, roles, admin, "singles", [alice.id], [bob.id], 21, 15, now=T0
    )
    await ledger_service.record_match(
        storage, roles, admin, "singles", [alice.id], [bob.id], 21, 15, now=T0 + timedelta(minutes=5)
    )
    # The edit zeroes the streak before re-applying the single edited match
    await ledger_service.edit_match(storage, roles, admin, first.id, [alice.id], [bob.id], 21, 17)
    assert (await storage.get_player(alice.id)).streak_singles == 1

    result = await ledger_service.recalculate_stats(storage, roles, admin)

    assert result == {"players": 2, "matches": 2}
    players = await storage.get_players([alice.id, bob.id])
    assert players[alice.id].wins_singles == 2
    assert players[alice.id].streak_singles == 2
    assert players[bob.id].losses_singles == 2
    assert players[bob.id].streak_singles == -2


@pytest.mark.asyncio
async def test_recalculate_stats_requires_admin(storage, roles, as_account):
    with pytest.raises(AuthorizationError):
        await ledger_service.recalculate_stats(storage, roles, as_account("acct-alice"))


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_concurrent_matches_with_shared_player_keep_rating_total(storage, roles, admin, make_player):
    alice = await make_player("Alice")
    bob = await make_player("Bob")
    carol = await make_player("Carol")

    await asyncio.gather(
        ledger_service.record_match(storage, roles, admin, "singles", [alice.id], [bob.id], 21, 10),
        ledger_service.record_match(storage, roles, admin, "singles", [alice.id], [carol.id], 21, 10),
    )

    players = await storage.get_players([alice.id, bob.id, carol.id])
    assert sum(p.elo_singles for p in players.values()) == 3600
    # Second match sees Alice at 1216: delta 15
    assert players[alice.id].elo_singles == 1231
    assert players[alice.id].wins_singles == 2
    assert players[alice.id].streak_singles == 2
    assert len(await storage.list_history()) == 4
