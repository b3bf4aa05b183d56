"""
Tests for bracket and round-robin tournaments.
"""

import pytest

from ladder.models.records import Matchup, Round, Tournament, TournamentFormat, TournamentStatus, GameMode
from ladder.services import tournament_service
from ladder.services.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)


# ============================================================================
# Schedule generation (pure)
# ============================================================================


class TestSingleElimination:
    def test_five_players_padded_to_eight(self):
        rounds = tournament_service.build_single_elimination(["s1", "s2", "s3", "s4", "s5"])

        assert len(rounds) == 3
        assert [len(r.matchups) for r in rounds] == [4, 2, 1]
        first = rounds[0].matchups
        assert [(m.player1_id, m.player2_id) for m in first] == [
            ("s1", None),
            ("s2", None),
            ("s3", None),
            ("s4", "s5"),
        ]
        # Byes are decided and advanced at creation
        assert [m.winner_id for m in first] == ["s1", "s2", "s3", None]
        second = rounds[1].matchups
        assert (second[0].player1_id, second[0].player2_id) == ("s1", "s2")
        assert (second[1].player1_id, second[1].player2_id) == ("s3", None)

    def test_power_of_two_has_no_byes(self):
        rounds = tournament_service.build_single_elimination(["a", "b", "c", "d"])

        assert len(rounds) == 2
        assert [(m.player1_id, m.player2_id) for m in rounds[0].matchups] == [("a", "d"), ("b", "c")]
        assert all(m.winner_id is None for m in rounds[0].matchups)

    def test_two_players_single_final(self):
        rounds = tournament_service.build_single_elimination(["a", "b"])

        assert len(rounds) == 1
        assert rounds[0].matchups[0].id == "r1-m0"


class TestRoundRobin:
    def test_three_players_play_every_pair_once(self):
        rounds = tournament_service.build_round_robin(["a", "b", "c"])

        pairs = [(m.player1_id, m.player2_id) for r in rounds for m in r.matchups]
        assert pairs == [("a", "b"), ("a", "c"), ("b", "c")]
        assert len(rounds) == 3

    def test_four_players_grouped_two_per_round(self):
        rounds = tournament_service.build_round_robin(["a", "b", "c", "d"])

        assert [len(r.matchups) for r in rounds] == [2, 2, 2]
        assert [r.round_number for r in rounds] == [1, 2, 3]
        assert rounds[2].matchups[1].id == "r3-m1"


def _round_robin(results):
    """Round robin over a, b, c with the given (player1, player2, winner) results."""
    matchups = [
        Matchup(id=f"r1-m{i}", player1_id=p1, player2_id=p2, winner_id=w)
        for i, (p1, p2, w) in enumerate(results)
    ]
    return Tournament(
        name="RR",
        format=TournamentFormat.ROUND_ROBIN,
        mode=GameMode.SINGLES,
        player_ids=["a", "b", "c"],
        rounds=[Round(round_number=1, matchups=matchups)],
    )


class TestRoundRobinWinner:
    def test_most_wins(self):
        tournament = _round_robin([("a", "b", "b"), ("a", "c", "c"), ("b", "c", "b")])
        assert tournament_service.round_robin_winner(tournament) == "b"

    def test_three_way_tie_falls_back_to_seed_order(self):
        tournament = _round_robin([("a", "b", "a"), ("a", "c", "c"), ("b", "c", "b")])
        assert tournament_service.round_robin_winner(tournament) == "a"

    def test_head_to_head_breaks_two_way_tie(self):
        tournament = Tournament(
            name="RR",
            format=TournamentFormat.ROUND_ROBIN,
            mode=GameMode.SINGLES,
            player_ids=["a", "b", "c", "d"],
            rounds=[
                Round(
                    round_number=1,
                    matchups=[
                        Matchup(id="r1-m0", player1_id="a", player2_id="b", winner_id="b"),
                        Matchup(id="r1-m1", player1_id="a", player2_id="c", winner_id="a"),
                        Matchup(id="r1-m2", player1_id="a", player2_id="d", winner_id="a"),
                        Matchup(id="r1-m3", player1_id="b", player2_id="c", winner_id="c"),
                        Matchup(id="r1-m4", player1_id="b", player2_id="d", winner_id="b"),
                        Matchup(id="r1-m5", player1_id="c", player2_id="d", winner_id="d"),
                    ],
                )
            ],
        )
        # a and b both have 2 wins; b beat a
        assert tournament_service.round_robin_winner(tournament) == "b"


# ============================================================================
# Operations
# ============================================================================


@pytest.fixture
def make_players(make_player):
    async def _make(*names, **fields):
        return [await make_player(name, **fields) for name in names]

    return _make


@pytest.mark.asyncio
async def test_create_single_elimination_seeds_by_rating(storage, roles, admin, make_player):
    low = await make_player("Low", elo_singles=1100)
    high = await make_player("High", elo_singles=1400)
    mid = await make_player("Mid", elo_singles=1250)

    tournament = await tournament_service.create_tournament(
        storage, roles, admin, "Spring Cup", "single_elimination", "singles", [low.id, high.id, mid.id]
    )

    first = tournament.rounds[0].matchups
    # Top seed gets the bye
    assert (first[0].player1_id, first[0].player2_id, first[0].winner_id) == (high.id, None, high.id)
    assert (first[1].player1_id, first[1].player2_id) == (mid.id, low.id)
    assert tournament.rounds[1].matchups[0].player1_id == high.id

    stored = await storage.get_tournament(tournament.id)
    assert stored.rounds == tournament.rounds
    assert stored.status == TournamentStatus.IN_PROGRESS
    assert stored.created_by == admin.account_id


@pytest.mark.asyncio
async def test_create_validates_input(storage, roles, admin, make_players, as_account):
    a, b = await make_players("A", "B")

    with pytest.raises(AuthorizationError):
        await tournament_service.create_tournament(
            storage, roles, as_account("acct-x"), "Cup", "round_robin", "singles", [a.id, b.id]
        )
    with pytest.raises(ValidationError):
        await tournament_service.create_tournament(storage, roles, admin, "  ", "round_robin", "singles", [a.id, b.id])
    with pytest.raises(ValidationError):
        await tournament_service.create_tournament(storage, roles, admin, "Cup", "swiss", "singles", [a.id, b.id])
    with pytest.raises(ValidationError):
        await tournament_service.create_tournament(storage, roles, admin, "Cup", "round_robin", "singles", [a.id])
    with pytest.raises(ValidationError):
        await tournament_service.create_tournament(
            storage, roles, admin, "Cup", "round_robin", "singles", [a.id, a.id]
        )
    with pytest.raises(ValidationError):
        await tournament_service.create_tournament(
            storage, roles, admin, "Cup", "round_robin", "singles", [a.id, "ghost"]
        )
    assert await storage.list_tournaments() == []


@pytest.mark.asyncio
async def test_bracket_advances_to_completion(storage, roles, admin, make_players, as_account):
    a, b, c, d = await make_players("A", "B", "C", "D")
    tournament = await tournament_service.create_tournament(
        storage, roles, admin, "Cup", "single_elimination", "singles", [a.id, b.id, c.id, d.id]
    )
    semi_1, semi_2 = tournament.rounds[0].matchups
    player = as_account("acct-any")

    t = await tournament_service.submit_result(
        storage, player, tournament.id, semi_1.id, semi_1.player1_id, score1=21, score2=10
    )
    final = t.rounds[1].matchups[0]
    assert final.player1_id == semi_1.player1_id
    assert final.player2_id is None
    assert t.status == TournamentStatus.IN_PROGRESS

    with pytest.raises(StateConflictError):
        await tournament_service.submit_result(storage, player, tournament.id, final.id, final.player1_id)

    t = await tournament_service.submit_result(storage, player, tournament.id, semi_2.id, semi_2.player2_id)
    final = t.rounds[1].matchups[0]
    assert final.player2_id == semi_2.player2_id

    t = await tournament_service.submit_result(storage, player, tournament.id, final.id, final.player2_id)

    assert t.status == TournamentStatus.COMPLETED
    assert t.winner_id == semi_2.player2_id
    assert t.completed_at is not None
    stored = await storage.get_tournament(tournament.id)
    assert stored.status == TournamentStatus.COMPLETED
    assert stored.winner_id == semi_2.player2_id

    # No ledger side effects
    assert await storage.list_matches() == []
    assert (await storage.get_player(a.id)).elo_singles == 1200

    with pytest.raises(StateConflictError):
        await tournament_service.submit_result(storage, player, tournament.id, semi_1.id, semi_1.player1_id)


@pytest.mark.asyncio
async def test_round_robin_completes_only_when_all_decided(storage, roles, admin, make_players):
    a, b, c = await make_players("A", "B", "C")
    tournament = await tournament_service.create_tournament(
        storage, roles, admin, "League", "round_robin", "singles", [a.id, b.id, c.id]
    )
    matchups = [m for r in tournament.rounds for m in r.matchups]
    assert len(matchups) == 3

    t = await tournament_service.submit_result(storage, admin, tournament.id, matchups[0].id, a.id)
    t = await tournament_service.submit_result(storage, admin, tournament.id, matchups[1].id, a.id)
    assert t.status == TournamentStatus.IN_PROGRESS
    assert t.winner_id is None

    t = await tournament_service.submit_result(storage, admin, tournament.id, matchups[2].id, c.id)
    assert t.status == TournamentStatus.COMPLETED
    assert t.winner_id == a.id


@pytest.mark.asyncio
async def test_submit_result_rejects_bad_input(storage, roles, admin, make_players):
    a, b, c = await make_players("A", "B", "C")
    tournament = await tournament_service.create_tournament(
        storage, roles, admin, "League", "round_robin", "singles", [a.id, b.id, c.id]
    )
    matchup = tournament.rounds[0].matchups[0]

    with pytest.raises(NotFoundError):
        await tournament_service.submit_result(storage, admin, "missing", matchup.id, a.id)
    with pytest.raises(NotFoundError):
        await tournament_service.submit_result(storage, admin, tournament.id, "r9-m9", a.id)
    with pytest.raises(ValidationError):
        await tournament_service.submit_result(storage, admin, tournament.id, matchup.id, c.id)
    with pytest.raises(ValidationError):
        await tournament_service.submit_result(storage, admin, tournament.id, matchup.id, a.id, score1=-3)

    stored = await storage.get_tournament(tournament.id)
    assert stored.rounds[0].matchups[0].winner_id is None


@pytest.mark.asyncio
async def test_delete_tournament(storage, roles, admin, make_players, as_account):
    a, b = await make_players("A", "B")
    tournament = await tournament_service.create_tournament(
        storage, roles, admin, "Cup", "round_robin", "doubles", [a.id, b.id]
    )

    with pytest.raises(AuthorizationError):
        await tournament_service.delete_tournament(storage, roles, as_account("acct-x"), tournament.id)

    await tournament_service.delete_tournament(storage, roles, admin, tournament.id)
    assert await storage.get_tournament(tournament.id) is None
    with pytest.raises(NotFoundError):
        await tournament_service.get_tournament(storage, tournament.id)
