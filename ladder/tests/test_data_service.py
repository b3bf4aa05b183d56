"""
Tests for whole-ladder export, import and reset.
"""

import pytest

from ladder.models.records import AdminUser
from ladder.services import (
    challenge_service,
    confirmation_service,
    data_service,
    ledger_service,
    season_service,
    tournament_service,
)
from ladder.services.errors import AuthorizationError, ValidationError


@pytest.fixture
def played(storage, roles, admin, make_player):
    """Alice beat Bob once; Carol has no matches."""

    async def _played():
        alice = await make_player("Alice", account_id="acct-alice")
        bob = await make_player("Bob", account_id="acct-bob")
        carol = await make_player("Carol", is_active=False)
        match = await ledger_service.record_match(storage, roles, admin, "singles", [alice.id], [bob.id], 21, 18)
        return alice, bob, carol, match

    return _played


@pytest.mark.asyncio
async def test_export_includes_inactive_players_and_history(storage, played, as_account):
    alice, bob, carol, match = await played()

    data = await data_service.export_data(storage, as_account("acct-bob"))

    assert sorted(p.name for p in data["players"]) == ["Alice", "Bob", "Carol"]
    assert [m.id for m in data["matches"]] == [match.id]
    assert sorted((h.player_id, h.new_elo) for h in data["history"]) == sorted(
        [(alice.id, 1216), (bob.id, 1184)]
    )


@pytest.mark.asyncio
async def test_import_restores_an_export(storage, roles, admin, played, as_account):
    alice, bob, carol, match = await played()
    exported = await data_service.export_data(storage, admin)
    documents = {key: [item.model_dump(mode="json") for item in items] for key, items in exported.items()}
    await data_service.reset_data(storage, roles, admin, "fresh")
    assert await storage.list_players(include_inactive=True) == []

    counts = await data_service.import_data(
        storage, roles, admin, documents["players"], documents["matches"], documents["history"]
    )

    assert counts == {"players": 3, "matches": 1, "history": 2}
    assert (await storage.get_player(alice.id)).elo_singles == 1216
    assert (await storage.get_player(bob.id)).account_id == "acct-bob"
    assert (await storage.get_player(carol.id)).is_active is False
    assert (await storage.get_match(match.id)).score_loser == 18
    assert len(await storage.list_history()) == 2


@pytest.mark.asyncio
async def test_import_replaces_roster_and_drops_open_items(storage, roles, admin, played, as_account):
    alice, bob, carol, match = await played()
    await confirmation_service.create_report(
        storage, roles, as_account("acct-alice"), "singles", [alice.id], [bob.id], 21, 15
    )
    await challenge_service.create_challenge(storage, as_account("acct-alice"), bob.id, wager=10)
    tournament = await tournament_service.create_tournament(
        storage, roles, admin, "Cup", "single_elimination", "singles", [alice.id, bob.id]
    )

    await data_service.import_data(
        storage,
        roles,
        admin,
        [{"id": "p-zed", "name": "Zed", "elo_singles": 1300}, {"id": "p-yan", "name": "Yan"}],
        [
            {
                "id": "m-1",
                "mode": "singles",
                "winners": ["p-zed"],
                "losers": ["p-yan"],
                "score_winner": 21,
                "score_loser": 3,
                "elo_change": 12,
            }
        ],
    )

    assert sorted(p.name for p in await storage.list_players(include_inactive=True)) == ["Yan", "Zed"]
    assert await storage.get_player(alice.id) is None
    assert (await storage.get_player("p-zed")).elo_singles == 1300
    assert [m.id for m in await storage.list_matches()] == ["m-1"]
    assert await storage.list_history() == []
    assert await storage.list_pending_matches() == []
    assert await storage.list_challenges() == []
    assert (await storage.get_tournament(tournament.id)) is not None


@pytest.mark.asyncio
async def test_invalid_import_changes_nothing(storage, roles, admin, played):
    alice, bob, carol, match = await played()

    with pytest.raises(ValidationError, match="must be arrays"):
        await data_service.import_data(storage, roles, admin, {"id": "x"}, [])
    with pytest.raises(ValidationError, match=r"players\[0\]"):
        await data_service.import_data(storage, roles, admin, [{"id": "x"}], [])
    with pytest.raises(ValidationError, match="unknown players"):
        await data_service.import_data(
            storage,
            roles,
            admin,
            [{"id": "p-zed", "name": "Zed"}],
            [
                {
                    "mode": "singles",
                    "winners": ["p-zed"],
                    "losers": ["ghost"],
                    "score_winner": 21,
                    "score_loser": 3,
                }
            ],
        )
    with pytest.raises(ValidationError, match="duplicate player ids"):
        await data_service.import_data(
            storage, roles, admin, [{"id": "p", "name": "A"}, {"id": "p", "name": "B"}], []
        )

    assert len(await storage.list_players(include_inactive=True)) == 3
    assert [m.id for m in await storage.list_matches()] == [match.id]


@pytest.mark.asyncio
async def test_import_and_reset_require_admin(storage, roles, played, as_account):
    await played()
    alice = as_account("acct-alice")

    with pytest.raises(AuthorizationError):
        await data_service.import_data(storage, roles, alice, [], [])
    with pytest.raises(AuthorizationError):
        await data_service.reset_data(storage, roles, alice, "fresh")

    assert len(await storage.list_players(include_inactive=True)) == 3


@pytest.mark.asyncio
async def test_season_reset_keeps_roster(storage, roles, admin, played):
    alice, bob, carol, match = await played()

    await data_service.reset_data(storage, roles, admin, "season")

    assert len(await storage.list_players(include_inactive=True)) == 3
    assert (await storage.get_player(alice.id)).elo_singles == 1200
    assert (await storage.get_player(alice.id)).wins_singles == 0
    assert (await storage.get_player(bob.id)).streak_singles == 0
    assert await storage.list_matches() == []
    assert await storage.list_history() == []
    assert await storage.list_seasons() == []


@pytest.mark.asyncio
async def test_fresh_reset_keeps_only_admins(storage, roles, admin, played, as_account):
    alice, bob, carol, match = await played()
    await storage.add_admin(AdminUser(account_id="acct-bob", email="bob@example.com"))
    await challenge_service.create_challenge(storage, as_account("acct-alice"), bob.id)
    await season_service.start_season(storage, roles, admin)

    await data_service.reset_data(storage, roles, admin, "fresh")

    assert await storage.list_players(include_inactive=True) == []
    assert await storage.list_matches() == []
    assert await storage.list_challenges() == []
    assert await storage.list_seasons() == []
    assert await storage.is_admin("admin-account") is True
    assert await storage.is_admin("acct-bob") is True


@pytest.mark.asyncio
async def test_unknown_reset_mode_is_rejected(storage, roles, admin, played):
    await played()

    with pytest.raises(ValidationError, match="Unknown reset mode"):
        await data_service.reset_data(storage, roles, admin, "seed")

    assert await storage.count_matches() == 1
