"""
Tests for the pure rating engine.
"""

import pytest

from ladder.models.records import GameMode, Player
from ladder.services import rating_service


class TestCalculateMatchDelta:
    def test_equal_ratings_give_half_k(self):
        assert rating_service.calculate_match_delta(1200, 1200) == 16

    def test_upset_is_worth_more_than_expected_win(self):
        upset = rating_service.calculate_match_delta(1100, 1300)
        expected = rating_service.calculate_match_delta(1300, 1100)
        assert upset > 16 > expected
        # The two deltas split K between them (up to rounding)
        assert abs(upset + expected - 32) <= 1

    def test_delta_is_deterministic(self):
        assert rating_service.calculate_match_delta(1234, 1187) == rating_service.calculate_match_delta(
            1234, 1187
        )

    def test_custom_k_factor(self):
        assert rating_service.calculate_match_delta(1200, 1200, k=20) == 10

    def test_delta_bounded_by_k(self):
        assert 0 <= rating_service.calculate_match_delta(3000, 100) <= 32
        assert 0 <= rating_service.calculate_match_delta(100, 3000) <= 32


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (15.999, 16), (0.0, 0)],
    )
    def test_round_half_up(self, value, expected):
        assert rating_service.round_half_up(value) == expected


def test_expected_score_is_symmetric():
    a = rating_service.expected_score(1400, 1200)
    b = rating_service.expected_score(1200, 1400)
    assert a + b == pytest.approx(1.0)
    assert a > 0.5


class TestSideRating:
    def test_singles_uses_player_rating(self):
        player = Player(name="Ana", elo_singles=1350, elo_doubles=1000)
        assert rating_service.side_rating([player], GameMode.SINGLES) == 1350

    def test_doubles_uses_mean_of_doubles_ratings(self):
        team = [
            Player(name="Ana", elo_singles=2000, elo_doubles=1300),
            Player(name="Ben", elo_singles=900, elo_doubles=1100),
        ]
        assert rating_service.side_rating(team, GameMode.DOUBLES) == 1200

    def test_empty_side_rejected(self):
        with pytest.raises(ValueError):
            rating_service.side_rating([], GameMode.SINGLES)
