"""
Rating engine - pure ELO delta computation.

No side effects and no stored state. The same two input ratings always
produce the same delta, which is what makes match reversal exact.
"""

import math
from typing import Sequence

from ladder.models.records import GameMode, Player
from ladder.utils.constants import K_FACTOR


def expected_score(rating_a: float, rating_b: float) -> float:
    """
    Expected score of side A against side B.

    Args:
        rating_a: Rating of side A
        rating_b: Rating of side B

    Returns:
        Probability in (0, 1) that A beats B
    """
    return 1 / (1 + math.pow(10, (rating_b - rating_a) / 400))


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; ratings round .5 upwards
    return int(math.floor(value + 0.5))


def calculate_match_delta(winner_rating: float, loser_rating: float, k: int = K_FACTOR) -> int:
    """
    Rating delta gained by the winning side. The losing side loses exactly this much.

    Args:
        winner_rating: Winning side rating before the match
        loser_rating: Losing side rating before the match
        k: K-factor

    Returns:
        Integer delta, rounded half up
    """
    return round_half_up(k * (1 - expected_score(winner_rating, loser_rating)))


def side_rating(players: Sequence[Player], mode: GameMode) -> float:
    """
    Rating of one side of a match in the given mode.

    Singles uses the single player's rating; doubles uses the arithmetic mean
    of the teammates' doubles ratings.
    """
    if not players:
        raise ValueError("A side needs at least one player")
    return sum(p.rating(mode) for p in players) / len(players)
