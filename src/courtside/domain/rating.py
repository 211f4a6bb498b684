"""MMR delta policy, level banding and win-rate math."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass

from courtside.domain.common import MatchResult, Outcome

DELTA_POLICIES = ("elo", "fixed")

SKILL_LABEL_BANDS: tuple[tuple[int, str], ...] = (
    (1800, "Expert"),
    (1500, "Advanced"),
    (1200, "Intermediate"),
    (900, "Beginner"),
)
DEFAULT_SKILL_LABEL = "Novice"


@dataclass(frozen=True)
class RatingParameters:
    initial_mmr: int = 1000
    mmr_floor: int = 0
    delta_policy: str = "elo"
    fixed_delta: int = 20
    k_factor: float = 40.0
    scale_factor: float = 400.0
    min_delta: int = 10
    max_delta: int = 30
    level_thresholds: tuple[int, ...] = (0, 1100, 1200, 1300, 1400, 1500, 1600, 1700, 1800, 1900)


@dataclass(frozen=True)
class MatchDeltas:
    player1_delta: int
    player2_delta: int


def calculate_expected_score(rating: float, opponent_rating: float, scale_factor: float) -> float:
    """Compute the Elo expected score for one side."""
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / scale_factor))


def calculate_win_rate(wins: int, matches_played: int) -> float:
    if matches_played <= 0:
        return 0.0
    return round(wins / matches_played * 100.0, 2)


def level_for_mmr(mmr: int, thresholds: tuple[int, ...]) -> int:
    """Number of band thresholds at or below ``mmr``, never less than 1."""
    return max(1, bisect_right(thresholds, mmr))


def skill_label_for_mmr(mmr: int) -> str:
    for minimum, label in SKILL_LABEL_BANDS:
        if mmr >= minimum:
            return label
    return DEFAULT_SKILL_LABEL


def calculate_mmr_delta(winner_mmr: int, loser_mmr: int, params: RatingParameters) -> int:
    """Magnitude of the zero-sum MMR transfer from loser to winner."""
    if params.delta_policy == "fixed":
        raw = float(params.fixed_delta)
    else:
        winner_expected = calculate_expected_score(winner_mmr, loser_mmr, params.scale_factor)
        raw = params.k_factor * (1.0 - winner_expected)
    return int(max(params.min_delta, min(round(raw), params.max_delta)))


def compute_match_deltas(
    result: MatchResult,
    player1_mmr: int,
    player2_mmr: int,
    params: RatingParameters,
) -> MatchDeltas:
    """Signed MMR deltas for both players.

    Draws move nothing. A loser near the floor loses only down to the floor;
    the winner still gains the full delta.
    """
    if result is MatchResult.DRAW:
        return MatchDeltas(player1_delta=0, player2_delta=0)

    if result is MatchResult.PLAYER1_WIN:
        delta = calculate_mmr_delta(player1_mmr, player2_mmr, params)
        loser_delta = max(-delta, params.mmr_floor - player2_mmr)
        return MatchDeltas(player1_delta=delta, player2_delta=min(0, loser_delta))

    delta = calculate_mmr_delta(player2_mmr, player1_mmr, params)
    loser_delta = max(-delta, params.mmr_floor - player1_mmr)
    return MatchDeltas(player1_delta=min(0, loser_delta), player2_delta=delta)


def next_counters(
    *,
    matches_played: int,
    wins: int,
    losses: int,
    draws: int,
    outcome: Outcome,
) -> tuple[int, int, int, int]:
    """Return (matches_played, wins, losses, draws) after one more result.

    Draws are tallied apart so ``wins + losses == matches_played`` always holds.
    """
    if outcome is Outcome.WIN:
        return matches_played + 1, wins + 1, losses, draws
    if outcome is Outcome.LOSS:
        return matches_played + 1, wins, losses + 1, draws
    return matches_played, wins, losses, draws + 1


__all__ = [
    "DELTA_POLICIES",
    "MatchDeltas",
    "RatingParameters",
    "calculate_expected_score",
    "calculate_mmr_delta",
    "calculate_win_rate",
    "compute_match_deltas",
    "level_for_mmr",
    "next_counters",
    "skill_label_for_mmr",
]
