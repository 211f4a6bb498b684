"""Tests for MMR delta policies, level bands and counters."""

from __future__ import annotations

import pytest

from courtside.domain.common import MatchResult, Outcome
from courtside.domain.rating import (
    RatingParameters,
    calculate_expected_score,
    calculate_mmr_delta,
    calculate_win_rate,
    compute_match_deltas,
    level_for_mmr,
    next_counters,
    skill_label_for_mmr,
)


def test_expected_scores_are_complementary() -> None:
    favourite = calculate_expected_score(1400, 1000, 400.0)
    underdog = calculate_expected_score(1000, 1400, 400.0)

    assert favourite == pytest.approx(10.0 / 11.0)
    assert favourite + underdog == pytest.approx(1.0)


def test_equal_ratings_transfer_twenty_points() -> None:
    deltas = compute_match_deltas(MatchResult.PLAYER1_WIN, 1000, 1000, RatingParameters())

    assert deltas.player1_delta == 20
    assert deltas.player2_delta == -20


def test_elo_delta_is_clamped_to_bounds() -> None:
    params = RatingParameters()

    assert calculate_mmr_delta(winner_mmr=1400, loser_mmr=1000, params=params) == 10
    assert calculate_mmr_delta(winner_mmr=1000, loser_mmr=1400, params=params) == 30


def test_fixed_policy_ignores_ratings() -> None:
    params = RatingParameters(delta_policy="fixed", fixed_delta=15)

    deltas = compute_match_deltas(MatchResult.PLAYER2_WIN, 1800, 900, params)

    assert deltas.player1_delta == -15
    assert deltas.player2_delta == 15


def test_draw_moves_nothing() -> None:
    deltas = compute_match_deltas(MatchResult.DRAW, 1200, 1500, RatingParameters())

    assert (deltas.player1_delta, deltas.player2_delta) == (0, 0)


def test_loser_near_floor_only_loses_down_to_floor() -> None:
    deltas = compute_match_deltas(MatchResult.PLAYER1_WIN, 1000, 5, RatingParameters())

    assert deltas.player1_delta == 10
    assert deltas.player2_delta == -5


def test_loser_on_floor_loses_nothing() -> None:
    deltas = compute_match_deltas(MatchResult.PLAYER2_WIN, 0, 20, RatingParameters())

    assert deltas.player1_delta == 0
    assert deltas.player2_delta > 0


@pytest.mark.parametrize(
    ("mmr", "level"),
    [(-5, 1), (0, 1), (1099, 1), (1100, 2), (1550, 6), (1900, 10), (2400, 10)],
)
def test_level_counts_thresholds_at_or_below_mmr(mmr: int, level: int) -> None:
    assert level_for_mmr(mmr, RatingParameters().level_thresholds) == level


def test_skill_labels_follow_bands() -> None:
    assert skill_label_for_mmr(850) == "Novice"
    assert skill_label_for_mmr(900) == "Beginner"
    assert skill_label_for_mmr(1499) == "Intermediate"
    assert skill_label_for_mmr(1500) == "Advanced"
    assert skill_label_for_mmr(2100) == "Expert"


def test_win_rate_is_a_rounded_percentage() -> None:
    assert calculate_win_rate(2, 3) == pytest.approx(66.67)
    assert calculate_win_rate(0, 0) == 0.0


def test_draws_are_counted_apart_from_decided_matches() -> None:
    after_draw = next_counters(matches_played=3, wins=2, losses=1, draws=0, outcome=Outcome.DRAW)
    after_loss = next_counters(matches_played=3, wins=2, losses=1, draws=0, outcome=Outcome.LOSS)

    assert after_draw == (3, 2, 1, 1)
    assert after_loss == (4, 2, 2, 0)
